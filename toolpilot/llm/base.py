"""Abstract base class for text generators."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling settings passed with every generation request."""
    max_tokens: int = 2048
    temperature: float = 0.3


class TextGenerator(ABC):
    """Abstract base class for language-model backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the generator name (e.g., 'ollama')."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the current model name."""
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[str]:
        """Generate a continuation of ``prompt``.

        Args:
            prompt: The complete prompt string.
            options: Token budget and sampling temperature.
            cancel_event: When set, the in-flight request is abandoned.

        Returns:
            The generated text, or None if generation failed or was cancelled.
        """
        ...

    async def close(self) -> None:
        """Release any network resources."""
        return None
