"""Text generator implementations."""

from .base import GenerationOptions, TextGenerator
from .ollama_provider import OllamaProvider

__all__ = [
    "GenerationOptions",
    "OllamaProvider",
    "TextGenerator",
]
