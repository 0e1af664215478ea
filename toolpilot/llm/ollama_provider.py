"""Ollama text generator implementation."""

import asyncio
import logging
from typing import Optional

import httpx

from .base import GenerationOptions, TextGenerator

logger = logging.getLogger(__name__)


class OllamaProvider(TextGenerator):
    """Ollama generator using the non-streaming /api/generate endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Ollama provider.

        Args:
            base_url: Ollama API base URL (e.g., http://localhost:11434).
            model: Model name (e.g., llama3.1:8b).
            timeout: Request timeout in seconds.
            client: Pre-built HTTP client, mainly for tests.
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._client = client
        self._available: Optional[bool] = None

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    async def _post_generate(self, payload: dict) -> Optional[str]:
        client = await self._get_client()
        try:
            response = await client.post("/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Ollama generation error: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Unexpected Ollama response body: {str(data)[:200]}")
            return None

        text = (data.get("response") or "").strip()
        return text or None

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[str]:
        """Generate a response using Ollama."""
        payload = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "num_predict": options.max_tokens,
                "temperature": options.temperature,
            },
        }

        if cancel_event is None:
            return await self._post_generate(payload)

        if cancel_event.is_set():
            return None

        request = asyncio.create_task(self._post_generate(payload))
        cancelled = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {request, cancelled},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (request, cancelled):
                if not task.done():
                    task.cancel()

        if request in done:
            return request.result()

        logger.info("Ollama generation cancelled")
        return None

    async def list_models(self) -> list[str]:
        """List model names installed on the Ollama server."""
        try:
            client = await self._get_client()
            response = await client.get("/api/tags")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to list Ollama models: {e}")
            return []

        if not isinstance(data, dict):
            logger.warning(f"Unexpected Ollama tags body: {str(data)[:200]}")
            return []
        return [model["name"] for model in data.get("models", []) if isinstance(model, dict) and "name" in model]

    async def check_available_async(self) -> bool:
        """Async check if Ollama is available."""
        try:
            client = await self._get_client()
            response = await client.get("/api/tags")
            self._available = response.status_code == 200
        except httpx.HTTPError:
            self._available = False
        return self._available

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
