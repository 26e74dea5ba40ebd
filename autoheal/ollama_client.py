"""
Ollama client for autoheal.

Provides the embedding and generation calls used by the RAG fallback and
the model-assisted alert parser. Each method issues exactly one request;
retry policy belongs to the caller.
"""

import httpx
import logging
from typing import Optional

from autoheal.config.settings import OllamaConfig
from autoheal.utils.error_handling import (
    EmbeddingInputTooLongError,
    EmbeddingServiceError,
    GenerationError,
    is_input_too_long_error,
)

logger = logging.getLogger(__name__)


class OllamaClient:
    """Client for interacting with a local Ollama server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        chat_model: Optional[str] = None,
        embed_model: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[OllamaConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = settings or OllamaConfig()
        resolved = base_url or settings.base_url
        # Allow bare host:port values such as 'ollama:11434'
        if resolved and not resolved.startswith("http"):
            resolved = f"http://{resolved}"
        self.base_url = resolved.rstrip("/")
        self.chat_model = chat_model or settings.chat_model
        self.embed_model = embed_model or settings.embed_model
        self.timeout = timeout if timeout is not None else settings.timeout_seconds
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

    async def embed(self, text: str) -> list[float]:
        """
        Request an embedding for `text`.

        Raises:
            EmbeddingInputTooLongError: The model rejected the input size.
            EmbeddingServiceError: Any other failure, including transport errors.
        """
        try:
            response = await self.client.post(
                f"{self.base_url}/api/embeddings",
                json={"model": self.embed_model, "prompt": text},
            )
        except httpx.RequestError as e:
            logger.error(f"Error calling Ollama embeddings: {e}")
            raise EmbeddingServiceError(f"Ollama embeddings request failed: {e}") from e

        if response.status_code >= 400:
            body = response.text
            if is_input_too_long_error(body):
                raise EmbeddingInputTooLongError(
                    f"Ollama embeddings rejected {len(text)} chars: {body}", sizes_tried=[len(text)]
                )
            raise EmbeddingServiceError(f"Ollama embeddings failed: {response.status_code} {body}")

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingServiceError(f"Ollama embeddings returned invalid JSON: {e}") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            raise EmbeddingServiceError("No embedding returned from Ollama")
        return [float(x) for x in embedding]

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        json_format: bool = False,
    ) -> str:
        """
        Generate text using Ollama.

        Args:
            prompt: The input prompt
            system: Optional system message
            temperature: Optional sampling temperature (0-1)
            json_format: Ask the model to emit a JSON object

        Returns:
            Generated text, stripped (may be empty)
        """
        payload = {
            "model": self.chat_model,
            "prompt": prompt,
            "stream": False,
        }
        if system:
            payload["system"] = system
        if temperature is not None:
            payload["options"] = {"temperature": temperature}
        if json_format:
            payload["format"] = "json"

        try:
            response = await self.client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            body = e.response.text if e.response is not None else ""
            logger.error(f"Error calling Ollama generate: status {status}")
            raise GenerationError(f"Ollama generate failed: {status} {body}") from e
        except httpx.RequestError as e:
            logger.error(f"Error calling Ollama generate: {e}")
            raise GenerationError(f"Ollama generate request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Ollama generate returned invalid JSON: {e}") from e

        return (data.get("response") or "").strip() if isinstance(data, dict) else ""

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
