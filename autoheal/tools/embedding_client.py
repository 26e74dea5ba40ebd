"""
Embedding Client - Size-Constrained Text to Vector Conversion

Wraps the embedding backend (Ollama) with input truncation and a bounded
downsizing retry for "input too long" rejections.

Sizes tried: the configured maximum, then up to three smaller fallback
ceilings. Any error other than an input-size rejection propagates at once.
"""

import logging
from typing import Optional, Protocol

from autoheal.config.settings import OllamaConfig
from autoheal.observability.metrics import EMBEDDING_ATTEMPTS_TOTAL
from autoheal.utils.error_handling import EmbeddingInputTooLongError

logger = logging.getLogger(__name__)


MAX_EMBEDDING_ATTEMPTS = 4
# Cut at a newline only when it falls inside the last 10% of the window
NEWLINE_WINDOW_RATIO = 0.9


class EmbeddingBackend(Protocol):
    async def embed(self, text: str) -> list[float]:
        ...


def truncate_for_embedding(text: str, max_chars: int) -> str:
    """
    Truncate text to at most `max_chars` characters.

    Prefers to cut at the last newline when that newline lies in the final
    10% of the window; the newline itself is dropped. Otherwise cuts at the
    hard character boundary.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if len(text) <= max_chars:
        return text

    window = text[:max_chars]
    last_newline = window.rfind("\n")
    if last_newline > max_chars * NEWLINE_WINDOW_RATIO:
        return window[:last_newline]
    return window


def embedding_ceilings(max_length: int, fallback_sizes: list[int]) -> list[int]:
    """Return the strictly decreasing size ceilings to try, capped at MAX_EMBEDDING_ATTEMPTS."""
    ceilings = [max_length]
    for size in sorted(set(fallback_sizes), reverse=True):
        if 0 < size < ceilings[-1]:
            ceilings.append(size)
    return ceilings[:MAX_EMBEDDING_ATTEMPTS]


class EmbeddingClient:
    """
    Resilient embedder used for both history indexing and queries.

    The backend must raise EmbeddingInputTooLongError for size rejections;
    that is the only error that triggers the downsizing retry.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        max_length: Optional[int] = None,
        fallback_sizes: Optional[list[int]] = None,
        settings: Optional[OllamaConfig] = None,
    ):
        settings = settings or OllamaConfig()
        self._backend = backend
        self._max_length = max_length or settings.max_embedding_length
        sizes = fallback_sizes if fallback_sizes is not None else settings.embedding_fallback_sizes
        self._ceilings = embedding_ceilings(self._max_length, sizes)

    @property
    def ceilings(self) -> list[int]:
        return list(self._ceilings)

    async def embed(self, text: str) -> list[float]:
        """
        Generate an embedding for a single text.

        Raises:
            ValueError: If text is empty.
            EmbeddingInputTooLongError: If every size ceiling was rejected.
            EmbeddingServiceError: For any other backend failure (not retried).
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        if len(text) > self._max_length:
            logger.warning(
                f"[EmbeddingClient] Text length {len(text)} exceeds max embedding length "
                f"{self._max_length}, truncating"
            )

        sizes_tried: list[int] = []
        previous: Optional[str] = None
        for ceiling in self._ceilings:
            candidate = truncate_for_embedding(text, ceiling)
            if candidate == previous:
                # Text already fits this ceiling; resending the same input cannot help
                continue
            previous = candidate

            try:
                vector = await self._backend.embed(candidate)
            except EmbeddingInputTooLongError as e:
                EMBEDDING_ATTEMPTS_TOTAL.labels(outcome="too_long").inc()
                sizes_tried.append(len(candidate))
                logger.warning(
                    f"[EmbeddingClient] Input too long with {len(candidate)} chars "
                    f"(ceiling {ceiling}): {e}"
                )
                continue
            except Exception:
                EMBEDDING_ATTEMPTS_TOTAL.labels(outcome="error").inc()
                raise

            EMBEDDING_ATTEMPTS_TOTAL.labels(outcome="ok").inc()
            if sizes_tried:
                logger.info(f"[EmbeddingClient] Embedded after downsizing to {len(candidate)} chars")
            return vector

        raise EmbeddingInputTooLongError(
            "Embedding failed: could not find a text size that works "
            f"(tried sizes: {', '.join(str(s) for s in sizes_tried)})",
            sizes_tried=sizes_tried,
        )
