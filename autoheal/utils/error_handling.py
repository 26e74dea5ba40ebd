"""
Error Handling Utilities

Provides:
- The exception taxonomy shared by the pipeline
- Timeout helper for remote calls
- Error classification for the embedding service
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AutohealError(Exception):
    """Base class for all pipeline errors."""
    pass


class AlertValidationError(AutohealError):
    """Raised when a parsed candidate fails the alert schema."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid alert")


class ConfigurationError(AutohealError):
    """Raised when the policy table or settings are unusable."""
    pass


class ActionTokenError(AutohealError):
    """Raised when an action token cannot be decoded."""
    pass


class RetrievalError(AutohealError):
    """Raised when history retrieval or answer generation fails."""
    pass


class EmbeddingServiceError(RetrievalError):
    """Raised when the embedding service fails for a reason other than input size."""
    pass


class EmbeddingInputTooLongError(RetrievalError):
    """Raised when the embedding service rejects every input size tried."""

    def __init__(self, message: str, sizes_tried: Optional[list[int]] = None):
        self.sizes_tried = list(sizes_tried or [])
        super().__init__(message)


class GenerationError(RetrievalError):
    """Raised when the generation service call fails."""
    pass


class RemoteToolError(AutohealError):
    """Raised when a remote remediation tool call fails."""
    pass


class ToolTransportError(RemoteToolError):
    """Raised when the tool server cannot be reached or the call breaks in transit."""
    pass


class DiscoveryError(RemoteToolError):
    """Raised when instance metadata discovery fails."""
    pass


class ExecutionError(RemoteToolError):
    """Raised when the mutating remediation call fails."""
    pass


# Phrases the embedding backend uses when the prompt exceeds its context window
_INPUT_TOO_LONG_MARKERS = (
    "context length",
    "exceeds the context",
    "input length exceeds",
    "too long",
)


def is_input_too_long_error(message: str) -> bool:
    """Return True when an error message reports an over-long embedding input."""
    lowered = (message or "").lower()
    return any(marker in lowered for marker in _INPUT_TOO_LONG_MARKERS)


async def call_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    error_cls: type[Exception],
    label: str,
) -> T:
    """
    Await a remote call under a caller-side timeout.

    Args:
        awaitable: The pending call.
        timeout_seconds: Maximum time to wait.
        error_cls: Exception raised when the call times out.
        label: Name used in logs and the error message.

    Returns:
        The call result.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"[Timeout] {label} timed out after {timeout_seconds}s")
        raise error_cls(f"{label} timed out after {timeout_seconds}s")
