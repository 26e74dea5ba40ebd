# Utils Package
"""Shared helpers: error taxonomy, timeouts, text previews."""

from autoheal.utils.error_handling import (
    AutohealError,
    AlertValidationError,
    ConfigurationError,
    ActionTokenError,
    RetrievalError,
    EmbeddingServiceError,
    EmbeddingInputTooLongError,
    GenerationError,
    RemoteToolError,
    ToolTransportError,
    DiscoveryError,
    ExecutionError,
    is_input_too_long_error,
    call_with_timeout,
)

__all__ = [
    "AutohealError",
    "AlertValidationError",
    "ConfigurationError",
    "ActionTokenError",
    "RetrievalError",
    "EmbeddingServiceError",
    "EmbeddingInputTooLongError",
    "GenerationError",
    "RemoteToolError",
    "ToolTransportError",
    "DiscoveryError",
    "ExecutionError",
    "is_input_too_long_error",
    "call_with_timeout",
    "preview",
]


def preview(text: str | None, limit: int = 100) -> str:
    """Shorten text for log lines."""
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."
