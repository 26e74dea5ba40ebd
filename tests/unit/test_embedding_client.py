"""
Unit Tests for EmbeddingClient

Tests:
- Truncation bounds and newline preference
- Size ceilings
- Bounded downsizing retry
- Non-size errors propagate without retry
"""

import pytest

from autoheal.tools.embedding_client import (
    MAX_EMBEDDING_ATTEMPTS,
    EmbeddingClient,
    embedding_ceilings,
    truncate_for_embedding,
)
from autoheal.utils.error_handling import EmbeddingInputTooLongError, EmbeddingServiceError
from tests.conftest import FakeEmbeddingBackend


# ============================================================================
# Truncation
# ============================================================================

def test_short_text_unchanged():
    assert truncate_for_embedding("hello", 10) == "hello"


def test_hard_cut_without_qualifying_newline():
    text = "a" * 50 + "\n" + "b" * 100

    result = truncate_for_embedding(text, 100)

    assert result == text[:100]
    assert len(result) == 100


def test_cuts_at_newline_in_last_ten_percent():
    text = "a" * 95 + "\n" + "b" * 100

    result = truncate_for_embedding(text, 100)

    assert result == "a" * 95
    assert text.startswith(result + "\n")


def test_newline_exactly_at_ratio_boundary_is_not_used():
    text = "a" * 90 + "\n" + "b" * 100

    assert truncate_for_embedding(text, 100) == text[:100]


@pytest.mark.parametrize("max_chars", [1, 7, 64, 100, 999])
def test_truncated_length_never_exceeds_max(max_chars):
    text = ("line of text\n" * 200)

    assert len(truncate_for_embedding(text, max_chars)) <= max_chars


def test_non_positive_max_rejected():
    with pytest.raises(ValueError):
        truncate_for_embedding("abc", 0)


# ============================================================================
# Ceilings and retry
# ============================================================================

def test_default_ceilings():
    assert embedding_ceilings(10000, [8000, 5000, 3000]) == [10000, 8000, 5000, 3000]


def test_ceilings_drop_sizes_not_below_max_and_cap_attempts():
    assert embedding_ceilings(6000, [8000, 6000, 5000, 3000, 1000, 500]) == [6000, 5000, 3000, 1000]


@pytest.mark.asyncio
async def test_always_too_long_fails_after_exactly_four_attempts():
    backend = FakeEmbeddingBackend(max_chars=0)
    client = EmbeddingClient(backend, max_length=10000, fallback_sizes=[8000, 5000, 3000])

    with pytest.raises(EmbeddingInputTooLongError) as exc_info:
        await client.embed("x" * 20000)

    assert len(backend.inputs) == MAX_EMBEDDING_ATTEMPTS
    assert [len(t) for t in backend.inputs] == [10000, 8000, 5000, 3000]
    assert exc_info.value.sizes_tried == [10000, 8000, 5000, 3000]


@pytest.mark.asyncio
async def test_stops_at_first_size_that_fits():
    backend = FakeEmbeddingBackend(vector=[1.0, 0.0], max_chars=6000)
    client = EmbeddingClient(backend, max_length=10000, fallback_sizes=[8000, 5000, 3000])

    vector = await client.embed("y" * 12000)

    assert vector == [1.0, 0.0]
    assert [len(t) for t in backend.inputs] == [10000, 8000, 5000]


@pytest.mark.asyncio
async def test_short_text_is_not_resent_unchanged():
    backend = FakeEmbeddingBackend(max_chars=0)
    client = EmbeddingClient(backend, max_length=10000, fallback_sizes=[8000, 5000, 3000])

    with pytest.raises(EmbeddingInputTooLongError):
        await client.embed("z" * 6000)

    assert [len(t) for t in backend.inputs] == [6000, 5000, 3000]


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    backend = FakeEmbeddingBackend(error=EmbeddingServiceError("connection refused"))
    client = EmbeddingClient(backend, max_length=10000, fallback_sizes=[8000, 5000, 3000])

    with pytest.raises(EmbeddingServiceError):
        await client.embed("w" * 20000)

    assert len(backend.inputs) == 1


@pytest.mark.asyncio
async def test_empty_text_rejected():
    client = EmbeddingClient(FakeEmbeddingBackend(), max_length=100, fallback_sizes=[])

    with pytest.raises(ValueError):
        await client.embed("  ")
