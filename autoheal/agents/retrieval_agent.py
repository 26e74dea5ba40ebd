"""
Retrieval Agent - RAG Fallback over Chat History

Responsibilities:
1. Embed the question with the resilient EmbeddingClient
2. Rank historical chunks from the history index (channel-scoped or global)
3. Assemble a grounded prompt under a context-size cap
4. Request one answer from the generation service
5. Ingest historical messages as overlapping, embedded chunks
"""

import asyncio
import logging
import uuid
from typing import Iterable, Optional

from autoheal.config.settings import RetrievalConfig
from autoheal.models.retrieval import HistoryMessage, RetrievalContext
from autoheal.ollama_client import OllamaClient
from autoheal.tools.embedding_client import EmbeddingClient
from autoheal.tools.history_index import HistoryIndex
from autoheal.utils import preview
from autoheal.utils.error_handling import RetrievalError

logger = logging.getLogger(__name__)


PROMPT_HEADER = (
    "You are an operations assistant. Answer the question using only the chat history "
    "excerpts below. If the excerpts do not contain the answer, say so plainly. "
    "Cite the excerpt numbers you relied on."
)

# Stable namespace so re-indexing the same message overwrites its chunks
_CHUNK_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "autoheal/chat-history")


def split_into_chunks(text: str, chunk_size: int, overlap: int) -> list[str]:
    """Split text into windows of `chunk_size` chars overlapping by `overlap` chars."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    text = text.strip()
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    step = chunk_size - overlap
    chunks = []
    for start in range(0, len(text), step):
        chunk = text[start:start + chunk_size].strip()
        if chunk:
            chunks.append(chunk)
        if start + chunk_size >= len(text):
            break
    return chunks


def chunk_point_id(message: HistoryMessage, chunk_index: int) -> str:
    return str(uuid.uuid5(_CHUNK_NAMESPACE, f"{message.channel_id}:{message.message_ts}:{chunk_index}"))


class RetrievalEngine:
    """
    Agent responsible for answering from chat history.

    Input: question text + optional channel scope
    Output: ranked RetrievalContext list, prompt, generated answer
    Side Effects: embedding/generation calls, history index reads and writes
    """

    AGENT_NAME = "RetrievalEngine"

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: HistoryIndex,
        generator: OllamaClient,
        settings: Optional[RetrievalConfig] = None,
    ):
        settings = settings or RetrievalConfig()
        self._embedder = embedder
        self._index = index
        self._generator = generator
        self.top_k = settings.top_k
        self.score_threshold = settings.score_threshold
        self.max_context_chars = settings.max_context_chars
        self.chunk_size = settings.chunk_size
        self.chunk_overlap = settings.chunk_overlap

    async def retrieve_contexts(
        self,
        question: str,
        channel_scope: Optional[str] = None,
    ) -> list[RetrievalContext]:
        """
        Rank historical chunks for a question.

        Args:
            question: Free-text question.
            channel_scope: Channel to search, or None for all channels.

        Returns:
            Contexts ordered by descending score (possibly empty).

        Raises:
            RetrievalError: If embedding or the index lookup fails.
        """
        if not question or not question.strip():
            return []

        vector = await self._embedder.embed(question)

        try:
            hits = await asyncio.to_thread(
                self._index.search,
                vector,
                self.top_k,
                self.score_threshold,
                channel_scope,
            )
        except Exception as e:
            raise RetrievalError(f"History index search failed: {e}") from e

        contexts = []
        for hit in hits:
            payload = hit.get("payload") or {}
            text = payload.get("text")
            if not text:
                continue
            contexts.append(
                RetrievalContext(
                    text=text,
                    source=payload.get("source") or str(hit.get("id")),
                    score=float(hit.get("score", 0.0)),
                    channel_id=payload.get("channel_id"),
                )
            )
        contexts.sort(key=lambda c: c.score, reverse=True)

        logger.info(
            f"[{self.AGENT_NAME}] {len(contexts)} contexts for \"{preview(question)}\" "
            f"(scope: {channel_scope or 'all channels'})"
        )
        return contexts

    def build_prompt(self, question: str, contexts: list[RetrievalContext]) -> str:
        """Assemble the grounded prompt, keeping context text within max_context_chars."""
        blocks = []
        used = 0
        for i, ctx in enumerate(contexts, start=1):
            block = f"[{i}] (source: {ctx.source}, score: {ctx.score:.2f})\n{ctx.text}"
            if used + len(block) > self.max_context_chars:
                if not blocks:
                    blocks.append(block[:self.max_context_chars])
                break
            blocks.append(block)
            used += len(block)

        excerpts = "\n\n".join(blocks) if blocks else "(no history found)"
        return f"{PROMPT_HEADER}\n\nChat history:\n{excerpts}\n\nQuestion: {question}\nAnswer:"

    async def generate(self, prompt: str) -> str:
        """
        Request one answer. No retry.

        Raises:
            GenerationError: On service failure.
        """
        answer = await self._generator.generate(prompt)
        logger.info(f"[{self.AGENT_NAME}] Generated answer: \"{preview(answer)}\"")
        return answer

    async def index_messages(self, messages: Iterable[HistoryMessage]) -> int:
        """
        Chunk, embed and upsert historical messages.

        Returns:
            Number of chunks written.

        Raises:
            RetrievalError: If embedding or the index write fails.
        """
        written = 0
        for message in messages:
            for i, chunk in enumerate(split_into_chunks(message.text, self.chunk_size, self.chunk_overlap)):
                vector = await self._embedder.embed(chunk)
                payload = {
                    "text": chunk,
                    "source": message.source_ref,
                    "channel_id": message.channel_id,
                    "message_ts": message.message_ts,
                    "user": message.user,
                    "chunk_index": i,
                }
                try:
                    await asyncio.to_thread(self._index.upsert, chunk_point_id(message, i), vector, payload)
                except Exception as e:
                    raise RetrievalError(f"History index upsert failed: {e}") from e
                written += 1

        logger.info(f"[{self.AGENT_NAME}] Indexed {written} chunks")
        return written
