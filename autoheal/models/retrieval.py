"""
Retrieval Models - History RAG Entities

HistoryMessage feeds the history index; RetrievalContext is one ranked
chunk returned for a query. Embedding vectors are plain `list[float]`
and are never persisted by the pipeline itself.
"""

from typing import Optional

from pydantic import BaseModel, Field

EmbeddingVector = list[float]


class HistoryMessage(BaseModel):
    """A historical chat message to be indexed."""

    text: str = Field(..., description="Message text")
    channel_id: str = Field(..., description="Channel the message was posted in")
    message_ts: str = Field(..., description="Chat platform message timestamp/id")
    user: Optional[str] = Field(None, description="Author display name")
    permalink: Optional[str] = Field(None, description="Link to the message")

    @property
    def source_ref(self) -> str:
        return self.permalink or f"{self.channel_id}:{self.message_ts}"


class RetrievalContext(BaseModel):
    """One historical chunk ranked for a query."""

    text: str = Field(..., description="Chunk text")
    source: str = Field(..., description="Reference to the originating message")
    score: float = Field(..., description="Similarity score (higher is closer)")
    channel_id: Optional[str] = Field(None, description="Channel of the originating message")

    class Config:
        frozen = True
