"""
History Index - Vector Storage for Chat History Chunks

Two interchangeable implementations:
- QdrantHistoryIndex: Qdrant collection with cosine distance
- InMemoryHistoryIndex: numpy cosine similarity, for tests and single-node use

Payload fields: text, source, channel_id, message_ts, chunk_index.
Searches can be scoped to one channel or run across all channels.
"""

import logging
from typing import Optional, Protocol

import numpy as np
from qdrant_client import QdrantClient as QdrantSDKClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

logger = logging.getLogger(__name__)


DEFAULT_QDRANT_HOST = "localhost"
DEFAULT_QDRANT_PORT = 6333
DEFAULT_COLLECTION_NAME = "chat_history"
DEFAULT_VECTOR_DIM = 768  # nomic-embed-text


class HistoryIndexError(Exception):
    """Raised when the history index is unavailable or misused."""
    pass


class HistoryIndex(Protocol):
    def upsert(self, point_id: str, vector: list[float], payload: dict) -> None:
        ...

    def search(
        self,
        query_vector: list[float],
        top_k: int = 5,
        score_threshold: float = 0.0,
        channel_id: Optional[str] = None,
    ) -> list[dict]:
        ...

    def count(self) -> int:
        ...

    def close(self) -> None:
        ...


def _channel_filter(channel_id: Optional[str]) -> Optional[Filter]:
    if not channel_id:
        return None
    return Filter(must=[FieldCondition(key="channel_id", match=MatchValue(value=channel_id))])


class QdrantHistoryIndex:
    """
    Wrapper around the Qdrant SDK for chat history chunks.

    Handles:
    - Connection management
    - Collection creation with cosine distance
    - Upsert and channel-scoped search
    """

    def __init__(
        self,
        host: str = DEFAULT_QDRANT_HOST,
        port: int = DEFAULT_QDRANT_PORT,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        vector_dim: int = DEFAULT_VECTOR_DIM,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.collection_name = collection_name
        self.vector_dim = vector_dim
        self.timeout = timeout
        self._client: Optional[QdrantSDKClient] = None

    def connect(self) -> "QdrantHistoryIndex":
        """
        Establish connection to Qdrant and make sure the collection exists.

        Raises:
            HistoryIndexError: If connection fails.
        """
        try:
            self._client = QdrantSDKClient(
                host=self.host,
                port=self.port,
                timeout=self.timeout,
            )
            self._client.get_collections()
            logger.info(f"Connected to Qdrant at {self.host}:{self.port}")
        except Exception as e:
            self._client = None
            raise HistoryIndexError(f"Failed to connect to Qdrant: {e}") from e
        self.ensure_collection()
        return self

    def _require_client(self) -> QdrantSDKClient:
        if not self._client:
            raise HistoryIndexError("Not connected to Qdrant")
        return self._client

    def ensure_collection(self) -> None:
        """Create collection if it doesn't exist."""
        client = self._require_client()

        collection_names = [c.name for c in client.get_collections().collections]
        if self.collection_name not in collection_names:
            client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.vector_dim,
                    distance=Distance.COSINE,
                ),
            )
            logger.info(f"Created collection '{self.collection_name}' with {self.vector_dim} dimensions")
        else:
            logger.debug(f"Collection '{self.collection_name}' already exists")

    def upsert(self, point_id: str, vector: list[float], payload: dict) -> None:
        """
        Insert or update a single chunk.

        Args:
            point_id: UUID string for the point.
            vector: Embedding vector.
            payload: Chunk metadata (text, source, channel_id, ...).
        """
        client = self._require_client()

        if len(vector) != self.vector_dim:
            raise ValueError(f"Expected {self.vector_dim} dimensions, got {len(vector)}")

        client.upsert(
            collection_name=self.collection_name,
            points=[PointStruct(id=point_id, vector=vector, payload=payload)],
        )
        logger.debug(f"Upserted point {point_id}")

    def search(
        self,
        query_vector: list[float],
        top_k: int = 5,
        score_threshold: float = 0.0,
        channel_id: Optional[str] = None,
    ) -> list[dict]:
        """
        Search for similar chunks, optionally scoped to one channel.

        Returns:
            List of {"id", "score", "payload"} dicts.
        """
        client = self._require_client()

        response = client.query_points(
            collection_name=self.collection_name,
            query=query_vector,
            limit=top_k,
            score_threshold=score_threshold,
            query_filter=_channel_filter(channel_id),
            with_payload=True,
        )

        return [
            {
                "id": hit.id,
                "score": hit.score,
                "payload": hit.payload or {},
            }
            for hit in response.points
        ]

    def count(self) -> int:
        """Return the number of points in the collection."""
        client = self._require_client()
        collection_info = client.get_collection(self.collection_name)
        return collection_info.points_count or 0

    def close(self) -> None:
        """Close the connection to Qdrant."""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("Disconnected from Qdrant")


class InMemoryHistoryIndex:
    """Process-local index using cosine similarity over numpy arrays."""

    def __init__(self):
        self._vectors: dict[str, np.ndarray] = {}
        self._payloads: dict[str, dict] = {}

    def upsert(self, point_id: str, vector: list[float], payload: dict) -> None:
        arr = np.asarray(vector, dtype=float)
        if arr.ndim != 1 or arr.size == 0:
            raise ValueError("Vector must be a non-empty 1-D sequence")
        self._vectors[point_id] = arr
        self._payloads[point_id] = dict(payload)

    def search(
        self,
        query_vector: list[float],
        top_k: int = 5,
        score_threshold: float = 0.0,
        channel_id: Optional[str] = None,
    ) -> list[dict]:
        query = np.asarray(query_vector, dtype=float)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        hits = []
        for point_id, vector in self._vectors.items():
            payload = self._payloads[point_id]
            if channel_id and payload.get("channel_id") != channel_id:
                continue
            if vector.shape != query.shape:
                continue
            norm = np.linalg.norm(vector)
            if norm == 0:
                continue
            score = float(np.dot(query, vector) / (query_norm * norm))
            if score >= score_threshold:
                hits.append({"id": point_id, "score": score, "payload": payload})

        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits[:top_k]

    def count(self) -> int:
        return len(self._vectors)

    def close(self) -> None:
        self._vectors.clear()
        self._payloads.clear()
