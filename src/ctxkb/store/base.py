"""Abstract base class for vector stores."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from ctxkb.types import EmbeddedChunk, HealthStatus, StoreHit

__all__ = [
    "MAX_TOP_K",
    "MIN_TOP_K",
    "BaseStore",
    "chunk_id_for",
    "clamp_top_k",
    "make_chunk_id",
]

logger = logging.getLogger(__name__)

MIN_TOP_K = 1
MAX_TOP_K = 20


def clamp_top_k(top_k: int) -> int:
    """Clamp a caller-supplied result count into ``[MIN_TOP_K, MAX_TOP_K]``."""
    clamped = max(MIN_TOP_K, min(int(top_k), MAX_TOP_K))
    if clamped != top_k:
        logger.debug("Clamped top_k from %s to %d", top_k, clamped)
    return clamped


def make_chunk_id(document_id: str, page_index: int, chunk_index: int) -> str:
    """Deterministic chunk ID, stable across re-ingestion of the same document."""
    return f"{document_id}:p{page_index:04d}:c{chunk_index:04d}"


def chunk_id_for(chunk: EmbeddedChunk) -> str:
    """ID under which an embedded chunk is stored."""
    c = chunk.chunk
    return make_chunk_id(str(c.metadata.get("document_id", "")), c.page_index, c.chunk_index)


class BaseStore(ABC):
    """Base class for all vector stores.

    Subclasses own one named collection, persist embedded chunks in it and
    answer nearest-neighbour queries against it.
    """

    @abstractmethod
    def add(self, chunks: Sequence[EmbeddedChunk]) -> int:
        """Persist a batch of embedded chunks.

        Chunks whose ID (see :func:`chunk_id_for`) is already stored are replaced.
        The whole batch is acknowledged or the call raises.

        Returns:
            Number of chunks written.

        Raises:
            StoreError: If the collection is unreachable or rejects the batch.
        """

    @abstractmethod
    def query(
        self,
        query_text: str,
        top_k: int = 5,
        project_filter: str | None = None,
    ) -> list[StoreHit]:
        """Return the ``top_k`` nearest chunks, ascending by distance.

        ``top_k`` is clamped into ``[1, 20]`` before the request is issued.

        Raises:
            StoreError: If the search fails.
            EmbeddingError: If the query text cannot be embedded.
        """

    @abstractmethod
    def delete(self, document_id: str, keep_ids: Collection[str] | None = None) -> int:
        """Delete a document's chunks, except those whose IDs are in ``keep_ids``.

        Returns:
            Number of chunks deleted.

        Raises:
            StoreError: If deletion fails.
        """

    @abstractmethod
    def count(self) -> int:
        """Return the total number of chunks in the collection."""

    @abstractmethod
    def health(self) -> HealthStatus:
        """Return a read-only diagnostic of the store and collection."""
