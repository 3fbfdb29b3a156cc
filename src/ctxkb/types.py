"""Pipeline data contracts for ctxkb.

Frozen dataclasses that flow between pipeline stages:
  Path → list[Page] → list[Chunk] → list[EmbeddedChunk] → stored
and back out of the store:
  list[StoreHit] → QueryResponse
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    "Chunk",
    "CollectionContract",
    "DocumentTags",
    "EmbeddedChunk",
    "HealthStatus",
    "IngestReport",
    "IngestState",
    "IngestionStatus",
    "MetadataValue",
    "Page",
    "QueryResponse",
    "QueryResult",
    "StoreHit",
]

MetadataValue = str | int | float | bool


class IngestionStatus(str, Enum):
    """Externally visible ingestion status of a document."""

    PENDING = "pending"
    INGESTED = "ingested"


class IngestState(str, Enum):
    """Internal states of one ingestion run."""

    RECEIVED = "received"
    EXTRACTED = "extracted"
    CHUNKED = "chunked"
    SANITIZED = "sanitized"
    EMBEDDED_AND_STORED = "embedded_and_stored"
    INGESTED = "ingested"
    FAILED = "failed"


@dataclass(frozen=True)
class DocumentTags:
    """Caller-supplied identity attached to every chunk of one document."""

    document_id: str
    user_id: str
    project_id: str
    filename: str

    def as_dict(self) -> dict[str, str]:
        return {
            "document_id": str(self.document_id),
            "user_id": str(self.user_id),
            "project_id": str(self.project_id),
            "filename": str(self.filename),
        }


@dataclass(frozen=True)
class Page:
    """One unit of extracted text (a PDF page, or a whole image transcription)."""

    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk:
    """A bounded window of document text with sanitized metadata."""

    text: str
    metadata: Mapping[str, MetadataValue]
    page_index: int = 0
    chunk_index: int = 0


@dataclass(frozen=True)
class EmbeddedChunk:
    """A chunk with its embedding vector attached."""

    chunk: Chunk
    embedding: tuple[float, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StoreHit:
    """Raw nearest-neighbour hit as returned by the store."""

    text: str
    metadata: Mapping[str, Any]
    distance: float | None = None


@dataclass(frozen=True)
class QueryResult:
    """A reshaped hit with guaranteed metadata fields and a [0, 1] score."""

    text: str
    metadata: dict[str, Any]
    relevance_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "metadata": dict(self.metadata),
            "relevance_score": self.relevance_score,
        }


@dataclass(frozen=True)
class QueryResponse:
    """Ranked results for one query, most relevant first."""

    query: str
    results: tuple[QueryResult, ...] = ()

    @property
    def result_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "result_count": self.result_count,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class CollectionContract:
    """What the ingesting and querying processes must agree on."""

    name: str
    embedding_model: str
    dimension: int
    version: str = "1"

    def as_metadata(self) -> dict[str, MetadataValue]:
        return {
            "ctxkb_contract_version": self.version,
            "ctxkb_embedding_model": self.embedding_model,
            "ctxkb_embedding_dimension": self.dimension,
        }


@dataclass(frozen=True)
class IngestReport:
    """Outcome of one ingestion run."""

    document_id: str
    state: IngestState
    page_count: int = 0
    chunk_count: int = 0


@dataclass(frozen=True)
class HealthStatus:
    """Read-only store diagnostic for operators."""

    reachable: bool
    collection_exists: bool
    contract_ok: bool = True
    chunk_count: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.reachable and self.collection_exists and self.contract_ok
