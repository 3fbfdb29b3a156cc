"""Ingestion status ledger for ctxkb.

Records, per document, whether ingestion has completed. A document is
``pending`` from the moment it is received until the pipeline reports
success; only then is it marked ``ingested``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ctxkb.exceptions import ManifestError
from ctxkb.types import IngestionStatus

if TYPE_CHECKING:
    from pathlib import Path

__all__ = [
    "DocumentEntry",
    "Manifest",
    "load_manifest",
    "save_manifest",
]

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class DocumentEntry:
    """Immutable record of one document's ingestion status."""

    document_id: str
    path: str
    mime_type: str
    status: IngestionStatus = IngestionStatus.PENDING
    chunks: int = 0
    updated: str = ""


@dataclass
class Manifest:
    """Tracks every document the knowledge base has been asked to ingest.

    Uses a dict internally for O(1) lookups by document ID.
    Serializes to/from a list in JSON for readability.
    """

    schema_version: str = "1"
    _documents: dict[str, DocumentEntry] = field(default_factory=dict)

    @property
    def documents(self) -> list[DocumentEntry]:
        """Return documents as a list (for iteration and serialization)."""
        return list(self._documents.values())

    def add_document(self, entry: DocumentEntry) -> None:
        """Add or replace a document entry."""
        self._documents[entry.document_id] = entry

    def remove_document(self, document_id: str) -> bool:
        """Remove a document by ID. Returns True if found and removed."""
        if document_id in self._documents:
            del self._documents[document_id]
            return True
        return False

    def get_document(self, document_id: str) -> DocumentEntry | None:
        """Get a document entry by ID."""
        return self._documents.get(document_id)

    def mark_pending(self, document_id: str, path: str, mime_type: str) -> DocumentEntry:
        """Record a received document. Resets any earlier ``ingested`` status."""
        entry = DocumentEntry(
            document_id=document_id,
            path=path,
            mime_type=mime_type,
            status=IngestionStatus.PENDING,
            chunks=0,
            updated=_now(),
        )
        self.add_document(entry)
        return entry

    def mark_ingested(self, document_id: str, chunks: int) -> DocumentEntry:
        """Record a successful ingestion run.

        Raises:
            ManifestError: If the document was never marked pending.
        """
        existing = self.get_document(document_id)
        if existing is None:
            raise ManifestError(f"Document {document_id} is not in the manifest")
        entry = replace(
            existing,
            status=IngestionStatus.INGESTED,
            chunks=chunks,
            updated=_now(),
        )
        self.add_document(entry)
        return entry

    def count_by_status(self) -> dict[IngestionStatus, int]:
        counts = dict.fromkeys(IngestionStatus, 0)
        for entry in self._documents.values():
            counts[entry.status] += 1
        return counts


def _entry_to_dict(entry: DocumentEntry) -> dict[str, object]:
    """Serialize a DocumentEntry to a dict."""
    return {
        "document_id": entry.document_id,
        "path": entry.path,
        "mime_type": entry.mime_type,
        "status": entry.status.value,
        "chunks": entry.chunks,
        "updated": entry.updated,
    }


def _entry_from_dict(data: dict[str, object]) -> DocumentEntry:
    """Deserialize a DocumentEntry from a dict."""
    required = ("document_id", "path", "mime_type")
    missing = [k for k in required if k not in data]
    if missing:
        raise ManifestError(f"Document entry missing required fields: {missing}")
    try:
        status = IngestionStatus(str(data.get("status", IngestionStatus.PENDING.value)))
        chunks = int(str(data.get("chunks", 0)))
    except ValueError as e:
        raise ManifestError(f"Invalid document entry {data.get('document_id')}: {e}") from e
    return DocumentEntry(
        document_id=str(data["document_id"]),
        path=str(data["path"]),
        mime_type=str(data["mime_type"]),
        status=status,
        chunks=chunks,
        updated=str(data.get("updated", "")),
    )


def save_manifest(manifest: Manifest, path: Path) -> None:
    """Save manifest to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "schema_version": manifest.schema_version,
        "documents": [_entry_to_dict(d) for d in manifest.documents],
    }
    try:
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        logger.info("Saved manifest to %s", path)
    except OSError as e:
        logger.error("Failed to save manifest to %s: %s", path, e)
        raise ManifestError(f"Failed to save manifest to {path}: {e}") from e


def load_manifest(path: Path) -> Manifest:
    """Load manifest from a JSON file."""
    if not path.exists():
        raise ManifestError(f"Manifest file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to load manifest from %s: %s", path, e)
        raise ManifestError(f"Failed to load manifest from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must contain a JSON object")

    manifest = Manifest(schema_version=str(data.get("schema_version", "1")))
    for doc_data in data.get("documents", []):
        manifest.add_document(_entry_from_dict(doc_data))

    logger.info("Loaded manifest from %s (%d documents)", path, len(manifest.documents))
    return manifest
