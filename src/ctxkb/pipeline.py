"""Ingestion orchestrator for ctxkb.

Composes extractor → chunker → sanitizer → embedder → store via constructor
injection, and walks one document through the ingestion states::

    received → extracted → chunked → sanitized → embedded_and_stored → ingested
                                                                    ↘ failed
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ctxkb.chunk import RecursiveCharacterChunker
from ctxkb.exceptions import CtxkbError, InternalError, ValidationError
from ctxkb.ingest import classify_media_type, get_extractor
from ctxkb.store.base import chunk_id_for
from ctxkb.types import IngestReport, IngestState

if TYPE_CHECKING:
    from collections.abc import Callable

    from ctxkb.chunk.base import BaseChunker
    from ctxkb.config import KbConfig
    from ctxkb.embed.base import BaseEmbedder
    from ctxkb.ingest.base import BaseExtractor
    from ctxkb.store.base import BaseStore
    from ctxkb.types import DocumentTags

__all__ = ["IngestionPipeline"]

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Orchestrates ingestion of one document at a time.

    All collaborators are injected via the constructor, so the pipeline can
    be driven with test doubles. The caller persists the document's
    ``ingested`` status only when :meth:`ingest` returns; any raised error
    leaves the document ``pending``.

    Usage::

        pipeline = IngestionPipeline(embedder=embedder, store=store, config=config)
        report = pipeline.ingest(Path("uploads/brief.pdf"), "application/pdf", tags)
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        store: BaseStore,
        config: KbConfig,
        chunker: BaseChunker | None = None,
        extractor_factory: Callable[[str, KbConfig], BaseExtractor] = get_extractor,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.config = config
        self.chunker = chunker or RecursiveCharacterChunker(
            chunk_size=config.chunk.chunk_size,
            overlap=config.chunk.overlap,
        )
        self.extractor_factory = extractor_factory

    def ingest(self, storage_path: Path, mime_type: str, tags: DocumentTags) -> IngestReport:
        """Run the full pipeline for one stored file.

        Args:
            storage_path: Path to the already-stored source file.
            mime_type: Declared media type of the file.
            tags: Caller identity attached to every chunk.

        Returns:
            Report in state ``ingested``.

        Raises:
            ValidationError: Unsupported media type or incomplete tags.
            ExtractionError: The file could not be turned into text.
            EmbeddingError: The embedding provider failed.
            StoreError: The vector store failed.
            InternalError: Anything unexpected, after it has been logged.
        """
        document_id = tags.document_id
        state = IngestState.RECEIVED
        self._transition(document_id, state, "path=%s mime_type=%s", storage_path, mime_type)

        try:
            classify_media_type(mime_type)
            self._validate_tags(tags)

            extractor = self.extractor_factory(mime_type, self.config)
            pages = extractor.extract(Path(storage_path))
            state = IngestState.EXTRACTED
            self._transition(document_id, state, "%d pages via %s", len(pages), extractor.name)

            windows = self.chunker.split_pages(pages)
            state = IngestState.CHUNKED
            self._transition(document_id, state, "%d windows", len(windows))

            chunks = self.chunker.build_chunks(pages, windows, tags.as_dict())
            state = IngestState.SANITIZED
            self._transition(document_id, state, "%d chunks", len(chunks))

            if not chunks:
                logger.warning(
                    "No text extracted from %s (document_id=%s); nothing stored",
                    storage_path,
                    document_id,
                )
                self.store.delete(document_id)
                return IngestReport(
                    document_id=document_id,
                    state=IngestState.INGESTED,
                    page_count=len(pages),
                    chunk_count=0,
                )

            embedded = self.embedder.embed_chunks(chunks)
            stored = self.store.add(embedded)
            # Upsert first; only then drop chunks a previous version had beyond this one
            keep_ids = {chunk_id_for(ec) for ec in embedded}
            removed = self.store.delete(document_id, keep_ids=keep_ids)
            if removed:
                logger.info("Dropped %d stale chunks for %s", removed, document_id)
            state = IngestState.EMBEDDED_AND_STORED
            self._transition(document_id, state, "%d chunks stored", stored)

        except CtxkbError as e:
            logger.error(
                "Ingestion of %s failed in state %s: %s", document_id, state.value, e
            )
            self._transition(document_id, IngestState.FAILED, "after %s", state.value)
            raise
        except Exception as e:
            logger.exception(
                "Unexpected error ingesting %s (path=%s, state=%s)",
                document_id,
                storage_path,
                state.value,
            )
            self._transition(document_id, IngestState.FAILED, "after %s", state.value)
            raise InternalError(f"Unexpected error while ingesting {document_id}") from e

        self._transition(document_id, IngestState.INGESTED, "")
        return IngestReport(
            document_id=document_id,
            state=IngestState.INGESTED,
            page_count=len(pages),
            chunk_count=stored,
        )

    def remove(self, document_id: str) -> int:
        """Remove a document's chunks from the store.

        Returns:
            Number of chunks removed.

        Raises:
            StoreError: If removal fails.
        """
        if not document_id:
            raise ValidationError("document_id cannot be empty")
        count = self.store.delete(document_id)
        logger.info("Removed %d chunks for %s", count, document_id)
        return count

    @staticmethod
    def _validate_tags(tags: DocumentTags) -> None:
        missing = [name for name, value in tags.as_dict().items() if not value.strip()]
        if missing:
            raise ValidationError(f"Missing required document tags: {', '.join(missing)}")

    @staticmethod
    def _transition(document_id: str, state: IngestState, detail: str, *args: object) -> None:
        if detail:
            logger.info("[%s] %s: " + detail, document_id, state.value, *args)
        else:
            logger.info("[%s] %s", document_id, state.value)
