"""ChromaDB vector store gateway.

Connects to a ChromaDB server (``HttpClient``) when ``store.host`` is set,
or to file-based persistence (``PersistentClient``) otherwise. The ingesting
and querying processes open the same collection independently; both check
the collection contract (embedding model + dimension) before use.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import chromadb
from chromadb.config import Settings

from ctxkb.exceptions import ConfigError, StoreError
from ctxkb.store.base import BaseStore, chunk_id_for, clamp_top_k
from ctxkb.types import CollectionContract, HealthStatus, StoreHit

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Mapping, Sequence

    from ctxkb.config import KbConfig
    from ctxkb.embed.base import BaseEmbedder
    from ctxkb.types import EmbeddedChunk

__all__ = ["ChromaStore", "check_health"]

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_CONTRACT_KEYS = (
    "ctxkb_contract_version",
    "ctxkb_embedding_model",
    "ctxkb_embedding_dimension",
)


class ChromaStore(BaseStore):
    """Vector store backed by one ChromaDB collection.

    With ``create=True`` (ingesting side) a missing collection is created and
    stamped with the contract. With ``create=False`` (querying side) a
    missing collection is reported as ``StoreError(kind="missing_collection")``.

    Usage::

        store = ChromaStore(config, embedder, create=False)
        hits = store.query("payment terms", top_k=5, project_filter="42")
    """

    def __init__(
        self,
        config: KbConfig,
        embedder: BaseEmbedder,
        *,
        create: bool = True,
        persist_path: Path | None = None,
    ) -> None:
        self._embedder = embedder
        self._host = config.store.host
        self._port = config.store.port
        self._timeout = config.store.timeout
        self._persist_path = persist_path or (
            Path(config.store.persist_path) if config.store.persist_path else None
        )
        self._contract = CollectionContract(
            name=config.store.collection_name,
            embedding_model=embedder.model_name,
            dimension=embedder.dimension,
            version=config.store.contract_version,
        )

        if not self._host and self._persist_path is None:
            raise ConfigError("Either store.host or store.persist_path must be set")

        self._client = self._connect()
        self._collection = self._open_collection(create=create)

        logger.info(
            "ChromaDB store ready at %s (collection=%s, model=%s, dim=%d)",
            self.location,
            self._contract.name,
            self._contract.embedding_model,
            self._contract.dimension,
        )

    @property
    def location(self) -> str:
        if self._host:
            return f"http://{self._host}:{self._port}"
        return str(self._persist_path)

    @property
    def contract(self) -> CollectionContract:
        return self._contract

    # ── Connection ──────────────────────────────────────────────────

    def _connect(self) -> Any:
        settings = Settings(anonymized_telemetry=False)

        def connect() -> Any:
            if self._host:
                client = chromadb.HttpClient(host=self._host, port=self._port, settings=settings)
            else:
                client = chromadb.PersistentClient(path=str(self._persist_path), settings=settings)
            client.heartbeat()
            return client

        try:
            return self._bounded("connect", connect)
        except StoreError as e:
            if e.kind == "timeout":
                raise StoreError(
                    f"ChromaDB at {self.location} did not respond within {self._timeout}s",
                    kind="unreachable",
                ) from e
            raise
        except Exception as e:
            raise StoreError(
                f"ChromaDB not reachable at {self.location}. Is the server running? Error: {e}",
                kind="unreachable",
            ) from e

    def _open_collection(self, *, create: bool) -> Any:
        name = self._contract.name
        try:
            collection = self._bounded(
                "get collection",
                lambda: self._client.get_collection(name=name, embedding_function=None),
            )
        except StoreError:
            raise
        except Exception as e:
            if not _is_missing_collection(e):
                raise StoreError(f"Failed to open collection {name!r}: {e}") from e
            if not create:
                raise StoreError(
                    f"Collection {name!r} does not exist at {self.location}. "
                    "No documents have been ingested yet; ingest a document first.",
                    kind="missing_collection",
                ) from e
            collection = self._create_collection()
            logger.info("Created collection %s", name)
            return collection

        self._check_contract(collection.metadata)
        return collection

    def _create_collection(self) -> Any:
        name = self._contract.name
        metadata = {**self._contract.as_metadata(), "hnsw:space": "cosine"}
        try:
            return self._bounded(
                "create collection",
                lambda: self._client.create_collection(
                    name=name, metadata=metadata, embedding_function=None
                ),
            )
        except StoreError:
            raise
        except Exception as e:
            # Another process may have created it between our get and create
            logger.debug("create_collection(%s) failed, re-reading: %s", name, e)
            try:
                collection = self._bounded(
                    "get collection",
                    lambda: self._client.get_collection(name=name, embedding_function=None),
                )
            except StoreError:
                raise
            except Exception as retry_err:
                raise StoreError(
                    f"Failed to create collection {name!r}: {e}"
                ) from retry_err
            self._check_contract(collection.metadata)
            return collection

    def _check_contract(self, metadata: Mapping[str, Any] | None) -> None:
        """Fail fast when the collection was built with a different embedding setup."""
        stored = dict(metadata or {})
        if not any(key in stored for key in _CONTRACT_KEYS):
            logger.warning(
                "Collection %s carries no contract metadata; embedding model cannot be verified",
                self._contract.name,
            )
            return

        expected = self._contract.as_metadata()
        mismatched = {
            key: (stored.get(key), expected[key])
            for key in _CONTRACT_KEYS
            if str(stored.get(key)) != str(expected[key])
        }
        if mismatched:
            details = ", ".join(
                f"{key}: stored={got!r} configured={want!r}"
                for key, (got, want) in sorted(mismatched.items())
            )
            raise StoreError(
                f"Collection {self._contract.name!r} contract mismatch ({details}). "
                "Use the embedding model the collection was built with, or re-ingest "
                "into a new collection.",
                kind="contract_mismatch",
            )

    # ── BaseStore ───────────────────────────────────────────────────

    def add(self, chunks: Sequence[EmbeddedChunk]) -> int:
        """Upsert embedded chunks in one call.

        IDs are derived from ``(document_id, page_index, chunk_index)``, so
        re-ingesting a document replaces its chunks instead of duplicating them.

        Raises:
            StoreError: If a record is malformed or the collection rejects the batch.
        """
        if not chunks:
            return 0

        ids: list[str] = []
        embeddings: list[list[float]] = []
        documents: list[str] = []
        metadatas: list[dict[str, Any]] = []
        for ec in chunks:
            document_id = ec.chunk.metadata.get("document_id")
            if not document_id:
                raise StoreError("Chunk metadata is missing document_id")
            if len(ec.embedding) != self._contract.dimension:
                raise StoreError(
                    f"Embedding dimension {len(ec.embedding)} does not match collection "
                    f"dimension {self._contract.dimension}",
                    kind="contract_mismatch",
                )
            ids.append(chunk_id_for(ec))
            embeddings.append(list(ec.embedding))
            documents.append(ec.chunk.text)
            metadatas.append(dict(ec.chunk.metadata))

        try:
            self._bounded(
                "upsert",
                lambda: self._collection.upsert(
                    ids=ids,
                    embeddings=embeddings,
                    documents=documents,
                    metadatas=metadatas,
                ),
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to add {len(chunks)} chunks: {e}") from e

        logger.info("Stored %d chunks in %s", len(chunks), self._contract.name)
        return len(chunks)

    def query(
        self,
        query_text: str,
        top_k: int = 5,
        project_filter: str | None = None,
    ) -> list[StoreHit]:
        """Search for chunks similar to ``query_text``.

        Args:
            query_text: Free text, embedded with the store's embedder.
            top_k: Requested result count, clamped into ``[1, 20]``.
            project_filter: Optional ``project_id`` equality filter.

        Returns:
            Hits in ascending distance order.

        Raises:
            StoreError: If search fails.
            EmbeddingError: If the query cannot be embedded.
        """
        n_results = clamp_top_k(top_k)
        where = {"project_id": project_filter} if project_filter else None

        total = self.count()
        if total == 0:
            return []

        query_embedding = self._embedder.embed_query(query_text)

        # Older ChromaDB versions raise if n_results exceeds the collection size
        actual_k = min(n_results, total)

        def run(k: int) -> Any:
            return self._collection.query(
                query_embeddings=[query_embedding],
                n_results=k,
                where=where,
                include=["documents", "metadatas", "distances"],
            )

        try:
            results = self._bounded("query", lambda: run(actual_k))
        except StoreError:
            raise
        except Exception as e:
            if where is None or "NotEnough" not in type(e).__name__:
                raise StoreError(f"Search failed: {e}") from e
            # Some ChromaDB versions raise when k exceeds the filtered match count
            logger.debug("Filtered search (k=%d) failed, retrying: %s", actual_k, e)
            try:
                matching = self._bounded(
                    "get", lambda: self._collection.get(where=where, include=[])
                )
                match_count = len(matching["ids"])
                if match_count == 0:
                    return []
                results = self._bounded("query", lambda: run(min(actual_k, match_count)))
            except StoreError:
                raise
            except Exception as retry_err:
                raise StoreError(f"Search failed: {retry_err}") from retry_err

        return _hits_from_results(results)

    def delete(self, document_id: str, keep_ids: Collection[str] | None = None) -> int:
        """Delete a document's chunks, sparing any whose ID is in ``keep_ids``.

        Re-ingestion upserts the new chunks first and then calls this with
        their IDs, so a failed write never removes the previous version.
        """
        keep = set(keep_ids or ())
        try:
            existing = self._bounded(
                "get",
                lambda: self._collection.get(where={"document_id": document_id}, include=[]),
            )
            stale = [chunk_id for chunk_id in existing["ids"] if chunk_id not in keep]
            if not stale:
                return 0
            self._bounded("delete", lambda: self._collection.delete(ids=stale))
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete chunks for {document_id}: {e}") from e

        logger.info("Deleted %d chunks for document_id=%s", len(stale), document_id)
        return len(stale)

    def count(self) -> int:
        """Return the total number of chunks in the collection."""
        try:
            return int(self._bounded("count", self._collection.count))
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to count chunks: {e}") from e

    def health(self) -> HealthStatus:
        """Report reachability, collection presence and chunk count."""
        try:
            self._bounded("heartbeat", self._client.heartbeat)
        except Exception as e:
            return HealthStatus(
                reachable=False,
                collection_exists=False,
                message=f"ChromaDB not reachable at {self.location}: {e}",
            )
        try:
            chunk_count = self.count()
        except StoreError as e:
            return HealthStatus(reachable=True, collection_exists=False, message=str(e))
        return HealthStatus(
            reachable=True,
            collection_exists=True,
            chunk_count=chunk_count,
            message="ChromaDB connection successful",
        )

    # ── Helpers ─────────────────────────────────────────────────────

    def _bounded(self, operation: str, fn: Callable[[], _T]) -> _T:
        """Run a store call with the configured timeout.

        The call runs on a daemon thread, so a stalled request that never
        returns cannot keep the process alive after the timeout.

        Raises:
            StoreError: With ``kind="timeout"`` when the call overruns.
        """
        outcome: dict[str, Any] = {}

        def run() -> None:
            try:
                outcome["value"] = fn()
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, name=f"ctxkb-store-{operation}", daemon=True)
        worker.start()
        worker.join(self._timeout)
        if worker.is_alive():
            raise StoreError(
                f"ChromaDB {operation} timed out after {self._timeout}s; "
                "a write may still be applied, re-run to reconcile",
                kind="timeout",
            )
        if "error" in outcome:
            raise outcome["error"]
        value: _T = outcome["value"]
        return value


def check_health(config: KbConfig, embedder: BaseEmbedder, **kwargs: Any) -> HealthStatus:
    """Open the configured collection read-only and report its health.

    Never raises for store problems; they are folded into the status.
    """
    try:
        store = ChromaStore(config, embedder, create=False, **kwargs)
    except StoreError as e:
        if e.kind == "missing_collection":
            return HealthStatus(reachable=True, collection_exists=False, message=str(e))
        if e.kind == "contract_mismatch":
            return HealthStatus(
                reachable=True, collection_exists=True, contract_ok=False, message=str(e)
            )
        return HealthStatus(reachable=False, collection_exists=False, message=str(e))
    return store.health()


def _is_missing_collection(error: Exception) -> bool:
    """Recognise ChromaDB's collection-not-found error across versions."""
    if type(error).__name__ in {"NotFoundError", "InvalidCollectionException"}:
        return True
    return "does not exist" in str(error).lower()


def _hits_from_results(results: Mapping[str, Any]) -> list[StoreHit]:
    """Unpack ChromaDB's batched query result (we query with one embedding)."""
    raw_docs = results.get("documents")
    if not raw_docs or not raw_docs[0]:
        return []

    documents = raw_docs[0]
    raw_metas = results.get("metadatas")
    raw_dists = results.get("distances")
    metadatas = raw_metas[0] if raw_metas else [None] * len(documents)
    distances = raw_dists[0] if raw_dists else [None] * len(documents)

    hits: list[StoreHit] = []
    for doc, meta, dist in zip(documents, metadatas, distances, strict=True):
        hits.append(
            StoreHit(
                text=doc or "",
                metadata=dict(meta or {}),
                distance=float(dist) if dist is not None else None,
            )
        )
    return hits
