"""Service wiring for ctxkb.

Builds the embedder and store once per process and injects them into the
ingestion pipeline and the query service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ctxkb.pipeline import IngestionPipeline
from ctxkb.query import QueryService
from ctxkb.registry import default_registry
from ctxkb.store import ChromaStore

if TYPE_CHECKING:
    from pathlib import Path

    from ctxkb.config import KbConfig
    from ctxkb.embed.base import BaseEmbedder
    from ctxkb.registry import ProviderRegistry

__all__ = ["Services", "build_embedder", "build_services"]

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide clients and the services that share them."""

    embedder: BaseEmbedder
    store: ChromaStore
    pipeline: IngestionPipeline
    query: QueryService


def build_embedder(config: KbConfig, registry: ProviderRegistry | None = None) -> BaseEmbedder:
    """Create the configured embedding provider.

    Raises:
        PluginError: If ``embedding.provider`` is not registered.
        EmbeddingError: If the provider cannot be initialized.
    """
    registry = registry or default_registry
    embedder: BaseEmbedder = registry.create("embedding", config.embedding.provider, config)
    return embedder


def build_services(
    config: KbConfig,
    *,
    persist_path: Path | None = None,
    create: bool = True,
    registry: ProviderRegistry | None = None,
) -> Services:
    """Construct the embedder, store, pipeline and query service.

    ``create=False`` opens the collection read-only, as the querying process
    does; a missing collection then raises ``StoreError``.

    Raises:
        PluginError, EmbeddingError, StoreError, ConfigError: On setup failure.
    """
    embedder = build_embedder(config, registry)
    store = ChromaStore(config, embedder, create=create, persist_path=persist_path)
    logger.info("Services ready (store=%s, create=%s)", store.location, create)
    return Services(
        embedder=embedder,
        store=store,
        pipeline=IngestionPipeline(embedder=embedder, store=store, config=config),
        query=QueryService(store, config),
    )
