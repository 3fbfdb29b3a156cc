"""Tests for ctxkb.app — service wiring."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ctxkb.app import build_embedder, build_services
from ctxkb.exceptions import PluginError, StoreError
from ctxkb.pipeline import IngestionPipeline
from ctxkb.query import QueryService
from ctxkb.registry import ProviderRegistry
from ctxkb.types import DocumentTags

if TYPE_CHECKING:
    from conftest import KeywordEmbedder

    from ctxkb.config import KbConfig


@pytest.fixture
def registry(embedder: KeywordEmbedder) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("embedding", "openai", lambda cfg: embedder)
    return registry


class TestBuildEmbedder:
    def test_uses_configured_provider(self, kb_config: KbConfig, registry: ProviderRegistry):
        assert build_embedder(kb_config, registry).model_name == "keyword-test"

    def test_unknown_provider(self, kb_config: KbConfig, registry: ProviderRegistry):
        kb_config.embedding.provider = "nope"
        with pytest.raises(PluginError):
            build_embedder(kb_config, registry)


class TestBuildServices:
    def test_shares_one_store_and_embedder(
        self, kb_config: KbConfig, registry: ProviderRegistry, embedder: KeywordEmbedder
    ):
        services = build_services(kb_config, registry=registry)
        assert services.embedder is embedder
        assert isinstance(services.pipeline, IngestionPipeline)
        assert isinstance(services.query, QueryService)
        assert services.pipeline.store is services.store
        assert services.query.store is services.store

    def test_query_side_requires_collection(
        self, kb_config: KbConfig, registry: ProviderRegistry
    ):
        with pytest.raises(StoreError) as exc_info:
            build_services(kb_config, create=False, registry=registry)
        assert exc_info.value.kind == "missing_collection"

    def test_ingest_then_query(self, kb_config: KbConfig, registry: ProviderRegistry, make_pdf):
        ingest_side = build_services(kb_config, registry=registry)
        path = make_pdf(["Invoice schedule for Acme", "Design mockups due"])
        tags = DocumentTags(document_id="d1", user_id="u1", project_id="Acme", filename="a.pdf")
        report = ingest_side.pipeline.ingest(path, "application/pdf", tags)
        assert report.chunk_count == 2

        query_side = build_services(kb_config, create=False, registry=registry)
        payload = query_side.query.handle_request(
            {"query": "invoice", "project_name": "Acme", "limit": 1}
        )
        assert payload["result_count"] == 1
        top = payload["results"][0]
        assert "Invoice" in top["text"]
        assert top["metadata"]["document_id"] == "d1"
        assert top["metadata"]["page"] == 1
