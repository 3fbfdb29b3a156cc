"""Tests for ctxkb.manifest module — ingestion status ledger."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from ctxkb.exceptions import ManifestError
from ctxkb.manifest import DocumentEntry, Manifest, load_manifest, save_manifest
from ctxkb.types import IngestionStatus

if TYPE_CHECKING:
    from pathlib import Path


class TestManifest:
    def test_empty(self):
        manifest = Manifest()
        assert manifest.documents == []
        assert manifest.get_document("x") is None

    def test_mark_pending_then_ingested(self):
        manifest = Manifest()
        pending = manifest.mark_pending("doc1", "/data/a.pdf", "application/pdf")
        assert pending.status is IngestionStatus.PENDING
        assert pending.updated

        ingested = manifest.mark_ingested("doc1", chunks=7)
        assert ingested.status is IngestionStatus.INGESTED
        assert ingested.chunks == 7
        assert ingested.path == "/data/a.pdf"
        assert manifest.get_document("doc1") == ingested

    def test_reingest_resets_to_pending(self):
        manifest = Manifest()
        manifest.mark_pending("doc1", "a.pdf", "application/pdf")
        manifest.mark_ingested("doc1", chunks=3)
        manifest.mark_pending("doc1", "a.pdf", "application/pdf")
        entry = manifest.get_document("doc1")
        assert entry is not None
        assert entry.status is IngestionStatus.PENDING
        assert entry.chunks == 0

    def test_mark_ingested_unknown_raises(self):
        with pytest.raises(ManifestError, match="not in the manifest"):
            Manifest().mark_ingested("ghost", chunks=1)

    def test_remove(self):
        manifest = Manifest()
        manifest.mark_pending("doc1", "a.pdf", "application/pdf")
        assert manifest.remove_document("doc1") is True
        assert manifest.remove_document("doc1") is False

    def test_count_by_status(self):
        manifest = Manifest()
        manifest.mark_pending("a", "a.pdf", "application/pdf")
        manifest.mark_pending("b", "b.png", "image/png")
        manifest.mark_ingested("b", chunks=1)
        assert manifest.count_by_status() == {
            IngestionStatus.PENDING: 1,
            IngestionStatus.INGESTED: 1,
        }


class TestManifestPersistence:
    def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        manifest = Manifest()
        manifest.mark_pending("doc1", "a.pdf", "application/pdf")
        manifest.mark_ingested("doc1", chunks=4)
        manifest.mark_pending("doc2", "b.png", "image/png")
        save_manifest(manifest, path)

        loaded = load_manifest(path)
        assert loaded.get_document("doc1") == manifest.get_document("doc1")
        assert loaded.get_document("doc2").status is IngestionStatus.PENDING

    def test_json_is_readable(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        manifest = Manifest()
        manifest.add_document(
            DocumentEntry(document_id="d", path="p", mime_type="image/png", updated="t")
        )
        save_manifest(manifest, path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["documents"] == [
            {
                "document_id": "d",
                "path": "p",
                "mime_type": "image/png",
                "status": "pending",
                "chunks": 0,
                "updated": "t",
            }
        ]

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ManifestError, match="not found"):
            load_manifest(tmp_path / "nope.json")

    def test_corrupt_json_raises(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ManifestError, match="Failed to load"):
            load_manifest(path)

    def test_missing_fields_raise(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps({"documents": [{"document_id": "d"}]}), encoding="utf-8")
        with pytest.raises(ManifestError, match="missing required fields"):
            load_manifest(path)

    def test_unknown_status_raises(self, tmp_path: Path):
        path = tmp_path / "manifest.json"
        doc = {"document_id": "d", "path": "p", "mime_type": "m", "status": "weird"}
        path.write_text(json.dumps({"documents": [doc]}), encoding="utf-8")
        with pytest.raises(ManifestError, match="Invalid document entry"):
            load_manifest(path)
