"""Shared fixtures for ctxkb tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ctxkb.config import KbConfig, save_config
from ctxkb.embed.base import BaseEmbedder
from ctxkb.manifest import Manifest, save_manifest
from ctxkb.workspace import CONFIG_FILE, INDEX_DIR, KB_DIR, MANIFEST_FILE

if TYPE_CHECKING:
    from pathlib import Path

# Each keyword owns one axis of the fake embedding space
KEYWORDS = ("invoice", "deadline", "design", "budget")


class KeywordEmbedder(BaseEmbedder):
    """Deterministic offline embedder: one dimension per keyword count."""

    def __init__(self, model: str = "keyword-test", dimension: int = len(KEYWORDS)) -> None:
        self._model = model
        self._dimension = dimension
        self.calls: list[list[str]] = []

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            lowered = text.lower()
            vec = [float(lowered.count(k)) + 0.01 for k in KEYWORDS]
            vectors.append((vec + [0.01] * self._dimension)[: self._dimension])
        return vectors


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def kb_config(tmp_path: Path) -> KbConfig:
    """Config wired for the keyword embedder and a store under tmp_path."""
    config = KbConfig()
    config.embedding.model = "keyword-test"
    config.embedding.dimension = len(KEYWORDS)
    config.store.collection_name = "test_documents"
    config.store.persist_path = str(tmp_path / "chroma")
    config.store.timeout = 10.0
    return config


@pytest.fixture
def initialized_kb(tmp_path: Path) -> Path:
    """A temporary workspace with .kb/ already initialized."""
    kb = tmp_path / KB_DIR
    (kb / INDEX_DIR).mkdir(parents=True)
    save_config(KbConfig(), kb / CONFIG_FILE)
    save_manifest(Manifest(), kb / MANIFEST_FILE)
    return tmp_path


@pytest.fixture
def make_pdf(tmp_path: Path):
    """Factory writing a PDF with one page per text given."""
    import pymupdf

    def _make(pages: list[str], name: str = "doc.pdf", title: str = "") -> Path:
        path = tmp_path / name
        doc = pymupdf.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text, fontsize=10)
        if title:
            doc.set_metadata({"title": title, "author": "Test Author"})
        doc.save(str(path))
        doc.close()
        return path

    return _make
