"""Tests for the RecursiveCharacterChunker."""

from __future__ import annotations

import pytest

from ctxkb.chunk import BaseChunker, RecursiveCharacterChunker
from ctxkb.exceptions import ConfigError
from ctxkb.types import Page

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def chunker() -> RecursiveCharacterChunker:
    return RecursiveCharacterChunker(chunk_size=1000, overlap=200)


def _words(n: int) -> str:
    return " ".join(f"word{i:04d}" for i in range(n))


_TAGS = {"document_id": "doc-1", "user_id": "u-1", "project_id": "p-1", "filename": "a.pdf"}


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_is_base_chunker(self, chunker: RecursiveCharacterChunker):
        assert isinstance(chunker, BaseChunker)

    def test_defaults(self):
        c = RecursiveCharacterChunker()
        assert c.chunk_size == 1000
        assert c.overlap == 200

    @pytest.mark.parametrize(
        ("size", "overlap"),
        [(200, 200), (100, 300), (0, 0), (-5, 0), (100, -1)],
    )
    def test_invalid_parameters_raise(self, size: int, overlap: int):
        with pytest.raises(ConfigError):
            RecursiveCharacterChunker(chunk_size=size, overlap=overlap)

    def test_zero_overlap_allowed(self):
        c = RecursiveCharacterChunker(chunk_size=10, overlap=0)
        assert c.split("a" * 25) == ["a" * 10, "a" * 10, "a" * 5]


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


class TestSplit:
    def test_empty_input(self, chunker: RecursiveCharacterChunker):
        assert chunker.split("") == []

    def test_whitespace_only_input(self, chunker: RecursiveCharacterChunker):
        assert chunker.split("  \n\n \t \n") == []

    def test_short_text_single_window(self, chunker: RecursiveCharacterChunker):
        assert chunker.split("Project kickoff notes.") == ["Project kickoff notes."]

    def test_hard_cuts_carry_exact_overlap(self, chunker: RecursiveCharacterChunker):
        text = "".join(chr(ord("a") + (i % 26)) for i in range(2400))
        windows = chunker.split(text)
        assert windows == [text[0:1000], text[800:1800], text[1600:2400]]

    def test_hard_cut_windows_share_overlap(self, chunker: RecursiveCharacterChunker):
        text = "".join(chr(ord("a") + (i % 23)) for i in range(5000))
        windows = chunker.split(text)
        assert len(windows) == 6
        for prev, nxt in zip(windows, windows[1:], strict=False):
            assert prev[-200:] == nxt[:200]

    def test_windows_never_exceed_chunk_size(self):
        c = RecursiveCharacterChunker(chunk_size=120, overlap=30)
        text = "\n\n".join(_words(n) for n in (5, 40, 3, 80, 12))
        for window in c.split(text):
            assert 0 < len(window) <= 120

    def test_covers_every_word(self):
        c = RecursiveCharacterChunker(chunk_size=100, overlap=20)
        text = _words(300)
        joined = " ".join(c.split(text))
        for word in text.split():
            assert word in joined

    def test_consecutive_windows_overlap_at_word_boundaries(self):
        c = RecursiveCharacterChunker(chunk_size=100, overlap=20)
        windows = c.split(_words(60))
        assert len(windows) > 1
        for prev, nxt in zip(windows, windows[1:], strict=False):
            assert nxt.split()[0] in prev.split()

    def test_prefers_paragraph_boundaries(self):
        c = RecursiveCharacterChunker(chunk_size=60, overlap=10)
        text = "First paragraph about the budget.\n\nSecond paragraph about deadlines."
        windows = c.split(text)
        assert windows == [
            "First paragraph about the budget.",
            "Second paragraph about deadlines.",
        ]

    def test_oversize_paragraph_splits_on_words(self):
        c = RecursiveCharacterChunker(chunk_size=50, overlap=10)
        text = "Short intro.\n\n" + _words(30)
        windows = c.split(text)
        assert windows[0] == "Short intro."
        assert all(" " in w or len(w) <= 50 for w in windows[1:])
        assert all(not w.startswith(" ") and not w.endswith(" ") for w in windows)

    def test_deterministic(self, chunker: RecursiveCharacterChunker):
        text = "\n".join(_words(50) for _ in range(20))
        assert chunker.split(text) == chunker.split(text)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class TestPages:
    def test_chunks_never_cross_pages(self, chunker: RecursiveCharacterChunker):
        pages = [Page(text="a" * 800), Page(text="b" * 800), Page(text="c" * 800)]
        windows = chunker.split_pages(pages)
        assert [(p, c) for p, c, _ in windows] == [(0, 0), (1, 0), (2, 0)]
        assert [len(set(text)) for _, _, text in windows] == [1, 1, 1]

    def test_empty_pages_contribute_nothing(self, chunker: RecursiveCharacterChunker):
        windows = chunker.split_pages([Page(text=""), Page(text="content")])
        assert windows == [(1, 0, "content")]

    def test_chunk_indices_restart_per_page(self):
        c = RecursiveCharacterChunker(chunk_size=10, overlap=2)
        windows = c.split_pages([Page(text="a" * 20), Page(text="b" * 20)])
        page_one = [idx for page, idx, _ in windows if page == 1]
        assert page_one[0] == 0
        assert page_one == list(range(len(page_one)))

    def test_chunk_pages_attaches_tags(self, chunker: RecursiveCharacterChunker):
        pages = [Page(text="hello", metadata={"page": 1, "source": "/tmp/a.pdf"})]
        chunks = chunker.chunk_pages(pages, _TAGS)
        assert len(chunks) == 1
        assert chunks[0].metadata == {"page": 1, "source": "/tmp/a.pdf", **_TAGS}

    def test_chunk_pages_sanitizes_page_metadata(self, chunker: RecursiveCharacterChunker):
        pages = [Page(text="hello", metadata={"skip": None, "list": [1, 2]})]
        chunk = chunker.chunk_pages(pages, _TAGS)[0]
        assert "skip" not in chunk.metadata
        assert chunk.metadata["list"] == "[1, 2]"

    def test_tags_win_over_page_metadata(self, chunker: RecursiveCharacterChunker):
        pages = [Page(text="hello", metadata={"document_id": "from-file"})]
        chunk = chunker.chunk_pages(pages, _TAGS)[0]
        assert chunk.metadata["document_id"] == "doc-1"
