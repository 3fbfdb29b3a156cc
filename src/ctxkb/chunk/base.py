"""Abstract base class for chunking strategies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ctxkb.metadata import merge_metadata
from ctxkb.types import Chunk

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from ctxkb.types import Page

__all__ = ["BaseChunker", "PageWindow"]

logger = logging.getLogger(__name__)

# (page_index, chunk_index_within_page, window_text)
PageWindow = tuple[int, int, str]


class BaseChunker(ABC):
    """Base class for all chunking strategies.

    Subclasses split plain text into overlapping windows. Chunking never
    crosses a page boundary: each page is split on its own.
    """

    @abstractmethod
    def split(self, text: str) -> list[str]:
        """Split text into windows.

        Args:
            text: Normalized document text.

        Returns:
            Ordered list of non-empty windows. Empty input yields ``[]``.
        """

    def split_pages(self, pages: Sequence[Page]) -> list[PageWindow]:
        """Split every page and number the resulting windows.

        Args:
            pages: Extracted pages, in document order.

        Returns:
            ``(page_index, chunk_index, text)`` triples in document order.
        """
        windows: list[PageWindow] = []
        for page_index, page in enumerate(pages):
            for chunk_index, text in enumerate(self.split(page.text)):
                windows.append((page_index, chunk_index, text))
        logger.debug("Split %d pages into %d windows", len(pages), len(windows))
        return windows

    def build_chunks(
        self,
        pages: Sequence[Page],
        windows: Sequence[PageWindow],
        tags: Mapping[str, object],
    ) -> list[Chunk]:
        """Attach sanitized page metadata plus caller tags to each window."""
        return [
            Chunk(
                text=text,
                metadata=merge_metadata(pages[page_index].metadata, tags),
                page_index=page_index,
                chunk_index=chunk_index,
            )
            for page_index, chunk_index, text in windows
        ]

    def chunk_pages(self, pages: Sequence[Page], tags: Mapping[str, object]) -> list[Chunk]:
        """Split pages and build tagged chunks in one step."""
        return self.build_chunks(pages, self.split_pages(pages), tags)
