"""Recursive character chunker with overlap.

Splits text into windows of at most ``chunk_size`` characters:
- Prefers paragraph boundaries, then line breaks, then word boundaries
- Falls back to hard character cuts when no separator helps
- Seeds each window with up to ``overlap`` characters of trailing context
  from the previous window

The splitter is deterministic: same text and parameters, same windows.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from ctxkb.chunk.base import BaseChunker
from ctxkb.exceptions import ConfigError

__all__ = ["RecursiveCharacterChunker"]

logger = logging.getLogger(__name__)


class RecursiveCharacterChunker(BaseChunker):
    """Character-budget splitter that recurses through a separator ladder.

    Usage::

        chunker = RecursiveCharacterChunker(chunk_size=1000, overlap=200)
        windows = chunker.split(page_text)
    """

    # Separators in priority order; "" means hard character cuts
    SEPARATORS: ClassVar[list[str]] = ["\n\n", "\n", " ", ""]

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ConfigError(f"chunk_size must be >= 1, got {chunk_size}")
        if overlap < 0:
            raise ConfigError(f"overlap must be >= 0, got {overlap}")
        if chunk_size <= overlap:
            raise ConfigError(
                f"chunk_size ({chunk_size}) must be larger than overlap ({overlap})"
            )
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[str]:
        """Split text into overlapping windows.

        Args:
            text: Text to split.

        Returns:
            Ordered windows, each at most ``chunk_size`` characters.
        """
        if not text or not text.strip():
            return []
        return self._split(text, self.SEPARATORS)

    def _split(self, text: str, separators: list[str]) -> list[str]:
        """Split on the first separator present in text, recursing on oversize parts."""
        separator = separators[-1]
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        parts = text.split(separator) if separator else list(text)

        windows: list[str] = []
        pending: list[str] = []
        for part in parts:
            if len(part) < self.chunk_size:
                pending.append(part)
                continue
            if pending:
                windows.extend(self._merge(pending, separator))
                pending = []
            if remaining:
                windows.extend(self._split(part, remaining))
            else:
                windows.append(part)

        if pending:
            windows.extend(self._merge(pending, separator))
        return windows

    def _merge(self, parts: list[str], separator: str) -> list[str]:
        """Greedily pack small parts into windows, carrying overlap forward."""
        sep_len = len(separator)
        windows: list[str] = []
        current: list[str] = []
        total = 0

        for part in parts:
            part_len = len(part)
            joined_len = total + part_len + (sep_len if current else 0)
            if joined_len > self.chunk_size and current:
                window = _join(current, separator)
                if window:
                    windows.append(window)
                # Drop from the front until only the overlap tail remains
                # and the next part fits.
                while total > self.overlap or (
                    total > 0 and total + part_len + (sep_len if current else 0) > self.chunk_size
                ):
                    total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                    del current[0]
            current.append(part)
            total += part_len + (sep_len if len(current) > 1 else 0)

        window = _join(current, separator)
        if window:
            windows.append(window)
        return windows


def _join(parts: list[str], separator: str) -> str:
    return separator.join(parts).strip()
