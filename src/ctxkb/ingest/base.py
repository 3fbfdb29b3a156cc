"""Abstract base class for source extractors."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ctxkb.exceptions import ExtractionError

if TYPE_CHECKING:
    from pathlib import Path

    from ctxkb.types import Page

__all__ = ["BaseExtractor", "check_readable_file", "normalize_whitespace"]

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """Base class for all source extractors.

    Subclasses turn a stored file into ordered pages of text. The pipeline
    picks one extractor per document by its declared media type.
    """

    #: Short name recorded in logs and page metadata
    name: str = ""

    @abstractmethod
    def extract(self, path: Path) -> list[Page]:
        """Extract ordered text pages from a stored file.

        Args:
            path: Path to the stored source file.

        Returns:
            Pages in document order. May be empty if the file has no text.

        Raises:
            ExtractionError: If the file cannot be read or transcribed.
        """

    @abstractmethod
    def supported_media_types(self) -> frozenset[str]:
        """Return the media types this extractor handles."""

    def can_extract(self, mime_type: str) -> bool:
        """Check whether this extractor handles the given media type."""
        return mime_type.lower() in self.supported_media_types()


def check_readable_file(path: Path, max_size: int, label: str) -> int:
    """Validate that path is an existing regular file within the size limit.

    Returns:
        File size in bytes.

    Raises:
        ExtractionError: If the file is missing, not a file, or too large.
    """
    if not path.exists():
        raise ExtractionError(f"{label} file not found: {path.name}")
    if not path.is_file():
        raise ExtractionError(f"Not a file: {path.name}")

    file_size = path.stat().st_size
    if file_size > max_size:
        msg = (
            f"{label} file {path.name} ({file_size} bytes) "
            f"exceeds maximum size ({max_size} bytes)"
        )
        raise ExtractionError(msg)
    return file_size


# Matches 3+ consecutive newlines (to collapse to a single blank line)
_MULTI_BLANK_RE = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace in extracted text.

    - Strip trailing whitespace from each line
    - Collapse 3+ consecutive newlines to 2
    - Strip leading/trailing whitespace from the whole text
    """
    lines = [line.rstrip() for line in text.replace("\r\n", "\n").split("\n")]
    text = "\n".join(lines)
    text = _MULTI_BLANK_RE.sub("\n\n", text)
    return text.strip()
