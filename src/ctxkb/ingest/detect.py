"""Media type detection and extractor-kind classification.

Maps a declared media type to the extractor variant that handles it, and
guesses a media type from a file suffix for callers that have none.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from ctxkb.exceptions import ValidationError

if TYPE_CHECKING:
    from pathlib import Path

__all__ = [
    "SUPPORTED_MEDIA_TYPES",
    "ExtractorKind",
    "classify_media_type",
    "guess_media_type",
]

logger = logging.getLogger(__name__)


class ExtractorKind(str, Enum):
    """Extractor variant selected for a document."""

    DOCUMENT = "document"
    VISION = "vision"


_MEDIA_TYPE_MAP: dict[str, ExtractorKind] = {
    "application/pdf": ExtractorKind.DOCUMENT,
    "image/png": ExtractorKind.VISION,
    "image/jpeg": ExtractorKind.VISION,
    "image/jpg": ExtractorKind.VISION,
}

SUPPORTED_MEDIA_TYPES: frozenset[str] = frozenset(_MEDIA_TYPE_MAP)

_EXTENSION_MAP: dict[str, str] = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def classify_media_type(mime_type: str) -> ExtractorKind:
    """Return the extractor kind for a declared media type.

    Raises:
        ValidationError: If the media type cannot be ingested.
    """
    kind = _MEDIA_TYPE_MAP.get((mime_type or "").strip().lower())
    if kind is None:
        raise ValidationError(
            f"Unsupported media type {mime_type!r}: only PDF and image files "
            "(PNG, JPEG, JPG) can be ingested"
        )
    return kind


def guess_media_type(path: Path) -> str:
    """Guess a media type from the file suffix.

    Returns:
        The media type, or ``""`` when the suffix is not recognised.
    """
    media_type = _EXTENSION_MAP.get(path.suffix.lower(), "")
    if not media_type:
        logger.debug("No media type known for suffix %r", path.suffix)
    return media_type
