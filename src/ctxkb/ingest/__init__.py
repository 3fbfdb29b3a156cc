"""Ingestion sources — extractors for PDFs and images."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ctxkb.exceptions import PluginError
from ctxkb.ingest.base import BaseExtractor
from ctxkb.ingest.detect import (
    SUPPORTED_MEDIA_TYPES,
    ExtractorKind,
    classify_media_type,
    guess_media_type,
)
from ctxkb.ingest.pdf import DocumentExtractor
from ctxkb.ingest.vision import VisionExtractor
from ctxkb.registry import default_registry

if TYPE_CHECKING:
    from ctxkb.config import KbConfig
    from ctxkb.registry import ProviderRegistry

__all__ = [
    "SUPPORTED_MEDIA_TYPES",
    "BaseExtractor",
    "DocumentExtractor",
    "ExtractorKind",
    "VisionExtractor",
    "classify_media_type",
    "get_extractor",
    "guess_media_type",
]

# One registered extractor per ExtractorKind
default_registry.register(
    "extractor", ExtractorKind.DOCUMENT.value, lambda cfg: DocumentExtractor()
)
default_registry.register("extractor", ExtractorKind.VISION.value, VisionExtractor)


def get_extractor(
    mime_type: str, config: KbConfig, registry: ProviderRegistry | None = None
) -> BaseExtractor:
    """Return an extractor instance for the given media type.

    The media type is classified once into an :class:`ExtractorKind`, and
    the extractor registered under that kind is built.

    Args:
        mime_type: Declared media type of the stored file.
        config: Configuration (vision endpoint settings).
        registry: Registry to resolve from; ``default_registry`` if omitted.

    Returns:
        A new extractor instance.

    Raises:
        ValidationError: If the media type is not supported.
        PluginError: If the registered extractor does not accept the media type.
    """
    kind = classify_media_type(mime_type)
    extractor: BaseExtractor = (registry or default_registry).create(
        "extractor", kind.value, config
    )
    if not extractor.can_extract(mime_type.strip()):
        raise PluginError(
            f"Extractor {extractor.name!r} registered for {kind.value} "
            f"does not handle {mime_type.strip()}"
        )
    return extractor
