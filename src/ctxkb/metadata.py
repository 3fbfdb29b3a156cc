"""Metadata sanitizer — the write boundary for chunk metadata.

The vector store only accepts flat maps of str/int/float/bool. Every chunk's
metadata passes through :func:`merge_metadata` before it is stored.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ctxkb.types import MetadataValue

__all__ = ["merge_metadata", "sanitize_metadata"]

logger = logging.getLogger(__name__)

_PRIMITIVES = (str, int, float, bool)


def _stringify(value: object) -> str:
    """Render a non-primitive value as text."""
    if isinstance(value, Mapping | Sequence) and not isinstance(value, str | bytes):
        try:
            if isinstance(value, Mapping):
                return json.dumps(dict(value), default=str, sort_keys=True)
            return json.dumps(list(value), default=str)
        except (TypeError, ValueError):
            pass
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def sanitize_metadata(raw: Mapping[str, Any]) -> dict[str, MetadataValue]:
    """Coerce a key/value bag into the primitive-only form the store accepts.

    - str, int, float and bool values pass through unchanged
    - None values are dropped (the key disappears)
    - anything else is converted to its string form (JSON for containers)

    Idempotent: ``sanitize_metadata(sanitize_metadata(x)) == sanitize_metadata(x)``.
    """
    sanitized: dict[str, MetadataValue] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, _PRIMITIVES):
            sanitized[str(key)] = value
        else:
            sanitized[str(key)] = _stringify(value)
    return sanitized


def merge_metadata(
    source: Mapping[str, Any],
    tags: Mapping[str, Any],
) -> dict[str, MetadataValue]:
    """Merge extractor metadata with caller tags and sanitize the result.

    Caller tags win on key collision so document identity can never be
    overridden by what a file happens to contain.
    """
    collisions = set(source) & set(tags)
    if collisions:
        logger.debug("Caller tags override source metadata keys: %s", sorted(collisions))
    return sanitize_metadata({**source, **tags})
