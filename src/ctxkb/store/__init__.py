"""Vector store gateway, backed by ChromaDB."""

from ctxkb.store.base import (
    MAX_TOP_K,
    MIN_TOP_K,
    BaseStore,
    chunk_id_for,
    clamp_top_k,
    make_chunk_id,
)
from ctxkb.store.chroma import ChromaStore, check_health

__all__ = [
    "MAX_TOP_K",
    "MIN_TOP_K",
    "BaseStore",
    "ChromaStore",
    "check_health",
    "chunk_id_for",
    "clamp_top_k",
    "make_chunk_id",
]
