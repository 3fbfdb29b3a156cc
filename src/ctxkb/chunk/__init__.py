"""Chunking engine — recursive character splitting with overlap."""

from ctxkb.chunk.base import BaseChunker, PageWindow
from ctxkb.chunk.recursive import RecursiveCharacterChunker

__all__ = ["BaseChunker", "PageWindow", "RecursiveCharacterChunker"]
