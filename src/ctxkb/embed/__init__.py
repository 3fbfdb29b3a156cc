"""Embedding providers — abstract interface and concrete providers."""

from ctxkb.embed.base import BaseEmbedder
from ctxkb.embed.chromadb_embed import ChromaDBEmbedder
from ctxkb.embed.openai_compat import OpenAICompatEmbedder
from ctxkb.registry import default_registry

__all__ = ["BaseEmbedder", "ChromaDBEmbedder", "OpenAICompatEmbedder"]

# Register built-in embedding providers
default_registry.register("embedding", "openai", lambda cfg: OpenAICompatEmbedder(cfg))
default_registry.register("embedding", "chromadb", lambda cfg: ChromaDBEmbedder(cfg))
