"""Abstract base class for embedding providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ctxkb.exceptions import EmbeddingError
from ctxkb.types import EmbeddedChunk

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ctxkb.types import Chunk

__all__ = ["BaseEmbedder"]

logger = logging.getLogger(__name__)


class BaseEmbedder(ABC):
    """Base class for all embedding providers.

    Subclasses implement ``_embed`` for one batch of texts. The public
    ``embed`` validates every response: one vector per input, each exactly
    ``dimension`` long. Anything else raises ``EmbeddingError``.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier, recorded in the collection contract."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the fixed dimensionality of the embedding vectors."""

    @abstractmethod
    def _embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts with the provider.

        Raises:
            EmbeddingError: If the provider call fails.
        """

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts, preserving order.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per input text.

        Raises:
            EmbeddingError: If the call fails or returns malformed vectors.
        """
        batch = list(texts)
        if not batch:
            return []
        vectors = self._embed(batch)
        return self._validate(vectors, len(batch))

    def embed_chunks(self, chunks: Sequence[Chunk]) -> list[EmbeddedChunk]:
        """Generate embeddings for a batch of chunks.

        Args:
            chunks: Chunks to embed.

        Returns:
            List of EmbeddedChunk with vectors attached, in input order.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        vectors = self.embed([c.text for c in chunks])
        return [
            EmbeddedChunk(chunk=chunk, embedding=tuple(vec))
            for chunk, vec in zip(chunks, vectors, strict=True)
        ]

    def embed_query(self, text: str) -> list[float]:
        """Generate an embedding for a search query.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        return self.embed([text])[0]

    def _validate(self, vectors: Sequence[Sequence[float]], expected: int) -> list[list[float]]:
        if len(vectors) != expected:
            raise EmbeddingError(
                f"{self.model_name} returned {len(vectors)} embeddings for {expected} inputs"
            )
        result: list[list[float]] = []
        for i, vec in enumerate(vectors):
            if len(vec) != self.dimension:
                raise EmbeddingError(
                    f"{self.model_name} returned a {len(vec)}-dim vector at index {i}, "
                    f"expected {self.dimension}"
                )
            result.append([float(v) for v in vec])
        return result
