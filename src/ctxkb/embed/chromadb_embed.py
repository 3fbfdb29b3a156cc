"""ChromaDB built-in embedding provider using ONNX runtime.

Local embedding with no API key (ChromaDB is already a project dependency).
Uses the all-MiniLM-L6-v2 model via ONNX. The model is auto-downloaded on
first use (~80MB).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chromadb.utils.embedding_functions import DefaultEmbeddingFunction

from ctxkb.embed.base import BaseEmbedder
from ctxkb.exceptions import EmbeddingError

if TYPE_CHECKING:
    from ctxkb.config import KbConfig

__all__ = ["ChromaDBEmbedder"]

logger = logging.getLogger(__name__)


class ChromaDBEmbedder(BaseEmbedder):
    """Embedding provider using ChromaDB's built-in ONNX embedding function.

    Uses ``all-MiniLM-L6-v2`` (384 dimensions). Runs entirely locally.

    Config fields used::

        [embedding]
        provider = "chromadb"
        model = "all-MiniLM-L6-v2"
        dimension = 384
    """

    _FIXED_MODEL = "all-MiniLM-L6-v2"
    _FIXED_DIMENSION = 384

    def __init__(self, config: KbConfig) -> None:
        if config.embedding.model and config.embedding.model != self._FIXED_MODEL:
            logger.warning(
                "ChromaDB provider only supports %s, ignoring model=%r",
                self._FIXED_MODEL,
                config.embedding.model,
            )
        if config.embedding.dimension != self._FIXED_DIMENSION:
            raise EmbeddingError(
                f"ChromaDB provider produces {self._FIXED_DIMENSION}-dim vectors "
                f"but embedding.dimension is {config.embedding.dimension}"
            )

        try:
            self._ef = DefaultEmbeddingFunction()
        except Exception as e:
            raise EmbeddingError(f"Failed to initialize ChromaDB embedding function: {e}") from e

        logger.info("ChromaDBEmbedder initialized (ONNX %s)", self._FIXED_MODEL)

    @property
    def model_name(self) -> str:
        return self._FIXED_MODEL

    @property
    def dimension(self) -> int:
        return self._FIXED_DIMENSION

    def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = self._ef(texts)
        except Exception as e:
            raise EmbeddingError(f"ChromaDB embedding failed: {e}") from e

        logger.info("Embedded %d texts via ChromaDB (ONNX)", len(vectors))
        return [[float(v) for v in vec] for vec in vectors]
