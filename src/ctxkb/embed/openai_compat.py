"""OpenAI-compatible embedding provider.

Works with any server implementing the OpenAI /v1/embeddings API:
OpenAI, Google's OpenAI-compatible Gemini endpoint, LiteLLM proxy, vLLM, etc.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ctxkb.config import resolve_api_key
from ctxkb.embed.base import BaseEmbedder
from ctxkb.exceptions import EmbeddingError

if TYPE_CHECKING:
    from ctxkb.config import KbConfig

__all__ = ["OpenAICompatEmbedder"]

logger = logging.getLogger(__name__)


class OpenAICompatEmbedder(BaseEmbedder):
    """Embedding provider using any OpenAI-compatible /embeddings endpoint.

    A document's whole chunk batch goes out in one request unless it is
    larger than ``batch_size``.

    Config fields used::

        [embedding]
        provider = "openai"
        model = "text-embedding-004"
        base_url = "https://generativelanguage.googleapis.com/v1beta/openai"
        api_key_env = "GOOGLE_API_KEY"   # env var name; empty = no auth
        dimension = 768
        batch_size = 100
        timeout = 60
    """

    def __init__(self, config: KbConfig) -> None:
        self._model = config.embedding.model
        self._base_url = config.embedding.base_url.rstrip("/")
        self._batch_size = config.embedding.batch_size
        self._dimension = config.embedding.dimension
        self._timeout = config.embedding.timeout

        if not self._base_url:
            raise EmbeddingError("embedding.base_url must be set for the openai provider")
        if self._batch_size < 1:
            raise EmbeddingError(f"batch_size must be >= 1, got {self._batch_size}")
        if self._dimension < 1:
            raise EmbeddingError(f"dimension must be >= 1, got {self._dimension}")

        self._api_key = resolve_api_key(config.embedding.api_key_env)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for batch_start in range(0, len(texts), self._batch_size):
            batch = texts[batch_start : batch_start + self._batch_size]
            vectors.extend(self._call_embeddings(batch))

        logger.info("Embedded %d texts via OpenAI-compatible API (%s)", len(vectors), self._model)
        return vectors

    def _call_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Call the /embeddings endpoint.

        Args:
            texts: List of text strings to embed.

        Returns:
            List of embedding vectors, ordered by input index.

        Raises:
            EmbeddingError: On connection, timeout or API errors.
        """
        url = f"{self._base_url}/embeddings"
        payload = json.dumps({"model": self._model, "input": texts}).encode("utf-8")

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        req = Request(url, data=payload, headers=headers)

        try:
            with urlopen(req, timeout=self._timeout) as resp:
                body = resp.read()
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise EmbeddingError(f"Embedding API returned invalid JSON from {url}") from e
        except HTTPError as e:
            raise EmbeddingError(f"Embedding API error (HTTP {e.code}): {e.reason}") from e
        except TimeoutError as e:
            raise EmbeddingError(f"Embedding API timed out after {self._timeout}s") from e
        except (ConnectionError, URLError) as e:
            raise EmbeddingError(
                f"Embedding API not reachable at {self._base_url}. Error: {e}"
            ) from e

        raw_items = data.get("data", []) if isinstance(data, dict) else []
        # Items carry an "index"; the API does not promise order
        if raw_items and all(isinstance(item, dict) and "index" in item for item in raw_items):
            raw_items = sorted(raw_items, key=lambda x: x["index"])

        try:
            return [list(item["embedding"]) for item in raw_items]
        except (KeyError, TypeError) as e:
            raise EmbeddingError(
                f"Unexpected response format from {url}: missing 'embedding' field"
            ) from e
