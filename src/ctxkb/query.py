"""Query service for ctxkb.

Validates query parameters, runs the similarity search and reshapes store
hits into ranked results with guaranteed metadata fields.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ctxkb.exceptions import CtxkbError, ValidationError
from ctxkb.store.base import MAX_TOP_K, MIN_TOP_K
from ctxkb.types import QueryResponse, QueryResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ctxkb.config import KbConfig
    from ctxkb.store.base import BaseStore

__all__ = [
    "INTERNAL_ERROR_MESSAGE",
    "QueryService",
    "normalize_metadata",
    "relevance_score",
    "validate_query_params",
]

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal error while querying the knowledge base"


def validate_query_params(query: str, project_name: str | None, limit: int) -> None:
    """Reject malformed queries before any store access.

    Raises:
        ValidationError: With a caller-facing message.
    """
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query cannot be empty")
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError("Limit must be between 1 and 20")
    if limit < MIN_TOP_K or limit > MAX_TOP_K:
        raise ValidationError("Limit must be between 1 and 20")
    if project_name is not None and not str(project_name).strip():
        raise ValidationError("Project name cannot be empty if provided")


def relevance_score(distance: float | None) -> float:
    """Map a store distance to a score in ``[0, 1]``; higher is more relevant."""
    if distance is None:
        return 0.0
    return max(0.0, 1.0 - float(distance))


def normalize_metadata(raw: Mapping[str, Any] | None, index: int) -> dict[str, Any]:
    """Fill the identity fields every result must carry.

    Stored fields pass through unchanged; missing identity fields get
    placeholder values.
    """
    metadata = dict(raw or {})
    metadata.setdefault("document_id", f"unknown_{index}")
    metadata.setdefault("filename", "Unknown")
    metadata.setdefault("user_id", "unknown")
    metadata.setdefault("project_id", "unknown")
    return metadata


class QueryService:
    """Read-only semantic search over the knowledge base.

    Usage::

        service = QueryService(store, config)
        response = service.query("payment milestones", project_name="Acme", limit=5)
        payload = service.handle_request({"query": "payment milestones"})
    """

    def __init__(self, store: BaseStore, config: KbConfig) -> None:
        self.store = store
        self.config = config

    def query(
        self,
        text: str,
        project_name: str | None = None,
        limit: int | None = None,
    ) -> QueryResponse:
        """Run a similarity search.

        Args:
            text: Free-text query.
            project_name: Optional project filter, matched against ``project_id``.
            limit: Number of results, 1 to 20. Defaults to ``query.default_limit``.

        Returns:
            Results ordered most relevant first.

        Raises:
            ValidationError: If the parameters are malformed.
            StoreError: If the search fails.
            EmbeddingError: If the query cannot be embedded.
        """
        if limit is None:
            limit = self.config.query.default_limit
        validate_query_params(text, project_name, limit)

        project_filter = str(project_name).strip() if project_name is not None else None
        hits = self.store.query(text.strip(), top_k=limit, project_filter=project_filter)

        results = tuple(
            QueryResult(
                text=hit.text,
                metadata=normalize_metadata(hit.metadata, index),
                relevance_score=relevance_score(hit.distance),
            )
            for index, hit in enumerate(hits)
        )
        logger.info(
            "Query returned %d results (project=%s, limit=%d)",
            len(results),
            project_filter or "*",
            limit,
        )
        return QueryResponse(query=text, results=results)

    def handle_request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Answer an agent-facing query payload.

        Accepts ``{"query", "project_name"?, "limit"?}`` and returns either the
        response dict or ``{"error": True, "message": ...}``. Never raises.
        """
        try:
            text = payload.get("query", "")
            project_name = payload.get("project_name")
            limit = payload.get("limit", self.config.query.default_limit)
            response = self.query(text, project_name=project_name, limit=limit)
        except CtxkbError as e:
            logger.warning("Query request rejected: %s", e)
            return {"error": True, "message": str(e)}
        except Exception:
            logger.exception("Unexpected error handling query request")
            return {"error": True, "message": INTERNAL_ERROR_MESSAGE}
        return response.to_dict()
