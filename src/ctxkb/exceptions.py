"""Custom exception hierarchy for ctxkb."""

__all__ = [
    "ConfigError",
    "CtxkbError",
    "EmbeddingError",
    "ExtractionError",
    "InternalError",
    "ManifestError",
    "PluginError",
    "StoreError",
    "ValidationError",
]


class CtxkbError(Exception):
    """Base exception for all ctxkb errors."""


class ConfigError(CtxkbError):
    """Raised when configuration loading or validation fails."""


class ManifestError(CtxkbError):
    """Raised when the ingestion status manifest cannot be read or written."""


class PluginError(CtxkbError):
    """Raised when provider registration or lookup fails."""


class ValidationError(CtxkbError):
    """Raised for malformed caller input. Never retried automatically."""


class ExtractionError(CtxkbError):
    """Raised when a source file cannot be turned into text pages.

    ``retryable`` is True for remote transcription failures (network,
    timeout, empty model output) and False for local parse failures.
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class EmbeddingError(CtxkbError):
    """Raised when embedding generation fails or returns malformed vectors."""


class StoreError(CtxkbError):
    """Raised when vector store operations fail.

    ``kind`` tells the caller what to do about it:

    - ``"unreachable"``: store down, transient, retry later
    - ``"missing_collection"``: nothing has been ingested yet
    - ``"contract_mismatch"``: collection built with a different embedding setup
    - ``"timeout"``: a store call exceeded its time budget
    - ``"operation"``: the store rejected a request
    """

    def __init__(self, message: str, *, kind: str = "operation") -> None:
        super().__init__(message)
        self.kind = kind


class InternalError(CtxkbError):
    """Raised for unexpected failures, after they have been logged."""
