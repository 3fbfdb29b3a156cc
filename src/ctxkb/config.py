"""Configuration system for ctxkb.

Manages configuration via .kb/config.toml with typed dataclasses
and sensible defaults for all values. The ingesting and querying
processes must load the same [embedding] and [store] sections.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import tomli_w

from ctxkb.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

_T = TypeVar("_T")

__all__ = [
    "ChunkConfig",
    "EmbeddingConfig",
    "KbConfig",
    "LoggingConfig",
    "QueryConfig",
    "StoreConfig",
    "VisionConfig",
    "default_config",
    "load_config",
    "resolve_api_key",
    "save_config",
]

logger = logging.getLogger(__name__)


@dataclass
class ChunkConfig:
    """[chunk] section. Sizes are in characters."""

    chunk_size: int = 1000
    overlap: int = 200


@dataclass
class EmbeddingConfig:
    """[embedding] section."""

    provider: str = "openai"
    model: str = "text-embedding-004"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    api_key_env: str = "GOOGLE_API_KEY"
    dimension: int = 768
    batch_size: int = 100
    timeout: float = 60.0


@dataclass
class VisionConfig:
    """[vision] section."""

    model: str = "mistralai/mistral-small-3.2-24b-instruct:free"
    base_url: str = "https://openrouter.ai/api/v1"
    api_key_env: str = "OPENROUTER_API_KEY"
    timeout: float = 120.0
    max_file_mb: int = 20


@dataclass
class StoreConfig:
    """[store] section."""

    collection_name: str = "contextual_kb_documents"
    persist_path: str = ""
    host: str = ""
    port: int = 8000
    timeout: float = 30.0
    contract_version: str = "1"


@dataclass
class QueryConfig:
    """[query] section."""

    default_limit: int = 5


@dataclass
class LoggingConfig:
    """[logging] section."""

    level: str = "INFO"


@dataclass
class KbConfig:
    """Root configuration combining all sections."""

    chunk: ChunkConfig = field(default_factory=ChunkConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS: dict[str, type] = {
    "chunk": ChunkConfig,
    "embedding": EmbeddingConfig,
    "vision": VisionConfig,
    "store": StoreConfig,
    "query": QueryConfig,
    "logging": LoggingConfig,
}


def default_config() -> KbConfig:
    """Return a config with all default values."""
    return KbConfig()


def resolve_api_key(env_name: str) -> str | None:
    """Read an API key from the named environment variable.

    Returns None (and warns) when the variable is named but unset.
    """
    if not env_name:
        return None
    key = os.environ.get(env_name)
    if not key:
        logger.warning("API key env var %s is not set; requests may fail", env_name)
        return None
    return key


def save_config(config: KbConfig, path: Path) -> None:
    """Save configuration to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {name: dict(vars(getattr(config, name))) for name in _SECTIONS}
    try:
        with path.open("wb") as f:
            tomli_w.dump(data, f)
        logger.info("Saved config to %s", path)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise ConfigError(f"Failed to save config to {path}: {e}") from e


def _load_section(cls: type[_T], data: object, name: str) -> _T:
    """Load a dataclass section from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        raise ConfigError(f"Config section [{name}] must be a table")
    known_fields = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered = {k: v for k, v in data.items() if k in known_fields}
    try:
        return cls(**filtered)
    except TypeError as e:
        raise ConfigError(f"Invalid values in config section [{name}]: {e}") from e


def load_config(path: Path) -> KbConfig:
    """Load configuration from a TOML file.

    Missing sections or keys get default values.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    config = KbConfig()
    for name, cls in _SECTIONS.items():
        if name in data:
            setattr(config, name, _load_section(cls, data[name], name))

    logger.info("Loaded config from %s", path)
    return config
