"""Workspace manager for ctxkb.

Handles knowledge-base initialization, status reporting, and workspace
root discovery. A workspace is any directory holding a ``.kb/`` folder.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ctxkb.config import KbConfig, default_config, load_config, save_config
from ctxkb.manifest import Manifest, load_manifest, save_manifest
from ctxkb.types import IngestionStatus

__all__ = [
    "CONFIG_FILE",
    "INDEX_DIR",
    "KB_DIR",
    "MANIFEST_FILE",
    "Workspace",
    "WorkspaceStatus",
]

logger = logging.getLogger(__name__)

KB_DIR = ".kb"
CONFIG_FILE = "config.toml"
MANIFEST_FILE = "manifest.json"
INDEX_DIR = "index"


@dataclass
class WorkspaceStatus:
    """Summary of the current workspace state."""

    initialized: bool
    root: Path
    document_count: int
    chunk_count: int
    by_status: dict[IngestionStatus, int] = field(default_factory=dict)
    config: KbConfig | None = None


class Workspace:
    """Manages the ``.kb/`` directory of one knowledge base."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    @property
    def kb_dir(self) -> Path:
        return self.root / KB_DIR

    @property
    def config_path(self) -> Path:
        return self.kb_dir / CONFIG_FILE

    @property
    def manifest_path(self) -> Path:
        return self.kb_dir / MANIFEST_FILE

    @property
    def index_path(self) -> Path:
        return self.kb_dir / INDEX_DIR

    @property
    def is_initialized(self) -> bool:
        return self.kb_dir.is_dir() and self.config_path.exists() and self.manifest_path.exists()

    def init(self) -> Path:
        """Initialize a knowledge base in this workspace.

        Creates ``.kb/`` with a default config, an empty manifest and an
        ``index/`` directory for local persistence. Safe to call again: an
        existing config and manifest are preserved.

        Returns the ``.kb/`` directory path.
        """
        self.index_path.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            logger.info("Existing config found at %s", self.config_path)
        else:
            save_config(default_config(), self.config_path)

        if not self.manifest_path.exists():
            save_manifest(Manifest(), self.manifest_path)

        logger.info("Initialized knowledge base at %s", self.kb_dir)
        return self.kb_dir

    def load_config(self) -> KbConfig:
        return load_config(self.config_path)

    def persist_path(self, config: KbConfig) -> Path:
        """Local store directory: ``store.persist_path`` or ``.kb/index``."""
        if config.store.persist_path:
            path = Path(config.store.persist_path)
            return path if path.is_absolute() else self.root / path
        return self.index_path

    def status(self) -> WorkspaceStatus:
        """Get current workspace status."""
        if not self.is_initialized:
            return WorkspaceStatus(
                initialized=False,
                root=self.root,
                document_count=0,
                chunk_count=0,
            )

        config = load_config(self.config_path)
        manifest = load_manifest(self.manifest_path)

        return WorkspaceStatus(
            initialized=True,
            root=self.root,
            document_count=len(manifest.documents),
            chunk_count=sum(d.chunks for d in manifest.documents),
            by_status=manifest.count_by_status(),
            config=config,
        )

    @staticmethod
    def find_root(start: Path | None = None) -> Path | None:
        """Walk up from start directory to find a ``.kb/`` directory.

        Returns the workspace root (parent of ``.kb/``) or None if not found.
        """
        current = (start or Path.cwd()).resolve()
        while True:
            if (current / KB_DIR).is_dir():
                return current
            parent = current.parent
            if parent == current:
                return None
            current = parent
