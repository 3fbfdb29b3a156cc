"""Provider registry for ctxkb.

Two kinds of pluggable component are resolved by name:

- ``embedding``: keyed by ``embedding.provider`` (``openai``, ``chromadb``)
- ``extractor``: keyed by :class:`~ctxkb.ingest.detect.ExtractorKind` value
  (``document``, ``vision``)

Built-in providers register themselves when ``ctxkb.embed`` and
``ctxkb.ingest`` are imported; ``default_registry`` imports both on first use.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ctxkb.exceptions import PluginError

if TYPE_CHECKING:
    from ctxkb.config import KbConfig

__all__ = ["CATEGORIES", "ProviderRegistry", "default_registry"]

logger = logging.getLogger(__name__)

Factory = Callable[["KbConfig"], Any]

#: Category name → module whose import registers its built-in providers
CATEGORIES: dict[str, str] = {
    "embedding": "ctxkb.embed",
    "extractor": "ctxkb.ingest",
}


class ProviderRegistry:
    """Resolves ``(category, name)`` to a freshly built provider.

    Usage::

        registry = ProviderRegistry()
        registry.register("extractor", "vision", VisionExtractor)
        extractor = registry.create("extractor", "vision", config)
    """

    def __init__(self, *, builtins: bool = False) -> None:
        self._factories: dict[str, dict[str, Factory]] = {name: {} for name in CATEGORIES}
        self._builtins = builtins
        self._loaded: set[str] = set()

    def register(self, category: str, name: str, factory: Factory) -> None:
        """Add a factory under ``category``/``name``.

        Raises:
            PluginError: Unknown category, or the name is already taken.
        """
        providers = self._category(category)
        if name in providers:
            raise PluginError(f"{category} provider {name!r} is already registered")
        providers[name] = factory
        logger.debug("Registered %s provider %s", category, name)

    def create(self, category: str, name: str, config: KbConfig) -> Any:
        """Build the provider registered under ``category``/``name``.

        Raises:
            PluginError: If nothing is registered under that name.
        """
        providers = self._category(category)
        self._load_builtins(category)
        factory = providers.get(name)
        if factory is None:
            available = ", ".join(self.names(category)) or "none"
            raise PluginError(f"Unknown {category} provider {name!r} (available: {available})")
        logger.debug("Creating %s provider %s", category, name)
        return factory(config)

    def names(self, category: str) -> list[str]:
        """Sorted provider names registered for ``category``."""
        providers = self._category(category)
        self._load_builtins(category)
        return sorted(providers)

    def _category(self, category: str) -> dict[str, Factory]:
        try:
            return self._factories[category]
        except KeyError:
            raise PluginError(
                f"Unknown provider category {category!r}; expected one of {sorted(CATEGORIES)}"
            ) from None

    def _load_builtins(self, category: str) -> None:
        if not self._builtins or category in self._loaded:
            return
        self._loaded.add(category)
        importlib.import_module(CATEGORIES[category])


default_registry = ProviderRegistry(builtins=True)
