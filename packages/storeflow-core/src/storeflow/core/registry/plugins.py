from __future__ import annotations

from typing import Any, Dict, Type

from storeflow.core.connectors.base import PluginExecutor, PluginInit
from storeflow.core.runtime.settings import Settings


class PluginRegistry:
    """
    Registry + factory for plugin executors.

    Supports decorator registration:
        @registry.register("s3")
        class S3PluginExecutor: ...

    And factory instantiation bound to the runtime settings:
        executor = registry.create("s3", settings=settings)
    """

    def __init__(self) -> None:
        self._items: Dict[str, Type] = {}

    def register(self, name: str):
        def deco(cls):
            self._items[name] = cls
            return cls
        return deco

    def get(self, name: str):
        if name not in self._items:
            raise KeyError(f"Unknown plugin: {name}. Loaded: {sorted(self._items.keys())}")
        return self._items[name]

    def list(self) -> list[str]:
        return sorted(self._items.keys())

    def create(self, name: str, *, settings: Settings | None = None, options: dict[str, Any] | None = None) -> PluginExecutor:
        Cls = self.get(name)
        return Cls(PluginInit(name=name, settings=settings or Settings(), options=options or {}))


# Singleton registry used by core + plugins
REGISTRY = PluginRegistry()


# Module-level helpers
def register_plugin(name: str):
    return REGISTRY.register(name)


def get_plugin(name: str):
    return REGISTRY.get(name)


def list_plugins() -> list[str]:
    return REGISTRY.list()
