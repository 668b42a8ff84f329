from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from storeflow.core.connectors.base import PluginExecutor
from storeflow.core.registry.plugins import REGISTRY
from storeflow.core.runtime.settings import Settings
from storeflow.core.models import (
    ActionConfiguration,
    ActionExecutionResult,
    DatasourceConfiguration,
    DatasourceStructure,
    DatasourceTestResult,
)

log = logging.getLogger('storeflow.core.connectors.manager')


@dataclass
class Datasources:
    """Host-side accessor that owns one client handle per datasource name.

    Access patterns:
        ds = Datasources(plugin="s3", settings=settings)
        await ds.create("reports", cfg)
        result = await ds.execute("reports", cfg, action)   # never raises
        await ds.destroy("reports")

    Handle lifecycle per name: absent -> created -> destroyed. Executing
    against an absent or destroyed name yields a failed result with
    error_type "stale_connection"; the caller re-creates and retries.
    """

    plugin: str = "s3"
    settings: Settings = field(default_factory=Settings)
    executor: Optional[PluginExecutor] = None

    _handles: Dict[str, Any] = None  # type: ignore
    _lock: asyncio.Lock = None  # type: ignore

    def __post_init__(self) -> None:
        self._handles = {}
        self._lock = asyncio.Lock()
        if self.executor is None:
            self.executor = REGISTRY.create(self.plugin, settings=self.settings)

    def names(self) -> list[str]:
        return sorted(self._handles.keys())

    def handle(self, name: str) -> Any:
        return self._handles.get(name)

    def validate(self, cfg: Optional[DatasourceConfiguration]) -> Set[str]:
        return self.executor.validate_datasource(cfg)

    async def create(self, name: str, cfg: Optional[DatasourceConfiguration]) -> Any:
        """Create (or replace) the handle for `name`. Raises the executor's typed errors."""
        handle = await self.executor.create_datasource(cfg)
        async with self._lock:
            previous = self._handles.get(name)
            self._handles[name] = handle
        if previous is not None:
            await self.executor.destroy_datasource(previous)
        return handle

    async def execute(
        self,
        name: str,
        cfg: Optional[DatasourceConfiguration],
        action: Optional[ActionConfiguration],
    ) -> ActionExecutionResult:
        try:
            return await self.executor.execute(self._handles.get(name), cfg, action)
        except Exception as e:
            log.debug("execute failed for datasource=%s", name, exc_info=True)
            return ActionExecutionResult.from_error(e)

    async def test(self, cfg: Optional[DatasourceConfiguration]) -> DatasourceTestResult:
        try:
            return await self.executor.test_datasource(cfg)
        except Exception as e:
            return DatasourceTestResult.failed(getattr(e, "message", None) or str(e))

    async def structure(self, name: str, cfg: Optional[DatasourceConfiguration]) -> DatasourceStructure:
        try:
            return await self.executor.get_structure(self._handles.get(name), cfg)
        except Exception:
            log.warning("structure lookup failed; returning empty", exc_info=True)
            return DatasourceStructure()

    async def destroy(self, name: str) -> None:
        async with self._lock:
            handle = self._handles.pop(name, None)
        try:
            await self.executor.destroy_datasource(handle)
        except Exception:
            log.warning("datasource destroy failed; continuing", exc_info=True)

    async def close_all(self) -> None:
        for name in self.names():
            await self.destroy(name)
