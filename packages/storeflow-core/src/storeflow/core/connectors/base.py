from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Set, TypeVar, runtime_checkable

from storeflow.core.runtime.settings import Settings
from storeflow.core.models import (
    ActionConfiguration,
    ActionExecutionResult,
    DatasourceConfiguration,
    DatasourceStructure,
    DatasourceTestResult,
)

C = TypeVar("C")


@runtime_checkable
class PluginExecutor(Protocol[C]):
    """
    Public plugin contract.

    A plugin executor is a stateless adapter between the host and a concrete
    SDK client (the "handle", C). The host orchestrates the handle lifecycle:

        handle = await executor.create_datasource(cfg)
        result = await executor.execute(handle, cfg, action)   # any number of times
        await executor.destroy_datasource(handle)

    Executors should:
      - hold no per-datasource state; the handle is the only long-lived resource
      - validate configuration before any network call
      - raise only storeflow.core.exception errors from async entry points
      - never fail on destroy_datasource
    """

    name: str

    def validate_datasource(self, datasource_configuration: Optional[DatasourceConfiguration]) -> Set[str]: ...

    async def create_datasource(self, datasource_configuration: Optional[DatasourceConfiguration]) -> C: ...

    async def destroy_datasource(self, connection: Optional[C]) -> None: ...

    async def test_datasource(self, datasource_configuration: Optional[DatasourceConfiguration]) -> DatasourceTestResult: ...

    async def execute(
        self,
        connection: Optional[C],
        datasource_configuration: Optional[DatasourceConfiguration],
        action_configuration: Optional[ActionConfiguration],
    ) -> ActionExecutionResult: ...

    async def get_structure(
        self, connection: Optional[C], datasource_configuration: Optional[DatasourceConfiguration]
    ) -> DatasourceStructure: ...


@dataclass
class PluginInit:
    name: str
    settings: Settings
    options: dict[str, Any] | None = None
