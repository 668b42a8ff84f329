"""Public, stable API surface for storeflow.

If you're embedding storeflow in a host application or writing plugins,
import from **`storeflow.core.api`**.

Everything outside this package is considered internal and may change without
notice, even in minor releases.
"""

from __future__ import annotations

# Plugin contracts
from storeflow.core.connectors import require, require_attr
from storeflow.core.connectors.base import PluginExecutor, PluginInit
from storeflow.core.connectors.manager import Datasources
# Exceptions
from storeflow.core.exception import (
    ConfigurationError,
    ConnectorError,
    InternalError,
    RemoteOperationError,
    StaleConnectionError,
)
# Registry
from storeflow.core.registry.plugins import get_plugin, list_plugins, register_plugin
# Settings
from storeflow.core.runtime.settings import Settings, load_settings
# Datasource/action models (Pydantic)
from storeflow.core.models import (
    ActionConfiguration,
    ActionExecutionResult,
    DatasourceConfiguration,
    DatasourceStructure,
    DatasourceTestResult,
    DBAuth,
    Property,
    S3Action,
)
from storeflow.core.builtins.s3 import S3PluginExecutor

__all__ = [
    # models
    "Property",
    "DBAuth",
    "DatasourceConfiguration",
    "ActionConfiguration",
    "S3Action",
    "ActionExecutionResult",
    "DatasourceTestResult",
    "DatasourceStructure",
    # settings
    "Settings",
    "load_settings",
    # plugins
    "PluginExecutor",
    "PluginInit",
    "S3PluginExecutor",
    "Datasources",
    "register_plugin",
    "get_plugin",
    "list_plugins",
    "require",
    "require_attr",
    # exceptions
    "ConnectorError",
    "ConfigurationError",
    "StaleConnectionError",
    "RemoteOperationError",
    "InternalError",
]
