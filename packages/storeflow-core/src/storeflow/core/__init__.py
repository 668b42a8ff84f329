"""storeflow core package.

Public entrypoints:
- storeflow.core.api: stable API surface for hosts/plugins
- storeflow.core.connectors.manager.Datasources: host-side datasource accessor

Internal modules may change without notice.
"""

from __future__ import annotations

# Ensure built-in plugins are registered on import.
from storeflow.core.builtins import s3 as _s3  # noqa: F401

from storeflow.core.connectors.manager import Datasources

__all__ = ["Datasources"]
