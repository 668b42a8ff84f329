from __future__ import annotations

import os
from importlib import import_module

from pydantic import BaseModel


class Settings(BaseModel):
    # Defaults are static. Use load_settings(env=...) to read from an env snapshot.
    log_level: str = "INFO"

    # Observability
    # - log_format: "text" (default) or "json". When json, storeflow logs emit a single JSON
    #   object per line, suitable for log aggregation.
    log_format: str = "text"

    # Process-wide worker pool for blocking SDK calls (shared by every entry point).
    worker_pool_size: int = 64

    # botocore client options
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    max_pool_connections: int = 10

    # Default endpoint for S3-compatible services; a datasource endpoint wins.
    endpoint_url: str | None = None

    @classmethod
    def from_env(cls, env: dict[str, str], overrides: dict | None = None) -> "Settings":
        """Build Settings from an explicit env snapshot (does not read os.environ)."""
        def g(key: str, default: str | None = None) -> str | None:
            return env.get(key, default)  # type: ignore[return-value]

        data = {
            "log_level": g("STOREFLOW_LOG_LEVEL", "INFO"),
            "log_format": g("STOREFLOW_LOG_FORMAT", "text"),
            "worker_pool_size": int(g("STOREFLOW_WORKER_POOL_SIZE", "64") or 64),
            "connect_timeout": float(g("STOREFLOW_CONNECT_TIMEOUT", "10") or 10),
            "read_timeout": float(g("STOREFLOW_READ_TIMEOUT", "60") or 60),
            "max_pool_connections": int(g("STOREFLOW_MAX_POOL_CONNECTIONS", "10") or 10),
            "endpoint_url": g("STOREFLOW_ENDPOINT_URL") or None,
        }
        if overrides:
            data.update(overrides)
        return cls(**data)


def load_settings(overrides: dict | None = None, *, env: dict[str, str] | None = None) -> Settings:
    """Load settings from (1) env snapshot, (2) optional settings module, (3) explicit overrides.

    If env is not provided, we build a snapshot from os.environ.
    """
    env2 = {k: str(v) for k, v in os.environ.items()} if env is None else env
    s = Settings.from_env(env2)
    mod = env2.get("STOREFLOW_SETTINGS_MODULE")
    if mod:
        m = import_module(mod)
        data = getattr(m, "SETTINGS", {})
        if not isinstance(data, dict):
            raise TypeError("STOREFLOW_SETTINGS_MODULE must expose SETTINGS: dict")
        s = s.model_copy(update=data)
    if overrides:
        s = s.model_copy(update=overrides)
    return s
