"""Centralized customized exceptions for storeflow.

Every failure a plugin executor can report to the host is one of the kinds
below. Internal code should prefer explicit imports:

    from storeflow.core.exception import ConfigurationError

The host boundary turns any of them into a failed
:class:`storeflow.core.models.ActionExecutionResult` via ``from_error``.
"""

from __future__ import annotations

__all__ = [
    "ConnectorError",
    "ConfigurationError",
    "StaleConnectionError",
    "RemoteOperationError",
    "InternalError",
]


class ConnectorError(RuntimeError):
    """Base error for connector failures."""

    error_type = "connector"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ConfigurationError(ConnectorError):
    """A mandatory datasource/query field is missing, blank or malformed."""

    error_type = "configuration"


class StaleConnectionError(ConnectorError):
    """No live client handle exists for the datasource at execution time.

    The host is expected to re-create the datasource and retry on its own.
    """

    error_type = "stale_connection"

    def __init__(self, message: str = ""):
        super().__init__(
            message
            or "Connection to the datasource is stale or was never created. "
            "Please re-create the datasource and try again."
        )


class RemoteOperationError(ConnectorError):
    """The storage backend rejected or failed a list/read/upload/delete/probe call."""

    error_type = "remote_operation"

    def __init__(self, message: str = "", *, action: str | None = None):
        super().__init__(message)
        self.action = action


class InternalError(ConnectorError):
    """A state validation should have prevented (a bug, not a user input problem)."""

    error_type = "internal"
