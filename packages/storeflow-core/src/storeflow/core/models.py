from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from storeflow.core.exception import ConnectorError, InternalError

# ---------------------------------------------------------------------------
# Datasource / action configuration (supplied by the host per call)
# ---------------------------------------------------------------------------


class Property(BaseModel):
    key: Optional[str] = None
    value: Optional[str] = None


class DBAuth(BaseModel):
    # username holds the access key, password the secret key
    username: Optional[str] = None
    password: Optional[str] = None


class DatasourceConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True)

    authentication: Optional[DBAuth] = None
    # index 0 = region
    properties: Optional[List[Optional[Property]]] = None
    # Optional custom endpoint for S3-compatible services.
    endpoint: Optional[str] = None


class ActionConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Optional[str] = None
    body: Optional[str] = None
    # index 0 = action, index 1 = bucket name
    plugin_specified_templates: Optional[List[Optional[Property]]] = None


class S3Action(str, Enum):
    LIST = "LIST"
    UPLOAD_FILE_FROM_BODY = "UPLOAD_FILE_FROM_BODY"
    READ_FILE = "READ_FILE"
    DELETE_FILE = "DELETE_FILE"

    @classmethod
    def parse(cls, value: str | None) -> Optional["S3Action"]:
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def requires_path(self) -> bool:
        return self in (S3Action.UPLOAD_FILE_FROM_BODY, S3Action.READ_FILE, S3Action.DELETE_FILE)


# ---------------------------------------------------------------------------
# Results returned to the host
# ---------------------------------------------------------------------------


class ActionExecutionResult(BaseModel):
    """Uniform result shape.

    On success ``body`` holds the rows; on failure it holds the message and
    ``error_type`` names the error kind.
    """

    is_execution_success: bool = False
    body: List[Dict[str, Any]] | str | None = None
    error_type: Optional[str] = None

    @classmethod
    def success(cls, rows: List[Dict[str, Any]]) -> "ActionExecutionResult":
        return cls(is_execution_success=True, body=list(rows))

    @classmethod
    def from_error(cls, exc: BaseException) -> "ActionExecutionResult":
        if not isinstance(exc, ConnectorError):
            exc = InternalError(str(exc) or exc.__class__.__name__)
        return cls(is_execution_success=False, body=exc.message, error_type=exc.error_type)

    @property
    def rows(self) -> List[Dict[str, Any]]:
        return self.body if isinstance(self.body, list) else []


class DatasourceTestResult(BaseModel):
    invalids: Set[str] = Field(default_factory=set)

    @classmethod
    def failed(cls, message: str | None) -> "DatasourceTestResult":
        return cls(invalids={message or "Unknown error while testing the datasource."})

    @property
    def ok(self) -> bool:
        return not self.invalids

    @property
    def message(self) -> Optional[str]:
        if not self.invalids:
            return None
        return "; ".join(sorted(self.invalids))


class DatasourceStructure(BaseModel):
    tables: List[Dict[str, Any]] = Field(default_factory=list)
