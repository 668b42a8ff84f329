from __future__ import annotations

import functools
import io
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set

from storeflow.core.concurrency import run_blocking
from storeflow.core.connectors import require
from storeflow.core.connectors.base import PluginInit
from storeflow.core.exception import (
    ConfigurationError,
    ConnectorError,
    InternalError,
    RemoteOperationError,
    StaleConnectionError,
)
from storeflow.core.observability import dur_ms, log_event
from storeflow.core.registry.plugins import register_plugin
from storeflow.core.models import (
    ActionConfiguration,
    ActionExecutionResult,
    DatasourceConfiguration,
    DatasourceStructure,
    DatasourceTestResult,
    S3Action,
)
from storeflow.core.validation import (
    MSG_DATASOURCE_INCOMPLETE,
    MSG_QUERY_INCOMPLETE,
    bucket_of,
    region_of,
    validate_action,
    validate_datasource,
)

log = logging.getLogger("storeflow.core.builtin.s3")

S3_DRIVER = "boto3"

LIST_ROW_KEY = "List of Files"
STATUS_ROW_KEY = "Action Status"
CONTENT_ROW_KEY = "File Content"
MSG_UPLOADED = "File uploaded successfully"
MSG_DELETED = "File deleted successfully"


@functools.lru_cache(maxsize=1)
def known_regions() -> frozenset[str]:
    """Every S3 region name botocore ships endpoint data for, across all partitions."""
    botocore_session = require("botocore.session")
    session = botocore_session.get_session()
    names: Set[str] = set()
    for partition in session.get_available_partitions():
        names.update(session.get_available_regions("s3", partition_name=partition))
    return frozenset(names)


def parse_region(region: str, *, strict: bool = True) -> str:
    name = (region or "").strip()
    if not name:
        raise ConfigurationError(
            "Mandatory parameter 'Region' is empty. Did you forget to edit the 'Region' field in the "
            "datasource creation form ? You need to fill it with the region where your AWS instance is hosted."
        )
    if strict and name not in known_regions():
        raise ConfigurationError(
            "Encountered an error when parsing AWS S3 instance region from the AWS S3 datasource "
            f"configuration provided: Cannot create enum from {name} value!"
        )
    return name


@contextmanager
def _released(stream, what: str) -> Iterator[Any]:
    """Yield `stream` and close it on every exit path; close failures are only logged."""
    try:
        yield stream
    finally:
        try:
            stream.close()
        except Exception:
            log.warning("failed closing %s; continuing", what, exc_info=True)


def _keys_of(page: Optional[Dict[str, Any]]) -> List[str]:
    if page is None:
        raise InternalError(
            "Encountered an unexpected error when fetching file content from AWS S3 server: "
            "the object listing was empty."
        )
    return [obj["Key"] for obj in page.get("Contents") or []]


@register_plugin("s3")
class S3PluginExecutor:
    """
    S3 plugin backed by boto3.

    The handle returned by create_datasource is a boto3 S3 client bound to one
    region and one credential pair. Executions borrow it; only
    destroy_datasource closes it.

    Datasource (DatasourceConfiguration):
      - authentication.username: access key
      - authentication.password: secret key
      - properties[0]: region (e.g. "us-east-1")
      - endpoint: optional S3-compatible endpoint URL
    Query (ActionConfiguration):
      - plugin_specified_templates[0]: LIST | UPLOAD_FILE_FROM_BODY | READ_FILE | DELETE_FILE
      - plugin_specified_templates[1]: bucket name
      - path: object key (READ/UPLOAD/DELETE)
      - body: text to upload (UPLOAD; "" allowed)
    """

    def __init__(self, init: PluginInit):
        self.name = init.name
        self.settings = init.settings
        self.options = init.options or {}

    async def _run(self, fn, *args, **kwargs):
        return await run_blocking(fn, *args, workers=self.settings.worker_pool_size, **kwargs)

    # ------------------------------------------------------------------
    # Client lifecycle
    # ------------------------------------------------------------------

    def _endpoint(self, datasource_configuration: DatasourceConfiguration) -> Optional[str]:
        return datasource_configuration.endpoint or self.settings.endpoint_url

    def _create_client(self, datasource_configuration: DatasourceConfiguration):
        invalids = validate_datasource(datasource_configuration)
        if invalids:
            raise ConfigurationError(" ".join(sorted(invalids)))

        endpoint = self._endpoint(datasource_configuration)
        # S3-compatible services name their own regions.
        region = parse_region(region_of(datasource_configuration) or "", strict=endpoint is None)

        auth = datasource_configuration.authentication
        try:
            Credentials = require("botocore.credentials:Credentials")
            creds = Credentials(auth.username.strip(), auth.password.strip())
        except ConnectorError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Encountered an error when parsing AWS credentials from datasource: {e}"
            ) from e

        boto3 = require(S3_DRIVER)
        BotoConfig = require("botocore.config:Config")
        try:
            session = boto3.session.Session(
                aws_access_key_id=creds.access_key,
                aws_secret_access_key=creds.secret_key,
                region_name=region,
            )
            client = session.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint,
                config=BotoConfig(
                    connect_timeout=self.settings.connect_timeout,
                    read_timeout=self.settings.read_timeout,
                    max_pool_connections=self.settings.max_pool_connections,
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )
        except Exception as e:
            raise RemoteOperationError(
                f"Encountered an error when connecting to AWS S3 server: {e}", action="DATASOURCE_CREATE"
            ) from e

        log_event(log, settings=self.settings, level=logging.INFO, event="datasource_create",
                  plugin=self.name, region=region, endpoint=endpoint or "default")
        return client

    def _close_client(self, connection) -> None:
        connection.close()

    # ------------------------------------------------------------------
    # Remote operations (blocking; run on the shared pool)
    # ------------------------------------------------------------------

    def list_all_files_in_bucket(self, connection, bucket_name: str) -> List[str]:
        kwargs: Dict[str, Any] = {"Bucket": bucket_name}
        keys: List[str] = []
        while True:
            page = connection.list_objects_v2(**kwargs)
            keys.extend(_keys_of(page))
            if not page.get("IsTruncated"):
                return keys
            kwargs["ContinuationToken"] = page["NextContinuationToken"]

    def upload_file_from_body(self, connection, bucket_name: str, path: str, body: str) -> None:
        # upload_fileobj returns once the (possibly multipart) transfer is complete.
        connection.upload_fileobj(io.BytesIO(body.encode("utf-8")), bucket_name, path)

    def read_file(self, connection, bucket_name: str, path: str) -> str:
        obj = connection.get_object(Bucket=bucket_name, Key=path)
        with _released(obj["Body"], f"s3://{bucket_name}/{path}") as content:
            # Lines are joined without their separators; callers depend on this.
            return "".join(line.decode("utf-8", errors="replace") for line in content.iter_lines())

    def delete_file(self, connection, bucket_name: str, path: str) -> None:
        connection.delete_object(Bucket=bucket_name, Key=path)

    def _dispatch(self, connection, action: S3Action, bucket_name: str,
                  path: Optional[str], body: Optional[str]) -> List[Dict[str, Any]]:
        if action is S3Action.LIST:
            return [{LIST_ROW_KEY: key} for key in self.list_all_files_in_bucket(connection, bucket_name)]
        if action is S3Action.UPLOAD_FILE_FROM_BODY:
            self.upload_file_from_body(connection, bucket_name, path, body)
            return [{STATUS_ROW_KEY: MSG_UPLOADED}]
        if action is S3Action.READ_FILE:
            return [{CONTENT_ROW_KEY: self.read_file(connection, bucket_name, path)}]
        if action is S3Action.DELETE_FILE:
            self.delete_file(connection, bucket_name, path)
            return [{STATUS_ROW_KEY: MSG_DELETED}]
        raise InternalError(
            f"It seems that the query has requested an unsupported action: {action}. "
            "This is a bug in the S3 plugin."
        )

    def _execute_blocking(self, connection, action: S3Action, bucket_name: str,
                          path: Optional[str], body: Optional[str]) -> List[Dict[str, Any]]:
        try:
            return self._dispatch(connection, action, bucket_name, path, body)
        except ConnectorError:
            raise
        except Exception as e:
            raise RemoteOperationError(
                f"Query execution failed in S3 plugin when executing action: {action.value} : {e}",
                action=action.value,
            ) from e

    # ------------------------------------------------------------------
    # Host entry points
    # ------------------------------------------------------------------

    def validate_datasource(self, datasource_configuration: Optional[DatasourceConfiguration]) -> Set[str]:
        return validate_datasource(datasource_configuration)

    async def create_datasource(self, datasource_configuration: Optional[DatasourceConfiguration]):
        if datasource_configuration is None:
            raise ConfigurationError(
                "Mandatory parameters 'Access Key', 'Secret Key', 'Region' missing. Did you forget to edit "
                "the 'Access Key'/'Secret Key'/'Region' fields in the datasource creation form ?"
            )
        require(S3_DRIVER)
        return await self._run(self._create_client, datasource_configuration)

    async def destroy_datasource(self, connection) -> None:
        if connection is None:
            return
        try:
            await self._run(self._close_client, connection)
        except Exception:
            log.warning("error closing S3 connection; continuing", exc_info=True)
            return
        log_event(log, settings=self.settings, level=logging.INFO, event="datasource_destroy", plugin=self.name)

    async def test_datasource(self, datasource_configuration: Optional[DatasourceConfiguration]) -> DatasourceTestResult:
        if datasource_configuration is None:
            return DatasourceTestResult.failed(MSG_DATASOURCE_INCOMPLETE)

        try:
            connection = await self.create_datasource(datasource_configuration)
        except Exception as e:
            return self._test_failed(e)

        try:
            # Client construction never rejects bad credentials; one cheap call does.
            await self._run(self._probe, connection)
        except Exception as e:
            return self._test_failed(e)
        finally:
            await self.destroy_datasource(connection)

        log_event(log, settings=self.settings, level=logging.INFO, event="datasource_test", plugin=self.name, status="OK")
        return DatasourceTestResult()

    def _probe(self, connection) -> None:
        try:
            connection.list_buckets()
        except Exception as e:
            raise RemoteOperationError(str(e), action="TEST_DATASOURCE") from e

    def _test_failed(self, e: Exception) -> DatasourceTestResult:
        message = e.message if isinstance(e, ConnectorError) else str(e)
        log_event(log, settings=self.settings, level=logging.WARNING, event="datasource_test",
                  plugin=self.name, status="FAILED", error_type=getattr(e, "error_type", "internal"))
        return DatasourceTestResult.failed(message)

    async def execute(
        self,
        connection,
        datasource_configuration: Optional[DatasourceConfiguration],
        action_configuration: Optional[ActionConfiguration],
    ) -> ActionExecutionResult:
        # boto3 clients expose no liveness check; a missing handle is the stale signal.
        if connection is None:
            raise StaleConnectionError()
        if datasource_configuration is None:
            raise ConfigurationError(MSG_DATASOURCE_INCOMPLETE)
        if action_configuration is None:
            raise ConfigurationError(MSG_QUERY_INCOMPLETE)

        action = validate_action(action_configuration)
        bucket_name = bucket_of(action_configuration)

        t0 = time.perf_counter()
        log_event(log, settings=self.settings, level=logging.INFO, event="action_start",
                  plugin=self.name, action=action.value, bucket=bucket_name)
        try:
            rows = await self._run(
                self._execute_blocking,
                connection,
                action,
                bucket_name,
                action_configuration.path,
                action_configuration.body,
            )
        except ConnectorError as e:
            log_event(log, settings=self.settings, level=logging.WARNING, event="action_end", plugin=self.name,
                      action=action.value, status="FAILED", error_type=e.error_type, duration_ms=dur_ms(t0))
            raise

        log_event(log, settings=self.settings, level=logging.INFO, event="action_end", plugin=self.name,
                  action=action.value, status="SUCCESS", rows=len(rows), duration_ms=dur_ms(t0))
        return ActionExecutionResult.success(rows)

    async def get_structure(self, connection, datasource_configuration: Optional[DatasourceConfiguration]) -> DatasourceStructure:
        # Buckets and keys have no schema worth browsing.
        return DatasourceStructure()
