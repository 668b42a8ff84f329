from pathlib import Path

import sys
import threading

# Allow running tests without installing the package.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest
from storeflow.core.runtime.settings import Settings
from storeflow.core.models import ActionConfiguration, DatasourceConfiguration, DBAuth, Property


class DummyBody:
    """Stands in for botocore's StreamingBody."""

    def __init__(self, data: bytes, *, fail_after: int | None = None, fail_close: bool = False):
        self.data = data
        self.fail_after = fail_after
        self.fail_close = fail_close
        self.closed = False

    def iter_lines(self):
        for i, line in enumerate(self.data.splitlines()):
            if self.fail_after is not None and i >= self.fail_after:
                raise ConnectionResetError("connection reset while reading")
            yield line

    def close(self):
        self.closed = True
        if self.fail_close:
            raise OSError("close failed")


class DummyS3:
    """Duck-typed boto3 S3 client recording every call."""

    def __init__(self, pages=None, objects=None, *, fail=None):
        self.pages = list(pages or [])
        self.objects = dict(objects or {})
        self.fail = fail or {}
        self.calls = []
        self.bodies = []
        self.threads = []
        self.closed = False

    def _maybe_fail(self, op: str):
        self.threads.append((op, threading.current_thread().name))
        exc = self.fail.get(op)
        if exc is not None:
            raise exc

    def list_objects_v2(self, **kwargs):
        self.calls.append(("list_objects_v2", kwargs))
        self._maybe_fail("list_objects_v2")
        return self.pages.pop(0)

    def upload_fileobj(self, fileobj, bucket, key):
        self.calls.append(("upload_fileobj", {"Bucket": bucket, "Key": key}))
        self._maybe_fail("upload_fileobj")
        self.objects[key] = fileobj.read()

    def get_object(self, **kwargs):
        self.calls.append(("get_object", kwargs))
        self._maybe_fail("get_object")
        body = self.objects[kwargs["Key"]]
        if not isinstance(body, DummyBody):
            body = DummyBody(body)
        self.bodies.append(body)
        return {"Body": body}

    def delete_object(self, **kwargs):
        self.calls.append(("delete_object", kwargs))
        self._maybe_fail("delete_object")
        self.objects.pop(kwargs["Key"], None)

    def list_buckets(self):
        self.calls.append(("list_buckets", {}))
        self._maybe_fail("list_buckets")
        return {"Buckets": []}

    def close(self):
        self.calls.append(("close", {}))
        self._maybe_fail("close")
        self.closed = True


def page(*keys: str, next_token: str | None = None) -> dict:
    out = {"IsTruncated": next_token is not None, "KeyCount": len(keys)}
    if keys:
        out["Contents"] = [{"Key": k, "Size": 1} for k in keys]
    if next_token:
        out["NextContinuationToken"] = next_token
    return out


def datasource(access_key="AKIAEXAMPLE", secret_key="secret", region="us-east-1", endpoint=None):
    return DatasourceConfiguration(
        authentication=DBAuth(username=access_key, password=secret_key),
        properties=[Property(key="region", value=region)],
        endpoint=endpoint,
    )


def action(name, bucket="bucket-1", path=None, body=None):
    return ActionConfiguration(
        path=path,
        body=body,
        plugin_specified_templates=[Property(key="action", value=name), Property(key="bucket", value=bucket)],
    )


@pytest.fixture()
def settings():
    return Settings(log_level="INFO", worker_pool_size=4)


@pytest.fixture()
def executor(settings):
    import storeflow.core  # noqa: F401
    from storeflow.core.registry.plugins import REGISTRY

    return REGISTRY.create("s3", settings=settings)
