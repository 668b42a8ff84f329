from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import DummyBody, DummyS3, action, datasource, page
from storeflow.core import concurrency
from storeflow.core.exception import (
    ConfigurationError,
    InternalError,
    RemoteOperationError,
    StaleConnectionError,
)


def _run(coro):
    return asyncio.run(coro)


def test_list_concatenates_pages_in_order(executor):
    client = DummyS3(pages=[page("a", "b", next_token="t1"), page("c", "d", next_token="t2"), page("e")])

    res = _run(executor.execute(client, datasource(), action("LIST")))

    assert res.is_execution_success
    assert res.rows == [{"List of Files": k} for k in ["a", "b", "c", "d", "e"]]
    tokens = [kw.get("ContinuationToken") for op, kw in client.calls if op == "list_objects_v2"]
    assert tokens == [None, "t1", "t2"]


def test_list_empty_bucket_yields_no_rows(executor):
    client = DummyS3(pages=[page()])
    res = _run(executor.execute(client, datasource(), action("LIST")))
    assert res.is_execution_success
    assert res.rows == []


def test_list_with_missing_page_is_internal_error(executor):
    client = DummyS3(pages=[None])
    with pytest.raises(InternalError):
        _run(executor.execute(client, datasource(), action("LIST")))


def test_upload_empty_body(executor):
    client = DummyS3()
    res = _run(executor.execute(client, datasource(), action("UPLOAD_FILE_FROM_BODY", path="dir/empty.txt", body="")))
    assert res.rows == [{"Action Status": "File uploaded successfully"}]
    assert client.objects["dir/empty.txt"] == b""


def test_upload_encodes_text(executor):
    client = DummyS3()
    _run(executor.execute(client, datasource(), action("UPLOAD_FILE_FROM_BODY", path="n.txt", body="héllo\nworld")))
    assert client.objects["n.txt"] == "héllo\nworld".encode("utf-8")


def test_upload_none_body_rejected_before_backend(executor):
    client = DummyS3()
    with pytest.raises(ConfigurationError):
        _run(executor.execute(client, datasource(), action("UPLOAD_FILE_FROM_BODY", path="a.txt", body=None)))
    assert client.calls == []


def test_read_strips_line_separators(executor):
    client = DummyS3(objects={"f.txt": b"line1\nline2\r\nline3"})
    res = _run(executor.execute(client, datasource(), action("READ_FILE", path="f.txt")))
    assert res.rows == [{"File Content": "line1line2line3"}]
    assert client.bodies[0].closed


def test_read_releases_stream_when_reading_fails(executor):
    body = DummyBody(b"line1\nline2\nline3", fail_after=1)
    client = DummyS3(objects={"f.txt": body})

    with pytest.raises(RemoteOperationError) as ei:
        _run(executor.execute(client, datasource(), action("READ_FILE", path="f.txt")))

    assert body.closed
    assert ei.value.action == "READ_FILE"
    assert "connection reset" in ei.value.message


def test_read_close_failure_does_not_mask_result(executor, caplog):
    body = DummyBody(b"abc", fail_close=True)
    client = DummyS3(objects={"f.txt": body})
    caplog.set_level("WARNING")

    res = _run(executor.execute(client, datasource(), action("READ_FILE", path="f.txt")))

    assert res.rows == [{"File Content": "abc"}]
    assert any("failed closing" in r.getMessage() for r in caplog.records)


def test_delete(executor):
    client = DummyS3(objects={"old.txt": b"x"})
    res = _run(executor.execute(client, datasource(), action("DELETE_FILE", path="old.txt")))
    assert res.rows == [{"Action Status": "File deleted successfully"}]
    assert client.calls == [("delete_object", {"Bucket": "bucket-1", "Key": "old.txt"})]


@pytest.mark.parametrize("name", ["READ_FILE", "UPLOAD_FILE_FROM_BODY", "DELETE_FILE"])
def test_blank_path_fails_before_backend(executor, name):
    client = DummyS3()
    with pytest.raises(ConfigurationError):
        _run(executor.execute(client, datasource(), action(name, path=" ", body="x")))
    assert client.calls == []


@pytest.mark.parametrize("name", ["LIST", "READ_FILE", "NOT_AN_ACTION"])
def test_missing_handle_is_stale_connection(executor, name):
    with pytest.raises(StaleConnectionError):
        _run(executor.execute(None, None, action(name)))


def test_none_configurations(executor):
    with pytest.raises(ConfigurationError, match="datasource"):
        _run(executor.execute(DummyS3(), None, action("LIST")))
    with pytest.raises(ConfigurationError, match="query"):
        _run(executor.execute(DummyS3(), datasource(), None))


def test_backend_failure_is_wrapped_with_action(executor):
    client = DummyS3(fail={"delete_object": RuntimeError("AccessDenied")})
    with pytest.raises(RemoteOperationError) as ei:
        _run(executor.execute(client, datasource(), action("DELETE_FILE", path="x")))
    assert ei.value.action == "DELETE_FILE"
    assert ei.value.message.endswith("DELETE_FILE : AccessDenied")
    assert isinstance(ei.value.__cause__, RuntimeError)


def test_dispatch_fallthrough_is_internal_error(executor):
    with pytest.raises(InternalError):
        executor._execute_blocking(DummyS3(), "RENAME", "b", "p", None)


def test_blocking_calls_run_on_the_shared_io_pool(executor):
    caller = threading.current_thread().name
    client = DummyS3(pages=[page("a"), page("b")])

    _run(executor.execute(client, datasource(), action("LIST")))
    pool = concurrency.get_pool()
    _run(executor.execute(client, datasource(), action("LIST")))

    assert concurrency.get_pool() is pool
    names = [name for op, name in client.threads if op == "list_objects_v2"]
    assert len(names) == 2
    assert all(name.startswith("storeflow-io") and name != caller for name in names)


def test_rejected_submit_is_internal_error(executor, monkeypatch):
    dead = ThreadPoolExecutor(max_workers=1)
    dead.shutdown()
    monkeypatch.setattr(concurrency, "_POOL", dead)

    client = DummyS3(pages=[page("a")])
    with pytest.raises(InternalError, match="worker pool"):
        _run(executor.execute(client, datasource(), action("LIST")))
    assert client.calls == []
