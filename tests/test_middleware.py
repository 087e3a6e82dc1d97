import logging

import pytest

from barintodo.middleware import RequestInfo, logging_interceptor

PROCEDURE = "/todo.v1.TodoService/ListTodos"


def _records(caplog):
    return [r for r in caplog.records if r.name == "barintodo.middleware"]


def test_passes_response_through_and_logs(caplog):
    caplog.set_level(logging.INFO, logger="barintodo.middleware")
    seen = []

    def next_call(info, request):
        seen.append((info, request))
        return {"echo": request}

    wrapped = logging_interceptor()(next_call)
    info = RequestInfo(PROCEDURE, "127.0.0.1:5000")
    assert wrapped(info, "payload") == {"echo": "payload"}
    assert seen == [(info, "payload")]

    records = _records(caplog)
    assert [r.levelno for r in records] == [logging.INFO, logging.INFO]
    assert records[0].getMessage().startswith("gRPC request started")
    assert records[1].getMessage().startswith("gRPC request completed")
    assert all(r.procedure == PROCEDURE for r in records)
    assert all(r.peer == "127.0.0.1:5000" for r in records)
    assert records[1].duration >= 0


def test_failure_is_logged_and_reraised(caplog):
    caplog.set_level(logging.INFO, logger="barintodo.middleware")

    def next_call(info, request):
        raise RuntimeError("boom")

    wrapped = logging_interceptor()(next_call)
    with pytest.raises(RuntimeError, match="boom"):
        wrapped(RequestInfo(PROCEDURE), None)

    records = _records(caplog)
    assert [r.levelno for r in records] == [logging.INFO, logging.ERROR]
    assert records[1].getMessage().startswith("gRPC request failed")
    assert records[1].error == "boom"
    assert records[1].duration >= 0


def test_each_call_logged_separately(caplog):
    caplog.set_level(logging.INFO, logger="barintodo.middleware")
    wrapped = logging_interceptor()(lambda info, request: request * 2)
    results = [wrapped(RequestInfo(PROCEDURE), n) for n in range(3)]
    assert results == [0, 2, 4]
    assert len(_records(caplog)) == 6