"""JSON log line formatting and request context."""

import json
import logging

from fastapi.testclient import TestClient

from currency_proxy.core.logging import (
    JsonLineFormatter,
    RequestContextFilter,
    init_logging,
    request_id_ctx,
    request_route_ctx,
)
from currency_proxy.main import create_app


def _format(record: logging.LogRecord) -> dict:
    RequestContextFilter().filter(record)
    return json.loads(JsonLineFormatter().format(record))


def test_line_outside_request_has_placeholder_id():
    record = logging.makeLogRecord(
        {"name": "app.test", "levelno": logging.INFO, "levelname": "INFO", "msg": "hi %s", "args": ("there",)}
    )

    line = _format(record)

    assert line["message"] == "hi there"
    assert line["logger"] == "app.test"
    assert line["request_id"] == "-"
    assert "route" not in line


def test_line_carries_request_context_and_extra_fields():
    rid = request_id_ctx.set("abc")
    route = request_route_ctx.set("POST /convert")
    try:
        record = logging.makeLogRecord(
            {"name": "app.test", "levelname": "INFO", "msg": "done", "status": 200}
        )
        line = _format(record)
    finally:
        request_route_ctx.reset(route)
        request_id_ctx.reset(rid)

    assert line["request_id"] == "abc"
    assert line["route"] == "POST /convert"
    assert line["status"] == 200


def test_log_file_receives_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    init_logging(log_file=log_file)

    logging.getLogger("app.test").info("written")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = [json.loads(l) for l in log_file.read_text().splitlines()]
    assert lines[-1]["message"] == "written"
    init_logging()


def test_incoming_request_id_is_echoed(settings, credentials, fake_client):
    client = TestClient(
        create_app(settings, credentials=credentials, exchange_client=fake_client)
    )

    r = client.get("/health", headers={"x-request-id": "trace-1"})

    assert r.headers["x-request-id"] == "trace-1"
