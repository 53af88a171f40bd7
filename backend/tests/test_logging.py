"""Structured logging tests."""

from __future__ import annotations

import logging

import orjson

from kb_assist.core.logging import JsonFormatter, bind_request_id, reset_request_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("kb_assist.test", logging.WARNING, __file__, 1, "Ingest of %s failed", ("url",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_copies_context_fields() -> None:
    payload = orjson.loads(JsonFormatter().format(_record(ctx_error_kind="fetch", unrelated="skip")))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "kb_assist.test"
    assert payload["message"] == "Ingest of url failed"
    assert payload["error_kind"] == "fetch"
    assert "unrelated" not in payload
    assert "request_id" not in payload


def test_json_formatter_includes_bound_request_id() -> None:
    token = bind_request_id("req-42")
    try:
        payload = orjson.loads(JsonFormatter().format(_record()))
    finally:
        reset_request_id(token)
    assert payload["request_id"] == "req-42"
