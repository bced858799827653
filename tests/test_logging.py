"""Tests for the JSON log formatter and structured event helper."""

import json
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from app.core.logging import REDACTED, JsonLogFormatter, log_event, redact
from app.middlewares import principal_ctx_var, request_id_ctx_var


def _capture(caplog, event, **fields):
    caplog.set_level(logging.DEBUG, logger="app.test_events")
    log_event(logging.getLogger("app.test_events"), event, **fields)
    return json.loads(JsonLogFormatter().format(caplog.records[-1]))


def test_log_event_attaches_fields(caplog):
    payload = _capture(caplog, "self_destruct.rejected", gadget_id="g1", remaining_attempts=2)

    assert payload["event"] == "self_destruct.rejected"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "app.test_events"
    assert payload["gadget_id"] == "g1"
    assert payload["remaining_attempts"] == 2
    assert payload["timestamp"].endswith("Z")


def test_log_event_honours_level(caplog):
    payload = _capture(caplog, "self_destruct.persist_failed", level=logging.WARNING, gadget_id="g1")

    assert payload["level"] == "WARNING"


def test_secrets_are_masked_whatever_their_case(caplog):
    payload = _capture(
        caplog,
        "self_destruct.debug",
        gadget_id="g1",
        code="A1B2C3D4",
        confirmationCode="A1B2C3D4",
        refresh_token="eyJ...",
        password="s3cret-pass",
    )

    assert payload["code"] == REDACTED
    assert payload["confirmationCode"] == REDACTED
    assert payload["refresh_token"] == REDACTED
    assert payload["password"] == REDACTED
    assert payload["gadget_id"] == "g1"
    assert redact({"Authorization": "Bearer x"}) == {"Authorization": REDACTED}


def test_extras_do_not_shadow_envelope_keys(caplog):
    request_token = request_id_ctx_var.set("req-123")
    principal_token = principal_ctx_var.set("user-1")
    try:
        payload = _capture(caplog, "gadget.created", request_id="forged", level_name="forged", timestamp="forged")
    finally:
        request_id_ctx_var.reset(request_token)
        principal_ctx_var.reset(principal_token)

    assert payload["request_id"] == "req-123"
    assert payload["principal"] == "user-1"
    assert payload["timestamp"] != "forged"
    assert payload["level_name"] == "forged"


def test_exceptions_are_rendered():
    logger = logging.getLogger("app.test_events")
    try:
        raise RuntimeError("sweep failed")
    except RuntimeError:
        record = logger.makeRecord(
            logger.name, logging.ERROR, __file__, 0, "reaper.failed", None, sys.exc_info()
        )

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["event"] == "reaper.failed"
    assert "RuntimeError: sweep failed" in payload["exception"]
