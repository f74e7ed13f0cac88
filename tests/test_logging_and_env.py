from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

from offchain_node import env
from offchain_node.structured_logging import log_event


def test_log_event_emits_sorted_jsonl(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("offchain_node.test")
    caplog.set_level(logging.INFO, logger="offchain_node.test")

    log_event(logger, "hello", level=logging.WARNING, b=2, a=1)

    rec = caplog.records[-1]
    assert rec.levelno == logging.WARNING
    payload = json.loads(rec.getMessage())
    assert payload["event"] == "hello"
    assert payload["a"] == 1 and payload["b"] == 2
    assert isinstance(payload["ts_ms"], int)
    assert rec.getMessage().index('"a"') < rec.getMessage().index('"b"')


def test_log_event_falls_back_for_unserializable_fields(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("offchain_node.test")
    caplog.set_level(logging.INFO, logger="offchain_node.test")

    log_event(logger, "odd", obj=object())

    assert caplog.records[-1].getMessage().startswith("event=odd obj=")


def test_dotenv_loaded_once(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / ".env"
    p.write_text("OCN_TEST_FLAG=from-file\n", encoding="utf-8")
    monkeypatch.setattr(env, "_LOADED", False)
    monkeypatch.delenv("OCN_TEST_FLAG", raising=False)

    assert env.load_dotenv_if_present(str(p)) is True
    assert os.environ["OCN_TEST_FLAG"] == "from-file"
    assert env.load_dotenv_if_present(str(p)) is False


def test_dotenv_missing_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(env, "_LOADED", False)
    assert env.load_dotenv_if_present(str(tmp_path / "nope.env")) is False
