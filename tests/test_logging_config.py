"""Tests for logging configuration and entrypoint wiring."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace

import beatshop.app as app_module
import beatshop.cli as cli_module
from beatshop.logging_utils import (
    EmailRedactionFilter,
    JsonLogFormatter,
    mask_emails,
    setup_logging,
)


def _flush_root_handlers() -> None:
    for handler in logging.getLogger().handlers:
        flush = getattr(handler, "flush", None)
        if callable(flush):
            flush()


def _record(msg: str, *args: object, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("beatshop.test", logging.INFO, "", 0, msg, args, None)
    record.__dict__.update(extra)
    return record


def test_mask_emails_keeps_first_character_and_domain() -> None:
    text = "receipt for maxy.electa@example.com and b@shop.io"
    assert mask_emails(text) == "receipt for m***@example.com and b***@shop.io"
    assert mask_emails("no address here") == "no address here"


def test_redaction_filter_masks_args_and_extra_fields() -> None:
    record = _record(
        "checkout for %s",
        "buyer@example.com",
        event="checkout_redirect",
        buyer={"email": "buyer@example.com", "tags": ["x@y.org"]},
    )

    assert EmailRedactionFilter().filter(record) is True

    assert record.getMessage() == "checkout for b***@example.com"
    assert record.__dict__["buyer"] == {
        "email": "b***@example.com",
        "tags": ["x***@y.org"],
    }
    assert record.__dict__["event"] == "checkout_redirect"


def test_json_formatter_emits_context_for_extra_fields() -> None:
    record = _record("waveform ready", event="waveform_loaded", attempts=2)

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "beatshop.test"
    assert payload["message"] == "waveform ready"
    assert payload["timestamp"].endswith("Z")
    assert payload["context"] == {"event": "waveform_loaded", "attempts": 2}


def test_json_formatter_omits_context_without_extras() -> None:
    payload = json.loads(JsonLogFormatter().format(_record("plain")))
    assert "context" not in payload


def test_setup_logging_default_path_writes_redacted_json(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        setup_logging(log_dir=tmp_path, level="INFO")
        logger = logging.getLogger("beatshop.test")
        logger.info("sent to fan@example.com", extra={"event": "purchase"})
        _flush_root_handlers()
        log_path = tmp_path / "beatshop.log"
        assert log_path.exists()
        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "sent to f***@example.com"
        assert payload["context"] == {"event": "purchase"}
    finally:
        root.handlers.clear()
        for handler in original_handlers:
            root.addHandler(handler)
        root.setLevel(original_level)


def test_setup_logging_custom_log_file_writes_log(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    custom_path = tmp_path / "custom" / "store.log"
    try:
        setup_logging(log_dir=tmp_path, level="DEBUG", log_file=custom_path)
        logging.getLogger("beatshop.test").debug("custom-log-path")
        _flush_root_handlers()
        assert custom_path.exists()
        assert "custom-log-path" in custom_path.read_text(encoding="utf-8")
        assert root.level == logging.DEBUG
    finally:
        root.handlers.clear()
        for handler in original_handlers:
            root.addHandler(handler)
        root.setLevel(original_level)


def test_app_main_passes_effective_level_and_options(monkeypatch, tmp_path) -> None:
    args = SimpleNamespace(
        verbose=True,
        quiet=False,
        log_file=str(tmp_path / "app.log"),
        backend="fake",
        catalog=str(tmp_path / "beats.json"),
        reset_session=True,
    )
    captured: dict[str, object] = {}

    class FakeParser:
        def parse_args(self):
            return args

    class FakeApp:
        def __init__(
            self,
            *,
            backend_name: str | None = None,
            catalog_path: Path | None = None,
            reset_session: bool = False,
        ) -> None:
            captured["backend"] = backend_name
            captured["catalog"] = catalog_path
            captured["reset"] = reset_session

        def run(self) -> None:
            captured["ran"] = True

    def fake_setup_logging(*, log_dir: Path, level: str, log_file: Path | None):
        captured["level"] = level
        captured["log_file"] = log_file

    monkeypatch.setattr(app_module, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(app_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(app_module, "log_dir", lambda: tmp_path / "logs")
    monkeypatch.setattr(app_module, "StorefrontApp", FakeApp)

    rc = app_module.main()

    assert rc == 0
    assert captured["level"] == "DEBUG"
    assert captured["log_file"] == tmp_path / "app.log"
    assert captured["backend"] == "fake"
    assert captured["catalog"] == tmp_path / "beats.json"
    assert captured["reset"] is True
    assert captured["ran"] is True


def test_app_main_returns_nonzero_on_startup_failure(
    monkeypatch, tmp_path, capsys
) -> None:
    args = SimpleNamespace(
        verbose=False,
        quiet=False,
        log_file=None,
        backend=None,
        catalog=None,
        reset_session=False,
    )

    class FakeParser:
        def parse_args(self):
            return args

    class FailingApp:
        def __init__(self, **kwargs: object) -> None:
            del kwargs

        def run(self) -> None:
            raise RuntimeError("boom")

    monkeypatch.setattr(app_module, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(app_module, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(app_module, "log_dir", lambda: tmp_path / "logs")
    monkeypatch.setattr(app_module, "StorefrontApp", FailingApp)

    rc = app_module.main()
    captured = capsys.readouterr()

    assert rc == 1
    assert "Startup failed." in captured.err


def test_cli_main_returns_nonzero_when_logging_setup_fails(
    monkeypatch, tmp_path, capsys
) -> None:
    def fail_setup_logging(**kwargs):
        del kwargs
        raise OSError("cannot open log")

    monkeypatch.setattr(cli_module, "setup_logging", fail_setup_logging)
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path / "logs")

    rc = cli_module.main(["paths"])
    captured = capsys.readouterr()

    assert rc == 1
    assert "Unexpected error. Re-run with --verbose for details." in captured.err
