"""
nexus-scaffold — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-18

Purpose
- Validate structured JSON logging with redaction, correlation metadata, and queue draining.

What this test file should cover
- JSON line validity and redaction guarantees.
- Correlation field propagation.
- structlog events routed into the stdlib sinks.
- Multi-threaded logging stability and queue drain on shutdown.

Functional requirements
- Offline operation.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from nexus_scaffold.observability.logging import (
    LoggingConfig,
    correlation_scope,
    default_log_redactor,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


def _logger_name() -> str:
    return f"nexus_scaffold.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_logging_redacts_secrets_and_preserves_correlation_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-logging-redaction",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stderr=False,
        )
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(request_id="req-123"):
        logger.info(
            "payload token=tok-FAKE and api_key=sk-FAKE123456789012345",
            extra={"nested": {"password": "hunter2", "safe": "ok"}},
        )

    shutdown_logging(handle)

    assert handle.log_path is not None
    assert handle.log_path == tmp_path / "run-logging-redaction" / "scaffold.jsonl"
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    first = parsed[0]
    assert first["run_id"] == "run-logging-redaction"
    assert first["request_id"] == "req-123"
    assert first["level"] == "INFO"
    assert first["fields"] == {"nested": {"password": "***REDACTED***", "safe": "ok"}}

    line = handle.log_path.read_text(encoding="utf-8")
    assert "tok-FAKE" not in line
    assert "sk-FAKE" not in line
    assert "hunter2" not in line


def test_correlation_scope_restores_previous_context() -> None:
    assert get_correlation_context() == {}
    with correlation_scope(request_id="outer"):
        with correlation_scope(correlation_id="inner"):
            assert get_correlation_context() == {
                "request_id": "outer",
                "correlation_id": "inner",
            }
        assert get_correlation_context() == {"request_id": "outer"}
    assert get_correlation_context() == {}


def test_default_redactor_leaves_ordinary_values_alone() -> None:
    payload = {"path": "src/app.py", "authorization": "Bearer abc", "sizes": [1, 2]}

    redacted = default_log_redactor(payload)

    assert redacted == {"path": "src/app.py", "authorization": "***REDACTED***", "sizes": [1, 2]}


def test_structlog_events_are_routed_into_the_run_log(tmp_path: Path) -> None:
    setup_logging(
        {"log_level": "INFO"},
        run_id="run-structlog",
        log_dir=tmp_path,
        log_to_file=True,
    )

    log = structlog.get_logger("nexus_scaffold.tests.routing")
    log.info("archive_entry_added", path="src/app.py", entry_count=2)
    log.debug("below_threshold", path="ignored.txt")
    shutdown_logging()

    parsed = _read_json_lines(tmp_path / "run-structlog" / "scaffold.jsonl")
    assert len(parsed) == 1
    event = parsed[0]
    assert event["message"] == "archive_entry_added"
    assert event["logger"] == "nexus_scaffold.tests.routing"
    assert event["fields"] == {"path": "src/app.py", "entry_count": 2}


def test_setup_logging_respects_disabled_redaction(tmp_path: Path) -> None:
    logger = setup_logging(
        {"log_level": "INFO", "redact_secrets": False},
        run_id="run-plain",
        log_dir=tmp_path,
        logger_name=_logger_name(),
        log_to_file=True,
    )

    logger.info("hello", extra={"token": "t-123"})
    shutdown_logging()

    content = (tmp_path / "run-plain" / "scaffold.jsonl").read_text(encoding="utf-8")
    assert "t-123" in content


def test_text_format_renders_single_line_events(capsys: pytest.CaptureFixture[str]) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-text", logger_name=logger_name, log_format="text")
    )

    logging.getLogger(logger_name).warning("parser_no_files", extra={"input_chars": 12})
    shutdown_logging(handle)

    assert handle.log_path is None
    err = capsys.readouterr().err.strip()
    assert "WARNING" in err
    assert "parser_no_files" in err
    assert "run_id=run-text" in err
    assert "input_chars=12" in err
    assert "\n" not in err


def test_logger_level_filters_records(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-level",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            level="WARNING",
            log_to_stderr=False,
        )
    )
    logger = logging.getLogger(logger_name)

    logger.info("quiet")
    logger.warning("loud")
    shutdown_logging(handle)

    assert handle.log_path is not None
    messages = [event["message"] for event in _read_json_lines(handle.log_path)]
    assert messages == ["loud"]


@pytest.mark.parametrize(
    "config",
    [
        LoggingConfig(run_id=""),
        LoggingConfig(run_id="ok", queue_size=0),
        LoggingConfig(run_id="ok", level="CHATTY"),
    ],
)
def test_invalid_logging_config_is_rejected(config: LoggingConfig) -> None:
    with pytest.raises(ValueError):
        setup_structured_logging(config)


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-threaded",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stderr=False,
            queue_size=4096,
        )
    )
    logger = logging.getLogger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        for i in range(per_thread):
            logger.info(
                f"thread={thread_idx} index={i} token=tok-secret-{thread_idx}-{i}",
                extra={"api_key": f"sk-FAKE-{thread_idx}-{i}"},
            )

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    assert handle.log_path is not None
    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == total_threads * per_thread
    for line in lines:
        parsed = json.loads(line)
        assert isinstance(parsed, dict)
        assert "message" in parsed
        assert "tok-secret" not in line
        assert "sk-FAKE" not in line


def test_queue_handler_non_blocking_and_shutdown_flushes(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-flush",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stderr=False,
            queue_size=10_000,
        )
    )
    logger = logging.getLogger(logger_name)

    queue_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.QueueHandler)]
    assert queue_handlers, "expected queue-backed non-blocking logging"

    expected = 300
    for i in range(expected):
        logger.info("message %s", i)

    shutdown_logging(handle)

    assert handle.log_path is not None
    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert handle.dropped_records == 0
    assert len(lines) == expected
    assert handle.is_shutdown
