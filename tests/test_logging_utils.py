"""Unit tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path

import pytest

from TypedAPI.logging_utils import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    _cleanup_logs,
    mask_sensitive_data,
    setup_logging,
)
from TypedAPI.settings import APISettings


def make_record(message: str = "hello", **extra_fields) -> logging.LogRecord:
    record = logging.LogRecord("TypedAPI.test", logging.WARNING, __file__, 1, message, (), None)
    if extra_fields:
        record.extra_fields = extra_fields
    return record


@pytest.fixture
def restore_root_logger():
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


class TestMasking:
    def test_masks_nested_credentials(self):
        masked = mask_sensitive_data(
            {"headers": {"Authorization": "Bearer abc", "Accept": "*/*"}, "token": "t"}
        )

        assert masked == {
            "headers": {"Authorization": "***masked***", "Accept": "*/*"},
            "token": "***masked***",
        }


class TestJSONFormatter:
    def test_extra_fields_become_top_level_keys(self):
        line = JSONFormatter().format(make_record(method="GET", http_status=503))
        payload = json.loads(line)

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "TypedAPI.test"
        assert payload["message"] == "hello"
        assert payload["method"] == "GET"
        assert payload["http_status"] == 503
        assert payload["timestamp"].endswith("Z")

    def test_credentials_are_masked(self):
        payload = json.loads(JSONFormatter().format(make_record(cookie="session=1")))

        assert payload["cookie"] == "***masked***"


class TestSetupLogging:
    def test_console_only(self, restore_root_logger):
        logger = setup_logging(APISettings(log_level="DEBUG"))

        managed = [h for h in logger.handlers if getattr(h, "_typedapi_managed", False)]
        assert len(managed) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_repeated_setup_replaces_handlers(self, restore_root_logger, tmp_path: Path):
        settings = APISettings(log_format="json", log_dir=tmp_path)
        setup_logging(settings)
        logger = setup_logging(settings)

        managed = [h for h in logger.handlers if getattr(h, "_typedapi_managed", False)]
        assert len(managed) == 2
        assert isinstance(managed[0].formatter, JSONFormatter)

    def test_file_handler_writes_jsonl(self, restore_root_logger, tmp_path: Path):
        logger = setup_logging(APISettings(log_dir=tmp_path))
        logging.getLogger("TypedAPI.request").warning(
            "GET failed", extra={"extra_fields": {"retry_times": 2}}
        )
        for handler in logger.handlers:
            handler.flush()

        files = list(tmp_path.glob("typedapi-*.jsonl"))
        assert len(files) == 1
        entry = json.loads(files[0].read_text().splitlines()[-1])
        assert entry["message"] == "GET failed"
        assert entry["retry_times"] == 2


class TestRetention:
    def test_old_logs_are_compressed_then_deleted(self, tmp_path: Path):
        old = time.time() - 10 * 86400
        stale_log = tmp_path / "typedapi-20200101.jsonl"
        stale_log.write_text("{}\n")
        os.utime(stale_log, (old, old))
        stale_archive = tmp_path / "typedapi-20190101.jsonl.gz"
        stale_archive.write_bytes(b"")
        os.utime(stale_archive, (old, old))
        fresh = tmp_path / "typedapi-today.jsonl"
        fresh.write_text("{}\n")

        actions = _cleanup_logs(tmp_path, retention_days=7)

        assert not stale_log.exists()
        assert not stale_archive.exists()
        assert fresh.exists()
        assert any(action.startswith("Compressed") for action in actions)
        assert any(action.startswith("Deleted") for action in actions)
