"""Unit tests for core/logging_config.py — handlers and bound context."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
import structlog

from core.logging_config import (
    LOG_FILE_NAME,
    bind_pipeline_context,
    bind_request_context,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level = root.level
    httpx_level = logging.getLogger("httpx").level
    yield
    # Only drop what setup_logging installed; pytest manages its own handlers.
    for h in root.handlers[:]:
        if type(h) is logging.StreamHandler or isinstance(h, RotatingFileHandler):
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(httpx_level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def _flush() -> None:
    for h in logging.getLogger().handlers:
        h.flush()


class TestSetupLogging:
    def test_console_only(self, restore_logging):
        setup_logging(level="WARNING")
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_json_file_carries_context(self, restore_logging, tmp_path):
        setup_logging(level="DEBUG", log_dir=tmp_path)
        bind_request_context("req-42", "POST", "/api/pipeline/run")
        bind_pipeline_context(session_id="s1")
        logging.getLogger("charforge.test").info("hello %s", "world")
        _flush()

        line = (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8").strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "hello world"
        assert record["request_id"] == "req-42"
        assert record["session_id"] == "s1"
        assert record["logger"] == "charforge.test"

    def test_plain_file(self, restore_logging, tmp_path):
        setup_logging(log_dir=tmp_path, json_file=False)
        logging.getLogger("charforge.test").warning("plain text")
        _flush()
        content = (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")
        assert "plain text" in content
        assert not content.lstrip().startswith("{")

    def test_quiets_third_party(self, restore_logging):
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestBindContext:
    def test_request_context_replaces_previous(self, restore_logging):
        bind_pipeline_context(session_id="old")
        bind_request_context("r1", "GET", "/api/health")
        ctx = structlog.contextvars.get_contextvars()
        assert ctx == {"request_id": "r1", "method": "GET", "path": "/api/health"}
