"""Unit tests for log formatting and setup."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from healthcheck.logging_config import JSONFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="healthcheck.runner.engine",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Check %s timed out",
        args=("Meta",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture()
def _restore_root() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        payload = json.loads(JSONFormatter().format(_record()))
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "healthcheck.runner.engine"
        assert payload["message"] == "Check Meta timed out"
        assert "timestamp" in payload
        assert "check" not in payload
        assert "exc_info" not in payload

    def test_check_and_database_extras(self) -> None:
        payload = json.loads(JSONFormatter().format(_record(check="Meta", database="homo_sapiens_core_90_38")))
        assert payload["check"] == "Meta"
        assert payload["database"] == "homo_sapiens_core_90_38"

    def test_exception_included(self) -> None:
        try:
            raise ValueError("bad meta")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        payload = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad meta" in payload["exc_info"]


@pytest.mark.usefixtures("_restore_root")
class TestConfigureLogging:
    def test_structured_installs_json_handler(self) -> None:
        configure_logging(debug=True, structured=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_text_mode_sets_level(self) -> None:
        configure_logging(debug=False)
        assert logging.getLogger().level == logging.WARNING
