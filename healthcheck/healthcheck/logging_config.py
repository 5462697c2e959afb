"""Logging setup for the engine and the command line.

Two formats are available: the plain text format used for interactive
runs, and one JSON object per line for runs whose logs are collected by
an aggregator.  Enable the latter with ``HEALTHCHECK_STRUCTURED_LOGGING``
or ``--structured-logs``.

JSON output schema per line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "WARNING",
        "logger": "healthcheck.runner.engine",
        "message": "Check MetaTableCheck timed out on homo_sapiens_core_90_38",
        "check": "MetaTableCheck",        // present when passed via extra=
        "database": "homo_sapiens_core_90_38",
        "exc_info": "Traceback ..."       // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

TEXT_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in ("check", "database"):
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(debug: bool = False, structured: bool = False) -> None:
    """Install a stderr handler on the root logger.

    Parameters
    ----------
    debug:
        Log at DEBUG instead of WARNING.
    structured:
        Emit JSON lines instead of the text format.
    """
    level = logging.DEBUG if debug else logging.WARNING

    if not structured:
        # basicConfig is a no-op when the root logger already has handlers.
        logging.basicConfig(level=level, format=TEXT_FORMAT, stream=sys.stderr)
        logging.getLogger().setLevel(level)
        return

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    logging.getLogger(__name__).debug("Structured JSON logging enabled")
