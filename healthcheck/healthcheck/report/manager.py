"""Report manager: the single sink for every report line of a pass.

A :class:`ReportManager` is constructed by the top-level run and handed
to the runner and to every check invocation context.  It keeps the
cumulative, append-only stream of :class:`ReportLine` objects, forwards
each one to the active :class:`Reporter` (if any) for live output, and
provides the grouped views used for the final report.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from healthcheck.report.models import NO_DATABASE, ReportLine, RunOutcome, Severity

if TYPE_CHECKING:
    from healthcheck.catalog.entry import DatabaseEntry
    from healthcheck.checks.base import BaseCheck

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Push interface for a presentation layer (live console echo etc.)."""

    def on_message(self, line: ReportLine) -> None:
        """Called synchronously for every emitted line."""
        ...

    def on_run_start(self, check_name: str, database_name: str | None) -> None:
        """Called just before a check runs against a database (or none)."""
        ...

    def on_run_finish(self, check_name: str, database_name: str | None, outcome: RunOutcome) -> None:
        """Called once a run has reached its terminal state."""
        ...


def check_name_of(check: BaseCheck | str) -> str:
    return check if isinstance(check, str) else check.short_name


def database_name_of(database: DatabaseEntry | str | None) -> str:
    if database is None:
        return NO_DATABASE
    return database if isinstance(database, str) else database.name


def _group(lines: list[ReportLine], key: Callable[[ReportLine], str]) -> dict[str, list[ReportLine]]:
    grouped: dict[str, list[ReportLine]] = {}
    for line in lines:
        grouped.setdefault(key(line), []).append(line)
    # sorted() is stable, so lines of equal severity keep emission order.
    return {k: sorted(grouped[k], key=lambda ln: ln.severity, reverse=True) for k in sorted(grouped)}


class ReportManager:
    """Thread-safe, append-only sink for report lines.

    Parameters
    ----------
    reporter:
        Optional reporter notified of every line and run transition.
    """

    def __init__(self, reporter: Reporter | None = None) -> None:
        self._lines: list[ReportLine] = []
        self._reporter = reporter
        self._lock = threading.RLock()

    # -- reporter ----------------------------------------------------------

    @property
    def reporter(self) -> Reporter | None:
        return self._reporter

    def set_reporter(self, reporter: Reporter | None) -> None:
        """Install the active reporter, replacing any previous one."""
        with self._lock:
            self._reporter = reporter

    # -- emission ----------------------------------------------------------

    def emit(self, line: ReportLine) -> None:
        """Append *line* to the stream and notify the reporter.

        Safe to call from concurrent check executions: lines are never
        interleaved or lost, and lines from one run keep emission order.
        """
        with self._lock:
            self._lines.append(line)
            if self._reporter is not None:
                try:
                    self._reporter.on_message(line)
                except Exception:
                    logger.warning("Reporter failed to handle a report line", exc_info=True)

    def report(
        self,
        severity: Severity,
        check: BaseCheck | str,
        database: DatabaseEntry | str | None,
        message: str,
    ) -> ReportLine:
        """Build a :class:`ReportLine` and emit it."""
        line = ReportLine(
            severity=severity,
            message=message,
            check_name=check_name_of(check),
            database_name=database_name_of(database),
        )
        self.emit(line)
        return line

    def correct(self, check: BaseCheck | str, database: DatabaseEntry | str | None, message: str) -> ReportLine:
        return self.report(Severity.CORRECT, check, database, message)

    def info(self, check: BaseCheck | str, database: DatabaseEntry | str | None, message: str) -> ReportLine:
        return self.report(Severity.INFO, check, database, message)

    def warning(self, check: BaseCheck | str, database: DatabaseEntry | str | None, message: str) -> ReportLine:
        return self.report(Severity.WARNING, check, database, message)

    def problem(self, check: BaseCheck | str, database: DatabaseEntry | str | None, message: str) -> ReportLine:
        return self.report(Severity.PROBLEM, check, database, message)

    # -- run lifecycle -----------------------------------------------------

    def start_run(self, check: BaseCheck | str, database: DatabaseEntry | str | None) -> None:
        reporter = self._reporter
        if reporter is None:
            return
        db_name = None if database is None else database_name_of(database)
        with self._lock:
            try:
                reporter.on_run_start(check_name_of(check), db_name)
            except Exception:
                logger.warning("Reporter failed to handle run start", exc_info=True)

    def finish_run(
        self,
        check: BaseCheck | str,
        database: DatabaseEntry | str | None,
        outcome: RunOutcome,
        reason: str = "",
    ) -> ReportLine:
        """Emit the SUMMARY line for a run and notify the reporter."""
        message = outcome.value if not reason else f"{outcome.value}: {reason}"
        line = self.report(Severity.SUMMARY, check, database, message)
        reporter = self._reporter
        if reporter is not None:
            db_name = None if database is None else database_name_of(database)
            with self._lock:
                try:
                    reporter.on_run_finish(check_name_of(check), db_name, outcome)
                except Exception:
                    logger.warning("Reporter failed to handle run finish", exc_info=True)
        return line

    # -- views -------------------------------------------------------------

    def lines(self) -> list[ReportLine]:
        """Snapshot of every line emitted so far, in emission order."""
        with self._lock:
            return list(self._lines)

    def lines_for(self, check: BaseCheck | str, database: DatabaseEntry | str | None = None) -> list[ReportLine]:
        check_name = check_name_of(check)
        db_name = database_name_of(database)
        return [ln for ln in self.lines() if ln.check_name == check_name and ln.database_name == db_name]

    def count_by_severity(self) -> dict[Severity, int]:
        counts = Counter(ln.severity for ln in self.lines())
        return {severity: counts.get(severity, 0) for severity in Severity}

    def has_problems(self) -> bool:
        return any(ln.severity == Severity.PROBLEM for ln in self.lines())

    def aggregate_by_check(self, min_severity: Severity = Severity.SUMMARY) -> dict[str, list[ReportLine]]:
        """Group lines at or above *min_severity* by check short name.

        Keys are sorted; each group is sorted by descending severity.
        """
        lines = [ln for ln in self.lines() if ln.severity >= min_severity]
        return _group(lines, lambda ln: ln.check_name)

    def aggregate_by_database(self, min_severity: Severity = Severity.SUMMARY) -> dict[str, list[ReportLine]]:
        """Group lines at or above *min_severity* by database name verbatim."""
        lines = [ln for ln in self.lines() if ln.severity >= min_severity]
        return _group(lines, lambda ln: ln.database_name)

    def clear(self) -> None:
        """Drop every line, ready for a new pass."""
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
