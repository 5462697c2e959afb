"""Invocation context handed to a check for a single run."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

from healthcheck.errors import CheckExecutionError, ConnectionAcquisitionError
from healthcheck.report.models import ReportLine, Severity

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from healthcheck.catalog.entry import DatabaseEntry
    from healthcheck.catalog.server import ConnectionPool
    from healthcheck.checks.base import BaseCheck
    from healthcheck.report.manager import ReportManager

logger = logging.getLogger(__name__)


class CheckContext:
    """Everything one check run may touch.

    Report lines must be emitted through the context so the runner can
    attribute them to this run.  Lines emitted after the run has expired
    (for example by a check thread that outlived its timeout) are dropped.

    Parameters
    ----------
    check:
        The check being run.
    reports:
        The pass-wide report manager.
    entry:
        Target database for single-database runs, otherwise ``None``.
    catalog:
        Every catalog entry of the pass; multi-database checks iterate it.
    pool:
        Connection pool for the pass.  Database-independent runs may omit it.
    """

    def __init__(
        self,
        check: BaseCheck,
        reports: ReportManager,
        *,
        entry: DatabaseEntry | None = None,
        catalog: Sequence[DatabaseEntry] = (),
        pool: ConnectionPool | None = None,
    ) -> None:
        self.check = check
        self.entry = entry
        self.catalog: tuple[DatabaseEntry, ...] = tuple(catalog)
        self._reports = reports
        self._pool = pool
        self._lines: list[ReportLine] = []
        self._touched: dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._expired = False

    @property
    def database_name(self) -> str | None:
        return self.entry.name if self.entry is not None else None

    @property
    def lines(self) -> list[ReportLine]:
        """Lines emitted during this run, in emission order."""
        with self._lock:
            return list(self._lines)

    @property
    def expired(self) -> bool:
        return self._expired

    # -- connections -------------------------------------------------------

    @property
    def connection(self) -> Connection:
        """Connection to the run's own database, opened on first use."""
        if self.entry is None:
            raise CheckExecutionError(
                self.check.short_name,
                None,
                "Check has no target database; use connection_for() with a catalog entry",
            )
        return self.connection_for(self.entry)

    def connection_for(self, entry: DatabaseEntry) -> Connection:
        """Connection to any catalog entry (primary or secondary).

        Raises
        ------
        CheckExecutionError
            If the run has expired; its connections may already serve the
            next run on the same database.
        """
        if self._pool is None:
            raise CheckExecutionError(self.check.short_name, entry.name, "No connection pool available")
        with self._lock:
            if self._expired:
                raise self._expired_error(entry)
        try:
            conn = self._pool.acquire(entry)
        except ConnectionAcquisitionError as exc:
            exc.check_name = self.check.short_name
            raise
        with self._lock:
            # The run may have expired while the connection was being opened.
            if self._expired:
                raise self._expired_error(entry)
            self._touched[f"{entry.server.role.value}:{entry.name}"] = conn
        return conn

    def _expired_error(self, entry: DatabaseEntry) -> CheckExecutionError:
        return CheckExecutionError(self.check.short_name, entry.name, "Run has expired; no new connections")

    # -- reporting ---------------------------------------------------------

    def report(self, severity: Severity, message: str, database: DatabaseEntry | str | None = None) -> None:
        """Emit a line for this check; *database* defaults to the run's entry."""
        target = database if database is not None else self.entry
        with self._lock:
            if self._expired:
                logger.debug("Dropping late report line from %s: %s", self.check.short_name, message)
                return
            line = self._reports.report(severity, self.check, target, message)
            self._lines.append(line)

    def correct(self, message: str, database: DatabaseEntry | str | None = None) -> None:
        self.report(Severity.CORRECT, message, database)

    def info(self, message: str, database: DatabaseEntry | str | None = None) -> None:
        self.report(Severity.INFO, message, database)

    def warning(self, message: str, database: DatabaseEntry | str | None = None) -> None:
        self.report(Severity.WARNING, message, database)

    def problem(self, message: str, database: DatabaseEntry | str | None = None) -> None:
        self.report(Severity.PROBLEM, message, database)

    # -- lifecycle ---------------------------------------------------------

    def expire(self) -> None:
        """Stop accepting report lines and forget the connections used."""
        with self._lock:
            self._expired = True
            self._touched.clear()

    def finish(self) -> None:
        """End any transaction the run left open on its connections."""
        with self._lock:
            touched = list(self._touched.values())
            self._touched.clear()
        for conn in touched:
            try:
                if not conn.closed and conn.in_transaction():
                    conn.rollback()
            except Exception:
                logger.warning("Failed to roll back after %s", self.check.short_name, exc_info=True)
