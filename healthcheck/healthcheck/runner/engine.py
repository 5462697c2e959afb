"""Test runner: the orchestrator for a healthcheck pass.

The :class:`TestRunner` resolves the requested groups into checks,
expands them against the database catalog, runs every (check, database)
pair and returns a :class:`PassSummary`.  Every report line goes through
the :class:`ReportManager` handed to it by the caller.

A pass runs in two phases:

1. One task per catalog entry runs that entry's single-database checks
   one after another.  At most ``max_concurrency`` entries are worked on
   at once.  Check bodies run on the runner's own worker threads, and a
   run's timeout is counted from the moment its body starts.
2. Database-independent and cross-database checks run once each, in
   registration order, after every per-database run has finished.

Failures inside a check are recorded as data.  Only configuration and
catalog errors raised by :func:`prepare_pass` reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from healthcheck.catalog.entry import DatabaseEntry, ServerRole
from healthcheck.catalog.registry import DatabaseRegistry
from healthcheck.catalog.server import ConnectionPool, DatabaseServer, open_server
from healthcheck.checks.base import BaseCheck
from healthcheck.checks.context import CheckContext
from healthcheck.checks.models import Applicability, RepairMode
from healthcheck.checks.registry import CheckRegistry
from healthcheck.config import Settings
from healthcheck.errors import CheckExecutionError, ConfigurationError
from healthcheck.report.manager import ReportManager
from healthcheck.report.models import NO_DATABASE, PassSummary, RunOutcome, RunResult, Timer

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Worker threads kept beyond the concurrency limit for bodies that
# outlived their timeout and still hold a thread.
SPARE_WORKERS = 4


class _RunTimedOut(Exception):
    """Raised by :meth:`TestRunner._call` when a check body overruns."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Check did not finish within {timeout:g} seconds")


def _consume_abandoned(task: asyncio.Future[object]) -> None:
    # Result of a body that outlived its timeout; nobody awaits it.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned check body finished with %s: %s", type(exc).__name__, exc)


class TestRunner:
    """Runs selected checks against a database catalog.

    Parameters
    ----------
    checks:
        Registry the requested groups are resolved against.
    reports:
        Sink for every report line of the pass.
    repair_mode:
        What to do with the repair actions of failed checks.
    skip_slow:
        Record checks flagged as slow as SKIPPED instead of running them.
    check_timeout:
        Seconds a single-database body may run, counted from when it starts,
        before it is abandoned and marked FAILED.  ``None`` disables the limit.
    max_concurrency:
        Number of databases worked on at once.  Defaults to the capacity
        of the connection pool passed to :meth:`run`.
    """

    # Not a pytest test class despite the name.
    __test__ = False

    def __init__(
        self,
        checks: CheckRegistry,
        reports: ReportManager,
        *,
        repair_mode: RepairMode = RepairMode.OFF,
        skip_slow: bool = False,
        check_timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        if check_timeout is not None and check_timeout <= 0:
            raise ConfigurationError(f"Check timeout must be positive, got {check_timeout}.")
        if max_concurrency is not None and max_concurrency < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {max_concurrency}.")
        self._checks = checks
        self._reports = reports
        self._repair_mode = repair_mode
        self._skip_slow = skip_slow
        self._check_timeout = check_timeout
        self._max_concurrency = max_concurrency
        self._cancel_event = threading.Event()
        self._results: dict[tuple[str, str | None], RunResult] = {}
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    @property
    def reports(self) -> ReportManager:
        return self._reports

    @property
    def results(self) -> list[RunResult]:
        """Results recorded so far in the current or last pass."""
        with self._lock:
            return list(self._results.values())

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Request cooperative cancellation.

        Runs already in flight finish normally; no new run starts.  A
        cancelled runner stays cancelled.
        """
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested; waiting for in-flight checks")
        self._cancel_event.set()

    # -- pass --------------------------------------------------------------

    async def run(
        self,
        catalog: DatabaseRegistry | Sequence[DatabaseEntry],
        pool: ConnectionPool,
        groups: Iterable[str],
    ) -> PassSummary:
        """Run every check in *groups* against *catalog*.

        The pool is closed when the pass ends, whatever the outcome.

        Parameters
        ----------
        catalog:
            Databases to check.
        pool:
            Connection pool for the catalog's servers.
        groups:
            Group names (or check names) selecting the checks to run.

        Returns
        -------
        PassSummary
            One result per (check, database) pair that was planned and
            reached a terminal state.
        """
        timer = Timer()
        timer.start()
        self._results = {}
        entries = list(catalog)
        concurrency = self._max_concurrency or pool.capacity
        self._executor = ThreadPoolExecutor(
            max_workers=concurrency + SPARE_WORKERS,
            thread_name_prefix="healthcheck-check",
        )

        try:
            per_entry, global_checks, skipped = self._plan(entries, groups)
            for check, reason in skipped:
                self._reports.start_run(check, None)
                line = self._reports.finish_run(check, None, RunOutcome.SKIPPED, reason)
                self._record(
                    RunResult(
                        check_name=check.short_name,
                        outcome=RunOutcome.SKIPPED,
                        lines=[line],
                        reason=reason,
                    )
                )

            semaphore = asyncio.Semaphore(concurrency)
            entry_tasks = [
                asyncio.create_task(self._run_entry(entry, entry_checks, entries, pool, semaphore))
                for entry, entry_checks in per_entry
            ]
            await self._drive(entry_tasks)

            if global_checks and not self.cancelled:
                await self._drive([asyncio.create_task(self._run_global(global_checks, entries, pool))])
        finally:
            pool.close_all()
            # Abandoned bodies keep their threads until they return.
            self._executor.shutdown(wait=False)
            self._executor = None

        summary = PassSummary.from_results(
            list(self._results.values()),
            catalog_size=len(entries),
            cancelled=self.cancelled,
            duration_ms=timer.elapsed_ms(),
        )
        logger.info(
            "Pass finished: %d run(s), %d passed, %d failed, %d skipped in %d ms",
            summary.total,
            summary.passed,
            summary.failed,
            summary.skipped,
            summary.duration_ms,
        )
        return summary

    def _plan(
        self,
        entries: list[DatabaseEntry],
        groups: Iterable[str],
    ) -> tuple[list[tuple[DatabaseEntry, list[BaseCheck]]], list[BaseCheck], list[tuple[BaseCheck, str]]]:
        """Split the selected checks into per-entry work, global work and skips."""
        checks = self._checks.resolve_groups(groups)
        per_entry: list[list[BaseCheck]] = [[] for _ in entries]
        global_checks: list[BaseCheck] = []
        skipped: list[tuple[BaseCheck, str]] = []

        for check in checks:
            descriptor = check.descriptor
            if descriptor.slow and self._skip_slow:
                skipped.append((check, "slow check skipped"))
                continue
            if descriptor.applicability == Applicability.SINGLE_DATABASE:
                targets = [i for i, entry in enumerate(entries) if check.applies_to(entry)]
                if not targets:
                    skipped.append((check, "no applicable databases"))
                for i in targets:
                    per_entry[i].append(check)
            elif descriptor.applicability == Applicability.MULTI_DATABASE and not entries:
                skipped.append((check, "no databases in catalog"))
            else:
                global_checks.append(check)

        logger.debug(
            "Planned %d check(s): %d global, %d skipped, over %d database(s)",
            len(checks),
            len(global_checks),
            len(skipped),
            len(entries),
        )
        work = [(entry, entry_checks) for entry, entry_checks in zip(entries, per_entry) if entry_checks]
        return work, global_checks, skipped

    async def _drive(self, tasks: list[asyncio.Task[None]]) -> None:
        """Wait for *tasks*; on cancellation stop scheduling, drain, re-raise."""
        if not tasks:
            return
        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            self.cancel()
            await self._drain(tasks)
            raise
        for task in tasks:
            task.result()

    async def _drain(self, tasks: list[asyncio.Task[None]]) -> None:
        pending = [t for t in tasks if not t.done()]
        if pending:
            logger.info("Draining %d in-flight task(s)", len(pending))
            await asyncio.wait(pending)

    async def _run_entry(
        self,
        entry: DatabaseEntry,
        checks: list[BaseCheck],
        catalog: list[DatabaseEntry],
        pool: ConnectionPool,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            for check in checks:
                if self.cancelled:
                    return
                await self._execute(check, entry, catalog, pool, timeout=self._check_timeout)

    async def _run_global(
        self,
        checks: list[BaseCheck],
        catalog: list[DatabaseEntry],
        pool: ConnectionPool,
    ) -> None:
        for check in checks:
            if self.cancelled:
                return
            await self._execute(check, None, catalog, pool, timeout=None)

    # -- single run --------------------------------------------------------

    async def _execute(
        self,
        check: BaseCheck,
        entry: DatabaseEntry | None,
        catalog: list[DatabaseEntry],
        pool: ConnectionPool,
        *,
        timeout: float | None,
    ) -> RunResult:
        db_name = entry.name if entry is not None else None
        context = CheckContext(check, self._reports, entry=entry, catalog=catalog, pool=pool)
        timer = Timer()
        timer.start()
        self._reports.start_run(check, entry)

        reason = ""
        repaired = False
        timed_out = False
        try:
            passed = await self._call(check.run, context, timeout=timeout)
            outcome = RunOutcome.PASSED if passed else RunOutcome.FAILED
        except _RunTimedOut as exc:
            timed_out = True
            outcome = RunOutcome.FAILED
            reason = str(exc)
            context.problem(reason)
            context.expire()
            if entry is not None:
                pool.discard(entry)
            logger.warning(
                "Check %s timed out on %s",
                check.short_name,
                db_name or NO_DATABASE,
                extra={"check": check.short_name, "database": db_name},
            )
        except Exception as exc:
            error = CheckExecutionError.from_exception(check.short_name, db_name, exc)
            outcome = RunOutcome.FAILED
            reason = str(error)
            context.problem(f"Check {check.short_name} failed on {db_name or NO_DATABASE}: {error}")
            logger.warning(
                "Check %s raised on %s: %s",
                check.short_name,
                db_name or NO_DATABASE,
                error,
                exc_info=logger.isEnabledFor(logging.DEBUG),
                extra={"check": check.short_name, "database": db_name},
            )

        if (
            outcome == RunOutcome.FAILED
            and not timed_out
            and self._repair_mode != RepairMode.OFF
            and check.can_repair
        ):
            repaired = await self._repair(check, context)

        if not timed_out:
            await self._call(context.finish, timeout=None)

        lines = context.lines
        lines.append(self._reports.finish_run(check, entry, outcome, reason))
        result = RunResult(
            check_name=check.short_name,
            database_name=db_name,
            outcome=outcome,
            lines=lines,
            reason=reason,
            duration_ms=timer.elapsed_ms(),
            repaired=repaired,
        )
        self._record(result)
        return result

    async def _call(self, fn: Callable[..., T], *args: object, timeout: float | None) -> T:
        """Run *fn* on the runner's worker threads, giving up after *timeout* seconds.

        The clock starts when *fn* starts, not when it is queued.  The
        thread of an abandoned call cannot be interrupted; it runs to
        completion in the background and its result is discarded.
        """
        loop = asyncio.get_running_loop()
        if timeout is None:
            return await loop.run_in_executor(self._executor, fn, *args)

        started = asyncio.Event()

        def body() -> T:
            loop.call_soon_threadsafe(started.set)
            return fn(*args)

        task = loop.run_in_executor(self._executor, body)
        waiter = asyncio.ensure_future(started.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if not task.done():
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                task.add_done_callback(_consume_abandoned)
                raise _RunTimedOut(timeout)
        return task.result()

    async def _repair(self, check: BaseCheck, context: CheckContext) -> bool:
        """Show or apply the repair actions of a failed run.

        Returns True when actions were applied.  Repair errors are reported
        and never change the run's outcome.
        """
        try:
            actions = await self._call(check.repair_actions, context, timeout=None)
            if not actions:
                return False
            if self._repair_mode == RepairMode.SHOW_ONLY:
                for action in actions:
                    context.info(f"Repair (not applied): {action.description}: {action.sql}")
                return False
            await self._call(check.apply_repair, context, actions, timeout=None)
            for action in actions:
                context.info(f"Repair applied: {action.description}")
            logger.info("Applied %d repair(s) for %s", len(actions), check.short_name)
            return True
        except Exception as exc:
            error = CheckExecutionError.from_exception(check.short_name, context.database_name, exc)
            context.problem(f"Repair failed: {error}")
            logger.warning("Repair for %s failed: %s", check.short_name, error)
            return False

    def _record(self, result: RunResult) -> bool:
        """Store *result*; a second result for the same pair is refused."""
        with self._lock:
            if result.key in self._results:
                logger.error(
                    "Refusing duplicate result for %s on %s",
                    result.check_name,
                    result.database_name or NO_DATABASE,
                )
                return False
            self._results[result.key] = result
            return True


# ---------------------------------------------------------------------------
# Pass helpers
# ---------------------------------------------------------------------------


def prepare_pass(settings: Settings) -> tuple[DatabaseRegistry, ConnectionPool]:
    """Open the configured servers and build the catalog for a pass.

    Raises
    ------
    ConfigurationError
        If no server is configured or a pattern is invalid.
    CatalogBuildError
        If a server cannot be enumerated.
    """
    primary = open_server(settings.server_url, ServerRole.PRIMARY)
    secondary: DatabaseServer | None = None
    if settings.secondary_server_url:
        secondary = open_server(settings.secondary_server_url, ServerRole.SECONDARY)

    try:
        catalog = DatabaseRegistry.build(
            primary,
            settings.database_patterns,
            secondary_server=secondary,
            secondary_patterns=settings.secondary_database_patterns,
            forced_type=settings.forced_type,
            forced_species=settings.forced_species,
        )
    except Exception:
        primary.dispose()
        if secondary is not None:
            secondary.dispose()
        raise

    if secondary is None and settings.secondary_database_patterns:
        # Secondary entries were enumerated on the primary server.
        pool = ConnectionPool(primary, primary, capacity=settings.max_concurrency)
    else:
        pool = ConnectionPool(primary, secondary, capacity=settings.max_concurrency)
    return catalog, pool


async def run_pass(
    settings: Settings,
    checks: CheckRegistry,
    reports: ReportManager,
    groups: Iterable[str],
) -> PassSummary:
    """Build the catalog from *settings* and run *groups* against it."""
    catalog, pool = prepare_pass(settings)
    runner = TestRunner(
        checks,
        reports,
        repair_mode=settings.repair_mode,
        skip_slow=settings.skip_slow,
        check_timeout=settings.check_timeout_seconds,
        max_concurrency=settings.max_concurrency,
    )
    return await runner.run(catalog, pool, groups)
