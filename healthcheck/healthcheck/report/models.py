"""Result model for the healthcheck engine.

Defines report line severities, the output threshold levels, a single
report line, the outcome of one (check, database) run and the summary of
a whole pass.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field

# Database name recorded on lines emitted by database-independent runs.
NO_DATABASE = "-"


class Severity(IntEnum):
    """Ordered severity of a report line.

    ``SUMMARY`` is the meta level used for the per-run pass/fail line.
    """

    SUMMARY = 0
    CORRECT = 1
    INFO = 2
    WARNING = 3
    PROBLEM = 4


class OutputLevel(str, Enum):
    """Minimum severity a presentation layer shows."""

    ALL = "all"
    CORRECT = "correct"
    INFO = "info"
    WARNING = "warning"
    PROBLEM = "problem"
    NONE = "none"

    @property
    def threshold(self) -> Severity | None:
        """Lowest severity shown, or ``None`` when nothing is shown."""
        return _THRESHOLDS[self]

    def shows(self, severity: Severity) -> bool:
        threshold = self.threshold
        return threshold is not None and severity >= threshold


_THRESHOLDS: dict[OutputLevel, Severity | None] = {
    OutputLevel.ALL: Severity.SUMMARY,
    OutputLevel.CORRECT: Severity.CORRECT,
    OutputLevel.INFO: Severity.INFO,
    OutputLevel.WARNING: Severity.WARNING,
    OutputLevel.PROBLEM: Severity.PROBLEM,
    OutputLevel.NONE: None,
}


class ReportLine(BaseModel):
    """One severity-classified message attributed to a check and database."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(..., description="How serious the message is.")
    message: str = Field(..., description="Free-text message.")
    check_name: str = Field(..., description="Short name of the originating check.")
    database_name: str = Field(
        default=NO_DATABASE,
        description="Originating database, or '-' for database-independent runs.",
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Emission time (UTC).")


class RunOutcome(str, Enum):
    """Terminal state of a single (check, database) run."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RunResult(BaseModel):
    """The outcome of running one check against one database (or none)."""

    check_name: str = Field(..., description="Short name of the check.")
    database_name: str | None = Field(
        default=None,
        description="Target database; None for database-independent, cross-database or skipped-check runs.",
    )
    outcome: RunOutcome = Field(..., description="Terminal state of the run.")
    lines: list[ReportLine] = Field(default_factory=list, description="Report lines emitted during the run, in order.")
    reason: str = Field(default="", description="Why the run was skipped or failed, when known.")
    duration_ms: int = Field(default=0, description="Execution time in milliseconds.")
    repaired: bool = Field(default=False, description="True when repair actions were applied.")

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.check_name, self.database_name)

    @property
    def passed(self) -> bool:
        return self.outcome == RunOutcome.PASSED


class PassSummary(BaseModel):
    """Aggregated outcome of one orchestration pass."""

    total: int = Field(default=0, description="Number of recorded runs.")
    passed: int = Field(default=0, description="Runs that passed.")
    failed: int = Field(default=0, description="Runs that failed.")
    skipped: int = Field(default=0, description="Runs that were skipped.")
    catalog_size: int = Field(default=0, description="Number of databases in the catalog.")
    cancelled: bool = Field(default=False, description="True when the pass stopped before every run started.")
    results: list[RunResult] = Field(default_factory=list, description="All runs, sorted deterministically.")
    duration_ms: int = Field(default=0, description="Total pass time in milliseconds.")

    @property
    def succeeded(self) -> bool:
        """True when no run failed and the pass was not cancelled."""
        return self.failed == 0 and not self.cancelled

    def results_for(self, check_name: str) -> list[RunResult]:
        return [r for r in self.results if r.check_name == check_name]

    @staticmethod
    def from_results(
        results: list[RunResult],
        *,
        catalog_size: int = 0,
        cancelled: bool = False,
        duration_ms: int = 0,
    ) -> PassSummary:
        """Build a summary from a list of run results.

        Results are sorted by (check_name, database_name).
        """
        sorted_results = sorted(results, key=lambda r: (r.check_name, r.database_name or ""))

        return PassSummary(
            total=len(sorted_results),
            passed=sum(1 for r in sorted_results if r.outcome == RunOutcome.PASSED),
            failed=sum(1 for r in sorted_results if r.outcome == RunOutcome.FAILED),
            skipped=sum(1 for r in sorted_results if r.outcome == RunOutcome.SKIPPED),
            catalog_size=catalog_size,
            cancelled=cancelled,
            results=sorted_results,
            duration_ms=duration_ms,
        )


class Timer:
    """Simple monotonic timer for measuring run duration."""

    def __init__(self) -> None:
        self._start: float = 0.0

    def start(self) -> None:
        self._start = time.monotonic()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)
