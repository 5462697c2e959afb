"""Rich output formatting for the healthcheck CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from healthcheck.catalog.entry import DatabaseEntry
from healthcheck.checks.registry import CheckRegistry
from healthcheck.report.formatting import break_line, severity_label
from healthcheck.report.manager import ReportManager
from healthcheck.report.models import (
    NO_DATABASE,
    OutputLevel,
    PassSummary,
    ReportLine,
    RunOutcome,
    Severity,
)

# Report lines are printed as "    PROBLEM:  message"; continuation lines
# are indented to the start of the message.
_LINE_PREFIX = "    "
_HANGING_INDENT = " " * 14

# ---------------------------------------------------------------------------
# Colour mapping
# ---------------------------------------------------------------------------

_OUTCOME_COLOURS: dict[RunOutcome, str] = {
    RunOutcome.PASSED: "green",
    RunOutcome.FAILED: "red",
    RunOutcome.SKIPPED: "dim",
}

_SEVERITY_COLOURS: dict[Severity, str] = {
    Severity.PROBLEM: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
    Severity.CORRECT: "green",
    Severity.SUMMARY: "dim",
}


def _coloured_outcome(outcome: RunOutcome) -> str:
    colour = _OUTCOME_COLOURS[outcome]
    return f"[{colour}]{outcome.value}[/{colour}]"


def _format_line(line: ReportLine, width: int) -> str:
    colour = _SEVERITY_COLOURS[line.severity]
    message = escape(break_line(line.message, width, _HANGING_INDENT))
    return f"{_LINE_PREFIX}[{colour}]{severity_label(line.severity)}[/{colour}]:  {message}"


def check_outcome(summary: PassSummary, check_name: str) -> RunOutcome:
    """Overall outcome of a check: FAILED if any run failed, SKIPPED if none ran."""
    outcomes = {r.outcome for r in summary.results_for(check_name)}
    if RunOutcome.FAILED in outcomes:
        return RunOutcome.FAILED
    if RunOutcome.PASSED in outcomes:
        return RunOutcome.PASSED
    return RunOutcome.SKIPPED


# ---------------------------------------------------------------------------
# Live reporter
# ---------------------------------------------------------------------------


class RichReporter:
    """Prints one status line per finished run and tallies report lines.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    output_level:
        Nothing is printed at :attr:`OutputLevel.NONE`.
    """

    def __init__(self, console: Console, output_level: OutputLevel = OutputLevel.PROBLEM) -> None:
        self._console = console
        self._quiet = output_level == OutputLevel.NONE
        self.counts: Counter[Severity] = Counter()

    def on_message(self, line: ReportLine) -> None:
        self.counts[line.severity] += 1

    def on_run_start(self, check_name: str, database_name: str | None) -> None:
        pass

    def on_run_finish(self, check_name: str, database_name: str | None, outcome: RunOutcome) -> None:
        if self._quiet:
            return
        target = f" [dim]\\[{escape(database_name)}][/dim]" if database_name else ""
        self._console.print(f"{escape(check_name)}{target} {_coloured_outcome(outcome)}", highlight=False)


# ---------------------------------------------------------------------------
# Pass reports
# ---------------------------------------------------------------------------


def display_reports_by_check(
    console: Console,
    reports: ReportManager,
    summary: PassSummary,
    *,
    output_level: OutputLevel = OutputLevel.PROBLEM,
    line_length: int = 65,
    registry: CheckRegistry | None = None,
    failure_text: bool = True,
) -> None:
    """Render the report lines grouped by check, then by database.

    Parameters
    ----------
    console:
        Rich console to write to.
    reports:
        Report manager holding the lines of the pass.
    summary:
        Summary of the pass, used for each check's overall outcome.
    output_level:
        Lowest severity shown.
    line_length:
        Column at which messages are broken; 0 disables breaking.
    registry:
        Registry used to look up the description shown under a failed
        check when *failure_text* is set.
    """
    threshold = output_level.threshold
    if threshold is None:
        return

    console.print("\n[bold]Results by check[/bold]")
    by_check = reports.aggregate_by_check(threshold)
    for result_check in sorted({r.check_name for r in summary.results}):
        outcome = check_outcome(summary, result_check)
        lines = by_check.get(result_check, [])
        if not lines and outcome != RunOutcome.FAILED:
            continue

        console.print(f"\n[bold]{escape(result_check)}[/bold] {_coloured_outcome(outcome)}", highlight=False)
        if failure_text and outcome == RunOutcome.FAILED and registry is not None:
            check = registry.get(result_check)
            if check is not None and check.description:
                text = break_line(check.description, line_length, "  ")
                console.print(f"  [dim italic]{escape(text)}[/dim italic]", soft_wrap=True, highlight=False)

        last_database: str | None = None
        for line in sorted(lines, key=lambda ln: ln.database_name):
            if line.database_name != last_database:
                label = "(no database)" if line.database_name == NO_DATABASE else line.database_name
                console.print(f"  {escape(label)}", highlight=False)
                last_database = line.database_name
            console.print(_format_line(line, line_length), soft_wrap=True, highlight=False)


def display_reports_by_database(
    console: Console,
    reports: ReportManager,
    *,
    output_level: OutputLevel = OutputLevel.PROBLEM,
    line_length: int = 65,
) -> None:
    """Render the report lines grouped by database, then by check."""
    threshold = output_level.threshold
    if threshold is None:
        return

    console.print("\n[bold]Results by database[/bold]")
    for database, lines in reports.aggregate_by_database(threshold).items():
        label = "(no database)" if database == NO_DATABASE else database
        console.print(f"\n[bold]{escape(label)}[/bold]", highlight=False)
        last_check: str | None = None
        for line in sorted(lines, key=lambda ln: ln.check_name):
            if line.check_name != last_check:
                console.print(f"  {escape(line.check_name)}", highlight=False)
                last_check = line.check_name
            console.print(_format_line(line, line_length), soft_wrap=True, highlight=False)


def display_pass_summary(console: Console, summary: PassSummary) -> None:
    """Render the one-line tally of a pass."""
    parts: list[str] = [f"[bold]{summary.total}[/bold] run(s) on {summary.catalog_size} database(s)"]
    if summary.passed:
        parts.append(f"[green]{summary.passed} passed[/green]")
    if summary.failed:
        parts.append(f"[red]{summary.failed} failed[/red]")
    if summary.skipped:
        parts.append(f"[dim]{summary.skipped} skipped[/dim]")
    if summary.cancelled:
        parts.append("[yellow]cancelled[/yellow]")
    parts.append(f"{summary.duration_ms}ms")
    console.print("\n" + " | ".join(parts))


# ---------------------------------------------------------------------------
# Catalog and check listings
# ---------------------------------------------------------------------------


def display_database_table(console: Console, entries: Sequence[DatabaseEntry], *, title: str = "Databases") -> None:
    """Render a table of catalog entries with their inferred metadata."""
    if not entries:
        console.print("[dim]No databases matched.[/dim]")
        return

    table = Table(title=f"{title} ({len(entries)})", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Name", style="bold")
    table.add_column("Species")
    table.add_column("Type")
    table.add_column("Version", justify="right")
    table.add_column("Secondary")

    for entry in entries:
        table.add_row(
            entry.name,
            entry.species.value,
            entry.database_type.value,
            str(entry.schema_version) if entry.schema_version is not None else "-",
            entry.secondary.name if entry.secondary is not None else "-",
        )

    console.print(table)


def display_check_table(console: Console, registry: CheckRegistry) -> None:
    """Render every registered check and the membership of each group."""
    checks = registry.find_all()
    if not checks:
        console.print("[dim]No checks registered.[/dim]")
        return

    table = Table(title=f"Checks ({len(checks)})", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Name", style="bold")
    table.add_column("Groups")
    table.add_column("Team")
    table.add_column("Applies to")
    table.add_column("Slow", justify="center")

    for check in checks:
        descriptor = check.descriptor
        table.add_row(
            descriptor.name,
            ", ".join(sorted(descriptor.groups)) or "-",
            descriptor.team.value,
            descriptor.applicability.value,
            "yes" if descriptor.slow else "",
        )
    console.print(table)

    groups = Table(title="Groups", show_lines=False, pad_edge=True, expand=False)
    groups.add_column("Group", style="bold")
    groups.add_column("Checks")
    for group, names in registry.groups().items():
        groups.add_row(group, ", ".join(names))
    console.print(groups)
