"""``healthcheck run`` -- run check groups against the matched databases.

Human-readable progress and reports go to stderr via Rich; the pass
summary goes to stdout as JSON in ``--json`` mode.  With no groups the
command lists the databases the patterns match and exits.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from healthcheck.catalog.registry import DatabaseRegistry
from healthcheck.catalog.server import ConnectionPool
from healthcheck.checks.builtin import create_default_registry
from healthcheck.checks.models import RepairMode
from healthcheck.config import Settings, load_settings
from healthcheck.errors import CatalogBuildError, ConfigurationError
from healthcheck.report.manager import ReportManager
from healthcheck.report.models import OutputLevel, PassSummary
from healthcheck.runner.engine import TestRunner, prepare_pass
from healthcheck_cli.display import (
    RichReporter,
    display_database_table,
    display_pass_summary,
    display_reports_by_check,
    display_reports_by_database,
)

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def build_settings(**options: Any) -> Settings:
    """Load settings, overriding the environment with every option given.

    Options left at ``None`` fall through to the environment.  Errors are
    printed and turned into exit code 3.
    """
    overrides = {k: v for k, v in options.items() if v is not None}
    try:
        return load_settings(**overrides)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=3) from exc


# ---------------------------------------------------------------------------
# Run command
# ---------------------------------------------------------------------------


def run_command(
    groups: list[str] | None = typer.Argument(
        None,
        help="Groups (or check names) to run. Each check is also in a group named after itself.",
    ),
    database: list[str] | None = typer.Option(
        None,
        "--database",
        "-d",
        help="Regular expression selecting databases; repeatable. COREDBS matches every gene-set database.",
    ),
    secondary_database: list[str] | None = typer.Option(
        None,
        "--d2",
        help="Regular expression selecting databases on the secondary server; repeatable.",
    ),
    server_url: str | None = typer.Option(
        None,
        "--server-url",
        help="SQLAlchemy server URL, or a directory of SQLite files.",
    ),
    secondary_server_url: str | None = typer.Option(
        None,
        "--secondary-server-url",
        help="Secondary server URL or SQLite directory.",
    ),
    species: str | None = typer.Option(
        None,
        "--species",
        help="Use this species for every database instead of inferring it from the name.",
    ),
    database_type: str | None = typer.Option(
        None,
        "--type",
        help="Use this database type for every database instead of inferring it from the name.",
    ),
    output_level: OutputLevel | None = typer.Option(
        None,
        "--output",
        "-o",
        case_sensitive=False,
        help="Lowest severity reported.",
    ),
    repair: bool = typer.Option(
        False,
        "--repair",
        help="Apply the repairs of failed checks that support them.",
    ),
    show_repair: bool = typer.Option(
        False,
        "--show-repair",
        help="Report the repairs of failed checks without applying them.",
    ),
    length: int | None = typer.Option(
        None,
        "--length",
        help="Break report lines at this column (0 = never).",
    ),
    results_by_db: bool = typer.Option(
        False,
        "--results-by-db",
        help="Also print results grouped by database.",
    ),
    no_failure_text: bool = typer.Option(
        False,
        "--no-failure-text",
        help="Do not print the description of failed checks.",
    ),
    skip_slow: bool = typer.Option(
        False,
        "--skip-slow",
        help="Skip long-running checks.",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Seconds one check may run against one database before it is abandoned.",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        help="Number of databases checked at once.",
    ),
) -> None:
    """Run checks against every database matching the patterns.

    Examples::

        healthcheck run release -d 'homo_sapiens_core_.*'
        healthcheck run Meta SchemaVersion -d COREDBS --server-url ./dbs
        healthcheck run release -d COREDBS --show-repair --output all
        healthcheck run -d COREDBS
    """
    from healthcheck_cli.app import _json_output

    if repair and show_repair:
        console.print("[red]--repair and --show-repair are mutually exclusive.[/red]")
        raise typer.Exit(code=3)

    repair_mode = RepairMode.APPLY if repair else RepairMode.SHOW_ONLY if show_repair else None
    settings = build_settings(
        server_url=server_url,
        secondary_server_url=secondary_server_url,
        database_patterns=database,
        secondary_database_patterns=secondary_database,
        species=species,
        database_type=database_type,
        output_level=output_level,
        repair_mode=repair_mode,
        output_line_length=length,
        results_by_database=True if results_by_db else None,
        failure_text=False if no_failure_text else None,
        skip_slow=True if skip_slow else None,
        check_timeout_seconds=timeout,
        max_concurrency=concurrency,
    )

    if not settings.database_patterns:
        console.print("[red]No databases specified; use -d PATTERN.[/red]")
        raise typer.Exit(code=3)

    try:
        catalog, pool = prepare_pass(settings)
    except (ConfigurationError, CatalogBuildError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=3) from exc

    for warning in catalog.warnings:
        console.print(f"[yellow]{escape(warning)}[/yellow]")

    if not groups:
        pool.close_all()
        if _json_output:
            payload = [entry.model_dump(mode="json") for entry in catalog]
            sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
        else:
            console.print(f"Databases matching {escape(', '.join(settings.database_patterns))}:", highlight=False)
            display_database_table(console, catalog.entries)
        return

    if catalog.is_empty:
        console.print("[yellow]No databases matched the given patterns.[/yellow]")

    registry = create_default_registry()
    reporter = None if _json_output else RichReporter(console, settings.output_level)
    reports = ReportManager(reporter)
    runner = TestRunner(
        registry,
        reports,
        repair_mode=settings.repair_mode,
        skip_slow=settings.skip_slow,
        check_timeout=settings.check_timeout_seconds,
        max_concurrency=settings.max_concurrency,
    )

    summary = _run(runner, catalog, pool, groups)
    if summary is None:
        console.print("[yellow]Interrupted; partial results follow.[/yellow]")
        display_reports_by_check(
            console,
            reports,
            PassSummary.from_results(runner.results, catalog_size=len(catalog), cancelled=True),
            output_level=settings.output_level,
            line_length=settings.output_line_length,
        )
        raise typer.Exit(code=1)

    if _json_output:
        sys.stdout.write(json.dumps(summary.model_dump(mode="json"), indent=2, sort_keys=True) + "\n")
    else:
        if settings.results_by_database:
            display_reports_by_database(
                console,
                reports,
                output_level=settings.output_level,
                line_length=settings.output_line_length,
            )
        if settings.results_by_check:
            display_reports_by_check(
                console,
                reports,
                summary,
                output_level=settings.output_level,
                line_length=settings.output_line_length,
                registry=registry,
                failure_text=settings.failure_text,
            )
        display_pass_summary(console, summary)

    # Exit code: 0 = every run passed, 1 = failures found.
    if not summary.succeeded:
        raise typer.Exit(code=1)


def _run(runner: TestRunner, catalog: DatabaseRegistry, pool: ConnectionPool, groups: list[str]) -> PassSummary | None:
    """Run the pass; returns ``None`` when interrupted from the keyboard."""
    try:
        return asyncio.run(runner.run(catalog, pool, groups))
    except KeyboardInterrupt:
        return None
