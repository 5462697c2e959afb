"""Healthcheck CLI application -- Typer-based interface to the engine.

Provides commands to run check groups against a database fleet, to list
the databases a set of patterns matches and to list the available checks.
Human-readable output goes to *stderr* via Rich; machine-readable output
(``--json``) goes to *stdout* so that pipelines can compose cleanly.

Exit codes: 0 when every run passed, 1 when any run failed, 3 on
configuration or catalog errors.
"""

from __future__ import annotations

import json
import sys

import typer
from rich.console import Console
from rich.markup import escape

from healthcheck.checks.builtin import create_default_registry
from healthcheck.errors import CatalogBuildError, ConfigurationError
from healthcheck.logging_config import configure_logging
from healthcheck.runner.engine import prepare_pass
from healthcheck_cli.display import display_check_table, display_database_table

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="healthcheck",
    help="Healthcheck - run integrity checks across a fleet of release databases",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Register the run command.
from healthcheck_cli.commands.run import build_settings, run_command  # noqa: E402

app.command(name="run")(run_command)

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log at DEBUG level.",
        envvar="HEALTHCHECK_DEBUG",
    ),
    structured_logs: bool = typer.Option(
        False,
        "--structured-logs",
        help="Log as single-line JSON objects.",
        envvar="HEALTHCHECK_STRUCTURED_LOGGING",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode
    configure_logging(debug=debug, structured=structured_logs)


# ---------------------------------------------------------------------------
# databases
# ---------------------------------------------------------------------------


@app.command()
def databases(
    database: list[str] = typer.Option(
        ...,
        "--database",
        "-d",
        help="Regular expression selecting databases; repeatable.",
    ),
    secondary_database: list[str] | None = typer.Option(
        None,
        "--d2",
        help="Regular expression selecting databases on the secondary server; repeatable.",
    ),
    server_url: str | None = typer.Option(None, "--server-url", help="Server URL or SQLite directory."),
    secondary_server_url: str | None = typer.Option(
        None,
        "--secondary-server-url",
        help="Secondary server URL or SQLite directory.",
    ),
    species: str | None = typer.Option(None, "--species", help="Species override for every database."),
    database_type: str | None = typer.Option(None, "--type", help="Database type override for every database."),
) -> None:
    """Show the databases the patterns match, with inferred metadata."""
    settings = build_settings(
        server_url=server_url,
        secondary_server_url=secondary_server_url,
        database_patterns=database,
        secondary_database_patterns=secondary_database,
        species=species,
        database_type=database_type,
    )

    try:
        catalog, pool = prepare_pass(settings)
    except (ConfigurationError, CatalogBuildError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=3) from exc
    pool.close_all()

    if _json_output:
        payload = {
            "databases": [entry.model_dump(mode="json") for entry in catalog],
            "unpaired_secondaries": [entry.name for entry in catalog.unpaired_secondaries],
            "warnings": list(catalog.warnings),
        }
        sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
        return

    display_database_table(console, catalog.entries)
    if catalog.unpaired_secondaries:
        display_database_table(console, catalog.unpaired_secondaries, title="Unpaired secondary databases")
    for warning in catalog.warnings:
        console.print(f"[yellow]{escape(warning)}[/yellow]")


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@app.command(name="list")
def list_checks() -> None:
    """Show every available check and the groups it belongs to."""
    registry = create_default_registry()

    if _json_output:
        payload = {
            "checks": [check.descriptor.model_dump(mode="json") for check in registry.find_all()],
            "groups": registry.groups(),
        }
        sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
        return

    display_check_table(console, registry)
