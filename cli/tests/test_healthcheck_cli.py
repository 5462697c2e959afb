"""Tests for the healthcheck CLI application.

Uses typer.testing.CliRunner against a directory of SQLite files, so the
whole path from option parsing through the engine to the rendered report
is exercised without a database server.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from healthcheck_cli.app import app

runner = CliRunner()

HUMAN = "homo_sapiens_core_90_38"
MOUSE = "mus_musculus_core_90_38"


def _run(*args: str):
    return runner.invoke(app, list(args))


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


class TestList:
    def test_table(self) -> None:
        result = _run("list")
        assert result.exit_code == 0
        for name in ("Meta", "SchemaVersion", "CompareSecondary", "SchemaVersionConsistent"):
            assert name in result.output
        assert "Groups" in result.output

    def test_json(self) -> None:
        result = _run("--json", "list")
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        names = [c["name"] for c in payload["checks"]]
        assert names == ["Meta", "SchemaVersion", "CompareSecondary", "SchemaVersionConsistent"]
        assert "SchemaVersionConsistent" in payload["groups"]["release"]

    def test_no_args_shows_help(self) -> None:
        result = _run()
        assert "run" in result.output
        assert "databases" in result.output


# ---------------------------------------------------------------------------
# databases
# ---------------------------------------------------------------------------


class TestDatabases:
    def test_table(self, server_dir: Path) -> None:
        result = _run("databases", "-d", "homo_sapiens.*", "--server-url", str(server_dir))
        assert result.exit_code == 0
        assert HUMAN in result.output
        assert MOUSE not in result.output

    def test_json(self, server_dir: Path) -> None:
        result = _run("--json", "databases", "-d", ".*_core_.*", "--server-url", str(server_dir))
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [d["name"] for d in payload["databases"]] == [HUMAN, MOUSE]
        assert payload["databases"][0]["database_type"] == "core"
        assert payload["databases"][0]["species"] == "homo_sapiens"
        assert payload["unpaired_secondaries"] == []

    def test_type_override(self, server_dir: Path) -> None:
        result = _run("--json", "databases", "-d", HUMAN, "--server-url", str(server_dir), "--type", "vega")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["databases"][0]["database_type"] == "vega"

    def test_unpaired_secondary(self, server_dir: Path, write_database, tmp_path: Path) -> None:
        secondary = tmp_path / "secondary"
        secondary.mkdir()
        write_database(MOUSE, directory=secondary)
        result = _run(
            "--json",
            "databases",
            "-d",
            HUMAN,
            "--server-url",
            str(server_dir),
            "--d2",
            ".*",
            "--secondary-server-url",
            str(secondary),
        )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["unpaired_secondaries"] == [MOUSE]
        assert len(payload["warnings"]) == 1

    def test_invalid_pattern(self, server_dir: Path) -> None:
        result = _run("databases", "-d", "homo_(core", "--server-url", str(server_dir))
        assert result.exit_code == 3
        assert "Invalid database pattern" in result.output

    def test_missing_server(self) -> None:
        result = _run("databases", "-d", ".*")
        assert result.exit_code == 3
        assert "No primary server configured" in result.output

    def test_unreadable_server(self, tmp_path: Path) -> None:
        result = _run("databases", "-d", ".*", "--server-url", "sqlite:///" + str(tmp_path / "missing" / "x.db"))
        assert result.exit_code == 3


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunValidation:
    def test_patterns_required(self, server_dir: Path) -> None:
        result = _run("run", "release", "--server-url", str(server_dir))
        assert result.exit_code == 3
        assert "No databases specified" in result.output

    def test_repair_flags_exclusive(self, server_dir: Path) -> None:
        result = _run("run", "release", "-d", ".*", "--server-url", str(server_dir), "--repair", "--show-repair")
        assert result.exit_code == 3
        assert "mutually exclusive" in result.output

    def test_unknown_species(self, server_dir: Path) -> None:
        result = _run("run", "release", "-d", ".*", "--server-url", str(server_dir), "--species", "martian")
        assert result.exit_code == 3
        assert "Configuration error" in result.output

    def test_invalid_timeout(self, server_dir: Path) -> None:
        result = _run("run", "release", "-d", ".*", "--server-url", str(server_dir), "--timeout", "0")
        assert result.exit_code == 3

    def test_patterns_from_environment(self, server_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEALTHCHECK_SERVER_URL", str(server_dir))
        monkeypatch.setenv("HEALTHCHECK_DATABASE_PATTERNS", '["homo_sapiens.*"]')
        result = _run("--json", "run")
        assert result.exit_code == 0
        assert [d["name"] for d in json.loads(result.stdout)] == [HUMAN]


class TestRun:
    def test_no_groups_lists_databases(self, server_dir: Path) -> None:
        result = _run("run", "-d", ".*", "--server-url", str(server_dir))
        assert result.exit_code == 0
        assert "Databases matching .*" in result.output
        assert HUMAN in result.output
        assert MOUSE in result.output

    def test_healthy_release(self, server_dir: Path) -> None:
        result = _run("run", "release", "-d", ".*", "--server-url", str(server_dir))
        assert result.exit_code == 0, result.output
        assert f"Meta [{HUMAN}] PASSED" in result.output
        assert "SchemaVersionConsistent PASSED" in result.output
        assert "5 run(s) on 2 database(s)" in result.output

    def test_failure_exits_one(self, server_dir: Path, write_database) -> None:
        write_database(HUMAN, schema_version="89")
        result = _run("run", "SchemaVersion", "-d", ".*", "--server-url", str(server_dir), "--length", "0")
        assert result.exit_code == 1
        assert f"SchemaVersion [{HUMAN}] FAILED" in result.output
        assert "Schema version 89 in meta table does not match database name version 90" in result.output
        assert "Check that the schema_version meta entry" in result.output

    def test_no_failure_text(self, server_dir: Path, write_database) -> None:
        write_database(HUMAN, schema_version="89")
        result = _run("run", "SchemaVersion", "-d", ".*", "--server-url", str(server_dir), "--no-failure-text")
        assert result.exit_code == 1
        assert "Check that the schema_version meta entry" not in result.output

    def test_json_summary(self, server_dir: Path, write_database) -> None:
        write_database(HUMAN, schema_version="89")
        result = _run("--json", "run", "SchemaVersion", "-d", ".*", "--server-url", str(server_dir))
        assert result.exit_code == 1
        summary = json.loads(result.stdout)
        assert (summary["total"], summary["passed"], summary["failed"]) == (2, 1, 1)
        failed = next(r for r in summary["results"] if r["outcome"] == "FAILED")
        assert failed["database_name"] == HUMAN

    def test_unknown_group_runs_nothing(self, server_dir: Path) -> None:
        result = _run("--json", "run", "nonexistent", "-d", ".*", "--server-url", str(server_dir))
        assert result.exit_code == 0
        assert json.loads(result.stdout)["total"] == 0

    def test_show_repair_leaves_database_unchanged(self, server_dir: Path, write_database, stored_version) -> None:
        path = write_database(HUMAN, schema_version="89")
        result = _run(
            "run", "SchemaVersion", "-d", HUMAN, "--server-url", str(server_dir), "--show-repair", "-o", "info",
            "--length", "0",
        )
        assert result.exit_code == 1
        assert "Repair (not applied): Set schema_version to 90" in result.output
        assert stored_version(path) == ["89"]

    def test_repair_applies(self, server_dir: Path, write_database, stored_version) -> None:
        path = write_database(HUMAN, schema_version="89")
        result = _run(
            "run", "SchemaVersion", "-d", HUMAN, "--server-url", str(server_dir), "--repair", "-o", "info",
            "--length", "0",
        )
        assert result.exit_code == 1
        assert "Repair applied: Set schema_version to 90" in result.output
        assert stored_version(path) == ["90"]

        rerun = _run("run", "SchemaVersion", "-d", HUMAN, "--server-url", str(server_dir))
        assert rerun.exit_code == 0

    def test_results_by_database(self, server_dir: Path, write_database) -> None:
        write_database(HUMAN, schema_version="89")
        result = _run("run", "SchemaVersion", "-d", ".*", "--server-url", str(server_dir), "--results-by-db")
        assert "Results by database" in result.output
        assert "Results by check" in result.output

    def test_output_none_is_quiet(self, server_dir: Path, write_database) -> None:
        write_database(HUMAN, schema_version="89")
        result = _run("run", "SchemaVersion", "-d", ".*", "--server-url", str(server_dir), "-o", "none")
        assert result.exit_code == 1
        assert "FAILED" not in result.output
        assert "Results by check" not in result.output

    def test_skip_slow(self, server_dir: Path) -> None:
        result = _run("--json", "run", "compare", "-d", ".*", "--server-url", str(server_dir), "--skip-slow")
        assert result.exit_code == 0
        (skipped,) = json.loads(result.stdout)["results"]
        assert skipped["outcome"] == "SKIPPED"
        assert skipped["reason"] == "slow check skipped"

    def test_no_matching_databases(self, server_dir: Path) -> None:
        result = _run("run", "SchemaVersion", "-d", "nothing_.*", "--server-url", str(server_dir))
        assert result.exit_code == 0
        assert "No databases matched the given patterns." in result.output
