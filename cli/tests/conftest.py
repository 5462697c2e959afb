"""Shared fixtures for CLI tests.

Every test runs from an empty working directory with the HEALTHCHECK_
environment cleared, against a directory of SQLite files acting as the
database server.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

HUMAN = "homo_sapiens_core_90_38"
MOUSE = "mus_musculus_core_90_38"

_CLASSIFICATION = {
    HUMAN: ("sapiens", "Homo", "9606"),
    MOUSE: ("musculus", "Mus", "10090"),
}


def _write_database(path: Path, name: str, schema_version: str) -> None:
    species, genus, taxonomy_id = _CLASSIFICATION[name]
    rows = [
        ("assembly.default", "GRC"),
        ("species.classification", species),
        ("species.classification", genus),
        ("species.common_name", genus.lower()),
        ("species.taxonomy_id", taxonomy_id),
        ("schema_version", schema_version),
    ]
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE meta ("
                "meta_id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "species_id INTEGER DEFAULT 1, "
                "meta_key VARCHAR(40) NOT NULL, "
                "meta_value VARCHAR(255) NOT NULL)"
            )
        )
        for key, value in rows:
            conn.execute(text("INSERT INTO meta (meta_key, meta_value) VALUES (:k, :v)"), {"k": key, "v": value})
    engine.dispose()


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    for name in list(os.environ):
        if name.startswith("HEALTHCHECK_"):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep Rich from wrapping table cells and report lines at 80 columns."""
    from healthcheck_cli import app as app_module
    from healthcheck_cli.commands import run as run_module

    for console in (app_module.console, run_module.console):
        monkeypatch.setattr(console, "width", 200)


@pytest.fixture()
def server_dir(tmp_path: Path) -> Path:
    """Directory holding a healthy human and mouse core database."""
    directory = tmp_path / "server"
    directory.mkdir()
    for name in (HUMAN, MOUSE):
        _write_database(directory / f"{name}.db", name, "90")
    return directory


@pytest.fixture()
def write_database(server_dir: Path) -> Callable[..., Path]:
    """Factory (re)writing one database in the server directory."""

    def _write(name: str, schema_version: str = "90", directory: Path | None = None) -> Path:
        path = (directory or server_dir) / f"{name}.db"
        path.unlink(missing_ok=True)
        _write_database(path, name, schema_version)
        return path

    return _write


@pytest.fixture()
def stored_version() -> Callable[[Path], list[str]]:
    """Read back the stored schema_version values of a database file."""

    def _read(path: Path) -> list[str]:
        engine = create_engine(f"sqlite:///{path}")
        with engine.connect() as conn:
            values = [
                row[0]
                for row in conn.execute(
                    text("SELECT meta_value FROM meta WHERE meta_key = 'schema_version' ORDER BY meta_id")
                )
            ]
        engine.dispose()
        return values

    return _read
