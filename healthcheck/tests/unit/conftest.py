"""Shared fixtures for the engine unit tests.

Live databases are SQLite files under ``tmp_path``; a directory of them
is served by :class:`SQLiteDirectoryServer`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

from healthcheck.catalog.entry import ServerInfo, ServerRole, infer_schema_version
from healthcheck.catalog.types import Species

MetaRows = Sequence[tuple[str, str]]


def healthy_meta(name: str) -> list[tuple[str, str]]:
    """Meta rows that pass the built-in meta and schema version checks."""
    genus, species = name.split("_")[:2]
    rows = [
        ("assembly.default", "GRCh38"),
        ("species.classification", species),
        ("species.classification", genus.capitalize()),
        ("species.common_name", genus),
        ("species.taxonomy_id", Species.resolve_alias(name).taxonomy_id or "0"),
    ]
    version = infer_schema_version(name)
    if version is not None:
        rows.append(("schema_version", str(version)))
    return rows


def create_sqlite_database(
    path: Path,
    meta: MetaRows | None = (),
    tables: dict[str, int] | None = None,
) -> Path:
    """Create a SQLite database with an optional meta table and filler tables.

    *meta* of ``None`` leaves the meta table out; *tables* maps table names
    to the number of rows to insert.
    """
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        if meta is not None:
            conn.execute(
                text(
                    "CREATE TABLE meta ("
                    "meta_id INTEGER PRIMARY KEY AUTOINCREMENT, "
                    "species_id INTEGER DEFAULT 1, "
                    "meta_key VARCHAR(40) NOT NULL, "
                    "meta_value VARCHAR(255) NOT NULL)"
                )
            )
            for key, value in meta:
                conn.execute(
                    text("INSERT INTO meta (meta_key, meta_value) VALUES (:key, :value)"),
                    {"key": key, "value": value},
                )
        for table, rows in (tables or {}).items():
            conn.execute(text(f"CREATE TABLE {table} (id INTEGER PRIMARY KEY, label VARCHAR(20))"))
            for i in range(rows):
                conn.execute(text(f"INSERT INTO {table} (label) VALUES (:label)"), {"label": f"row{i}"})
    engine.dispose()
    return path


@pytest.fixture()
def server_dir(tmp_path: Path) -> Path:
    """Empty directory acting as the primary SQLite server."""
    directory = tmp_path / "primary"
    directory.mkdir()
    return directory


@pytest.fixture()
def secondary_dir(tmp_path: Path) -> Path:
    """Empty directory acting as the secondary SQLite server."""
    directory = tmp_path / "secondary"
    directory.mkdir()
    return directory


@pytest.fixture()
def make_db(server_dir: Path) -> Callable[..., Path]:
    """Factory creating ``<name>.db`` in the primary server directory.

    By default the database gets a healthy meta table for its name.
    """

    def _make(
        name: str,
        meta: MetaRows | None | str = "healthy",
        tables: dict[str, int] | None = None,
        directory: Path | None = None,
    ) -> Path:
        rows = healthy_meta(name) if meta == "healthy" else meta
        return create_sqlite_database((directory or server_dir) / f"{name}.db", rows, tables)  # type: ignore[arg-type]

    return _make


class FakeServer:
    """In-memory server listing a fixed set of names; cannot connect."""

    def __init__(
        self,
        names: Sequence[str],
        *,
        fail: bool = False,
        url: str = "fake://primary",
        role: ServerRole = ServerRole.PRIMARY,
    ) -> None:
        self.names = list(names)
        self.fail = fail
        self.disposed = False
        self._info = ServerInfo(role=role, url=url)

    @property
    def info(self) -> ServerInfo:
        return self._info

    def list_database_names(self) -> list[str]:
        if self.fail:
            raise OSError("connection refused")
        return list(self.names)

    def open_connection(self, name: str):
        raise OSError(f"cannot connect to {name}")

    def dispose(self) -> None:
        self.disposed = True


@pytest.fixture()
def fake_server_factory() -> Callable[..., FakeServer]:
    return FakeServer


@pytest.fixture()
def meta_for() -> Callable[[str], list[tuple[str, str]]]:
    """The healthy meta rows for a database name, for tests that edit them."""
    return healthy_meta
