"""Database server access and the per-pass connection pool.

The engine only needs two things from a server: the list of database
names it hosts and a connection to one of them.  Two SQLAlchemy-backed
implementations are provided:

* :class:`SQLAlchemyServer` -- any server URL (MySQL, PostgreSQL, ...).
  Databases are enumerated from the server catalog and each database gets
  its own engine with the database name substituted into the URL.
* :class:`SQLiteDirectoryServer` -- a directory of SQLite files, one
  database per file.  Used for local runs and in tests.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol

from sqlalchemy import Connection, Engine, create_engine, inspect, text
from sqlalchemy.engine import make_url

from healthcheck.catalog.entry import DatabaseEntry, ServerInfo, ServerRole
from healthcheck.errors import ConfigurationError, ConnectionAcquisitionError

logger = logging.getLogger(__name__)

SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")

# Databases every MySQL/PostgreSQL server carries that are never targets.
_SYSTEM_DATABASES = frozenset({"information_schema", "mysql", "performance_schema", "sys", "postgres"})


class DatabaseServer(Protocol):
    """Protocol for a server hosting the databases under test."""

    @property
    def info(self) -> ServerInfo:
        """Display-safe description of the server."""
        ...

    def list_database_names(self) -> list[str]:
        """Return every database name visible on the server, in server order."""
        ...

    def open_connection(self, name: str) -> Connection:
        """Open a new connection to database *name*."""
        ...

    def dispose(self) -> None:
        """Release every engine held by the server."""
        ...


class SQLAlchemyServer:
    """A database server reachable through a SQLAlchemy URL.

    Parameters
    ----------
    url:
        Server URL without a database component, e.g.
        ``mysql+pymysql://ensro@ens-staging:3306/``.
    role:
        Whether this is the primary or the secondary server.
    """

    def __init__(self, url: str, role: ServerRole = ServerRole.PRIMARY) -> None:
        self._url = make_url(url)
        self._role = role
        self._engines: dict[str, Engine] = {}
        self._lock = threading.Lock()

    @property
    def info(self) -> ServerInfo:
        return ServerInfo(role=self._role, url=self._url.render_as_string(hide_password=True))

    def _engine_for(self, database: str | None) -> Engine:
        key = database or ""
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = create_engine(self._url.set(database=database), pool_pre_ping=True)
                self._engines[key] = engine
            return engine

    def list_database_names(self) -> list[str]:
        engine = self._engine_for(self._url.database)
        with engine.connect() as conn:
            if engine.dialect.name == "postgresql":
                rows = conn.execute(text("SELECT datname FROM pg_database WHERE NOT datistemplate ORDER BY datname"))
                names = [row[0] for row in rows]
            else:
                names = inspect(conn).get_schema_names()
        return [n for n in names if n.lower() not in _SYSTEM_DATABASES]

    def open_connection(self, name: str) -> Connection:
        return self._engine_for(name).connect()

    def dispose(self) -> None:
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
        for engine in engines:
            engine.dispose()


class SQLiteDirectoryServer:
    """A directory of SQLite files treated as a database server.

    Each file with a ``.db``, ``.sqlite`` or ``.sqlite3`` suffix is one
    database, named after the file stem.
    """

    def __init__(self, directory: Path | str, role: ServerRole = ServerRole.PRIMARY) -> None:
        self._directory = Path(directory)
        self._role = role
        self._engines: dict[str, Engine] = {}
        self._lock = threading.Lock()

    @property
    def info(self) -> ServerInfo:
        return ServerInfo(role=self._role, url=f"sqlite:///{self._directory}")

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, name: str) -> Path:
        for suffix in SQLITE_SUFFIXES:
            candidate = self._directory / f"{name}{suffix}"
            if candidate.is_file():
                return candidate
        raise FileNotFoundError(f"No SQLite file for database '{name}' in {self._directory}")

    def list_database_names(self) -> list[str]:
        if not self._directory.is_dir():
            raise FileNotFoundError(f"SQLite server directory not found: {self._directory}")
        return sorted(p.stem for p in self._directory.iterdir() if p.is_file() and p.suffix in SQLITE_SUFFIXES)

    def open_connection(self, name: str) -> Connection:
        with self._lock:
            engine = self._engines.get(name)
            if engine is None:
                # Check bodies run in worker threads, so connections must be
                # usable outside the thread that opened them.
                engine = create_engine(
                    f"sqlite:///{self._path_for(name)}",
                    connect_args={"check_same_thread": False},
                )
                self._engines[name] = engine
        return engine.connect()

    def dispose(self) -> None:
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
        for engine in engines:
            engine.dispose()


def open_server(location: str | Path | None, role: ServerRole = ServerRole.PRIMARY) -> DatabaseServer:
    """Create a server from a SQLAlchemy URL or a directory of SQLite files.

    Raises
    ------
    ConfigurationError
        If *location* is empty or is neither a directory nor a valid URL.
    """
    if location is None or str(location).strip() == "":
        raise ConfigurationError(f"No {role.value} server configured.")
    path = Path(str(location))
    if path.is_dir():
        return SQLiteDirectoryServer(path, role=role)
    try:
        return SQLAlchemyServer(str(location), role=role)
    except Exception as exc:
        raise ConfigurationError(f"Invalid {role.value} server URL '{location}': {exc}") from exc


# ---------------------------------------------------------------------------
# Connection pool
# ---------------------------------------------------------------------------


class ConnectionPool:
    """Lazily opened connections, one per catalog entry, for one pass.

    Connections are opened on first use and kept until :meth:`close_all`,
    which closes every connection (including ones discarded after a
    timeout) and disposes the servers exactly once.  A failed acquisition
    is remembered so later checks against the same database fail fast
    instead of retrying.

    Parameters
    ----------
    primary:
        Server hosting the primary catalog.
    secondary:
        Optional server hosting the secondary catalog.
    capacity:
        Maximum number of databases worked on concurrently.
    """

    def __init__(
        self,
        primary: DatabaseServer,
        secondary: DatabaseServer | None = None,
        *,
        capacity: int = 8,
    ) -> None:
        if capacity < 1:
            raise ConfigurationError(f"Connection pool capacity must be at least 1, got {capacity}.")
        self._servers: dict[ServerRole, DatabaseServer] = {ServerRole.PRIMARY: primary}
        if secondary is not None:
            self._servers[ServerRole.SECONDARY] = secondary
        self._capacity = capacity
        self._connections: dict[tuple[ServerRole, str], Connection] = {}
        self._failures: dict[tuple[ServerRole, str], str] = {}
        self._abandoned: list[Connection] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_count(self) -> int:
        """Number of live pooled connections (discarded ones excluded)."""
        with self._lock:
            return len(self._connections)

    def acquire(self, entry: DatabaseEntry) -> Connection:
        """Return the pooled connection for *entry*, opening it on first use.

        Raises
        ------
        ConnectionAcquisitionError
            If the connection cannot be opened now or failed previously.
        """
        key = (entry.server.role, entry.name)
        with self._lock:
            if self._closed:
                raise ConnectionAcquisitionError("", entry.name, "Connection pool is already closed")
            conn = self._connections.get(key)
            if conn is not None:
                return conn
            failure = self._failures.get(key)
            server = self._servers.get(entry.server.role)
        if failure is not None:
            raise ConnectionAcquisitionError("", entry.name, f"Cannot connect to {entry.name}: {failure}")
        if server is None:
            raise ConnectionAcquisitionError("", entry.name, f"No {entry.server.role.value} server configured")

        try:
            conn = server.open_connection(entry.name)
        except Exception as exc:
            with self._lock:
                self._failures[key] = str(exc)
            logger.warning("Could not connect to %s: %s", entry.name, exc)
            raise ConnectionAcquisitionError("", entry.name, f"Cannot connect to {entry.name}: {exc}") from exc

        with self._lock:
            if self._closed:
                conn.close()
                raise ConnectionAcquisitionError("", entry.name, "Connection pool is already closed")
            existing = self._connections.setdefault(key, conn)
        if existing is not conn:
            conn.close()
        logger.debug("Opened connection to %s (%s)", entry.name, entry.server.role.value)
        return existing

    def discard(self, entry: DatabaseEntry) -> None:
        """Stop handing out the current connection for *entry*.

        The connection may still be in use by an abandoned check thread,
        so it is not closed here; :meth:`close_all` closes it.
        """
        key = (entry.server.role, entry.name)
        with self._lock:
            conn = self._connections.pop(key, None)
            if conn is not None:
                self._abandoned.append(conn)

    def close_all(self) -> int:
        """Close every connection and dispose the servers.

        Safe to call more than once; only the first call does any work.

        Returns
        -------
        int
            Number of connections closed.
        """
        with self._lock:
            if self._closed:
                return 0
            self._closed = True
            connections = list(self._connections.values()) + self._abandoned
            self._connections.clear()
            self._abandoned = []

        closed = 0
        for conn in connections:
            try:
                conn.close()
                closed += 1
            except Exception:
                logger.warning("Failed to close a database connection", exc_info=True)
        # The same server may back both roles.
        servers = list({id(server): server for server in self._servers.values()}.values())
        for server in servers:
            try:
                server.dispose()
            except Exception:
                logger.warning("Failed to dispose server %s", server.info.url, exc_info=True)
        logger.debug("Closed %d pooled connection(s)", closed)
        return closed
