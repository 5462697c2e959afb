"""Database catalog: taxonomies, entries, server access and the registry."""

from healthcheck.catalog.entry import DatabaseEntry, ServerInfo, ServerRole, infer_schema_version
from healthcheck.catalog.registry import (
    CORE_DB_REGEXP,
    DatabaseRegistry,
    compile_patterns,
    expand_pattern,
)
from healthcheck.catalog.server import (
    ConnectionPool,
    DatabaseServer,
    SQLAlchemyServer,
    SQLiteDirectoryServer,
    open_server,
)
from healthcheck.catalog.types import DatabaseType, Species

__all__ = [
    "CORE_DB_REGEXP",
    "ConnectionPool",
    "DatabaseEntry",
    "DatabaseRegistry",
    "DatabaseServer",
    "DatabaseType",
    "SQLAlchemyServer",
    "SQLiteDirectoryServer",
    "ServerInfo",
    "ServerRole",
    "Species",
    "compile_patterns",
    "expand_pattern",
    "infer_schema_version",
    "open_server",
]
