"""SQL helpers shared by the built-in checks."""

from __future__ import annotations

from sqlalchemy import Connection, inspect, text


def table_exists(conn: Connection, table: str) -> bool:
    return inspect(conn).has_table(table)


def table_names(conn: Connection) -> list[str]:
    return sorted(inspect(conn).get_table_names())


def row_count(conn: Connection, table: str) -> int:
    """Number of rows in *table*; the name is quoted for the connection's dialect."""
    quoted = conn.dialect.identifier_preparer.quote(table)
    return int(conn.execute(text(f"SELECT COUNT(*) FROM {quoted}")).scalar_one())


def meta_values(conn: Connection, key: str) -> list[str]:
    """Values stored under *key* in the ``meta`` table, in ``meta_id`` order."""
    rows = conn.execute(
        text("SELECT meta_value FROM meta WHERE meta_key = :key ORDER BY meta_id"),
        {"key": key},
    )
    return [str(row[0]) for row in rows if row[0] is not None]
