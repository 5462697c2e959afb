"""Built-in check that the stored schema version matches the database name."""

from __future__ import annotations

from healthcheck.checks.base import BaseCheck
from healthcheck.checks.builtin.helpers import meta_values, table_exists
from healthcheck.checks.context import CheckContext
from healthcheck.checks.models import RepairAction, Team

SCHEMA_VERSION_KEY = "schema_version"


class SchemaVersionMatchesName(BaseCheck):
    """Compare ``meta.schema_version`` with the version in the database name.

    Repairable: the fix sets the stored value to the version from the name.
    """

    name = "SchemaVersion"
    groups = ("release", "schema")
    description = "Check that the schema_version meta entry matches the version in the database name."
    team = Team.RELEASE_COORDINATOR

    def run(self, context: CheckContext) -> bool:
        assert context.entry is not None
        expected = context.entry.schema_version
        if expected is None:
            context.warning("Cannot infer a schema version from the database name; not checked")
            return True

        conn = context.connection
        if not table_exists(conn, "meta"):
            context.problem("meta table does not exist")
            return False

        stored = meta_values(conn, SCHEMA_VERSION_KEY)
        if not stored:
            context.problem("No schema_version entry in meta table")
            return False
        if len(stored) > 1:
            context.problem(f"{len(stored)} schema_version entries in meta table, expected 1")
            return False
        if stored[0] != str(expected):
            context.problem(f"Schema version {stored[0]} in meta table does not match database name version {expected}")
            return False

        context.correct(f"Schema version {expected} matches database name")
        return True

    def repair_actions(self, context: CheckContext) -> list[RepairAction]:
        entry = context.entry
        if entry is None or entry.schema_version is None:
            return []
        conn = context.connection
        if not table_exists(conn, "meta"):
            return []

        version = str(entry.schema_version)
        stored = meta_values(conn, SCHEMA_VERSION_KEY)
        if len(stored) == 1:
            return [
                RepairAction(
                    description=f"Set schema_version to {version}",
                    sql="UPDATE meta SET meta_value = :version WHERE meta_key = :key",
                    params={"version": version, "key": SCHEMA_VERSION_KEY},
                )
            ]
        actions = []
        if stored:
            actions.append(
                RepairAction(
                    description="Remove duplicate schema_version entries",
                    sql="DELETE FROM meta WHERE meta_key = :key",
                    params={"key": SCHEMA_VERSION_KEY},
                )
            )
        actions.append(
            RepairAction(
                description=f"Insert schema_version {version}",
                sql="INSERT INTO meta (meta_key, meta_value) VALUES (:key, :version)",
                params={"version": version, "key": SCHEMA_VERSION_KEY},
            )
        )
        return actions
