"""Built-in check comparing a database with its secondary counterpart.

The secondary server usually holds the previous release or a master copy
of controlled tables.  Tables present on both sides must hold the same
number of rows; tables missing from the primary are problems.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from healthcheck.checks.base import BaseCheck
from healthcheck.checks.builtin.helpers import row_count, table_names
from healthcheck.checks.context import CheckContext
from healthcheck.checks.models import Team

logger = logging.getLogger(__name__)


class SecondaryTableCounts(BaseCheck):
    """Compare table row counts with the paired secondary database."""

    name = "CompareSecondary"
    groups = ("compare",)
    description = "Compare table contents with the paired database on the secondary server."
    team = Team.RELEASE_COORDINATOR
    slow = True

    # Restrict the comparison to these tables; empty compares every table.
    tables: ClassVar[tuple[str, ...]] = ()

    def run(self, context: CheckContext) -> bool:
        assert context.entry is not None
        secondary = context.entry.secondary
        if secondary is None:
            context.info("No secondary database paired; not compared")
            return True

        primary_conn = context.connection
        secondary_conn = context.connection_for(secondary)
        primary_tables = set(table_names(primary_conn))
        secondary_tables = set(table_names(secondary_conn))
        wanted = set(self.tables) if self.tables else primary_tables | secondary_tables

        result = True
        for table in sorted(wanted):
            if table not in primary_tables:
                context.problem(f"Table {table} is missing (present in {secondary.name})")
                result = False
                continue
            if table not in secondary_tables:
                context.info(f"Table {table} is not present in {secondary.name}")
                continue

            ours = row_count(primary_conn, table)
            theirs = row_count(secondary_conn, table)
            if ours != theirs:
                context.problem(f"Table {table} has {ours} rows, {secondary.name} has {theirs}")
                result = False
            else:
                context.correct(f"Table {table} row count matches ({ours})")

        logger.debug("Compared %d table(s) of %s with %s", len(wanted), context.database_name, secondary.name)
        return result
