"""Built-in check of the ``meta`` table of gene-set databases.

Verifies that the table exists and has data, that the mandatory keys are
present, that the species classification agrees with the database name
and that the stored taxonomy id is the one known for the species.
"""

from __future__ import annotations

import logging

from healthcheck.catalog.types import DatabaseType
from healthcheck.checks.base import BaseCheck
from healthcheck.checks.builtin.helpers import meta_values, row_count, table_exists
from healthcheck.checks.context import CheckContext
from healthcheck.checks.models import Team

logger = logging.getLogger(__name__)

REQUIRED_META_KEYS = (
    "assembly.default",
    "species.classification",
    "species.common_name",
    "species.taxonomy_id",
)


class MetaTableCheck(BaseCheck):
    """Check the ``meta`` table against the database name and species."""

    name = "Meta"
    groups = ("release", "post_genebuild")
    description = (
        "Check that the meta table exists, has data, holds the mandatory keys, "
        "and that its species classification and taxonomy id match the database."
    )
    team = Team.CORE
    database_types = tuple(t for t in DatabaseType if t.is_generic)

    def run(self, context: CheckContext) -> bool:
        conn = context.connection

        if not table_exists(conn, "meta"):
            context.problem("meta table does not exist")
            return False
        if row_count(conn, "meta") == 0:
            context.problem("meta table is empty")
            return False
        context.correct("meta table has data")

        result = True
        for key in REQUIRED_META_KEYS:
            if meta_values(conn, key):
                context.correct(f"{key} entry present")
            else:
                context.problem(f"No entry in meta table for {key}")
                result = False

        result = self._check_classification(context) and result
        result = self._check_taxonomy_id(context) and result
        return result

    def _check_classification(self, context: CheckContext) -> bool:
        # The first two classification rows are species then genus.
        classification = [v.lower() for v in meta_values(context.connection, "species.classification")[:2]]
        if len(classification) < 2:
            context.problem("Cannot get species information from meta table")
            return False

        name_parts = context.database_name.split("_") if context.database_name else []
        from_name = "_".join(name_parts[:2])
        from_meta = f"{classification[1]}_{classification[0]}"
        if from_name.lower() != from_meta:
            context.problem(
                f"Database name does not correspond to species/genus data from meta table ({from_meta})"
            )
            return False
        context.correct("Database name corresponds to species/genus data from meta table")
        return True

    def _check_taxonomy_id(self, context: CheckContext) -> bool:
        assert context.entry is not None
        species = context.entry.species
        expected = species.taxonomy_id
        if expected is None:
            context.warning(f"No known taxonomy ID for species {species.value}; not checked")
            return True

        stored = meta_values(context.connection, "species.taxonomy_id")
        if not stored:
            # Already reported as a missing key.
            return False
        if stored[0] != expected:
            context.problem(
                f"Taxonomy ID {stored[0]} in database is not correct - should be {expected} for {species.value}"
            )
            return False
        context.correct(f"Taxonomy ID {stored[0]} is correct for {species.value}")
        return True
