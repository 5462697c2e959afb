"""Built-in cross-database check that a release uses a single schema version."""

from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy.exc import SQLAlchemyError

from healthcheck.catalog.entry import DatabaseEntry
from healthcheck.checks.base import BaseCheck
from healthcheck.checks.builtin.helpers import meta_values, table_exists
from healthcheck.checks.builtin.schema_version import SCHEMA_VERSION_KEY
from healthcheck.checks.context import CheckContext
from healthcheck.checks.models import Applicability, Team
from healthcheck.errors import CheckExecutionError

logger = logging.getLogger(__name__)


class SchemaVersionConsistent(BaseCheck):
    """Every database of the catalog must carry the same schema version.

    The stored ``meta.schema_version`` is used where present, otherwise the
    version from the database name.  Databases off the most common version
    are reported individually.
    """

    name = "SchemaVersionConsistent"
    groups = ("release",)
    description = "Check that all databases of the release share one schema version."
    team = Team.RELEASE_COORDINATOR
    applicability = Applicability.MULTI_DATABASE

    def run(self, context: CheckContext) -> bool:
        versions: dict[str, str] = {}
        result = True

        for entry in context.catalog:
            try:
                version = self._version_of(context, entry)
            except (CheckExecutionError, SQLAlchemyError) as exc:
                context.problem(f"Cannot read schema version: {exc}", entry)
                result = False
                continue
            if version is None:
                context.info("No schema version found; not compared", entry)
                continue
            versions[entry.name] = version

        if not versions:
            context.info("No schema versions to compare")
            return result

        counts = Counter(versions.values())
        expected, _ = counts.most_common(1)[0]
        if len(counts) == 1:
            context.correct(f"All {len(versions)} database(s) have schema version {expected}")
            return result

        for name, version in versions.items():
            if version != expected:
                context.problem(f"Schema version {version} differs from release version {expected}", name)
        return False

    def _version_of(self, context: CheckContext, entry: DatabaseEntry) -> str | None:
        conn = context.connection_for(entry)
        if table_exists(conn, "meta"):
            stored = meta_values(conn, SCHEMA_VERSION_KEY)
            if stored:
                return stored[0]
        return str(entry.schema_version) if entry.schema_version is not None else None
