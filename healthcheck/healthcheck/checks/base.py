"""Abstract base class for check implementations.

All checks subclass :class:`BaseCheck`, declare their metadata as class
attributes and implement :meth:`run`.  Checks that can fix what they
detect also override :meth:`repair_actions`.
"""

from __future__ import annotations

import abc
import functools
from collections.abc import Iterable
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy import text

from healthcheck.catalog.types import DatabaseType
from healthcheck.checks.models import Applicability, CheckDescriptor, RepairAction, Team
from healthcheck.errors import CheckExecutionError

if TYPE_CHECKING:
    from healthcheck.catalog.entry import DatabaseEntry
    from healthcheck.checks.context import CheckContext


class BaseCheck(abc.ABC):
    """Abstract base for all check implementations.

    Check implementations should be stateless; everything a run needs is
    reached through the :class:`CheckContext`.  ``name`` defaults to the
    class name.
    """

    name: ClassVar[str] = ""
    groups: ClassVar[Iterable[str]] = ()
    description: ClassVar[str] = ""
    team: ClassVar[Team] = Team.UNKNOWN
    applicability: ClassVar[Applicability] = Applicability.SINGLE_DATABASE
    slow: ClassVar[bool] = False
    database_types: ClassVar[Iterable[DatabaseType] | None] = None

    @functools.cached_property
    def descriptor(self) -> CheckDescriptor:
        """Immutable metadata built from the class attributes."""
        return CheckDescriptor(
            name=self.name or type(self).__name__,
            groups=frozenset(self.groups),
            description=self.description,
            team=self.team,
            applicability=self.applicability,
            slow=self.slow,
            database_types=frozenset(self.database_types) if self.database_types is not None else None,
        )

    @property
    def short_name(self) -> str:
        return self.descriptor.name

    @property
    def all_groups(self) -> frozenset[str]:
        return self.descriptor.all_groups

    def applies_to(self, entry: DatabaseEntry) -> bool:
        """Return True if this check should run against *entry*."""
        types = self.descriptor.database_types
        return types is None or entry.database_type in types

    @abc.abstractmethod
    def run(self, context: CheckContext) -> bool:
        """Run the check.

        Parameters
        ----------
        context:
            Target database (if any), connections and the report sink.

        Returns
        -------
        bool
            True if the check passed.
        """

    # -- repair ------------------------------------------------------------

    @property
    def can_repair(self) -> bool:
        """True if the subclass overrides :meth:`repair_actions`."""
        return type(self).repair_actions is not BaseCheck.repair_actions

    def repair_actions(self, context: CheckContext) -> list[RepairAction]:
        """Return the actions that would fix a failed run.  None by default."""
        return []

    def apply_repair(self, context: CheckContext, actions: list[RepairAction]) -> None:
        """Execute *actions*, committing once per database.

        A failing statement rolls back every statement already executed on
        the same database and is re-raised.
        """
        by_target: dict[str, list[RepairAction]] = {}
        for action in actions:
            target = action.database_name or context.database_name
            if target is None:
                raise CheckExecutionError(self.short_name, None, f"Repair '{action.description}' has no target database")
            by_target.setdefault(target, []).append(action)

        entries = {e.name: e for e in context.catalog}
        if context.entry is not None:
            entries[context.entry.name] = context.entry

        for target, target_actions in by_target.items():
            entry = entries.get(target)
            if entry is None:
                raise CheckExecutionError(self.short_name, target, f"Repair target {target} is not in the catalog")
            conn = context.connection_for(entry)
            try:
                for action in target_actions:
                    conn.execute(text(action.sql), action.params)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.short_name}>"
