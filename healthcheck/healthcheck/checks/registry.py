"""Check registry for registering and selecting check implementations.

Checks are registered explicitly (see
:func:`healthcheck.checks.builtin.create_default_registry`) and looked
up by short name or by group.  Every check is implicitly a member of the
group named after itself and of ``all``, so single checks can be
selected by name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from healthcheck.checks.base import BaseCheck
from healthcheck.errors import DuplicateNameError

logger = logging.getLogger(__name__)


class CheckRegistry:
    """Registry of check implementations keyed by short name.

    Lookups return checks in registration order, which is stable for the
    lifetime of the registry.
    """

    def __init__(self, checks: Iterable[BaseCheck] = ()) -> None:
        self._checks: dict[str, BaseCheck] = {}
        for check in checks:
            self.register(check)

    def register(self, check: BaseCheck) -> None:
        """Register a check implementation.

        Parameters
        ----------
        check:
            The check instance to register.  Its ``short_name`` is the key
            under which it is stored.

        Raises
        ------
        DuplicateNameError
            If a check with the same short name is already registered.
        """
        name = check.short_name
        if name in self._checks:
            raise DuplicateNameError(name)
        self._checks[name] = check
        logger.debug("Registered check: %s", name)

    def unregister(self, name: str) -> None:
        """Remove a check from the registry.

        Raises
        ------
        KeyError
            If no check is registered under *name*.
        """
        if name not in self._checks:
            raise KeyError(f"Check {name} is not registered.")
        del self._checks[name]
        logger.debug("Unregistered check: %s", name)

    def get(self, name: str) -> BaseCheck | None:
        """Look up a check by short name.  Returns ``None`` if unknown."""
        return self._checks.get(name)

    def find_all(self) -> list[BaseCheck]:
        """Return every registered check in registration order."""
        return list(self._checks.values())

    def find_by_group(self, group: str) -> list[BaseCheck]:
        """Return every check that is a member of *group*."""
        return [c for c in self._checks.values() if group in c.all_groups]

    def resolve_groups(self, groups: Iterable[str]) -> list[BaseCheck]:
        """Return the union of the checks in *groups*, without duplicates.

        Checks appear in the order they are first found.
        """
        selected: list[BaseCheck] = []
        seen: set[int] = set()
        for group in groups:
            matches = self.find_by_group(group)
            if not matches:
                logger.info("No checks in group '%s'", group)
            for check in matches:
                if id(check) not in seen:
                    seen.add(id(check))
                    selected.append(check)
        return selected

    def groups(self) -> dict[str, list[str]]:
        """Return every explicit group mapped to the sorted names of its checks."""
        membership: dict[str, list[str]] = {}
        for check in self._checks.values():
            for group in check.descriptor.groups:
                membership.setdefault(group, []).append(check.short_name)
        return {g: sorted(membership[g]) for g in sorted(membership)}

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks
