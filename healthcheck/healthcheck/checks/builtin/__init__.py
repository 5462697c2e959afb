"""Built-in checks and the static registration table."""

from __future__ import annotations

from healthcheck.checks.base import BaseCheck
from healthcheck.checks.builtin.meta import MetaTableCheck
from healthcheck.checks.builtin.release_consistency import SchemaVersionConsistent
from healthcheck.checks.builtin.schema_version import SchemaVersionMatchesName
from healthcheck.checks.builtin.secondary_compare import SecondaryTableCounts
from healthcheck.checks.registry import CheckRegistry

# Registration order is the order checks run in within a database.
BUILTIN_CHECKS: tuple[type[BaseCheck], ...] = (
    MetaTableCheck,
    SchemaVersionMatchesName,
    SecondaryTableCounts,
    SchemaVersionConsistent,
)


def create_default_registry() -> CheckRegistry:
    """Create a :class:`CheckRegistry` with every built-in check registered."""
    return CheckRegistry(check_cls() for check_cls in BUILTIN_CHECKS)


__all__ = [
    "BUILTIN_CHECKS",
    "MetaTableCheck",
    "SchemaVersionConsistent",
    "SchemaVersionMatchesName",
    "SecondaryTableCounts",
    "create_default_registry",
]
