"""Check capability, descriptors and the check registry."""

from healthcheck.checks.base import BaseCheck
from healthcheck.checks.context import CheckContext
from healthcheck.checks.models import (
    ALL_GROUP,
    Applicability,
    CheckDescriptor,
    RepairAction,
    RepairMode,
    Team,
)
from healthcheck.checks.registry import CheckRegistry

__all__ = [
    "ALL_GROUP",
    "Applicability",
    "BaseCheck",
    "CheckContext",
    "CheckDescriptor",
    "CheckRegistry",
    "RepairAction",
    "RepairMode",
    "Team",
]
