"""Data models describing registered checks."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from healthcheck.catalog.types import DatabaseType

ALL_GROUP = "all"


class Applicability(str, Enum):
    """How many databases a check runs against per invocation."""

    NONE = "NONE"
    SINGLE_DATABASE = "SINGLE_DATABASE"
    MULTI_DATABASE = "MULTI_DATABASE"


class Team(str, Enum):
    """Team responsible for a check."""

    CORE = "core"
    GENEBUILD = "genebuild"
    COMPARA = "compara"
    VARIATION = "variation"
    FUNCGEN = "funcgen"
    RELEASE_COORDINATOR = "release_coordinator"
    UNKNOWN = "unknown"


class RepairMode(str, Enum):
    """What the runner does with the repair actions of a failed check."""

    OFF = "off"
    APPLY = "apply"
    SHOW_ONLY = "show_only"


class CheckDescriptor(BaseModel):
    """Immutable identity and metadata of a registered check."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique short name.")
    groups: frozenset[str] = Field(default_factory=frozenset, description="Explicit group tags.")
    description: str = Field(default="", description="Human-readable description, shown as failure text.")
    team: Team = Field(default=Team.UNKNOWN, description="Responsible team.")
    applicability: Applicability = Field(
        default=Applicability.SINGLE_DATABASE,
        description="Whether the check takes no, one, or every database.",
    )
    slow: bool = Field(default=False, description="Long-running; skipped when slow checks are skipped.")
    database_types: frozenset[DatabaseType] | None = Field(
        default=None,
        description="Database types a single-database check applies to. None means every type.",
    )

    @property
    def all_groups(self) -> frozenset[str]:
        """Explicit groups plus the check's own name and ``all``."""
        return self.groups | {self.name, ALL_GROUP}

    def in_group(self, group: str) -> bool:
        return group in self.all_groups


class RepairAction(BaseModel):
    """A corrective SQL statement a check proposes for a failed run."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="What the action changes, in words.")
    sql: str = Field(..., description="Statement to execute; bound parameters use :name.")
    params: dict[str, object] = Field(default_factory=dict, description="Bound parameters for the statement.")
    database_name: str | None = Field(
        default=None,
        description="Database to run against; None means the run's own database.",
    )
