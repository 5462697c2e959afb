"""Catalog entries: one resolvable database target per entry."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from healthcheck.catalog.types import DatabaseType, Species

# homo_sapiens_core_90_38 -> 90, ensembl_compara_90 -> 90,
# homo_sapiens_core_expression_est_24_34e -> 24
_SCHEMA_VERSION_RE = re.compile(r"_(\d+)(?:_\d+[a-z]?)?$")


class ServerRole(str, Enum):
    """Which configured server a database lives on."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class ServerInfo(BaseModel):
    """Connection parameters of the server owning a database.

    Only a display-safe URL is kept here; credentials stay with the
    :class:`~healthcheck.catalog.server.DatabaseServer` instance.
    """

    model_config = ConfigDict(frozen=True)

    role: ServerRole = Field(default=ServerRole.PRIMARY, description="Primary or secondary server.")
    url: str = Field(default="", description="Server URL with any password masked.")


def infer_schema_version(name: str) -> int | None:
    """Return the schema version encoded in a database name, if any."""
    match = _SCHEMA_VERSION_RE.search(name)
    if match is None:
        return None
    return int(match.group(1))


class DatabaseEntry(BaseModel):
    """A database matched on a live server, with inferred metadata.

    Entries are immutable.  They never hold a connection themselves;
    connections are acquired lazily through the
    :class:`~healthcheck.catalog.server.ConnectionPool` that owns them.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Database name exactly as listed by the server.")
    server: ServerInfo = Field(default_factory=ServerInfo, description="Owning server.")
    species: Species = Field(default=Species.UNKNOWN, description="Inferred or forced species.")
    database_type: DatabaseType = Field(default=DatabaseType.UNKNOWN, description="Inferred or forced type.")
    schema_version: int | None = Field(default=None, description="Version token from the name.")
    secondary: DatabaseEntry | None = Field(
        default=None,
        description="Entry with the same species, type and version on the secondary server.",
    )

    @classmethod
    def from_name(
        cls,
        name: str,
        *,
        server: ServerInfo | None = None,
        forced_type: DatabaseType | None = None,
        forced_species: Species | None = None,
    ) -> DatabaseEntry:
        """Build an entry, inferring species, type and version from *name*.

        Inference is skipped for whichever of species and type is forced.
        """
        return cls(
            name=name,
            server=server or ServerInfo(),
            species=forced_species if forced_species is not None else Species.resolve_alias(name),
            database_type=forced_type if forced_type is not None else DatabaseType.resolve_alias(name),
            schema_version=infer_schema_version(name),
        )

    @property
    def identity(self) -> tuple[Species, DatabaseType, int | None]:
        """Logical identity used to pair primary and secondary entries."""
        return (self.species, self.database_type, self.schema_version)

    @property
    def is_secondary(self) -> bool:
        return self.server.role == ServerRole.SECONDARY

    def with_secondary(self, secondary: DatabaseEntry) -> DatabaseEntry:
        """Return a copy of this entry paired with *secondary*."""
        return self.model_copy(update={"secondary": secondary})

    def __str__(self) -> str:
        return self.name
