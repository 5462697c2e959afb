"""Database registry: the ordered catalog of databases a pass operates on.

The registry enumerates the database names on a live server, keeps the
ones matching any of the caller's patterns and builds a
:class:`DatabaseEntry` for each, inferring species, type and schema
version from the name.  An optional secondary server is enumerated the
same way and its entries are paired with primary entries of the same
logical identity.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence

from healthcheck.catalog.entry import DatabaseEntry, ServerInfo, ServerRole
from healthcheck.catalog.server import DatabaseServer
from healthcheck.catalog.types import DatabaseType, Species
from healthcheck.errors import CatalogBuildError, ConfigurationError

logger = logging.getLogger(__name__)

# Patterns may contain the COREDBS macro as shorthand for every gene-set database.
CORE_DB_MACRO = "COREDBS"
CORE_DB_REGEXP = "[a-z]+_[a-z]+_(core|est|estgene|vega|otherfeatures)"


def expand_pattern(pattern: str) -> str:
    """Expand the ``COREDBS`` macro inside a database name pattern."""
    return pattern.replace(CORE_DB_MACRO, CORE_DB_REGEXP)


def compile_patterns(patterns: Sequence[str]) -> list[re.Pattern[str]]:
    """Expand and compile database name patterns.

    Raises
    ------
    ConfigurationError
        If any pattern is not a valid regular expression.
    """
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(expand_pattern(pattern)))
        except re.error as exc:
            raise ConfigurationError(f"Invalid database pattern '{pattern}': {exc}") from exc
    return compiled


def match_names(names: Sequence[str], patterns: Sequence[re.Pattern[str]]) -> list[str]:
    """Return the names fully matching any pattern, grouped by pattern order.

    Names matched by an earlier pattern keep their first position.
    """
    matched: list[str] = []
    seen: set[str] = set()
    for pattern in patterns:
        for name in names:
            if name not in seen and pattern.fullmatch(name):
                matched.append(name)
                seen.add(name)
    return matched


def _list_names(server: DatabaseServer) -> list[str]:
    try:
        return list(server.list_database_names())
    except Exception as exc:
        raise CatalogBuildError(f"Cannot list databases on {server.info.url or 'server'}: {exc}") from exc


class DatabaseRegistry:
    """Ordered, immutable catalog of matched databases.

    Use :meth:`build` to construct one from a live server.
    """

    def __init__(
        self,
        entries: Sequence[DatabaseEntry] = (),
        *,
        unpaired_secondaries: Sequence[DatabaseEntry] = (),
        warnings: Sequence[str] = (),
    ) -> None:
        self._entries: tuple[DatabaseEntry, ...] = tuple(entries)
        self._by_name = {e.name: e for e in self._entries}
        self._unpaired = tuple(unpaired_secondaries)
        self._warnings = tuple(warnings)

    @classmethod
    def build(
        cls,
        server: DatabaseServer,
        patterns: Sequence[str],
        *,
        secondary_server: DatabaseServer | None = None,
        secondary_patterns: Sequence[str] = (),
        forced_type: DatabaseType | None = None,
        forced_species: Species | None = None,
    ) -> DatabaseRegistry:
        """Enumerate *server* and build the catalog of matching databases.

        Parameters
        ----------
        server:
            Primary server to enumerate.
        patterns:
            Regular expressions; a database is selected when any of them
            matches its whole name.
        secondary_server:
            Server to enumerate for *secondary_patterns*.  Defaults to
            *server* when secondary patterns are given without one.
        secondary_patterns:
            Patterns selecting the secondary databases to pair up.
        forced_type / forced_species:
            When given, used for every entry instead of inferring from
            the name.

        Raises
        ------
        ConfigurationError
            If a pattern is invalid.
        CatalogBuildError
            If a server cannot be enumerated.
        """
        compiled = compile_patterns(patterns)
        compiled_secondary = compile_patterns(secondary_patterns)

        names = match_names(_list_names(server), compiled)
        entries = [
            DatabaseEntry.from_name(
                name,
                server=server.info,
                forced_type=forced_type,
                forced_species=forced_species,
            )
            for name in names
        ]
        logger.info("Matched %d database(s) on %s", len(entries), server.info.url or "primary server")

        if not compiled_secondary:
            return cls(entries)

        second = secondary_server or server
        # Entries enumerated on the primary server still keep the secondary role.
        second_info = ServerInfo(role=ServerRole.SECONDARY, url=second.info.url)
        secondary_names = match_names(_list_names(second), compiled_secondary)
        secondaries = [
            DatabaseEntry.from_name(
                name,
                server=second_info,
                forced_type=forced_type,
                forced_species=forced_species,
            )
            for name in secondary_names
        ]
        return cls._pair(entries, secondaries)

    @classmethod
    def _pair(cls, primaries: list[DatabaseEntry], secondaries: list[DatabaseEntry]) -> DatabaseRegistry:
        paired = list(primaries)
        taken: set[int] = set()
        unpaired: list[DatabaseEntry] = []
        warnings: list[str] = []

        for secondary in secondaries:
            for idx, primary in enumerate(paired):
                if idx not in taken and primary.identity == secondary.identity:
                    paired[idx] = primary.with_secondary(secondary)
                    taken.add(idx)
                    break
            else:
                unpaired.append(secondary)
                message = f"Secondary database {secondary.name} has no matching primary database"
                warnings.append(message)
                logger.warning(message)

        return cls(paired, unpaired_secondaries=unpaired, warnings=warnings)

    # -- accessors ---------------------------------------------------------

    @property
    def entries(self) -> tuple[DatabaseEntry, ...]:
        return self._entries

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def unpaired_secondaries(self) -> tuple[DatabaseEntry, ...]:
        """Secondary entries that matched no primary entry."""
        return self._unpaired

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._warnings

    def get(self, name: str) -> DatabaseEntry | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return [e.name for e in self._entries]

    def by_type(self, database_type: DatabaseType) -> list[DatabaseEntry]:
        return [e for e in self._entries if e.database_type == database_type]

    def by_species(self, species: Species) -> list[DatabaseEntry]:
        return [e for e in self._entries if e.species == species]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DatabaseEntry]:
        return iter(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
