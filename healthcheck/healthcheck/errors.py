"""Error taxonomy for the healthcheck engine.

Only :class:`ConfigurationError`, :class:`CatalogBuildError` and
:class:`DuplicateNameError` ever escape a pass.  Everything raised while a
check body runs is wrapped in :class:`CheckExecutionError` by the runner
and recorded as data (a FAILED run plus a PROBLEM report line).
"""

from __future__ import annotations


class HealthcheckError(Exception):
    """Base exception for all healthcheck errors."""


class ConfigurationError(HealthcheckError):
    """Invalid settings detected before any check runs.

    Raised for malformed database name patterns, unrecognised species or
    database-type overrides, and missing server definitions.
    """


class CatalogBuildError(HealthcheckError):
    """The database catalog could not be built.

    Raised when the server cannot be reached or its database names cannot
    be enumerated.  No partial catalog is ever returned.
    """


class DuplicateNameError(HealthcheckError):
    """Two checks were registered under the same short name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Check '{name}' is already registered. Unregister the existing check first.")


DuplicateRegistrationError = DuplicateNameError


class CheckExecutionError(HealthcheckError):
    """A single check run failed with an unexpected error.

    Attributes
    ----------
    check_name:
        Short name of the check that failed.
    database_name:
        Database the check was running against, or ``None`` for
        database-independent and cross-database runs.
    """

    def __init__(self, check_name: str, database_name: str | None, message: str) -> None:
        self.check_name = check_name
        self.database_name = database_name
        super().__init__(message)

    @classmethod
    def from_exception(
        cls,
        check_name: str,
        database_name: str | None,
        exc: BaseException,
    ) -> CheckExecutionError:
        """Wrap an arbitrary exception raised by a check body."""
        if isinstance(exc, CheckExecutionError):
            return exc
        error = cls(check_name, database_name, f"{type(exc).__name__}: {exc}")
        error.__cause__ = exc
        return error


class ConnectionAcquisitionError(CheckExecutionError):
    """A connection to one database could not be opened.

    Recoverable at the pass level: every check that needs this database
    fails, other databases carry on.
    """
