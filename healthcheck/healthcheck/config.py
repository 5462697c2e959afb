"""Healthcheck configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from healthcheck.catalog.registry import compile_patterns
from healthcheck.catalog.types import DatabaseType, Species
from healthcheck.checks.models import RepairMode
from healthcheck.errors import ConfigurationError
from healthcheck.report.models import OutputLevel

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings loaded from environment variables with the HEALTHCHECK_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="HEALTHCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False
    structured_logging: bool = False

    # Servers: a SQLAlchemy URL or a directory of SQLite files
    server_url: str | None = None
    secondary_server_url: str | None = None

    # Catalog selection
    database_patterns: list[str] = []
    secondary_database_patterns: list[str] = []
    species: str | None = None
    database_type: str | None = None

    # Execution
    repair_mode: RepairMode = RepairMode.OFF
    skip_slow: bool = False
    check_timeout_seconds: float | None = None
    max_concurrency: int = 8

    # Output
    output_level: OutputLevel = OutputLevel.PROBLEM
    output_line_length: int = 65
    results_by_check: bool = True
    results_by_database: bool = False
    failure_text: bool = True

    @field_validator("database_patterns", "secondary_database_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        try:
            compile_patterns(v)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc
        return v

    @field_validator("species")
    @classmethod
    def validate_species(cls, v: str | None) -> str | None:
        if v is not None and Species.resolve_alias(v) == Species.UNKNOWN:
            raise ValueError(f"Species '{v}' not recognised")
        return v

    @field_validator("database_type")
    @classmethod
    def validate_database_type(cls, v: str | None) -> str | None:
        if v is not None and DatabaseType.resolve_alias(v) == DatabaseType.UNKNOWN:
            raise ValueError(f"Database type '{v}' not recognised")
        return v

    @field_validator("check_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("check_timeout_seconds must be positive")
        return v

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v

    @field_validator("output_line_length")
    @classmethod
    def validate_line_length(cls, v: int) -> int:
        if v < 0:
            raise ValueError("output_line_length must be 0 (no wrapping) or positive")
        return v

    @property
    def forced_species(self) -> Species | None:
        return Species.resolve_alias(self.species) if self.species else None

    @property
    def forced_type(self) -> DatabaseType | None:
        return DatabaseType.resolve_alias(self.database_type) if self.database_type else None


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides.

    Raises
    ------
    ConfigurationError
        If any value fails validation.
    """
    try:
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    if settings.debug:
        logger.info(
            "Loaded settings: %d pattern(s), repair=%s, timeout=%s",
            len(settings.database_patterns),
            settings.repair_mode.value,
            settings.check_timeout_seconds,
        )

    return settings
