"""Report model and the report manager sink."""

from healthcheck.report.formatting import break_line, severity_label
from healthcheck.report.manager import Reporter, ReportManager
from healthcheck.report.models import (
    NO_DATABASE,
    OutputLevel,
    PassSummary,
    ReportLine,
    RunOutcome,
    RunResult,
    Severity,
)

__all__ = [
    "NO_DATABASE",
    "OutputLevel",
    "PassSummary",
    "ReportLine",
    "ReportManager",
    "Reporter",
    "RunOutcome",
    "RunResult",
    "Severity",
    "break_line",
    "severity_label",
]
