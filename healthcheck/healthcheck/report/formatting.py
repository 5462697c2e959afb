"""Plain-text helpers shared by report presentation layers."""

from __future__ import annotations

from healthcheck.report.models import Severity

# A soft break is only taken when the last space lies beyond this column;
# otherwise the line is cut hard at the width.
_MIN_SOFT_BREAK = 15

SEVERITY_LABELS: dict[Severity, str] = {
    Severity.PROBLEM: "PROBLEM",
    Severity.WARNING: "WARNING",
    Severity.INFO: "INFO",
    Severity.CORRECT: "CORRECT",
    Severity.SUMMARY: "SUMMARY",
}


def break_line(message: str, width: int, indent: str = "") -> str:
    """Wrap *message* at *width* columns with a hanging *indent*.

    Breaks at the last space at or before *width* when that space is past
    column 15, and cuts the text at exactly *width* otherwise.  A width of
    0 disables wrapping.
    """
    if width <= 0:
        return message

    pieces: list[str] = []
    rest = message
    while len(rest) > width:
        last_space = rest.rfind(" ", 0, width + 1)
        if last_space > _MIN_SOFT_BREAK:
            pieces.append(rest[:last_space])
            rest = rest[last_space + 1 :]
        else:
            pieces.append(rest[:width])
            rest = rest[width:]
    pieces.append(rest)
    return ("\n" + indent).join(pieces)


def severity_label(severity: Severity) -> str:
    """Fixed-width label used in text reports (``PROBLEM``, ``INFO   ``...)."""
    return SEVERITY_LABELS[severity].ljust(7)
