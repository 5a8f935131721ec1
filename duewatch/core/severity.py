from __future__ import annotations

import enum
from dataclasses import dataclass

from duewatch.core.contract import CRITICAL_AT_PERCENT, WARNING_AT_PERCENT


class Severity(str, enum.Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SeverityBands:
    warning_at: float = WARNING_AT_PERCENT
    critical_at: float = CRITICAL_AT_PERCENT

    def __post_init__(self) -> None:
        if not self.warning_at < self.critical_at:
            raise ValueError(
                f"warning_at ({self.warning_at:g}) must be below critical_at ({self.critical_at:g})"
            )


DEFAULT_BANDS = SeverityBands()


def classify(progress_percent: float, bands: SeverityBands | None = None) -> Severity:
    """
    <70 normal, 70..89 warning, >=90 critical (with default bands).
    """
    bands = bands or DEFAULT_BANDS
    if progress_percent >= bands.critical_at:
        return Severity.CRITICAL
    if progress_percent >= bands.warning_at:
        return Severity.WARNING
    return Severity.NORMAL


# Higher urgency = lower number
SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.WARNING: 1,
    Severity.NORMAL: 2,
}


def severity_rank(label: str) -> int:
    try:
        return SEVERITY_RANK[Severity(str(label).lower())]
    except ValueError:
        return 9
