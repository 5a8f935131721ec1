from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pandas as pd


class ValidationError(ValueError):
    """Raised when a trigger or numeric input is structurally invalid."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class TriggerKind(str, enum.Enum):
    RUNTIME_HOURS = "runtime_hours"
    CALENDAR_DAYS = "calendar_days"


@dataclass(frozen=True)
class MaintenanceTrigger:
    kind: TriggerKind
    threshold_hours: float | None = None
    threshold_days: int | None = None


@dataclass(frozen=True)
class ExecutionRecord:
    completed_at: datetime | None = None
    runtime_hours_at_completion: float | None = None


@dataclass(frozen=True)
class RuntimeMeasurement:
    asset_id: str
    reported_hours: float
    measured_at: datetime
    reported_by: str | None = None


@dataclass(frozen=True)
class RuntimeSnapshot:
    current_hours: float | None = None
    last_measurement: RuntimeMeasurement | None = None


@dataclass(frozen=True)
class EvaluationResult:
    progress_percent: int
    overdue: bool
    next_due_label: str | None = None
    next_due_date: datetime | None = None
    hours_remaining: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """
        Wire shape: camelCase keys, absent optionals omitted, dates as ISO8601.
        """
        out: dict[str, Any] = {
            "progressPercent": self.progress_percent,
            "overdue": self.overdue,
        }
        if self.next_due_label is not None:
            out["nextDueLabel"] = self.next_due_label
        if self.next_due_date is not None:
            out["nextDueDate"] = self.next_due_date.isoformat()
        if self.hours_remaining is not None:
            out["hoursRemaining"] = self.hours_remaining
        return out


# ----------------------------
# Helpers
# ----------------------------

def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if isinstance(ts, pd.Timestamp):
        ts = ts.to_pydatetime()
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_timestamp(value: Any, field: str) -> datetime | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(field, f"not an ISO8601 timestamp: {value!r}") from e
    if pd.isna(ts):
        return None
    return as_utc(ts)


def parse_number(value: Any, field: str) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(field, f"expected a number, got {value!r}")
    try:
        f = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(field, f"expected a number, got {value!r}") from e
    if not math.isfinite(f):
        raise ValidationError(field, f"must be finite, got {value!r}")
    return f


def _pick(d: dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d:
            return d[k]
    return None


# ----------------------------
# Wire shapes
# ----------------------------

def trigger_from_dict(d: dict[str, Any]) -> MaintenanceTrigger:
    raw_kind = _pick(d, "kind", "trigger_type")
    try:
        kind = TriggerKind(str(raw_kind).strip())
    except ValueError as e:
        raise ValidationError("kind", f"unknown trigger kind {raw_kind!r}") from e

    hours = parse_number(_pick(d, "thresholdHours", "threshold_hours"), "thresholdHours")
    days = parse_number(_pick(d, "thresholdDays", "threshold_days"), "thresholdDays")
    if days is not None and not days.is_integer():
        raise ValidationError("thresholdDays", f"must be a whole number of days, got {days!r}")

    return MaintenanceTrigger(
        kind=kind,
        threshold_hours=hours,
        threshold_days=None if days is None else int(days),
    )


def execution_from_dict(d: dict[str, Any] | None) -> ExecutionRecord:
    d = d or {}
    return ExecutionRecord(
        completed_at=parse_timestamp(_pick(d, "completedAt", "completed_at"), "completedAt"),
        runtime_hours_at_completion=parse_number(
            _pick(d, "runtimeHoursAtCompletion", "runtime_hours_at_completion"),
            "runtimeHoursAtCompletion",
        ),
    )


def snapshot_from_dict(d: dict[str, Any] | None) -> RuntimeSnapshot:
    d = d or {}
    return RuntimeSnapshot(
        current_hours=parse_number(_pick(d, "currentHours", "current_hours"), "currentHours"),
    )
