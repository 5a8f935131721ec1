from __future__ import annotations

import logging
import math
import sys
from datetime import datetime, timedelta

from duewatch.core.contract import (
    DEFAULT_HOURS_PER_DAY,
    NOT_CALCULATED_LABEL,
    OVERDUE_AT_PERCENT,
    OVERDUE_LABEL,
    PROGRESS_MAX,
    PROGRESS_MIN,
)
from duewatch.core.models import (
    EvaluationResult,
    ExecutionRecord,
    MaintenanceTrigger,
    RuntimeSnapshot,
    TriggerKind,
    ValidationError,
    as_utc,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def _not_calculated() -> EvaluationResult:
    return EvaluationResult(progress_percent=0, overdue=False, next_due_label=NOT_CALCULATED_LABEL)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def progress_percent(elapsed: float, threshold: float) -> int:
    """
    Round to the nearest integer first, then clamp to 0..100.
    99.6% therefore reports as 100.
    """
    raw = elapsed / threshold * 100.0
    # extreme ratios overflow to +/-inf; settle them before int conversion
    if not raw < PROGRESS_MAX:
        return PROGRESS_MAX
    if not raw > PROGRESS_MIN:
        return PROGRESS_MIN
    return max(PROGRESS_MIN, min(PROGRESS_MAX, _round_half_up(raw)))


def _bounded_hours(hours: float) -> float:
    return min(max(0.0, hours), sys.float_info.max)


def add_days(start: datetime, days: float) -> datetime | None:
    """
    `start` plus `days` rounded up to whole days, or None when the result
    falls outside the representable datetime range.
    """
    if not math.isfinite(days):
        return None
    try:
        return start + timedelta(days=math.ceil(days))
    except OverflowError:
        return None


def _check_finite(value: float | None, field: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(field, f"expected a number, got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(field, f"must be finite, got {value!r}")


def validate_trigger(trigger: MaintenanceTrigger) -> None:
    """
    Reject structurally invalid triggers. An unconfigured threshold is not invalid.
    """
    try:
        kind = TriggerKind(trigger.kind)
    except ValueError as e:
        raise ValidationError("kind", f"unknown trigger kind {trigger.kind!r}") from e

    hours = trigger.threshold_hours
    days = trigger.threshold_days

    _check_finite(hours, "thresholdHours")
    _check_finite(days, "thresholdDays")

    if kind is TriggerKind.RUNTIME_HOURS:
        if days is not None:
            raise ValidationError("thresholdDays", "not allowed for a runtime_hours trigger")
        if hours is not None and hours <= 0:
            raise ValidationError("thresholdHours", f"must be > 0, got {hours!r}")
    else:
        if hours is not None:
            raise ValidationError("thresholdHours", "not allowed for a calendar_days trigger")
        if days is not None:
            if float(days) != int(days):
                raise ValidationError("thresholdDays", f"must be a whole number of days, got {days!r}")
            if days <= 0:
                raise ValidationError("thresholdDays", f"must be > 0, got {days!r}")


def _validate_inputs(execution: ExecutionRecord, snapshot: RuntimeSnapshot) -> None:
    _check_finite(execution.runtime_hours_at_completion, "runtimeHoursAtCompletion")
    _check_finite(snapshot.current_hours, "currentHours")


def whole_days_between(start: datetime, end: datetime) -> int:
    """Whole elapsed days from start to end, floored, measured in UTC."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return int(math.floor(seconds / SECONDS_PER_DAY))


def _evaluate_runtime(
    trigger: MaintenanceTrigger,
    execution: ExecutionRecord,
    snapshot: RuntimeSnapshot,
) -> EvaluationResult:
    at_completion = execution.runtime_hours_at_completion
    current = snapshot.current_hours
    threshold = trigger.threshold_hours

    if at_completion is None or current is None or threshold is None:
        return _not_calculated()

    hours_since = float(current) - float(at_completion)
    progress = progress_percent(hours_since, float(threshold))
    hours_remaining = _bounded_hours(float(threshold) - hours_since)
    overdue = progress >= OVERDUE_AT_PERCENT

    logger.debug(
        "runtime trigger: current=%s at_completion=%s since=%s threshold=%s remaining=%s progress=%d",
        current, at_completion, hours_since, threshold, hours_remaining, progress,
    )

    label = OVERDUE_LABEL if overdue else f"~{math.ceil(hours_remaining)}h"
    return EvaluationResult(
        progress_percent=progress,
        overdue=overdue,
        next_due_label=label,
        hours_remaining=hours_remaining,
    )


def _evaluate_calendar(
    trigger: MaintenanceTrigger,
    execution: ExecutionRecord,
    now: datetime,
) -> EvaluationResult:
    completed_at = execution.completed_at
    threshold = trigger.threshold_days

    if completed_at is None or threshold is None:
        return _not_calculated()

    completed_at = as_utc(completed_at)
    days_since = whole_days_between(completed_at, now)
    progress = progress_percent(days_since, float(threshold))
    next_due = add_days(completed_at, int(threshold))
    overdue = progress >= OVERDUE_AT_PERCENT

    logger.debug(
        "calendar trigger: completed_at=%s days_since=%d threshold=%s progress=%d",
        completed_at.isoformat(), days_since, threshold, progress,
    )

    return EvaluationResult(
        progress_percent=progress,
        overdue=overdue,
        next_due_label=OVERDUE_LABEL if overdue else None,
        next_due_date=next_due,
    )


def evaluate(
    trigger: MaintenanceTrigger,
    execution: ExecutionRecord | None,
    snapshot: RuntimeSnapshot | None,
    now: datetime,
) -> EvaluationResult:
    """
    Map {trigger, last execution, runtime snapshot, now} to progress, overdue
    flag and next-due information.

    Missing optional data yields the "not calculated" result. Structurally
    invalid triggers and non-finite numbers raise ValidationError.
    """
    execution = execution or ExecutionRecord()
    snapshot = snapshot or RuntimeSnapshot()

    validate_trigger(trigger)
    _validate_inputs(execution, snapshot)

    if TriggerKind(trigger.kind) is TriggerKind.RUNTIME_HOURS:
        return _evaluate_runtime(trigger, execution, snapshot)
    return _evaluate_calendar(trigger, execution, as_utc(now))


def estimate_next_due_date(
    trigger: MaintenanceTrigger,
    execution: ExecutionRecord | None,
    snapshot: RuntimeSnapshot | None,
    now: datetime,
    hours_per_day: float | None = None,
) -> datetime | None:
    """
    Calendar date on which the routine is expected to come due.

    Calendar triggers use the exact due date. Runtime triggers project the
    remaining hours forward at `hours_per_day` (shift-derived or measured
    average; DEFAULT_HOURS_PER_DAY when unknown), rounding up to whole days.
    When the runtime at completion was never recorded, elapsed runtime is
    estimated from the days since completion. Dates beyond the datetime
    range come back as None.
    """
    execution = execution or ExecutionRecord()
    snapshot = snapshot or RuntimeSnapshot()

    validate_trigger(trigger)
    _validate_inputs(execution, snapshot)
    now = as_utc(now)

    if TriggerKind(trigger.kind) is TriggerKind.CALENDAR_DAYS:
        if execution.completed_at is None or trigger.threshold_days is None:
            return None
        return add_days(as_utc(execution.completed_at), int(trigger.threshold_days))

    threshold = trigger.threshold_hours
    if threshold is None:
        return None

    rate = DEFAULT_HOURS_PER_DAY if hours_per_day is None else float(hours_per_day)
    if not math.isfinite(rate) or rate <= 0:
        raise ValidationError("hoursPerDay", f"must be > 0, got {hours_per_day!r}")

    if execution.runtime_hours_at_completion is not None and snapshot.current_hours is not None:
        since = float(snapshot.current_hours) - float(execution.runtime_hours_at_completion)
    elif execution.completed_at is not None:
        since = whole_days_between(execution.completed_at, now) * rate
    else:
        return None

    remaining = _bounded_hours(float(threshold) - since)
    if remaining <= 0:
        return now

    return add_days(now, remaining / rate)
