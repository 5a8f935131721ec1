from datetime import timedelta

import pytest

from duewatch.core.evaluator import estimate_next_due_date
from duewatch.core.models import (
    ExecutionRecord,
    MaintenanceTrigger,
    RuntimeSnapshot,
    TriggerKind,
    ValidationError,
)


def test_calendar_estimate_is_exact_due_date(calendar_trigger, now):
    completed = now - timedelta(days=10)
    est = estimate_next_due_date(calendar_trigger, ExecutionRecord(completed_at=completed), None, now)
    assert est == completed + timedelta(days=30)


def test_calendar_estimate_without_execution_is_none(calendar_trigger, now):
    assert estimate_next_due_date(calendar_trigger, ExecutionRecord(), None, now) is None


def test_runtime_estimate_projects_remaining_hours(runtime_trigger, now):
    execution = ExecutionRecord(runtime_hours_at_completion=500.0)
    snapshot = RuntimeSnapshot(current_hours=550.0)

    # 50h remaining at 8h/day -> 6.25 -> 7 days
    assert estimate_next_due_date(runtime_trigger, execution, snapshot, now, 8.0) == now + timedelta(days=7)
    # default rate is 8h/day
    assert estimate_next_due_date(runtime_trigger, execution, snapshot, now) == now + timedelta(days=7)
    # 24/7 operation
    assert estimate_next_due_date(runtime_trigger, execution, snapshot, now, 24.0) == now + timedelta(days=3)


def test_runtime_estimate_when_overdue_is_now(runtime_trigger, now):
    est = estimate_next_due_date(
        runtime_trigger,
        ExecutionRecord(runtime_hours_at_completion=500.0),
        RuntimeSnapshot(current_hours=640.0),
        now,
    )
    assert est == now


def test_runtime_estimate_from_completion_date_only(runtime_trigger, now):
    # 5 days * 8h = 40h used, 60h remaining -> 7.5 -> 8 days
    execution = ExecutionRecord(completed_at=now - timedelta(days=5, hours=3))
    est = estimate_next_due_date(runtime_trigger, execution, RuntimeSnapshot(), now, 8.0)
    assert est == now + timedelta(days=8)


def test_runtime_estimate_without_history_is_none(runtime_trigger, now):
    assert estimate_next_due_date(runtime_trigger, None, RuntimeSnapshot(current_hours=10.0), now) is None


@pytest.mark.parametrize("rate", [0.0, -4.0, float("nan")])
def test_runtime_estimate_rejects_bad_rate(runtime_trigger, now, rate):
    with pytest.raises(ValidationError) as exc:
        estimate_next_due_date(
            runtime_trigger,
            ExecutionRecord(runtime_hours_at_completion=500.0),
            RuntimeSnapshot(current_hours=550.0),
            now,
            rate,
        )
    assert exc.value.field == "hoursPerDay"


def test_runtime_estimate_beyond_datetime_range_is_none(now):
    trigger = MaintenanceTrigger(kind=TriggerKind.RUNTIME_HOURS, threshold_hours=1e9)
    est = estimate_next_due_date(
        trigger,
        ExecutionRecord(runtime_hours_at_completion=0.0),
        RuntimeSnapshot(current_hours=10.0),
        now,
        8.0,
    )
    assert est is None


def test_runtime_estimate_with_vanishing_rate_is_none(now):
    trigger = MaintenanceTrigger(kind=TriggerKind.RUNTIME_HOURS, threshold_hours=1e300)
    est = estimate_next_due_date(
        trigger,
        ExecutionRecord(runtime_hours_at_completion=0.0),
        RuntimeSnapshot(current_hours=0.0),
        now,
        1e-300,
    )
    assert est is None


def test_calendar_estimate_beyond_datetime_range_is_none(now):
    trigger = MaintenanceTrigger(kind=TriggerKind.CALENDAR_DAYS, threshold_days=3_000_000)
    assert estimate_next_due_date(trigger, ExecutionRecord(completed_at=now), None, now) is None
