from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd

from duewatch.core.contract import NOT_CALCULATED_LABEL
from duewatch.core.evaluator import estimate_next_due_date, evaluate
from duewatch.core.models import (
    EvaluationResult,
    ExecutionRecord,
    MaintenanceTrigger,
    RuntimeSnapshot,
    TriggerKind,
    ValidationError,
    as_utc,
)
from duewatch.core.severity import SeverityBands, classify, severity_rank
from duewatch.core.shift import ShiftTime, hours_per_day, parse_breaks

logger = logging.getLogger(__name__)

INVALID = "invalid"

BOARD_COLUMNS = [
    "routine_id",
    "asset_id",
    "name",
    "kind",
    "progress",
    "overdue",
    "severity",
    "next_due_label",
    "next_due_date",
    "hours_remaining",
    "est_next_due",
    "reason",
]


def _opt(v: Any) -> Any:
    if v is None:
        return None
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    return v


def _opt_float(v: Any) -> float | None:
    v = _opt(v)
    return None if v is None else float(v)


def _opt_days(v: Any) -> int | float | None:
    # Whole days become int; fractional values are passed through so validation rejects them
    v = _opt_float(v)
    if v is None:
        return None
    return int(v) if v.is_integer() else v


def _opt_ts(v: Any) -> datetime | None:
    v = _opt(v)
    return None if v is None else as_utc(pd.Timestamp(v))


def _board_ts(v: datetime | None) -> pd.Timestamp | None:
    # board columns are nanosecond timestamps; dates past their range are left blank
    if v is None:
        return None
    try:
        return pd.Timestamp(v).as_unit("ns")
    except (OverflowError, pd.errors.OutOfBoundsDatetime):
        logger.debug("Date %s outside the board range", v.isoformat())
        return None


def trigger_from_row(row: pd.Series) -> MaintenanceTrigger:
    raw = _opt(row.get("trigger_type"))
    try:
        kind = TriggerKind(str(raw))
    except ValueError as e:
        raise ValidationError("kind", f"unknown trigger kind {raw!r}") from e
    return MaintenanceTrigger(
        kind=kind,
        threshold_hours=_opt_float(row.get("trigger_runtime_hours")),
        threshold_days=_opt_days(row.get("trigger_calendar_days")),
    )


def execution_from_row(row: pd.Series) -> ExecutionRecord:
    return ExecutionRecord(
        completed_at=_opt_ts(row.get("last_execution_completed_at")),
        runtime_hours_at_completion=_opt_float(row.get("last_execution_runtime_hours")),
    )


def _reason(trigger: MaintenanceTrigger, execution: ExecutionRecord, snapshot: RuntimeSnapshot, result: EvaluationResult) -> str:
    kind = TriggerKind(trigger.kind)

    if result.next_due_label == NOT_CALCULATED_LABEL:
        if kind is TriggerKind.RUNTIME_HOURS:
            if trigger.threshold_hours is None:
                return "Not calculated: no runtime threshold configured."
            if execution.runtime_hours_at_completion is None:
                return "Not calculated: no runtime recorded at last execution."
            return "Not calculated: no current runtime for asset."
        if trigger.threshold_days is None:
            return "Not calculated: no calendar threshold configured."
        return "Not calculated: routine never executed."

    if kind is TriggerKind.RUNTIME_HOURS:
        since = float(snapshot.current_hours) - float(execution.runtime_hours_at_completion)
        return f"{since:g}h of {trigger.threshold_hours:g}h since last execution ({result.progress_percent}%)."

    return f"{result.progress_percent}% of {trigger.threshold_days}d interval elapsed."


def shifts_by_asset(shifts_df: pd.DataFrame | None) -> dict[str, list[ShiftTime]]:
    if shifts_df is None or shifts_df.empty:
        return {}

    out: dict[str, list[ShiftTime]] = {}
    for _, row in shifts_df.iterrows():
        out.setdefault(str(row["asset_id"]), []).append(
            ShiftTime(
                weekday=str(row["weekday"]),
                start_time=str(row["start_time"]),
                end_time=str(row["end_time"]),
                breaks=parse_breaks(_opt(row.get("breaks"))),
                active=bool(row.get("active", True)),
            )
        )
    return out


def hours_per_day_by_asset(shifts: dict[str, list[ShiftTime]]) -> dict[str, float]:
    out: dict[str, float] = {}
    for asset_id, times in shifts.items():
        rate = hours_per_day(times)
        if rate is not None:
            out[asset_id] = rate
    return out


def _evaluate_row(
    row: pd.Series,
    snapshots: dict[str, RuntimeSnapshot],
    now: datetime,
    bands: SeverityBands | None,
    rates: dict[str, float],
) -> dict[str, Any]:
    asset_id = str(row["asset_id"])
    base = {
        "routine_id": str(row["routine_id"]),
        "asset_id": asset_id,
        "name": str(_opt(row.get("name")) or ""),
        "kind": str(_opt(row.get("trigger_type")) or ""),
    }

    snapshot = snapshots.get(asset_id, RuntimeSnapshot())
    try:
        trigger = trigger_from_row(row)
        execution = execution_from_row(row)
        result = evaluate(trigger, execution, snapshot, now)
        est = estimate_next_due_date(trigger, execution, snapshot, now, rates.get(asset_id))
    except ValidationError as e:
        logger.warning("Routine %s has an invalid trigger: %s", base["routine_id"], e)
        return {
            **base,
            "progress": 0,
            "overdue": False,
            "severity": INVALID,
            "next_due_label": None,
            "next_due_date": None,
            "hours_remaining": None,
            "est_next_due": None,
            "reason": f"Invalid trigger: {e}",
        }

    return {
        **base,
        "progress": result.progress_percent,
        "overdue": result.overdue,
        "severity": classify(result.progress_percent, bands).value,
        "next_due_label": result.next_due_label,
        "next_due_date": _board_ts(result.next_due_date),
        "hours_remaining": None if result.hours_remaining is None else round(result.hours_remaining, 1),
        "est_next_due": _board_ts(est),
        "reason": _reason(trigger, execution, snapshot, result),
    }


def routine_board(
    routines_df: pd.DataFrame,
    snapshots: dict[str, RuntimeSnapshot],
    now: datetime,
    bands: SeverityBands | None = None,
    rates: dict[str, float] | None = None,
) -> pd.DataFrame:
    """
    Evaluate every routine and rank them: overdue first, then severity,
    then progress (highest first). Invalid triggers are listed last.

    `rates` maps asset_id -> runtime hours per day for next-due estimates.
    """
    if routines_df is None or routines_df.empty:
        return pd.DataFrame(columns=BOARD_COLUMNS)

    now = as_utc(now)
    rates = rates or {}

    rows = [_evaluate_row(row, snapshots, now, bands, rates) for _, row in routines_df.iterrows()]
    df = pd.DataFrame(rows, columns=BOARD_COLUMNS)

    df["_o"] = np.where(df["overdue"].astype(bool), 0, 1)
    df["_s"] = df["severity"].map(severity_rank)
    df = (
        df.sort_values(["_o", "_s", "progress", "routine_id"], ascending=[True, True, False, True])
          .drop(columns=["_o", "_s"])
          .reset_index(drop=True)
    )

    return df


def board_verdict(board_df: pd.DataFrame) -> str:
    if board_df.empty:
        return "No routines to evaluate."

    overdue = board_df.loc[board_df["overdue"].astype(bool), "routine_id"].tolist()
    due_soon = board_df.loc[
        (~board_df["overdue"].astype(bool)) & (board_df["severity"] == "critical"), "routine_id"
    ].tolist()
    warning = board_df.loc[board_df["severity"] == "warning", "routine_id"].tolist()
    invalid = board_df.loc[board_df["severity"] == INVALID, "routine_id"].tolist()
    normal = board_df.loc[board_df["severity"] == "normal", "routine_id"].tolist()

    parts: list[str] = []
    if overdue:
        parts.append(f"{', '.join(map(str, overdue))} overdue and should be executed now")
    if due_soon:
        parts.append(f"{', '.join(map(str, due_soon))} close to due (critical)")
    if warning:
        parts.append(f"{', '.join(map(str, warning))} approaching due and should be planned")
    if normal:
        parts.append(f"{len(normal)} routine{'s' if len(normal) != 1 else ''} within normal range")
    if invalid:
        parts.append(f"{', '.join(map(str, invalid))} have invalid triggers")

    return ". ".join(parts) + "."
