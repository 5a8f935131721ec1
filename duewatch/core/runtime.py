from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

import pandas as pd

from duewatch.core.contract import AVERAGE_RUNTIME_WINDOW_DAYS, DEFAULT_HOURS_PER_DAY
from duewatch.core.evaluator import whole_days_between
from duewatch.core.models import RuntimeMeasurement, RuntimeSnapshot, as_utc

logger = logging.getLogger(__name__)


class MeasurementRejected(ValueError):
    """Raised when a reported runtime would move the asset's counter backwards."""


@dataclass(frozen=True)
class SnapshotResult:
    snapshot: RuntimeSnapshot
    issues: list[str]


def accept_measurement(current_hours: float | None, measurement: RuntimeMeasurement) -> float:
    """
    Return the asset's new current hours after accepting `measurement`.
    Reported hours must be finite, non-negative and >= the current value.
    """
    reported = measurement.reported_hours
    if reported is None or not math.isfinite(float(reported)) or reported < 0:
        raise MeasurementRejected(
            f"{measurement.asset_id}: reported hours must be a non-negative number, got {reported!r}"
        )
    if current_hours is not None and reported < current_hours:
        raise MeasurementRejected(
            f"{measurement.asset_id}: reported {reported:g}h is below current {current_hours:g}h"
        )
    return float(reported)


def _row_measurement(row: pd.Series) -> RuntimeMeasurement:
    reporter = row.get("reported_by")
    return RuntimeMeasurement(
        asset_id=str(row["asset_id"]),
        reported_hours=float(row["reported_hours"]),
        measured_at=as_utc(row["measured_at"]),
        reported_by=None if reporter is None or pd.isna(reporter) else str(reporter),
    )


def snapshot_from_measurements(df: pd.DataFrame, asset_id: str) -> SnapshotResult:
    """
    Replay an asset's measurements in time order. Current hours is the maximum
    accepted value; rows that would regress the counter are skipped and
    reported as issues.
    """
    if df is None or df.empty:
        return SnapshotResult(snapshot=RuntimeSnapshot(), issues=[])

    rows = df[df["asset_id"].astype(str) == str(asset_id)].copy()
    rows["measured_at"] = pd.to_datetime(rows["measured_at"], utc=True)
    rows = rows.sort_values("measured_at", kind="stable")

    current: float | None = None
    last: RuntimeMeasurement | None = None
    issues: list[str] = []

    for _, row in rows.iterrows():
        m = _row_measurement(row)
        try:
            current = accept_measurement(current, m)
        except MeasurementRejected as e:
            logger.warning("Rejected runtime measurement: %s", e)
            issues.append(f"Rejected measurement at {m.measured_at.isoformat()}: {e}")
            continue
        last = m

    return SnapshotResult(snapshot=RuntimeSnapshot(current_hours=current, last_measurement=last), issues=issues)


def build_snapshots(df: pd.DataFrame) -> tuple[dict[str, RuntimeSnapshot], list[str]]:
    if df is None or df.empty:
        return {}, []

    snapshots: dict[str, RuntimeSnapshot] = {}
    issues: list[str] = []
    for asset_id in sorted(df["asset_id"].astype(str).unique()):
        res = snapshot_from_measurements(df, asset_id)
        snapshots[asset_id] = res.snapshot
        issues.extend(res.issues)
    return snapshots, issues


def average_runtime_per_day(
    df: pd.DataFrame,
    asset_id: str,
    now: datetime,
    window_days: int = AVERAGE_RUNTIME_WINDOW_DAYS,
    default: float = DEFAULT_HOURS_PER_DAY,
) -> float:
    """
    Average runtime hours per day from consecutive measurements in the last
    `window_days`. Pairs without positive hour and whole-day deltas are
    ignored. Falls back to `default` when there is not enough data.
    """
    if df is None or df.empty:
        return default

    now = as_utc(now)
    since = now - timedelta(days=window_days)

    d = df[df["asset_id"].astype(str) == str(asset_id)].copy()
    d["measured_at"] = pd.to_datetime(d["measured_at"], utc=True)
    d = d[(d["measured_at"] >= since) & (d["measured_at"] <= now)].sort_values("measured_at")

    if len(d) < 2:
        return default

    total_hours = 0.0
    total_days = 0
    prev = None
    for _, cur in d.iterrows():
        if prev is not None:
            hours_diff = float(cur["reported_hours"]) - float(prev["reported_hours"])
            days_diff = whole_days_between(prev["measured_at"], cur["measured_at"])
            if days_diff > 0 and hours_diff > 0:
                total_hours += hours_diff
                total_days += days_diff
        prev = cur

    if total_days == 0:
        return default

    return round(total_hours / total_days, 2)
