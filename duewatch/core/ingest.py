from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from duewatch.core.models import TriggerKind
from duewatch.core.shift import parse_breaks, parse_hhmm


ROUTINE_COLUMNS = [
    "routine_id",
    "asset_id",
    "name",
    "trigger_type",
    "trigger_runtime_hours",
    "trigger_calendar_days",
    "last_execution_runtime_hours",
    "last_execution_completed_at",
]

MEASUREMENT_COLUMNS = [
    "asset_id",
    "reported_hours",
    "measured_at",
    "reported_by",
]

SHIFT_COLUMNS = [
    "asset_id",
    "weekday",
    "start_time",
    "end_time",
]


@dataclass(frozen=True)
class IngestResult:
    df: pd.DataFrame
    issues: list[str]


def _read_checked(path: str | Path, required: list[str]) -> tuple[pd.DataFrame | None, list[str]]:
    path = Path(path)
    if not path.exists():
        return None, [f"File not found: {path}"]

    df = pd.read_csv(path, dtype={"asset_id": str, "routine_id": str})

    missing = [c for c in required if c not in df.columns]
    if missing:
        return None, [f"{path.name}: missing required columns: {missing}"]
    return df, []


def load_routines_csv(path: str | Path) -> IngestResult:
    """
    Load routine definitions plus their last execution.

    Expected columns:
    routine_id, asset_id, name, trigger_type, trigger_runtime_hours,
    trigger_calendar_days, last_execution_runtime_hours, last_execution_completed_at
    """
    df, issues = _read_checked(path, ROUTINE_COLUMNS)
    if df is None:
        return IngestResult(df=pd.DataFrame(columns=ROUTINE_COLUMNS), issues=issues)

    for col in ("routine_id", "asset_id", "name", "trigger_type"):
        df[col] = df[col].astype("string").str.strip()

    known = {k.value for k in TriggerKind}
    bad_kind = ~df["trigger_type"].isin(known)
    if bad_kind.any():
        issues.append(f"{int(bad_kind.sum())} routines have unknown trigger_type (expected {sorted(known)})")

    # Raw text vs coerced: a non-empty cell that fails coercion is a data error, a blank is "not set"
    for col in ("trigger_runtime_hours", "trigger_calendar_days", "last_execution_runtime_hours"):
        raw = df[col]
        df[col] = pd.to_numeric(raw, errors="coerce")
        bad = int((raw.notna() & df[col].isna()).sum())
        if bad:
            issues.append(f"{bad} routines have invalid numeric {col}")

    raw_ts = df["last_execution_completed_at"]
    df["last_execution_completed_at"] = pd.to_datetime(raw_ts, errors="coerce", utc=True)
    bad_ts = int((raw_ts.notna() & df["last_execution_completed_at"].isna()).sum())
    if bad_ts:
        issues.append(f"{bad_ts} routines have invalid last_execution_completed_at")

    df = df[~bad_kind & df["routine_id"].notna() & df["asset_id"].notna()]

    dup = int(df["routine_id"].duplicated().sum())
    if dup:
        issues.append(f"{dup} duplicate routine_id rows dropped")
    df = df.drop_duplicates(subset=["routine_id"], keep="first").copy()

    return IngestResult(df=df.reset_index(drop=True), issues=issues)


def load_measurements_csv(path: str | Path) -> IngestResult:
    """
    Load the runtime measurement log.

    Expected columns:
    asset_id, reported_hours, measured_at, reported_by
    """
    df, issues = _read_checked(path, MEASUREMENT_COLUMNS)
    if df is None:
        return IngestResult(df=pd.DataFrame(columns=MEASUREMENT_COLUMNS), issues=issues)

    df["asset_id"] = df["asset_id"].astype("string").str.strip()
    df["reported_hours"] = pd.to_numeric(df["reported_hours"], errors="coerce")
    df["measured_at"] = pd.to_datetime(df["measured_at"], errors="coerce", utc=True)

    bad = int(df[["reported_hours", "measured_at"]].isna().any(axis=1).sum())
    if bad:
        issues.append(f"{bad} measurements have invalid reported_hours/measured_at")

    df = df.dropna(subset=["asset_id", "reported_hours", "measured_at"]).copy()
    return IngestResult(df=df.reset_index(drop=True), issues=issues)


def _valid_shift_row(row: pd.Series) -> bool:
    try:
        parse_hhmm(row["start_time"])
        parse_hhmm(row["end_time"])
        parse_breaks(row.get("breaks"))
    except (TypeError, ValueError):
        return False
    return True


def load_shifts_csv(path: str | Path) -> IngestResult:
    """
    Load shift windows per asset.

    Expected columns:
    asset_id, weekday, start_time, end_time
    Optional: breaks ("HH:MM-HH:MM;..."), active (bool, default true)
    """
    df, issues = _read_checked(path, SHIFT_COLUMNS)
    if df is None:
        return IngestResult(df=pd.DataFrame(columns=SHIFT_COLUMNS + ["breaks", "active"]), issues=issues)

    if "breaks" not in df.columns:
        df["breaks"] = None
    if "active" not in df.columns:
        df["active"] = True

    df["asset_id"] = df["asset_id"].astype("string").str.strip()
    df["breaks"] = df["breaks"].astype(object).where(df["breaks"].notna(), None)
    df["active"] = df["active"].map(
        lambda v: str(v).strip().lower() not in ("0", "false", "no", "off")
    )

    ok = df.apply(_valid_shift_row, axis=1) if not df.empty else pd.Series(dtype=bool)
    bad = int((~ok).sum()) if not df.empty else 0
    if bad:
        issues.append(f"{bad} shift rows have invalid start_time/end_time/breaks")
        df = df[ok]

    return IngestResult(df=df.reset_index(drop=True), issues=issues)
