from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from duewatch.core.contract import DEFAULT_PROGRESS_JUMP_POINTS
from duewatch.core.severity import severity_rank


@dataclass(frozen=True)
class DeltaConfig:
    progress_jump: float = DEFAULT_PROGRESS_JUMP_POINTS


SNAPSHOT_COLUMNS = ["routine_id", "progress", "overdue", "severity"]


def _as_bool(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("true", "1", "yes")
    try:
        if pd.isna(v):
            return False
    except (TypeError, ValueError):
        pass
    return bool(v)


def _normalize(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for c in SNAPSHOT_COLUMNS:
        if c not in out.columns:
            out[c] = pd.NA
    out = out[SNAPSHOT_COLUMNS].copy()

    out["routine_id"] = out["routine_id"].astype(str)
    out["progress"] = pd.to_numeric(out["progress"], errors="coerce")
    out["overdue"] = out["overdue"].map(_as_bool)
    out["severity"] = out["severity"].astype(str)

    return out.sort_values("routine_id").reset_index(drop=True)


def snapshot_from_board(board_df: pd.DataFrame) -> pd.DataFrame:
    """
    Extract a stable snapshot from the routine board.
    """
    if board_df is None or board_df.empty:
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)
    return _normalize(board_df)


def load_snapshot(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    try:
        df = pd.read_csv(p, dtype={"routine_id": str})
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError):
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    if df.empty:
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)
    return _normalize(df)


def save_snapshot(snapshot_df: pd.DataFrame, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    out = snapshot_df.copy()
    for c in SNAPSHOT_COLUMNS:
        if c not in out.columns:
            out[c] = pd.NA
    out = out[SNAPSHOT_COLUMNS].copy()

    out.to_csv(p, index=False)


def compute_delta_lines(
    prev_snapshot: pd.DataFrame,
    curr_snapshot: pd.DataFrame,
    cfg: DeltaConfig | None = None,
    max_lines: int = 8,
) -> list[str]:
    """
    Produce planner-friendly bullet lines describing what's changed since the last run.
    """
    cfg = cfg or DeltaConfig()

    prev = prev_snapshot.copy()
    curr = curr_snapshot.copy()

    if curr.empty and prev.empty:
        return ["No routine data available yet."]

    if prev.empty and not curr.empty:
        return ["Baseline created (first run). Future reports will highlight changes."]

    prev_i = prev.set_index("routine_id", drop=False)
    curr_i = curr.set_index("routine_id", drop=False)

    routines = sorted(set(prev_i.index.tolist()) | set(curr_i.index.tolist()))
    lines: list[str] = []

    for rid in routines:
        was = prev_i.loc[rid] if rid in prev_i.index else None
        now = curr_i.loc[rid] if rid in curr_i.index else None

        if was is None and now is not None:
            lines.append(f"{rid} added to the board (severity {now['severity']}).")
            continue

        if now is None and was is not None:
            lines.append(f"{rid} removed from the board.")
            continue

        was_over = _as_bool(was["overdue"])
        now_over = _as_bool(now["overdue"])
        if now_over and not was_over:
            lines.append(f"{rid} became overdue.")
        elif was_over and not now_over:
            lines.append(f"{rid} no longer overdue (executed).")

        was_sev = str(was["severity"])
        now_sev = str(now["severity"])
        was_rank = severity_rank(was_sev)
        now_rank = severity_rank(now_sev)
        if now_rank < was_rank:
            lines.append(f"{rid} severity escalated {was_sev} → {now_sev}.")
        elif now_rank > was_rank and not (was_over and not now_over):
            lines.append(f"{rid} severity reduced {was_sev} → {now_sev}.")

        was_p = was["progress"]
        now_p = now["progress"]
        if pd.notna(was_p) and pd.notna(now_p):
            jump = float(now_p) - float(was_p)
            if jump >= cfg.progress_jump:
                lines.append(f"{rid} progress jumped {jump:.0f} points ({was_p:.0f}% → {now_p:.0f}%).")

        if len(lines) >= max_lines:
            break

    if not lines:
        return ["No material routine changes detected since last report."]

    return lines[:max_lines]
