from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

import pandas as pd

from duewatch.core.board import board_verdict, hours_per_day_by_asset, routine_board, shifts_by_asset
from duewatch.core.config import load_config, merge_config
from duewatch.core.contract import DUEWATCH_EVALUATION_VERSION
from duewatch.core.delta import DeltaConfig, compute_delta_lines, load_snapshot, save_snapshot, snapshot_from_board
from duewatch.core.ingest import load_measurements_csv, load_routines_csv, load_shifts_csv
from duewatch.core.models import ValidationError, parse_timestamp
from duewatch.core.runtime import average_runtime_per_day, build_snapshots
from duewatch.report.json_report import write_json_report
from duewatch.schema_constants import SCHEMA_VERSION

try:
    DUEWATCH_PACKAGE_VERSION = version("duewatch")
except PackageNotFoundError:
    DUEWATCH_PACKAGE_VERSION = "dev"

logger = logging.getLogger(__name__)


def _console_safe(s: str) -> str:
    """
    Windows PowerShell can choke on certain Unicode chars (e.g., arrows).
    Keep console output ASCII-safe while leaving JSON output untouched.
    """
    return (
        str(s)
        .replace("→", "->")
        .replace("•", "-")
    )


def _require_existing_file(path: Path, label: str) -> None:
    if not path.exists():
        raise FileNotFoundError(f"{label} not found: {path}")
    if path.is_dir():
        raise IsADirectoryError(f"{label} is a directory, expected a file: {path}")


def _fmt_date(v: Any) -> str:
    if v is None or (not isinstance(v, str) and pd.isna(v)):
        return "-"
    return pd.Timestamp(v).strftime("%Y-%m-%d")


def _board_line(row: pd.Series) -> str:
    label = row["next_due_label"] if isinstance(row["next_due_label"], str) else _fmt_date(row["next_due_date"])
    return (
        f"{row['routine_id']:<14} {row['asset_id']:<10} {str(row['severity']).upper():<8} "
        f"{int(row['progress']):>3}%  next: {label:<14} est: {_fmt_date(row['est_next_due'])}"
    )


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="duewatch", description="duewatch - maintenance routine due-ness board")

    p.add_argument("--routines", default=None, help="Path to routines CSV (defaults from config or built-in)")
    p.add_argument("--measurements", default=None, help="Path to runtime measurements CSV (optional)")
    p.add_argument("--shifts", default=None, help="Path to shift schedule CSV (optional)")
    p.add_argument("--snapshot", default=None, help="Snapshot CSV path for change tracking")
    p.add_argument("--config", default=None, help="Path to config TOML (optional)")

    p.add_argument("--asset", default=None, help="Only evaluate routines of this asset_id")
    p.add_argument("--now", default=None, help="Evaluation time (ISO8601). Default: current UTC time")
    p.add_argument("--warning-at", type=float, default=None, help="Severity: warning band lower bound (percent)")
    p.add_argument("--critical-at", type=float, default=None, help="Severity: critical band lower bound (percent)")
    p.add_argument("--hours-per-day", type=float, default=None,
                   help="Runtime hours/day for next-due estimates when no shift or history is known")
    p.add_argument("--progress-jump", type=float, default=None, help="Delta trigger: progress jump points")

    p.add_argument(
        "--json-out",
        "--json",
        dest="json_out",
        default=None,
        help="JSON report output path",
    )
    p.add_argument("--log-level", default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    # Load file config (optional). NOTE: load_config returns defaults if None/missing.
    file_cfg = load_config(args.config)

    # Only keys the user actually provided override file config
    keys = (
        "routines", "measurements", "shifts", "snapshot", "json_out", "asset", "now",
        "warning_at", "critical_at", "hours_per_day", "progress_jump",
    )
    cli_explicit = {k: getattr(args, k) for k in keys if getattr(args, k, None) is not None}
    try:
        cfg = merge_config(file_cfg, cli_explicit)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 2

    try:
        now = parse_timestamp(cfg.now, "now") if cfg.now else None
    except ValidationError as e:
        print(f"ERROR: {e}")
        return 2
    now = now or datetime.now(timezone.utc)

    routines_path = Path(cfg.routines)
    measurements_path = Path(cfg.measurements)
    shifts_path = Path(cfg.shifts) if cfg.shifts else None
    snapshot_path = Path(cfg.snapshot)
    json_out_path = Path(cfg.json_out)

    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    json_out_path.parent.mkdir(parents=True, exist_ok=True)

    # ---- Fail fast: missing input should be explicit ----
    try:
        _require_existing_file(routines_path, "Routines CSV")
    except (FileNotFoundError, IsADirectoryError) as e:
        print(f"ERROR: {e}")
        return 2

    notes: list[str] = []

    routines = load_routines_csv(routines_path)
    notes.extend(routines.issues)
    routines_df = routines.df
    if cfg.asset:
        routines_df = routines_df[routines_df["asset_id"] == cfg.asset].copy()

    if routines_df.empty:
        print(f"ERROR: no routines to evaluate in {routines_path}" + (f" for asset {cfg.asset}" if cfg.asset else ""))
        if routines.issues:
            print("Ingest issues:")
            for msg in routines.issues:
                print(f" - {_console_safe(msg)}")
        return 1

    # Measurements are optional: without them runtime routines are "not calculated"
    measurements_df = pd.DataFrame()
    if measurements_path.exists():
        measurements = load_measurements_csv(measurements_path)
        notes.extend(measurements.issues)
        measurements_df = measurements.df
    else:
        notes.append(f"No measurements file ({measurements_path}); runtime routines not calculated.")

    snapshots, snapshot_issues = build_snapshots(measurements_df)
    notes.extend(snapshot_issues)

    rates: dict[str, float] = {}
    if shifts_path is not None:
        shifts = load_shifts_csv(shifts_path)
        notes.extend(shifts.issues)
        rates = hours_per_day_by_asset(shifts_by_asset(shifts.df))

    for asset_id in sorted(set(routines_df["asset_id"].astype(str))):
        if asset_id not in rates:
            rates[asset_id] = average_runtime_per_day(measurements_df, asset_id, now, default=cfg.hours_per_day)

    logger.info("Evaluating %d routines at %s", len(routines_df), now.isoformat())

    board_df = routine_board(routines_df, snapshots, now, bands=cfg.bands, rates=rates)
    verdict = board_verdict(board_df)

    # Snapshot delta
    prev_snap = load_snapshot(snapshot_path)
    curr_snap = snapshot_from_board(board_df)
    delta_lines = compute_delta_lines(prev_snap, curr_snap, cfg=DeltaConfig(progress_jump=cfg.progress_jump))

    # Save snapshot AFTER computing delta (so "prev" truly means last run)
    save_snapshot(curr_snap, snapshot_path)

    generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
    run_config = {
        "config": str(args.config or ""),
        "schema": SCHEMA_VERSION,
        "warning_at": str(cfg.warning_at),
        "critical_at": str(cfg.critical_at),
        "version": DUEWATCH_EVALUATION_VERSION,
        "package_version": DUEWATCH_PACKAGE_VERSION,
    }

    write_json_report(
        out_path=json_out_path,
        generated_at=generated_at,
        now=now.isoformat(),
        verdict=verdict,
        delta_lines=delta_lines,
        board_df=board_df,
        notes=notes,
        run_config=run_config,
        bands=cfg.bands,
    )

    # Prints only at main
    print(f"Evaluated at:    {now.isoformat()}")
    for _, row in board_df.iterrows():
        print(_console_safe(_board_line(row)))
    print(f"Verdict:         {_console_safe(verdict)}")

    if delta_lines:
        print("Key Changes:")
        for d in delta_lines:
            print(f" - {_console_safe(d)}")

    print(f"Snapshot saved:  {snapshot_path.resolve()}")
    print(f"JSON saved:      {json_out_path.resolve()}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
