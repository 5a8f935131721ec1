from __future__ import annotations

import argparse
import csv
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

# ----------------------------
# Configuration / Catalog
# ----------------------------

# (suffix, name, runtime thresholds)
RUNTIME_ROUTINES = [
    ("H1", "Oil and filter change", [250, 500]),
    ("H2", "Bearing inspection", [1000, 2000]),
]

# (suffix, name, calendar thresholds)
CALENDAR_ROUTINES = [
    ("C1", "Safety guard check", [7, 14]),
    ("C2", "Lubrication point audit", [30, 90]),
]

REPORTERS = ["operator", "technician", "supervisor"]

SHIFT_PATTERNS = {
    "1x8": [("07:00", "16:00", "12:00-13:00")],
    "2x8": [("06:00", "14:00", "10:00-10:15"), ("14:00", "22:00", "18:00-18:15")],
    "3x8": [("06:00", "14:00", ""), ("14:00", "22:00", ""), ("22:00", "06:00", "")],
}

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


@dataclass(frozen=True)
class ProgressProfile:
    # fraction of the trigger threshold already consumed at `now`
    low: float
    high: float


PROFILE_PRESETS: dict[str, ProgressProfile] = {
    "healthy": ProgressProfile(0.05, 0.60),
    "due": ProgressProfile(0.60, 1.30),
    "mixed": ProgressProfile(0.05, 1.30),
}


@dataclass(frozen=True)
class GeneratedFiles:
    routines: Path
    measurements: Path
    shifts: Path


# ----------------------------
# Helpers
# ----------------------------

def parse_dt(s: str) -> datetime:
    dt = datetime.fromisoformat(s)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def iter_measurement_times(now: datetime, days: int, step_days: int) -> list[datetime]:
    start = now - timedelta(days=days)
    out = []
    t = start
    while t <= now:
        out.append(t)
        t += timedelta(days=step_days)
    return out


# ----------------------------
# Core generation
# ----------------------------

def generate_csv(
    out_dir: Path,
    now: datetime,
    days: int,
    step_days: int,
    assets: list[str],
    seed: int | None,
    profile: str,
    print_summary: bool,
    inject_regression: bool = False,
) -> GeneratedFiles:
    if profile not in PROFILE_PRESETS:
        raise ValueError(f"Unknown profile: {profile}")

    out_dir.mkdir(parents=True, exist_ok=True)
    files = GeneratedFiles(
        routines=out_dir / "routines.csv",
        measurements=out_dir / "measurements.csv",
        shifts=out_dir / "shifts.csv",
    )

    rng = random.Random(seed)
    prof = PROFILE_PRESETS[profile]
    current_hours: dict[str, float] = {}
    m_rows = 0

    with files.measurements.open("w", newline="", encoding="utf-8") as mf, \
            files.shifts.open("w", newline="", encoding="utf-8") as sf:
        mw = csv.writer(mf)
        sw = csv.writer(sf)
        mw.writerow(["asset_id", "reported_hours", "measured_at", "reported_by"])
        sw.writerow(["asset_id", "weekday", "start_time", "end_time", "breaks", "active"])

        for a in assets:
            pattern = rng.choice(sorted(SHIFT_PATTERNS))
            for weekday in WEEKDAYS:
                for start, end, breaks in SHIFT_PATTERNS[pattern]:
                    sw.writerow([a, weekday, start, end, breaks, "true"])

            hours = round(rng.uniform(1000.0, 5000.0), 1)
            per_day = {"1x8": 8.0, "2x8": 16.0, "3x8": 24.0}[pattern] * 5 / 7
            times = iter_measurement_times(now, days, step_days)

            for i, ts in enumerate(times):
                if i:
                    hours = round(hours + max(0.0, rng.gauss(per_day * step_days, per_day * 0.1)), 1)
                mw.writerow([a, f"{hours:.1f}", iso(ts), rng.choice(REPORTERS)])
                m_rows += 1

            if inject_regression and a == assets[0] and times:
                # typo'd reading below the counter; the snapshot provider must reject it
                mw.writerow([a, f"{max(0.0, hours - 100.0):.1f}", iso(now), "operator"])
                m_rows += 1

            current_hours[a] = hours

    r_rows = 0
    with files.routines.open("w", newline="", encoding="utf-8") as rf:
        rw = csv.writer(rf)
        rw.writerow([
            "routine_id",
            "asset_id",
            "name",
            "trigger_type",
            "trigger_runtime_hours",
            "trigger_calendar_days",
            "last_execution_runtime_hours",
            "last_execution_completed_at",
        ])

        for a in assets:
            for suffix, name, thresholds in RUNTIME_ROUTINES:
                threshold = rng.choice(thresholds)
                used = threshold * rng.uniform(prof.low, prof.high)
                at_completion = round(max(0.0, current_hours[a] - used), 1)
                completed = now - timedelta(days=rng.randint(1, max(1, days)))
                rw.writerow([f"{a}-{suffix}", a, name, "runtime_hours", threshold, "",
                             f"{at_completion:.1f}", iso(completed)])
                r_rows += 1

            for suffix, name, thresholds in CALENDAR_ROUTINES:
                threshold = rng.choice(thresholds)
                elapsed = int(threshold * rng.uniform(prof.low, prof.high))
                completed = now - timedelta(days=elapsed, hours=rng.randint(0, 12))
                rw.writerow([f"{a}-{suffix}", a, name, "calendar_days", "", threshold,
                             "", iso(completed)])
                r_rows += 1

    if print_summary:
        print(f"Generated {files.routines} ({r_rows} routines)")
        print(f"Generated {files.measurements} ({m_rows} measurements)")
        print(f"Assets: {', '.join(assets)} | Days: {days} | Step: {step_days}d | Profile: {profile} | Seed: {seed}")

    return files


# ----------------------------
# CLI
# ----------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="generate_routines.py",
        description="Generate synthetic routines/measurements/shifts CSVs for duewatch demo/testing.",
    )

    p.add_argument("--out-dir", default="data",
                   help="Output directory (default: data)")
    p.add_argument("--now", default="2026-01-01T00:00:00",
                   help="Reference 'now' (ISO format, UTC if no offset)")
    p.add_argument("--days", type=int, default=60,
                   help="Days of measurement history")
    p.add_argument("--step-days", type=int, default=3,
                   help="Days between runtime measurements")
    p.add_argument("--assets", default="PUMP-01,PUMP-02,COMP-01",
                   help="Comma-separated asset IDs")
    p.add_argument("--seed", type=int, default=None,
                   help="Random seed for reproducible output")
    p.add_argument("--profile", choices=sorted(PROFILE_PRESETS), default="mixed",
                   help="How far routines are toward their trigger")
    p.add_argument("--inject-regression", action="store_true",
                   help="Append one runtime reading below the first asset's counter")
    p.add_argument("--print-summary", action="store_true",
                   help="Print generation summary to console")

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    assets = [a.strip() for a in str(args.assets).split(",") if a.strip()]

    if args.days <= 0:
        raise SystemExit("--days must be > 0")
    if args.step_days <= 0:
        raise SystemExit("--step-days must be > 0")
    if not assets:
        raise SystemExit("--assets cannot be empty")

    generate_csv(
        out_dir=Path(args.out_dir),
        now=parse_dt(args.now),
        days=args.days,
        step_days=args.step_days,
        assets=assets,
        seed=args.seed,
        profile=args.profile,
        print_summary=args.print_summary,
        inject_regression=args.inject_regression,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
