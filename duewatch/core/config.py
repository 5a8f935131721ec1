from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from duewatch.core.contract import (
    CRITICAL_AT_PERCENT,
    DEFAULT_HOURS_PER_DAY,
    DEFAULT_PROGRESS_JUMP_POINTS,
    WARNING_AT_PERCENT,
)
from duewatch.core.severity import SeverityBands

logger = logging.getLogger(__name__)


# ----------------------------
# Primary config object
# ----------------------------

@dataclass(frozen=True)
class DuewatchConfig:
    """
    Single, flattened config object used by the CLI/runtime.

    Supports config.sample.toml style:
      [duewatch]
      routines, measurements, shifts, snapshot, json_out, asset, now,
      warning_at, critical_at, hours_per_day, progress_jump

    Also supports structured style:
      [meta], [severity], [estimate], [delta]
    """
    schema_version: str = "1.0"

    # IO
    routines: str = "data/routines.csv"
    measurements: str = "data/measurements.csv"
    shifts: str | None = None
    snapshot: str = "outputs/last_snapshot.csv"
    json_out: str = "outputs/duewatch_report.json"

    # evaluation knobs
    asset: str | None = None
    now: str | None = None
    warning_at: float = WARNING_AT_PERCENT
    critical_at: float = CRITICAL_AT_PERCENT
    hours_per_day: float = DEFAULT_HOURS_PER_DAY

    # delta knobs
    progress_jump: float = DEFAULT_PROGRESS_JUMP_POINTS

    @property
    def bands(self) -> SeverityBands:
        return SeverityBands(warning_at=self.warning_at, critical_at=self.critical_at)


# ----------------------------
# Helpers
# ----------------------------

def _as_dict(x: Any) -> dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _get(d: dict[str, Any], key: str, default: Any) -> Any:
    return d.get(key, default) if isinstance(d, dict) else default


def _coerce_float(x: Any, default: float) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return default


def _coerce_str(x: Any, default: str) -> str:
    if x is None:
        return default
    s = str(x)
    return s if s.strip() else default


def _coerce_opt_str(x: Any) -> str | None:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def _coerce_positive(x: Any, default: float) -> float:
    v = _coerce_float(x, default)
    return v if v > 0 else default


# ----------------------------
# Load + merge
# ----------------------------

def load_config(path: str | Path | None) -> DuewatchConfig:
    """
    Load TOML config. If missing/None, returns safe defaults.
    Never raises for missing file (config is optional).
    """
    if not path:
        return DuewatchConfig()

    p = Path(path)
    if not p.exists():
        return DuewatchConfig()

    data = tomllib.loads(p.read_text(encoding="utf-8"))

    # Preferred simple table
    dw = _as_dict(data.get("duewatch", {}))

    # Optional structured tables
    meta = _as_dict(data.get("meta", {}))
    severity = _as_dict(data.get("severity", {}))
    estimate = _as_dict(data.get("estimate", {}))
    delta = _as_dict(data.get("delta", {}))

    d = DuewatchConfig

    warning_at = _coerce_float(_get(dw, "warning_at", _get(severity, "warning_at", d.warning_at)), d.warning_at)
    critical_at = _coerce_float(_get(dw, "critical_at", _get(severity, "critical_at", d.critical_at)), d.critical_at)
    if not warning_at < critical_at:
        logger.warning(
            "%s: warning_at=%g must be below critical_at=%g; using defaults %g/%g",
            p, warning_at, critical_at, d.warning_at, d.critical_at,
        )
        warning_at, critical_at = d.warning_at, d.critical_at

    return DuewatchConfig(
        schema_version=_coerce_str(_get(meta, "schema_version", "1.0"), "1.0"),
        routines=_coerce_str(_get(dw, "routines", d.routines), d.routines),
        measurements=_coerce_str(_get(dw, "measurements", d.measurements), d.measurements),
        shifts=_coerce_opt_str(_get(dw, "shifts", None)),
        snapshot=_coerce_str(_get(dw, "snapshot", d.snapshot), d.snapshot),
        json_out=_coerce_str(_get(dw, "json_out", d.json_out), d.json_out),
        asset=_coerce_opt_str(_get(dw, "asset", None)),
        now=_coerce_opt_str(_get(dw, "now", None)),
        warning_at=warning_at,
        critical_at=critical_at,
        hours_per_day=_coerce_positive(
            _get(dw, "hours_per_day", _get(estimate, "hours_per_day", d.hours_per_day)),
            d.hours_per_day,
        ),
        progress_jump=_coerce_float(
            _get(dw, "progress_jump", _get(delta, "progress_jump_points", d.progress_jump)),
            d.progress_jump,
        ),
    )


def merge_config(cfg: DuewatchConfig, args: Any) -> DuewatchConfig:
    """
    Merge CLI args over file config.
    `args` is a namespace or a dict of explicitly provided values; only
    non-None/non-empty values are applied. Raises ValueError when the
    merged severity bands are out of order.
    """
    explicit = args if isinstance(args, dict) else vars(args)

    def pick_str(name: str, cur: str) -> str:
        v = explicit.get(name)
        if v is not None and str(v).strip():
            return str(v).strip()
        return cur

    def pick_opt_str(name: str, cur: str | None) -> str | None:
        v = explicit.get(name)
        if v is None:
            return cur
        s = str(v).strip()
        return s or cur

    def pick_float(name: str, cur: float) -> float:
        v = explicit.get(name)
        if v is not None:
            return _coerce_float(v, cur)
        return cur

    merged = DuewatchConfig(
        schema_version=cfg.schema_version,
        routines=pick_str("routines", cfg.routines),
        measurements=pick_str("measurements", cfg.measurements),
        shifts=pick_opt_str("shifts", cfg.shifts),
        snapshot=pick_str("snapshot", cfg.snapshot),
        json_out=pick_str("json_out", cfg.json_out),
        asset=pick_opt_str("asset", cfg.asset),
        now=pick_opt_str("now", cfg.now),
        warning_at=pick_float("warning_at", cfg.warning_at),
        critical_at=pick_float("critical_at", cfg.critical_at),
        hours_per_day=pick_float("hours_per_day", cfg.hours_per_day),
        progress_jump=pick_float("progress_jump", cfg.progress_jump),
    )
    if not merged.warning_at < merged.critical_at:
        raise ValueError(
            f"warning_at ({merged.warning_at:g}) must be below critical_at ({merged.critical_at:g})"
        )
    return merged
