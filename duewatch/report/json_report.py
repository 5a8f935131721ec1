from __future__ import annotations

import json
import math
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from duewatch.core.severity import DEFAULT_BANDS, SeverityBands


def _json_safe(x: Any) -> Any:
    """
    Convert values into strict JSON-safe Python types.

    Guarantees:
    - No NaN / Infinity (converted to None)
    - pandas/numpy NA -> None
    - numpy scalars -> python primitives
    - timestamps -> ISO8601 strings
    - Recurses through dict/list/tuple
    """
    # Dicts (recursive)
    if isinstance(x, dict):
        return {str(k): _json_safe(v) for k, v in x.items()}

    # Lists / tuples (recursive)
    if isinstance(x, (list, tuple)):
        return [_json_safe(v) for v in x]

    # pandas/numpy NA handling
    try:
        if pd.isna(x):
            return None
    except (TypeError, ValueError):
        pass

    # Timestamps (pd.Timestamp is a datetime subclass)
    if isinstance(x, datetime):
        return x.isoformat()

    # Floats (NaN/Inf)
    if isinstance(x, float):
        if math.isnan(x) or math.isinf(x):
            return None
        return x

    # Primitive safe types
    if isinstance(x, (str, int, bool)) or x is None:
        return x

    # Numpy scalars (float/int/bool) -> python primitives
    if hasattr(x, "item") and callable(x.item):
        try:
            return _json_safe(x.item())
        except (TypeError, ValueError):
            pass

    # Fallback: stringify unknown types
    return str(x)


def _df_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    if df is None or df.empty:
        return []
    return [_json_safe(rec) for rec in df.astype(object).to_dict(orient="records")]


def write_json_report(
    out_path: str | Path,
    *,
    generated_at: str | None,
    now: str,
    verdict: str,
    delta_lines: list[str] | None,
    board_df: pd.DataFrame,
    notes: list[str] | None,
    run_config: dict[str, str] | None,
    bands: SeverityBands | None = None,
) -> Path:
    """
    Writes the canonical duewatch JSON report.

    IMPORTANT:
    - `meta` must remain schema-stable and NOT include extra keys.
      (No `run_config` inside `meta`.)
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    evaluation_version = run_config.get("version") if run_config else None
    bands = bands or DEFAULT_BANDS
    schema_version = run_config.get("schema") if run_config else None

    payload: dict[str, Any] = {
        "meta": {
            "generated_at": generated_at,
            "now": now,
            "evaluation_version": evaluation_version,
            "schema_version": schema_version,
            "bands": {"warning_at": float(bands.warning_at), "critical_at": float(bands.critical_at)},
        },
        "board": {
            "verdict": verdict,
            "delta": delta_lines or [],
            "table": _df_to_records(board_df),
        },
        "notes": notes or [],
    }

    # Sanitize *entire* payload recursively
    payload = _json_safe(payload)

    # STRICT JSON - no NaN allowed
    p.write_text(
        json.dumps(payload, indent=2, sort_keys=False, allow_nan=False, ensure_ascii=False),
        encoding="utf-8",
    )
    return p
