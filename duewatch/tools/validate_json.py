"""
Validate a duewatch JSON report.

Checks run in order and stop at the first failing layer:
  1) strict JSON: no NaN/Infinity, top level is an object
  2) meta.schema_version and meta.evaluation_version match this build
  3) the bundled JSON Schema
  4) the board contract: each row's overdue flag, label and severity must
     follow from its progress and the bands recorded in meta
"""
from __future__ import annotations

import argparse
import importlib.resources as resources
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema

from duewatch.core.contract import (
    DUEWATCH_EVALUATION_VERSION,
    NOT_CALCULATED_LABEL,
    OVERDUE_AT_PERCENT,
    OVERDUE_LABEL,
)
from duewatch.core.severity import DEFAULT_BANDS, SeverityBands, classify
from duewatch.schema_constants import SCHEMA_RESOURCE_NAME, SCHEMA_RESOURCE_PACKAGE, SCHEMA_VERSION

EXPECTED_SCHEMA_VERSION = SCHEMA_VERSION

INVALID_SEVERITY = "invalid"


class StrictJsonError(ValueError):
    """Report text is not strict JSON."""


class SchemaVersionMismatch(ValueError):
    """The report was written for another schema or evaluation version."""


class BoardContractError(ValueError):
    """Board rows that disagree with the evaluation rules."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    schema_version: str
    evaluation_version: str
    routines: int


def _forbid_constant(token: str) -> Any:
    raise StrictJsonError(f"non-finite constant {token} is not allowed")


def _load_schema_text() -> str:
    return resources.files(SCHEMA_RESOURCE_PACKAGE).joinpath(SCHEMA_RESOURCE_NAME).read_text(encoding="utf-8")


def load_report(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text, parse_constant=_forbid_constant)
    except json.JSONDecodeError as e:
        raise StrictJsonError(f"invalid JSON at line {e.lineno}, col {e.colno}: {e.msg}") from e
    if not isinstance(data, dict):
        raise StrictJsonError("report must be a JSON object")
    return data


def _meta(data: dict[str, Any]) -> dict[str, Any]:
    meta = data.get("meta")
    if not isinstance(meta, dict):
        raise SchemaVersionMismatch("report has no 'meta' object")
    return meta


def _meta_str(meta: dict[str, Any], key: str) -> str:
    v = meta.get(key)
    if not isinstance(v, str) or not v.strip():
        raise SchemaVersionMismatch(f"meta.{key} must be a non-empty string")
    return v.strip()


def check_versions(
    data: dict[str, Any],
    *,
    schema_version: str = EXPECTED_SCHEMA_VERSION,
    evaluation_version: str = DUEWATCH_EVALUATION_VERSION,
) -> tuple[str, str]:
    meta = _meta(data)

    found_schema = _meta_str(meta, "schema_version")
    if found_schema != schema_version:
        raise SchemaVersionMismatch(f"schema_version is '{found_schema}', expected '{schema_version}'")

    found_eval = _meta_str(meta, "evaluation_version")
    if found_eval != evaluation_version:
        raise SchemaVersionMismatch(f"evaluation_version is '{found_eval}', expected '{evaluation_version}'")

    return found_schema, found_eval


def _board_rows(data: dict[str, Any]) -> list[dict[str, Any]]:
    board = data.get("board")
    if not isinstance(board, dict):
        return []
    return [r for r in board.get("table") or [] if isinstance(r, dict)]


def _bands(meta: dict[str, Any]) -> SeverityBands:
    raw = meta.get("bands")
    if not isinstance(raw, dict):
        return DEFAULT_BANDS
    try:
        return SeverityBands(
            warning_at=float(raw.get("warning_at", DEFAULT_BANDS.warning_at)),
            critical_at=float(raw.get("critical_at", DEFAULT_BANDS.critical_at)),
        )
    except (TypeError, ValueError) as e:
        raise BoardContractError([f"meta.bands: {e}"]) from e


def board_contract_problems(data: dict[str, Any]) -> list[str]:
    """
    Re-derive what each row must look like from its progress alone.
    Invalid rows carry progress 0 and are never overdue.
    """
    bands = _bands(_meta(data))
    problems: list[str] = []

    for row in _board_rows(data):
        rid = row.get("routine_id", "?")
        progress = row.get("progress")
        overdue = row.get("overdue")
        severity = row.get("severity")
        label = row.get("next_due_label")

        if severity == INVALID_SEVERITY:
            if progress != 0 or overdue:
                problems.append(f"{rid}: invalid routine must report progress 0 and not overdue")
            continue

        if not isinstance(progress, int):
            problems.append(f"{rid}: progress {progress!r} is not an integer percent")
            continue

        if bool(overdue) != (progress >= OVERDUE_AT_PERCENT):
            problems.append(f"{rid}: overdue={overdue} does not match progress {progress}%")

        expected = classify(progress, bands).value
        if severity != expected:
            problems.append(f"{rid}: severity '{severity}' but {progress}% is '{expected}'")

        if (label == OVERDUE_LABEL) != bool(overdue):
            problems.append(f"{rid}: label '{label}' disagrees with overdue={overdue}")

        if label == NOT_CALCULATED_LABEL and progress != 0:
            problems.append(f"{rid}: not calculated but progress is {progress}%")

    return problems


def validate_json(
    path: str | Path,
    *,
    expected_schema_version: str = EXPECTED_SCHEMA_VERSION,
    expected_evaluation_version: str = DUEWATCH_EVALUATION_VERSION,
) -> ValidationResult:
    data = load_report(Path(path).read_text(encoding="utf-8"))

    schema_version, evaluation_version = check_versions(
        data,
        schema_version=expected_schema_version,
        evaluation_version=expected_evaluation_version,
    )

    jsonschema.validate(instance=data, schema=load_report(_load_schema_text()))

    problems = board_contract_problems(data)
    if problems:
        raise BoardContractError(problems)

    return ValidationResult(
        ok=True,
        schema_version=schema_version,
        evaluation_version=evaluation_version,
        routines=len(_board_rows(data)),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a duewatch JSON report.")
    parser.add_argument("path", help="Path to JSON report file")
    args = parser.parse_args(argv)

    try:
        result = validate_json(args.path)
    except BoardContractError as e:
        print(f"ERROR: {len(e.problems)} board row problem(s)")
        for msg in e.problems:
            print(f" - {msg}")
        return 1
    except (OSError, ValueError, jsonschema.ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    print(
        f"OK: {result.routines} routines "
        f"(schema {result.schema_version}, evaluation {result.evaluation_version})."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
