from __future__ import annotations

import json
from pathlib import Path

import pytest

from duewatch.core.contract import DUEWATCH_EVALUATION_VERSION
from duewatch.tools import validate_json as vj

MINIMAL_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["meta", "board", "notes"],
    "properties": {
        "meta": {
            "type": "object",
            "required": ["schema_version"],
            "properties": {"schema_version": {"type": "string"}},
        },
        "board": {"type": "object"},
        "notes": {"type": "array"},
    },
    "additionalProperties": True,
}


def _write_json(path: Path, obj: dict) -> None:
    path.write_text(json.dumps(obj, indent=2, allow_nan=False), encoding="utf-8")


def _meta(schema_version: str, evaluation_version: str = DUEWATCH_EVALUATION_VERSION) -> dict:
    return {"schema_version": schema_version, "evaluation_version": evaluation_version}


def test_validate_json_accepts_matching_schema_version(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vj, "_load_schema_text", lambda: json.dumps(MINIMAL_SCHEMA))

    p = tmp_path / "report.json"
    _write_json(p, {"meta": _meta(vj.EXPECTED_SCHEMA_VERSION), "board": {}, "notes": []})

    result = vj.validate_json(p)
    assert result.ok is True
    assert result.schema_version == vj.EXPECTED_SCHEMA_VERSION
    assert result.evaluation_version == DUEWATCH_EVALUATION_VERSION
    assert result.routines == 0


def test_validate_json_rejects_mismatched_schema_version(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vj, "_load_schema_text", lambda: json.dumps(MINIMAL_SCHEMA))

    p = tmp_path / "report.json"
    _write_json(p, {"meta": _meta("v999"), "board": {}, "notes": []})

    with pytest.raises(vj.SchemaVersionMismatch):
        vj.validate_json(p)


def test_validate_json_main_exit_codes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert vj.main([str(tmp_path / "missing.json")]) == 1
    assert "ERROR" in capsys.readouterr().out


def test_validate_json_rejects_other_evaluation_version(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(vj, "_load_schema_text", lambda: json.dumps(MINIMAL_SCHEMA))

    p = tmp_path / "report.json"
    _write_json(p, {"meta": _meta(vj.EXPECTED_SCHEMA_VERSION, "0.0.1"), "board": {}, "notes": []})

    with pytest.raises(vj.SchemaVersionMismatch, match="evaluation_version"):
        vj.validate_json(p)
