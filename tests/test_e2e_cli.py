from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from duewatch.cli import main as cli_main
from duewatch.tools.generate_routines import generate_csv
from duewatch.tools.validate_json import validate_json

NOW = "2026-10-19T12:00:00Z"

ROUTINES_CSV = """\
routine_id,asset_id,name,trigger_type,trigger_runtime_hours,trigger_calendar_days,last_execution_runtime_hours,last_execution_completed_at
R1,A1,Oil change,runtime_hours,100,,500,2026-10-01T00:00:00Z
R2,A1,Guard check,calendar_days,,30,,2026-10-09T12:00:00Z
R3,B1,Belt check,runtime_hours,200,,10,2026-10-01T00:00:00Z
"""

MEASUREMENTS_CSV = """\
asset_id,reported_hours,measured_at,reported_by
A1,550,2026-10-10T00:00:00Z,alice
A1,620,2026-10-18T00:00:00Z,bob
"""


def _handcrafted(tmp_path: Path) -> list[str]:
    routines = tmp_path / "routines.csv"
    measurements = tmp_path / "measurements.csv"
    routines.write_text(ROUTINES_CSV, encoding="utf-8")
    measurements.write_text(MEASUREMENTS_CSV, encoding="utf-8")
    return [
        "--routines", str(routines),
        "--measurements", str(measurements),
        "--snapshot", str(tmp_path / "out" / "snap.csv"),
        "--json", str(tmp_path / "out" / "report.json"),
        "--now", NOW,
    ]


def test_cli_end_to_end_generated_data(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    json_out = tmp_path / "outputs" / "check.json"
    snap_out = tmp_path / "outputs" / "check_snapshot.csv"

    files = generate_csv(
        out_dir=data_dir,
        now=datetime(2026, 1, 1, tzinfo=timezone.utc),
        days=30,
        step_days=3,
        assets=["PUMP-01", "PUMP-02"],
        seed=1,
        profile="mixed",
        print_summary=False,
        inject_regression=True,
    )

    rc = cli_main(
        [
            "--routines", str(files.routines),
            "--measurements", str(files.measurements),
            "--shifts", str(files.shifts),
            "--snapshot", str(snap_out),
            "--json-out", str(json_out),
            "--now", "2026-01-01T00:00:00Z",
        ]
    )

    assert rc == 0
    assert snap_out.exists() and snap_out.stat().st_size > 0

    result = validate_json(json_out)
    assert result.ok is True

    obj = json.loads(json_out.read_text(encoding="utf-8"))
    assert len(obj["board"]["table"]) == 8
    assert obj["board"]["delta"] == ["Baseline created (first run). Future reports will highlight changes."]
    assert any(n.startswith("Rejected measurement") for n in obj["notes"])


def test_cli_handcrafted_board(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = _handcrafted(tmp_path)

    assert cli_main(args) == 0
    out = capsys.readouterr().out
    assert "Verdict:" in out
    assert "R1 overdue and should be executed now" in out

    report = json.loads((tmp_path / "out" / "report.json").read_text(encoding="utf-8"))
    rows = {r["routine_id"]: r for r in report["board"]["table"]}

    assert [r["routine_id"] for r in report["board"]["table"]] == ["R1", "R2", "R3"]
    assert rows["R1"]["overdue"] is True
    assert rows["R1"]["severity"] == "critical"
    assert rows["R2"]["progress"] == 33
    assert rows["R2"]["next_due_date"] == "2026-11-08T12:00:00+00:00"
    assert rows["R3"]["next_due_label"] == "not calculated"
    assert report["meta"]["now"] == "2026-10-19T12:00:00+00:00"

    # second run against the saved snapshot
    assert cli_main(args) == 0
    report = json.loads((tmp_path / "out" / "report.json").read_text(encoding="utf-8"))
    assert report["board"]["delta"] == ["No material routine changes detected since last report."]


def test_cli_missing_routines_file_exits_2(tmp_path: Path) -> None:
    rc = cli_main(["--routines", str(tmp_path / "nope.csv"), "--snapshot", str(tmp_path / "s.csv"),
                   "--json-out", str(tmp_path / "r.json")])
    assert rc == 2


def test_cli_bad_now_exits_2(tmp_path: Path) -> None:
    args = _handcrafted(tmp_path)
    args[-1] = "yesterday-ish"
    assert cli_main(args) == 2


def test_cli_unknown_asset_exits_1(tmp_path: Path) -> None:
    assert cli_main([*_handcrafted(tmp_path), "--asset", "ZZ-99"]) == 1


def test_cli_out_of_order_bands_exit_2(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main([*_handcrafted(tmp_path), "--warning-at", "95"]) == 2
    assert "must be below critical_at" in capsys.readouterr().out
