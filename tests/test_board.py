from datetime import timedelta

import pandas as pd

from duewatch.core.board import (
    BOARD_COLUMNS,
    board_verdict,
    hours_per_day_by_asset,
    routine_board,
    shifts_by_asset,
)
from duewatch.core.models import RuntimeSnapshot
from duewatch.core.severity import SeverityBands

SNAPSHOTS = {"A1": RuntimeSnapshot(current_hours=620.0)}


def test_board_ranks_overdue_then_severity(routines_df, now):
    board = routine_board(routines_df, SNAPSHOTS, now)

    assert list(board.columns) == BOARD_COLUMNS
    assert board["routine_id"].tolist() == ["R1", "R2", "R3", "R4", "R5"]
    assert board["severity"].tolist() == ["critical", "warning", "normal", "normal", "invalid"]
    assert board["overdue"].tolist() == [True, False, False, False, False]
    assert board["progress"].tolist() == [100, 75, 33, 0, 0]


def test_board_labels_and_reasons(routines_df, now):
    board = routine_board(routines_df, SNAPSHOTS, now).set_index("routine_id")

    assert board.loc["R1", "next_due_label"] == "overdue"
    assert board.loc["R1", "reason"] == "120h of 100h since last execution (100%)."
    assert board.loc["R2", "next_due_label"] == "~25h"
    assert board.loc["R2", "hours_remaining"] == 25.0
    assert board.loc["R3", "next_due_date"] == pd.Timestamp(now + timedelta(days=20))
    assert board.loc["R3", "reason"] == "33% of 30d interval elapsed."
    assert board.loc["R4", "next_due_label"] == "not calculated"
    assert board.loc["R4", "reason"] == "Not calculated: routine never executed."
    assert board.loc["R5", "reason"].startswith("Invalid trigger:")


def test_board_estimates_use_asset_rate(routines_df, now):
    board = routine_board(routines_df, SNAPSHOTS, now, rates={"A1": 5.0}).set_index("routine_id")

    # 25h remaining at 5h/day
    assert board.loc["R2", "est_next_due"] == pd.Timestamp(now + timedelta(days=5))
    assert board.loc["R1", "est_next_due"] == pd.Timestamp(now)
    assert pd.isna(board.loc["R4", "est_next_due"])


def test_board_without_measurements_is_not_calculated(routines_df, now):
    board = routine_board(routines_df, {}, now).set_index("routine_id")

    assert board.loc["R1", "next_due_label"] == "not calculated"
    assert board.loc["R1", "reason"] == "Not calculated: no current runtime for asset."
    assert board.loc["R3", "progress"] == 33


def test_board_custom_bands(routines_df, now):
    board = routine_board(routines_df, SNAPSHOTS, now, bands=SeverityBands(warning_at=30, critical_at=70))
    sev = dict(zip(board["routine_id"], board["severity"]))

    assert sev["R2"] == "critical"
    assert sev["R3"] == "warning"


def test_empty_board(now):
    board = routine_board(pd.DataFrame(), SNAPSHOTS, now)
    assert board.empty
    assert list(board.columns) == BOARD_COLUMNS
    assert board_verdict(board) == "No routines to evaluate."


def test_board_verdict(routines_df, now):
    verdict = board_verdict(routine_board(routines_df, SNAPSHOTS, now))

    assert verdict == (
        "R1 overdue and should be executed now. "
        "R2 approaching due and should be planned. "
        "2 routines within normal range. "
        "R5 have invalid triggers."
    )


def test_shift_rates_per_asset():
    shifts = pd.DataFrame(
        {
            "asset_id": ["A1", "A1", "B1"],
            "weekday": ["Monday", "Tuesday", "Monday"],
            "start_time": ["07:00", "22:00", "08:00"],
            "end_time": ["16:00", "06:00", "09:00"],
            "breaks": ["12:00-13:00", None, None],
            "active": [True, True, False],
        }
    )

    rates = hours_per_day_by_asset(shifts_by_asset(shifts))

    assert rates == {"A1": 16.0 / 7}


def test_far_future_dates_do_not_abort_the_board(now):
    routines = pd.DataFrame(
        {
            "routine_id": ["X1", "X2", "X3"],
            "asset_id": ["A1", "A1", "A1"],
            "name": ["Overhaul", "Decade audit", "Normal"],
            "trigger_type": ["runtime_hours", "calendar_days", "runtime_hours"],
            "trigger_runtime_hours": [1e9, None, 100.0],
            "trigger_calendar_days": [None, 200000.0, None],
            "last_execution_runtime_hours": [0.0, None, 600.0],
            "last_execution_completed_at": pd.to_datetime([now, now, now], utc=True),
        }
    )

    board = routine_board(routines, SNAPSHOTS, now).set_index("routine_id")

    assert board["severity"].tolist().count("invalid") == 0
    # past year 9999
    assert pd.isna(board.loc["X1", "est_next_due"])
    assert board.loc["X1", "next_due_label"].startswith("~")
    # valid datetime, outside the nanosecond timestamp range
    assert pd.isna(board.loc["X2", "next_due_date"])
    assert pd.isna(board.loc["X2", "est_next_due"])
    assert board.loc["X2", "progress"] == 0
    assert board.loc["X3", "progress"] == 20
