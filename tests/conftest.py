from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pytest

from duewatch.core.models import MaintenanceTrigger, TriggerKind

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def runtime_trigger() -> MaintenanceTrigger:
    return MaintenanceTrigger(kind=TriggerKind.RUNTIME_HOURS, threshold_hours=100.0)


@pytest.fixture
def calendar_trigger() -> MaintenanceTrigger:
    return MaintenanceTrigger(kind=TriggerKind.CALENDAR_DAYS, threshold_days=30)


@pytest.fixture
def routines_df() -> pd.DataFrame:
    """
    Canonical routines table matching load_routines_csv() output.

    R1: runtime, 120h of 100h used   -> overdue / critical
    R2: runtime, 75h of 100h used    -> warning
    R3: calendar, 10 of 30 days      -> normal (33%)
    R4: calendar, never executed     -> not calculated
    R5: runtime, negative threshold  -> invalid
    """
    ts = pd.Timestamp(NOW - timedelta(days=10))
    return pd.DataFrame(
        {
            "routine_id": ["R5", "R4", "R3", "R2", "R1"],
            "asset_id": ["A1"] * 5,
            "name": ["Broken", "Guard check", "Lube audit", "Bearing check", "Oil change"],
            "trigger_type": ["runtime_hours", "calendar_days", "calendar_days", "runtime_hours", "runtime_hours"],
            "trigger_runtime_hours": np.array([-5.0, np.nan, np.nan, 100.0, 100.0]),
            "trigger_calendar_days": np.array([np.nan, 30.0, 30.0, np.nan, np.nan]),
            "last_execution_runtime_hours": np.array([500.0, np.nan, np.nan, 545.0, 500.0]),
            "last_execution_completed_at": pd.to_datetime([ts, pd.NaT, ts, ts, ts], utc=True),
        }
    )


@pytest.fixture
def measurements_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "asset_id": ["A1", "A1", "A1", "B1"],
            "reported_hours": np.array([100.0, 150.0, 140.0, 10.0]),
            "measured_at": pd.to_datetime(
                [
                    NOW - timedelta(days=5),
                    NOW - timedelta(days=3),
                    NOW - timedelta(days=1),
                    NOW - timedelta(days=2),
                ],
                utc=True,
            ),
            "reported_by": ["alice", "bob", "carol", None],
        }
    )
