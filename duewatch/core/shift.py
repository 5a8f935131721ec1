from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class BreakWindow:
    start_time: str  # "HH:MM"
    end_time: str


@dataclass(frozen=True)
class ShiftTime:
    weekday: str
    start_time: str
    end_time: str
    breaks: tuple[BreakWindow, ...] = field(default_factory=tuple)
    active: bool = True


def parse_hhmm(s: str) -> int:
    """'HH:MM' (or 'HH:MM:SS') -> minutes after midnight."""
    parts = str(s).strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {s!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time of day: {s!r}")
    return hours * 60 + minutes


def window_minutes(start_time: str, end_time: str) -> int:
    """Length of a window; an end before the start crosses midnight."""
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    if end < start:
        end += MINUTES_PER_DAY
    return end - start


def shift_minutes(shift: ShiftTime) -> int:
    if not shift.active:
        return 0
    total = window_minutes(shift.start_time, shift.end_time)
    for b in shift.breaks:
        total -= window_minutes(b.start_time, b.end_time)
    return max(0, total)


def weekly_runtime_hours(shifts: Iterable[ShiftTime]) -> float:
    """
    Total scheduled operating hours per week across all active shift windows.
    """
    return sum(shift_minutes(s) for s in shifts) / 60.0


def hours_per_day(shifts: Iterable[ShiftTime]) -> float | None:
    weekly = weekly_runtime_hours(shifts)
    if weekly <= 0:
        return None
    return weekly / 7.0


def parse_breaks(text: str | None) -> tuple[BreakWindow, ...]:
    """
    '12:00-13:00;15:00-15:15' -> BreakWindow tuple. Blank -> no breaks.
    """
    if text is None:
        return ()
    out: list[BreakWindow] = []
    for chunk in str(text).split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        start, sep, end = chunk.partition("-")
        if not sep:
            raise ValueError(f"Invalid break window: {chunk!r}")
        # validate eagerly so bad rows are reported at ingest
        parse_hhmm(start)
        parse_hhmm(end)
        out.append(BreakWindow(start.strip(), end.strip()))
    return tuple(out)
