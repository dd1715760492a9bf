"""Expand a doctor's availability profile into concrete candidate windows."""

from collections.abc import Iterator
from datetime import datetime, timedelta

from medibook.scheduling.intervals import clamp
from medibook.scheduling.models import (
    AvailabilityProfile,
    TimeInterval,
    ensure_utc,
    utc_midnight,
)

ONE_DAY = timedelta(days=1)


def utc_weekday(day: datetime) -> int:
    """Weekday of *day* counted from Sunday (0=Sun .. 6=Sat)."""
    return (day.weekday() + 1) % 7


def iter_days(range_start: datetime, range_end: datetime) -> Iterator[datetime]:
    """Yield the UTC midnight of every day touching ``[range_start, range_end)``."""
    day = utc_midnight(range_start)
    while day < range_end:
        yield day
        day += ONE_DAY


def build_candidate_windows(
    profile: AvailabilityProfile,
    range_start: datetime,
    range_end: datetime,
) -> list[TimeInterval]:
    """Return the doctor's nominal availability inside ``[range_start, range_end)``.

    Weekly rules are expanded per UTC day and one-off date windows are
    appended, each clamped to the range. Overlapping windows are kept as-is;
    downstream subtraction and slot splitting tolerate them.
    """
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    out: list[TimeInterval] = []

    for day in iter_days(range_start, range_end):
        dow = utc_weekday(day)
        for rule in profile.weekly:
            if rule.day_of_week != dow:
                continue
            window = TimeInterval(
                start=day + timedelta(minutes=rule.start_minute),
                end=day + timedelta(minutes=rule.end_minute),
            )
            clipped = clamp(window, range_start, range_end)
            if clipped:
                out.append(clipped)

    for window in profile.date_windows:
        clipped = clamp(window, range_start, range_end)
        if clipped:
            out.append(clipped)

    return out


def build_day_windows(profile: AvailabilityProfile, day_start: datetime) -> list[TimeInterval]:
    """Candidate windows for the single UTC day beginning at *day_start*."""
    day_start = utc_midnight(day_start)
    return build_candidate_windows(profile, day_start, day_start + ONE_DAY)
