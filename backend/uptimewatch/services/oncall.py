"""On-call resolver - who is responsible right now."""
from datetime import datetime
from typing import Iterable, Optional, TypeVar

from ..utils.time_utils import to_naive_utc

MINUTES_PER_DAY = 24 * 60

S = TypeVar("S")


def _minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def _minute_of_week(moment: datetime) -> int:
    # Weeks start on Sunday
    return (moment.isoweekday() % 7) * MINUTES_PER_DAY + _minute_of_day(moment)


def _in_window(now: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= now <= end
    # Window wraps past midnight (or the end of the week)
    return now >= start or now <= end


def schedule_matches(schedule, now: datetime) -> bool:
    """Whether ``schedule`` covers ``now`` (all times UTC)."""
    start = to_naive_utc(schedule.start_time)
    end = to_naive_utc(schedule.end_time)
    now = to_naive_utc(now)
    recurrence = schedule.recurrence or "none"

    if recurrence == "daily":
        return _in_window(_minute_of_day(now), _minute_of_day(start), _minute_of_day(end))
    if recurrence == "weekly":
        return _in_window(_minute_of_week(now), _minute_of_week(start), _minute_of_week(end))
    return start <= now <= end


def resolve_on_call(schedules: Iterable[S], now: datetime) -> Optional[S]:
    """Return the matching schedule with the earliest start time, or None."""
    ordered = sorted(schedules, key=lambda s: to_naive_utc(s.start_time))
    for schedule in ordered:
        if schedule_matches(schedule, now):
            return schedule
    return None
