"""
Daily totals for charts and history views.

Aggregates bucket entries by the UTC date of their timestamp, while
``filter_today`` compares dates in the user's timezone. The two disagree for
entries logged near local midnight. Existing history depends on the UTC
bucketing, so both behaviours are kept as they are.
"""

from collections import defaultdict
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, TypeVar, Union
from zoneinfo import ZoneInfo

from fastlog.core.models import DailyAggregate, ExerciseEntry, LogEntry, utc_now

T = TypeVar("T", LogEntry, ExerciseEntry)


def _aggregate(entries: Iterable[T], value: Callable[[T], Optional[int]]) -> List[DailyAggregate]:
    totals: Dict[date, int] = defaultdict(int)
    for entry in entries:
        amount = value(entry)
        if amount is None:
            continue
        totals[entry.timestamp.astimezone(timezone.utc).date()] += amount

    daily = [DailyAggregate.for_day(day, total) for day, total in totals.items()]
    return sorted(daily, key=lambda d: d.representative_timestamp)


def aggregate_calories(entries: Iterable[LogEntry]) -> List[DailyAggregate]:
    """Calories consumed per UTC date, oldest first. Unknown calories are skipped."""
    return _aggregate(entries, lambda e: e.calories)


def aggregate_exercise_calories(entries: Iterable[ExerciseEntry]) -> List[DailyAggregate]:
    """Calories burned per UTC date, oldest first."""
    return _aggregate(entries, lambda e: e.calories_burned)


def _zone(tz: Union[str, tzinfo]) -> tzinfo:
    return ZoneInfo(tz) if isinstance(tz, str) else tz


def local_date(instant: datetime, tz: Union[str, tzinfo]) -> str:
    """YYYY-MM-DD of an instant as seen in ``tz``."""
    return instant.astimezone(_zone(tz)).date().isoformat()


def filter_today(
    entries: Iterable[T], tz: Union[str, tzinfo], now: Optional[datetime] = None
) -> List[T]:
    """Entries whose local date in ``tz`` is today's local date in ``tz``."""
    zone = _zone(tz)
    today = local_date(now or utc_now(), zone)
    return [e for e in entries if local_date(e.timestamp, zone) == today]
