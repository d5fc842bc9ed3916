import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import List, Optional

from fastlog.core import aggregation
from fastlog.core.errors import ValidationError
from fastlog.core.models import DailyAggregate, ExerciseEntry, LogEntry, WeightEntry, utc_now
from fastlog.core.units import convert_weight, parse_weight

# Import the DataAccessLayer contract, not a specific implementation
from fastlog.data_access.dal import Collection, DataAccessLayer

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(minutes?|mins?|hours?|hrs?|h|m)?$", re.IGNORECASE)


@dataclass
class WeightLogResult:
    entry: WeightEntry
    stored: str
    original: str


def _log_entry(
    dal: DataAccessLayer, kind: str, description: str, calories: Optional[int], now: Optional[datetime]
) -> LogEntry:
    entry = LogEntry(kind=kind, description=description, calories=calories, timestamp=now or utc_now())
    dal.append(Collection.ENTRIES, entry)
    return entry


def log_meal(
    dal: DataAccessLayer, description: str, calories: Optional[int] = None, now: Optional[datetime] = None
) -> LogEntry:
    return _log_entry(dal, "meal", description, calories, now)


def log_drink(
    dal: DataAccessLayer, description: str, calories: Optional[int] = None, now: Optional[datetime] = None
) -> LogEntry:
    return _log_entry(dal, "drink", description, calories, now)


def parse_duration(text: str) -> float:
    """
    Exercise duration in minutes from "30", "30 minutes", "45min", "1.5 hours" or "2h".
    """
    match = _DURATION_RE.match(str(text).strip())
    if not match:
        raise ValidationError(
            f'Invalid duration format: "{text}". Please use formats like "30", "30 minutes", "1.5 hours"'
        )
    value = float(match.group(1))
    unit = (match.group(2) or "minutes").lower()
    minutes = value * 60 if unit.startswith("h") else value
    if minutes <= 0:
        raise ValidationError(f'Invalid duration: "{text}". Please provide a positive number.')
    return round(minutes, 1)


def log_exercise(
    dal: DataAccessLayer,
    description: str,
    duration_minutes: float,
    calories_burned: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ExerciseEntry:
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError(f"Invalid duration: {duration_minutes}. Please provide a positive number.")
    entry = ExerciseEntry(
        description=description,
        duration_minutes=duration_minutes,
        calories_burned=calories_burned,
        timestamp=now or utc_now(),
    )
    dal.append(Collection.EXERCISES, entry)
    return entry


def log_weight(
    dal: DataAccessLayer, text: str, weight_unit: str, now: Optional[datetime] = None
) -> WeightLogResult:
    """Store a weight in the configured unit, converting from whatever was typed."""
    value, unit = parse_weight(text, weight_unit)
    stored_value = round(convert_weight(value, unit, weight_unit), 1)
    entry = WeightEntry(weight=stored_value, timestamp=now or utc_now())
    dal.append(Collection.WEIGHTS, entry)
    return WeightLogResult(
        entry=entry,
        stored=f"{stored_value:g} {weight_unit}",
        original=f"{value:g} {unit}",
    )


# --- Reads --------------------------------------------------------------------
def get_all_entries(dal: DataAccessLayer) -> List[LogEntry]:
    return list(dal.load(Collection.ENTRIES))


def get_todays_entries(dal: DataAccessLayer, tz: tzinfo, now: Optional[datetime] = None) -> List[LogEntry]:
    entries = sorted(get_all_entries(dal), key=lambda e: e.timestamp)
    return aggregation.filter_today(entries, tz, now)


def get_todays_exercises(dal: DataAccessLayer, tz: tzinfo, now: Optional[datetime] = None) -> List[ExerciseEntry]:
    exercises = sorted(dal.load(Collection.EXERCISES), key=lambda e: e.timestamp)
    return aggregation.filter_today(exercises, tz, now)


def get_calorie_history(dal: DataAccessLayer) -> List[DailyAggregate]:
    return aggregation.aggregate_calories(get_all_entries(dal))


def get_exercise_history(dal: DataAccessLayer) -> List[DailyAggregate]:
    return aggregation.aggregate_exercise_calories(dal.load(Collection.EXERCISES))


def get_all_exercises(dal: DataAccessLayer) -> List[ExerciseEntry]:
    return list(dal.load(Collection.EXERCISES))


def get_weight_history(dal: DataAccessLayer) -> List[WeightEntry]:
    """Weights oldest first, whatever order the backend returned them in."""
    return sorted(dal.load(Collection.WEIGHTS), key=lambda w: w.timestamp)


def clear_all_data(dal: DataAccessLayer) -> None:
    dal.clear_all()
