from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from fastlog.core import logbook
from fastlog.core.errors import ValidationError
from fastlog.core.models import ExerciseEntry, FastSession, LogEntry, WeightEntry
from fastlog.data_access.dal import Collection


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text,minutes",
    [
        ("30", 30),
        ("30 minutes", 30),
        ("45min", 45),
        ("1 minute", 1),
        ("1.5 hours", 90),
        ("2h", 120),
        ("1 HR", 60),
        ("20m", 20),
    ],
)
def test_parse_duration(text, minutes):
    assert logbook.parse_duration(text) == minutes


@pytest.mark.parametrize("text", ["", "half an hour", "30 seconds", "0", "0 hours", "-5"])
def test_parse_duration_rejects(text):
    with pytest.raises(ValidationError):
        logbook.parse_duration(text)


def test_meals_and_drinks_share_one_collection(dummy_dal):
    logbook.log_meal(dummy_dal, "Oatmeal", 300, now=utc(2023, 12, 1, 8))
    logbook.log_drink(dummy_dal, "Coffee", None, now=utc(2023, 12, 1, 9))

    entries = dummy_dal.load(Collection.ENTRIES)
    assert [(e.kind, e.description, e.calories) for e in entries] == [
        ("meal", "Oatmeal", 300),
        ("drink", "Coffee", None),
    ]


def test_calorie_history_through_the_dal(json_dal):
    logbook.log_meal(json_dal, "Breakfast", 400, now=utc(2023, 12, 1, 8))
    logbook.log_drink(json_dal, "Juice", 50, now=utc(2023, 12, 1, 10))
    logbook.log_meal(json_dal, "Dinner", 600, now=utc(2023, 12, 1, 19))
    logbook.log_meal(json_dal, "Snack", 150, now=utc(2023, 12, 2, 15))

    history = logbook.get_calorie_history(json_dal)
    assert [(d.date, d.total) for d in history] == [("2023-12-01", 1050), ("2023-12-02", 150)]


def test_exercise_is_logged_and_aggregated(dummy_dal):
    logbook.log_exercise(dummy_dal, "Run", 30, 300, now=utc(2023, 12, 1, 7))
    logbook.log_exercise(dummy_dal, "Walk", 20, None, now=utc(2023, 12, 1, 18))

    assert len(logbook.get_all_exercises(dummy_dal)) == 2
    (day,) = logbook.get_exercise_history(dummy_dal)
    assert (day.date, day.total) == ("2023-12-01", 300)


@pytest.mark.parametrize("minutes", [0, -10])
def test_exercise_needs_positive_duration(dummy_dal, minutes):
    with pytest.raises(ValidationError):
        logbook.log_exercise(dummy_dal, "Run", minutes, 100)
    assert dummy_dal.load(Collection.EXERCISES) == []


def test_weight_is_stored_in_configured_unit(dummy_dal):
    result = logbook.log_weight(dummy_dal, "100kg", "lbs", now=utc(2023, 12, 1, 7))
    assert result.entry.weight == 220.5
    assert result.stored == "220.5 lbs"
    assert result.original == "100 kg"
    assert dummy_dal.load(Collection.WEIGHTS) == [result.entry]


def test_weight_without_unit_uses_configured_unit(dummy_dal):
    result = logbook.log_weight(dummy_dal, "180", "lbs")
    assert result.entry.weight == 180
    assert result.stored == result.original == "180 lbs"


def test_invalid_weight_is_not_stored(dummy_dal):
    with pytest.raises(ValidationError):
        logbook.log_weight(dummy_dal, "lots", "kg")
    assert dummy_dal.load(Collection.WEIGHTS) == []


def test_weight_history_sorted_oldest_first(dummy_dal):
    dummy_dal.append(Collection.WEIGHTS, WeightEntry(weight=178, timestamp=utc(2023, 12, 3)))
    dummy_dal.append(Collection.WEIGHTS, WeightEntry(weight=180, timestamp=utc(2023, 12, 1)))
    assert [w.weight for w in logbook.get_weight_history(dummy_dal)] == [180, 178]


def test_todays_entries_use_configured_timezone(dummy_dal):
    tz = ZoneInfo("America/Los_Angeles")
    now = utc(2023, 12, 2, 6)  # 22:00 on Dec 1 in Los Angeles
    dummy_dal.append(Collection.ENTRIES, LogEntry(kind="meal", description="Late", calories=200, timestamp=utc(2023, 12, 2, 5)))
    dummy_dal.append(Collection.ENTRIES, LogEntry(kind="meal", description="Early", calories=100, timestamp=utc(2023, 12, 1, 9)))
    dummy_dal.append(Collection.ENTRIES, LogEntry(kind="meal", description="Yesterday", calories=300, timestamp=utc(2023, 12, 1, 7)))
    dummy_dal.append(
        Collection.EXERCISES,
        ExerciseEntry(description="Yoga", duration_minutes=30, calories_burned=90, timestamp=utc(2023, 12, 1, 20)),
    )

    assert [e.description for e in logbook.get_todays_entries(dummy_dal, tz, now=now)] == ["Early", "Late"]
    assert [x.description for x in logbook.get_todays_exercises(dummy_dal, tz, now=now)] == ["Yoga"]


def test_clear_all_data(dummy_dal):
    dummy_dal.append(Collection.FASTS, FastSession(start_time=utc(2023, 12, 1, 18)))
    logbook.log_meal(dummy_dal, "Eggs", 150)
    logbook.clear_all_data(dummy_dal)
    assert all(dummy_dal.load(c) == [] for c in Collection)


def test_logging_weight_keeps_older_entries_that_fail_validation(json_dal, settings):
    settings.weight_path.write_text(
        '[{"weight": 180.0, "timestamp": "2024-01-01T07:00:00Z"},'
        ' {"weight": 179.5, "timestamp": "2024-01-02T07:00:00Z"},'
        ' {"weight": "305.8lbs", "timestamp": "2024-01-03T07:00:00Z"}]'
    )
    logbook.log_weight(json_dal, "178", "lbs", now=utc(2024, 1, 4, 7))
    assert [w.weight for w in logbook.get_weight_history(json_dal)] == [180.0, 179.5, 178.0]
    assert "305.8lbs" in settings.weight_path.read_text(encoding="utf-8")
