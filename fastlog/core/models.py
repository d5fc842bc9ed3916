"""Record models shared by both storage backends.

Local JSON files use the camelCase aliases (``startTime``, ``caloriesBurned``),
which is what older data directories already contain. The Postgres backend maps
the snake_case field names straight onto its columns.
"""

from datetime import date, datetime, time, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class FastSession(_Record):
    start_time: datetime = Field(alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    duration_hours: Optional[float] = Field(default=None, alias="durationHours")

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @property
    def is_active(self) -> bool:
        return self.end_time is None


class LogEntry(_Record):
    kind: Literal["meal", "drink"] = Field(alias="type")
    description: str
    calories: Optional[int] = None
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ExerciseEntry(_Record):
    description: str
    duration_minutes: float = Field(alias="duration", gt=0)
    calories_burned: Optional[int] = Field(default=None, alias="caloriesBurned")
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class WeightEntry(_Record):
    weight: float
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class DailyAggregate(BaseModel):
    """Sum of one numeric field over all entries on a calendar date."""

    date: str
    total: int
    representative_timestamp: datetime

    @classmethod
    def for_day(cls, day: date, total: int) -> "DailyAggregate":
        # Noon UTC keeps the sort key on the same date for any reader.
        noon = datetime.combine(day, time(12, 0), tzinfo=timezone.utc)
        return cls(date=day.isoformat(), total=total, representative_timestamp=noon)


class FastStats(BaseModel):
    count: int = 0
    average: float = 0
    max: float = 0
    min: float = 0
