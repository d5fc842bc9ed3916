"""
Fast session tracking.

At most one fast per backend may be open (end_time is None). Conflicting
requests raise and are never repaired automatically: an old fast that was
never ended stays open until the user ends it.
"""

import math
import re
from datetime import datetime, time, timezone, tzinfo
from typing import List, Optional

from fastlog.core.errors import ActiveSessionExists, InvalidInterval, NoActiveSession, TimeFormatError
from fastlog.core.models import FastSession, FastStats, as_utc, utc_now
from fastlog.data_access.dal import Collection, DataAccessLayer
from fastlog.infra import log_utils

_TIME_ONLY = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def round1(value: float) -> float:
    """Round half up to one decimal."""
    return math.floor(value * 10 + 0.5) / 10


def parse_time_input(text: str, tz: tzinfo, now: Optional[datetime] = None) -> datetime:
    """
    Parse a user supplied start/end time into a UTC instant.

    Accepts "2023-12-01 18:00", "2023-12-01T18:00", full ISO-8601 with an
    offset or "Z", or a bare "18:00" / "18:00:30", which is taken on today's
    date in ``tz``. Naive values are read as wall-clock time in ``tz``.
    """
    raw = text.strip()
    match = _TIME_ONLY.match(raw)
    try:
        if match:
            hour, minute, second = (int(g) if g else 0 for g in match.groups())
            today = (now or utc_now()).astimezone(tz).date()
            parsed = datetime.combine(today, time(hour, minute, second))
        else:
            if raw.endswith(("Z", "z")):
                raw = raw[:-1] + "+00:00"
            parsed = datetime.fromisoformat(raw)
    except ValueError as e:
        raise TimeFormatError(
            f'Invalid time: "{text}". Use formats like "2023-12-01 18:00" or "18:00"'
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def _load_fasts(dal: DataAccessLayer) -> List[FastSession]:
    return list(dal.load(Collection.FASTS))


def start_fast(dal: DataAccessLayer, start_time: Optional[datetime] = None) -> datetime:
    """Open a new fast and return its start timestamp."""
    fasts = _load_fasts(dal)
    if any(f.end_time is None for f in fasts):
        raise ActiveSessionExists()

    session = FastSession(start_time=start_time or utc_now(), end_time=None)
    dal.append(Collection.FASTS, session)
    log_utils.log_message(f"[fast] Started fast at {session.start_time.isoformat()}")
    return session.start_time


def end_fast(dal: DataAccessLayer, end_time: Optional[datetime] = None) -> FastSession:
    """Close the open fast and return the completed session."""
    active = get_current_fast(dal)
    if active is None:
        raise NoActiveSession()

    end = as_utc(end_time) if end_time is not None else utc_now()
    if end <= active.start_time:
        raise InvalidInterval(
            f"End time {end.isoformat()} must be after the fast start time "
            f"{active.start_time.isoformat()}"
        )

    duration = round1((end - active.start_time).total_seconds() / 3600)
    updated = dal.update_active_fast({"end_time": end, "duration_hours": duration})
    completed = active.model_copy(update={"end_time": end, "duration_hours": duration})
    if updated is None:
        # Another process closed it between our read and the update.
        log_utils.log_message("[fast] Open fast disappeared before it could be closed", "WARN")
    log_utils.log_message(f"[fast] Ended fast after {duration}h")
    return completed


def get_current_fast(dal: DataAccessLayer) -> Optional[FastSession]:
    return next((f for f in _load_fasts(dal) if f.end_time is None), None)


def get_fast_history(dal: DataAccessLayer) -> List[FastSession]:
    """Completed fasts only."""
    return [f for f in _load_fasts(dal) if f.end_time is not None]


def get_all_fasts(dal: DataAccessLayer) -> List[FastSession]:
    return _load_fasts(dal)


def get_fast_stats(dal: DataAccessLayer) -> FastStats:
    # Non-positive durations are bad data; skip them rather than fix them.
    durations = [
        f.duration_hours
        for f in get_fast_history(dal)
        if f.duration_hours is not None and f.duration_hours > 0
    ]
    if not durations:
        return FastStats()
    return FastStats(
        count=len(durations),
        average=round1(sum(durations) / len(durations)),
        max=max(durations),
        min=min(durations),
    )


def elapsed_hours(session: FastSession, now: Optional[datetime] = None) -> float:
    """Hours since the session started (or its full length if it has ended)."""
    end = session.end_time or now or utc_now()
    return round1((end - session.start_time).total_seconds() / 3600)
