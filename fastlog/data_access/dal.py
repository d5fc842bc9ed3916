from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from fastlog.core.models import ExerciseEntry, FastSession, LogEntry, WeightEntry

Record = Union[FastSession, LogEntry, WeightEntry, ExerciseEntry]


class Collection(str, Enum):
    FASTS = "fasts"
    ENTRIES = "meals"  # meals and drinks share one collection
    WEIGHTS = "weights"
    EXERCISES = "exercises"


RECORD_TYPES: Dict[Collection, Type[Record]] = {
    Collection.FASTS: FastSession,
    Collection.ENTRIES: LogEntry,
    Collection.WEIGHTS: WeightEntry,
    Collection.EXERCISES: ExerciseEntry,
}

# Fields update_active_fast may change.
FAST_PATCH_FIELDS = ("end_time", "duration_hours")


def check_record(collection: Collection, record: Record) -> None:
    expected = RECORD_TYPES[collection]
    if not isinstance(record, expected):
        raise TypeError(
            f"{collection.value} expects {expected.__name__}, got {type(record).__name__}"
        )


def check_fast_patch(patch: Mapping[str, Any]) -> None:
    unknown = set(patch) - set(FAST_PATCH_FIELDS)
    if unknown:
        raise ValueError(f"Cannot patch fast fields: {', '.join(sorted(unknown))}")


class DataAccessLayer(ABC):
    """
    Abstract Base Class for a Data Access Layer.
    Defines the contract for all data storage operations, ensuring that
    the fasting logic can interact with any storage backend (JSON, DB)
    through a consistent interface.
    """

    @abstractmethod
    def load(self, collection: Collection) -> List[Record]:
        """
        Loads every record of a collection.

        Order is backend specific (insertion order for JSON, timestamp order
        for Postgres). Callers that care about order should sort.
        """
        pass

    @abstractmethod
    def append(self, collection: Collection, record: Record) -> Record:
        """Persists a new record and returns it."""
        pass

    @abstractmethod
    def update_active_fast(self, patch: Mapping[str, Any]) -> Optional[FastSession]:
        """
        Applies a patch to the fast whose end time is null.

        Args:
            patch: FastSession field names (end_time, duration_hours) to values.

        Returns:
            The updated session, or None if no fast was open.
        """
        pass

    @abstractmethod
    def clear(self, collection: Collection) -> None:
        """Removes every record of a collection."""
        pass

    def clear_all(self) -> None:
        """Empties all four collections."""
        for collection in Collection:
            self.clear(collection)
