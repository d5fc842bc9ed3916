"""JSON file-based implementation of the Data Access Layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from fastlog.config import Settings
from fastlog.core.models import FastSession
from fastlog.infra import log_utils
from .dal import RECORD_TYPES, Collection, DataAccessLayer, Record, check_fast_patch, check_record


class LoadStatus(str, Enum):
    MISSING = "missing"  # no file yet
    EMPTY = "empty"  # file exists, holds no records
    LOADED = "loaded"
    PARTIAL = "partial"  # some items failed validation and were skipped
    CORRUPT = "corrupt"  # unreadable, treated as empty


@dataclass
class CollectionRead:
    records: List[Record] = field(default_factory=list)
    status: LoadStatus = LoadStatus.MISSING
    error: Optional[str] = None
    # Every array item as found on disk, valid or not, and the index in
    # ``raw`` of each entry of ``records``.
    raw: List[Any] = field(default_factory=list)
    positions: List[int] = field(default_factory=list)
    skipped: int = 0


class JsonDal(DataAccessLayer):
    """
    Data Access Layer that persists each collection as one JSON array on disk.

    Every mutation rewrites the whole array. Items that fail validation are
    hidden from readers but written back untouched, so a bad record never
    costs the rest of the history. Two processes writing at the same time can
    lose an update; fastlog is a single-user tool and accepts that.
    """

    def __init__(self, settings: Settings):
        self._paths: Dict[Collection, Path] = {
            Collection.FASTS: settings.fast_path,
            Collection.ENTRIES: settings.meals_path,
            Collection.WEIGHTS: settings.weight_path,
            Collection.EXERCISES: settings.exercise_path,
        }

    def path_for(self, collection: Collection) -> Path:
        return self._paths[collection]

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _save(self, collection: Collection, items: List[Any]) -> None:
        self._write_json(self.path_for(collection), items)

    def read_collection(self, collection: Collection) -> CollectionRead:
        """Reads a collection and reports whether the file was usable."""
        path = self.path_for(collection)
        if not path.exists():
            return CollectionRead()
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = f.read()
            data = json.loads(raw) if raw.strip() else []
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        except (ValueError, OSError) as e:
            log_utils.log_message(
                f"[JsonDal] Error loading {collection.value} from {path}: {e}. Treating as empty.",
                "WARN",
            )
            return CollectionRead(status=LoadStatus.CORRUPT, error=str(e))

        model = RECORD_TYPES[collection]
        result = CollectionRead(raw=data)
        for i, item in enumerate(data):
            try:
                result.records.append(model.model_validate(item))
            except PydanticValidationError as e:
                result.skipped += 1
                log_utils.log_message(
                    f"[JsonDal] Skipping invalid item {i} in {path}: {item!r} "
                    f"({e.error_count()} validation error(s)). It is kept on disk.",
                    "WARN",
                )
                continue
            result.positions.append(i)

        if result.skipped:
            result.status = LoadStatus.PARTIAL
            result.error = f"{result.skipped} invalid item(s) skipped"
        else:
            result.status = LoadStatus.LOADED if result.records else LoadStatus.EMPTY
        return result

    # --- DataAccessLayer ------------------------------------------------------
    def load(self, collection: Collection) -> List[Record]:
        return self.read_collection(collection).records

    def append(self, collection: Collection, record: Record) -> Record:
        check_record(collection, record)
        current = self.read_collection(collection)
        self._save(collection, current.raw + [record.to_json_dict()])
        return record

    def update_active_fast(self, patch: Mapping[str, Any]) -> Optional[FastSession]:
        check_fast_patch(patch)
        current = self.read_collection(Collection.FASTS)
        for fast, pos in zip(current.records, current.positions):
            if fast.end_time is None:
                updated = fast.model_copy(update=dict(patch))
                items = list(current.raw)
                items[pos] = updated.to_json_dict()
                self._save(Collection.FASTS, items)
                return updated
        log_utils.log_message("[JsonDal] update_active_fast: no open fast, nothing updated", "WARN")
        return None

    def clear(self, collection: Collection) -> None:
        self._save(collection, [])
