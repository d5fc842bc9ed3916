from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from fastlog.core.errors import StorageError, StorageUnavailable
from fastlog.core.models import FastSession
from fastlog.data_access.dal import (
    FAST_PATCH_FIELDS,
    RECORD_TYPES,
    Collection,
    DataAccessLayer,
    Record,
    check_fast_patch,
    check_record,
)
from fastlog.infra import log_utils


@dataclass(frozen=True)
class TableSpec:
    name: str
    # (model field, column) pairs; id and created_at are never exposed.
    columns: Tuple[Tuple[str, str], ...]
    order_by: str

    @property
    def column_list(self) -> str:
        return ", ".join(col for _, col in self.columns)


TABLES: Dict[Collection, TableSpec] = {
    Collection.FASTS: TableSpec(
        "fasting_fasts",
        (("start_time", "start_time"), ("end_time", "end_time"), ("duration_hours", "duration_hours")),
        order_by="start_time",
    ),
    Collection.ENTRIES: TableSpec(
        "fasting_meals",
        (("kind", "type"), ("description", "description"), ("calories", "calories"), ("timestamp", "timestamp")),
        order_by="timestamp",
    ),
    Collection.WEIGHTS: TableSpec(
        "fasting_weights",
        (("weight", "weight"), ("timestamp", "timestamp")),
        order_by="timestamp",
    ),
    Collection.EXERCISES: TableSpec(
        "fasting_exercises",
        (
            ("description", "description"),
            ("duration_minutes", "duration"),
            ("calories_burned", "calories_burned"),
            ("timestamp", "timestamp"),
        ),
        order_by="timestamp",
    ),
}

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS fasting_meals (
        id SERIAL PRIMARY KEY,
        type VARCHAR(10) NOT NULL,
        description TEXT NOT NULL,
        calories INTEGER,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS fasting_weights (
        id SERIAL PRIMARY KEY,
        weight DECIMAL(6,2) NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS fasting_fasts (
        id SERIAL PRIMARY KEY,
        start_time TIMESTAMPTZ NOT NULL,
        end_time TIMESTAMPTZ,
        duration_hours DECIMAL(6,2),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS fasting_exercises (
        id SERIAL PRIMARY KEY,
        description TEXT NOT NULL,
        duration DECIMAL(7,1) NOT NULL,
        calories_burned INTEGER,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
)


def _plain(value: Any) -> Any:
    # NUMERIC columns come back as Decimal.
    return float(value) if isinstance(value, Decimal) else value


class PostgresDal(DataAccessLayer):
    """
    A Data Access Layer implementation that uses a PostgreSQL database as the backend.
    Each collection maps to one table. Network and authentication failures are
    raised as StorageUnavailable and never retried.
    """

    def __init__(self, conninfo: Optional[str] = None, pool: Optional[ConnectionPool] = None):
        if pool is None:
            if not conninfo:
                raise ValueError("PostgresDal needs a connection string or a pool")
            # A small pool; each CLI run only issues a handful of statements.
            pool = ConnectionPool(
                conninfo=conninfo,
                min_size=1,
                max_size=3,
                timeout=10,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            pool.open()
        self.pool = pool

    @contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor]:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    yield cur
        except psycopg.OperationalError as e:
            log_utils.log_message(f"[PostgresDal] Database unavailable: {e}", "ERROR")
            raise StorageUnavailable(f"Remote storage unavailable: {e}") from e
        except psycopg.errors.UndefinedTable as e:
            log_utils.log_message(f"[PostgresDal] Missing table: {e}", "ERROR")
            raise StorageError(
                f"Remote storage is not initialised ({e}). Run 'fastlog db init' to create the tables."
            ) from e
        except psycopg.Error as e:
            log_utils.log_message(f"[PostgresDal] Database error: {e}", "ERROR")
            raise StorageError(f"Remote storage error: {e}") from e

    def _to_record(self, collection: Collection, row: Mapping[str, Any]) -> Record:
        spec = TABLES[collection]
        data = {field: _plain(row[col]) for field, col in spec.columns}
        return RECORD_TYPES[collection].model_validate(data)

    # --- DataAccessLayer ------------------------------------------------------
    def load(self, collection: Collection) -> List[Record]:
        spec = TABLES[collection]
        log_utils.log_message(f"[PostgresDal] Loading {collection.value}", "DEBUG")
        with self._cursor() as cur:
            cur.execute(f"SELECT {spec.column_list} FROM {spec.name} ORDER BY {spec.order_by} ASC;")
            rows = cur.fetchall()
        return [self._to_record(collection, row) for row in rows]

    def append(self, collection: Collection, record: Record) -> Record:
        check_record(collection, record)
        spec = TABLES[collection]
        placeholders = ", ".join(["%s"] * len(spec.columns))
        values = tuple(getattr(record, field) for field, _ in spec.columns)
        log_utils.log_message(f"[PostgresDal] Inserting into {spec.name}", "DEBUG")
        with self._cursor() as cur:
            cur.execute(
                f"INSERT INTO {spec.name} ({spec.column_list}) VALUES ({placeholders}) "
                f"RETURNING {spec.column_list};",
                values,
            )
            row = cur.fetchone()
        return self._to_record(collection, row) if row else record

    def update_active_fast(self, patch: Mapping[str, Any]) -> Optional[FastSession]:
        check_fast_patch(patch)
        spec = TABLES[Collection.FASTS]
        fields = [f for f in FAST_PATCH_FIELDS if f in patch]
        if not fields:
            return None
        assignments = ", ".join(f"{f} = %s" for f in fields)
        # One statement, so closing a fast cannot race another close.
        with self._cursor() as cur:
            cur.execute(
                f"UPDATE {spec.name} SET {assignments} WHERE end_time IS NULL "
                f"RETURNING {spec.column_list};",
                tuple(patch[f] for f in fields),
            )
            row = cur.fetchone()
        if row is None:
            log_utils.log_message("[PostgresDal] update_active_fast: no open fast found", "WARN")
            return None
        return self._to_record(Collection.FASTS, row)

    def clear(self, collection: Collection) -> None:
        spec = TABLES[collection]
        log_utils.log_message(f"[PostgresDal] Clearing {spec.name}", "INFO")
        with self._cursor() as cur:
            cur.execute(f"DELETE FROM {spec.name};")

    # --- Administration -------------------------------------------------------
    def init_schema(self) -> None:
        """Creates the four tables if they do not exist yet."""
        with self._cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        log_utils.log_message("[PostgresDal] Schema initialised", "INFO")

    def check_connection(self) -> bool:
        try:
            with self._cursor() as cur:
                cur.execute(f"SELECT 1 FROM {TABLES[Collection.ENTRIES].name} LIMIT 1;")
                cur.fetchall()
            return True
        except (StorageUnavailable, StorageError) as e:
            log_utils.log_message(f"[PostgresDal] Connection check failed: {e}", "WARN")
            return False

    def close(self) -> None:
        self.pool.close()
