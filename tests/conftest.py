from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional

import pytest

from fastlog.config import AppConfig, Settings
from fastlog.core.models import FastSession
from fastlog.data_access.dal import Collection, DataAccessLayer, Record, check_fast_patch, check_record
from fastlog.data_access.json_dal import JsonDal

ENV_VARS = (
    "FASTING_CONFIG_DIR",
    "FASTING_STORAGE_MODE",
    "FASTING_LOG_LEVEL",
    "DATABASE_URL",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_HOST",
    "POSTGRES_DB",
    "DB_HOST_OVERRIDE",
    "OPENAI_API_KEY",
)


class DummyDal(DataAccessLayer):
    """In-memory DAL for exercising core logic without touching disk."""

    def __init__(self, fasts: Optional[List[FastSession]] = None):
        self.data: Dict[Collection, List[Record]] = {c: [] for c in Collection}
        self.data[Collection.FASTS] = list(fasts or [])

    def load(self, collection: Collection) -> List[Record]:
        return list(self.data[collection])

    def append(self, collection: Collection, record: Record) -> Record:
        check_record(collection, record)
        self.data[collection].append(record)
        return record

    def update_active_fast(self, patch: Mapping[str, Any]) -> Optional[FastSession]:
        check_fast_patch(patch)
        for i, fast in enumerate(self.data[Collection.FASTS]):
            if fast.end_time is None:
                self.data[Collection.FASTS][i] = fast.model_copy(update=dict(patch))
                return self.data[Collection.FASTS][i]
        return None

    def clear(self, collection: Collection) -> None:
        self.data[collection] = []


class FakeCursor:
    """Records executed SQL and returns canned rows, or raises ``error``."""

    def __init__(self, rows=None, error=None):
        self.rows = list(rows or [])
        self.error = error
        self.executed = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        if self.error is not None:
            raise self.error
        self.executed.append((" ".join(sql.split()), params))

    def fetchall(self):
        return self.rows

    def fetchone(self):
        return self.rows[0] if self.rows else None


class FakePool:
    """Stands in for psycopg_pool.ConnectionPool, handing out one cursor."""

    def __init__(self, cursor: FakeCursor):
        self.cursor = cursor
        self.closed = False

    @contextmanager
    def connection(self):
        pool = self

        class _Conn:
            def cursor(self):
                return pool.cursor

        yield _Conn()

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, FASTING_CONFIG_DIR=tmp_path)


@pytest.fixture
def app_config(settings):
    return AppConfig(settings)


@pytest.fixture
def json_dal(settings):
    return JsonDal(settings)


@pytest.fixture
def dummy_dal():
    return DummyDal()
