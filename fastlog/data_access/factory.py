"""Selects the storage backend once, from the resolved storage mode."""

from fastlog.config import STORAGE_REMOTE, AppConfig
from fastlog.core.errors import ConfigValidationError
from fastlog.data_access.dal import DataAccessLayer
from fastlog.data_access.json_dal import JsonDal
from fastlog.data_access.postgres_dal import PostgresDal
from fastlog.infra import log_utils


def get_dal(config: AppConfig) -> DataAccessLayer:
    """Select the appropriate DAL based on the configured storage mode."""
    mode = config.resolve_storage_mode()
    if mode == STORAGE_REMOTE:
        url = config.database_url
        if not url:
            raise ConfigValidationError(
                "Storage mode is 'remote' but no database URL is configured. "
                "Set DATABASE_URL or run 'fastlog config database-url <url>'."
            )
        log_utils.log_message("[dal] Using Postgres storage", "DEBUG")
        return PostgresDal(url)
    log_utils.log_message(f"[dal] Using local JSON storage in {config.data_dir}", "DEBUG")
    return JsonDal(config.settings)
