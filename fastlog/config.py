"""
Centralised config for fastlog.

Two layers are combined here:

- ``Settings``: environment (and ``.env``) values loaded through
  pydantic-settings. These always win.
- ``UserConfig``: preferences persisted by ``fastlog config ...`` in
  ``config.json`` inside the data directory.

``AppConfig`` bundles both and is passed explicitly to whoever needs it. The
resolved storage mode is cached on the ``AppConfig`` instance, never at module
level, so two instances never observe each other's state.
"""

import json
import os
from datetime import tzinfo
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from tzlocal import get_localzone

from fastlog.core.errors import ConfigValidationError
from fastlog.infra import log_utils

STORAGE_LOCAL = "local"
STORAGE_REMOTE = "remote"
STORAGE_MODES = (STORAGE_LOCAL, STORAGE_REMOTE)
# Older config files used the hosted provider's name for the remote mode.
_STORAGE_ALIASES = {"supabase": STORAGE_REMOTE, "postgres": STORAGE_REMOTE}

UNIT_SYSTEMS = ("imperial", "metric")
WEIGHT_UNITS = ("lbs", "kg")

DEFAULT_UNIT_SYSTEM = "imperial"
DEFAULT_WEIGHT_UNIT = "lbs"


class Settings(BaseSettings):
    """
    Environment settings.

    Pydantic's BaseSettings loads values from a `.env` file or from system
    environment variables, matching field names case-insensitively.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False)

    # --- CORE SETTINGS ---
    FASTING_CONFIG_DIR: Path = Path.home() / ".config" / "fasting"
    FASTING_STORAGE_MODE: Optional[str] = None
    FASTING_LOG_LEVEL: str = "INFO"

    # --- ESTIMATION SERVICE ---
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"

    # --- DATABASE ---
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: Optional[int] = 5432
    POSTGRES_DB: Optional[str] = None
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    def __init__(self, **values):
        super().__init__(**values)
        # An explicit DATABASE_URL wins; otherwise build one from the parts.
        db_host = os.getenv("DB_HOST_OVERRIDE", self.POSTGRES_HOST)
        if not self.DATABASE_URL and self.POSTGRES_USER and self.POSTGRES_PASSWORD and db_host and self.POSTGRES_DB:
            # URL-encode user/pass to support special characters like @ and #
            user_enc = quote_plus(self.POSTGRES_USER)
            pass_enc = quote_plus(self.POSTGRES_PASSWORD)
            self.DATABASE_URL = (
                f"postgresql://{user_enc}:{pass_enc}@{db_host}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

    # --- FILE PATHS (derived from FASTING_CONFIG_DIR) ---
    @property
    def config_path(self) -> Path:
        return self.FASTING_CONFIG_DIR / "config.json"

    @property
    def meals_path(self) -> Path:
        return self.FASTING_CONFIG_DIR / "meals.json"

    @property
    def weight_path(self) -> Path:
        return self.FASTING_CONFIG_DIR / "weight.json"

    @property
    def fast_path(self) -> Path:
        return self.FASTING_CONFIG_DIR / "fasts.json"

    @property
    def exercise_path(self) -> Path:
        return self.FASTING_CONFIG_DIR / "exercises.json"

    @property
    def log_path(self) -> Path:
        return self.FASTING_CONFIG_DIR / "logs" / "fastlog.log"


class UserConfig(BaseModel):
    """Preferences persisted in config.json (camelCase on disk)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    storage_mode: Optional[str] = Field(default=None, alias="storageMode")
    database_url: Optional[str] = Field(default=None, alias="databaseUrl")
    unit_system: Optional[str] = Field(default=None, alias="unitSystem")
    weight_unit: Optional[str] = Field(default=None, alias="weightUnit")
    timezone: Optional[str] = None
    openai_api_key: Optional[str] = Field(default=None, alias="openaiApiKey")


def normalize_storage_mode(value: str) -> str:
    mode = value.strip().lower()
    mode = _STORAGE_ALIASES.get(mode, mode)
    if mode not in STORAGE_MODES:
        raise ConfigValidationError(
            f"Invalid storage mode: {value!r}. Must be one of: {', '.join(STORAGE_MODES)}"
        )
    return mode


def validate_timezone(name: str) -> ZoneInfo:
    """Return the zone for an IANA identifier or raise ConfigValidationError."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigValidationError(f"Invalid timezone: {name}") from e


class AppConfig:
    """Environment settings plus persisted preferences, resolved on demand."""

    def __init__(self, settings: Optional[Settings] = None, storage_override: Optional[str] = None):
        self.settings = settings or Settings()
        self.storage_override = storage_override
        self._storage_mode: Optional[str] = None

    @property
    def data_dir(self) -> Path:
        return self.settings.FASTING_CONFIG_DIR

    # --- Persisted preferences ------------------------------------------------
    def load_user_config(self) -> UserConfig:
        path = self.settings.config_path
        if not path.exists():
            return UserConfig()
        try:
            return UserConfig.model_validate(json.loads(path.read_text(encoding="utf-8") or "{}"))
        except (json.JSONDecodeError, PydanticValidationError, OSError) as e:
            log_utils.log_message(f"[config] Error loading {path}: {e}. Using defaults.", "WARN")
            return UserConfig()

    def save_user_config(self, user_config: UserConfig) -> None:
        path = self.settings.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        data = user_config.model_dump(by_alias=True, exclude_none=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def reset_user_config(self) -> None:
        self.save_user_config(UserConfig())
        self.invalidate_storage_mode()

    # --- Storage mode ---------------------------------------------------------
    def resolve_storage_mode(self) -> str:
        """
        Resolve the backend once per AppConfig.

        Priority: runtime override > FASTING_STORAGE_MODE > persisted
        storageMode > remote database configured > local.
        """
        if self._storage_mode is not None:
            return self._storage_mode

        if self.storage_override:
            mode = normalize_storage_mode(self.storage_override)
        elif self.settings.FASTING_STORAGE_MODE:
            mode = normalize_storage_mode(self.settings.FASTING_STORAGE_MODE)
        else:
            persisted = self.load_user_config().storage_mode
            if persisted:
                mode = normalize_storage_mode(persisted)
            elif self.database_url:
                mode = STORAGE_REMOTE
            else:
                mode = STORAGE_LOCAL

        self._storage_mode = mode
        return mode

    def invalidate_storage_mode(self) -> None:
        self._storage_mode = None

    def set_storage_mode(self, mode: str) -> None:
        mode = normalize_storage_mode(mode)
        user_config = self.load_user_config()
        user_config.storage_mode = mode
        self.save_user_config(user_config)
        self.invalidate_storage_mode()

    # --- Remote database ------------------------------------------------------
    @property
    def database_url(self) -> Optional[str]:
        return self.settings.DATABASE_URL or self.load_user_config().database_url

    def is_remote_configured(self) -> bool:
        return bool(self.database_url)

    def set_database_url(self, url: str) -> None:
        """Persist the remote database URL and switch storage to it."""
        if not url.startswith(("postgresql://", "postgres://")):
            raise ConfigValidationError(
                f"Invalid database URL: {url!r}. Expected a postgresql:// connection URL"
            )
        user_config = self.load_user_config()
        user_config.database_url = url
        user_config.storage_mode = STORAGE_REMOTE
        self.save_user_config(user_config)
        self.invalidate_storage_mode()

    # --- Estimation service ---------------------------------------------------
    @property
    def openai_api_key(self) -> Optional[str]:
        return self.settings.OPENAI_API_KEY or self.load_user_config().openai_api_key

    def set_openai_key(self, api_key: str) -> None:
        user_config = self.load_user_config()
        user_config.openai_api_key = api_key
        self.save_user_config(user_config)

    # --- Units ----------------------------------------------------------------
    @property
    def unit_system(self) -> str:
        return self.load_user_config().unit_system or DEFAULT_UNIT_SYSTEM

    def set_unit_system(self, system: str) -> None:
        if system not in UNIT_SYSTEMS:
            raise ConfigValidationError('Unit system must be "imperial" or "metric"')
        user_config = self.load_user_config()
        user_config.unit_system = system
        # Keep the weight unit in step with the system.
        user_config.weight_unit = "kg" if system == "metric" else "lbs"
        self.save_user_config(user_config)

    @property
    def weight_unit(self) -> str:
        return self.load_user_config().weight_unit or DEFAULT_WEIGHT_UNIT

    def set_weight_unit(self, unit: str) -> None:
        if unit not in WEIGHT_UNITS:
            raise ConfigValidationError('Weight unit must be "lbs" or "kg"')
        user_config = self.load_user_config()
        user_config.weight_unit = unit
        self.save_user_config(user_config)

    # --- Timezone -------------------------------------------------------------
    @property
    def timezone_name(self) -> Optional[str]:
        return self.load_user_config().timezone

    @property
    def timezone(self) -> tzinfo:
        """Configured zone, or the system's named local zone (DST-aware) when none is set."""
        name = self.timezone_name
        if name:
            try:
                return ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError):
                log_utils.log_message(f"[config] Ignoring unknown timezone {name!r} in config", "WARN")
        return get_localzone()

    def set_timezone(self, name: str) -> None:
        validate_timezone(name)
        user_config = self.load_user_config()
        user_config.timezone = name
        self.save_user_config(user_config)
