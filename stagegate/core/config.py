from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from stagegate.common.config import load_config


class StoragePolicy(str, Enum):
    """What a component does when its persisted state cannot be loaded or saved."""

    DEGRADE = "degrade"  # log a warning, continue with in-memory state
    FAIL = "fail"        # raise StorageError to the caller


class StorageBackend(str, Enum):
    MEMORY = "memory"
    JSON = "json"
    SQLALCHEMY = "sqlalchemy"


class Settings(BaseSettings):
    # App
    app_name: str = "stagegate"

    # Storage
    storage_backend: StorageBackend = StorageBackend.MEMORY
    data_dir: str = "/var/lib/stagegate"
    database_url: str = "sqlite:///stagegate.db"

    # One namespace key per component instance
    rbac_storage_key: str = "rbac_data"
    approvals_storage_key: str = "approval_requests"
    ledger_storage_key: str = "ledger_entries"

    on_storage_error: StoragePolicy = StoragePolicy.DEGRADE

    # Ledger
    hash_algorithm: str = "sha256"

    # RBAC
    seed_role_templates: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = "/var/log/stagegate"
    file_logging: bool = False

    model_config = SettingsConfigDict(
        env_prefix="STAGEGATE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Build settings from a YAML file, falling back to environment only.

    Values in the file take precedence over environment variables.
    """
    if config_path is None:
        return Settings()
    return Settings(**load_config(config_path))


@lru_cache
def get_settings() -> Settings:
    return Settings()
