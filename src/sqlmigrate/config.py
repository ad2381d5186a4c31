"""Runtime configuration helpers for sqlmigrate."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _load_env_file() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key, value)


_load_env_file()


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    msg = f"invalid boolean value: {value!r}"
    raise ValueError(msg)


@dataclass(frozen=True)
class Settings:
    """Typed wrapper around environment-driven configuration."""

    database_url: str
    migrations_table: str
    lock_timeout: int
    strict_empty_result: bool
    log_level: str
    log_json: bool | None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached configuration values loaded from the environment."""

    database_url = os.getenv("SQLMIGRATE_DATABASE_URL", "sqlite:///sqlmigrate.db")
    migrations_table = os.getenv("SQLMIGRATE_MIGRATIONS_TABLE", "schema_migrations")
    lock_timeout = int(os.getenv("SQLMIGRATE_LOCK_TIMEOUT", "1"))
    strict_empty_result = parse_bool(os.getenv("SQLMIGRATE_STRICT_EMPTY_RESULT", "false"))
    log_level = os.getenv("SQLMIGRATE_LOG_LEVEL", "INFO").upper()
    log_json_raw = os.getenv("SQLMIGRATE_LOG_JSON")
    log_json = parse_bool(log_json_raw) if log_json_raw else None

    return Settings(
        database_url=database_url,
        migrations_table=migrations_table,
        lock_timeout=lock_timeout,
        strict_empty_result=strict_empty_result,
        log_level=log_level,
        log_json=log_json,
    )
