from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - TODOLIST_STORAGE_BACKEND: 'memory' (default) or 'sqlite'
    - TODOLIST_SQLITE_DB_PATH: path to the sqlite file holding the slots. Default './data/todolist.db'
    - TODOLIST_TODOS_KEY: slot name for the todo collection. Default 'todos'
    - TODOLIST_CATEGORIES_KEY: slot name for the category collection. Default 'categories'
    - TODOLIST_LOG_LEVEL: logging level name. Default 'INFO'
    - TODOLIST_LOG_FILE: optional log file path; console only when unset
    """

    storage_backend: str
    sqlite_db_path: str
    todos_key: str
    categories_key: str
    log_level: str
    log_file: Optional[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_level(value: str, default: str = "INFO") -> str:
    v = value.strip().upper()
    if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return v
    return default


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("TODOLIST_STORAGE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("TODOLIST_SQLITE_DB_PATH", "./data/todolist.db").strip()
    log_file = os.getenv("TODOLIST_LOG_FILE", "").strip() or None

    return Settings(
        storage_backend=backend,
        sqlite_db_path=sqlite_path,
        todos_key=_get_env("TODOLIST_TODOS_KEY", "todos").strip(),
        categories_key=_get_env("TODOLIST_CATEGORIES_KEY", "categories").strip(),
        log_level=_parse_level(_get_env("TODOLIST_LOG_LEVEL", "INFO")),
        log_file=log_file,
    )
