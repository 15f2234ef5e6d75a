"""
Todo list core package.

Holds the persistence engine (todos and categories kept in two key-value
slots) and the reactive store the presentation layer binds to.
"""

from typing import Optional

from .logging_setup import setup_logging
from .models import Category, Todo, TodoFilters, TodoStats
from .repositories import FALLBACK_CATEGORY, Repository, TodoDatabase, get_repository
from .schemas import CategoryCreate, TodoCreate, TodoUpdate
from .settings import Settings, get_settings
from .storage import InMemoryStorage, KeyValueStorage, SQLiteStorage, get_storage
from .store import StoreState, TodoStore


# PUBLIC_INTERFACE
def create_store(settings: Optional[Settings] = None) -> TodoStore:
    """Configure logging, then wire storage, persistence engine and store for the given settings."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_file)
    return TodoStore(get_repository(settings))


__all__ = [
    "FALLBACK_CATEGORY",
    "Category",
    "CategoryCreate",
    "InMemoryStorage",
    "KeyValueStorage",
    "Repository",
    "SQLiteStorage",
    "Settings",
    "StoreState",
    "Todo",
    "TodoCreate",
    "TodoDatabase",
    "TodoFilters",
    "TodoStats",
    "TodoStore",
    "TodoUpdate",
    "create_store",
    "get_repository",
    "get_settings",
    "get_storage",
    "setup_logging",
]
