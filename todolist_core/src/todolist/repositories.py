from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Any, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, TypeAdapter

from .models import PRIORITY_ORDER, Category, Todo, TodoFilters, TodoStats
from .schemas import CategoryCreate, TodoCreate, TodoUpdate
from .settings import Settings, get_settings
from .storage import KeyValueStorage, get_storage
from .utils import MonotonicClock, day_bounds, generate_id

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Personal"

DEFAULT_CATEGORIES = (
    ("1", "Work", "#3B82F6"),
    ("2", "Personal", "#10B981"),
    ("3", "Shopping", "#F59E0B"),
    ("4", "Health", "#EF4444"),
)

_TODOS = TypeAdapter(List[Todo])
_CATEGORIES = TypeAdapter(List[Category])

M = TypeVar("M", bound=BaseModel)


def _coerce(model: Type[M], data: Union[M, Mapping[str, Any]]) -> M:
    return data if isinstance(data, model) else model.model_validate(data)


def default_categories() -> List[Category]:
    return [Category(id=i, name=name, color=color, count=0) for i, name, color in DEFAULT_CATEGORIES]


def _sort_key(todo: Todo) -> tuple:
    # priority desc, dated before undated, due asc, newest first
    return (
        -PRIORITY_ORDER[todo.priority],
        todo.due_date is None,
        todo.due_date or datetime.min,
        -todo.created_at.timestamp(),
    )


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract contract of the todo persistence engine."""

    @abstractmethod
    def create(self, draft: Union[TodoCreate, Mapping[str, Any]]) -> Todo:
        """Create and return a new Todo with fresh id and timestamps."""

    @abstractmethod
    def update(self, todo_id: str, changes: Union[TodoUpdate, Mapping[str, Any]]) -> Optional[Todo]:
        """Merge fields into an existing Todo. Return the updated Todo or None if not found."""

    @abstractmethod
    def delete(self, todo_id: str) -> bool:
        """Delete a Todo by id. Return True if deleted, False if not found."""

    @abstractmethod
    def get(self, todo_id: str) -> Optional[Todo]:
        """Return a Todo by id, or None if not found."""

    @abstractmethod
    def get_all(self) -> List[Todo]:
        """Return every Todo in insertion order."""

    @abstractmethod
    def query(self, filters: Optional[TodoFilters] = None) -> List[Todo]:
        """
        Return the Todos matching filters, sorted:
        - priority descending (high > medium > low)
        - then dated before undated, due date ascending
        - then creation time descending
        """

    @abstractmethod
    def stats(self, now: Optional[datetime] = None) -> TodoStats:
        """Compute aggregate counters relative to `now` (default: current local time)."""

    @abstractmethod
    def list_categories(self) -> List[Category]:
        """Return every Category with up-to-date counts."""

    @abstractmethod
    def add_category(self, draft: Union[CategoryCreate, Mapping[str, Any]]) -> Category:
        """Create and return a new Category."""

    @abstractmethod
    def delete_category(self, category_id: str) -> bool:
        """Delete a Category, moving its todos to the fallback category."""

    @abstractmethod
    def toggle_all(self, completed: bool) -> None:
        """Set the completion flag of every Todo."""

    @abstractmethod
    def delete_completed(self) -> int:
        """Delete every completed Todo. Return how many were removed."""


class TodoDatabase(Repository):
    """
    Persistence engine over two key-value slots.

    The whole todo collection and the whole category collection are written
    back on every mutation. Returned records are deep copies.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        todos_key: str = "todos",
        categories_key: str = "categories",
        clock: Optional[MonotonicClock] = None,
    ) -> None:
        self._lock = RLock()
        self._storage = storage
        self._todos_key = todos_key
        self._categories_key = categories_key
        self._clock = clock or MonotonicClock()
        self._todos: List[Todo] = []
        self._categories: List[Category] = []
        self._load()
        logger.info(
            "TodoDatabase ready storage=%s todos=%s categories=%s",
            type(storage).__name__,
            len(self._todos),
            len(self._categories),
        )

    # ---- storage boundary ----

    def _load(self) -> None:
        try:
            raw_todos = self._storage.get_item(self._todos_key)
            raw_categories = self._storage.get_item(self._categories_key)
            todos = _TODOS.validate_json(raw_todos) if raw_todos else []
            categories = _CATEGORIES.validate_json(raw_categories) if raw_categories else default_categories()
        except Exception:
            logger.exception("Error loading data from storage; starting empty")
            todos, categories = [], []

        self._todos = todos
        self._categories = categories
        for todo in todos:
            self._clock.observe(max(todo.created_at, todo.updated_at))
        self._update_category_counts()

    def _save(self) -> None:
        try:
            self._storage.set_item(self._todos_key, _TODOS.dump_json(self._todos, by_alias=True).decode("utf-8"))
            self._storage.set_item(
                self._categories_key, _CATEGORIES.dump_json(self._categories, by_alias=True).decode("utf-8")
            )
        except Exception:
            logger.exception("Error saving data to storage; write dropped")

    def _update_category_counts(self) -> None:
        self._categories = [
            c.model_copy(update={"count": sum(1 for t in self._todos if t.category == c.name)})
            for c in self._categories
        ]

    def _commit(self) -> None:
        self._update_category_counts()
        self._save()

    def _index_of(self, todo_id: str) -> Optional[int]:
        for i, todo in enumerate(self._todos):
            if todo.id == todo_id:
                return i
        return None

    # ---- todos ----

    def create(self, draft: Union[TodoCreate, Mapping[str, Any]]) -> Todo:
        data = _coerce(TodoCreate, draft)
        with self._lock:
            now = self._clock.now()
            todo = Todo(id=generate_id(), created_at=now, updated_at=now, **data.model_dump())
            self._todos.append(todo)
            self._commit()
            logger.debug("Todo created id=%s category=%s", todo.id, todo.category)
            return todo.model_copy(deep=True)

    def update(self, todo_id: str, changes: Union[TodoUpdate, Mapping[str, Any]]) -> Optional[Todo]:
        fields = _coerce(TodoUpdate, changes).changes()
        with self._lock:
            index = self._index_of(todo_id)
            if index is None:
                return None
            fields["updated_at"] = self._clock.now()
            updated = self._todos[index].model_copy(update=fields, deep=True)
            self._todos[index] = updated
            self._commit()
            logger.debug("Todo updated id=%s fields=%s", todo_id, sorted(fields))
            return updated.model_copy(deep=True)

    def delete(self, todo_id: str) -> bool:
        with self._lock:
            index = self._index_of(todo_id)
            if index is None:
                return False
            del self._todos[index]
            self._commit()
            logger.debug("Todo deleted id=%s", todo_id)
            return True

    def get(self, todo_id: str) -> Optional[Todo]:
        with self._lock:
            index = self._index_of(todo_id)
            return None if index is None else self._todos[index].model_copy(deep=True)

    def get_all(self) -> List[Todo]:
        with self._lock:
            return [t.model_copy(deep=True) for t in self._todos]

    def query(self, filters: Optional[TodoFilters] = None) -> List[Todo]:
        f = filters or TodoFilters()
        with self._lock:
            items: List[Todo] = list(self._todos)

            # Status filter
            if f.status == "active":
                items = [t for t in items if not t.completed]
            elif f.status == "completed":
                items = [t for t in items if t.completed]

            # Priority filter
            if f.priority != "all":
                items = [t for t in items if t.priority == f.priority]

            # Category filter
            if f.category:
                items = [t for t in items if t.category == f.category]

            # Search filter
            if f.search:
                s = f.search.lower()

                def matches(t: Todo) -> bool:
                    return (
                        s in t.title.lower()
                        or s in (t.description or "").lower()
                        or any(s in tag.lower() for tag in t.tags)
                    )

                items = [t for t in items if matches(t)]

            return [t.model_copy(deep=True) for t in sorted(items, key=_sort_key)]

    def stats(self, now: Optional[datetime] = None) -> TodoStats:
        today, tomorrow = day_bounds(now or datetime.now())
        with self._lock:
            open_todos = [t for t in self._todos if not t.completed]
            return TodoStats(
                total=len(self._todos),
                completed=len(self._todos) - len(open_todos),
                active=len(open_todos),
                overdue=sum(1 for t in open_todos if t.due_date is not None and t.due_date < today),
                due_today=sum(
                    1 for t in open_todos if t.due_date is not None and today <= t.due_date < tomorrow
                ),
            )

    # ---- categories ----

    def list_categories(self) -> List[Category]:
        with self._lock:
            return [c.model_copy() for c in self._categories]

    def add_category(self, draft: Union[CategoryCreate, Mapping[str, Any]]) -> Category:
        data = _coerce(CategoryCreate, draft)
        with self._lock:
            category = Category(id=generate_id(), name=data.name, color=data.color, count=0)
            self._categories.append(category)
            self._commit()
            logger.debug("Category added id=%s name=%s", category.id, category.name)
            return self._categories[-1].model_copy()

    def delete_category(self, category_id: str) -> bool:
        with self._lock:
            category = next((c for c in self._categories if c.id == category_id), None)
            if category is None:
                return False

            # Move orphaned todos to the fallback category
            moved = 0
            for i, todo in enumerate(self._todos):
                if todo.category == category.name:
                    self._todos[i] = todo.model_copy(
                        update={"category": FALLBACK_CATEGORY, "updated_at": self._clock.now()}
                    )
                    moved += 1

            self._categories = [c for c in self._categories if c.id != category_id]
            self._ensure_fallback_category()
            self._commit()
            logger.debug("Category deleted id=%s name=%s moved=%s", category_id, category.name, moved)
            return True

    def _ensure_fallback_category(self) -> None:
        # Deleting the fallback category itself must not leave its todos dangling
        if any(c.name == FALLBACK_CATEGORY for c in self._categories):
            return
        if not any(t.category == FALLBACK_CATEGORY for t in self._todos):
            return
        color = next(color for _, name, color in DEFAULT_CATEGORIES if name == FALLBACK_CATEGORY)
        self._categories.append(Category(id=generate_id(), name=FALLBACK_CATEGORY, color=color, count=0))
        logger.info("Recreated fallback category %s", FALLBACK_CATEGORY)

    # ---- bulk operations ----

    def toggle_all(self, completed: bool) -> None:
        with self._lock:
            self._todos = [
                t.model_copy(update={"completed": completed, "updated_at": self._clock.now()})
                for t in self._todos
            ]
            self._save()
            logger.debug("Toggled all todos completed=%s count=%s", completed, len(self._todos))

    def delete_completed(self) -> int:
        with self._lock:
            before = len(self._todos)
            self._todos = [t for t in self._todos if not t.completed]
            removed = before - len(self._todos)
            self._commit()
            logger.debug("Deleted completed todos count=%s", removed)
            return removed


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Build the persistence engine for the configured storage backend.
    """
    settings = settings or get_settings()
    return TodoDatabase(
        get_storage(settings),
        todos_key=settings.todos_key,
        categories_key=settings.categories_key,
    )
