from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from .models import Category, Todo, TodoFilters, TodoStats
from .repositories import Repository
from .schemas import CategoryCreate, TodoCreate, TodoUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreState:
    """
    Immutable view of everything the presentation layer renders.

    todos/categories/stats mirror the persistence engine; filters, is_loading
    and error are local to the store.
    """

    todos: List[Todo] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    stats: TodoStats = field(default_factory=TodoStats)
    filters: TodoFilters = field(default_factory=TodoFilters)
    is_loading: bool = False
    error: Optional[str] = None


Listener = Callable[[StoreState], None]

_Snapshot = Tuple[List[Todo], List[Category], TodoStats]


# PUBLIC_INTERFACE
class TodoStore:
    """
    Reactive state container between the UI and a Repository.

    Every mutating action runs in two phases:
    1. apply an optimistic local patch and yield to the event loop so
       subscribers can render it;
    2. replace todos/categories/stats with a fresh snapshot of the repository.

    Actions never raise for repository failures; the failure is logged and its
    message is stored in `state.error`.
    """

    def __init__(self, repository: Repository) -> None:
        self._repo = repository
        self._state = StoreState()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> StoreState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with the new state after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- internals ----

    def _set(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Store listener failed")

    def _record_error(self, exc: Exception, default: str) -> None:
        logger.exception(default)
        self._set(error=str(exc) or default)

    def _take_snapshot(self) -> _Snapshot:
        # Three reads with no suspension point in between: one consistent view
        return (
            self._repo.get_all(),
            self._repo.list_categories(),
            self._repo.stats(),
        )

    def _apply_snapshot(self, snapshot: _Snapshot, **extra: Any) -> None:
        todos, categories, stats = snapshot
        self._set(todos=todos, categories=categories, stats=stats, **extra)

    def _find_local(self, todo_id: str) -> Optional[Todo]:
        return next((t for t in self._state.todos if t.id == todo_id), None)

    # ---- loading ----

    async def initialize(self) -> None:
        self._set(is_loading=True, error=None)
        try:
            snapshot = self._take_snapshot()
        except Exception as exc:
            logger.exception("Failed to initialize")
            self._set(error=str(exc) or "Failed to initialize", is_loading=False)
            return
        self._apply_snapshot(snapshot, is_loading=False)

    async def refresh_data(self) -> None:
        """Replace the mirrors with the repository's canonical state. Keeps old data on failure."""
        try:
            snapshot = self._take_snapshot()
        except Exception as exc:
            self._record_error(exc, "Failed to refresh data")
            return
        self._apply_snapshot(snapshot)

    # ---- todos ----

    async def add_todo(self, draft: Union[TodoCreate, Mapping[str, Any]]) -> None:
        try:
            created = self._repo.create(draft)
        except Exception as exc:
            self._record_error(exc, "Failed to add todo")
            return

        stats = self._state.stats
        if created.completed:
            stats = stats.model_copy(update={"total": stats.total + 1, "completed": stats.completed + 1})
        else:
            stats = stats.model_copy(update={"total": stats.total + 1, "active": stats.active + 1})
        self._set(todos=[created, *self._state.todos], stats=stats)
        await asyncio.sleep(0)
        await self.refresh_data()

    async def update_todo(self, todo_id: str, changes: Union[TodoUpdate, Mapping[str, Any]]) -> None:
        current = self._find_local(todo_id)
        if current is None:
            return

        try:
            patch = changes if isinstance(changes, TodoUpdate) else TodoUpdate.model_validate(changes)
            fields = {**patch.changes(), "updated_at": datetime.now()}
            self._set(
                todos=[t.model_copy(update=fields) if t.id == todo_id else t for t in self._state.todos]
            )
            await asyncio.sleep(0)
            self._repo.update(todo_id, patch)
        except Exception as exc:
            self._record_error(exc, "Failed to update todo")
        await self.refresh_data()

    async def delete_todo(self, todo_id: str) -> None:
        try:
            removed = self._repo.delete(todo_id)
        except Exception as exc:
            self._record_error(exc, "Failed to delete todo")
            return

        if removed:
            self._set(todos=[t for t in self._state.todos if t.id != todo_id])
            await asyncio.sleep(0)
        await self.refresh_data()

    async def toggle_todo(self, todo_id: str) -> None:
        todo = self._find_local(todo_id)
        if todo is None:
            return
        await self.update_todo(todo_id, {"completed": not todo.completed})

    # ---- filters ----

    def set_filters(self, **changes: Any) -> None:
        """Merge filter fields into the current filters. Local only."""
        merged = {**self._state.filters.model_dump(), **changes}
        self._set(filters=TodoFilters.model_validate(merged))

    def clear_filters(self) -> None:
        self._set(filters=TodoFilters())

    def visible_todos(self) -> List[Todo]:
        """Todos matching the current filters, in query order."""
        try:
            return self._repo.query(self._state.filters)
        except Exception as exc:
            self._record_error(exc, "Failed to query todos")
            return []

    # ---- bulk operations ----

    async def toggle_all(self, completed: bool) -> None:
        try:
            self._repo.toggle_all(completed)
        except Exception as exc:
            self._record_error(exc, "Failed to update todos")
        await self.refresh_data()

    async def delete_completed(self) -> None:
        try:
            self._repo.delete_completed()
        except Exception as exc:
            self._record_error(exc, "Failed to delete completed todos")
        await self.refresh_data()

    # ---- categories ----

    async def add_category(self, draft: Union[CategoryCreate, Mapping[str, Any]]) -> None:
        try:
            category = self._repo.add_category(draft)
        except Exception as exc:
            self._record_error(exc, "Failed to add category")
            return
        self._set(categories=[*self._state.categories, category])

    async def delete_category(self, category_id: str) -> None:
        try:
            deleted = self._repo.delete_category(category_id)
        except Exception as exc:
            self._record_error(exc, "Failed to delete category")
            return
        if deleted:
            await self.refresh_data()
