from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .utils import normalize_tags, to_local_naive

Priority = Literal["low", "medium", "high"]
StatusFilter = Literal["all", "active", "completed"]
PriorityFilter = Literal["all", "low", "medium", "high"]

# Sort weight used by query ordering (higher first)
PRIORITY_ORDER: Dict[str, int] = {"high": 3, "medium": 2, "low": 1}


class _Record(BaseModel):
    """Base for persisted records: snake_case attributes, camelCase on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class Todo(_Record):
    """
    A task record as held by the persistence engine.

    Fields:
    - id: Opaque unique identifier, immutable after creation
    - title: Short title (length limits are enforced by the caller)
    - description: Optional longer text
    - completed: Completion flag
    - priority: low | medium | high
    - category: Name of a Category (joined by name, not id)
    - due_date: Optional due date (midnight for day-only dates)
    - created_at / updated_at: Local naive timestamps
    - tags: Ordered, de-duplicated, at most 5 entries
    """

    id: str = Field(..., description="Unique identifier of the todo")
    title: str = Field(..., description="Short title for the todo")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(default=False, description="Completion status flag")
    priority: Priority = Field(default="medium", description="Priority level")
    category: str = Field(..., description="Name of the category this todo belongs to")
    due_date: Optional[datetime] = Field(default=None, description="Optional due date")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    tags: List[str] = Field(default_factory=list, description="Up to five unique tags")

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def naive_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        """
        Stored timestamps may carry a UTC offset (e.g. a trailing 'Z');
        day-boundary logic works on naive local time.
        """
        return None if v is None else to_local_naive(v)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


# PUBLIC_INTERFACE
class Category(_Record):
    """A named bucket of todos; `count` is derived by the engine."""

    id: str = Field(..., description="Unique identifier of the category")
    name: str = Field(..., description="Display name, referenced by Todo.category")
    color: str = Field(..., description="Display color, e.g. '#3B82F6'")
    count: int = Field(default=0, description="Number of todos in this category")


# PUBLIC_INTERFACE
class TodoStats(_Record):
    """Aggregate counters computed from the current todo collection."""

    total: int = 0
    completed: int = 0
    active: int = 0
    overdue: int = 0
    due_today: int = 0


# PUBLIC_INTERFACE
class TodoFilters(_Record):
    """
    Transient query parameters. Never persisted.

    An empty `category` or `search` means "any".
    """

    model_config = ConfigDict(frozen=True)

    status: StatusFilter = "all"
    priority: PriorityFilter = "all"
    category: str = ""
    search: str = ""

    @property
    def has_active_filters(self) -> bool:
        return (
            self.status != "all"
            or self.priority != "all"
            or self.category != ""
            or self.search != ""
        )
