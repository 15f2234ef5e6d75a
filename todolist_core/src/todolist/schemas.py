from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import Priority
from .utils import as_datetime, normalize_tags, to_local_naive

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a naive local datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, return it in local time without tzinfo.
    """
    if value is None:
        return None

    if isinstance(value, (date, datetime)):
        return to_local_naive(as_datetime(value))

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        # Attempt full datetime parsing first
        try:
            return to_local_naive(datetime.fromisoformat(s.replace("Z", "+00:00")))
        except ValueError:
            # If only a date is provided, convert to midnight
            try:
                return as_datetime(date.fromisoformat(s))
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    # Any other type is invalid
    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


class _Draft(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class TodoCreate(_Draft):
    """
    Draft for a new Todo. The engine assigns id and timestamps.

    Title/description length limits belong to the presentation layer and are
    not checked here.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "priority": "medium",
                "category": "Shopping",
                "dueDate": "2025-02-01",
                "tags": ["milk", "weekly"],
            }
        }
    )

    title: str = Field(..., description="Short title for the todo")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(default=False, description="Completion status flag")
    priority: Priority = Field(default="medium", description="Priority level")
    category: str = Field(..., description="Category name")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date of the todo. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    tags: List[str] = Field(default_factory=list, description="Tags; de-duplicated and capped at five")

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


# PUBLIC_INTERFACE
class TodoUpdate(_Draft):
    """
    Partial update for an existing Todo.
    Only provided fields are applied; id and timestamps are not updatable.
    """

    title: Optional[str] = Field(default=None, description="Short title for the todo")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    priority: Optional[Priority] = Field(default=None, description="Priority level")
    category: Optional[str] = Field(default=None, description="Category name")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date of the todo. Accepts ISO8601 date or datetime; null clears it",
    )
    tags: Optional[List[str]] = Field(default=None, description="Replacement tag list")

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else normalize_tags(v)

    def changes(self) -> Dict[str, Any]:
        """
        Return the fields to merge into the stored record.

        Explicit nulls are honored for description and due_date; for the other
        fields a null means "leave unchanged".
        """
        out: Dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None and name not in {"description", "due_date"}:
                continue
            out[name] = list(value) if name == "tags" else value
        return out


# PUBLIC_INTERFACE
class CategoryCreate(_Draft):
    """Draft for a new Category. The engine assigns id and count."""

    name: str = Field(..., description="Display name", min_length=1)
    color: str = Field(default="#6B7280", description="Display color")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("name is required")
        return s
