import logging
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from src.todolist.logging_setup import setup_logging
from src.todolist.schemas import CategoryCreate, TodoCreate, TodoUpdate
from src.todolist.settings import get_settings
from src.todolist.utils import MonotonicClock, day_bounds, normalize_tags


class TestDueDateParsing:
    def test_date_string_is_promoted_to_midnight(self):
        d = TodoCreate(title="x", category="Work", due_date="2025-01-31")
        assert d.due_date == datetime(2025, 1, 31, 0, 0)

    def test_date_object(self):
        d = TodoCreate(title="x", category="Work", due_date=date(2025, 1, 31))
        assert d.due_date == datetime(2025, 1, 31)

    def test_datetime_string(self):
        d = TodoCreate(title="x", category="Work", due_date="2025-01-31T13:45:00")
        assert d.due_date == datetime(2025, 1, 31, 13, 45)

    def test_aware_datetime_becomes_local_naive(self):
        aware = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)
        d = TodoCreate(title="x", category="Work", due_date=aware)
        assert d.due_date.tzinfo is None
        assert d.due_date == aware.astimezone().replace(tzinfo=None)

    def test_blank_string_means_no_due_date(self):
        assert TodoCreate(title="x", category="Work", due_date="  ").due_date is None

    def test_bad_string_is_rejected(self):
        with pytest.raises(ValidationError):
            TodoCreate(title="x", category="Work", due_date="not-a-date")

    def test_bad_type_is_rejected(self):
        with pytest.raises(ValidationError):
            TodoUpdate(due_date=12345)


class TestDrafts:
    def test_defaults(self):
        d = TodoCreate(title="x", category="Work")
        assert d.priority == "medium"
        assert d.completed is False
        assert d.tags == []
        assert d.description is None

    def test_update_changes_only_include_provided_fields(self):
        assert TodoUpdate(completed=True).changes() == {"completed": True}
        assert TodoUpdate().changes() == {}

    def test_update_null_clears_optional_fields_only(self):
        changes = TodoUpdate.model_validate({"description": None, "dueDate": None, "title": None}).changes()
        assert changes == {"description": None, "due_date": None}

    def test_update_normalizes_tags(self):
        assert TodoUpdate(tags=["a", "a", "b"]).changes() == {"tags": ["a", "b"]}

    def test_category_name_is_trimmed(self):
        assert CategoryCreate(name="  Errands ").name == "Errands"
        assert CategoryCreate(name="Errands").color == "#6B7280"


class TestUtils:
    def test_normalize_tags(self):
        assert normalize_tags(None) == []
        assert normalize_tags(["x", " x", "y", "", "z", "w", "v", "u"]) == ["x", "y", "z", "w", "v"]

    def test_day_bounds(self):
        start, end = day_bounds(datetime(2030, 3, 10, 18, 5))
        assert start == datetime(2030, 3, 10)
        assert end == datetime(2030, 3, 11)

    def test_clock_never_repeats(self):
        clock = MonotonicClock()
        readings = [clock.now() for _ in range(50)]
        assert all(b > a for a, b in zip(readings, readings[1:]))

    def test_clock_respects_observed_future_stamp(self):
        clock = MonotonicClock()
        future = datetime(2999, 1, 1)
        clock.observe(future)
        assert clock.now() > future


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "TODOLIST_STORAGE_BACKEND",
            "TODOLIST_SQLITE_DB_PATH",
            "TODOLIST_TODOS_KEY",
            "TODOLIST_CATEGORIES_KEY",
            "TODOLIST_LOG_LEVEL",
            "TODOLIST_LOG_FILE",
        ):
            monkeypatch.delenv(name, raising=False)
        s = get_settings()
        assert s.storage_backend == "memory"
        assert s.sqlite_db_path == "./data/todolist.db"
        assert (s.todos_key, s.categories_key) == ("todos", "categories")
        assert s.log_level == "INFO"
        assert s.log_file is None

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TODOLIST_STORAGE_BACKEND", "SQLite")
        monkeypatch.setenv("TODOLIST_SQLITE_DB_PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("TODOLIST_LOG_LEVEL", "debug")
        monkeypatch.setenv("TODOLIST_LOG_FILE", str(tmp_path / "todolist.log"))
        s = get_settings()
        assert s.storage_backend == "sqlite"
        assert s.sqlite_db_path == str(tmp_path / "x.db")
        assert s.log_level == "DEBUG"
        assert s.log_file == str(tmp_path / "todolist.log")

    def test_unknown_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("TODOLIST_STORAGE_BACKEND", "redis")
        monkeypatch.setenv("TODOLIST_LOG_LEVEL", "loud")
        s = get_settings()
        assert s.storage_backend == "memory"
        assert s.log_level == "INFO"


class TestLogging:
    def test_setup_logging_writes_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        log_file = tmp_path / "logs" / "todolist.log"
        try:
            setup_logging("INFO", log_file)
            logging.getLogger("src.todolist.tests").debug("debug line")
            for h in root.handlers:
                h.flush()
            assert "debug line" in log_file.read_text(encoding="utf-8")
            assert len(root.handlers) == 2
        finally:
            for h in list(root.handlers):
                root.removeHandler(h)
                h.close()
            for h in saved_handlers:
                root.addHandler(h)
            root.setLevel(saved_level)
            logging.captureWarnings(False)
