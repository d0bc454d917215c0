"""
Tests for database.py - task CRUD, owner scoping, validation, session rows.
"""
import pytest
import sys
import os
import re

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import (
    create_task_db,
    get_task_db,
    list_tasks_db,
    update_task_db,
    delete_task_db,
    delete_task_by_title_db,
    find_task_by_title_db,
    new_task_id,
    migration_url,
    get_session_row,
    save_session_row,
    delete_session_row,
    purge_session_rows,
)
from models import TaskValidationError, OWNER_SENTINEL


class TestTaskCRUD:
    """Tests for basic task create/read/update/delete operations."""

    def test_create_task_defaults(self, test_db):
        """Create a task with only a title."""
        task = create_task_db("Buy groceries")

        assert re.fullmatch(r"[0-9a-f]{24}", task.id)
        assert task.title == "Buy groceries"
        assert task.description == ""
        assert task.priority == "low"
        assert task.completed is False
        assert task.owner == OWNER_SENTINEL
        assert task.due_date is None
        assert task.start_time is None
        assert task.created_at

    def test_create_task_all_fields(self, test_db):
        task = create_task_db(
            "Dentist",
            description="Bring insurance card",
            priority="HIGH",
            due_date="2025-02-15",
            start_time="2025-02-15T10:00",
            end_time="2025-02-15T11:00",
            owner="ana@example.com",
        )

        assert task.priority == "high"
        assert task.due_date == "2025-02-15T00:00:00+00:00"
        assert task.start_time == "2025-02-15T10:00:00"
        assert task.end_time == "2025-02-15T11:00:00"
        assert task.owner == "ana@example.com"

    def test_create_task_empty_title_rejected(self, test_db):
        with pytest.raises(TaskValidationError, match="title is required"):
            create_task_db("   ")

    def test_create_task_bad_priority_rejected(self, test_db):
        with pytest.raises(TaskValidationError):
            create_task_db("Task", priority="urgent")

    def test_create_task_bad_date_rejected(self, test_db):
        with pytest.raises(TaskValidationError):
            create_task_db("Task", due_date="next blursday")

    def test_get_task_scoped_by_owner(self, test_db):
        task = create_task_db("Mine", owner="ana@example.com")

        assert get_task_db(task.id, owner="ana@example.com").title == "Mine"
        assert get_task_db(task.id, owner="bob@example.com") is None
        assert get_task_db(task.id).title == "Mine"

    def test_list_tasks_newest_first(self, test_db):
        create_task_db("First")
        create_task_db("Second")
        create_task_db("Third")

        titles = [task.title for task in list_tasks_db(owner=OWNER_SENTINEL)]
        assert titles == ["Third", "Second", "First"]

    def test_list_tasks_filters(self, test_db):
        create_task_db("Low one", priority="low")
        create_task_db("High one", priority="high")
        done = create_task_db("High done", priority="high")
        update_task_db(done.id, completed=True)
        create_task_db("Someone else's", priority="high", owner="bob@example.com")

        high = list_tasks_db(owner=OWNER_SENTINEL, priority="HIGH")
        assert {task.title for task in high} == {"High one", "High done"}

        finished = list_tasks_db(owner=OWNER_SENTINEL, completed=True)
        assert [task.title for task in finished] == ["High done"]

        assert len(list_tasks_db()) == 4

    def test_update_only_given_fields(self, test_db):
        task = create_task_db("Old title", description="keep me", priority="medium")
        updated = update_task_db(task.id, owner=OWNER_SENTINEL, title="New title")

        assert updated.title == "New title"
        assert updated.description == "keep me"
        assert updated.priority == "medium"

    def test_update_is_idempotent(self, test_db):
        task = create_task_db("Report")
        first = update_task_db(task.id, priority="high", completed=True)
        second = update_task_db(task.id, priority="high", completed=True)

        assert first == second
        assert len(list_tasks_db()) == 1

    def test_update_clears_date_with_empty_string(self, test_db):
        task = create_task_db("Call mom", due_date="2025-03-01")
        updated = update_task_db(task.id, due_date="")

        assert updated.due_date is None

    def test_update_foreign_task_not_found(self, test_db):
        task = create_task_db("Mine", owner="ana@example.com")

        assert update_task_db(task.id, owner="bob@example.com", title="Hijacked") is None
        assert get_task_db(task.id).title == "Mine"

    def test_update_task_not_found(self, test_db):
        assert update_task_db("nonexistent", title="New title") is None

    def test_delete_task(self, test_db):
        task = create_task_db("Delete me")
        assert delete_task_db(task.id, owner=OWNER_SENTINEL) is True
        assert list_tasks_db() == []

    def test_delete_foreign_task(self, test_db):
        task = create_task_db("Mine", owner="ana@example.com")
        assert delete_task_db(task.id, owner="bob@example.com") is False
        assert get_task_db(task.id) is not None

    def test_delete_task_not_found(self, test_db):
        assert delete_task_db("nonexistent") is False


class TestTitleLookup:
    """Title matching is exact, case-insensitive and owner-scoped."""

    def test_find_task_by_title(self, test_db):
        create_task_db("Buy groceries", owner="ana@example.com")

        assert find_task_by_title_db("BUY GROCERIES", "ana@example.com") is not None
        assert find_task_by_title_db("groceries", "ana@example.com") is None
        assert find_task_by_title_db("Buy groceries", "bob@example.com") is None

    def test_delete_by_title_removes_one(self, test_db):
        create_task_db("Water plants")
        create_task_db("water plants")

        assert delete_task_by_title_db("Water Plants", OWNER_SENTINEL) is True
        assert len(list_tasks_db()) == 1

    def test_delete_by_title_not_found(self, test_db):
        assert delete_task_by_title_db("Nothing", OWNER_SENTINEL) is False


class TestSessionRows:

    def test_save_and_get(self, test_db):
        save_session_row("c1", '{"a": 1}', 100.0)
        assert get_session_row("c1") == '{"a": 1}'

        save_session_row("c1", '{"a": 2}', 200.0)
        assert get_session_row("c1") == '{"a": 2}'

    def test_missing_row(self, test_db):
        assert get_session_row("nope") is None

    def test_delete_and_purge(self, test_db):
        save_session_row("old", "{}", 100.0)
        save_session_row("new", "{}", 500.0)

        assert purge_session_rows(300.0) == 1
        assert get_session_row("old") is None

        delete_session_row("new")
        assert get_session_row("new") is None


def test_new_task_id_is_hex():
    assert re.fullmatch(r"[0-9a-f]{24}", new_task_id())


def test_migration_url_follows_configured_path(test_db):
    assert migration_url() == f"sqlite:///{os.path.abspath(test_db)}"
    assert migration_url("other.db") == f"sqlite:///{os.path.abspath('other.db')}"
