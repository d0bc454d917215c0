"""
Task operations the agents can invoke. Each tool takes the gathered slots and
the caller's identity and reports a ToolResult instead of raising.
"""
import sqlite3
import logging
from typing import Any, Callable, Optional

from database import (
    create_task_db,
    update_task_db,
    delete_task_db,
    delete_task_by_title_db,
    list_tasks_db,
)
from models import Intent, Slots, ToolResult, TaskValidationError, OWNER_SENTINEL

logger = logging.getLogger(__name__)

NOT_FOUND = "Task not found"

# Slot fields an update may change
UPDATABLE_FIELDS = (
    "title", "description", "priority", "due_date",
    "start_time", "end_time", "completed",
)

ToolFn = Callable[[Slots, str], ToolResult]


def _failure(exc: Exception) -> ToolResult:
    logger.warning("Task tool failed: %s", exc)
    return ToolResult(success=False, message=str(exc))


def create_task_tool(slots: Slots, owner: str) -> ToolResult:
    if not slots.title:
        return ToolResult(success=False, message="title is required")
    try:
        task = create_task_db(
            title=slots.title,
            description=slots.description or "",
            priority=slots.priority or "low",
            due_date=slots.due_date,
            start_time=slots.start_time,
            end_time=slots.end_time,
            completed=bool(slots.completed),
            owner=owner or OWNER_SENTINEL,
        )
    except (TaskValidationError, sqlite3.Error) as e:
        return _failure(e)
    return ToolResult(success=True, task=task)


def update_task_tool(slots: Slots, owner: str) -> ToolResult:
    if not slots.id:
        return ToolResult(success=False, message="id is required")
    updates = {
        field: getattr(slots, field)
        for field in UPDATABLE_FIELDS
        if getattr(slots, field) is not None
    }
    try:
        task = update_task_db(slots.id, owner=owner or OWNER_SENTINEL, **updates)
    except (TaskValidationError, sqlite3.Error) as e:
        return _failure(e)
    if not task:
        return ToolResult(success=False, message=NOT_FOUND)
    return ToolResult(success=True, task=task)


def delete_task_tool(slots: Slots, owner: str) -> ToolResult:
    owner = owner or OWNER_SENTINEL
    try:
        if slots.id:
            deleted = delete_task_db(slots.id, owner=owner)
        elif slots.title:
            deleted = delete_task_by_title_db(slots.title, owner)
        else:
            return ToolResult(success=False, message="id or title required")
    except sqlite3.Error as e:
        return _failure(e)
    if not deleted:
        return ToolResult(success=False, message=NOT_FOUND)
    return ToolResult(success=True)


def list_tasks_tool(slots: Slots, owner: str) -> ToolResult:
    try:
        tasks = list_tasks_db(
            owner=owner or OWNER_SENTINEL,
            priority=slots.priority,
            completed=slots.completed,
        )
    except sqlite3.Error as e:
        return _failure(e)
    return ToolResult(success=True, tasks=tasks)


TOOLS_BY_INTENT: dict[Intent, ToolFn] = {
    Intent.ADD_TASK: create_task_tool,
    Intent.UPDATE_TASK: update_task_tool,
    Intent.DELETE_TASK: delete_task_tool,
    Intent.LIST_TASKS: list_tasks_tool,
}

# Names the LLM agent calls the tools by
TOOLS_BY_NAME: dict[str, ToolFn] = {
    "createTask": create_task_tool,
    "updateTask": update_task_tool,
    "deleteTask": delete_task_tool,
    "listTasks": list_tasks_tool,
}

# LLM tool arguments are camelCase
_ARG_NAMES = {
    "title": "title",
    "id": "id",
    "description": "description",
    "priority": "priority",
    "dueDate": "due_date",
    "startTime": "start_time",
    "endTime": "end_time",
    "completed": "completed",
}


def run_tool(name: str, args: dict[str, Any], owner: Optional[str]) -> ToolResult:
    """Run a tool by its LLM-facing name. Identity always comes from `owner`, never from args."""
    tool = TOOLS_BY_NAME.get(name)
    if tool is None:
        return ToolResult(success=False, message=f"Unknown tool {name}")
    fields = {_ARG_NAMES[key]: value for key, value in args.items() if key in _ARG_NAMES}
    try:
        slots = Slots(**fields)
    except ValueError as e:
        return _failure(e)
    return tool(slots, owner or OWNER_SENTINEL)
