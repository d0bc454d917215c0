import sqlite3
import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import contextmanager

import config
import datefields
from models import Task, TaskValidationError, OWNER_SENTINEL, PRIORITIES

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

# Columns a caller may set on create/update
TASK_FIELDS = (
    "title", "description", "priority", "due_date",
    "start_time", "end_time", "completed", "owner",
)
DATE_FIELDS = ("due_date", "start_time", "end_time")


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory against the configured file
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    env = dict(os.environ, TASKFAST_DB=os.path.abspath(DATABASE_PATH))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        env=env,
        check=True
    )


def migration_url(path: Optional[str] = None) -> str:
    """SQLAlchemy URL Alembic uses for the task database."""
    import os

    return f"sqlite:///{os.path.abspath(path or DATABASE_PATH)}"


def new_task_id() -> str:
    """24 hex characters, addressable as `id: <hex>` or `[<hex>]` in chat."""
    return uuid.uuid4().hex[:24]


def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        priority=row["priority"] or "low",
        due_date=row["due_date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        completed=bool(row["completed"]),
        owner=row["owner"] or OWNER_SENTINEL,
        created_at=row["created_at"],
    )


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Validate and normalize task fields before they are written.
    Title must be non-empty, priority is lower-cased and checked, dates are
    normalized (empty string clears a date).
    """
    cleaned = {}
    for field, value in fields.items():
        if field not in TASK_FIELDS:
            continue

        if field == "title":
            value = (value or "").strip()
            if not value:
                raise TaskValidationError("title is required")
        elif field == "description":
            value = value or ""
        elif field == "priority":
            value = (value or "low").strip().lower()
            if value not in PRIORITIES:
                raise TaskValidationError(f"priority must be one of: {', '.join(PRIORITIES)}")
        elif field in DATE_FIELDS:
            if value in (None, ""):
                value = None
            else:
                try:
                    if field == "due_date":
                        value = datefields.to_due_date(value)
                    else:
                        value = datefields.to_datetime_iso(value)
                except ValueError:
                    raise TaskValidationError(f"Invalid date for {field}: {value}")
        elif field == "completed":
            value = int(bool(value))
        elif field == "owner":
            value = value or OWNER_SENTINEL

        cleaned[field] = value
    return cleaned


def create_task_db(
    title: str,
    description: str = "",
    priority: Optional[str] = "low",
    due_date: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    completed: bool = False,
    owner: Optional[str] = None,
    task_id: Optional[str] = None,
) -> Task:
    """Create a task. Raises TaskValidationError for an empty title or unknown priority."""
    fields = _clean_fields({
        "title": title,
        "description": description,
        "priority": priority,
        "due_date": due_date,
        "start_time": start_time,
        "end_time": end_time,
        "completed": completed,
        "owner": owner,
    })
    task_id = task_id or new_task_id()
    created_at = datetime.now(timezone.utc).isoformat()

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, title, description, priority, due_date, start_time, end_time, completed, owner, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (task_id, fields["title"], fields["description"], fields["priority"], fields["due_date"],
             fields["start_time"], fields["end_time"], fields["completed"], fields["owner"], created_at)
        )
        conn.commit()
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()

    logger.debug("Created task %s for %s", task_id, fields["owner"])
    return _row_to_task(row)


def get_task_db(task_id: str, owner: Optional[str] = None) -> Optional[Task]:
    """Fetch one task; with an owner, tasks owned by someone else read as absent."""
    with get_db() as conn:
        if owner is None:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        else:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND owner = ?", (task_id, owner)
            ).fetchone()
    return _row_to_task(row) if row else None


def list_tasks_db(
    owner: Optional[str] = None,
    priority: Optional[str] = None,
    completed: Optional[bool] = None,
) -> list[Task]:
    """List tasks newest-created first. Every filter given is an equality constraint."""
    clauses = []
    params: list[Any] = []
    if owner is not None:
        clauses.append("owner = ?")
        params.append(owner)
    if priority:
        clauses.append("priority = ?")
        params.append(priority.strip().lower())
    if completed is not None:
        clauses.append("completed = ?")
        params.append(int(completed))

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM tasks {where} ORDER BY created_at DESC, rowid DESC",
            params
        ).fetchall()
        return [_row_to_task(row) for row in rows]


def update_task_db(task_id: str, owner: Optional[str] = None, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values, so repeating an
    update is a no-op.

    Args:
        task_id: Task ID to update
        owner: When given, the task must belong to this owner
        **updates: Field names and values to update (title, description, priority,
            due_date, start_time, end_time, completed)

    Returns None when the task does not exist or belongs to another owner.
    """
    cleaned = _clean_fields(updates)

    with get_db() as conn:
        if owner is None:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        else:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND owner = ?", (task_id, owner)
            ).fetchone()
        if not row:
            return None

        changes = {field: value for field, value in cleaned.items() if row[field] != value}

        # Execute UPDATE only if there are actual changes
        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()
            logger.debug("Updated task %s: %s", task_id, sorted(changes))

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)


def delete_task_db(task_id: str, owner: Optional[str] = None) -> bool:
    with get_db() as conn:
        if owner is None:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        else:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ? AND owner = ?", (task_id, owner))
        conn.commit()
        return cursor.rowcount > 0


def find_task_by_title_db(title: str, owner: str) -> Optional[Task]:
    """Find the newest task of an owner whose title equals `title`, ignoring case."""
    wanted = title.strip().casefold()
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE owner = ? ORDER BY created_at DESC, rowid DESC",
            (owner,)
        ).fetchall()
        for row in rows:
            if row["title"].casefold() == wanted:
                return _row_to_task(row)
    return None


def delete_task_by_title_db(title: str, owner: str) -> bool:
    """Delete at most one task matching the title exactly (case-insensitive)."""
    task = find_task_by_title_db(title, owner)
    if not task:
        return False
    return delete_task_db(task.id, owner)


# Agent session persistence
def get_session_row(conversation_id: str) -> Optional[str]:
    """Return the stored JSON payload for a conversation, if any."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT payload FROM agent_sessions WHERE conversation_id = ?",
            (conversation_id,)
        ).fetchone()
        return row["payload"] if row else None


def save_session_row(conversation_id: str, payload: str, updated_at: float):
    with get_db() as conn:
        conn.execute(
            """INSERT INTO agent_sessions (conversation_id, payload, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(conversation_id) DO UPDATE SET
                   payload = excluded.payload,
                   updated_at = excluded.updated_at""",
            (conversation_id, payload, updated_at)
        )
        conn.commit()


def delete_session_row(conversation_id: str):
    with get_db() as conn:
        conn.execute("DELETE FROM agent_sessions WHERE conversation_id = ?", (conversation_id,))
        conn.commit()


def purge_session_rows(older_than: float) -> int:
    """Delete sessions last saved before `older_than` (epoch seconds). Returns rows removed."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM agent_sessions WHERE updated_at < ?", (older_than,))
        conn.commit()
        return cursor.rowcount
