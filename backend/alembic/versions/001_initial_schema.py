"""Initial schema - tasks table

Revision ID: 001
Revises: None
Create Date: 2025-08-02

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT DEFAULT '',
            priority TEXT NOT NULL DEFAULT 'low',
            due_date TEXT,
            start_time TEXT,
            end_time TEXT,
            completed INTEGER DEFAULT 0,
            owner TEXT NOT NULL DEFAULT 'temp-user',
            created_at TEXT NOT NULL
        )
    """))

    # Listing is always owner-scoped and newest first
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_tasks_owner_created_at ON tasks (owner, created_at)"
    ))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP INDEX IF EXISTS ix_tasks_owner_created_at"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
