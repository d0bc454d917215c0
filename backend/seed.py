"""Seed the starter tasks a new install shows on its dashboard."""
import logging

from database import init_db, create_task_db
from models import Task, OWNER_SENTINEL

logger = logging.getLogger(__name__)

SEED_TASKS = [
    {
        "title": "Welcome to TaskFast!",
        "description": "This is your first task. Click to edit or add new tasks using the button above.",
        "priority": "medium",
        "completed": False,
    },
    {
        "title": "Learn the chat assistant",
        "description": "Try 'add task \"Pay bill\" tomorrow 9:00 high priority' in the assistant panel",
        "priority": "high",
        "completed": True,
    },
    {
        "title": "Test Task Management",
        "description": "Try creating, editing, and managing your tasks",
        "priority": "low",
        "completed": False,
    },
]


def seed_tasks(owner: str = OWNER_SENTINEL) -> list[Task]:
    created = [create_task_db(owner=owner, **fields) for fields in SEED_TASKS]
    logger.info("Seeded %d tasks for %s", len(created), owner)
    return created


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)
    init_db()
    seed_tasks(sys.argv[1] if len(sys.argv) > 1 else OWNER_SENTINEL)
