"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import pytest
import sqlite3
import sys
import os
from datetime import datetime

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database

# Fixed "now" for date-relative extraction: Monday 2025-01-20 08:00
FIXED_NOW = datetime(2025, 1, 20, 8, 0)


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE tasks (
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
        );

        CREATE TABLE agent_sessions (
            conversation_id TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            updated_at REAL NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def orchestrator(test_db):
    """A rule-based agent with fresh in-memory sessions and a fixed clock."""
    from agent import Orchestrator
    from sessions import SessionManager

    return Orchestrator(SessionManager(), clock=lambda: FIXED_NOW)


@pytest.fixture
def app_client(test_db, orchestrator, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations and swaps in a fresh agent.
    """
    from fastapi.testclient import TestClient
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "session_manager", orchestrator.sessions)
    monkeypatch.setattr(main, "orchestrator", orchestrator)
    monkeypatch.setattr(main, "llm_agent", None)

    with TestClient(main.app) as client:
        yield client
