"""
Tests for sessions.py - session stores, TTL expiry and isolation.
"""
import pytest
import sys
import os
import threading

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import AwaitingSlot, Intent, Session, Slots
from sessions import (
    InMemorySessionStore,
    SessionManager,
    SqliteSessionStore,
    build_session_store,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(params=["memory", "sqlite"])
def store(request, test_db):
    return build_session_store(request.param)


class TestStores:

    def test_round_trip(self, store):
        session = Session(
            conversation_id="c1",
            intent=Intent.ADD_TASK,
            slots=Slots(priority="high"),
            state=AwaitingSlot(slot="title"),
        )
        store.set(session)
        loaded = store.get("c1")

        assert loaded.intent == Intent.ADD_TASK
        assert loaded.slots.priority == "high"
        assert loaded.pending_slot == "title"

    def test_missing(self, store):
        assert store.get("nope") is None

    def test_sessions_isolated_by_id(self, store):
        store.set(Session(conversation_id="a", intent=Intent.ADD_TASK))
        store.set(Session(conversation_id="b", intent=Intent.LIST_TASKS))

        assert store.get("a").intent == Intent.ADD_TASK
        assert store.get("b").intent == Intent.LIST_TASKS

    def test_delete(self, store):
        store.set(Session(conversation_id="a"))
        store.delete("a")
        assert store.get("a") is None

    def test_last_save_wins(self, store):
        store.set(Session(conversation_id="a", intent=Intent.ADD_TASK))
        store.set(Session(conversation_id="a", intent=Intent.DELETE_TASK))
        assert store.get("a").intent == Intent.DELETE_TASK


def test_unknown_backend():
    with pytest.raises(ValueError):
        build_session_store("redis")


def test_sqlite_store_type(test_db):
    assert isinstance(build_session_store("sqlite"), SqliteSessionStore)


def test_memory_store_returns_copies():
    store = InMemorySessionStore()
    store.set(Session(conversation_id="a"))

    loaded = store.get("a")
    loaded.slots.title = "changed without saving"

    assert store.get("a").slots.title is None


def test_memory_store_concurrent_writers():
    store = InMemorySessionStore()

    def write(n):
        for i in range(50):
            store.set(Session(conversation_id=f"conv-{n}-{i}"))

    threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 400


class TestSessionManager:

    def test_get_or_create_new(self):
        manager = SessionManager()
        session = manager.get_or_create("c1")

        assert session.conversation_id == "c1"
        assert session.intent == Intent.NONE
        assert session.pending_slot is None
        assert manager.get("c1") is None  # not stored until saved

    def test_save_then_get(self):
        manager = SessionManager()
        session = manager.get_or_create("c1")
        session.intent = Intent.LIST_TASKS
        manager.save(session)

        assert manager.get("c1").intent == Intent.LIST_TASKS

    def test_expires_after_ttl(self):
        clock = FakeClock()
        manager = SessionManager(ttl_seconds=60, clock=clock)
        manager.save(Session(conversation_id="c1", intent=Intent.ADD_TASK))

        clock.now += 59
        assert manager.get("c1") is not None

        clock.now += 2
        assert manager.get("c1") is None
        assert manager.get_or_create("c1").intent == Intent.NONE

    def test_zero_ttl_never_expires(self):
        clock = FakeClock()
        manager = SessionManager(ttl_seconds=0, clock=clock)
        manager.save(Session(conversation_id="c1"))

        clock.now += 10 ** 9
        assert manager.get("c1") is not None
        assert manager.purge_expired() == 0

    def test_purge_expired(self, store):
        clock = FakeClock()
        manager = SessionManager(store, ttl_seconds=60, clock=clock)
        manager.save(Session(conversation_id="old"))
        clock.now += 100
        manager.save(Session(conversation_id="fresh"))

        assert manager.purge_expired() == 1
        assert store.get("old") is None
        assert store.get("fresh") is not None
