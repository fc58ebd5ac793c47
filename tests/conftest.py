"""Shared test fixtures."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from promptsync.models.prompt import Prompt  # noqa: F401
from promptsync.models.sync import SyncSession  # noqa: F401
from promptsync.models.payloads import DesktopPrompt
from promptsync.store.backends import Stores
from promptsync.store.memory import InMemoryPromptStore, InMemorySessionLedger
from promptsync.store.sql import SqlPromptStore, SqlSessionLedger

CLOCK_START = datetime(2024, 1, 1, 0, 0, 0)


class FakeClock:
    """Deterministic clock: every call returns the current time, then ticks forward."""

    def __init__(self, start: datetime = CLOCK_START, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="stores", params=["sql", "memory"])
def stores_fixture(request, engine, clock) -> Stores:
    """Both backends, so every store-level behaviour is checked on each."""
    if request.param == "sql":
        return Stores(
            prompts=SqlPromptStore(engine, clock=clock),
            sessions=SqlSessionLedger(engine, clock=clock),
        )
    return Stores(
        prompts=InMemoryPromptStore(clock=clock),
        sessions=InMemorySessionLedger(clock=clock),
    )


@pytest.fixture(name="prompt_store")
def prompt_store_fixture(stores: Stores):
    return stores.prompts


@pytest.fixture(name="session_ledger")
def session_ledger_fixture(stores: Stores):
    return stores.sessions


@pytest.fixture(name="make_mutation")
def make_mutation_fixture():
    """Factory for valid DesktopPrompt objects; keyword overrides win."""

    def _make(desktop_id: str = "d1", version: int = 1, **overrides) -> DesktopPrompt:
        data = {
            "desktop_id": desktop_id,
            "title": f"Prompt {desktop_id}",
            "content": f"content for {desktop_id}",
            "tags": [],
            "is_public": False,
            "quick_access_key": None,
            "version": version,
            "last_modified": "2024-01-01T00:00:00Z",
        }
        data.update(overrides)
        return DesktopPrompt(**data)

    return _make
