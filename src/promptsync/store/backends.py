"""Pick the prompt store / session ledger implementation once, at startup."""
import logging
from dataclasses import dataclass

from promptsync.config import Settings
from promptsync.store.base import PromptStore, SessionLedger
from promptsync.sync.clock import Clock, utcnow

logger = logging.getLogger(__name__)

BACKEND_SQL = "sql"
BACKEND_MEMORY = "memory"


@dataclass
class Stores:
    prompts: PromptStore
    sessions: SessionLedger


def build_stores(settings: Settings, engine=None, clock: Clock = utcnow) -> Stores:
    """
    Build the configured backend.

    Args:
        settings: decides the backend via settings.store_backend.
        engine: SQLAlchemy engine for the "sql" backend; built from
            settings.database_url when omitted.
        clock: time source shared by both stores.

    Raises:
        ValueError: unknown store_backend.
    """
    backend = settings.store_backend.lower()

    if backend == BACKEND_MEMORY:
        from promptsync.store.memory import InMemoryPromptStore, InMemorySessionLedger

        logger.info("Using in-memory prompt store (data is lost on restart)")
        return Stores(
            prompts=InMemoryPromptStore(clock=clock),
            sessions=InMemorySessionLedger(clock=clock),
        )

    if backend == BACKEND_SQL:
        from promptsync.store.sql import SqlPromptStore, SqlSessionLedger

        if engine is None:
            from promptsync.db.engine import build_engine

            engine = build_engine(settings.database_url)
        logger.info("Using SQL prompt store at %s", engine.url.render_as_string(hide_password=True))
        return Stores(
            prompts=SqlPromptStore(engine, clock=clock),
            sessions=SqlSessionLedger(engine, clock=clock),
        )

    raise ValueError(f"Unknown store_backend: {settings.store_backend!r}")
