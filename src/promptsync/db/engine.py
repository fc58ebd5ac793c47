"""SQLModel engine construction."""
from sqlmodel import SQLModel, create_engine


def build_engine(database_url: str):
    """Create an engine and create any tables that are missing.

    Called once by the process bootstrap (create_app / __main__); the engine
    is then handed to the stores explicitly. The schema is created in place by
    create_all(); existing tables are left as they are.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # SQLite only; safe for FastAPI
    engine = create_engine(database_url, connect_args=connect_args)

    # Import all models so metadata is populated before create_all
    from promptsync.models.prompt import Prompt  # noqa
    from promptsync.models.sync import SyncSession  # noqa
    SQLModel.metadata.create_all(engine)
    return engine
