"""Prompt storage model."""
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from promptsync.sync.clock import utcnow


def new_prompt_id() -> str:
    return uuid4().hex


class Prompt(SQLModel, table=True):
    """One row per prompt. Desktop-originated rows carry the client's desktop_id."""

    __table_args__ = (
        UniqueConstraint("user_id", "desktop_id", name="uq_prompt_user_desktop"),
    )

    id: str = Field(default_factory=new_prompt_id, primary_key=True)
    desktop_id: Optional[str] = Field(default=None, index=True)  # None for web-created prompts
    user_id: str = Field(index=True)

    title: str
    content: str
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_public: bool = False
    quick_access_key: Optional[str] = None

    # Optimistic concurrency counter; bumped on every accepted write
    version: int = 1

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, index=True)
