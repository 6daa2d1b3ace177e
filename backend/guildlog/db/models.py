"""ORM models backing the guild log persistence layer.

``hunter_profiles`` holds one row per account key; ``quests`` is partitioned by
``account_key`` the same way a document store nests a collection under the
account record.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

ACCOUNT_KEY_LENGTH = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HunterProfileModel(Base):
    __tablename__ = "hunter_profiles"

    account_key: Mapped[str] = mapped_column(String(ACCOUNT_KEY_LENGTH), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    avatar_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class QuestModel(Base):
    __tablename__ = "quests"
    __table_args__ = (Index("ix_quests_account_created", "account_key", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_key: Mapped[str] = mapped_column(String(ACCOUNT_KEY_LENGTH), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    icon_id: Mapped[str] = mapped_column(String(255), nullable=False)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class AccountRevisionModel(Base):
    """Per-account change counters; every committed write bumps the touched kind."""

    __tablename__ = "account_revisions"

    account_key: Mapped[str] = mapped_column(String(ACCOUNT_KEY_LENGTH), primary_key=True)
    profile_revision: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quests_revision: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


__all__ = ["ACCOUNT_KEY_LENGTH", "AccountRevisionModel", "HunterProfileModel", "QuestModel"]
