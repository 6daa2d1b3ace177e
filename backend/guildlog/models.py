"""Hunter profile and quest records exchanged between the store and its consumers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 9


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class HunterProfile(BaseModel):
    account_key: str
    display_name: str
    avatar_id: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _utc_created(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]


class Quest(BaseModel):
    id: str
    name: str
    details: Optional[str] = None
    difficulty: int = Field(default=MIN_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    icon_id: str
    due_at: Optional[datetime] = None
    completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("due_at", "created_at", "completed_at", "updated_at")
    @classmethod
    def _utc_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _completion_timestamp_matches_flag(self) -> "Quest":
        if self.completed != (self.completed_at is not None):
            raise ValueError("completed_at must be set exactly when the quest is completed")
        return self


class QuestDraft(BaseModel):
    """Fields accepted when a quest is created."""

    model_config = ConfigDict(extra="forbid")

    name: str
    details: Optional[str] = None
    difficulty: int = Field(default=MIN_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    icon_id: Optional[str] = None
    due_at: Optional[datetime] = None

    @field_validator("due_at")
    @classmethod
    def _utc_due(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Quest name cannot be empty.")
        return trimmed


class QuestChanges(BaseModel):
    """Partial edit of a quest's content fields; completion is never edited here."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    details: Optional[str] = None
    difficulty: Optional[int] = Field(default=None, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    icon_id: Optional[str] = None
    due_at: Optional[datetime] = None

    @field_validator("due_at")
    @classmethod
    def _utc_due(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("Quest name cannot be cleared.")
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Quest name cannot be empty.")
        return trimmed

    @field_validator("difficulty", "icon_id")
    @classmethod
    def _not_cleared(cls, value):  # type: ignore[no-untyped-def]
        if value is None:
            raise ValueError("Field cannot be cleared.")
        return value

    def as_update(self) -> dict:
        return {field: getattr(self, field) for field in self.model_fields_set}


__all__ = [
    "HunterProfile",
    "MAX_DIFFICULTY",
    "MIN_DIFFICULTY",
    "Quest",
    "QuestChanges",
    "QuestDraft",
    "ensure_utc",
    "utcnow",
]
