"""Create, edit, complete and abandon quests for the active hunter."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from .context import GuildContext
from .errors import NotFoundError, ValidationError
from .models import MIN_DIFFICULTY, Quest, QuestChanges, QuestDraft
from .telemetry import emit_event

logger = logging.getLogger(__name__)


def _validation_error(exc: PydanticValidationError) -> ValidationError:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return ValidationError(first.get("msg", str(exc)), field=location or None)


class QuestLifecycleManager:
    """Quest operations scoped to a single account key.

    Writes return once the store has committed them; listeners on the realtime
    channel see the result as an ordinary change notification.
    """

    def __init__(self, context: GuildContext, account_key: Optional[str]) -> None:
        self._context = context
        self._account_key = account_key

    @property
    def account_key(self) -> Optional[str]:
        return self._account_key

    async def create(
        self,
        name: str,
        *,
        details: Optional[str] = None,
        difficulty: int = MIN_DIFFICULTY,
        icon_id: Optional[str] = None,
        due_at: Optional[datetime] = None,
    ) -> Quest:
        account_key = self._require_account()
        try:
            draft = QuestDraft(name=name, details=details, difficulty=difficulty, icon_id=icon_id, due_at=due_at)
        except PydanticValidationError as exc:
            raise _validation_error(exc) from exc

        await self._context.ready()
        quest = await asyncio.to_thread(
            self._context.store.add_quest,
            account_key,
            draft,
            default_icon=self._context.settings.default_quest_icon,
        )
        logger.info("Quest %s created for %s", quest.id, account_key)
        emit_event("quest_created", account_key=account_key, quest_id=quest.id, difficulty=quest.difficulty)
        return quest

    async def update(self, quest_id: str, **changes: Any) -> Quest:
        account_key = self._require_account()
        if not changes:
            raise ValidationError("No quest fields to update.")
        try:
            update = QuestChanges(**changes).as_update()
        except PydanticValidationError as exc:
            raise _validation_error(exc) from exc

        await self._context.ready()
        quest = await asyncio.to_thread(self._context.store.update_quest, account_key, quest_id, update)
        if quest is None:
            raise NotFoundError(f"Quest '{quest_id}' does not exist.", quest_id=quest_id)
        emit_event("quest_updated", account_key=account_key, quest_id=quest_id, fields=sorted(update))
        return quest

    async def toggle_completion(self, quest_id: str) -> Quest:
        account_key = self._require_account()
        await self._context.ready()
        quest = await asyncio.to_thread(self._context.store.toggle_quest, account_key, quest_id)
        if quest is None:
            raise NotFoundError(f"Quest '{quest_id}' does not exist.", quest_id=quest_id)
        emit_event(
            "quest_completed" if quest.completed else "quest_reopened",
            account_key=account_key,
            quest_id=quest_id,
            difficulty=quest.difficulty,
        )
        return quest

    async def delete(self, quest_id: str) -> bool:
        """Abandon a quest; the caller is expected to have confirmed with the hunter."""
        account_key = self._require_account()
        await self._context.ready()
        deleted = await asyncio.to_thread(self._context.store.delete_quest, account_key, quest_id)
        if deleted:
            emit_event("quest_deleted", account_key=account_key, quest_id=quest_id)
        else:
            logger.info("Quest %s already absent for %s; nothing to delete", quest_id, account_key)
        return deleted

    def _require_account(self) -> str:
        if not self._account_key:
            raise ValidationError("No active hunter; log in before managing quests.")
        return self._account_key


__all__ = ["QuestLifecycleManager"]
