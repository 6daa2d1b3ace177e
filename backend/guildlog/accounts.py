"""Logout, progress reset, account deletion and avatar changes."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .context import GuildContext
from .errors import NotFoundError, ValidationError
from .models import HunterProfile
from .session_store import SessionStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class AccountLifecycleManager:
    def __init__(
        self,
        context: GuildContext,
        account_key: Optional[str],
        session_store: Optional[SessionStore] = None,
    ) -> None:
        self._context = context
        self._account_key = account_key
        self._session_store = session_store

    @property
    def account_key(self) -> Optional[str]:
        return self._account_key

    def logout(self) -> None:
        """Forget the active hunter locally; guild store data is untouched."""
        if self._session_store is not None:
            self._session_store.clear()
        logger.info("Hunter %s logged out", self._account_key)

    async def reset_progress(self) -> int:
        """Delete every quest in one transaction; the profile stays as it is."""
        account_key = self._require_account()
        await self._context.ready()
        removed = await asyncio.to_thread(self._context.store.delete_all_quests, account_key)
        logger.info("Reset progress for %s (%d quests removed)", account_key, removed)
        emit_event("progress_reset", account_key=account_key, removed=removed)
        return removed

    async def delete_account(self) -> int:
        """Delete all quests and the profile atomically, then log out."""
        account_key = self._require_account()
        await self._context.ready()
        removed = await asyncio.to_thread(self._context.store.delete_account, account_key)
        emit_event("hunter_deleted", account_key=account_key, removed=removed)
        self.logout()
        return removed

    async def update_avatar(self, avatar_id: str) -> HunterProfile:
        account_key = self._require_account()
        if not avatar_id or not avatar_id.strip():
            raise ValidationError("Avatar cannot be empty.", field="avatar_id")
        await self._context.ready()
        profile = await asyncio.to_thread(self._context.store.update_avatar, account_key, avatar_id.strip())
        if profile is None:
            raise NotFoundError(f"Hunter '{account_key}' does not exist.", account_key=account_key)
        emit_event("hunter_avatar_updated", account_key=account_key, avatar_id=profile.avatar_id)
        return profile

    def _require_account(self) -> str:
        if not self._account_key:
            raise ValidationError("No active hunter; log in first.")
        return self._account_key


__all__ = ["AccountLifecycleManager"]
