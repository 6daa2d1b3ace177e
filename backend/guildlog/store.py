"""Backing document store for hunter profiles and quests.

Every public method runs in its own transaction. Writes bump the account
revision watermark inside that transaction, so followers in other processes
notice them, and publish an in-process change event only after commit, so
subscribers never observe a rolled-back state. Quest writes lock the profile
row first and refuse accounts that do not exist. Connection-level failures are
turned into ``ConnectivityError`` and flip the connectivity monitor; any other
exception propagates unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from .changes import PROFILE, QUESTS, ChangeHub, ChangeListener
from .connectivity import ConnectivityMonitor
from .db.session import Database
from .errors import ConnectivityError, NotFoundError
from .models import HunterProfile, Quest, QuestDraft
from .repositories.profiles import hunter_profiles
from .repositories.quests import quest_log
from .repositories.revisions import AccountRevision, account_revisions

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_connectivity_failure(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def _require_profile(session: Session, account_key: str) -> None:
    if not hunter_profiles.lock(session, account_key):
        raise NotFoundError(f"Hunter '{account_key}' does not exist.", account_key=account_key)


class GuildStore:
    def __init__(self, database: Database, monitor: ConnectivityMonitor, hub: Optional[ChangeHub] = None) -> None:
        self.database = database
        self.monitor = monitor
        self.hub = hub or ChangeHub()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_profile(self, account_key: str) -> Optional[HunterProfile]:
        return self._run("get_profile", lambda session: hunter_profiles.get(session, account_key), commit=False)

    def list_quests(self, account_key: str) -> List[Quest]:
        return self._run("list_quests", lambda session: quest_log.list_for_account(session, account_key), commit=False)

    def get_quest(self, account_key: str, quest_id: str) -> Optional[Quest]:
        return self._run("get_quest", lambda session: quest_log.get(session, account_key, quest_id), commit=False)

    def get_revision(self, account_key: str) -> AccountRevision:
        return self._run("get_revision", lambda session: account_revisions.get(session, account_key), commit=False)

    # ------------------------------------------------------------------
    # Point writes
    # ------------------------------------------------------------------

    def create_profile_if_absent(
        self,
        account_key: str,
        display_name: str,
        avatar_id: str,
    ) -> Tuple[HunterProfile, bool]:
        def _create(session: Session) -> Tuple[HunterProfile, bool]:
            profile, created = hunter_profiles.create_if_absent(session, account_key, display_name, avatar_id)
            if created:
                account_revisions.bump(session, account_key, PROFILE)
            return profile, created

        try:
            profile, created = self._run("create_profile_if_absent", _create)
        except IntegrityError:
            logger.info("Concurrent registration won the race for account_key=%s", account_key)
            existing = self.get_profile(account_key)
            if existing is None:
                raise
            return existing, False
        if created:
            self.hub.publish(account_key, PROFILE)
        return profile, created

    def update_avatar(self, account_key: str, avatar_id: str) -> Optional[HunterProfile]:
        def _update(session: Session) -> Optional[HunterProfile]:
            profile = hunter_profiles.update_avatar(session, account_key, avatar_id)
            if profile is not None:
                account_revisions.bump(session, account_key, PROFILE)
            return profile

        profile = self._run("update_avatar", _update)
        if profile is not None:
            self.hub.publish(account_key, PROFILE)
        return profile

    def add_quest(self, account_key: str, draft: QuestDraft, *, default_icon: str) -> Quest:
        def _add(session: Session) -> Quest:
            _require_profile(session, account_key)
            quest = quest_log.add(session, account_key, draft, icon_id=default_icon)
            account_revisions.bump(session, account_key, QUESTS)
            return quest

        quest = self._run("add_quest", _add)
        self.hub.publish(account_key, QUESTS)
        return quest

    def update_quest(self, account_key: str, quest_id: str, changes: Dict[str, Any]) -> Optional[Quest]:
        def _update(session: Session) -> Optional[Quest]:
            _require_profile(session, account_key)
            quest = quest_log.update(session, account_key, quest_id, changes)
            if quest is not None:
                account_revisions.bump(session, account_key, QUESTS)
            return quest

        quest = self._run("update_quest", _update)
        if quest is not None:
            self.hub.publish(account_key, QUESTS)
        return quest

    def toggle_quest(self, account_key: str, quest_id: str, *, now: Optional[datetime] = None) -> Optional[Quest]:
        def _toggle(session: Session) -> Optional[Quest]:
            _require_profile(session, account_key)
            quest = quest_log.toggle(session, account_key, quest_id, now=now)
            if quest is not None:
                account_revisions.bump(session, account_key, QUESTS)
            return quest

        quest = self._run("toggle_quest", _toggle)
        if quest is not None:
            self.hub.publish(account_key, QUESTS)
        return quest

    def delete_quest(self, account_key: str, quest_id: str) -> bool:
        def _delete(session: Session) -> bool:
            deleted = quest_log.delete(session, account_key, quest_id)
            if deleted:
                account_revisions.bump(session, account_key, QUESTS)
            return deleted

        deleted = self._run("delete_quest", _delete)
        if deleted:
            self.hub.publish(account_key, QUESTS)
        return deleted

    # ------------------------------------------------------------------
    # Bulk atomic writes
    # ------------------------------------------------------------------

    def delete_all_quests(self, account_key: str) -> int:
        """Remove the whole quest collection in one transaction."""

        def _delete(session: Session) -> int:
            removed = quest_log.delete_all(session, account_key)
            account_revisions.bump(session, account_key, QUESTS)
            return removed

        removed = self._run("delete_all_quests", _delete)
        self.hub.publish(account_key, QUESTS)
        return removed

    def delete_account(self, account_key: str) -> int:
        """Remove every quest and the profile in one transaction; return the quest count removed."""

        def _delete(session: Session) -> int:
            hunter_profiles.lock(session, account_key)
            removed = quest_log.delete_all(session, account_key)
            hunter_profiles.delete(session, account_key)
            account_revisions.bump(session, account_key, PROFILE, QUESTS)
            return removed

        removed = self._run("delete_account", _delete)
        self.hub.publish(account_key, PROFILE, QUESTS)
        return removed

    # ------------------------------------------------------------------
    # Change subscription
    # ------------------------------------------------------------------

    def watch(self, account_key: str, listener: ChangeListener) -> Callable[[], None]:
        return self.hub.watch(account_key, listener)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run(self, operation: str, work: Callable[[Session], T], *, commit: bool = True) -> T:
        try:
            with self.database.session_scope(commit=commit) as session:
                result = work(session)
        except Exception as exc:  # noqa: BLE001
            if _is_connectivity_failure(exc):
                self.monitor.mark_degraded(f"{operation}: {exc.__class__.__name__}")
                raise ConnectivityError(
                    f"Guild store unreachable during {operation}.",
                    operation=operation,
                ) from exc
            raise
        self.monitor.mark_online()
        return result


__all__ = ["GuildStore"]
