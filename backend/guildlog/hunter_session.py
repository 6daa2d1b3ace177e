"""Glue between the session store, the realtime feed and the lifecycle managers.

``HunterSession`` plays the part of the quest board view: it restores the
active hunter at startup, keeps the profile, quest list and progress snapshot
current from the realtime feed, and tears the feed down whenever the active
hunter changes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, List, Optional

from .accounts import AccountLifecycleManager
from .connectivity import Connectivity
from .context import GuildContext
from .changes import PROFILE, QUESTS
from .identity import AccountResolver, ResolveResult
from .models import HunterProfile, Quest
from .progress import ProgressSnapshot, compute_progress
from .quest_filters import QuestTab, filter_quests
from .quests import QuestLifecycleManager
from .realtime import AccountFeed, RealtimeChannel
from .session_store import SessionStore

logger = logging.getLogger(__name__)

GUILD_MOTTO = "Quien caza pasito a pasito, caza lo que no está escrito"

SessionListener = Callable[[str, "HunterSession"], None]

_SETTLE_ROUNDS = 100


class HunterSession:
    def __init__(
        self,
        context: GuildContext,
        session_store: SessionStore,
        *,
        on_change: Optional[SessionListener] = None,
    ) -> None:
        self.context = context
        self.session_store = session_store
        self.resolver = AccountResolver(context, session_store)
        self.channel = RealtimeChannel(context)
        self.account_key: Optional[str] = None
        self.profile: Optional[HunterProfile] = None
        self.quests: List[Quest] = []
        self.progress: ProgressSnapshot = compute_progress([])
        self.loading = False
        self._on_change = on_change
        self._feed: Optional[AccountFeed] = None
        self._pump: Optional[asyncio.Task[None]] = None

    @property
    def connectivity(self) -> Connectivity:
        return self.context.monitor.state

    @property
    def active(self) -> bool:
        return self.account_key is not None

    @property
    def quest_manager(self) -> QuestLifecycleManager:
        return QuestLifecycleManager(self.context, self.account_key)

    @property
    def account_manager(self) -> AccountLifecycleManager:
        return AccountLifecycleManager(self.context, self.account_key, self.session_store)

    def visible_quests(self, search: str = "", tab: str = QuestTab.ALL) -> List[Quest]:
        return filter_quests(self.quests, search=search, tab=tab)

    async def start(self) -> Optional[str]:
        """Establish the technical session and resume the stored hunter, if any."""
        await self.context.ready()
        account_key = self.session_store.load()
        if account_key:
            logger.info("Resuming stored hunter %s", account_key)
            await self._activate(account_key)
        return account_key

    async def login(self, raw_name: str, avatar_id: Optional[str] = None) -> ResolveResult:
        result = await self.resolver.resolve(raw_name, avatar_id)
        await self._activate(result.account_key)
        return result

    async def logout(self) -> None:
        self.account_manager.logout()
        await self._deactivate()

    async def reset_progress(self) -> int:
        return await self.account_manager.reset_progress()

    async def delete_account(self) -> int:
        removed = await self.account_manager.delete_account()
        await self._deactivate()
        return removed

    async def update_avatar(self, avatar_id: str) -> HunterProfile:
        return await self.account_manager.update_avatar(avatar_id)

    async def settle(self) -> None:
        """Wait for in-flight feed reads, then yield until their snapshots have been applied."""
        if self._feed is not None:
            await self._feed.settle()
        for _ in range(_SETTLE_ROUNDS):
            await asyncio.sleep(0)

    async def close(self) -> None:
        await self._deactivate()

    async def _activate(self, account_key: str) -> None:
        await self._deactivate()
        self.account_key = account_key
        self.loading = True
        self._feed = await self.channel.subscribe(account_key)
        self._pump = asyncio.get_running_loop().create_task(self._consume(self._feed))

    async def _deactivate(self) -> None:
        feed, pump = self._feed, self._pump
        self._feed = None
        self._pump = None
        if feed is not None:
            feed.cancel()
        if pump is not None:
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        self.account_key = None
        self.profile = None
        self.quests = []
        self.progress = compute_progress([])
        self.loading = False

    async def _consume(self, feed: AccountFeed) -> None:
        async for kind, snapshot in feed.events():
            if feed is not self._feed:
                break
            if kind == PROFILE:
                self.profile = snapshot  # type: ignore[assignment]
            elif kind == QUESTS:
                self.quests = list(snapshot)  # type: ignore[arg-type]
                self.progress = compute_progress(self.quests)
                self.loading = False
            if self._on_change is not None:
                try:
                    self._on_change(kind, self)
                except Exception:  # noqa: BLE001
                    logger.exception("Hunter session listener failed")


__all__ = ["GUILD_MOTTO", "HunterSession", "SessionListener"]
