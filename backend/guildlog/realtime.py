"""Cancellable realtime subscriptions over one account's profile and quest collection.

Each subscription is an async iterator of full replacement snapshots. The
first snapshot is read when the subscription opens. Afterwards two sources
trigger a fresh read on the subscriber's event loop: in-process change events
from the store, and a poll of the account's revision watermark, which picks up
writes made by other processes. Reads run in a worker thread, requests that
arrive while a read is in flight coalesce into one, and only the newest
undelivered snapshot is kept. Nothing is delivered once ``cancel()`` returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import (
    AsyncIterator,
    Callable,
    Coroutine,
    Dict,
    Generic,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from .changes import PROFILE, QUESTS, ChangeEvent
from .connectivity import Connectivity
from .context import GuildContext
from .errors import ConnectivityError
from .models import HunterProfile, Quest
from .repositories.revisions import AccountRevision

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    def __init__(
        self,
        kind: str,
        account_key: str,
        loader: Callable[[], T],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.kind = kind
        self.account_key = account_key
        self._loader = loader
        self._loop = loop or asyncio.get_running_loop()
        self._queue: "asyncio.Queue[object]" = asyncio.Queue(maxsize=1)
        self._cancelled = False
        self._latest: Optional[T] = None
        self._has_snapshot = False
        self._unwatch: Optional[Callable[[], None]] = None
        self._dirty = False
        self._force = False
        self._last_delivered = False
        self._worker: Optional["asyncio.Task[None]"] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def latest(self) -> Optional[T]:
        """Last delivered snapshot; kept in place while the store is unreachable."""
        return self._latest

    @property
    def has_snapshot(self) -> bool:
        return self._has_snapshot

    def attach(self, unwatch: Callable[[], None]) -> None:
        self._unwatch = unwatch

    def on_change(self, event: ChangeEvent) -> None:
        if event.touches(self.kind):
            self.schedule_refresh()

    def schedule_refresh(self, *, force: bool = False) -> None:
        """Thread-safe variant of ``request_refresh``."""
        if self._cancelled or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.request_refresh, force)

    def request_refresh(self, force: bool = False) -> None:
        """Queue a read on the loop; ``force`` delivers even an unchanged snapshot."""
        if self._cancelled:
            return
        self._dirty = True
        self._force = self._force or force
        if self._worker is None or self._worker.done():
            self._worker = self._loop.create_task(self._drain())

    async def refresh(self, *, force: bool = True) -> bool:
        """Read a fresh snapshot now; return ``False`` when nothing was delivered."""
        if self._cancelled:
            return False
        self.request_refresh(force)
        if self._worker is not None:
            await self._worker
        return self._last_delivered

    async def settle(self) -> None:
        """Wait until no read is pending or in flight."""
        while self._worker is not None and not self._worker.done():
            await asyncio.wait({self._worker})

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        logger.debug("Cancelled %s subscription for %s", self.kind, self.account_key)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._cancelled:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    async def _drain(self) -> None:
        while self._dirty and not self._cancelled:
            self._dirty = False
            force, self._force = self._force, False
            self._last_delivered = await self._load(force)

    async def _load(self, force: bool) -> bool:
        try:
            snapshot = await asyncio.to_thread(self._loader)
        except ConnectivityError as exc:
            logger.warning("Pausing %s delivery for %s: %s", self.kind, self.account_key, exc)
            return False
        if self._cancelled:
            return False
        if not force and self._has_snapshot and snapshot == self._latest:
            return False
        self._latest = snapshot
        self._has_snapshot = True
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)
        return True


FeedEvent = Tuple[str, Union[Optional[HunterProfile], List[Quest]]]


class AccountFeed:
    """The pair of independent subscriptions opened for one account key."""

    def __init__(
        self,
        account_key: str,
        profile: Subscription[Optional[HunterProfile]],
        quests: Subscription[List[Quest]],
    ) -> None:
        self.account_key = account_key
        self.profile = profile
        self.quests = quests
        self._cleanup: List[Callable[[], None]] = []
        self._tasks: List["asyncio.Task[None]"] = []

    @property
    def subscriptions(self) -> Tuple[Subscription, Subscription]:
        return (self.profile, self.quests)

    @property
    def cancelled(self) -> bool:
        return self.profile.cancelled and self.quests.cancelled

    def subscription(self, kind: str) -> Subscription:
        by_kind: Dict[str, Subscription] = {PROFILE: self.profile, QUESTS: self.quests}
        return by_kind[kind]

    def add_cleanup(self, callback: Callable[[], None]) -> None:
        self._cleanup.append(callback)

    def follow(self, coroutine: Coroutine[object, object, None]) -> None:
        """Run a background task for as long as the feed is open."""
        self._tasks.append(asyncio.get_running_loop().create_task(coroutine))

    def refresh(self) -> None:
        """Re-deliver both snapshots; safe to call from any thread."""
        for subscription in self.subscriptions:
            subscription.schedule_refresh(force=True)

    async def settle(self) -> None:
        await asyncio.gather(*(subscription.settle() for subscription in self.subscriptions))

    def cancel(self) -> None:
        for subscription in self.subscriptions:
            subscription.cancel()
        while self._tasks:
            self._tasks.pop().cancel()
        while self._cleanup:
            self._cleanup.pop()()

    async def events(self) -> AsyncIterator[FeedEvent]:
        """Merge both subscriptions into ``(kind, snapshot)`` pairs in arrival order."""
        pending = {
            asyncio.ensure_future(subscription.__anext__()): subscription for subscription in self.subscriptions
        }
        try:
            while pending:
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    subscription = pending.pop(task)
                    try:
                        snapshot = task.result()
                    except StopAsyncIteration:
                        continue
                    yield subscription.kind, snapshot
                    if not subscription.cancelled:
                        pending[asyncio.ensure_future(subscription.__anext__())] = subscription
        finally:
            for task in pending:
                task.cancel()


class RealtimeChannel:
    def __init__(self, context: GuildContext) -> None:
        self._context = context

    async def subscribe(self, account_key: str) -> AccountFeed:
        """Open the profile and quest subscriptions and wait for their first reads."""
        if not self._context.technical_session.ready:
            raise ConnectivityError("Technical session is not established; cannot subscribe.")

        store = self._context.store
        loop = asyncio.get_running_loop()
        profile: Subscription[Optional[HunterProfile]] = Subscription(
            PROFILE, account_key, lambda: store.get_profile(account_key), loop=loop
        )
        quests: Subscription[List[Quest]] = Subscription(
            QUESTS, account_key, lambda: store.list_quests(account_key), loop=loop
        )
        feed = AccountFeed(account_key, profile, quests)

        for subscription in feed.subscriptions:
            subscription.attach(store.watch(account_key, subscription.on_change))

        def _on_connectivity(state: Connectivity) -> None:
            if state is Connectivity.ONLINE:
                feed.refresh()

        feed.add_cleanup(self._context.monitor.listen(_on_connectivity))

        try:
            seen: Optional[AccountRevision] = await asyncio.to_thread(store.get_revision, account_key)
        except ConnectivityError:
            seen = None
        try:
            await asyncio.gather(*(subscription.refresh() for subscription in feed.subscriptions))
        except BaseException:
            feed.cancel()
            raise
        feed.follow(self._follow_revisions(feed, seen))
        logger.debug("Opened realtime feed for %s", account_key)
        return feed

    async def _follow_revisions(self, feed: AccountFeed, seen: Optional[AccountRevision]) -> None:
        """Poll the revision watermark; a successful poll after an outage brings the monitor back online."""
        settings = self._context.settings
        interval = max(settings.sync_poll_interval_ms, 1) / 1000
        ceiling = max(settings.sync_max_backoff_ms / 1000, interval)
        delay = interval
        store = self._context.store

        while not feed.cancelled:
            await asyncio.sleep(delay)
            try:
                current = await asyncio.to_thread(store.get_revision, feed.account_key)
            except ConnectivityError:
                delay = min(delay * 2, ceiling)
                logger.debug("Revision poll for %s failed; next attempt in %.2fs", feed.account_key, delay)
                continue
            delay = interval
            for kind in current.changed_kinds(seen):
                feed.subscription(kind).request_refresh()
            seen = current


__all__ = ["AccountFeed", "FeedEvent", "RealtimeChannel", "Subscription"]
