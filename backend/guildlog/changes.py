"""In-process change notifications for committed store writes."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from threading import RLock
from typing import Callable, DefaultDict, FrozenSet, List

logger = logging.getLogger(__name__)

PROFILE = "profile"
QUESTS = "quests"


@dataclass(frozen=True)
class ChangeEvent:
    account_key: str
    kinds: FrozenSet[str]

    def touches(self, kind: str) -> bool:
        return kind in self.kinds


ChangeListener = Callable[[ChangeEvent], None]


class ChangeHub:
    """Fans committed changes out to the listeners watching one account key."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[ChangeListener]] = defaultdict(list)
        self._lock = RLock()

    def watch(self, account_key: str, listener: ChangeListener) -> Callable[[], None]:
        with self._lock:
            self._listeners[account_key].append(listener)

        def _unwatch() -> None:
            with self._lock:
                listeners = self._listeners.get(account_key)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(account_key, None)

        return _unwatch

    def watcher_count(self, account_key: str) -> int:
        with self._lock:
            return len(self._listeners.get(account_key, ()))

    def publish(self, account_key: str, *kinds: str) -> None:
        event = ChangeEvent(account_key=account_key, kinds=frozenset(kinds))
        with self._lock:
            listeners = list(self._listeners.get(account_key, ()))

        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.exception("Change listener failed for account_key=%s", account_key)


__all__ = ["ChangeEvent", "ChangeHub", "ChangeListener", "PROFILE", "QUESTS"]
