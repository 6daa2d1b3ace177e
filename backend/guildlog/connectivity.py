"""Connectivity state of the backing store, exposed as an observable signal."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Callable, List, Optional

from .telemetry import emit_event

logger = logging.getLogger(__name__)


class Connectivity(str, Enum):
    ONLINE = "online"
    DEGRADED = "degraded"


ConnectivityListener = Callable[[Connectivity], None]


class ConnectivityMonitor:
    """Tracks whether the last store round-trip succeeded.

    Listeners fire only on transitions, never on repeated reports of the same
    state.
    """

    def __init__(self) -> None:
        self._state = Connectivity.ONLINE
        self._reason: Optional[str] = None
        self._changed_at = datetime.now(timezone.utc)
        self._listeners: List[ConnectivityListener] = []
        self._lock = RLock()

    @property
    def state(self) -> Connectivity:
        return self._state

    @property
    def degraded(self) -> bool:
        return self._state is Connectivity.DEGRADED

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def snapshot(self) -> dict[str, Optional[str]]:
        return {
            "state": self._state.value,
            "reason": self._reason,
            "changed_at": self._changed_at.isoformat(),
        }

    def listen(self, listener: ConnectivityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def mark_degraded(self, reason: str) -> None:
        self._transition(Connectivity.DEGRADED, reason)

    def mark_online(self) -> None:
        self._transition(Connectivity.ONLINE, None)

    def _transition(self, state: Connectivity, reason: Optional[str]) -> None:
        with self._lock:
            if state is self._state:
                return
            self._state = state
            self._reason = reason
            self._changed_at = datetime.now(timezone.utc)
            listeners = list(self._listeners)

        if state is Connectivity.DEGRADED:
            logger.warning("Backing store connectivity degraded: %s", reason)
        else:
            logger.info("Backing store connectivity restored")
        emit_event("connectivity_changed", state=state, reason=reason)

        for listener in listeners:
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                logger.exception("Connectivity listener failed")


__all__ = ["Connectivity", "ConnectivityListener", "ConnectivityMonitor"]
