"""Pool telemetry and disconnect detection for the guild store engine."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..connectivity import ConnectivityMonitor
from ..telemetry import emit_event


@dataclass
class PoolTelemetryState:
    connects: int = 0
    checkouts: int = 0
    disconnects: int = 0
    last_emit: float = 0.0
    engine: Optional[Engine] = None


_STATE_BY_ENGINE: Dict[int, PoolTelemetryState] = {}
_TELEMETRY_INTERVAL = float(os.getenv("GUILDLOG_DB_TELEMETRY_INTERVAL", "60"))


def instrument_engine(engine: Engine, monitor: Optional[ConnectivityMonitor] = None) -> None:
    """Attach pool listeners; disconnect errors flip the monitor to degraded."""
    key = id(engine)
    existing = _STATE_BY_ENGINE.get(key)
    if existing is not None and existing.engine is engine:
        return

    state = PoolTelemetryState(engine=engine)
    _STATE_BY_ENGINE[key] = state

    def snapshot(event_name: str) -> None:
        now = time.time()
        should_emit = _TELEMETRY_INTERVAL <= 0 or (now - state.last_emit) >= _TELEMETRY_INTERVAL
        if not should_emit:
            return
        state.last_emit = now
        emit_event(
            "db_pool_status",
            status=_safe_pool_status(engine),
            event=event_name,
            connects=state.connects,
            checkouts=state.checkouts,
            disconnects=state.disconnects,
        )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        state.connects += 1
        snapshot("db_pool_connect")

    @event.listens_for(engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:  # type: ignore[no-untyped-def]
        state.checkouts += 1
        snapshot("db_pool_checkout")

    @event.listens_for(engine, "handle_error")
    def _on_error(context) -> None:  # type: ignore[no-untyped-def]
        if not context.is_disconnect:
            return
        state.disconnects += 1
        if monitor is not None:
            monitor.mark_degraded(f"disconnect: {context.original_exception}")
        snapshot("db_pool_disconnect")


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    """Return the latest counters and pool status for the provided engine."""
    state = _STATE_BY_ENGINE.get(id(engine))
    return {
        "status": _safe_pool_status(engine),
        "connects": state.connects if state else 0,
        "checkouts": state.checkouts if state else 0,
        "disconnects": state.disconnects if state else 0,
    }


def _safe_pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # pragma: no cover
        return f"unavailable: {exc}"


__all__ = [
    "get_pool_snapshot",
    "instrument_engine",
]
