from __future__ import annotations

from pathlib import Path
from typing import Iterator, List

import httpx
import pytest

from guildlog.config import Settings
from guildlog.context import GuildContext
from guildlog.db.session import Database
from guildlog.icons import IconCatalog
from guildlog.session_store import SessionStore
from guildlog.telemetry import TelemetryEvent, register_listener


def _offline(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"message": "offline"})


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        GUILDLOG_HOME=tmp_path / "home",
        GUILDLOG_DATABASE_URL=f"sqlite:///{tmp_path / 'guild.db'}",
        GUILDLOG_LOOKUP_DEBOUNCE_MS=10,
        GUILDLOG_SYNC_POLL_INTERVAL_MS=20,
        GUILDLOG_SYNC_MAX_BACKOFF_MS=200,
        GUILDLOG_ICON_CATALOG_URL="https://icons.test/listing",
        GUILDLOG_ICON_ASSETS_URL="https://assets.test/icons",
    )


@pytest.fixture
def context(settings: Settings) -> Iterator[GuildContext]:
    icons = IconCatalog(settings, client=httpx.Client(transport=httpx.MockTransport(_offline)))
    ctx = GuildContext(settings, Database.from_settings(settings), icons=icons)
    yield ctx
    ctx.close()


@pytest.fixture
def session_store(settings: Settings) -> SessionStore:
    return SessionStore(settings.resolved_session_path)


@pytest.fixture
def telemetry_events() -> Iterator[List[TelemetryEvent]]:
    events: List[TelemetryEvent] = []
    remove = register_listener(events.append)
    yield events
    remove()
