"""Explicitly constructed runtime context shared by the resolver, channel and managers."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .changes import ChangeHub
from .config import Settings, get_settings
from .connectivity import ConnectivityMonitor
from .db.monitoring import instrument_engine
from .db.session import Database
from .errors import ConnectivityError
from .icons import IconCatalog
from .store import GuildStore

logger = logging.getLogger(__name__)


class TechnicalSession:
    """Opaque bootstrap credential that must exist before any store access."""

    def __init__(self, database: Database, monitor: ConnectivityMonitor, *, create_schema: bool) -> None:
        self._database = database
        self._monitor = monitor
        self._create_schema = create_schema
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._token is not None

    @property
    def token(self) -> Optional[str]:
        return self._token

    def ensure(self) -> str:
        """Blocking bootstrap: ping the store and create the schema once."""
        with self._lock:
            if self._token is not None:
                return self._token
            try:
                self._database.ping()
                if self._create_schema:
                    self._database.create_schema()
            except SQLAlchemyError as exc:
                self._monitor.mark_degraded(f"technical session: {exc.__class__.__name__}")
                raise ConnectivityError("Unable to establish a session with the guild store.") from exc
            self._token = uuid.uuid4().hex
        self._monitor.mark_online()
        logger.info("Technical session established")
        return self._token

    async def establish(self) -> str:
        if self._token is not None:
            return self._token
        return await asyncio.to_thread(self.ensure)


class GuildContext:
    """Owns the database, store, change hub and connectivity signal for one process."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        *,
        icons: Optional[IconCatalog] = None,
    ) -> None:
        self.settings = settings
        self.database = database
        self.monitor = ConnectivityMonitor()
        self.hub = ChangeHub()
        self.store = GuildStore(database, self.monitor, self.hub)
        self.technical_session = TechnicalSession(
            database,
            self.monitor,
            create_schema=settings.auto_create_schema,
        )
        self.icons = icons or IconCatalog(settings)
        instrument_engine(database.engine, self.monitor)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GuildContext":
        settings = settings or get_settings()
        return cls(settings, Database.from_settings(settings))

    def ensure_ready(self) -> "GuildContext":
        self.technical_session.ensure()
        return self

    async def ready(self) -> "GuildContext":
        await self.technical_session.establish()
        return self

    def close(self) -> None:
        self.database.dispose()


__all__ = ["GuildContext", "TechnicalSession"]
