"""Hunter name normalization and account resolution (login or register)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from .config import Settings
from .context import GuildContext
from .errors import ValidationError
from .models import HunterProfile
from .session_store import SessionStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 20


def normalize_account_key(raw_name: str) -> str:
    """Map a display name to its account key: ``"  Super Hunter "`` -> ``"super-hunter"``.

    Distinct names that collapse to the same key are the same account; that is
    how a returning hunter logs in.
    """
    return "-".join(raw_name.strip().lower().split())


def validate_hunter_name(raw_name: str) -> str:
    """Return the trimmed display name or raise ``ValidationError``."""
    trimmed = raw_name.strip()
    if not trimmed:
        raise ValidationError("Hunter name cannot be empty.", field="name")
    if not MIN_NAME_LENGTH <= len(trimmed) <= MAX_NAME_LENGTH:
        raise ValidationError(
            f"Hunter name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters.",
            field="name",
        )
    return trimmed


class ResolveMode(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


@dataclass(frozen=True)
class ResolveResult:
    mode: ResolveMode
    account_key: str
    profile: HunterProfile


class AccountResolver:
    def __init__(self, context: GuildContext, session_store: Optional[SessionStore] = None) -> None:
        self._context = context
        self._session_store = session_store

    @property
    def settings(self) -> Settings:
        return self._context.settings

    async def lookup(self, raw_name: str) -> Optional[HunterProfile]:
        """Read-only existence check used for the login preview."""
        if len(raw_name.strip()) < MIN_NAME_LENGTH:
            return None
        await self._context.ready()
        return await asyncio.to_thread(self.find, raw_name)

    def find(self, raw_name: str) -> Optional[HunterProfile]:
        """Blocking lookup for callers already running in a worker thread."""
        if len(raw_name.strip()) < MIN_NAME_LENGTH:
            return None
        return self._context.store.get_profile(normalize_account_key(raw_name))

    async def resolve(self, raw_name: str, avatar_id: Optional[str] = None) -> ResolveResult:
        display_name = validate_hunter_name(raw_name)
        account_key = normalize_account_key(display_name)
        await self._context.ready()

        profile, created = await asyncio.to_thread(
            self._context.store.create_profile_if_absent,
            account_key,
            display_name,
            avatar_id or self._context.settings.default_avatar,
        )
        mode = ResolveMode.REGISTER if created else ResolveMode.LOGIN

        if self._session_store is not None:
            self._session_store.save(account_key)

        if created:
            logger.info("Registered hunter %s as %s", display_name, account_key)
            emit_event("hunter_registered", account_key=account_key, avatar_id=profile.avatar_id)
        else:
            logger.info("Hunter %s logged in", account_key)
            emit_event("hunter_login", account_key=account_key)
        return ResolveResult(mode=mode, account_key=account_key, profile=profile)


PreviewCallback = Callable[[str, Optional[HunterProfile]], Union[None, Awaitable[None]]]


class PreviewDebouncer:
    """Runs ``lookup`` only after the typed name stays unchanged for ``delay`` seconds."""

    def __init__(
        self,
        resolver: AccountResolver,
        on_result: PreviewCallback,
        *,
        delay: Optional[float] = None,
    ) -> None:
        self._resolver = resolver
        self._on_result = on_result
        self._delay = delay if delay is not None else resolver.settings.lookup_debounce_ms / 1000
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def update(self, raw_name: str) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(raw_name))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self, raw_name: str) -> None:
        await asyncio.sleep(self._delay)
        try:
            profile = await self._resolver.lookup(raw_name)
        except Exception:  # noqa: BLE001
            logger.exception("Hunter preview lookup failed")
            profile = None
        outcome = self._on_result(raw_name, profile)
        if asyncio.iscoroutine(outcome):
            await outcome


__all__ = [
    "AccountResolver",
    "MAX_NAME_LENGTH",
    "MIN_NAME_LENGTH",
    "PreviewDebouncer",
    "ResolveMode",
    "ResolveResult",
    "normalize_account_key",
    "validate_hunter_name",
]
