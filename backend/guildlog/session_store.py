"""Local pointer to the active hunter, persisted across restarts."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Optional

logger = logging.getLogger(__name__)

SESSION_NAMESPACE_KEY = "guildlog.hunter_id"


class SessionStore:
    """JSON file holding a single account key; never synchronized with the guild store."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = RLock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, account_key: str) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps({SESSION_NAMESPACE_KEY: account_key}), encoding="utf-8")
            tmp_path.replace(self._path)
        logger.debug("Session saved for account_key=%s", account_key)

    def load(self) -> Optional[str]:
        with self._lock:
            if not self._path.exists():
                return None
            try:
                payload = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Ignoring unreadable session file %s: %s", self._path, exc)
                return None
        if not isinstance(payload, dict):
            logger.warning("Ignoring malformed session file %s", self._path)
            return None
        value = payload.get(SESSION_NAMESPACE_KEY)
        return value if isinstance(value, str) and value else None

    def clear(self) -> None:
        with self._lock:
            try:
                self._path.unlink()
            except FileNotFoundError:
                return
        logger.debug("Session cleared at %s", self._path)


__all__ = ["SESSION_NAMESPACE_KEY", "SessionStore"]
