"""Error taxonomy shared by the resolver, the store and the lifecycle managers."""

from __future__ import annotations

from typing import Any, Dict


class GuildError(Exception):
    """Base class for errors surfaced to callers of the guild log engine."""

    code = "guild_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        for key, value in self.context.items():
            if value is not None:
                payload[key] = value
        return payload


class ValidationError(GuildError, ValueError):
    """Input rejected locally; the operation had no effect."""

    code = "validation_error"


class NotFoundError(GuildError, LookupError):
    """The referenced profile or quest does not exist."""

    code = "not_found"


class ConnectivityError(GuildError, RuntimeError):
    """The backing store could not be reached."""

    code = "connectivity_error"


__all__ = ["ConnectivityError", "GuildError", "NotFoundError", "ValidationError"]
