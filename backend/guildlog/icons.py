"""Best-effort monster icon catalog backed by a remote asset listing."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from threading import RLock
from typing import List, Optional, Tuple

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

_ICON_SUFFIX = re.compile(r"_Icon\.webp$", re.IGNORECASE)


@dataclass(frozen=True)
class IconEntry:
    file_name: str
    display_name: str


FALLBACK_ICONS: Tuple[IconEntry, ...] = (
    IconEntry("Great_Jagras_Icon.webp", "Great Jagras"),
    IconEntry("Rathalos_Icon.webp", "Rathalos"),
    IconEntry("Nergigante_Icon.webp", "Nergigante"),
)


def icon_display_name(file_name: str) -> str:
    """``Great_Jagras_Icon.webp`` -> ``Great Jagras``."""
    return _ICON_SUFFIX.sub("", file_name).replace("_", " ")


class IconCatalog:
    """Loads the icon listing once and falls back to a fixed list on any failure."""

    def __init__(self, settings: Settings, *, client: Optional[httpx.Client] = None) -> None:
        self._settings = settings
        self._client = client
        self._entries: Optional[List[IconEntry]] = None
        self._lock = RLock()

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    def load(self) -> List[IconEntry]:
        with self._lock:
            if self._entries is None:
                self._entries = self._fetch()
            return list(self._entries)

    def icon_url(self, file_name: str) -> str:
        return f"{self._settings.icon_assets_url.rstrip('/')}/{file_name}"

    def _fetch(self) -> List[IconEntry]:
        timeout_seconds = max(self._settings.icon_fetch_timeout_ms, 100) / 1000
        local_client = self._client or httpx.Client(timeout=timeout_seconds)
        close_client = self._client is None
        try:
            response = local_client.get(
                self._settings.icon_catalog_url,
                headers={"Accept": "application/vnd.github+json"},
            )
            response.raise_for_status()
            listing = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Icon catalog unavailable, using fallback icons: %s", exc)
            return list(FALLBACK_ICONS)
        finally:
            if close_client:
                local_client.close()

        if not isinstance(listing, list):
            logger.warning("Icon catalog returned %s instead of a listing; using fallback icons", type(listing).__name__)
            return list(FALLBACK_ICONS)

        entries = [
            IconEntry(file_name=item["name"], display_name=icon_display_name(item["name"]))
            for item in listing
            if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].lower().endswith(".webp")
        ]
        if not entries:
            logger.warning("Icon catalog listing had no .webp assets; using fallback icons")
            return list(FALLBACK_ICONS)
        logger.debug("Loaded %d icons from catalog", len(entries))
        return entries


__all__ = ["FALLBACK_ICONS", "IconCatalog", "IconEntry", "icon_display_name"]
