from __future__ import annotations

import httpx

from guildlog.icons import FALLBACK_ICONS, IconCatalog, icon_display_name


def _catalog(settings, handler) -> IconCatalog:
    return IconCatalog(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_icon_display_name() -> None:
    assert icon_display_name("Great_Jagras_Icon.webp") == "Great Jagras"
    assert icon_display_name("Rathalos_icon.WEBP") == "Rathalos"
    assert icon_display_name("Kulu_Ya_Ku.webp") == "Kulu Ya Ku.webp"


def test_load_keeps_webp_entries_from_listing(settings) -> None:
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(
            200,
            json=[
                {"name": "Anjanath_Icon.webp", "type": "file"},
                {"name": "README.md", "type": "file"},
                {"name": "Kushala_Daora_Icon.webp", "type": "file"},
                {"type": "dir"},
            ],
        )

    catalog = _catalog(settings, handler)
    entries = catalog.load()

    assert [(entry.file_name, entry.display_name) for entry in entries] == [
        ("Anjanath_Icon.webp", "Anjanath"),
        ("Kushala_Daora_Icon.webp", "Kushala Daora"),
    ]
    assert requested == [settings.icon_catalog_url]


def test_load_is_cached(settings) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[{"name": "Anjanath_Icon.webp"}])

    catalog = _catalog(settings, handler)
    assert not catalog.loaded
    catalog.load()
    catalog.load()
    assert catalog.loaded
    assert len(calls) == 1


def test_http_failure_falls_back_to_static_list(settings) -> None:
    catalog = _catalog(settings, lambda request: httpx.Response(403, json={"message": "rate limited"}))
    assert catalog.load() == list(FALLBACK_ICONS)


def test_transport_error_falls_back_to_static_list(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    assert _catalog(settings, handler).load() == list(FALLBACK_ICONS)


def test_unexpected_payload_falls_back_to_static_list(settings) -> None:
    assert _catalog(settings, lambda request: httpx.Response(200, json={"message": "Not Found"})).load() == list(
        FALLBACK_ICONS
    )
    assert _catalog(settings, lambda request: httpx.Response(200, text="<html>")).load() == list(FALLBACK_ICONS)
    assert _catalog(settings, lambda request: httpx.Response(200, json=[{"name": "notes.txt"}])).load() == list(
        FALLBACK_ICONS
    )


def test_fallback_has_three_monsters() -> None:
    assert [entry.display_name for entry in FALLBACK_ICONS] == ["Great Jagras", "Rathalos", "Nergigante"]


def test_icon_url(settings) -> None:
    catalog = IconCatalog(settings)
    assert catalog.icon_url("Rathalos_Icon.webp") == "https://assets.test/icons/Rathalos_Icon.webp"
