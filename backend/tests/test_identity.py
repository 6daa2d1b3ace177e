from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import pytest

from guildlog.accounts import AccountLifecycleManager
from guildlog.errors import ValidationError
from guildlog.identity import (
    AccountResolver,
    PreviewDebouncer,
    ResolveMode,
    normalize_account_key,
    validate_hunter_name,
)
from guildlog.models import HunterProfile


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (" Super Hunter ", "super-hunter"),
        ("super-hunter", "super-hunter"),
        ("Ash   Ketchum", "ash-ketchum"),
        ("ash\tketchum", "ash-ketchum"),
        ("RATHALOS", "rathalos"),
        ("", ""),
    ],
)
def test_normalize_account_key(raw: str, expected: str) -> None:
    assert normalize_account_key(raw) == expected


def test_distinct_names_collapse_to_the_same_key() -> None:
    assert normalize_account_key("super-hunter") == normalize_account_key(" Super Hunter ")


@pytest.mark.parametrize("raw", ["", "   ", "ab", " ab ", "x" * 21])
def test_validate_hunter_name_rejects_out_of_range(raw: str) -> None:
    with pytest.raises(ValidationError):
        validate_hunter_name(raw)


def test_validate_hunter_name_returns_trimmed_name() -> None:
    assert validate_hunter_name("  Ash Ketchum ") == "Ash Ketchum"


def test_register_then_login_resumes_same_profile(context, session_store, telemetry_events) -> None:
    resolver = AccountResolver(context, session_store)

    async def scenario():
        first = await resolver.resolve("Ash Ketchum", "Nergigante_Icon.webp")
        second = await resolver.resolve("  ash   ketchum", "Rathalos_Icon.webp")
        return first, second

    first, second = asyncio.run(scenario())

    assert first.mode is ResolveMode.REGISTER
    assert first.account_key == "ash-ketchum"
    assert first.profile.display_name == "Ash Ketchum"
    assert first.profile.avatar_id == "Nergigante_Icon.webp"

    assert second.mode is ResolveMode.LOGIN
    assert second.account_key == "ash-ketchum"
    assert second.profile == first.profile
    assert session_store.load() == "ash-ketchum"

    names = [event.name for event in telemetry_events]
    assert names.count("hunter_registered") == 1
    assert names.count("hunter_login") == 1


def test_register_uses_default_avatar(context, settings) -> None:
    result = asyncio.run(AccountResolver(context).resolve("Gajalaka"))
    assert result.profile.avatar_id == settings.default_avatar


def test_resolve_rejects_short_names_without_touching_store(context, session_store) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(AccountResolver(context, session_store).resolve("ab"))
    assert session_store.load() is None


def test_lookup_is_read_only(context) -> None:
    resolver = AccountResolver(context)

    async def scenario():
        missing = await resolver.lookup("Palico Chef")
        short = await resolver.lookup("Pa")
        await resolver.resolve("Palico Chef")
        found = await resolver.lookup("palico   chef")
        return missing, short, found

    missing, short, found = asyncio.run(scenario())
    assert missing is None
    assert short is None
    assert found is not None
    assert found.display_name == "Palico Chef"


def test_profile_is_created_exactly_once_per_key(context) -> None:
    asyncio.run(context.ready())
    first, created_first = context.store.create_profile_if_absent("handler", "Handler", "Rathalos_Icon.webp")
    second, created_second = context.store.create_profile_if_absent("handler", "HANDLER", "Nergigante_Icon.webp")

    assert created_first is True
    assert created_second is False
    assert second.display_name == "Handler"
    assert second.avatar_id == "Rathalos_Icon.webp"
    assert second.created_at == first.created_at


def test_resolve_after_delete_registers_again(context, session_store) -> None:
    resolver = AccountResolver(context, session_store)

    async def scenario():
        first = await resolver.resolve("Ash Ketchum")
        await AccountLifecycleManager(context, first.account_key, session_store).delete_account()
        return await resolver.resolve("Ash Ketchum", "Nergigante_Icon.webp")

    result = asyncio.run(scenario())
    assert result.mode is ResolveMode.REGISTER
    assert result.profile.avatar_id == "Nergigante_Icon.webp"


def test_preview_debouncer_only_reports_the_last_name(context) -> None:
    results: List[Tuple[str, Optional[HunterProfile]]] = []
    resolver = AccountResolver(context)

    async def scenario():
        await resolver.resolve("Ash Ketchum")
        debouncer = PreviewDebouncer(resolver, lambda raw, profile: results.append((raw, profile)), delay=0.01)
        for typed in ("As", "Ash", "Ash K", "Ash Ketchum"):
            debouncer.update(typed)
        assert debouncer.pending
        await debouncer.wait()

    asyncio.run(scenario())

    assert len(results) == 1
    raw, profile = results[0]
    assert raw == "Ash Ketchum"
    assert profile is not None and profile.account_key == "ash-ketchum"


def test_preview_debouncer_cancel_drops_pending_lookup(context) -> None:
    results: List[str] = []
    resolver = AccountResolver(context)

    async def scenario():
        debouncer = PreviewDebouncer(resolver, lambda raw, profile: results.append(raw), delay=0.01)
        debouncer.update("Ash Ketchum")
        debouncer.cancel()
        await asyncio.sleep(0.05)
        assert not debouncer.pending

    asyncio.run(scenario())
    assert results == []
