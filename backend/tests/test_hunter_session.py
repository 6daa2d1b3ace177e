from __future__ import annotations

import asyncio
from typing import List

from guildlog.accounts import AccountLifecycleManager
from guildlog.connectivity import Connectivity
from guildlog.hunter_session import HunterSession
from guildlog.identity import ResolveMode
from guildlog.quests import QuestLifecycleManager
from guildlog.session_store import SessionStore


def test_start_without_stored_hunter_stays_logged_out(context, session_store) -> None:
    async def scenario():
        session = HunterSession(context, session_store)
        key = await session.start()
        return key, session

    key, session = asyncio.run(scenario())
    assert key is None
    assert session.active is False
    assert context.technical_session.ready


def test_ash_ketchum_registers_and_later_resumes(context, settings) -> None:
    device = SessionStore(settings.home_dir / "device-a.json")

    async def first_visit():
        session = HunterSession(context, device)
        await session.start()
        result = await session.login("Ash Ketchum", "Nergigante_Icon.webp")
        await session.settle()
        quest = await session.quest_manager.create("Slay the Rathalos", difficulty=5)
        await session.quest_manager.toggle_completion(quest.id)
        await session.quest_manager.create("Gather honey", difficulty=5)
        await session.settle()
        snapshot = (result, session.profile, [q.name for q in session.quests], session.progress)
        await session.close()
        return snapshot

    result, profile, quest_names, progress = asyncio.run(first_visit())
    assert result.mode is ResolveMode.REGISTER
    assert profile.display_name == "Ash Ketchum"
    assert quest_names == ["Gather honey", "Slay the Rathalos"]
    assert progress.points == 50
    assert progress.rank == 1

    async def restart():
        session = HunterSession(context, device)
        key = await session.start()
        await session.settle()
        snapshot = (key, session.profile, len(session.quests), session.progress.points)
        await session.logout()
        relogin = await session.login("ash   KETCHUM", "Rathalos_Icon.webp")
        await session.settle()
        snapshot += (relogin, session.profile)
        await session.close()
        return snapshot

    key, resumed, count, points, relogin, after_relogin = asyncio.run(restart())
    assert key == "ash-ketchum"
    assert resumed == profile
    assert count == 2
    assert points == 50
    assert relogin.mode is ResolveMode.LOGIN
    assert after_relogin.avatar_id == "Nergigante_Icon.webp"
    assert after_relogin.display_name == "Ash Ketchum"


def test_avatar_change_from_another_device_is_reflected(context, settings) -> None:
    changes: List[str] = []

    async def scenario():
        session = HunterSession(
            context,
            SessionStore(settings.home_dir / "device-a.json"),
            on_change=lambda kind, _session: changes.append(kind),
        )
        await session.start()
        await session.login("Ash Ketchum", "Nergigante_Icon.webp")
        await session.settle()

        other_device = AccountLifecycleManager(context, "ash-ketchum", SessionStore(settings.home_dir / "device-b.json"))
        await other_device.update_avatar("Rathalos_Icon.webp")
        await session.settle()
        avatar = session.profile.avatar_id
        await session.close()
        return avatar

    assert asyncio.run(scenario()) == "Rathalos_Icon.webp"
    assert changes.count("profile") >= 2


def test_switching_hunters_tears_down_the_previous_feed(context, session_store) -> None:
    async def scenario():
        session = HunterSession(context, session_store)
        await session.start()
        await session.login("Ash Ketchum")
        await session.login("Misty")
        await session.settle()
        await AccountLifecycleManager(context, "ash-ketchum").reset_progress()
        await QuestLifecycleManager(context, "ash-ketchum").create("Not Misty's")
        await session.settle()
        snapshot = (session.account_key, session.profile.display_name, session.quests)
        await session.close()
        return snapshot

    key, name, quests = asyncio.run(scenario())
    assert key == "misty"
    assert name == "Misty"
    assert quests == []
    assert context.hub.watcher_count("ash-ketchum") == 0
    assert context.hub.watcher_count("misty") == 0


def test_reset_and_delete_flow_through_the_feed(context, session_store) -> None:
    async def scenario():
        session = HunterSession(context, session_store)
        await session.start()
        await session.login("Ash Ketchum")
        quest = await session.quest_manager.create("Hunt", difficulty=9)
        await session.quest_manager.toggle_completion(quest.id)
        await session.settle()
        before = session.progress.points

        await session.reset_progress()
        await session.settle()
        after_reset = (session.progress.points, session.quests, session.profile is not None)

        await session.delete_account()
        after_delete = (session.active, session.profile, session.quests, session_store.load())

        result = await session.login("Ash Ketchum")
        await session.close()
        return before, after_reset, after_delete, result.mode

    before, after_reset, after_delete, mode = asyncio.run(scenario())
    assert before == 90
    assert after_reset == (0, [], True)
    assert after_delete == (False, None, [], None)
    assert mode is ResolveMode.REGISTER


def test_connectivity_is_exposed(context, session_store) -> None:
    session = HunterSession(context, session_store)
    assert session.connectivity is Connectivity.ONLINE
    context.monitor.mark_degraded("test outage")
    assert session.connectivity is Connectivity.DEGRADED


def test_visible_quests_apply_search_and_tab(context, session_store) -> None:
    async def scenario():
        session = HunterSession(context, session_store)
        await session.start()
        await session.login("Ash Ketchum")
        manager = session.quest_manager
        hunt = await manager.create("Hunt Rathalos")
        await manager.create("Gather herbs")
        await manager.toggle_completion(hunt.id)
        await session.settle()
        result = (
            [q.name for q in session.visible_quests(search="rath")],
            [q.name for q in session.visible_quests(tab="active")],
        )
        await session.close()
        return result

    by_search, active = asyncio.run(scenario())
    assert by_search == ["Hunt Rathalos"]
    assert active == ["Gather herbs"]
