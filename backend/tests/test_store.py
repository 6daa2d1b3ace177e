from __future__ import annotations

import asyncio

import pytest

from guildlog.changes import PROFILE, QUESTS, ChangeEvent
from guildlog.errors import NotFoundError
from guildlog.models import QuestDraft
from guildlog.repositories.profiles import hunter_profiles
from guildlog.repositories.revisions import AccountRevision


@pytest.fixture
def store(context):
    asyncio.run(context.ready())
    return context.store


def test_create_profile_if_absent_creates_once(store) -> None:
    first, created = store.create_profile_if_absent("ash-ketchum", "Ash Ketchum", "Rathalos_Icon.webp")
    second, created_again = store.create_profile_if_absent("ash-ketchum", "ASH", "Nergigante_Icon.webp")

    assert created is True
    assert created_again is False
    assert second.display_name == "Ash Ketchum"
    assert second.avatar_id == first.avatar_id


def test_listeners_observe_committed_state(store) -> None:
    store.create_profile_if_absent("misty", "Misty", "Rathalos_Icon.webp")
    observed: list[tuple[frozenset, int]] = []

    def listener(event: ChangeEvent) -> None:
        observed.append((event.kinds, len(store.list_quests("misty"))))

    unwatch = store.watch("misty", listener)
    store.add_quest("misty", QuestDraft(name="Hunt a Pukei-Pukei"), default_icon="Great_Jagras_Icon.webp")
    unwatch()
    store.add_quest("misty", QuestDraft(name="Hunt a Tobi-Kadachi"), default_icon="Great_Jagras_Icon.webp")

    assert observed == [(frozenset({QUESTS}), 1)]


def test_failed_transaction_publishes_nothing(store, monkeypatch) -> None:
    store.create_profile_if_absent("brock", "Brock", "Rathalos_Icon.webp")
    store.add_quest("brock", QuestDraft(name="Gather honey"), default_icon="Great_Jagras_Icon.webp")
    events: list[ChangeEvent] = []
    store.watch("brock", events.append)

    def broken_delete(session, account_key):
        raise RuntimeError("constraint check failed")

    monkeypatch.setattr(hunter_profiles, "delete", broken_delete)
    with pytest.raises(RuntimeError):
        store.delete_account("brock")

    assert events == []
    assert len(store.list_quests("brock")) == 1
    assert store.get_profile("brock") is not None


def test_delete_account_publishes_both_kinds(store) -> None:
    store.create_profile_if_absent("brock", "Brock", "Rathalos_Icon.webp")
    store.add_quest("brock", QuestDraft(name="Gather honey"), default_icon="Great_Jagras_Icon.webp")
    events: list[ChangeEvent] = []
    store.watch("brock", events.append)

    assert store.delete_account("brock") == 1
    assert [event.kinds for event in events] == [frozenset({PROFILE, QUESTS})]
    assert store.get_profile("brock") is None
    assert store.list_quests("brock") == []


def test_missing_rows_publish_nothing(store) -> None:
    store.create_profile_if_absent("misty", "Misty", "Rathalos_Icon.webp")
    events: list[ChangeEvent] = []
    store.watch("gary", events.append)
    store.watch("misty", events.append)
    before = store.get_revision("misty")

    assert store.update_avatar("gary", "Rathalos_Icon.webp") is None
    assert store.delete_quest("gary", "missing") is False
    assert store.update_quest("misty", "missing", {"name": "x"}) is None
    assert store.toggle_quest("misty", "missing") is None
    assert events == []
    assert store.get_revision("misty") == before
    assert store.get_revision("gary") == AccountRevision()


def test_quest_writes_require_a_registered_hunter(store) -> None:
    store.create_profile_if_absent("misty", "Misty", "Rathalos_Icon.webp")
    quest = store.add_quest("misty", QuestDraft(name="Swim"), default_icon="Great_Jagras_Icon.webp")
    events: list[ChangeEvent] = []
    store.watch("gary", events.append)

    with pytest.raises(NotFoundError):
        store.add_quest("gary", QuestDraft(name="Orphan"), default_icon="Great_Jagras_Icon.webp")
    with pytest.raises(NotFoundError):
        store.update_quest("gary", quest.id, {"name": "x"})
    with pytest.raises(NotFoundError):
        store.toggle_quest("gary", quest.id)

    assert store.list_quests("gary") == []
    assert events == []
    assert store.get_revision("gary") == AccountRevision()

    store.create_profile_if_absent("gary", "Gary", "Rathalos_Icon.webp")
    assert store.list_quests("gary") == []


def test_every_committed_write_bumps_the_touched_revision(store) -> None:
    assert store.get_revision("brock") == AccountRevision()

    store.create_profile_if_absent("brock", "Brock", "Rathalos_Icon.webp")
    registered = store.get_revision("brock")
    assert registered.profile == 1

    quest = store.add_quest("brock", QuestDraft(name="Gather honey"), default_icon="Great_Jagras_Icon.webp")
    store.toggle_quest("brock", quest.id)
    after_quests = store.get_revision("brock")
    assert after_quests == AccountRevision(profile=registered.profile, quests=registered.quests + 2)
    assert after_quests.changed_kinds(registered) == (QUESTS,)

    store.update_avatar("brock", "Nergigante_Icon.webp")
    after_avatar = store.get_revision("brock")
    assert after_avatar.changed_kinds(after_quests) == (PROFILE,)

    store.create_profile_if_absent("brock", "Brock", "Rathalos_Icon.webp")
    assert store.get_revision("brock") == after_avatar

    store.delete_account("brock")
    after_delete = store.get_revision("brock")
    assert after_delete.changed_kinds(after_avatar) == (PROFILE, QUESTS)
    assert after_delete.changed_kinds(None) == (PROFILE, QUESTS)


def test_failed_write_leaves_the_revision_untouched(store, monkeypatch) -> None:
    store.create_profile_if_absent("brock", "Brock", "Rathalos_Icon.webp")
    before = store.get_revision("brock")

    def broken_delete(session, account_key):
        raise RuntimeError("constraint check failed")

    monkeypatch.setattr(hunter_profiles, "delete", broken_delete)
    with pytest.raises(RuntimeError):
        store.delete_account("brock")

    assert store.get_revision("brock") == before


def test_watcher_count_tracks_unwatch(store) -> None:
    unwatch = store.watch("misty", lambda event: None)
    assert store.hub.watcher_count("misty") == 1
    unwatch()
    unwatch()
    assert store.hub.watcher_count("misty") == 0
