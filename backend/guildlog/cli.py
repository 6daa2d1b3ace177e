"""Command-line quest board: ``guildlog login``, ``guildlog add``, ``guildlog watch``..."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import uvicorn

from .accounts import AccountLifecycleManager
from .config import get_settings
from .context import GuildContext
from .errors import ConnectivityError, GuildError, NotFoundError, ValidationError
from .hunter_session import GUILD_MOTTO
from .identity import AccountResolver, ResolveMode
from .logging_config import configure_logging
from .models import MAX_DIFFICULTY, MIN_DIFFICULTY, Quest
from .progress import ProgressSnapshot, compute_progress
from .quest_filters import DueStatus, QuestTab, due_status, filter_quests
from .quests import QuestLifecycleManager
from .realtime import FeedEvent, RealtimeChannel
from .session_store import SessionStore

logger = logging.getLogger(__name__)

EXIT_CODES = {
    ValidationError: 2,
    NotFoundError: 3,
    ConnectivityError: 4,
}

Handler = Callable[[argparse.Namespace, GuildContext, SessionStore], Awaitable[int]]


def _parse_due(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}") from exc


def _difficulty(value: str) -> int:
    stars = int(value)
    if not MIN_DIFFICULTY <= stars <= MAX_DIFFICULTY:
        raise argparse.ArgumentTypeError(f"difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")
    return stars


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="guildlog", description=f"Guild quest log. {GUILD_MOTTO}")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in, or register a new hunter.")
    login.add_argument("name")
    login.add_argument("--avatar", default=None, help="Avatar icon file name used when registering.")

    commands.add_parser("whoami", help="Show the active hunter and their rank.")
    commands.add_parser("logout", help="Forget the active hunter on this device.")

    quests = commands.add_parser("quests", help="List quests.")
    quests.add_argument("--search", default="")
    quests.add_argument("--tab", choices=[tab.value for tab in QuestTab], default=QuestTab.ALL.value)

    add = commands.add_parser("add", help="Post a new quest.")
    add.add_argument("name")
    add.add_argument("--details", default=None)
    add.add_argument("--difficulty", type=_difficulty, default=MIN_DIFFICULTY)
    add.add_argument("--icon", default=None)
    add.add_argument("--due", type=_parse_due, default=None)

    edit = commands.add_parser("edit", help="Edit a quest.")
    edit.add_argument("quest_id")
    edit.add_argument("--name", default=None)
    edit.add_argument("--details", default=None)
    edit.add_argument("--difficulty", type=_difficulty, default=None)
    edit.add_argument("--icon", default=None)
    edit.add_argument("--due", type=_parse_due, default=None)
    edit.add_argument("--clear-due", action="store_true")
    edit.add_argument("--clear-details", action="store_true")

    toggle = commands.add_parser("toggle", help="Complete or reopen a quest.")
    toggle.add_argument("quest_id")

    remove = commands.add_parser("remove", help="Abandon a quest.")
    remove.add_argument("quest_id")
    remove.add_argument("--yes", action="store_true")

    commands.add_parser("progress", help="Show points and rank.")

    avatar = commands.add_parser("avatar", help="Change the active hunter's avatar.")
    avatar.add_argument("avatar_id")

    reset = commands.add_parser("reset", help="Delete every quest of the active hunter.")
    reset.add_argument("--yes", action="store_true")

    delete = commands.add_parser("delete-account", help="Delete the active hunter and all quests.")
    delete.add_argument("--yes", action="store_true")

    commands.add_parser("icons", help="List available monster icons.")

    watch = commands.add_parser("watch", help="Follow live profile and quest changes.")
    watch.add_argument("--limit", type=int, default=None, help="Stop after this many updates.")

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------


def format_quest(quest: Quest, now: Optional[datetime] = None) -> str:
    mark = "x" if quest.completed else " "
    line = f"[{mark}] {quest.name} {'*' * quest.difficulty} ({quest.id})"
    status = due_status(quest, now)
    if quest.due_at is not None:
        label = "OVERDUE" if status is DueStatus.OVERDUE else "due"
        line += f" {label} {quest.due_at:%Y-%m-%d %H:%M}"
        if status is DueStatus.NEAR_DUE:
            line += " (soon)"
    return line


def format_progress(progress: ProgressSnapshot) -> str:
    return (
        f"Rank {progress.rank} {progress.rank_title} | {progress.points} pts | "
        f"{progress.progress_fraction}/100 to next rank"
    )


def _describe(event: FeedEvent) -> List[str]:
    kind, snapshot = event
    if isinstance(snapshot, list):
        return [format_progress(compute_progress(snapshot))] + [format_quest(quest) for quest in snapshot]
    if snapshot is None:
        return [f"{kind}: hunter profile is gone"]
    return [f"{kind}: {snapshot.display_name} (avatar {snapshot.avatar_id})"]


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def _active_key(sessions: SessionStore) -> str:
    account_key = sessions.load()
    if not account_key:
        raise ValidationError("No active hunter; run `guildlog login NAME` first.")
    return account_key


def _confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def _cmd_login(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    result = await AccountResolver(context, sessions).resolve(args.name, args.avatar)
    verb = "Welcome back" if result.mode is ResolveMode.LOGIN else "Registered"
    print(f"{verb}, {result.profile.display_name} ({result.account_key}).")
    return 0


async def _cmd_whoami(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    account_key = _active_key(sessions)
    await context.ready()
    profile = await asyncio.to_thread(context.store.get_profile, account_key)
    if profile is None:
        raise NotFoundError(f"Hunter '{account_key}' no longer exists.", account_key=account_key)
    print(f"{profile.display_name} ({account_key}) avatar={profile.avatar_id}")
    print(format_progress(compute_progress(await asyncio.to_thread(context.store.list_quests, account_key))))
    return 0


async def _cmd_logout(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    AccountLifecycleManager(context, sessions.load(), sessions).logout()
    print("Logged out.")
    return 0


async def _cmd_quests(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    account_key = _active_key(sessions)
    await context.ready()
    quests = await asyncio.to_thread(context.store.list_quests, account_key)
    quests = filter_quests(quests, search=args.search, tab=args.tab)
    if not quests:
        print("No quests on the board.")
    for quest in quests:
        print(format_quest(quest))
    return 0


async def _cmd_add(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    manager = QuestLifecycleManager(context, _active_key(sessions))
    quest = await manager.create(
        args.name,
        details=args.details,
        difficulty=args.difficulty,
        icon_id=args.icon,
        due_at=args.due,
    )
    print(format_quest(quest))
    return 0


async def _cmd_edit(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    changes: Dict[str, object] = {}
    for field, value in (
        ("name", args.name),
        ("details", args.details),
        ("difficulty", args.difficulty),
        ("icon_id", args.icon),
        ("due_at", args.due),
    ):
        if value is not None:
            changes[field] = value
    if args.clear_due:
        changes["due_at"] = None
    if args.clear_details:
        changes["details"] = None
    quest = await QuestLifecycleManager(context, _active_key(sessions)).update(args.quest_id, **changes)
    print(format_quest(quest))
    return 0


async def _cmd_toggle(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    quest = await QuestLifecycleManager(context, _active_key(sessions)).toggle_completion(args.quest_id)
    print(format_quest(quest))
    return 0


async def _cmd_remove(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    manager = QuestLifecycleManager(context, _active_key(sessions))
    if not _confirm("Abandon this quest?", args.yes):
        print("Kept.")
        return 1
    if await manager.delete(args.quest_id):
        print("Quest abandoned.")
    else:
        print("Nothing to abandon.")
    return 0


async def _cmd_progress(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    account_key = _active_key(sessions)
    await context.ready()
    print(format_progress(compute_progress(await asyncio.to_thread(context.store.list_quests, account_key))))
    return 0


async def _cmd_avatar(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    profile = await AccountLifecycleManager(context, _active_key(sessions), sessions).update_avatar(args.avatar_id)
    print(f"Avatar set to {profile.avatar_id}.")
    return 0


async def _cmd_reset(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    manager = AccountLifecycleManager(context, _active_key(sessions), sessions)
    if not _confirm("Delete every quest and start over at rank 1?", args.yes):
        print("Cancelled.")
        return 1
    removed = await manager.reset_progress()
    print(f"Progress reset ({removed} quests removed).")
    return 0


async def _cmd_delete_account(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    manager = AccountLifecycleManager(context, _active_key(sessions), sessions)
    if not _confirm("Delete this hunter and every quest permanently?", args.yes):
        print("Cancelled.")
        return 1
    await manager.delete_account()
    print("Hunter deleted.")
    return 0


async def _cmd_icons(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    for entry in context.icons.load():
        print(f"{entry.file_name}\t{entry.display_name}")
    return 0


async def _cmd_watch(args: argparse.Namespace, context: GuildContext, sessions: SessionStore) -> int:
    account_key = _active_key(sessions)
    await context.ready()
    feed = await RealtimeChannel(context).subscribe(account_key)
    seen = 0
    try:
        async for event in feed.events():
            for line in _describe(event):
                print(line)
            seen += 1
            if args.limit is not None and seen >= args.limit:
                break
    finally:
        feed.cancel()
    return 0


COMMANDS: Dict[str, Handler] = {
    "login": _cmd_login,
    "whoami": _cmd_whoami,
    "logout": _cmd_logout,
    "quests": _cmd_quests,
    "add": _cmd_add,
    "edit": _cmd_edit,
    "toggle": _cmd_toggle,
    "remove": _cmd_remove,
    "progress": _cmd_progress,
    "avatar": _cmd_avatar,
    "reset": _cmd_reset,
    "delete-account": _cmd_delete_account,
    "icons": _cmd_icons,
    "watch": _cmd_watch,
}


def _serve(host: str, port: int) -> int:
    uvicorn.run("guildlog.main:create_app", factory=True, host=host, port=port)
    return 0


def main(argv: Optional[Sequence[str]] = None, *, context: Optional[GuildContext] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        return _serve(args.host, args.port)

    owns_context = context is None
    guild_context = context or GuildContext.from_settings(get_settings())
    sessions = SessionStore(guild_context.settings.resolved_session_path)
    try:
        return asyncio.run(COMMANDS[args.command](args, guild_context, sessions))
    except GuildError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        for error_type, code in EXIT_CODES.items():
            if isinstance(exc, error_type):
                return code
        return 1
    finally:
        if owns_context:
            guild_context.close()


if __name__ == "__main__":
    sys.exit(main())
