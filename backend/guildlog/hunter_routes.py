"""Hunter and quest REST endpoints plus the server-sent event feed."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .accounts import AccountLifecycleManager
from .context import GuildContext
from .errors import NotFoundError, ValidationError
from .identity import AccountResolver, normalize_account_key
from .models import MAX_DIFFICULTY, MIN_DIFFICULTY, HunterProfile, Quest
from .progress import ProgressSnapshot, compute_progress
from .quest_filters import QuestTab, due_status, filter_quests
from .quests import QuestLifecycleManager
from .realtime import AccountFeed, FeedEvent, RealtimeChannel

router = APIRouter(prefix="/api", tags=["hunters"])
logger = logging.getLogger(__name__)


def get_context(request: Request) -> GuildContext:
    return request.app.state.context


def get_ready_context(context: GuildContext = Depends(get_context)) -> GuildContext:
    return context.ensure_ready()


class ResolveRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    avatar_id: Optional[str] = Field(default=None, max_length=255)


class ResolveResponse(BaseModel):
    mode: str
    account_key: str
    profile: HunterProfile


class LookupResponse(BaseModel):
    account_key: Optional[str] = None
    profile: Optional[HunterProfile] = None


class AvatarRequest(BaseModel):
    avatar_id: str = Field(..., min_length=1, max_length=255)


class QuestCreateRequest(BaseModel):
    name: str
    details: Optional[str] = None
    difficulty: int = Field(default=MIN_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    icon_id: Optional[str] = None
    due_at: Optional[datetime] = None


class QuestUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    details: Optional[str] = None
    difficulty: Optional[int] = None
    icon_id: Optional[str] = None
    due_at: Optional[datetime] = None


class QuestView(Quest):
    due_status: str


class IconView(BaseModel):
    file_name: str
    display_name: str
    url: str


class RemovalResponse(BaseModel):
    removed: int


def _quest_view(quest: Quest) -> QuestView:
    return QuestView(**quest.model_dump(), due_status=due_status(quest).value)


def _require_profile(context: GuildContext, account_key: str) -> HunterProfile:
    profile = context.store.get_profile(account_key)
    if profile is None:
        raise NotFoundError(f"Hunter '{account_key}' does not exist.", account_key=account_key)
    return profile


@router.get("/icons", response_model=List[IconView])
def list_icons(context: GuildContext = Depends(get_context)) -> List[IconView]:
    catalog = context.icons
    return [
        IconView(file_name=entry.file_name, display_name=entry.display_name, url=catalog.icon_url(entry.file_name))
        for entry in catalog.load()
    ]


@router.get("/hunters/lookup", response_model=LookupResponse)
def lookup_hunter(
    name: str = Query(..., max_length=64),
    context: GuildContext = Depends(get_ready_context),
) -> LookupResponse:
    profile = AccountResolver(context).find(name)
    account_key = normalize_account_key(name) if name.strip() else None
    return LookupResponse(account_key=account_key, profile=profile)


@router.post("/hunters/resolve", response_model=ResolveResponse)
async def resolve_hunter(payload: ResolveRequest, context: GuildContext = Depends(get_context)) -> ResolveResponse:
    result = await AccountResolver(context).resolve(payload.name, payload.avatar_id)
    return ResolveResponse(mode=result.mode.value, account_key=result.account_key, profile=result.profile)


@router.get("/hunters/{account_key}", response_model=HunterProfile)
def get_hunter(account_key: str, context: GuildContext = Depends(get_ready_context)) -> HunterProfile:
    return _require_profile(context, account_key)


@router.delete("/hunters/{account_key}", response_model=RemovalResponse)
async def delete_hunter(account_key: str, context: GuildContext = Depends(get_context)) -> RemovalResponse:
    await context.ready()
    await asyncio.to_thread(_require_profile, context, account_key)
    removed = await AccountLifecycleManager(context, account_key).delete_account()
    return RemovalResponse(removed=removed)


@router.put("/hunters/{account_key}/avatar", response_model=HunterProfile)
async def update_avatar(
    account_key: str,
    payload: AvatarRequest,
    context: GuildContext = Depends(get_context),
) -> HunterProfile:
    return await AccountLifecycleManager(context, account_key).update_avatar(payload.avatar_id)


@router.post("/hunters/{account_key}/reset", response_model=RemovalResponse)
async def reset_progress(account_key: str, context: GuildContext = Depends(get_context)) -> RemovalResponse:
    await context.ready()
    await asyncio.to_thread(_require_profile, context, account_key)
    removed = await AccountLifecycleManager(context, account_key).reset_progress()
    return RemovalResponse(removed=removed)


@router.get("/hunters/{account_key}/progress", response_model=ProgressSnapshot)
def get_progress(account_key: str, context: GuildContext = Depends(get_ready_context)) -> ProgressSnapshot:
    return compute_progress(context.store.list_quests(account_key))


@router.get("/hunters/{account_key}/quests", response_model=List[QuestView])
def list_quests(
    account_key: str,
    search: str = Query(default="", max_length=120),
    tab: QuestTab = Query(default=QuestTab.ALL),
    context: GuildContext = Depends(get_ready_context),
) -> List[QuestView]:
    quests = filter_quests(context.store.list_quests(account_key), search=search, tab=tab)
    return [_quest_view(quest) for quest in quests]


@router.post("/hunters/{account_key}/quests", response_model=QuestView, status_code=status.HTTP_201_CREATED)
async def create_quest(
    account_key: str,
    payload: QuestCreateRequest,
    context: GuildContext = Depends(get_context),
) -> QuestView:
    quest = await QuestLifecycleManager(context, account_key).create(**payload.model_dump())
    return _quest_view(quest)


@router.patch("/hunters/{account_key}/quests/{quest_id}", response_model=QuestView)
async def update_quest(
    account_key: str,
    quest_id: str,
    payload: QuestUpdateRequest,
    context: GuildContext = Depends(get_context),
) -> QuestView:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No quest fields to update.")
    quest = await QuestLifecycleManager(context, account_key).update(quest_id, **changes)
    return _quest_view(quest)


@router.post("/hunters/{account_key}/quests/{quest_id}/toggle", response_model=QuestView)
async def toggle_quest(account_key: str, quest_id: str, context: GuildContext = Depends(get_context)) -> QuestView:
    quest = await QuestLifecycleManager(context, account_key).toggle_completion(quest_id)
    return _quest_view(quest)


@router.delete("/hunters/{account_key}/quests/{quest_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quest(account_key: str, quest_id: str, context: GuildContext = Depends(get_context)) -> Response:
    deleted = await QuestLifecycleManager(context, account_key).delete(quest_id)
    if not deleted:
        raise NotFoundError(f"Quest '{quest_id}' does not exist.", quest_id=quest_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def format_feed_event(event: FeedEvent) -> str:
    """Render one feed snapshot as a server-sent event frame."""
    kind, snapshot = event
    data: Dict[str, Any]
    if isinstance(snapshot, list):
        data = {
            "quests": [_quest_view(quest).model_dump(mode="json") for quest in snapshot],
            "progress": compute_progress(snapshot).model_dump(mode="json"),
        }
    else:
        data = {"profile": snapshot.model_dump(mode="json") if snapshot is not None else None}
    return f"event: {kind}\ndata: {json.dumps(data)}\n\n"


async def _feed_frames(feed: AccountFeed, request: Request) -> AsyncIterator[str]:
    try:
        async for event in feed.events():
            if await request.is_disconnected():
                break
            yield format_feed_event(event)
    finally:
        feed.cancel()
        logger.debug("Closed event stream for %s", feed.account_key)


@router.get("/hunters/{account_key}/stream")
async def stream_hunter(
    account_key: str,
    request: Request,
    context: GuildContext = Depends(get_context),
) -> StreamingResponse:
    await context.ready()
    feed = await RealtimeChannel(context).subscribe(account_key)
    return StreamingResponse(_feed_frames(feed, request), media_type="text/event-stream")


__all__ = ["format_feed_event", "get_context", "get_ready_context", "router"]
