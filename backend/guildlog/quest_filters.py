"""Quest board helpers: search/tab filtering and deadline status."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional

from .models import Quest, ensure_utc, utcnow

NEAR_DUE_WINDOW = timedelta(hours=24)


class QuestTab(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class DueStatus(str, Enum):
    NONE = "none"
    SCHEDULED = "scheduled"
    NEAR_DUE = "near_due"
    OVERDUE = "overdue"


def filter_quests(quests: Iterable[Quest], search: str = "", tab: str = QuestTab.ALL) -> List[Quest]:
    needle = search.lower()
    selected = QuestTab(tab)
    result = []
    for quest in quests:
        if needle not in quest.name.lower():
            continue
        if selected is QuestTab.ACTIVE and quest.completed:
            continue
        if selected is QuestTab.COMPLETED and not quest.completed:
            continue
        result.append(quest)
    return result


def due_status(quest: Quest, now: Optional[datetime] = None) -> DueStatus:
    if quest.due_at is None:
        return DueStatus.NONE
    if quest.completed:
        return DueStatus.SCHEDULED
    current = ensure_utc(now) or utcnow()
    if current > quest.due_at:
        return DueStatus.OVERDUE
    if quest.due_at - current < NEAR_DUE_WINDOW:
        return DueStatus.NEAR_DUE
    return DueStatus.SCHEDULED


__all__ = ["DueStatus", "NEAR_DUE_WINDOW", "QuestTab", "due_status", "filter_quests"]
