"""Points, hunter rank and rank progress derived from a quest collection."""

from __future__ import annotations

from typing import Iterable, Tuple

from pydantic import BaseModel

from .models import Quest

POINTS_PER_DIFFICULTY = 10
POINTS_PER_RANK = 100

# (exclusive upper rank bound, title); the last entry has no bound.
RANK_TITLES: Tuple[Tuple[float, str], ...] = (
    (2, "Novato"),
    (5, "Cazador de Rango Bajo"),
    (10, "Cazador de Rango Alto"),
    (20, "Cazador Clase G"),
    (50, "Maestro Cazador"),
    (float("inf"), "Estrella Zafiro"),
)


class ProgressSnapshot(BaseModel):
    points: int
    rank: int
    rank_title: str
    progress_fraction: int


def rank_title(rank: int) -> str:
    for upper_bound, title in RANK_TITLES:
        if rank < upper_bound:
            return title
    return RANK_TITLES[-1][1]


def compute_progress(quests: Iterable[Quest]) -> ProgressSnapshot:
    points = sum(quest.difficulty * POINTS_PER_DIFFICULTY for quest in quests if quest.completed)
    rank = points // POINTS_PER_RANK + 1
    return ProgressSnapshot(
        points=points,
        rank=rank,
        rank_title=rank_title(rank),
        progress_fraction=points % POINTS_PER_RANK,
    )


__all__ = ["POINTS_PER_DIFFICULTY", "POINTS_PER_RANK", "ProgressSnapshot", "RANK_TITLES", "compute_progress", "rank_title"]
