"""Ranking and layout of the top memos."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import Memo


TOP_MEMO_COUNT = 6
GROUP_SIZE = 3

LEFT_POSITIONS = (
    {"top": "40%", "left": "10%"},
    {"top": "60%", "left": "5%"},
    {"top": "80%", "left": "10%"},
)
RIGHT_POSITIONS = (
    {"top": "40%", "right": "10%"},
    {"top": "60%", "right": "5%"},
    {"top": "80%", "right": "10%"},
)


class Viewport(Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"


@dataclass(frozen=True)
class PlacedMemo:
    memo: Memo
    side: Optional[str] = None
    position: Optional[dict] = None


@dataclass(frozen=True)
class Projection:
    viewport: Viewport
    placed: tuple[PlacedMemo, ...]

    @property
    def memos(self) -> list[Memo]:
        return [p.memo for p in self.placed]


def rank_memos(memos: list[Memo], limit: int = TOP_MEMO_COUNT) -> list[Memo]:
    """Largest donations first. Missing amounts count as zero; ties keep list order."""
    return sorted(memos, key=lambda memo: memo.amount or 0, reverse=True)[:limit]


def project(memos: list[Memo], viewport: Viewport) -> Projection:
    """Top memos by amount with desktop card positions.

    On desktop the first three go to the left column and the next three to the
    right column. Mobile gets no positions.
    """
    top = rank_memos(memos)

    if viewport == Viewport.MOBILE:
        return Projection(viewport, tuple(PlacedMemo(memo) for memo in top))

    placed = []
    for index, memo in enumerate(top):
        if index < GROUP_SIZE:
            placed.append(PlacedMemo(memo, "left", dict(LEFT_POSITIONS[index])))
        else:
            placed.append(PlacedMemo(memo, "right", dict(RIGHT_POSITIONS[index - GROUP_SIZE])))
    return Projection(viewport, tuple(placed))
