from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from gridgame.core.grid import Coordinate

MoveEventType = Literal[
    "MOVED",
    "BLOCKED",
    "WON",
]


@dataclass(frozen=True, slots=True)
class MoveEvent:
    """Semantic signal emitted by the movement engine.

    `cell` is the cell the event refers to: the new position for MOVED/WON,
    the obstacle that stopped the player for BLOCKED.
    """

    type: MoveEventType
    cell: Coordinate
    ts: datetime

    @staticmethod
    def now(*, type: MoveEventType, cell: Coordinate) -> "MoveEvent":
        return MoveEvent(type=type, cell=cell, ts=datetime.now(timezone.utc))
