from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from gridgame.core.events import MoveEvent
from gridgame.core.grid import CellKind, Coordinate, GridModel


class Direction(StrEnum):
    up = "up"
    down = "down"
    left = "left"
    right = "right"


DIRECTION_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.up: (0, -1),
    Direction.down: (0, 1),
    Direction.left: (-1, 0),
    Direction.right: (1, 0),
}


@dataclass(slots=True)
class PlayerState:
    position: Coordinate
    has_won: bool = False


class MovementEngine:
    """Owns the player position and win flag; validates moves against the grid.

    `attempt_move` is the single entry point for movement. It never raises:
    post-victory and out-of-bounds intents are silent no-ops (no events), an
    obstacle yields a BLOCKED event without moving, and anything else moves
    the player and yields MOVED (plus WON when the goal is reached).

    Scheduling the collision reset is the session lifecycle's job; the engine
    only reports the collision.
    """

    def __init__(self, grid: GridModel) -> None:
        self.grid = grid
        self._player = PlayerState(position=grid.start)

    @property
    def position(self) -> Coordinate:
        return self._player.position

    @property
    def has_won(self) -> bool:
        return self._player.has_won

    def attempt_move(self, direction: Direction | str) -> list[MoveEvent]:
        if self._player.has_won:
            return []

        dx, dy = DIRECTION_DELTAS[Direction(direction)]
        candidate = self._player.position.offset(dx, dy)
        if not self.grid.is_in_bounds(candidate):
            return []

        kind = self.grid.classify(candidate)
        if kind is CellKind.obstacle:
            return [MoveEvent.now(type="BLOCKED", cell=candidate)]

        self._player.position = candidate
        events = [MoveEvent.now(type="MOVED", cell=candidate)]

        if candidate == self.grid.goal:
            self._player.has_won = True
            events.append(MoveEvent.now(type="WON", cell=candidate))

        return events

    def reset(self) -> None:
        self._player = PlayerState(position=self.grid.start)
