from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class GridConfigError(ValueError):
    """Raised when a grid configuration violates its invariants."""


@dataclass(frozen=True, slots=True, order=True)
class Coordinate:
    """1-indexed grid cell: x grows to the right, y grows downwards."""

    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "Coordinate":
        return Coordinate(self.x + dx, self.y + dy)


class CellKind(StrEnum):
    empty = "empty"
    obstacle = "obstacle"
    goal = "goal"


@dataclass(frozen=True, slots=True)
class GridModel:
    """Static grid geometry.

    Holds no state beyond configuration. All invariants are checked at
    construction; a GridModel that exists is always valid:
      - width and height are >= 2
      - start, goal and every obstacle lie within bounds
      - obstacles never include the goal or the start cell
      - start and goal are distinct
    """

    width: int
    height: int
    start: Coordinate
    goal: Coordinate
    obstacles: frozenset[Coordinate] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.width < 2 or self.height < 2:
            raise GridConfigError(f"Grid must be at least 2x2 (got {self.width}x{self.height})")

        # Accept any iterable of coordinates; store a frozenset.
        object.__setattr__(self, "obstacles", frozenset(self.obstacles))

        if not self.is_in_bounds(self.start):
            raise GridConfigError(f"Start cell {self.start} is out of bounds")
        if not self.is_in_bounds(self.goal):
            raise GridConfigError(f"Goal cell {self.goal} is out of bounds")
        if self.start == self.goal:
            raise GridConfigError("Start cell must not be the goal")

        outside = sorted(c for c in self.obstacles if not self.is_in_bounds(c))
        if outside:
            raise GridConfigError(f"Obstacles out of bounds: {outside}")
        if self.goal in self.obstacles:
            raise GridConfigError(f"Goal cell {self.goal} overlaps an obstacle")
        if self.start in self.obstacles:
            raise GridConfigError(f"Start cell {self.start} overlaps an obstacle")

    def is_in_bounds(self, cell: Coordinate) -> bool:
        return 1 <= cell.x <= self.width and 1 <= cell.y <= self.height

    def classify(self, cell: Coordinate) -> CellKind:
        # Obstacle and goal sets are disjoint, so the order only matters conceptually.
        if cell in self.obstacles:
            return CellKind.obstacle
        if cell == self.goal:
            return CellKind.goal
        return CellKind.empty


def _cells(*pairs: tuple[int, int]) -> frozenset[Coordinate]:
    return frozenset(Coordinate(x, y) for x, y in pairs)


DEFAULT_GRID = GridModel(
    width=15,
    height=10,
    start=Coordinate(1, 1),
    goal=Coordinate(14, 10),
    obstacles=_cells(
        (2, 1),
        (3, 2),
        (5, 3),
        (7, 4),
        (9, 5),
        (11, 6),
        (13, 7),
        (5, 8),
        (8, 9),
        (10, 10),
    ),
)
