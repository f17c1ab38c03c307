"""
GridWar Spatial Model

Bounds checks, distance metrics and the occupancy board.
A cell holds at most one entity id, whatever the entity kind.
"""
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .config import GRID_SIZE

Position = Tuple[int, int]


def in_bounds(x: int, y: int, size: int = GRID_SIZE) -> bool:
    """Check if a cell lies on the grid."""
    return 0 <= x < size and 0 <= y < size


def manhattan(a: Position, b: Position) -> int:
    """|dx| + |dy|, used for movement and placement range."""
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def chebyshev(a: Position, b: Position) -> int:
    """max(|dx|, |dy|), used for attack and gathering range."""
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def ring(center: Position, radius: int, size: int = GRID_SIZE) -> Iterator[Position]:
    """Yield in-bounds cells at Manhattan distance exactly `radius`, row-major."""
    cx, cy = center
    if radius == 0:
        if in_bounds(cx, cy, size):
            yield center
        return
    for y in range(cy - radius, cy + radius + 1):
        span = radius - abs(y - cy)
        xs = (cx - span,) if span == 0 else (cx - span, cx + span)
        for x in xs:
            if in_bounds(x, y, size):
                yield (x, y)


def cells_within(center: Position, radius: int, size: int = GRID_SIZE) -> Iterator[Position]:
    """Yield in-bounds cells within Manhattan `radius`, excluding the center, row-major."""
    cx, cy = center
    for y in range(max(0, cy - radius), min(size - 1, cy + radius) + 1):
        for x in range(max(0, cx - radius), min(size - 1, cx + radius) + 1):
            if (x, y) != center and manhattan(center, (x, y)) <= radius:
                yield (x, y)


@dataclass
class Board:
    """The occupancy grid. Stores entity ids, None means empty."""
    width: int = GRID_SIZE
    height: int = GRID_SIZE
    cells: List[List[Optional[int]]] = field(default_factory=list)

    def __post_init__(self):
        if not self.cells:
            self.cells = [[None for _ in range(self.width)] for _ in range(self.height)]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def occupant(self, x: int, y: int) -> Optional[int]:
        """Get the entity id at a cell, None if empty or off the grid."""
        if not self.in_bounds(x, y):
            return None
        return self.cells[y][x]

    def is_empty(self, x: int, y: int) -> bool:
        """A cell is empty iff it is on the grid and holds nothing."""
        return self.in_bounds(x, y) and self.cells[y][x] is None

    def place(self, entity_id: int, x: int, y: int) -> None:
        """Put an entity on a free cell."""
        if not self.in_bounds(x, y):
            raise ValueError(f"Cell ({x}, {y}) is outside the {self.width}x{self.height} board")
        if self.cells[y][x] is not None:
            raise ValueError(
                f"Cell ({x}, {y}) already holds entity {self.cells[y][x]}, cannot place {entity_id}"
            )
        self.cells[y][x] = entity_id

    def vacate(self, x: int, y: int) -> None:
        if self.in_bounds(x, y):
            self.cells[y][x] = None

    def move(self, entity_id: int, src: Position, dst: Position) -> None:
        """Move an entity between cells."""
        if self.occupant(*src) != entity_id:
            raise ValueError(f"Entity {entity_id} is not at {src}")
        self.place(entity_id, *dst)
        self.vacate(*src)

    def occupied_cells(self) -> Iterator[Tuple[Position, int]]:
        for y, row in enumerate(self.cells):
            for x, entity_id in enumerate(row):
                if entity_id is not None:
                    yield (x, y), entity_id
