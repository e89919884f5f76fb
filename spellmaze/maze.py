"""
Maze model shared by the spell interpreter and the movement runner.

A maze is an immutable grid of tiles with the origin (0, 0) in the top-left
corner. Positions are (x, y) pairs: x grows to the right, y grows downwards.

Both the interpreter (which simulates a cursor while compiling a spell) and
the runner (which replays the compiled actions) decide whether a step is
legal through ``Maze.can_move``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, NamedTuple, Sequence, Tuple


class Tile(IntEnum):
    EMPTY = 0
    WALL = 1
    START = 2
    GOAL = 3
    TORCH = 4


# Text form used by Maze.from_text
TILE_CHARS = {
    ".": Tile.EMPTY,
    " ": Tile.EMPTY,
    "#": Tile.WALL,
    "S": Tile.START,
    "G": Tile.GOAL,
    "T": Tile.TORCH,
}


class Position(NamedTuple):
    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "Position":
        return Position(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class TorchState:
    position: Position
    lit: bool = False


class Maze:
    """Read-only rectangular grid of tiles."""

    def __init__(self, rows: Sequence[Sequence[int]]) -> None:
        if not rows or not rows[0]:
            raise ValueError("Maze is empty.")

        width = len(rows[0])
        grid = []
        for y, row in enumerate(rows):
            if len(row) != width:
                raise ValueError("All maze rows must be the same width.")
            try:
                grid.append(tuple(Tile(int(v)) for v in row))
            except ValueError:
                raise ValueError(f"Unknown tile value in row {y}: {list(row)}")

        self._grid: Tuple[Tuple[Tile, ...], ...] = tuple(grid)
        self.width = width
        self.height = len(grid)
        self.goals = self._find(Tile.GOAL)
        self.torches = self._find(Tile.TORCH)

        starts = self._find(Tile.START)
        self.start = starts[0] if starts else Position(0, 0)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[int]]) -> "Maze":
        return cls([list(r) for r in rows])

    @classmethod
    def from_text(cls, text: str) -> "Maze":
        lines = [ln.rstrip("\n") for ln in text.splitlines() if ln.strip() != ""]
        rows = []
        for ln in lines:
            try:
                rows.append([TILE_CHARS[ch] for ch in ln])
            except KeyError as e:
                raise ValueError(f"Unknown maze character {e.args[0]!r}.")
        return cls(rows)

    def __repr__(self) -> str:
        return f"Maze({self.width}x{self.height}, torches={len(self.torches)})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Maze) and self._grid == other._grid

    def __hash__(self) -> int:
        return hash(self._grid)

    def _find(self, kind: Tile) -> Tuple[Position, ...]:
        return tuple(
            Position(x, y)
            for y, row in enumerate(self._grid)
            for x, t in enumerate(row)
            if t == kind
        )

    @property
    def rows(self) -> List[List[int]]:
        return [[int(t) for t in row] for row in self._grid]

    def in_bounds(self, pos: Tuple[int, int]) -> bool:
        x, y = pos
        return 0 <= x < self.width and 0 <= y < self.height

    def tile(self, pos: Tuple[int, int]) -> Tile:
        # Anything outside the grid behaves like a wall
        if not self.in_bounds(pos):
            return Tile.WALL
        x, y = pos
        return self._grid[y][x]

    def is_goal(self, pos: Tuple[int, int]) -> bool:
        return self.tile(pos) == Tile.GOAL

    def is_torch(self, pos: Tuple[int, int]) -> bool:
        return self.tile(pos) == Tile.TORCH

    def can_move(self, pos: Tuple[int, int], dx: int, dy: int) -> bool:
        """True if stepping (dx, dy) from pos stays in bounds and off walls."""
        dest = (pos[0] + dx, pos[1] + dy)
        return self.in_bounds(dest) and self.tile(dest) != Tile.WALL

    def torch_states(self) -> List[TorchState]:
        return [TorchState(p, False) for p in self.torches]
