"""Primitive actions produced by compiling a spell."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple, Union

from .maze import Position

# Spell command -> (dx, dy)
DIRECTIONS: Dict[str, Tuple[int, int]] = {
    "Up": (0, -1),
    "Down": (0, 1),
    "Left": (-1, 0),
    "Right": (1, 0),
}


@dataclass(frozen=True)
class Move:
    dx: int
    dy: int

    def __post_init__(self) -> None:
        if self.dx not in (-1, 0, 1) or self.dy not in (-1, 0, 1):
            raise ValueError(f"Move({self.dx}, {self.dy}) must step one tile.")
        if (self.dx == 0) == (self.dy == 0):
            raise ValueError(
                f"Move({self.dx}, {self.dy}) must have exactly one non-zero axis."
            )

    def __str__(self) -> str:
        return f"Move({self.dx},{self.dy})"


@dataclass(frozen=True)
class LightTorch:
    at: Position

    def __str__(self) -> str:
        return f"LightTorch({self.at.x},{self.at.y})"


Action = Union[Move, LightTorch]
