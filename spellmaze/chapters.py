"""
Bundled chapters.

Mazes use the integer tile tags from ``Tile``:
0 empty, 1 wall, 2 start, 3 goal, 4 torch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .interpreter import MOVE_COMMANDS, QUERY_COMMANDS
from .maze import Maze, Position

MOVES = tuple(MOVE_COMMANDS)
QUERIES = tuple(QUERY_COMMANDS)


@dataclass(frozen=True)
class Chapter:
    id: str
    title: str
    description: str
    rows: Tuple[Tuple[int, ...], ...]
    introductory_text: str
    success_message: str
    hints: Tuple[str, ...] = ()
    required_commands: Tuple[str, ...] = ()
    allowed_commands: Tuple[str, ...] = MOVES
    sample_solution: Optional[str] = None
    next_chapter_id: Optional[str] = None
    _maze: Maze = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_maze", Maze(self.rows))

    @property
    def maze(self) -> Maze:
        return self._maze

    @property
    def start(self) -> Position:
        return self._maze.start


CHAPTERS: Dict[str, Chapter] = {}


def _add(chapter: Chapter) -> None:
    CHAPTERS[chapter.id] = chapter


_add(
    Chapter(
        id="chapter1",
        title="Chapter 1: Basic Movement",
        description="Learn basic movement spells to navigate a simple dungeon.",
        rows=(
            (2, 0, 0, 1, 1),
            (1, 1, 0, 1, 1),
            (1, 1, 0, 0, 1),
            (1, 1, 1, 3, 1),
        ),
        introductory_text=(
            "Welcome, young wizard! Use moveUp(), moveDown(), moveLeft() and "
            "moveRight() to guide your wizard to the glowing goal tile."
        ),
        success_message="Congratulations! You've mastered the basic movement spells!",
        hints=(
            "Try using moveRight() to start along the corridor.",
            "If you hit a wall, try a different direction like moveDown().",
            "You can cast several movement spells one after another.",
            "The goal is the glowing tile at the bottom of the dungeon.",
        ),
        required_commands=("moveRight", "moveDown"),
        allowed_commands=MOVES,
        sample_solution=(
            "// Move right twice\n"
            "moveRight();\n"
            "moveRight();\n"
            "\n"
            "// Move down twice\n"
            "moveDown();\n"
            "moveDown();\n"
            "\n"
            "// Right and down to reach the goal\n"
            "moveRight();\n"
            "moveDown();\n"
        ),
        next_chapter_id="chapter2",
    )
)

_add(
    Chapter(
        id="chapter2",
        title="Chapter 2: Control Flow",
        description="Use while loops to cross long corridors.",
        rows=(
            (2, 0, 0, 0, 0, 0, 1),
            (1, 1, 1, 1, 1, 0, 1),
            (1, 0, 0, 0, 0, 0, 1),
            (1, 0, 1, 1, 1, 1, 1),
            (1, 0, 0, 0, 0, 0, 3),
        ),
        introductory_text=(
            "Long corridors ahead! A while loop repeats a spell for as long as "
            "its condition holds. Combine it with canMoveRight() and friends to "
            "walk until you reach a wall."
        ),
        success_message="Excellent work! You've learned to use control flow in your spells!",
        hints=(
            "Writing moveRight() over and over is tedious. Let a loop do it.",
            "Try: while canMoveRight():",
            "Everything indented under the while line is repeated.",
            "Combine several loops to wind through the dungeon.",
        ),
        required_commands=("while", "canMoveRight"),
        allowed_commands=MOVES + QUERIES,
        sample_solution=(
            "# Run along the top corridor\n"
            "while canMoveRight():\n"
            "    moveRight()\n"
            "moveDown()\n"
            "moveDown()\n"
            "\n"
            "while canMoveLeft():\n"
            "    moveLeft()\n"
            "moveDown()\n"
            "moveDown()\n"
            "\n"
            "while canMoveRight():\n"
            "    moveRight()\n"
        ),
        next_chapter_id="chapter3",
    )
)

_add(
    Chapter(
        id="chapter3",
        title="Chapter 3: Torchlight",
        description="Light every torch before the exit will open.",
        rows=(
            (2, 0, 4, 0, 1),
            (1, 1, 0, 1, 1),
            (4, 0, 0, 0, 3),
        ),
        introductory_text=(
            "The exit stays sealed until every torch burns. Stand on a torch and "
            "cast lightTorch(), then head for the goal. Define your own spells "
            "with def to avoid repeating yourself."
        ),
        success_message="Incredible! The dungeon is ablaze and the way is open!",
        hints=(
            "You can only light a torch while standing on it.",
            "Reaching the goal is not enough; every torch must be lit.",
            "def step_right(times): lets you reuse a group of moves.",
            "A for loop with range() repeats a spell an exact number of times.",
        ),
        required_commands=("lightTorch", "while"),
        allowed_commands=MOVES + QUERIES + ("lightTorch",),
        sample_solution=(
            "def step_right(times):\n"
            "    for _ in range(times):\n"
            "        moveRight()\n"
            "\n"
            "step_right(2)\n"
            "lightTorch()\n"
            "while canMoveDown():\n"
            "    moveDown()\n"
            "while canMoveLeft():\n"
            "    moveLeft()\n"
            "lightTorch()\n"
            "while canMoveRight():\n"
            "    moveRight()\n"
        ),
    )
)


def get_chapter(chapter_id: str) -> Optional[Chapter]:
    return CHAPTERS.get(chapter_id)


def all_chapters() -> List[Chapter]:
    return list(CHAPTERS.values())


def first_chapter() -> Chapter:
    return CHAPTERS["chapter1"]
