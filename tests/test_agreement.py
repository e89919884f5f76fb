"""
The interpreter's simulated cursor and the runner must agree on every move.

Random walks are compiled through ``SpellCaster`` and replayed through the
runner; both sides must accept and reject exactly the same steps.
"""

import random

import pytest

from spellmaze.actions import DIRECTIONS, Move
from spellmaze.interpreter import SpellCaster, compile_spell
from spellmaze.maze import Maze, Tile
from spellmaze.runner import Fail, FailReason, RunState, run_to_end, start


def random_maze(rng, width, height):
    rows = [
        [int(Tile.WALL) if rng.random() < 0.3 else int(Tile.EMPTY) for _ in range(width)]
        for _ in range(height)
    ]
    rows[0][0] = int(Tile.START)
    return Maze(rows)


@pytest.mark.parametrize("seed", range(25))
def test_cursor_and_runner_agree_on_random_walks(seed):
    rng = random.Random(seed)
    maze = random_maze(rng, rng.randint(2, 7), rng.randint(2, 7))
    caster = SpellCaster(maze, maze.start)
    runner_positions = []
    cursor_positions = []

    for _ in range(30):
        dx, dy = rng.choice(list(DIRECTIONS.values()))
        legal = caster.can_move(dx, dy)
        caster.move(dx, dy)
        if not legal:
            break
        cursor_positions.append(caster.cursor)

    run = start(caster.actions, maze.start, maze, None, runner_positions.append)
    outcome = run_to_end(run)

    assert runner_positions == cursor_positions
    assert run.position == caster.cursor
    if isinstance(outcome, Fail) and outcome.reason is FailReason.WALL:
        # the runner stops exactly on the move the cursor refused
        last = caster.actions[-1]
        assert run.cursor == len(cursor_positions) + 1
        assert not maze.can_move(run.position, last.dx, last.dy)


def test_queries_match_runner_validity():
    maze = Maze(
        [
            [2, 0, 1],
            [0, 1, 3],
        ]
    )
    src = (
        "for d in range(4):\n"
        "    if d == 0 and canMoveRight():\n"
        "        moveRight()\n"
        "    if d == 1 and canMoveDown():\n"
        "        moveDown()\n"
        "    if d == 2 and canMoveRight():\n"
        "        moveRight()\n"
    )
    actions = compile_spell(src, maze, maze.start)
    # (1, 0): down is a wall, right is a wall; only the first move is legal
    assert actions == [Move(1, 0)]
    run = start(actions, maze.start, maze)
    outcome = run_to_end(run)
    assert run.state is RunState.FAILED
    assert outcome.reason is FailReason.GOAL_NOT_REACHED
