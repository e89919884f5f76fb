"""
Movement runner: replays compiled actions against the maze one step at a time.

The runner does not own a clock. The host loop (the pygame window, the
asyncio ``play`` driver, or a test) feeds it elapsed time through
``Run.advance`` and it commits one action every ``step_interval_ms``.
Elapsed time is accumulated, so uneven frame times neither drop nor bunch
up steps.

    run = start(actions, maze.start, maze, maze.torch_states(),
                on_step, on_torch_update, on_end)
    while run.running:
        run.advance(clock.tick(FPS))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .actions import Action, LightTorch, Move
from .errors import SpellError
from .interpreter import MAX_ACTIONS, compile_spell
from .maze import Maze, Position, TorchState

logger = logging.getLogger(__name__)

STEP_INTERVAL_MS = 200.0  # Time between committed actions
FRAME_MS = 1000.0 / 60  # Frame period used by the asyncio driver

SUCCESS_MESSAGE = "The spell worked! You reached the goal."
WALL_MESSAGE = "You hit a wall at position ({x}, {y}). Your spell needs adjusting!"
TORCHES_UNLIT_MESSAGE = (
    "You reached the goal, but not every torch is lit. "
    "Light all the torches before finishing!"
)
GOAL_NOT_REACHED_MESSAGE = (
    "Your spell finished, but you didn't reach the goal. Try a different approach!"
)


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"


class FailReason(Enum):
    WALL = "wall"
    TORCHES_UNLIT = "torches_unlit"
    GOAL_NOT_REACHED = "goal_not_reached"


@dataclass(frozen=True)
class Success:
    def describe(self) -> str:
        return SUCCESS_MESSAGE


@dataclass(frozen=True)
class Fail:
    reason: FailReason
    message: str
    position: Optional[Position] = None

    def describe(self) -> str:
        return self.message


@dataclass(frozen=True)
class Error:
    """A spell that could not be compiled; movement never started."""

    message: str
    category: str = "spell"

    @classmethod
    def from_exception(cls, exc: SpellError) -> "Error":
        return cls(exc.describe(), exc.category)

    def describe(self) -> str:
        return self.message


Outcome = Union[Success, Fail, Error]

StepFn = Callable[[Position], None]
TorchFn = Callable[[List[TorchState]], None]
EndFn = Callable[[Outcome], None]


class Run:
    """
    A single replay of an action list.

    States go IDLE -> RUNNING -> SUCCEEDED / FAILED / STOPPED. ``on_end`` is
    called exactly once when the run finishes by itself and never after
    ``stop()``. Position and torch state belong to the run; callbacks only
    receive copies. ``torch_states`` defaults to the maze's torches, all
    unlit; a list that does not cover exactly the maze's torches is rejected.
    """

    def __init__(
        self,
        actions: Sequence[Action],
        initial_position: Tuple[int, int],
        maze: Maze,
        torch_states: Optional[Iterable[TorchState]] = None,
        on_step: Optional[StepFn] = None,
        on_torch_update: Optional[TorchFn] = None,
        on_end: Optional[EndFn] = None,
        *,
        step_interval_ms: float = STEP_INTERVAL_MS,
    ) -> None:
        if step_interval_ms < 0:
            raise ValueError("step_interval_ms must not be negative.")
        if torch_states is None:
            torch_states = maze.torch_states()

        self.actions: Tuple[Action, ...] = tuple(actions)
        self.maze = maze
        self.position = Position(*initial_position)
        self.torches: Dict[Position, bool] = {
            Position(*t.position): bool(t.lit) for t in torch_states
        }
        if set(self.torches) != set(maze.torches):
            raise ValueError("torch_states must have one entry per torch tile in the maze.")
        self.on_step = on_step or (lambda pos: None)
        self.on_torch_update = on_torch_update or (lambda torches: None)
        self.on_end = on_end or (lambda outcome: None)
        self.step_interval_ms = float(step_interval_ms)

        self.cursor = 0
        self.state = RunState.IDLE
        self.outcome: Optional[Outcome] = None
        self._elapsed = 0.0

    def __repr__(self) -> str:
        return (
            f"Run(state={self.state.value}, cursor={self.cursor}/{len(self.actions)}, "
            f"position={tuple(self.position)})"
        )

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    @property
    def finished(self) -> bool:
        return self.state in (RunState.SUCCEEDED, RunState.FAILED, RunState.STOPPED)

    def torch_snapshot(self) -> List[TorchState]:
        return [TorchState(p, lit) for p, lit in self.torches.items()]

    def all_torches_lit(self) -> bool:
        return all(self.torches.values())

    # ------------------------------------------------------------------ #
    # Control
    # ------------------------------------------------------------------ #

    def begin(self) -> "Run":
        if self.state is RunState.IDLE:
            self.state = RunState.RUNNING
            logger.debug("run started with %d actions at %s", len(self.actions), self.position)
        return self

    def stop(self) -> None:
        """Cancel the run. Safe to call any number of times, in any state."""
        if self.state in (RunState.IDLE, RunState.RUNNING):
            self.state = RunState.STOPPED
            logger.debug("run stopped at action %d", self.cursor)

    def advance(self, elapsed_ms: float) -> bool:
        """
        Feed elapsed host time. Commits at most one action per call, once a
        full interval has accumulated. Returns True if an action was taken.
        """
        if self.state is not RunState.RUNNING:
            return False
        self._elapsed += max(0.0, float(elapsed_ms))
        if self._elapsed < self.step_interval_ms:
            return False
        self._elapsed = min(self._elapsed - self.step_interval_ms, self.step_interval_ms)
        self.step()
        return True

    def step(self) -> None:
        """Commit the next action immediately, ignoring pacing."""
        if self.state is not RunState.RUNNING:
            return

        if self.cursor < len(self.actions):
            action = self.actions[self.cursor]
            self.cursor += 1
            if isinstance(action, Move):
                self._move(action)
            elif isinstance(action, LightTorch):
                self._light(action)
            else:
                raise TypeError(f"Unknown action: {action!r}")
            if self.state is not RunState.RUNNING:
                return

        if self.cursor >= len(self.actions):
            self._finish_exhausted()

    # ------------------------------------------------------------------ #
    # Actions
    # ------------------------------------------------------------------ #

    def _move(self, action: Move) -> None:
        dest = self.position.offset(action.dx, action.dy)
        if not self.maze.can_move(self.position, action.dx, action.dy):
            self._end(
                RunState.FAILED,
                Fail(FailReason.WALL, WALL_MESSAGE.format(x=dest.x, y=dest.y), dest),
            )
            return

        self.position = dest
        logger.debug("step %d: moved to %s", self.cursor, dest)
        self.on_step(dest)
        if self.state is not RunState.RUNNING:
            return
        if self.maze.is_goal(dest) and self.all_torches_lit():
            self._end(RunState.SUCCEEDED, Success())

    def _light(self, action: LightTorch) -> None:
        at = Position(*action.at)
        if at in self.torches:
            self.torches[at] = True
        else:
            logger.warning("LightTorch at %s does not match any torch", at)
        self.on_torch_update(self.torch_snapshot())

    def _finish_exhausted(self) -> None:
        if not self.maze.is_goal(self.position):
            self._end(
                RunState.FAILED,
                Fail(FailReason.GOAL_NOT_REACHED, GOAL_NOT_REACHED_MESSAGE, self.position),
            )
        elif not self.all_torches_lit():
            self._end(
                RunState.FAILED,
                Fail(FailReason.TORCHES_UNLIT, TORCHES_UNLIT_MESSAGE, self.position),
            )
        else:
            self._end(RunState.SUCCEEDED, Success())

    def _end(self, state: RunState, outcome: Outcome) -> None:
        self.state = state
        self.outcome = outcome
        logger.info("run %s: %s", state.value, outcome.describe())
        self.on_end(outcome)


def start(
    actions: Sequence[Action],
    initial_position: Tuple[int, int],
    maze: Maze,
    torch_states: Optional[Iterable[TorchState]] = None,
    on_step: Optional[StepFn] = None,
    on_torch_update: Optional[TorchFn] = None,
    on_end: Optional[EndFn] = None,
    *,
    step_interval_ms: float = STEP_INTERVAL_MS,
) -> Run:
    """Begin replaying ``actions``. Stop any previous run on the same maze view first."""
    return Run(
        actions,
        initial_position,
        maze,
        torch_states,
        on_step,
        on_torch_update,
        on_end,
        step_interval_ms=step_interval_ms,
    ).begin()


def cast_spell(
    source: str,
    maze: Maze,
    start_position: Optional[Tuple[int, int]] = None,
    *,
    on_step: Optional[StepFn] = None,
    on_torch_update: Optional[TorchFn] = None,
    on_end: Optional[EndFn] = None,
    allowed: Optional[Iterable[str]] = None,
    max_actions: int = MAX_ACTIONS,
    step_interval_ms: float = STEP_INTERVAL_MS,
) -> Optional[Run]:
    """
    Compile and start a spell in one go.

    A spell that fails to compile is reported through ``on_end`` as an
    ``Error`` outcome and no run is started (returns None).
    """
    if start_position is None:
        start_position = maze.start
    try:
        actions = compile_spell(
            source, maze, start_position, max_actions=max_actions, allowed=allowed
        )
    except SpellError as e:
        outcome = Error.from_exception(e)
        logger.info("spell rejected (%s): %s", e.category, e)
        if on_end is not None:
            on_end(outcome)
        return None
    return start(
        actions,
        start_position,
        maze,
        maze.torch_states(),
        on_step,
        on_torch_update,
        on_end,
        step_interval_ms=step_interval_ms,
    )


# ----------------------------------------------------------------------------
# Drivers
# ----------------------------------------------------------------------------


def run_to_end(run: Run) -> Optional[Outcome]:
    """Replay the remaining actions without pacing."""
    while run.running:
        run.step()
    return run.outcome


async def play(run: Run, frame_ms: float = FRAME_MS) -> Optional[Outcome]:
    """Drive ``run`` from the asyncio loop clock until it finishes or is stopped."""
    loop = asyncio.get_running_loop()
    last = loop.time()
    while run.running:
        await asyncio.sleep(frame_ms / 1000.0)
        now = loop.time()
        run.advance((now - last) * 1000.0)
        last = now
    return run.outcome
