"""SpellMaze: learners cast Python spells to guide a wizard through a dungeon."""

from .actions import Action, LightTorch, Move
from .errors import CompileError, RuntimeTrapError, SpellError
from .interpreter import MAX_ACTIONS, SPELL_COMMANDS, compile_spell
from .maze import Maze, Position, Tile, TorchState
from .requirements import RequirementReport, check_required_commands
from .runner import (
    STEP_INTERVAL_MS,
    Error,
    Fail,
    FailReason,
    Outcome,
    Run,
    RunState,
    Success,
    cast_spell,
    play,
    run_to_end,
    start,
)

__all__ = [
    "Action",
    "LightTorch",
    "Move",
    "CompileError",
    "RuntimeTrapError",
    "SpellError",
    "MAX_ACTIONS",
    "SPELL_COMMANDS",
    "compile_spell",
    "Maze",
    "Position",
    "Tile",
    "TorchState",
    "RequirementReport",
    "check_required_commands",
    "STEP_INTERVAL_MS",
    "Error",
    "Fail",
    "FailReason",
    "Outcome",
    "Run",
    "RunState",
    "Success",
    "cast_spell",
    "play",
    "run_to_end",
    "start",
]
