"""
Spell interpreter
=================

Learners write spells in plain Python syntax. The source is parsed with
``ast``, checked against an allow-list of node types, and then evaluated by
a small tree-walking interpreter. No ``exec``, no builtins, no imports: the
only callables a spell can reach are the spell commands below, ``range()``
in for-loops, and functions the spell defines itself.

Spell commands
--------------
  moveUp(), moveDown(), moveLeft(), moveRight()
  canMoveUp(), canMoveDown(), canMoveLeft(), canMoveRight()
  lightTorch()

Compiling a spell runs it to completion against a simulated cursor and
returns the list of actions it produced. Queries such as ``canMoveRight()``
answer for the cursor position reached by the moves made so far in the same
spell, not for wherever the avatar is on screen.
"""

from __future__ import annotations

import ast
import logging
import operator
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .actions import DIRECTIONS, Action, LightTorch, Move
from .errors import CompileError, RuntimeTrapError, SpellError
from .maze import Maze, Position

logger = logging.getLogger(__name__)

MAX_ACTIONS = 1000  # Ceiling on actions a single spell may produce
MAX_STEPS = 100_000  # Evaluated statements and loop rounds per spell
MAX_CALL_DEPTH = 50  # Nested calls of spell-defined functions
MAX_NUMBER = 10**12  # Largest number a spell may compute
INDENT_SPACES = 4

MOVE_COMMANDS = {f"move{name}": delta for name, delta in DIRECTIONS.items()}
QUERY_COMMANDS = {f"canMove{name}": delta for name, delta in DIRECTIONS.items()}
TORCH_COMMANDS = {"lightTorch"}
SPELL_COMMANDS = frozenset(MOVE_COMMANDS) | frozenset(QUERY_COMMANDS) | TORCH_COMMANDS

RESERVED_NAMES = SPELL_COMMANDS | {"range"}

CommandTable = Dict[str, Callable[[], object]]

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_CMP_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


# ----------------------------------------------------------------------------
# Simulated cursor
# ----------------------------------------------------------------------------


class SpellCaster:
    """
    Backs the spell commands while a spell is compiled.

    Moves and torch lighting are recorded as actions; the cursor follows the
    moves so later queries see the position the avatar will have reached.
    A blocked move is still recorded (the runner reports the collision) but
    leaves the cursor where it is.
    """

    def __init__(self, maze: Maze, start: Tuple[int, int], max_actions: int = MAX_ACTIONS):
        self.maze = maze
        self.cursor = Position(*start)
        self.max_actions = max_actions
        self.actions: List[Action] = []

    def _record(self, action: Action) -> None:
        if len(self.actions) >= self.max_actions:
            raise RuntimeTrapError(
                f"Your spell made more than {self.max_actions} moves. "
                "Is there an infinite loop?"
            )
        self.actions.append(action)

    def move(self, dx: int, dy: int) -> None:
        self._record(Move(dx, dy))
        if self.maze.can_move(self.cursor, dx, dy):
            self.cursor = self.cursor.offset(dx, dy)

    def can_move(self, dx: int, dy: int) -> bool:
        return self.maze.can_move(self.cursor, dx, dy)

    def light_torch(self) -> None:
        if not self.maze.is_torch(self.cursor):
            raise RuntimeTrapError("You must be standing on a torch to light it.")
        self._record(LightTorch(self.cursor))

    def commands(self, allowed: Optional[Iterable[str]] = None) -> CommandTable:
        table: CommandTable = {}
        for name, (dx, dy) in MOVE_COMMANDS.items():
            table[name] = lambda dx=dx, dy=dy: self.move(dx, dy)
        for name, (dx, dy) in QUERY_COMMANDS.items():
            table[name] = lambda dx=dx, dy=dy: self.can_move(dx, dy)
        table["lightTorch"] = self.light_torch

        if allowed is None:
            return table
        allowed = set(allowed)
        unknown = allowed - SPELL_COMMANDS
        if unknown:
            raise ValueError(f"Unknown spell commands: {', '.join(sorted(unknown))}")
        return {k: v for k, v in table.items() if k in allowed}


# ----------------------------------------------------------------------------
# Parsing & validation
# ----------------------------------------------------------------------------


def preprocess_source(src: str) -> str:
    """Normalise newlines and tabs, and accept whole-line ``//`` comments."""
    src = src.replace("\r\n", "\n").replace("\r", "\n")
    src = src.expandtabs(INDENT_SPACES)
    lines = []
    for line in src.split("\n"):
        stripped = line.lstrip(" ")
        if stripped.startswith("//"):
            line = line[: len(line) - len(stripped)] + "#" + stripped[2:]
        lines.append(line)
    return "\n".join(lines)


def parse_spell(src: str) -> ast.Module:
    try:
        return ast.parse(preprocess_source(src), mode="exec")
    except SyntaxError as e:
        msg = (e.msg or "invalid syntax").lower()
        if "expected an indented block" in msg:
            text = (
                "expected an indented block after a line ending in ':' "
                "such as 'if', 'else', 'while', 'for' or 'def'."
            )
        elif "unindent does not match" in msg:
            text = "this line is not lined up with the block it belongs to."
        else:
            text = e.msg or "invalid syntax"
        raise CompileError(text, e.lineno)


def validate_spell(
    tree: ast.Module, commands: CommandTable, known: Iterable[str] = SPELL_COMMANDS
) -> None:
    """
    Walk the tree and make sure it only uses the supported subset.

    Calls are checked for the whole spell, including branches that may never
    run, so a misspelt command is reported before anything moves.
    """
    known = set(known)
    defined = {n.name for n in ast.walk(tree) if isinstance(n, ast.FunctionDef)}

    def err(n: ast.AST, msg: str, identifier: Optional[str] = None, unknown: bool = False):
        raise CompileError(
            msg, getattr(n, "lineno", None), identifier=identifier, unknown=unknown
        )

    def check_name(n: ast.AST, name: str, storing: bool = False) -> None:
        if name.startswith("__"):
            err(n, f"names starting with '__' are not allowed ('{name}').")
        if storing and name in RESERVED_NAMES:
            err(n, f"'{name}' is a spell command and cannot be changed.")

    def check_call(n: ast.Call, in_for: bool = False) -> None:
        if not isinstance(n.func, ast.Name):
            err(n, "only simple commands like moveRight() can be called.")
        fname = n.func.id
        if n.keywords or any(isinstance(a, ast.Starred) for a in n.args):
            err(n, f"{fname}() only takes plain arguments.")
        if fname == "range":
            if not in_for:
                err(n, "range() can only be used in a for loop.")
            if not 1 <= len(n.args) <= 3:
                err(n, "range() takes 1 to 3 arguments.")
        elif fname in commands:
            if n.args:
                err(n, f"{fname}() does not take arguments.")
        elif fname in known:
            err(n, f"'{fname}' is not available in this chapter.", identifier=fname)
        elif fname not in defined:
            err(
                n,
                f"'{fname}' is not an approved spell command.",
                identifier=fname,
                unknown=True,
            )
        for a in n.args:
            check_expr(a)

    def check_expr(n: ast.AST) -> None:
        if isinstance(n, ast.Constant):
            if n.value is not None and not isinstance(n.value, (bool, int, float)):
                err(n, "only numbers, True, False and None can be used as values.")
        elif isinstance(n, ast.Name):
            check_name(n, n.id)
            if n.id in RESERVED_NAMES:
                err(n, f"'{n.id}' is a command; call it with '{n.id}()'.")
        elif isinstance(n, ast.Call):
            check_call(n)
        elif isinstance(n, ast.UnaryOp) and isinstance(n.op, (ast.Not, ast.USub, ast.UAdd)):
            check_expr(n.operand)
        elif isinstance(n, ast.BinOp):
            if type(n.op) not in _BIN_OPS:
                err(n, f"the '{type(n.op).__name__}' operator is not allowed.")
            check_expr(n.left)
            check_expr(n.right)
        elif isinstance(n, ast.BoolOp):
            for v in n.values:
                check_expr(v)
        elif isinstance(n, ast.Compare):
            for op in n.ops:
                if type(op) not in _CMP_OPS:
                    err(n, "only ==, !=, <, <=, > and >= comparisons are allowed.")
            check_expr(n.left)
            for c in n.comparators:
                check_expr(c)
        elif isinstance(n, ast.IfExp):
            check_expr(n.test)
            check_expr(n.body)
            check_expr(n.orelse)
        else:
            err(n, f"unsupported expression: {type(n).__name__}")

    def check_block(stmts: List[ast.stmt], loop: bool, func: bool) -> None:
        for s in stmts:
            check_stmt(s, loop, func)

    def check_stmt(s: ast.stmt, loop: bool, func: bool) -> None:
        if isinstance(s, ast.Expr):
            check_expr(s.value)
        elif isinstance(s, ast.Assign):
            for t in s.targets:
                if not isinstance(t, ast.Name):
                    err(s, "use a simple 'name = value' assignment.")
                check_name(s, t.id, storing=True)
            check_expr(s.value)
        elif isinstance(s, ast.AugAssign):
            if not isinstance(s.target, ast.Name):
                err(s, "use a simple 'name += value' assignment.")
            if type(s.op) not in _BIN_OPS:
                err(s, f"the '{type(s.op).__name__}' operator is not allowed.")
            check_name(s, s.target.id, storing=True)
            check_expr(s.value)
        elif isinstance(s, (ast.If, ast.While)):
            check_expr(s.test)
            check_block(s.body, loop or isinstance(s, ast.While), func)
            check_block(s.orelse, loop, func)
        elif isinstance(s, ast.For):
            if not isinstance(s.target, ast.Name):
                err(s, "for-loop variable must be a simple name.")
            check_name(s, s.target.id, storing=True)
            if not (
                isinstance(s.iter, ast.Call)
                and isinstance(s.iter.func, ast.Name)
                and s.iter.func.id == "range"
            ):
                err(s, "for loops must use range(), e.g. 'for i in range(3):'.")
            check_call(s.iter, in_for=True)
            check_block(s.body, True, func)
            check_block(s.orelse, loop, func)
        elif isinstance(s, (ast.Break, ast.Continue)):
            if not loop:
                err(s, f"'{type(s).__name__.lower()}' must be inside a loop.")
        elif isinstance(s, ast.Pass):
            return
        elif isinstance(s, ast.FunctionDef):
            check_name(s, s.name, storing=True)
            a = s.args
            if (
                s.decorator_list
                or s.returns is not None
                or a.vararg
                or a.kwarg
                or a.kwonlyargs
                or a.posonlyargs
                or a.defaults
                or getattr(s, "type_params", None)
            ):
                err(s, f"def {s.name}(...) may only list plain parameter names.")
            for arg in a.args:
                if arg.annotation is not None:
                    err(s, "parameter annotations are not allowed.")
                check_name(s, arg.arg, storing=True)
            check_block(s.body, False, True)
        elif isinstance(s, ast.Return):
            if not func:
                err(s, "'return' must be inside a def.")
            if s.value is not None:
                check_expr(s.value)
        else:
            err(s, f"{type(s).__name__} is not allowed in a spell.")

    check_block(tree.body, False, False)


# ----------------------------------------------------------------------------
# Evaluation
# ----------------------------------------------------------------------------


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class _Return(Exception):
    def __init__(self, value: object) -> None:
        self.value = value


@dataclass(eq=False)
class _Frame:
    """Locals of one call to a spell function."""

    name: str
    values: Dict[str, object]
    local_names: FrozenSet[str]
    parent: Optional["_Frame"] = field(default=None, repr=False)


@dataclass(eq=False)
class _SpellFunction:
    name: str
    params: List[str]
    body: List[ast.stmt] = field(repr=False)
    local_names: FrozenSet[str] = frozenset()
    # frame the def ran in; None for top-level functions
    closure: Optional[_Frame] = field(default=None, repr=False)


def _local_names(fn: ast.FunctionDef) -> FrozenSet[str]:
    """Names a function assigns to, which makes them local as in Python."""
    names = {a.arg for a in fn.args.args}

    def visit(stmts: List[ast.stmt]) -> None:
        for s in stmts:
            if isinstance(s, ast.Assign):
                names.update(t.id for t in s.targets)
            elif isinstance(s, ast.AugAssign):
                names.add(s.target.id)
            elif isinstance(s, ast.For):
                names.add(s.target.id)
                visit(s.body)
                visit(s.orelse)
            elif isinstance(s, (ast.If, ast.While)):
                visit(s.body)
                visit(s.orelse)
            elif isinstance(s, ast.FunctionDef):
                names.add(s.name)

    visit(fn.body)
    return frozenset(names)


class SpellInterpreter:
    """Evaluate a validated spell against a table of spell commands."""

    def __init__(
        self,
        commands: CommandTable,
        *,
        max_steps: int = MAX_STEPS,
        max_call_depth: int = MAX_CALL_DEPTH,
        known: Iterable[str] = SPELL_COMMANDS,
    ) -> None:
        self.commands = dict(commands)
        self.known = frozenset(known)
        self.max_steps = max_steps
        self.max_call_depth = max_call_depth
        self.variables: Dict[str, object] = {}
        self.frames: List[_Frame] = []
        self.steps = 0

    def run(self, src: str) -> None:
        try:
            tree = parse_spell(src)
            validate_spell(tree, self.commands, self.known)
            self._exec_block(tree.body)
        except RecursionError:
            raise RuntimeTrapError("Your spell is nested too deeply to cast.")

    # -- statements ----------------------------------------------------- #

    def _tick(self, lineno: int) -> None:
        self.steps += 1
        if self.steps > self.max_steps:
            raise RuntimeTrapError(
                f"Your spell ran for more than {self.max_steps} steps. "
                "Is there an infinite loop?",
                lineno,
            )

    def _exec_block(self, stmts: List[ast.stmt]) -> None:
        for s in stmts:
            self._exec(s)

    def _exec(self, s: ast.stmt) -> None:
        lineno = s.lineno
        self._tick(lineno)

        if isinstance(s, ast.Expr):
            self._eval(s.value)
        elif isinstance(s, ast.Assign):
            value = self._eval(s.value)
            for t in s.targets:
                self._store(t.id, value)
        elif isinstance(s, ast.AugAssign):
            current = self._load(s.target.id, lineno)
            value = self._binop(s.op, current, self._eval(s.value), lineno)
            self._store(s.target.id, value)
        elif isinstance(s, ast.If):
            self._exec_block(s.body if self._eval(s.test) else s.orelse)
        elif isinstance(s, ast.While):
            while self._eval(s.test):
                self._tick(lineno)
                try:
                    self._exec_block(s.body)
                except _Break:
                    break
                except _Continue:
                    continue
            else:
                self._exec_block(s.orelse)
        elif isinstance(s, ast.For):
            for value in self._range(s.iter):
                self._tick(lineno)
                self._store(s.target.id, value)
                try:
                    self._exec_block(s.body)
                except _Break:
                    break
                except _Continue:
                    continue
            else:
                self._exec_block(s.orelse)
        elif isinstance(s, ast.Break):
            raise _Break()
        elif isinstance(s, ast.Continue):
            raise _Continue()
        elif isinstance(s, ast.Pass):
            pass
        elif isinstance(s, ast.FunctionDef):
            self._store(
                s.name,
                _SpellFunction(
                    s.name,
                    [a.arg for a in s.args.args],
                    s.body,
                    _local_names(s),
                    self.frames[-1] if self.frames else None,
                ),
            )
        elif isinstance(s, ast.Return):
            raise _Return(self._eval(s.value) if s.value is not None else None)
        else:
            raise CompileError(f"{type(s).__name__} is not allowed in a spell.", lineno)

    # -- names ---------------------------------------------------------- #

    def _store(self, name: str, value: object) -> None:
        if self.frames:
            self.frames[-1].values[name] = value
        else:
            self.variables[name] = value

    def _load(self, name: str, lineno: Optional[int]) -> object:
        # Innermost call first, then the functions it is nested in, then the
        # top level of the spell.
        frame = self.frames[-1] if self.frames else None
        while frame is not None:
            if name in frame.local_names:
                if name not in frame.values:
                    raise RuntimeTrapError(
                        f"'{name}' is used in {frame.name}() before it is given a value.",
                        lineno,
                    )
                return frame.values[name]
            frame = frame.parent
        if name in self.variables:
            return self.variables[name]
        raise CompileError(
            f"'{name}' is not defined and is not an approved spell command.",
            lineno,
            identifier=name,
            unknown=True,
        )

    # -- expressions ---------------------------------------------------- #

    def _eval(self, n: ast.AST) -> object:
        lineno = getattr(n, "lineno", None)

        if isinstance(n, ast.Constant):
            return n.value
        if isinstance(n, ast.Name):
            return self._load(n.id, lineno)
        if isinstance(n, ast.Call):
            return self._call(n)
        if isinstance(n, ast.UnaryOp):
            value = self._eval(n.operand)
            if isinstance(n.op, ast.Not):
                return not value
            number = self._number(value, lineno)
            return -number if isinstance(n.op, ast.USub) else +number
        if isinstance(n, ast.BinOp):
            return self._binop(n.op, self._eval(n.left), self._eval(n.right), lineno)
        if isinstance(n, ast.BoolOp):
            # Python semantics: return the deciding operand, short-circuit
            value = None
            for v in n.values:
                value = self._eval(v)
                if isinstance(n.op, ast.And) and not value:
                    return value
                if isinstance(n.op, ast.Or) and value:
                    return value
            return value
        if isinstance(n, ast.Compare):
            left = self._eval(n.left)
            for op, comp in zip(n.ops, n.comparators):
                right = self._eval(comp)
                try:
                    ok = _CMP_OPS[type(op)](left, right)
                except TypeError:
                    raise RuntimeTrapError(
                        f"cannot compare {_kind(left)} with {_kind(right)}.", lineno
                    )
                if not ok:
                    return False
                left = right
            return True
        if isinstance(n, ast.IfExp):
            return self._eval(n.body) if self._eval(n.test) else self._eval(n.orelse)

        raise CompileError(f"unsupported expression: {type(n).__name__}", lineno)

    def _number(self, value: object, lineno: Optional[int]):
        if value is None or not isinstance(value, (int, float)):
            raise RuntimeTrapError(f"expected a number but got {_kind(value)}.", lineno)
        if abs(value) > MAX_NUMBER:
            raise RuntimeTrapError("that number is too large for a spell.", lineno)
        return value

    def _binop(self, op: ast.operator, a: object, b: object, lineno: int):
        a = self._number(a, lineno)
        b = self._number(b, lineno)
        try:
            result = _BIN_OPS[type(op)](a, b)
        except ZeroDivisionError:
            raise RuntimeTrapError("cannot divide by zero.", lineno)
        except ArithmeticError as e:
            raise RuntimeTrapError(f"arithmetic error: {e}.", lineno)
        return self._number(result, lineno)

    def _range(self, call: ast.Call) -> range:
        bounds = []
        for a in call.args:
            value = self._eval(a)
            if isinstance(value, bool) or not isinstance(value, int):
                raise RuntimeTrapError(
                    f"range() needs whole numbers, not {_kind(value)}.", call.lineno
                )
            bounds.append(self._number(value, call.lineno))
        if len(bounds) == 3 and bounds[2] == 0:
            raise RuntimeTrapError("range() step cannot be zero.", call.lineno)
        return range(*bounds)

    def _call(self, n: ast.Call) -> object:
        name = n.func.id
        lineno = n.lineno

        if name in self.commands:
            try:
                return self.commands[name]()
            except SpellError as e:
                if e.lineno is None:
                    e.lineno = lineno
                raise

        try:
            fn = self._load(name, lineno)
        except CompileError:
            raise CompileError(
                f"'{name}' is called where its 'def' has not run. Define it first, "
                "in this function or above it.",
                lineno,
                identifier=name,
            )
        if not isinstance(fn, _SpellFunction):
            raise RuntimeTrapError(f"'{name}' is {_kind(fn)}, not a spell to call.", lineno)
        args = [self._eval(a) for a in n.args]
        if len(args) != len(fn.params):
            raise RuntimeTrapError(
                f"{name}() takes {len(fn.params)} argument(s) but got {len(args)}.",
                lineno,
            )
        if len(self.frames) >= self.max_call_depth:
            raise RuntimeTrapError(
                f"{name}() called itself too many times. Does it ever stop?", lineno
            )

        self.frames.append(
            _Frame(fn.name, dict(zip(fn.params, args)), fn.local_names, fn.closure)
        )
        try:
            self._exec_block(fn.body)
        except _Return as r:
            return r.value
        finally:
            self.frames.pop()
        return None


def _kind(value: object) -> str:
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True/False"
    if isinstance(value, (int, float)):
        return "a number"
    if isinstance(value, _SpellFunction):
        return f"the spell {value.name}()"
    return type(value).__name__


# ----------------------------------------------------------------------------
# Entry point
# ----------------------------------------------------------------------------


def compile_spell(
    source: str,
    maze: Maze,
    start: Optional[Tuple[int, int]] = None,
    *,
    max_actions: int = MAX_ACTIONS,
    max_steps: int = MAX_STEPS,
    allowed: Optional[Iterable[str]] = None,
) -> List[Action]:
    """
    Compile spell source into the list of actions it performs.

    Raises CompileError for syntax problems and unknown commands, and
    RuntimeTrapError when a command is misused or a limit is exceeded.
    """
    start = maze.start if start is None else Position(*start)
    caster = SpellCaster(maze, start, max_actions)
    interp = SpellInterpreter(caster.commands(allowed), max_steps=max_steps)
    interp.run(source)
    logger.debug(
        "compiled spell: %d actions, %d steps, cursor ends at %s",
        len(caster.actions),
        interp.steps,
        caster.cursor,
    )
    return list(caster.actions)
