from __future__ import annotations

from typing import Optional

SPELLING_HINT = "Check your spelling; only approved spell commands are available."


class SpellError(Exception):
    """Base class for errors raised while compiling a spell."""

    category = "spell"
    title = "Spell error"

    def __init__(self, message: str, lineno: Optional[int] = None) -> None:
        self.message = message
        self.lineno = lineno
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.lineno is None:
            return self.message
        return f"line {self.lineno}: {self.message}"

    def describe(self) -> str:
        return f"{self.title}: {self}"


class CompileError(SpellError):
    """Unknown command, unsupported construct or invalid syntax."""

    category = "syntax"
    title = "Spell syntax error"

    def __init__(
        self,
        message: str,
        lineno: Optional[int] = None,
        identifier: Optional[str] = None,
        unknown: bool = False,
    ) -> None:
        self.identifier = identifier
        # the identifier matches nothing the spell could mean, likely a typo
        self.unknown = unknown
        super().__init__(message, lineno)

    def describe(self) -> str:
        text = super().describe()
        if self.unknown and SPELLING_HINT not in text:
            text = f"{text} {SPELLING_HINT}"
        return text


class RuntimeTrapError(SpellError):
    """A spell command was used where it is not allowed, or a limit was hit."""

    category = "casting"
    title = "Spell casting error"
