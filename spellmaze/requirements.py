"""
Chapter requirement checks.

A chapter can ask the learner to use certain constructs, e.g. a ``while``
loop or the ``canMoveRight()`` query. This is a plain text scan of the spell:
it does not matter whether the construct is ever executed, and a keyword
inside a comment still counts.
"""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass, field
from typing import Iterable, List

# Learner-facing names for Python keywords
KEYWORD_ALIASES = {
    "function": "def",
}


@dataclass(frozen=True)
class RequirementReport:
    all_met: bool
    missing: List[str] = field(default_factory=list)


def concept_pattern(concept: str) -> "re.Pattern[str]":
    word = KEYWORD_ALIASES.get(concept, concept)
    if keyword.iskeyword(word):
        return re.compile(rf"\b{re.escape(word)}\b")
    return re.compile(rf"\b{re.escape(word)}\s*\(")


def check_required_commands(source: str, required: Iterable[str]) -> RequirementReport:
    missing = [c for c in required if not concept_pattern(c).search(source)]
    return RequirementReport(all_met=not missing, missing=missing)
