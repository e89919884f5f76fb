"""
Command line entry point.

    python -m spellmaze                      # open the game window
    python -m spellmaze --headless spell.py  # replay a spell in the terminal
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .chapters import CHAPTERS, first_chapter, get_chapter
from .errors import SpellError
from .interpreter import MAX_ACTIONS, compile_spell
from .requirements import check_required_commands
from .runner import STEP_INTERVAL_MS, Success, run_to_end, start

EXIT_SUCCESS = 0
EXIT_FAIL = 1
EXIT_SPELL_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spellmaze", description="Cast spells to guide a wizard through a dungeon."
    )
    parser.add_argument(
        "--chapter",
        default=first_chapter().id,
        choices=sorted(CHAPTERS),
        help="chapter to play (default: %(default)s)",
    )
    parser.add_argument(
        "--headless",
        metavar="SPELL_FILE",
        help="compile SPELL_FILE and replay it in the terminal instead of opening a window",
    )
    parser.add_argument(
        "--max-actions",
        type=int,
        default=MAX_ACTIONS,
        help="action ceiling for a single spell (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=STEP_INTERVAL_MS,
        help="milliseconds between steps in the window (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def run_headless(path: str, chapter_id: str, max_actions: int) -> int:
    chapter = get_chapter(chapter_id)
    with open(path, "r", encoding="utf-8") as f:
        source = f.read()

    try:
        actions = compile_spell(
            source,
            chapter.maze,
            chapter.start,
            max_actions=max_actions,
            allowed=chapter.allowed_commands,
        )
    except SpellError as e:
        print(e.describe())
        return EXIT_SPELL_ERROR

    print(f"{chapter.title}: {len(actions)} actions")
    run = start(
        actions,
        chapter.start,
        chapter.maze,
        chapter.maze.torch_states(),
        on_step=lambda pos: print(f"  -> ({pos.x}, {pos.y})"),
        on_torch_update=lambda torches: print(
            f"  torches lit: {sum(t.lit for t in torches)}/{len(torches)}"
        ),
    )
    outcome = run_to_end(run)
    print(outcome.describe())
    if not isinstance(outcome, Success):
        return EXIT_FAIL

    report = check_required_commands(source, chapter.required_commands)
    if report.all_met:
        print(chapter.success_message)
    else:
        print("Missing required commands: " + ", ".join(report.missing))
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.headless:
        return run_headless(args.headless, args.chapter, args.max_actions)

    # pygame is only needed for the window
    from . import app

    app.launch(chapter_id=args.chapter, step_interval_ms=args.interval)
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
