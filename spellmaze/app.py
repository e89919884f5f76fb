"""
pygame window for casting spells.

Left: spell editor, buttons and the output log. Right: the dungeon. The
frame loop feeds ``Run.advance`` with the frame time, so the avatar moves
one tile per step interval regardless of the frame rate.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import List, Optional, Sequence

import pygame

from .chapters import Chapter, all_chapters
from .errors import SpellError
from .interpreter import compile_spell
from .maze import Position, Tile, TorchState
from .requirements import check_required_commands
from .runner import STEP_INTERVAL_MS, Error, Outcome, Run, Success, start

logger = logging.getLogger(__name__)

# ----- layout -----
LEFT_W = 460
DUNGEON_W = 500
WIN_W = LEFT_W + DUNGEON_W + 14
WIN_H = 540
MAX_TILE = 72
FPS = 60
HINT_IDLE_MS = 10_000  # Show a hint after this long without input

# ----- colors -----
BG = (26, 28, 35)
PANEL = (34, 37, 46)
BORDER = (60, 64, 75)
TEXT = (232, 235, 243)
MUTED = (170, 173, 184)
ACCENT = (255, 208, 80)
AVATAR = (150, 110, 255)
OK = (44, 187, 93)
ERR = (235, 84, 84)
BTN = (45, 50, 62)
BTN_PRI = (52, 120, 246)
WALL = (30, 33, 42)
FLOOR = (243, 244, 248)
TORCH_UNLIT = (110, 96, 80)
TORCH_LIT = (255, 140, 40)

MONO_FONTS = ["consolas", "menlo", "dejavusansmono", "couriernew", "liberationmono"]


def clamp(v, a, b):
    return a if v < a else b if v > b else v


def pick_font(cands, size):
    avail = set(pygame.font.get_fonts())
    for n in cands:
        if n and n.lower() in avail:
            return pygame.font.SysFont(n, size)
    return pygame.font.Font(None, size)


# ----- editor -----
class Editor:
    def __init__(self, rect, font):
        self.rect = pygame.Rect(rect)
        self.font = font
        self.lines = [""]
        self.row = self.col = 0
        self.scroll = 0
        self.blink = 0
        self.enabled = True

    def set_text(self, s: str) -> None:
        self.lines = s.splitlines() or [""]
        self.row = self.col = self.scroll = 0

    def get_text(self) -> str:
        return "\n".join(self.lines)

    def _insert(self, s: str) -> None:
        line = self.lines[self.row]
        self.lines[self.row] = line[: self.col] + s + line[self.col :]
        self.col += len(s)

    def _backspace(self) -> None:
        if self.col > 0:
            line = self.lines[self.row]
            self.lines[self.row] = line[: self.col - 1] + line[self.col :]
            self.col -= 1
        elif self.row > 0:
            prev = self.lines[self.row - 1]
            self.col = len(prev)
            self.lines[self.row - 1] = prev + self.lines.pop(self.row)
            self.row -= 1

    def _newline(self) -> None:
        line = self.lines[self.row]
        indent = len(line) - len(line.lstrip(" "))
        if line[: self.col].rstrip().endswith(":"):
            indent += 4
        self.lines[self.row] = line[: self.col]
        self.lines.insert(self.row + 1, " " * indent + line[self.col :])
        self.row += 1
        self.col = indent

    def handle(self, e) -> None:
        if e.type != pygame.KEYDOWN or not self.enabled:
            return
        if e.key == pygame.K_BACKSPACE:
            self._backspace()
        elif e.key == pygame.K_RETURN:
            self._newline()
        elif e.key == pygame.K_TAB:
            self._insert("    ")
        elif e.key == pygame.K_LEFT:
            self.col = max(0, self.col - 1)
        elif e.key == pygame.K_RIGHT:
            self.col = min(len(self.lines[self.row]), self.col + 1)
        elif e.key in (pygame.K_UP, pygame.K_DOWN):
            step = -1 if e.key == pygame.K_UP else 1
            self.row = clamp(self.row + step, 0, len(self.lines) - 1)
            self.col = min(self.col, len(self.lines[self.row]))
        elif e.key == pygame.K_HOME:
            self.col = 0
        elif e.key == pygame.K_END:
            self.col = len(self.lines[self.row])
        elif e.unicode and e.unicode >= " ":
            self._insert(e.unicode)

    def draw(self, surf) -> None:
        pygame.draw.rect(surf, PANEL, self.rect, border_radius=8)
        pygame.draw.rect(surf, BORDER, self.rect, 1, border_radius=8)
        inner = self.rect.inflate(-14, -14)
        lh = self.font.get_linesize()
        code_x = inner.x + 40
        visible = max(1, inner.h // lh)
        if self.row < self.scroll:
            self.scroll = self.row
        if self.row >= self.scroll + visible:
            self.scroll = self.row - visible + 1

        prev_clip = surf.get_clip()
        surf.set_clip(inner)
        for i, line in enumerate(self.lines[self.scroll : self.scroll + visible]):
            y = inner.y + i * lh
            num = self.font.render(str(self.scroll + i + 1).rjust(3), True, MUTED)
            surf.blit(num, (inner.x, y))
            surf.blit(self.font.render(line, True, TEXT), (code_x, y))
        self.blink = (self.blink + 1) % FPS
        if self.enabled and self.blink < FPS // 2:
            cx = code_x + self.font.size(self.lines[self.row][: self.col])[0]
            cy = inner.y + (self.row - self.scroll) * lh
            pygame.draw.line(surf, ACCENT, (cx, cy), (cx, cy + lh - 2), 2)
        surf.set_clip(prev_clip)


# ----- output log -----
class Logger:
    def __init__(self, rect, font, history_cap: int = 300):
        self.rect = pygame.Rect(rect)
        self.font = font
        self.lines: List[str] = []
        self.history_cap = history_cap

    def log(self, msg) -> None:
        # wrap long diagnostics so they stay inside the panel
        width = max(10, (self.rect.w - 12) // max(1, self.font.size("M")[0]))
        for para in str(msg).splitlines() or [""]:
            while len(para) > width:
                cut = para.rfind(" ", 0, width)
                cut = cut if cut > 0 else width
                self.lines.append(para[:cut])
                para = para[cut:].lstrip()
            self.lines.append(para)
        self.lines = self.lines[-self.history_cap :]
        logger.debug("log: %s", msg)

    def draw(self, surf) -> None:
        pygame.draw.rect(surf, PANEL, self.rect, border_radius=8)
        pygame.draw.rect(surf, BORDER, self.rect, 1, border_radius=8)
        inner = self.rect.inflate(-12, -12)
        lh = self.font.get_linesize()
        prev_clip = surf.get_clip()
        surf.set_clip(inner)
        for i, line in enumerate(self.lines[-max(1, inner.h // lh) :]):
            surf.blit(self.font.render(line, True, MUTED), (inner.x, inner.y + i * lh))
        surf.set_clip(prev_clip)


# ----- buttons -----
class Button:
    def __init__(self, rect, label, primary=False):
        self.rect = pygame.Rect(rect)
        self.label = label
        self.primary = primary

    def draw(self, surf, font) -> None:
        pygame.draw.rect(surf, BTN_PRI if self.primary else BTN, self.rect, border_radius=6)
        pygame.draw.rect(surf, BORDER, self.rect, 1, border_radius=6)
        text = font.render(self.label, True, TEXT)
        surf.blit(text, text.get_rect(center=self.rect.center))

    def hit(self, pos) -> bool:
        return self.rect.collidepoint(pos)


# ----- drawing -----
def draw_dungeon(surf, maze, position: Position, torches: Sequence[TorchState], area) -> None:
    x0, y0, w, h = area
    pygame.draw.rect(surf, PANEL, area, border_radius=8)
    pygame.draw.rect(surf, BORDER, area, 1, border_radius=8)
    tile = max(4, min(MAX_TILE, (w - 20) // maze.width, (h - 20) // maze.height))
    offx = x0 + (w - maze.width * tile) // 2
    offy = y0 + (h - maze.height * tile) // 2
    lit = {t.position: t.lit for t in torches}

    for y in range(maze.height):
        for x in range(maze.width):
            r = pygame.Rect(offx + x * tile, offy + y * tile, tile - 1, tile - 1)
            kind = maze.tile((x, y))
            pygame.draw.rect(surf, WALL if kind == Tile.WALL else FLOOR, r)
            if kind == Tile.GOAL:
                pygame.draw.rect(surf, ACCENT, r.inflate(-tile * 0.2, -tile * 0.2), border_radius=6)
            elif kind == Tile.TORCH:
                color = TORCH_LIT if lit.get(Position(x, y)) else TORCH_UNLIT
                pygame.draw.circle(surf, color, r.center, tile * 0.22)

    cx = offx + position.x * tile + tile / 2
    cy = offy + position.y * tile + tile / 2
    pts = [
        (cx + math.cos(math.radians(a)) * tile * 0.34, cy + math.sin(math.radians(a)) * tile * 0.34)
        for a in (270, 30, 150)
    ]
    at_exit = maze.is_goal(position) and all(lit.values())
    pygame.draw.polygon(surf, OK if at_exit else AVATAR, pts)


# ----- app -----
class App:
    def __init__(
        self,
        chapters: Optional[Sequence[Chapter]] = None,
        chapter_id: Optional[str] = None,
        step_interval_ms: float = STEP_INTERVAL_MS,
    ):
        pygame.init()
        pygame.display.set_caption("SpellMaze")
        self.screen = pygame.display.set_mode((WIN_W, WIN_H))
        self.clock = pygame.time.Clock()
        self.font = pick_font(MONO_FONTS, 18)
        self.small = pick_font(MONO_FONTS, 16)

        y = 14
        self.btn_run = Button((14, y, 80, 34), "Run", primary=True)
        self.btn_step = Button((100, y, 80, 34), "Step")
        self.btn_stop = Button((186, y, 80, 34), "Stop")
        self.btn_reset = Button((272, y, 80, 34), "Reset")
        self.btn_hint = Button((358, y, 80, 34), "Hint")
        y += 44
        self.btn_chapter = Button((14, y, 100, 30), "Chapter")
        self.btn_sample = Button((122, y, 100, 30), "Sample")
        self.btn_spd_m = Button((230, y, 48, 30), "-")
        self.btn_spd_p = Button((286, y, 48, 30), "+")
        self.speed = clamp(round(1000.0 / max(1.0, step_interval_ms)), 1, 30)  # actions/s

        editor_y = y + 42
        editor_h = int((WIN_H - editor_y - 26) * 0.6)
        self.editor = Editor((14, editor_y, LEFT_W - 28, editor_h), self.small)
        log_y = editor_y + editor_h + 12
        self.log = Logger((14, log_y, LEFT_W - 28, WIN_H - log_y - 14), self.small)

        self.chapters = list(chapters or all_chapters())
        ids = [c.id for c in self.chapters]
        self.chapter_idx = ids.index(chapter_id) if chapter_id in ids else 0
        self.active_run: Optional[Run] = None
        self.outcome: Optional[Outcome] = None
        self.next_chapter_id: Optional[str] = None
        self.hint_idx = -1
        self.idle_ms = 0.0
        self.idle_hint_due = True
        self.load_chapter(self.chapter_idx)

    @property
    def chapter(self) -> Chapter:
        return self.chapters[self.chapter_idx]

    @property
    def running(self) -> bool:
        return self.active_run is not None and self.active_run.running

    # ------------------------------------------------------------------ #
    # Spell control
    # ------------------------------------------------------------------ #

    def load_chapter(self, idx: int) -> None:
        self.stop_run()
        self.chapter_idx = idx % len(self.chapters)
        self.next_chapter_id = None
        self.hint_idx = -1
        self.note_activity()
        self.reset_view()
        self.editor.set_text("# Write your spell here\n")
        self.log.log(self.chapter.title)
        self.log.log(self.chapter.description)
        self.log.log(self.chapter.introductory_text)

    def load_next_chapter(self) -> bool:
        """Load the chapter offered after a success. Returns False if none was offered."""
        ids = [c.id for c in self.chapters]
        if self.next_chapter_id not in ids:
            return False
        self.load_chapter(ids.index(self.next_chapter_id))
        return True

    # ------------------------------------------------------------------ #
    # Hints
    # ------------------------------------------------------------------ #

    def note_activity(self) -> None:
        self.idle_ms = 0.0
        self.idle_hint_due = True

    def show_hint(self, advance: bool = False) -> Optional[str]:
        """Log the current hint, or the next one when ``advance`` is set."""
        hints = self.chapter.hints
        if not hints:
            return None
        if advance or self.hint_idx < 0:
            self.hint_idx = (self.hint_idx + 1) % len(hints)
        hint = hints[self.hint_idx]
        self.log.log(f"Hint: {hint}")
        return hint

    def load_sample(self) -> None:
        self.stop_run()
        self.editor.set_text(self.chapter.sample_solution or "")
        self.log.log("Sample spell loaded.")

    def reset_view(self) -> None:
        self.position = self.chapter.start
        self.torches = self.chapter.maze.torch_states()
        self.outcome = None

    def stop_run(self, message: Optional[str] = None) -> None:
        if self.active_run is not None:
            self.active_run.stop()
            self.active_run = None
        self.editor.enabled = True
        if message:
            self.log.log(message)

    def cast(self) -> bool:
        """Compile the editor text and start replaying it. Returns True on start."""
        self.stop_run()
        self.reset_view()
        chapter = self.chapter
        try:
            actions = compile_spell(
                self.editor.get_text(),
                chapter.maze,
                chapter.start,
                allowed=chapter.allowed_commands,
            )
        except SpellError as e:
            self._on_end(Error.from_exception(e))
            return False

        self.active_run = start(
            actions,
            chapter.start,
            chapter.maze,
            self.torches,
            self._on_step,
            self._on_torch_update,
            self._on_end,
            step_interval_ms=1000.0 / self.speed,
        )
        self.editor.enabled = False
        self.log.log(f"Casting {len(actions)} actions...")
        return True

    def step_once(self) -> None:
        if not self.running and not self.cast():
            return
        self.active_run.step()

    def update(self, dt_ms: float) -> None:
        if self.active_run is not None:
            self.active_run.advance(dt_ms)
        # one idle hint per quiet spell; input re-arms it
        self.idle_ms += dt_ms
        if self.idle_hint_due and self.idle_ms >= HINT_IDLE_MS:
            self.idle_hint_due = False
            self.show_hint()

    def _on_step(self, pos: Position) -> None:
        self.position = pos

    def _on_torch_update(self, torches: List[TorchState]) -> None:
        self.torches = torches

    def _on_end(self, outcome: Outcome) -> None:
        self.outcome = outcome
        self.editor.enabled = True
        self.log.log(outcome.describe())
        if isinstance(outcome, Success):
            report = check_required_commands(
                self.editor.get_text(), self.chapter.required_commands
            )
            if report.all_met:
                self.log.log(self.chapter.success_message)
                nxt = [c for c in self.chapters if c.id == self.chapter.next_chapter_id]
                if nxt:
                    self.next_chapter_id = nxt[0].id
                    self.log.log(f"Click Chapter to continue to {nxt[0].title}.")
            else:
                self.log.log(
                    "You made it, but this chapter wants you to use: "
                    + ", ".join(report.missing)
                )

    # ------------------------------------------------------------------ #
    # Frame loop
    # ------------------------------------------------------------------ #

    def handle_click(self, pos, button: int = 1) -> None:
        if self.btn_run.hit(pos):
            self.cast()
        elif self.btn_step.hit(pos):
            self.step_once()
        elif self.btn_stop.hit(pos):
            self.stop_run("Stopped.")
        elif self.btn_reset.hit(pos):
            self.stop_run("Reset.")
            self.reset_view()
        elif self.btn_hint.hit(pos):
            self.show_hint(advance=True)
        elif self.btn_chapter.hit(pos):
            if button == 3:
                self.load_chapter(self.chapter_idx - 1)
            elif not self.load_next_chapter():
                self.load_chapter(self.chapter_idx + 1)
        elif self.btn_sample.hit(pos):
            self.load_sample()
        elif self.btn_spd_m.hit(pos):
            self.speed = clamp(self.speed - 1, 1, 30)
        elif self.btn_spd_p.hit(pos):
            self.speed = clamp(self.speed + 1, 1, 30)

    def draw(self) -> None:
        self.screen.fill(BG)
        for b in (
            self.btn_run,
            self.btn_step,
            self.btn_stop,
            self.btn_reset,
            self.btn_hint,
            self.btn_chapter,
            self.btn_sample,
            self.btn_spd_m,
            self.btn_spd_p,
        ):
            b.draw(self.screen, self.small)
        status = "Running" if self.running else "Idle"
        if isinstance(self.outcome, Success):
            status, color = "Success", OK
        elif self.outcome is not None:
            status, color = "Failed", ERR
        else:
            color = MUTED
        info = self.small.render(f"{self.speed}/s  {status}", True, color)
        self.screen.blit(info, (344, 64))
        self.editor.draw(self.screen)
        self.log.draw(self.screen)
        area = (LEFT_W, 14, WIN_W - LEFT_W - 14, WIN_H - 28)
        draw_dungeon(self.screen, self.chapter.maze, self.position, self.torches, area)
        pygame.display.flip()

    async def run(self) -> None:
        while True:
            dt = self.clock.tick(FPS)
            for e in pygame.event.get():
                if e.type == pygame.QUIT:
                    return
                if e.type in (pygame.KEYDOWN, pygame.MOUSEBUTTONDOWN, pygame.MOUSEMOTION):
                    self.note_activity()
                if e.type == pygame.MOUSEBUTTONDOWN:
                    self.handle_click(e.pos, e.button)
                self.editor.handle(e)
            self.update(dt)
            self.draw()
            await asyncio.sleep(0)


async def main(chapter_id: Optional[str] = None, step_interval_ms: float = STEP_INTERVAL_MS) -> None:
    app = App(chapter_id=chapter_id, step_interval_ms=step_interval_ms)
    await app.run()


def launch(chapter_id: Optional[str] = None, step_interval_ms: float = STEP_INTERVAL_MS) -> None:
    try:
        asyncio.run(main(chapter_id, step_interval_ms))
    finally:
        pygame.quit()
