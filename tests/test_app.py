import os

import pytest

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

pygame = pytest.importorskip("pygame")

from spellmaze.app import HINT_IDLE_MS, App, Editor, Logger, clamp  # noqa: E402
from spellmaze.maze import Position  # noqa: E402
from spellmaze.runner import Error, Success  # noqa: E402


@pytest.fixture
def app():
    a = App(chapter_id="chapter1", step_interval_ms=10)
    yield a
    pygame.quit()


def logged(app, text):
    return any(text in line for line in app.log.lines)


def test_sample_spell_plays_to_success(app):
    app.load_sample()
    assert app.cast()
    assert not app.editor.enabled
    for _ in range(20):
        app.update(40)
    assert app.outcome == Success()
    assert app.position == Position(3, 3)
    assert app.editor.enabled
    assert logged(app, "Congratulations")
    app.draw()


def test_bad_spell_is_logged_and_nothing_moves(app):
    app.editor.set_text("moveForward()")
    assert app.cast() is False
    assert isinstance(app.outcome, Error)
    assert app.position == app.chapter.start
    assert logged(app, "Spell syntax error")


def test_stop_keeps_avatar_where_it_was(app):
    app.load_sample()
    app.cast()
    app.update(1000)
    app.stop_run("Stopped.")
    app.update(1000)
    assert app.position == Position(1, 0)
    assert app.outcome is None
    assert app.active_run is None


def test_step_button_casts_and_steps(app):
    app.load_sample()
    app.step_once()
    assert app.position == Position(1, 0)
    app.step_once()
    assert app.position == Position(2, 0)


def test_chapter_cycling(app):
    app.load_chapter(app.chapter_idx + 1)
    assert app.chapter.id == "chapter2"
    app.load_chapter(app.chapter_idx - 2)
    assert app.chapter.id == "chapter3"


def test_editor_auto_indents_after_colon():
    pygame.font.init()
    ed = Editor((0, 0, 200, 200), pygame.font.Font(None, 16))
    ed.set_text("while canMoveRight():")
    ed.col = len(ed.lines[0])
    ed._newline()
    assert ed.lines == ["while canMoveRight():", "    "]
    assert ed.col == 4


def test_logger_wraps_and_caps_history():
    pygame.font.init()
    log = Logger((0, 0, 120, 100), pygame.font.Font(None, 16), history_cap=5)
    log.log("word " * 40)
    assert len(log.lines) == 5
    assert all(line for line in log.lines)


def test_clamp():
    assert clamp(0, 1, 30) == 1
    assert clamp(99, 1, 30) == 30
    assert clamp(5, 1, 30) == 5


def hint_lines(app):
    return [line for line in app.log.lines if line.startswith("Hint:")]


def test_idle_hint_appears_once_until_activity(app):
    first = app.chapter.hints[0]
    app.update(HINT_IDLE_MS - 1)
    assert hint_lines(app) == []
    app.update(1)
    assert len(hint_lines(app)) == 1
    assert logged(app, first.split()[0])
    app.update(HINT_IDLE_MS * 3)
    assert len(hint_lines(app)) == 1
    app.note_activity()
    app.update(HINT_IDLE_MS)
    # the idle timer repeats the current hint rather than moving on
    assert len(hint_lines(app)) == 2
    assert app.hint_idx == 0


def test_hint_button_moves_to_the_next_hint(app):
    hints = app.chapter.hints
    app.handle_click(app.btn_hint.rect.center)
    app.handle_click(app.btn_hint.rect.center)
    assert app.hint_idx == 1
    assert app.show_hint() == hints[1]
    for _ in range(len(hints) - 1):
        app.handle_click(app.btn_hint.rect.center)
    assert app.hint_idx == 0


def test_changing_chapter_restarts_hints(app):
    app.show_hint(advance=True)
    app.show_hint(advance=True)
    app.load_chapter(app.chapter_idx + 1)
    assert app.hint_idx == -1
    assert app.show_hint() == app.chapter.hints[0]


def test_success_offers_the_next_chapter(app):
    app.load_sample()
    app.cast()
    while app.running:
        app.active_run.step()
    assert app.next_chapter_id == "chapter2"
    assert logged(app, "Click Chapter")
    app.handle_click(app.btn_chapter.rect.center)
    assert app.chapter.id == "chapter2"
    assert app.next_chapter_id is None


def test_no_offer_without_success(app):
    app.editor.set_text("moveUp()")
    app.cast()
    while app.running:
        app.active_run.step()
    assert app.next_chapter_id is None
    assert app.load_next_chapter() is False


def test_last_chapter_has_nothing_to_offer():
    a = App(chapter_id="chapter3", step_interval_ms=10)
    try:
        a.load_sample()
        a.cast()
        while a.running:
            a.active_run.step()
        assert a.outcome == Success()
        assert a.next_chapter_id is None
    finally:
        pygame.quit()
