import pytest

from spellmaze.__main__ import EXIT_FAIL, EXIT_SPELL_ERROR, EXIT_SUCCESS, main
from spellmaze.chapters import get_chapter


@pytest.fixture
def spell_file(tmp_path):
    def write(text):
        path = tmp_path / "spell.py"
        path.write_text(text, encoding="utf-8")
        return str(path)

    return write


def test_sample_solution_exits_zero(spell_file, capsys):
    chapter = get_chapter("chapter1")
    code = main(["--headless", spell_file(chapter.sample_solution), "--chapter", "chapter1"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "The spell worked!" in out
    assert chapter.success_message in out
    assert "-> (3, 3)" in out


def test_goal_not_reached_exits_one(spell_file, capsys):
    src = "while canMoveRight():\n    moveRight()\n"
    code = main(["--headless", spell_file(src), "--chapter", "chapter2"])
    out = capsys.readouterr().out
    # stops at the end of the first corridor
    assert code == EXIT_FAIL
    assert "didn't reach the goal" in out


def test_reports_missing_commands(spell_file, capsys):
    src = "\n".join(
        ["moveRight()"] * 5
        + ["moveDown()"] * 2
        + ["moveLeft()"] * 4
        + ["moveDown()"] * 2
        + ["moveRight()"] * 5
    )
    code = main(["--headless", spell_file(src), "--chapter", "chapter2"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "Missing required commands: while, canMoveRight" in out


def test_wall_exits_one(spell_file, capsys):
    code = main(["--headless", spell_file("moveUp()"), "--chapter", "chapter1"])
    out = capsys.readouterr().out
    assert code == EXIT_FAIL
    assert "You hit a wall at position (0, -1)" in out


def test_spell_error_exits_two(spell_file, capsys):
    code = main(["--headless", spell_file("moveForward()"), "--chapter", "chapter1"])
    out = capsys.readouterr().out
    assert code == EXIT_SPELL_ERROR
    assert out.startswith("Spell syntax error")


def test_command_outside_chapter_is_spell_error(spell_file, capsys):
    code = main(["--headless", spell_file("lightTorch()"), "--chapter", "chapter1"])
    assert code == EXIT_SPELL_ERROR
    assert "not available in this chapter" in capsys.readouterr().out


def test_max_actions_flag(spell_file, capsys):
    chapter = get_chapter("chapter1")
    code = main(
        [
            "--headless",
            spell_file(chapter.sample_solution),
            "--chapter",
            "chapter1",
            "--max-actions",
            "3",
        ]
    )
    assert code == EXIT_SPELL_ERROR
    assert "infinite loop" in capsys.readouterr().out


def test_unknown_chapter_is_rejected(spell_file):
    with pytest.raises(SystemExit):
        main(["--headless", spell_file("moveRight()"), "--chapter", "chapter99"])
