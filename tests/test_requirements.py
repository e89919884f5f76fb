import pytest

from spellmaze.requirements import RequirementReport, check_required_commands


def test_all_met_for_while_and_query():
    report = check_required_commands(
        "while (canMoveRight()) { moveRight(); }", ["while", "canMoveRight"]
    )
    assert report == RequirementReport(all_met=True, missing=[])


def test_missing_keeps_required_order():
    report = check_required_commands("moveRight()", ["while", "moveRight", "canMoveDown"])
    assert not report.all_met
    assert report.missing == ["while", "canMoveDown"]


def test_python_style_loop_counts():
    src = "while canMoveRight():\n    moveRight()\n"
    assert check_required_commands(src, ["while", "canMoveRight"]).all_met


def test_keyword_needs_word_boundary():
    assert check_required_commands("awhile = 1", ["while"]).missing == ["while"]


def test_command_must_be_called():
    # mentioning the name without a call does not count
    assert check_required_commands("# canMoveRight", ["canMoveRight"]).missing == [
        "canMoveRight"
    ]


def test_function_alias_matches_def():
    assert check_required_commands("def walk():\n    pass\n", ["function"]).all_met


def test_no_requirements_is_always_met():
    assert check_required_commands("", []) == RequirementReport(True, [])


@pytest.mark.parametrize("kw", ["for", "if", "def"])
def test_other_keywords(kw):
    assert check_required_commands(f"{kw} x", [kw]).all_met


def test_comments_still_count():
    # syntactic check only: a keyword in a comment is accepted
    assert check_required_commands("# while we wait\nmoveRight()", ["while"]).all_met
