"""Tests for the habitsage command line interface."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from habitsage.cli import cli


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.delenv("HABITSAGE_DATABASE_URL", raising=False)
    # Keep log lines out of the captured command output.
    monkeypatch.setenv("HABITSAGE_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("HABITSAGE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("HABITSAGE_DEV_MODE", "1")
    return CliRunner()


@pytest.fixture
def invoke(runner):
    def _invoke(*args):
        return runner.invoke(cli, list(args), catch_exceptions=False)

    return _invoke


@pytest.fixture
def on_fixed_day(invoke):
    result = invoke("travel", "--to", "2024-03-15")
    assert result.exit_code == 0
    assert "Current date: 2024-03-15 (debug)" in result.output
    return result


def test_add_progress_and_list(invoke, on_fixed_day):
    assert "Added Walk" in invoke("add", "Walk", "--target", "8000", "--unit", "steps").output

    result = invoke("progress", "Walk", "9000")
    assert result.exit_code == 0
    assert "Walk: 9000 / 8000 steps (done) streak 1, best 1" in result.output

    listing = invoke("list")
    assert "[x] Walk" in listing.output


def test_list_shows_percent_of_goal(invoke, on_fixed_day):
    invoke("add", "Read", "--target", "20", "--unit", "minutes")
    invoke("add", "Journal")
    invoke("progress", "Read", "10")
    invoke("complete", "Journal")

    lines = {line[4:].split()[0]: line for line in invoke("list").output.splitlines()}

    assert " 50% " in lines["Read"]
    assert "100% " in lines["Journal"]


def test_duplicate_name_fails(invoke, on_fixed_day):
    invoke("add", "Journal")

    result = invoke("add", "journal")

    assert result.exit_code == 1
    assert "exists" in result.output


def test_complete_on_quit_habit_fails(invoke, on_fixed_day):
    invoke("add", "Quit Smoking", "--type", "quit")

    result = invoke("complete", "Quit Smoking")

    assert result.exit_code == 1


def test_unknown_habit(invoke, on_fixed_day):
    result = invoke("complete", "Nope")

    assert result.exit_code == 1
    assert "No habit named 'Nope'" in result.output


def test_travel_persists_between_runs_and_resets(invoke, on_fixed_day):
    assert "2024-03-15 (debug)" in invoke("travel").output

    invoke("travel", "--forward")
    assert "2024-03-16 (debug)" in invoke("travel").output

    reset = invoke("travel", "--reset")
    assert "(debug)" not in reset.output
    assert "(debug)" not in invoke("travel").output


def test_travel_requires_dev_mode(runner, monkeypatch):
    monkeypatch.setenv("HABITSAGE_DEV_MODE", "0")

    result = runner.invoke(cli, ["travel", "--forward"])

    assert result.exit_code == 1
    assert "dev mode" in result.output


def test_reset_streak_with_confirmation(invoke, on_fixed_day):
    invoke("add", "Journal")
    invoke("complete", "Journal")

    result = invoke("reset", "Journal", "--yes")

    assert result.exit_code == 0
    assert "streak 0, best 1" in result.output


def test_backdated_completion_and_history(invoke, on_fixed_day):
    invoke("add", "Journal")
    invoke("complete", "Journal", "--day", "2024-03-14")
    invoke("complete", "Journal")

    history = invoke("history", "Journal", "--days", "3").output.splitlines()

    assert history == ["2024-03-13 .", "2024-03-14 #", "2024-03-15 #"]


def test_future_day_is_rejected(invoke, on_fixed_day):
    invoke("add", "Journal")

    result = invoke("complete", "Journal", "--day", "2024-03-20")

    assert result.exit_code == 1


def test_delete_and_presets(invoke, on_fixed_day):
    assert "Walk Daily" in invoke("presets").output
    invoke("add", "Walk Daily", "--preset")

    result = invoke("delete", "Walk Daily", "--yes")

    assert "Deleted Walk Daily" in result.output
    assert "No habits yet" in invoke("list").output
