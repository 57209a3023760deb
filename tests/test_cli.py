"""Tests for the command-line interface."""

from collections.abc import Callable
from pathlib import Path

import click
import pytest
from click.testing import CliRunner, Result

from tagweave import config
from tagweave.cli import cli, parse_filters, parse_sort
from tagweave.db import engine


def test_parse_sort() -> None:
    assert parse_sort("count,desc") == ("count", True)
    assert parse_sort("count") == ("count", False)
    assert parse_sort("taggers,asc") == ("taggers", False)


def test_parse_filters() -> None:
    assert parse_filters(("taggers=bob", "spellings=a=b")) == {
        "taggers": "bob",
        "spellings": "a=b",
    }


def test_parse_filters_rejects_missing_separator() -> None:
    with pytest.raises(click.BadParameter):
        parse_filters(("taggers",))


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("report", "rename", "delete", "modify", "move", "cloud"):
        assert command in result.output


# =============================================================================
# Commands against a database
# =============================================================================


@pytest.fixture
def tagweave(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., Result]:
    """Invoke the CLI against a fresh database file."""
    monkeypatch.setenv("TAGWEAVE_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.sqlite3'}")
    monkeypatch.delenv("TAGWEAVE_USER", raising=False)
    monkeypatch.setattr(config, "_settings", None)
    monkeypatch.setattr(engine, "_engine", None)
    monkeypatch.setattr(engine, "_session_factory", None)
    runner = CliRunner()

    def invoke(*args: str) -> Result:
        return runner.invoke(cli, list(args))

    result = invoke("db", "init")
    assert result.exit_code == 0, result.output
    assert "Initialized" in result.output
    return invoke


def test_tagging_workflow(tagweave) -> None:
    """Tag, inspect, rename, delete and move through the CLI."""
    result = tagweave("-u", "alice", "set", "Wiki:Start", "Python, web dev")
    assert result.exit_code == 0, result.output
    assert "Saved 2 tags on wiki:start" in result.output

    result = tagweave("-u", "bob", "set", "wiki:guide", "python")
    assert result.exit_code == 0, result.output

    result = tagweave("show", "WIKI:Start")
    assert result.exit_code == 0, result.output
    assert "Python, web dev" in result.output

    result = tagweave("find", "--ns", "Wiki", "--tag", "python")
    assert result.exit_code == 0, result.output
    assert "wiki:start" in result.output
    assert "wiki:guide" in result.output

    result = tagweave("report", "--sort", "count,desc")
    assert result.exit_code == 0, result.output
    assert result.output.index("python") < result.output.index("webdev")

    result = tagweave("-u", "alice", "rename", "web dev", "frontend")
    assert result.exit_code == 0, result.output
    assert "Renamed 'web dev' to 'frontend' on 1 items" in result.output

    result = tagweave("-u", "alice", "delete", "python")
    assert result.exit_code == 0, result.output
    assert "1 tags removed from 1 items" in result.output

    result = tagweave("move", "Wiki:Start", "wiki:home")
    assert result.exit_code == 0, result.output
    assert "Moved 1 taggings from wiki:start to wiki:home" in result.output

    result = tagweave("export")
    assert result.exit_code == 0, result.output
    assert '"wiki:home"' in result.output
    assert '"frontend"' in result.output
    assert '"wiki:guide"' in result.output

    result = tagweave("cloud")
    assert result.exit_code == 0, result.output
    assert "frontend" in result.output

    result = tagweave("modify", "wiki:home", "frontend")
    assert result.exit_code == 0, result.output
    assert "Removed 'frontend' from wiki:home" in result.output


def test_failed_operation_exits_nonzero(tagweave) -> None:
    result = tagweave("-u", "alice", "rename", "nothere", "x")

    assert result.exit_code != 0
    assert "does not exist" in result.output


def test_set_requires_user(tagweave) -> None:
    result = tagweave("set", "wiki:start", "python")

    assert result.exit_code != 0
    assert "--user is required" in result.output
