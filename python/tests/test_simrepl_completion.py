"""Completion tests for simrepl."""

from __future__ import annotations

from prompt_toolkit.document import Document

from simrepl.commands import build_registry
from simrepl.completion import ConsoleCompleter
from simrepl.demo import DEMO_COMMANDS


def _completions(text):
    registry = build_registry()
    for name, command in DEMO_COMMANDS:
        registry.register(name, command)
    completer = ConsoleCompleter(registry)
    doc = Document(text, cursor_position=len(text))
    return {c.text for c in completer.get_completions(doc, None)}


def test_command_names():
    assert _completions("li") == {"list"}
    assert "stats-json" not in _completions("")


def test_subcommand_names():
    assert _completions("list ") == {"resources", "components", "entities"}
    assert _completions("list Co") == {"components"}


def test_option_names():
    assert _completions("query c") == {"comps="}
    assert _completions("query comps=Position ") == {
        "n=",
        "page=",
        "comps=",
        "with=",
        "without=",
        "exclusive",
        "full",
    }


def test_help_prefix_is_skipped():
    assert _completions("help li") == {"list"}
    assert _completions("help list r") == {"resources"}


def test_unknown_heads_complete_nothing():
    assert _completions("bogus ") == set()
    assert _completions("list bogus ") == set()
