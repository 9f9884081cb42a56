"""Console, built-in command and session tests."""

from __future__ import annotations

import io
import json
import threading

import pytest

from simrepl import BlockCommand, Callbacks, Command, Console, ConsoleConfig
from simrepl.demo import World
from simrepl.errors import CommandTimeout, ConsoleError, DuplicateName, ExecutionFault, ParseError
from simrepl.session import Session, StreamLineSource


class Boom(Command):
    description = "Always fails."

    def run(self, ctx, out):
        raise RuntimeError("kaput")


class Echo(BlockCommand):
    def run(self, ctx, out):
        out.write("\n".join(self.body))


def test_help_lists_visible_commands(console):
    text = console.submit("help")
    assert text.startswith("For help on a command, use: help <command>\n\nCommands:\n")
    assert "  exit         Exit the REPL without stopping the simulation.\n" in text
    assert "  query        Query entities.\n" in text
    assert "stats-json" not in text
    names = [line.split()[0] for line in text.splitlines()[3:]]
    assert names == sorted(names)


def test_help_for_command_path(console):
    assert console.help("list") == (
        "Lists various things.\n"
        "Commands:\n"
        "  resources    Lists resources.\n"
        "  components   Lists component types.\n"
        "  entities     Lists entity counts per component combination.\n"
    )
    assert console.help("list resources") == "Lists resources.\n"
    assert console.help() == console.submit("help")


def test_query_help_shows_options(console):
    text = console.submit("help query")
    assert "  n             int      Maximum number of entities to print. Default: 25\n" in text
    assert "  with          []string Additional components to filter for.\n" in text
    assert "  exclusive     bool     Only entities with exactly the components in 'with'.\n" in text


def test_pause_resume_stop(console, loop_state):
    loop_state.paused = False
    assert console.submit("pause") == "Simulation paused\n"
    assert loop_state.paused
    assert console.submit("resume") == "Simulation resumed\n"
    assert not loop_state.paused
    assert console.submit("stop") == "Simulation terminated\n"
    assert loop_state.stopped.is_set()


def test_missing_callbacks_are_reported():
    console = Console(World())
    console.run_background()
    try:
        assert console.submit("pause") == "No pause callback provided\n"
        assert console.submit("resume") == "No resume callback provided\n"
        assert console.submit("stop") == "No stop callback provided\n"
        assert console.submit("stats") == "No snapshot callback provided\n"
        assert json.loads(console.submit("stats-json")) == {"stats": {}, "ticks": 0}
    finally:
        console.close()


def test_stats_and_stats_json(console, world):
    text = console.submit("stats")
    assert "entities   : 6" in text
    payload = json.loads(console.submit("stats-json"))
    assert payload["ticks"] == 0
    assert payload["stats"]["entities"] == 6


def test_parse_errors_raise_from_submit(console):
    with pytest.raises(ParseError):
        console.submit("bogus")


def test_fault_does_not_break_console(console):
    console.add_command("boom", Boom)
    with pytest.raises(ExecutionFault) as excinfo:
        console.submit("boom")
    assert str(excinfo.value) == "Command 'boom' failed: kaput"
    assert console.submit("list components") == "0: Position\n1: Velocity\n"


def test_duplicate_command_name_is_rejected(console):
    with pytest.raises(DuplicateName):
        console.add_command("query", Boom)


def test_block_commands(console):
    assert console.submit("$\nanything\n$") == "No block handler provided\n"
    console.set_block_command(Echo)
    assert console.submit("$\nfirst\nsecond\n$") == "first\nsecond"


def test_command_timeout_is_configurable(world):
    console = Console(world, config=ConsoleConfig(command_timeout=0.05))
    # Nobody drains, so the command is withdrawn.
    with pytest.raises(CommandTimeout):
        console.submit("list components")
    assert console.scheduler.pending == 0
    console.close()


def test_submit_inside_drain_runs_inline(world):
    console = Console(world)
    results = []

    class Nested(Command):
        def run(self, ctx, out):
            results.append(console.submit("list components"))

    console.add_command("nested", Nested)
    worker = threading.Thread(target=lambda: console.submit("nested"), daemon=True)
    worker.start()
    while worker.is_alive():
        console.drain()
        worker.join(timeout=0.01)
    assert results == ["0: Position\n1: Velocity\n"]


def _session(console, text):
    out = io.StringIO()
    source = StreamLineSource(io.StringIO(text), writer=out, marker=">\n")
    return Session(console, source, out), out


def test_session_loop_and_marker(console):
    session, out = _session(console, "list components\n\n   \nbogus\n")
    session.run(greeting="hello")
    assert out.getvalue() == "hello\n>\n0: Position\n1: Velocity\n>\n>\n>\nunknown command: bogus\n>\n"


def test_session_ends_on_exit_and_stop(console, loop_state):
    session, out = _session(console, "exit\nlist components\n")
    session.run()
    assert out.getvalue() == ">\n"

    session, out = _session(console, "stop\nlist components\n")
    session.run()
    assert out.getvalue() == ">\nSimulation terminated\n"
    assert loop_state.stopped.is_set()


def test_stop_without_callback_keeps_session(world):
    console = Console(world, Callbacks())
    console.run_background()
    try:
        session, out = _session(console, "stop\nhelp pause\n")
        session.run()
        assert "No stop callback provided\n" in out.getvalue()
        assert "Pause the connected simulation.\n" in out.getvalue()
        assert out.getvalue().count(">\n") == 3
    finally:
        console.close()


def test_session_blocks(console):
    session, out = _session(console, "$\nline one\n$\n")
    session.run()
    assert out.getvalue() == ">\nNo block handler provided\n>\n"


def test_session_eof_inside_block_ends_session(console):
    session, out = _session(console, "$\nline one\n")
    session.run()
    assert out.getvalue() == ">\n"


def test_session_reports_faults(console):
    console.add_command("boom", Boom)
    session, out = _session(console, "boom\nlist components\n")
    session.run()
    assert "Command 'boom' failed: kaput\n" in out.getvalue()
    assert "0: Position\n" in out.getvalue()


def test_local_console_runs_startup_commands_first(console):
    stdout = io.StringIO()
    thread = console.start("list components", stdin=io.StringIO("help list\nexit\n"), stdout=stdout)
    thread.join(timeout=5.0)
    text = stdout.getvalue()
    assert text.startswith("SimREPL started. Type 'help' for commands.\n> list components\n0: Position\n1: Velocity\n")
    assert "Lists various things.\nCommands:\n" in text
    assert text.endswith("REPL exited.\n")
    assert console.scheduler.barrier.released
    with pytest.raises(ConsoleError):
        console.start()


def test_host_loop_submit_between_drains(world):
    console = Console(world)
    results = []

    def host_loop():
        console.drain()
        results.append(console.submit("list components"))
        console.drain()

    host = threading.Thread(target=host_loop, daemon=True)
    host.start()
    host.join(timeout=1.0)
    assert not host.is_alive()
    assert results == ["0: Position\n1: Velocity\n"]


def test_help_stop_does_not_stop(console, loop_state):
    assert console.submit("help stop") == "Stop the connected simulation.\n"
    session, out = _session(console, "help stop\nlist components\n")
    session.run()
    assert "0: Position\n" in out.getvalue()
    assert not loop_state.stopped.is_set()


def test_help_never_runs_the_command(world):
    runs = []

    class Counted(Command):
        description = "Counts its runs."

        def run(self, ctx, out):
            runs.append(True)
            raise RuntimeError("kaput")

    # Nothing drains; a scheduled command would time out instead of hanging.
    console = Console(world, config=ConsoleConfig(command_timeout=0.5))
    console.add_command("boom", Counted)
    try:
        assert console.submit("help boom") == "Counts its runs.\n"
        assert console.help("boom") == "Counts its runs.\n"
        session, out = _session(console, "help boom\n")
        session.run()
        assert out.getvalue() == ">\nCounts its runs.\n>\n"
        assert runs == []
        assert console.scheduler.pending == 0
    finally:
        console.close()


def test_session_survives_broken_help_and_block_handler(console):
    class BadHelp(Command):
        description = "Broken help."

        def format_help(self, out):
            raise RuntimeError("no help")

        def run(self, ctx, out):
            out.write("ran")

    class BadBlock(BlockCommand):
        def __init__(self, lines=()):
            raise ValueError("bad block")

    console.add_command("badhelp", BadHelp)
    console.set_block_command(BadBlock)
    session, out = _session(console, "help badhelp\nbadhelp\n$\nx\n$\nlist components\n")
    session.run()
    assert out.getvalue() == (
        ">\nerror: no help\n>\nran\n>\nerror: bad block\n>\n0: Position\n1: Velocity\n>\n"
    )
