"""Console engine: one registry, one scheduler, one target."""

from __future__ import annotations

import io
import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO, Tuple, Type

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory

from .commands import BlockCommand, Command, CommandRegistry, build_registry, render_help
from .completion import ConsoleCompleter
from .context import Callbacks, CommandContext
from .errors import ConsoleError
from .parser import DEFAULT_DELIMITER, parse_input
from .scheduler import Scheduler
from .server import ConsoleServer, parse_address
from .session import LineSource, PromptLineSource, Session, StreamLineSource

LOGGER = logging.getLogger("simrepl.console")


@dataclass
class ConsoleConfig:
    greeting: str = "SimREPL connected. Type 'help' for commands."
    local_greeting: str = "SimREPL started. Type 'help' for commands."
    prompt: str = "> "
    marker: str = ">"
    block_delimiter: str = DEFAULT_DELIMITER
    command_timeout: Optional[float] = None
    history_path: Optional[Path] = None


class Console:
    """Embeddable console for inspecting and controlling a live target.

    Commands only ever touch ``target`` on the scheduler's consumer thread:
    either the host calls :meth:`drain` once per tick from its own loop, or
    :meth:`run_background` hands scheduling to a dedicated thread.
    """

    def __init__(
        self,
        target: Any,
        callbacks: Optional[Callbacks] = None,
        *,
        config: Optional[ConsoleConfig] = None,
        registry: Optional[CommandRegistry] = None,
    ) -> None:
        self.target = target
        self.callbacks = callbacks or Callbacks()
        self.config = config or ConsoleConfig()
        self.registry = registry if registry is not None else build_registry()
        self.scheduler = Scheduler()
        self.context = CommandContext(target=target, callbacks=self.callbacks, registry=self.registry)
        self._local_thread: Optional[threading.Thread] = None
        self._server: Optional[ConsoleServer] = None
        self._server_thread: Optional[threading.Thread] = None

    #
    # Registration
    #
    def add_command(self, name: str, command: Type[Command], *, visible: bool = True) -> None:
        """Register a command; raises DuplicateName for a taken name."""
        if self.started:
            LOGGER.warning("command '%s' registered after the console started", name)
        self.registry.register(name, command, visible=visible)

    def set_block_command(self, command: Type[BlockCommand]) -> None:
        self.registry.set_block_command(command)

    @property
    def started(self) -> bool:
        return self._local_thread is not None or self._server is not None

    #
    # Programmatic API
    #
    def parse(self, text: str) -> Tuple[Command, bool]:
        return parse_input(text, self.registry, delimiter=self.config.block_delimiter)

    def execute(self, command: Command, out: TextIO, *, startup: bool = False) -> None:
        """Run a parsed command on the consumer thread and wait for it."""
        label = " ".join(command.path) or type(command).__name__
        self.scheduler.submit(
            lambda: command.run(self.context, out),
            label=label,
            timeout=self.config.command_timeout,
            startup=startup,
        )

    def submit(self, text: str) -> str:
        """Parse and execute one line; returns the command output.

        Help requests are rendered without touching the scheduler.
        """
        command, is_help = self.parse(text)
        out = io.StringIO()
        if is_help:
            render_help(command, out)
        else:
            self.execute(command, out)
        return out.getvalue()

    def help(self, path: str = "") -> str:
        """Render help for ``path`` (e.g. ``"list resources"``) or the command list."""
        command, is_help = self.parse(f"help {path}".strip())
        out = io.StringIO()
        if is_help:
            render_help(command, out)
        else:
            self.execute(command, out)
        return out.getvalue()

    def drain(self) -> int:
        """Run pending commands; call once per tick from the host loop."""
        return self.scheduler.drain()

    def run_background(self) -> None:
        """Let a dedicated thread own command execution."""
        self.scheduler.start_background()

    #
    # Transports
    #
    def start(self, *commands: str, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> threading.Thread:
        """Start the local console on stdin/stdout.

        ``commands`` run first, in order, before any interactive input is
        executed.
        """
        if self._local_thread is not None:
            raise ConsoleError("local console is already running")
        startup = self.scheduler.barrier.arm()
        thread = threading.Thread(
            target=self._local_main,
            args=(list(commands), startup, stdin or sys.stdin, stdout or sys.stdout),
            name="simrepl-local",
            daemon=True,
        )
        self._local_thread = thread
        thread.start()
        return thread

    def _local_source(self, stdin: TextIO, stdout: TextIO) -> LineSource:
        delimiter = self.config.block_delimiter
        if stdin is sys.stdin and stdin.isatty():
            history = FileHistory(str(self.config.history_path)) if self.config.history_path else InMemoryHistory()
            session = PromptSession(history=history, completer=ConsoleCompleter(self.registry))
            return PromptLineSource(session, prompt=self.config.prompt, delimiter=delimiter)
        return StreamLineSource(stdin, writer=stdout, marker=self.config.prompt, delimiter=delimiter)

    def _local_main(self, commands: Sequence[str], startup: bool, stdin: TextIO, stdout: TextIO) -> None:
        session = Session(self, None, stdout, name="local")
        try:
            session.write(self.config.local_greeting)
            try:
                session.run_commands(commands, startup=startup, echo=self.config.prompt)
            finally:
                if startup:
                    self.scheduler.barrier.release()
            session.source = self._local_source(stdin, stdout)
            session.run()
            session.write("REPL exited.")
        except Exception:
            LOGGER.exception("local console failed")

    def serve(self, address: str, *commands: str) -> ConsoleServer:
        """Accept remote sessions on ``host:port`` (or ``:port``)."""
        if self._server is not None:
            raise ConsoleError("REPL server is already running")
        host, port = parse_address(address)
        server = ConsoleServer((host, port), self)
        self._server = server
        startup = self.scheduler.barrier.arm()
        if commands:
            threading.Thread(
                target=self._remote_startup,
                args=(list(commands), startup),
                name="simrepl-startup",
                daemon=True,
            ).start()
        elif startup:
            self.scheduler.barrier.release()
        self._server_thread = threading.Thread(target=server.serve_forever, name="simrepl-server", daemon=True)
        self._server_thread.start()
        LOGGER.info("REPL server listening on %s:%s", *server.server_address[:2])
        return server

    def _remote_startup(self, commands: Sequence[str], startup: bool) -> None:
        out = io.StringIO()
        session = Session(self, None, out, name="startup")
        try:
            session.run_commands(commands, startup=startup, echo=self.config.prompt)
        except Exception:
            LOGGER.exception("startup commands failed")
        finally:
            if startup:
                self.scheduler.barrier.release()
        for line in out.getvalue().splitlines():
            LOGGER.info("[startup] %s", line)

    def close(self) -> None:
        """Stop the server and the scheduler; blocked submitters are released."""
        server = self._server
        if server is not None:
            server.shutdown()
            server.server_close()
            LOGGER.info("REPL server stopped")
        if self._server_thread is not None:
            self._server_thread.join(timeout=1.0)
            self._server_thread = None
        self.scheduler.shutdown()


__all__ = ["Console", "ConsoleConfig"]
