"""Per-client console sessions and their line sources."""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, Iterable, Optional, TextIO, Tuple

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout

from .commands import ExitCommand, render_help
from .errors import CommandTimeout, ExecutionFault, ParseError, SchedulerError, TransportError
from .parser import DEFAULT_DELIMITER

if TYPE_CHECKING:  # pragma: no cover
    from .console import Console

LOGGER = logging.getLogger("simrepl.session")


class LineSource:
    """Reads console input one line, or one raw block, at a time."""

    def __init__(self, *, delimiter: str = DEFAULT_DELIMITER) -> None:
        self.delimiter = delimiter

    def read_line(self, *, continuation: bool = False) -> Optional[str]:
        """Return the next line without its terminator, or None at EOF."""
        raise NotImplementedError

    def read_input(self) -> Optional[str]:
        line = self.read_line()
        if line is None:
            return None
        if line.strip() != self.delimiter:
            return line
        lines = [self.delimiter]
        while True:
            follow = self.read_line(continuation=True)
            if follow is None:
                raise TransportError("unexpected end of input during block")
            lines.append(follow)
            if follow.strip() == self.delimiter:
                return "\n".join(lines)


class StreamLineSource(LineSource):
    """Line source over a file-like object (stdin pipe, socket file).

    ``marker`` is written to ``writer`` before every new input unit; block
    continuation lines are read without a marker.
    """

    def __init__(
        self,
        stream,
        *,
        writer: Optional[TextIO] = None,
        marker: Optional[str] = None,
        delimiter: str = DEFAULT_DELIMITER,
    ) -> None:
        super().__init__(delimiter=delimiter)
        self.stream = stream
        self.writer = writer
        self.marker = marker

    def read_line(self, *, continuation: bool = False) -> Optional[str]:
        if not continuation and self.marker is not None and self.writer is not None:
            try:
                self.writer.write(self.marker)
                self.writer.flush()
            except (OSError, ValueError) as exc:
                raise TransportError(f"prompt write failed: {exc}", cause=exc) from exc
        try:
            line = self.stream.readline()
        except (OSError, ValueError) as exc:
            raise TransportError(f"read failed: {exc}", cause=exc) from exc
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        if not line:
            return None
        return line.rstrip("\r\n")


class PromptLineSource(LineSource):
    """Interactive terminal input through prompt_toolkit."""

    def __init__(
        self,
        session: PromptSession,
        *,
        prompt: str = "> ",
        continuation_prompt: str = "",
        delimiter: str = DEFAULT_DELIMITER,
    ) -> None:
        super().__init__(delimiter=delimiter)
        self.session = session
        self.prompt = prompt
        self.continuation_prompt = continuation_prompt

    def read_line(self, *, continuation: bool = False) -> Optional[str]:
        message = self.continuation_prompt if continuation else self.prompt
        try:
            with patch_stdout():
                return self.session.prompt(message)
        except (EOFError, KeyboardInterrupt):
            print()
            return None


class Session:
    """One interactive client: read, parse, execute or render help, reply."""

    def __init__(
        self,
        console: "Console",
        source: Optional[LineSource],
        out: Optional[TextIO],
        *,
        name: str = "session",
    ) -> None:
        self.console = console
        self.source = source
        self.out = out
        self.name = name

    def run(self, *, greeting: Optional[str] = None) -> None:
        """Serve the client until EOF, ``exit``/``stop`` or an I/O failure."""
        if self.source is None:
            raise ValueError("session has no input source")
        try:
            if greeting:
                self.write(greeting)
            while True:
                text = self.source.read_input()
                if text is None:
                    break
                if not text.strip():
                    continue
                output, keep_going = self.handle(text)
                self.write(output)
                if not keep_going:
                    break
        except TransportError as exc:
            LOGGER.info("session %s closed: %s", self.name, exc)
        LOGGER.debug("session %s ended", self.name)

    def run_commands(self, commands: Iterable[str], *, startup: bool = False, echo: Optional[str] = None) -> bool:
        """Run a fixed list of command lines; returns False if one ended the session."""
        for line in commands:
            if echo is not None:
                self.write(f"{echo}{line}")
            output, keep_going = self.handle(line, startup=startup)
            self.write(output)
            if not keep_going:
                return False
        return True

    def handle(self, text: str, *, startup: bool = False) -> Tuple[str, bool]:
        """Process one input unit; returns the output text and whether to continue."""
        out = io.StringIO()
        try:
            command, is_help = self.console.parse(text)
            if is_help:
                render_help(command, out)
                return out.getvalue(), True
        except ParseError as exc:
            out.write(f"{exc}\n")
            return out.getvalue(), True
        except Exception as exc:
            # Host-supplied constructors and help text; the session keeps its framing.
            LOGGER.exception("session %s: failed to handle %r", self.name, text)
            out.write(f"error: {exc}\n")
            return out.getvalue(), True
        if isinstance(command, ExitCommand):
            return out.getvalue(), False
        try:
            self.console.execute(command, out, startup=startup)
        except (ExecutionFault, CommandTimeout) as exc:
            out.write(f"{exc}\n")
        except SchedulerError as exc:
            out.write(f"error: {exc}\n")
            return out.getvalue(), False
        return out.getvalue(), not command.ends_session

    def write(self, text: str) -> None:
        if not text or self.out is None:
            return
        if not text.endswith("\n"):
            text += "\n"
        try:
            self.out.write(text)
            self.out.flush()
        except (OSError, ValueError) as exc:
            raise TransportError(f"write failed: {exc}", cause=exc) from exc


__all__ = ["LineSource", "PromptLineSource", "Session", "StreamLineSource"]
