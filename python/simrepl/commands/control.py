"""Simulation control commands (pause/resume/stop)."""

from __future__ import annotations

from typing import Callable, Optional, TextIO

from .base import Command
from ..context import CommandContext


def _invoke(callback: Optional[Callable[[TextIO], None]], name: str, done: str, out: TextIO) -> bool:
    if callback is None:
        out.write(f"No {name} callback provided\n")
        return False
    callback(out)
    out.write(f"Simulation {done}\n")
    return True


class PauseCommand(Command):
    description = "Pause the connected simulation."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        _invoke(ctx.callbacks.pause, "pause", "paused", out)


class ResumeCommand(Command):
    description = "Resume the connected simulation."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        _invoke(ctx.callbacks.resume, "resume", "resumed", out)


class StopCommand(Command):
    description = "Stop the connected simulation."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        # The session ends only if the host actually terminated.
        self.ends_session = _invoke(ctx.callbacks.stop, "stop", "terminated", out)
