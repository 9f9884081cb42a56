"""Exit command."""

from __future__ import annotations

from typing import TextIO

from .base import Command
from ..context import CommandContext


class ExitCommand(Command):
    """Ends the current session; sessions handle it without scheduling."""

    description = "Exit the REPL without stopping the simulation."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        self.ends_session = True
