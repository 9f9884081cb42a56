"""Raw multi-line block command.

A block is framed by a delimiter line on both ends. The console does not
interpret blocks itself; hosts plug in a :class:`BlockCommand` subclass with
their own execution and safety policy via
:meth:`CommandRegistry.set_block_command`.
"""

from __future__ import annotations

from typing import Any, Iterable, List, TextIO, Tuple

from .base import Command
from ..context import CommandContext


class BlockCommand(Command):
    description = "Run a raw multi-line block."

    def __init__(self, lines: Iterable[str] = ()) -> None:
        super().__init__()
        self.lines: List[str] = list(lines)

    @property
    def body(self) -> List[str]:
        """Block lines without the delimiter lines."""
        return self.lines[1:-1]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def values(self) -> Tuple[Any, ...]:
        return (tuple(self.lines),)

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        out.write("No block handler provided\n")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(lines={self.lines!r})"
