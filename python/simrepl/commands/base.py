"""Command base class for simrepl."""

from __future__ import annotations

from typing import Any, ClassVar, TextIO, Tuple

from ..context import CommandContext
from ..schema import EMPTY_SCHEMA, CommandSchema


class Command:
    """A console command.

    Subclasses set ``description`` (first line is used in listings), declare
    their options and subcommands in ``schema`` and implement :meth:`run`.
    A fresh instance is created for every parsed line, so option values never
    leak between invocations.
    """

    description: ClassVar[str] = ""
    schema: ClassVar[CommandSchema] = EMPTY_SCHEMA

    def __init__(self, **values: Any) -> None:
        self.path: Tuple[str, ...] = ()
        self.ends_session = False
        for option in self.schema.options:
            option.set(self, option.initial())
        for name, value in values.items():
            option = self.schema.find(name)
            if option is None or option not in self.schema.options:
                raise TypeError(f"{type(self).__name__} has no option '{name}'")
            option.set(self, value)

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        raise NotImplementedError("Command must implement run()")

    def format_help(self, out: TextIO) -> None:
        out.write(f"{self.description}\n")

    def values(self) -> Tuple[Any, ...]:
        return tuple(option.get(self) for option in self.schema.options)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.values() == other.values()  # type: ignore[union-attr]

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        fields = ", ".join(f"{option.name}={option.get(self)!r}" for option in self.schema.options)
        return f"{type(self).__name__}({fields})"
