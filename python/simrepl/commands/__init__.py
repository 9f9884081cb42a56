"""Command registry for simrepl."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Type

from .base import Command
from .control import PauseCommand, ResumeCommand, StopCommand
from .exit import ExitCommand
from .help import HelpCommand, render_help
from .script import BlockCommand
from .stats import StatsCommand, StatsJsonCommand
from ..errors import DuplicateName, RegistrationError
from ..schema import iter_schema_classes


@dataclass(frozen=True)
class CommandEntry:
    name: str
    command: Type[Command]
    visible: bool = True


class CommandRegistry:
    """Maps top-level command names to command classes.

    Registration is not synchronized; register everything before exposing
    the console to clients.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CommandEntry] = {}
        self._block_command: Type[BlockCommand] = BlockCommand

    def register(self, name: str, command: Type[Command], *, visible: bool = True) -> None:
        if not name or any(ch.isspace() for ch in name):
            raise RegistrationError(f"invalid command name {name!r}")
        if name in self._entries:
            raise DuplicateName(f"command '{name}' is already registered")
        _check_command_class(command)
        self._entries[name] = CommandEntry(name, command, visible)

    def get(self, name: str) -> Optional[Type[Command]]:
        entry = self._entries.get(name)
        return entry.command if entry else None

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def names(self, *, include_hidden: bool = False) -> List[str]:
        return sorted(name for name, entry in self._entries.items() if include_hidden or entry.visible)

    def entries(self) -> Iterable[CommandEntry]:
        return list(self._entries.values())

    @property
    def block_command(self) -> Type[BlockCommand]:
        return self._block_command

    def set_block_command(self, command: Type[BlockCommand]) -> None:
        if not (isinstance(command, type) and issubclass(command, BlockCommand)):
            raise RegistrationError(f"block command must subclass BlockCommand, got {command!r}")
        self._block_command = command


def _check_command_class(command: object) -> None:
    if not (isinstance(command, type) and issubclass(command, Command)):
        raise RegistrationError(f"{command!r} is not a Command subclass")
    for reachable in iter_schema_classes(command):
        if not (isinstance(reachable, type) and issubclass(reachable, Command)):
            raise RegistrationError(f"subcommand {reachable!r} of {command.__name__} is not a Command subclass")


def build_registry() -> CommandRegistry:
    registry = CommandRegistry()
    builtins = [
        ("help", HelpCommand, True),
        ("pause", PauseCommand, True),
        ("resume", ResumeCommand, True),
        ("stop", StopCommand, True),
        ("exit", ExitCommand, True),
        ("stats", StatsCommand, True),
        ("stats-json", StatsJsonCommand, False),
    ]
    for name, command, visible in builtins:
        registry.register(name, command, visible=visible)
    return registry


__all__ = [
    "BlockCommand",
    "Command",
    "CommandEntry",
    "CommandRegistry",
    "ExitCommand",
    "HelpCommand",
    "build_registry",
    "render_help",
]
