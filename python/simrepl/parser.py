"""Turns console input into bound command instances."""

from __future__ import annotations

from typing import List, Optional, Tuple

from .commands import BlockCommand, Command, CommandRegistry, HelpCommand
from .errors import (
    InvalidOption,
    InvalidOptionSyntax,
    InvalidValue,
    ParseError,
    UnknownCommand,
    UnknownSubcommandOrOption,
)
from .schema import OptionField, SubcommandField

DEFAULT_DELIMITER = "$"


def split_block(text: str, delimiter: str = DEFAULT_DELIMITER) -> Optional[List[str]]:
    """Return the lines of a raw block, delimiters included, or None."""
    lines = [line.rstrip("\r") for line in text.strip().split("\n")]
    if len(lines) < 2:
        return None
    if lines[0].strip() != delimiter or lines[-1].strip() != delimiter:
        return None
    lines[0] = lines[-1] = delimiter
    return lines


def parse_input(text: str, registry: CommandRegistry, *, delimiter: str = DEFAULT_DELIMITER) -> Tuple[Command, bool]:
    """Parse one input line (or raw block).

    Returns the bound leaf command and whether help was requested for it.
    Raises a :class:`ParseError` subclass; nothing partial is ever returned.
    """
    block = split_block(text, delimiter)
    if block is not None:
        command: Command = registry.block_command(block)
        command.path = (delimiter,)
        return command, False

    tokens = text.split()
    if not tokens:
        raise ParseError("no command provided")

    name = tokens[0]
    command_cls = registry.get(name)
    if command_cls is None:
        raise UnknownCommand(f"unknown command: {name}")

    if issubclass(command_cls, HelpCommand) and len(tokens) > 1:
        command, _ = parse_input(" ".join(tokens[1:]), registry, delimiter=delimiter)
        return command, True

    command = command_cls()
    path = [name]
    index = 1
    while index < len(tokens):
        token = tokens[index]
        if "=" in token:
            break
        entry = command.schema.find(token)
        if entry is None:
            raise UnknownSubcommandOrOption(f"unknown subcommand or bool option: {token}")
        if isinstance(entry, SubcommandField):
            # Fresh instance: defaults of the leaf only.
            command = entry.command()
            path.append(entry.name.lower())
            index += 1
            continue
        if entry.is_bool:
            break
        raise InvalidOptionSyntax(f"invalid option syntax: {token} (expected {entry.name.lower()}=<{entry.kind_name}>)")

    for token in tokens[index:]:
        _bind_option(command, token)

    command.path = tuple(path)
    return command, False


def _bind_option(command: Command, token: str) -> None:
    key, sep, value = token.partition("=")
    entry = command.schema.find(key) if key else None
    if not isinstance(entry, OptionField):
        raise InvalidOption(f"invalid option: {key or token}")
    if not sep:
        if not entry.is_bool:
            raise InvalidOptionSyntax(f"invalid option syntax: {token}")
        entry.set(command, True)
        return
    try:
        entry.set(command, entry.coerce(value))
    except ValueError:
        raise InvalidValue(f"invalid value for {entry.kind_name} option '{entry.name.lower()}': {value}") from None


def format_command(command: Command) -> str:
    """Canonical text form: the command path and every non-default option."""
    if isinstance(command, BlockCommand):
        return command.text
    parts = list(command.path) or [type(command).__name__.lower()]
    for option in command.schema.options:
        value = option.get(command)
        if value == option.initial():
            continue
        if option.is_bool and value is True:
            parts.append(option.name.lower())
        else:
            parts.append(f"{option.name.lower()}={option.format_value(value)}")
    return " ".join(parts)


__all__ = ["DEFAULT_DELIMITER", "format_command", "parse_input", "split_block"]
