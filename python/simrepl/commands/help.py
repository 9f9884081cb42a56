"""Help command and help rendering."""

from __future__ import annotations

import io
from typing import TextIO

from .base import Command
from ..context import CommandContext


def _first_line(text: str) -> str:
    return text.strip().split("\n", 1)[0] if text else ""


def render_help(command: Command, out: TextIO) -> None:
    """Write the help text of a parsed command without executing it."""
    buffer = io.StringIO()
    command.format_help(buffer)
    text = buffer.getvalue()
    if text and not text.endswith("\n"):
        text += "\n"
    out.write(text)
    subcommands = command.schema.subcommands
    if subcommands:
        out.write("Commands:\n")
        for sub in subcommands:
            out.write(f"  {sub.name.lower():<12} {_first_line(sub.command.description)}\n")
    options = command.schema.options
    if options:
        out.write("Options:\n")
        for option in options:
            parts = [option.help] if option.help else []
            if option.has_default:
                parts.append(f"Default: {option.format_value(option.default)}")
            text = " ".join(parts)
            out.write(f"  {option.name.lower():<13} {option.kind_name:<8} {text}".rstrip() + "\n")


class HelpCommand(Command):
    description = "Show this help."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        registry = ctx.registry
        if registry is None:
            out.write("No commands registered\n")
            return
        out.write("For help on a command, use: help <command>\n\n")
        out.write("Commands:\n")
        for name in registry.names():
            command_cls = registry.get(name)
            out.write(f"  {name:<12} {_first_line(command_cls.description)}\n")
