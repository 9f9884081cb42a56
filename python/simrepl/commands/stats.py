"""Statistics commands."""

from __future__ import annotations

from typing import Any, Dict, TextIO

from .base import Command
from ..context import CommandContext
from ..output import json_line, write_mapping


def stats_payload(ctx: CommandContext) -> Dict[str, Any]:
    callbacks = ctx.callbacks
    ticks = callbacks.ticks() if callbacks.ticks is not None else 0
    snapshot = dict(callbacks.snapshot()) if callbacks.snapshot is not None else {}
    return {"ticks": int(ticks), "stats": snapshot}


class StatsCommand(Command):
    description = "Prints simulation statistics."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        if ctx.callbacks.snapshot is None:
            out.write("No snapshot callback provided\n")
            return
        write_mapping(out, ctx.callbacks.snapshot())


class StatsJsonCommand(Command):
    """Machine-readable stats for dashboards; hidden from listings."""

    description = "Prints simulation statistics in JSON format."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        out.write(json_line(stats_payload(ctx)))
        out.write("\n")
