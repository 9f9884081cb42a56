"""World inspection commands for the demo host."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List, TextIO

from ..commands import Command
from ..context import CommandContext
from ..output import format_memory, num_digits
from ..schema import ListOf, SchemaBuilder
from .world import UnknownComponent, World


def _render(value: Any) -> str:
    if is_dataclass(value):
        fields = " ".join(f"{key}:{val}" for key, val in asdict(value).items())
        return f"{type(value).__name__}{{{fields}}}"
    return repr(value)


class QueryCommand(Command):
    description = "Query entities."
    schema = (
        SchemaBuilder()
        .option("n", int, default=25, help="Maximum number of entities to print.")
        .option("page", int, help="Page of entities to show (i'th N).")
        .option("comps", ListOf(str), help="Components of the query.")
        # Capitalised: ``with`` is a keyword; lookup is case-insensitive anyway.
        .option("With", ListOf(str), help="Additional components to filter for.")
        .option("without", ListOf(str), help="Only entities without these components.")
        .option("exclusive", bool, help="Only entities with exactly the components in 'with'.")
        .option("full", bool, help="Show all components, not only those queried.")
        .build()
    )

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        world: World = ctx.target
        try:
            matches = list(world.query(self.comps, with_=self.With, without=self.without, exclusive=self.exclusive))
        except UnknownComponent as exc:
            out.write(f"{exc}\n")
            return
        total = len(matches)
        shown = 0
        if self.n > 0:
            start = self.page * self.n
            for entity, values in matches[start:start + self.n]:
                names = list(values) if self.full else self.comps
                rendered = " ".join(_render(values[name]) for name in names)
                out.write(f"{entity}: {rendered}".rstrip() + "\n")
                shown += 1
        pages = (total + self.n - 1) // self.n if self.n > 0 else 0
        out.write(f"Listed {shown} of {total} entities (page {self.page} of {pages})\n")


class ShrinkCommand(Command):
    description = "Shrink world memory."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        world: World = ctx.target
        before = world.memory
        world.shrink()
        after = world.memory
        if after != before:
            out.write(f"Shrink world memory: {format_memory(before)} -> {format_memory(after)}\n")
        else:
            out.write(f"Shrink had no effect: {format_memory(after)}\n")


class ListResources(Command):
    description = "Lists resources."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        resources: Dict[str, Any] = ctx.target.resources
        if not resources:
            out.write("No resources\n")
            return
        pad = num_digits(len(resources))
        for index, value in enumerate(resources.values()):
            out.write(f"{index:>{pad}}: {_render(value)}\n")


class ListComponents(Command):
    description = "Lists component types."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        names: List[str] = ctx.target.component_names()
        if not names:
            out.write("No components\n")
            return
        pad = num_digits(len(names))
        for index, name in enumerate(names):
            out.write(f"{index:>{pad}}: {name}\n")


class ListEntities(Command):
    description = "Lists entity counts per component combination."

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        archetypes = ctx.target.archetypes()
        if not archetypes:
            out.write("No entities\n")
            return
        pad_ids = num_digits(len(archetypes))
        pad_count = num_digits(max(archetypes.values()))
        for index, (names, count) in enumerate(sorted(archetypes.items())):
            out.write(f"{index:>{pad_ids}}: {count:>{pad_count}} entities  {' '.join(names)}\n")


class ListCommand(Command):
    description = "Lists various things."
    schema = (
        SchemaBuilder()
        .subcommand("resources", ListResources)
        .subcommand("components", ListComponents)
        .subcommand("entities", ListEntities)
        .build()
    )

    def run(self, ctx: CommandContext, out: TextIO) -> None:
        out.write("Lists various things. Run `help list` for details.\n")


DEMO_COMMANDS = [
    ("query", QueryCommand),
    ("list", ListCommand),
    ("shrink", ShrinkCommand),
]
