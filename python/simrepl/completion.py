"""prompt_toolkit completer for the local console."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple, Type

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .commands import Command, CommandRegistry, HelpCommand
from .schema import OptionField, SubcommandField


def _normalise_tokens(text: str) -> List[str]:
    tokens = text.split()
    if not text or text[-1].isspace():
        tokens.append("")
    return tokens


class ConsoleCompleter(Completer):
    """Completes command names, subcommand paths and option names."""

    def __init__(self, registry: CommandRegistry) -> None:
        self.registry = registry

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        tokens = _normalise_tokens(document.text_before_cursor)
        prefix = tokens[-1]
        head = tokens[:-1]
        if head and head[0] in self.registry and issubclass(self.registry.get(head[0]), HelpCommand):
            head = head[1:]
        if not head:
            candidates = self.registry.names()
        else:
            resolved = self._resolve(head)
            if resolved is None:
                return
            command, in_options = resolved
            candidates = self._field_candidates(command, in_options=in_options)
        for entry in self._format_candidates(candidates, prefix):
            yield Completion(entry, start_position=-len(prefix))

    def _resolve(self, head: List[str]) -> Optional[Tuple[Type[Command], bool]]:
        command = self.registry.get(head[0])
        if command is None:
            return None
        in_options = False
        for token in head[1:]:
            entry = command.schema.find(token.split("=", 1)[0])
            if isinstance(entry, SubcommandField) and not in_options:
                command = entry.command
                continue
            if not isinstance(entry, OptionField):
                return None
            in_options = True
        return command, in_options

    @staticmethod
    def _field_candidates(command: Type[Command], *, in_options: bool) -> List[str]:
        names: List[str] = []
        for entry in command.schema.fields:
            if isinstance(entry, SubcommandField):
                if not in_options:
                    names.append(entry.name.lower())
            elif isinstance(entry, OptionField):
                names.append(entry.name.lower() if entry.is_bool else f"{entry.name.lower()}=")
        return names

    @staticmethod
    def _format_candidates(candidates: Iterable[str], prefix: str = "") -> List[str]:
        if not prefix:
            return sorted(dict.fromkeys(candidates))
        needle = prefix.lower()
        ordered = [c for c in candidates if c.lower().startswith(needle)]
        return sorted(dict.fromkeys(ordered))


__all__ = ["ConsoleCompleter"]
