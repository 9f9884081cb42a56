"""Command schemas: typed option and subcommand descriptors.

A command class declares its fields once through :class:`SchemaBuilder`::

    schema = (
        SchemaBuilder()
        .option("n", int, default=25, help="Maximum number of entities to print.")
        .option("comps", ListOf(str), help="Components of the query.")
        .subcommand("resources", ListResources)
        .build()
    )

The parser walks these descriptors instead of inspecting the command class.
Option fields become instance attributes of the same name.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import DuplicateName, RegistrationError, UnsupportedOptionKind

_BOOL_LITERALS: Dict[str, bool] = {
    "1": True,
    "t": True,
    "T": True,
    "TRUE": True,
    "true": True,
    "True": True,
    "0": False,
    "f": False,
    "F": False,
    "FALSE": False,
    "false": False,
    "False": False,
}
_INT_RE = re.compile(r"^[+-]?[0-9]+$")

# Attribute names used by Command and BlockCommand themselves.
RESERVED_FIELD_NAMES = frozenset(
    {
        "path",
        "run",
        "schema",
        "description",
        "ends_session",
        "format_help",
        "name",
        "values",
        "lines",
        "body",
        "text",
    }
)


class _Missing:
    def __repr__(self) -> str:
        return "<no default>"


MISSING: Any = _Missing()


def parse_bool(text: str) -> bool:
    try:
        return _BOOL_LITERALS[text]
    except KeyError:
        raise ValueError(f"invalid bool literal {text!r}") from None


def parse_int(text: str) -> int:
    if not _INT_RE.match(text):
        raise ValueError(f"invalid int literal {text!r}")
    return int(text, 10)


def parse_float(text: str) -> float:
    if "_" in text or text != text.strip():
        raise ValueError(f"invalid float literal {text!r}")
    return float(text)


def parse_str(text: str) -> str:
    return text


_PARSERS: Dict[type, Callable[[str], Any]] = {
    bool: parse_bool,
    int: parse_int,
    float: parse_float,
    str: parse_str,
}
_KIND_NAMES: Dict[type, str] = {bool: "bool", int: "int", float: "float", str: "string"}
_ZERO: Dict[type, Any] = {bool: False, int: 0, float: 0.0, str: ""}


@dataclass(frozen=True)
class ListOf:
    """List-of-primitive option kind; values are comma separated."""

    kind: type

    def __post_init__(self) -> None:
        if self.kind not in _PARSERS:
            raise UnsupportedOptionKind(f"unsupported list element type {self.kind!r}")


OptionKind = Union[type, ListOf]


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return repr(value)
    return str(value)


@dataclass(frozen=True)
class OptionField:
    """A primitive or list-of-primitive option."""

    name: str
    kind: OptionKind
    default: Any = MISSING
    help: str = ""

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def is_list(self) -> bool:
        return isinstance(self.kind, ListOf)

    @property
    def is_bool(self) -> bool:
        return self.kind is bool

    @property
    def kind_name(self) -> str:
        if isinstance(self.kind, ListOf):
            return f"[]{_KIND_NAMES[self.kind.kind]}"
        return _KIND_NAMES[self.kind]

    def zero(self) -> Any:
        if isinstance(self.kind, ListOf):
            return []
        return _ZERO[self.kind]

    def initial(self) -> Any:
        """Value to bind before explicit options; copies list defaults."""
        if not self.has_default:
            return self.zero()
        if isinstance(self.default, list):
            return list(self.default)
        return self.default

    def coerce(self, text: str) -> Any:
        """Convert the textual value of this option; raises ValueError."""
        if isinstance(self.kind, ListOf):
            if text == "":
                return []
            parse = _PARSERS[self.kind.kind]
            return [parse(part) for part in text.split(",")]
        return _PARSERS[self.kind](text)

    def format_value(self, value: Any) -> str:
        if isinstance(value, (list, tuple)):
            return ",".join(_format_scalar(item) for item in value)
        return _format_scalar(value)

    def get(self, command: Any) -> Any:
        return getattr(command, self.name)

    def set(self, command: Any, value: Any) -> None:
        setattr(command, self.name, value)


@dataclass(frozen=True)
class SubcommandField:
    """A nested command reachable by name from its parent."""

    name: str
    command: type


SchemaField = Union[OptionField, SubcommandField]


@dataclass(frozen=True)
class CommandSchema:
    """Immutable, ordered field list of one command type."""

    fields: Tuple[SchemaField, ...] = ()

    @property
    def options(self) -> Tuple[OptionField, ...]:
        return tuple(f for f in self.fields if isinstance(f, OptionField))

    @property
    def subcommands(self) -> Tuple[SubcommandField, ...]:
        return tuple(f for f in self.fields if isinstance(f, SubcommandField))

    def find(self, token: str) -> Optional[SchemaField]:
        needle = token.lower()
        for entry in self.fields:
            if entry.name.lower() == needle:
                return entry
        return None


EMPTY_SCHEMA = CommandSchema()


class SchemaBuilder:
    """Collects field descriptors and validates them once."""

    def __init__(self) -> None:
        self._fields: List[SchemaField] = []

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not name.isidentifier() or name.startswith("_"):
            raise RegistrationError(f"invalid field name {name!r}")
        if name in RESERVED_FIELD_NAMES:
            raise RegistrationError(f"field name '{name}' is reserved")
        lowered = name.lower()
        if any(existing.name.lower() == lowered for existing in self._fields):
            raise DuplicateName(f"field '{name}' is already declared")

    def option(self, name: str, kind: OptionKind, *, default: Any = MISSING, help: str = "") -> "SchemaBuilder":
        self._check_name(name)
        if not isinstance(kind, ListOf) and kind not in _PARSERS:
            raise UnsupportedOptionKind(f"unsupported type {kind!r} for option '{name}'")
        option = OptionField(name=name, kind=kind, default=_check_default(name, kind, default), help=help)
        self._fields.append(option)
        return self

    def subcommand(self, name: str, command: type) -> "SchemaBuilder":
        self._check_name(name)
        if not isinstance(command, type):
            raise RegistrationError(f"subcommand '{name}' must be a command class, got {command!r}")
        self._fields.append(SubcommandField(name=name, command=command))
        return self

    def build(self) -> CommandSchema:
        return CommandSchema(tuple(self._fields))


def _check_default(name: str, kind: OptionKind, default: Any) -> Any:
    if default is MISSING:
        return MISSING
    if isinstance(kind, ListOf):
        if not isinstance(default, (list, tuple)):
            raise RegistrationError(f"default for list option '{name}' must be a list")
        return [_check_scalar(name, kind.kind, item) for item in default]
    return _check_scalar(name, kind, default)


def _check_scalar(name: str, kind: type, value: Any) -> Any:
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if kind is bool and not isinstance(value, bool):
        raise RegistrationError(f"default for option '{name}' must be bool, got {value!r}")
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise RegistrationError(f"default for option '{name}' must be int, got {value!r}")
    if not isinstance(value, kind):
        raise RegistrationError(f"default for option '{name}' must be {_KIND_NAMES[kind]}, got {value!r}")
    return value


def iter_schema_classes(command: type, seen: Optional[set] = None) -> Sequence[type]:
    """Return ``command`` and every command class reachable through subcommands."""
    seen = set() if seen is None else seen
    if command in seen:
        return []
    seen.add(command)
    found: List[type] = [command]
    schema = getattr(command, "schema", EMPTY_SCHEMA)
    for sub in schema.subcommands:
        found.extend(iter_schema_classes(sub.command, seen))
    return found


__all__ = [
    "CommandSchema",
    "EMPTY_SCHEMA",
    "ListOf",
    "MISSING",
    "OptionField",
    "SchemaBuilder",
    "SubcommandField",
    "iter_schema_classes",
    "parse_bool",
    "parse_float",
    "parse_int",
]
