"""
simrepl: an embeddable console for live simulations.

Host programs create a :class:`Console` around their state, register
commands and either drain it once per tick or let it run commands on its own
thread. Use ``python -m simrepl demo`` for a local demo and
``python -m simrepl connect :9000`` to attach to a served console.
"""

from __future__ import annotations

from .commands import BlockCommand, Command, CommandRegistry, build_registry
from .console import Console, ConsoleConfig
from .context import Callbacks, CommandContext
from .errors import (
    CommandTimeout,
    ConsoleError,
    ExecutionFault,
    ParseError,
    RegistrationError,
    SchedulerError,
    TransportError,
)
from .schema import ListOf, SchemaBuilder

__all__ = [
    "BlockCommand",
    "Callbacks",
    "Command",
    "CommandContext",
    "CommandRegistry",
    "CommandTimeout",
    "Console",
    "ConsoleConfig",
    "ConsoleError",
    "ExecutionFault",
    "ListOf",
    "ParseError",
    "RegistrationError",
    "SchedulerError",
    "SchemaBuilder",
    "TransportError",
    "build_registry",
]
__version__ = "0.1.0"
