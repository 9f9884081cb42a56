"""Host callbacks and the context handed to running commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, TextIO

if TYPE_CHECKING:  # pragma: no cover
    from .commands import CommandRegistry


@dataclass
class Callbacks:
    """Simulation loop control supplied by the host.

    Every callback is optional; commands report a missing callback instead of
    failing. ``pause``, ``resume`` and ``stop`` receive the output sink of the
    invoking session. ``ticks`` returns the current simulation tick and
    ``snapshot`` returns a serializable view of the target state.
    """

    pause: Optional[Callable[[TextIO], None]] = None
    resume: Optional[Callable[[TextIO], None]] = None
    stop: Optional[Callable[[TextIO], None]] = None
    ticks: Optional[Callable[[], int]] = None
    snapshot: Optional[Callable[[], Mapping[str, Any]]] = None


@dataclass
class CommandContext:
    """Shared state visible to command bodies on the consumer thread."""

    target: Any
    callbacks: Callbacks = field(default_factory=Callbacks)
    registry: Optional["CommandRegistry"] = None
