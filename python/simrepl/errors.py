"""Error types shared by the simrepl console."""

from __future__ import annotations

from typing import Optional


class ConsoleError(RuntimeError):
    """Base class for console errors."""


class ParseError(ConsoleError, ValueError):
    """Raised when an input line cannot be turned into a command.

    The message is shown verbatim to the submitting session.
    """


class UnknownCommand(ParseError):
    pass


class UnknownSubcommandOrOption(ParseError):
    pass


class InvalidOption(ParseError):
    pass


class InvalidOptionSyntax(ParseError):
    pass


class InvalidValue(ParseError):
    pass


class RegistrationError(ConsoleError):
    """Raised for invalid command definitions or registrations."""


class DuplicateName(RegistrationError):
    pass


class UnsupportedOptionKind(RegistrationError):
    pass


class SchedulerError(ConsoleError):
    """Raised when the scheduler is used incorrectly."""


class ExecutionFault(ConsoleError):
    """Raised to a submitter whose command body raised."""

    def __init__(self, label: str, error: BaseException) -> None:
        super().__init__(f"Command '{label}' failed: {error}")
        self.label = label
        self.error = error


class CommandTimeout(ConsoleError):
    """Raised to a submitter whose command did not complete in time."""

    def __init__(self, label: str, timeout: float, *, started: bool) -> None:
        state = "still running" if started else "withdrawn"
        super().__init__(f"Command '{label}' timed out after {timeout:g}s ({state})")
        self.label = label
        self.timeout = timeout
        self.started = started


class TransportError(ConsoleError):
    """Raised when a session or client cannot read or write its connection."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
