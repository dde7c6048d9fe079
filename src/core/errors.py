"""
Error types raised by the timeline core.

All errors are raised synchronously to the immediate caller; the core never
swallows, retries or logs them for the user.
"""
from typing import Any, Optional


class TimelineError(Exception):
    """Base class for every error raised by the timeline core."""


class ValidationError(TimelineError):
    """An entity or state violates a structural or referential invariant.

    Attributes:
        message: Human-readable description.
        field: Dotted/indexed path of the offending field, e.g. "tracks[0].clips[1].start".
        value: The offending value.
    """

    def __init__(self, message: str, field: str, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value


class SerializationError(TimelineError):
    """Parsing, validation or version failure while exporting/importing a state."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class CommandError(TimelineError):
    """A command was used against a state it does not apply to."""

    def __init__(self, message: str, command: Any = None):
        super().__init__(message)
        self.command = command


class CommandNotExecutableError(CommandError):
    """Raised when a command whose can_execute() is False is executed."""

    def __init__(self, command: Any):
        super().__init__(f'Command "{command.description}" cannot be executed', command)


class CommandNotUndoableError(CommandError):
    """Raised when a command whose can_undo() is False is undone."""

    def __init__(self, command: Any):
        super().__init__(f'Command "{command.description}" cannot be undone', command)
