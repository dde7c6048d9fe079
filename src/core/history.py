"""
History Manager - bounded undo/redo stacks of executed commands.

Each editing session owns its own CommandHistory; there is no shared,
module-level history. Only the two stacks are mutable, so one instance
must be driven from a single thread.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from core.commands import Command
from core.errors import CommandNotExecutableError, CommandNotUndoableError
from models.timeline import TimelineState
from runtime_config import get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """A command together with the state it produced."""
    command: Command
    state: TimelineState


class CommandHistory:
    """Executes commands and records them for undo/redo.

    Args:
        max_size: Maximum number of undo entries. When exceeded the oldest
            entry is evicted and can no longer be undone. Defaults to the
            runtime configuration's max_history_size.
    """

    def __init__(self, max_size: Optional[int] = None):
        if max_size is None:
            max_size = get_config().max_history_size
        if max_size < 1:
            raise ValueError("History max_size must be positive")
        self.max_size = max_size
        self.undo_stack: List[HistoryEntry] = []
        self.redo_stack: List[HistoryEntry] = []
        self._clean_command: Optional[Command] = None

    def execute_command(self, command: Command, state: TimelineState) -> TimelineState:
        """Execute *command* against *state* and record it.

        Raises:
            CommandNotExecutableError: command.can_execute(state) is False.
                The history is left untouched.
        """
        if not command.can_execute(state):
            raise CommandNotExecutableError(command)

        new_state = command.execute(state)
        self.undo_stack.append(HistoryEntry(command, new_state))
        # A new branch of history invalidates the old future
        self.redo_stack.clear()

        if len(self.undo_stack) > self.max_size:
            evicted = self.undo_stack.pop(0)
            logger.debug("History full, evicted %r", evicted.command)

        logger.debug("Executed %r (undo=%d)", command, len(self.undo_stack))
        return new_state

    def undo(self, state: TimelineState) -> TimelineState:
        """Undo the most recent command. Returns *state* unchanged if there is none."""
        if not self.undo_stack:
            return state

        entry = self.undo_stack.pop()
        if not entry.command.can_undo(state):
            # Put the entry back so the history is unchanged
            self.undo_stack.append(entry)
            raise CommandNotUndoableError(entry.command)

        previous = entry.command.undo(state)
        self.redo_stack.append(entry)
        logger.debug("Undid %r", entry.command)
        return previous

    def redo(self, state: TimelineState) -> TimelineState:
        """Re-execute the most recently undone command. Returns *state* unchanged if there is none."""
        if not self.redo_stack:
            return state

        entry = self.redo_stack.pop()
        if not entry.command.can_execute(state):
            self.redo_stack.append(entry)
            raise CommandNotExecutableError(entry.command)

        new_state = entry.command.execute(state)
        self.undo_stack.append(HistoryEntry(entry.command, new_state))
        if len(self.undo_stack) > self.max_size:
            self.undo_stack.pop(0)
        logger.debug("Redid %r", entry.command)
        return new_state

    def can_undo(self) -> bool:
        return len(self.undo_stack) > 0

    def can_redo(self) -> bool:
        return len(self.redo_stack) > 0

    def clear(self):
        self.undo_stack.clear()
        self.redo_stack.clear()
        self._clean_command = None

    def get_history_size(self) -> dict:
        return {"undo": len(self.undo_stack), "redo": len(self.redo_stack)}

    def get_undo_description(self) -> Optional[str]:
        return self.undo_stack[-1].command.description if self.undo_stack else None

    def get_redo_description(self) -> Optional[str]:
        return self.redo_stack[-1].command.description if self.redo_stack else None

    def peek_undo_state(self) -> Optional[TimelineState]:
        """State recorded by the command that undo() would revert."""
        return self.undo_stack[-1].state if self.undo_stack else None

    def peek_redo_state(self) -> Optional[TimelineState]:
        """State recorded when the command that redo() would replay last ran."""
        return self.redo_stack[-1].state if self.redo_stack else None

    def set_clean(self):
        """Mark the current position in history as clean (e.g. just saved)."""
        self._clean_command = self.undo_stack[-1].command if self.undo_stack else None

    def is_clean(self) -> bool:
        """Check if the history is at the position last marked clean."""
        current_command = self.undo_stack[-1].command if self.undo_stack else None
        return current_command is self._clean_command
