"""
TimelineStore - the single surface the UI layer talks to.

Holds the current TimelineState and one CommandHistory, delegates every
edit to the history and serialization modules, and announces each new
snapshot through Qt signals.
"""
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from core.commands import Command, ReplaceStateCommand
from core.export_import import merge_states
from core.history import CommandHistory
from core.serialization import (
    DeserializationOptions,
    SerializationOptions,
    deserialize_timeline_state,
    serialize_timeline_state,
)
from core.validation import validate_timeline_state
from core import view_state
from models.timeline import TimelineState


class TimelineStore(QObject):
    """
    Owns the edited timeline for one editing session.

    Signals:
        state_changed: Emitted with the new TimelineState after every committed change
        history_changed: Emitted with (undo_count, redo_count) after every history change
    """

    state_changed = pyqtSignal(object)  # TimelineState
    history_changed = pyqtSignal(int, int)  # undo, redo

    def __init__(self, initial_state: Optional[TimelineState] = None,
                 max_history_size: Optional[int] = None, parent=None):
        super().__init__(parent)

        if initial_state is None:
            initial_state = TimelineState()
        validate_timeline_state(initial_state)

        self._state: TimelineState = initial_state
        self._history = CommandHistory(max_history_size)

    @property
    def state(self) -> TimelineState:
        return self._state

    @property
    def history(self) -> CommandHistory:
        return self._history

    def _commit(self, new_state: TimelineState, history_touched: bool = True):
        self._state = new_state
        self.state_changed.emit(new_state)
        if history_touched:
            self._emit_history()

    def _emit_history(self):
        size = self._history.get_history_size()
        self.history_changed.emit(size["undo"], size["redo"])

    # -- Editing -------------------------------------------------------------

    def dispatch(self, command: Command) -> TimelineState:
        """Execute *command* and record it. Errors leave the state untouched."""
        self._commit(self._history.execute_command(command, self._state))
        return self._state

    def undo(self) -> TimelineState:
        if not self._history.can_undo():
            return self._state
        self._commit(self._history.undo(self._state))
        return self._state

    def redo(self) -> TimelineState:
        if not self._history.can_redo():
            return self._state
        self._commit(self._history.redo(self._state))
        return self._state

    def can_undo(self) -> bool:
        return self._history.can_undo()

    def can_redo(self) -> bool:
        return self._history.can_redo()

    def clear_history(self):
        self._history.clear()
        self._emit_history()

    def get_history_size(self) -> dict:
        return self._history.get_history_size()

    def get_undo_description(self) -> Optional[str]:
        return self._history.get_undo_description()

    def get_redo_description(self) -> Optional[str]:
        return self._history.get_redo_description()

    # -- Subscription --------------------------------------------------------

    def subscribe(self, listener: Callable[[TimelineState], None]) -> Callable[[], None]:
        """Call *listener* with every new snapshot. Returns an unsubscribe function."""
        self.state_changed.connect(listener)
        connected = True

        def unsubscribe():
            nonlocal connected
            if connected:
                connected = False
                self.state_changed.disconnect(listener)

        return unsubscribe

    # -- Export / import -----------------------------------------------------

    def export_state(self, options: Optional[SerializationOptions] = None) -> str:
        return serialize_timeline_state(self._state, options)

    def import_state(self, text: str, options: Optional[DeserializationOptions] = None):
        """Replace the timeline with an exported one. The import can be undone."""
        imported = deserialize_timeline_state(text, options)
        self.dispatch(ReplaceStateCommand(imported, "Import state"))

    def merge_import(self, text: str, options: Optional[DeserializationOptions] = None,
                     conflict_resolution: str = "use-imported",
                     track_merge_strategy: str = "append"):
        """Merge an exported timeline into the current one as a single undoable step."""
        imported = deserialize_timeline_state(text, options)
        merged = merge_states(self._state, imported, conflict_resolution, track_merge_strategy)
        self.dispatch(ReplaceStateCommand(merged, "Merge import"))

    def reset_state(self, state: TimelineState):
        """Start over from *state*, discarding all history."""
        validate_timeline_state(state)
        self._history.clear()
        self._commit(state)

    # -- Save tracking -------------------------------------------------------

    def mark_saved(self):
        self._history.set_clean()

    def has_unsaved_changes(self) -> bool:
        return not self._history.is_clean()

    # -- View state (not recorded in history) --------------------------------

    def select_clip(self, clip_id: str):
        self._commit(view_state.select_clip(self._state, clip_id), history_touched=False)

    def deselect_clip(self):
        self._commit(view_state.deselect_clip(self._state), history_touched=False)

    def set_current_time(self, time: float):
        self._commit(view_state.set_current_time(self._state, time), history_touched=False)

    def set_zoom(self, zoom: float):
        self._commit(view_state.set_zoom(self._state, zoom), history_touched=False)

    def set_playing(self, playing: bool):
        self._commit(view_state.set_playing(self._state, playing), history_touched=False)
