"""
Tests for TimelineStore, the Qt-facing facade.
"""
import json
import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.commands import AddClipCommand, RemoveClipCommand, UpdateTrackCommand
from core.errors import CommandNotExecutableError, SerializationError, ValidationError
from models import Clip, Track, TimelineState
from ui.timeline_store import TimelineStore


def _add(clip_id: str, start: float, duration: float = 1.0) -> AddClipCommand:
    return AddClipCommand(clip_id, "track-1", Clip(clip_id, "track-1", start, duration, "video"))


@pytest.fixture
def store(qtbot):
    return TimelineStore(TimelineState(tracks=(Track("track-1", "Video 1"),)), max_history_size=5)


def test_dispatch_undo_scenario(store):
    state = store.dispatch(_add("clip-1", 0.0, 5.0))
    assert len(state.get_track("track-1").clips) == 1
    assert state.duration == 5
    assert store.state is state

    restored = store.undo()
    assert restored.get_track("track-1").clips == ()
    assert restored.duration == 0


def test_subscribers_receive_snapshots(store):
    received = []
    unsubscribe = store.subscribe(received.append)

    store.dispatch(_add("clip-1", 0.0))
    store.undo()
    store.redo()
    assert len(received) == 3
    assert received[-1] is store.state

    unsubscribe()
    unsubscribe()
    store.dispatch(_add("clip-2", 2.0))
    assert len(received) == 3


def test_state_changed_signal(store, qtbot):
    with qtbot.waitSignal(store.state_changed, timeout=1000) as blocker:
        store.dispatch(_add("clip-1", 0.0))
    assert blocker.args[0].find_clip("clip-1") is not None


def test_history_changed_signal(store, qtbot):
    with qtbot.waitSignal(store.history_changed, timeout=1000) as blocker:
        store.dispatch(_add("clip-1", 0.0))
    assert blocker.args == [1, 0]


def test_empty_undo_redo_emit_nothing(store):
    received = []
    store.subscribe(received.append)
    before = store.state
    assert store.undo() is before
    assert store.redo() is before
    assert received == []


def test_failed_dispatch_keeps_state(store):
    received = []
    store.subscribe(received.append)
    before = store.state
    with pytest.raises(CommandNotExecutableError):
        store.dispatch(RemoveClipCommand("ghost"))
    assert store.state is before
    assert received == []


def test_history_bound(store):
    for i in range(10):
        store.dispatch(_add(f"clip-{i}", i * 2.0))
    assert store.get_history_size() == {"undo": 5, "redo": 0}


def test_descriptions(store):
    store.dispatch(UpdateTrackCommand("track-1", {"name": "Main"}, "Rename track"))
    assert store.get_undo_description() == "Rename track"
    store.undo()
    assert store.get_undo_description() is None
    assert store.get_redo_description() == "Rename track"


def test_export_import_round_trip(store):
    store.dispatch(_add("clip-1", 0.0, 3.0))
    text = store.export_state()
    assert json.loads(text)["state"]["duration"] == 3.0

    other = TimelineStore()
    other.import_state(text)
    assert other.state == store.state
    assert other.get_undo_description() == "Import state"
    other.undo()
    assert other.state == TimelineState()


def test_failed_import_keeps_state(store):
    before = store.state
    with pytest.raises(SerializationError):
        store.import_state("{broken")
    assert store.state is before
    assert not store.can_undo()


def test_merge_import(store):
    store.dispatch(_add("clip-1", 0.0))
    incoming = TimelineState(tracks=(Track("track-1", "Other", clips=(Clip("x", "track-1", 0.0, 2.0),)),))
    source = TimelineStore(incoming)
    store.merge_import(source.export_state())
    assert len(store.state.tracks) == 2
    assert store.get_undo_description() == "Merge import"


def test_reset_state_clears_history(store):
    store.dispatch(_add("clip-1", 0.0))
    store.reset_state(TimelineState())
    assert store.state == TimelineState()
    assert not store.can_undo()


def test_unsaved_changes(store):
    assert not store.has_unsaved_changes()
    store.dispatch(_add("clip-1", 0.0))
    assert store.has_unsaved_changes()
    store.mark_saved()
    assert not store.has_unsaved_changes()
    store.undo()
    assert store.has_unsaved_changes()


def test_view_changes_skip_history(store):
    store.dispatch(_add("clip-1", 0.0, 4.0))
    store.select_clip("clip-1")
    store.set_current_time(2.0)
    store.set_zoom(3.0)
    store.set_playing(True)
    assert store.state.selected_clip_id == "clip-1"
    assert store.state.current_time == 2.0
    assert store.get_history_size() == {"undo": 1, "redo": 0}

    store.deselect_clip()
    assert store.state.selected_clip_id is None
    with pytest.raises(ValidationError):
        store.select_clip("ghost")


def test_invalid_initial_state(qtbot):
    with pytest.raises(ValidationError):
        TimelineStore(TimelineState(current_time=5.0))


def test_stores_do_not_share_history(qtbot):
    first = TimelineStore(TimelineState(tracks=(Track("track-1", "V"),)))
    second = TimelineStore(TimelineState(tracks=(Track("track-1", "V"),)))
    first.dispatch(_add("clip-1", 0.0))
    assert first.can_undo()
    assert not second.can_undo()
