"""
Tests for merging, id regeneration and backups (core.export_import).
"""
import json
import sys
import os
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from config import SERIALIZATION_VERSION
from core.errors import SerializationError, ValidationError
from core.export_import import (
    create_backup,
    generate_unique_id,
    get_export_metadata,
    merge_states,
    regenerate_ids,
    restore_from_backup,
)
from core.validation import is_valid_timeline_state
from models import Clip, Track, TimelineState


@pytest.fixture
def current():
    return TimelineState(
        tracks=(
            Track("v1", "Video", clips=(Clip("a", "v1", 0.0, 2.0),)),
            Track("a1", "Audio", track_type="audio", clips=(Clip("m", "a1", 0.0, 4.0, "audio"),)),
        ),
        current_time=1.0,
        duration=10.0,
        zoom=1.0,
        selected_clip_id="a",
    )


@pytest.fixture
def imported():
    return TimelineState(
        tracks=(
            Track("v1", "Imported video", clips=(Clip("a", "v1", 5.0, 2.0), Clip("b", "v1", 20.0, 1.0))),
            Track("x1", "Overlay", track_type="overlay", clips=(Clip("o", "x1", 0.0, 1.0, "overlay"),)),
        ),
        current_time=3.0,
        duration=15.0,
        zoom=4.0,
        selected_clip_id="b",
    )


def test_generate_unique_id_avoids_existing():
    taken = {generate_unique_id("clip") for _ in range(20)}
    assert len(taken) == 20
    new_id = generate_unique_id("clip", taken)
    assert new_id.startswith("clip-")
    assert new_id not in taken


def test_regenerate_ids(current):
    fresh = regenerate_ids(current)
    assert fresh.selected_clip_id is None
    assert not set(fresh.track_ids()) & set(current.track_ids())
    assert not set(fresh.clip_ids()) & set(current.clip_ids())
    for track in fresh.tracks:
        assert all(clip.track_id == track.id for clip in track.clips)
    assert is_valid_timeline_state(fresh)


def test_merge_append(current, imported):
    merged = merge_states(current, imported)
    assert len(merged.tracks) == 4
    assert merged.tracks[:2] == current.tracks
    assert len(set(merged.clip_ids())) == 5
    # Imported selection pointed at an id that was regenerated
    assert merged.selected_clip_id is None
    assert merged.zoom == 4.0
    assert merged.duration == 21.0
    assert is_valid_timeline_state(merged)


def test_merge_keep_current(current, imported):
    merged = merge_states(current, imported, conflict_resolution="keep-current")
    assert merged.selected_clip_id == "a"
    assert merged.current_time == 1.0
    assert merged.zoom == 1.0


def test_merge_conflict_keeps_current_selection_when_imported_is_lost(current, imported):
    merged = merge_states(current, imported, conflict_resolution="merge")
    assert merged.selected_clip_id == "a"
    assert merged.zoom == 4.0
    assert merged.current_time == 3.0


def test_merge_conflict_prefers_imported_selection(current, imported):
    merged = merge_states(current, imported, conflict_resolution="merge", track_merge_strategy="replace")
    assert merged.selected_clip_id == "b"


def test_merge_replace(current, imported):
    merged = merge_states(current, imported, track_merge_strategy="replace")
    assert merged.tracks == imported.tracks
    assert merged.selected_clip_id == "b"
    assert merged.duration == 21.0


def test_merge_by_type(current, imported):
    merged = merge_states(current, imported, track_merge_strategy="merge-by-type")
    assert len(merged.tracks) == 3
    video = merged.get_track("v1")
    assert [c.start for c in video.clips] == [0.0, 5.0, 20.0]
    assert all(c.track_id == "v1" for c in video.clips)
    overlay = merged.tracks[2]
    assert overlay.track_type == "overlay"
    assert all(c.track_id == overlay.id for c in overlay.clips)


def test_merge_by_type_overlap_is_rejected(current):
    clash = TimelineState(tracks=(Track("v9", "V", clips=(Clip("q", "v9", 1.0, 1.0),)),), duration=5.0)
    with pytest.raises(ValidationError):
        merge_states(current, clash, track_merge_strategy="merge-by-type")


def test_merge_unknown_strategy(current, imported):
    with pytest.raises(ValueError):
        merge_states(current, imported, track_merge_strategy="interleave")
    with pytest.raises(ValueError):
        merge_states(current, imported, conflict_resolution="newest")


def test_export_metadata(current):
    text = create_backup(current, "before cleanup")
    summary = get_export_metadata(text)
    assert summary.version == SERIALIZATION_VERSION
    assert isinstance(summary.timestamp, datetime)
    assert summary.size == len(text)
    assert summary.track_count == 2
    assert summary.clip_count == 2
    assert summary.duration == 10.0


def test_export_metadata_rejects_garbage():
    with pytest.raises(SerializationError):
        get_export_metadata("[]")
    with pytest.raises(SerializationError):
        get_export_metadata("nope")


def test_backup_round_trip(current):
    text = create_backup(current, "autosave")
    assert json.loads(text)["metadata"]["description"] == "autosave"
    assert restore_from_backup(text) == current


def test_restore_always_validates(current):
    data = json.loads(create_backup(current))
    data["state"]["selectedClipId"] = "ghost"
    with pytest.raises(SerializationError):
        restore_from_backup(json.dumps(data))
