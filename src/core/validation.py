"""
Validator - structural and referential invariant checks.

Every function either returns normally or raises ValidationError carrying
the offending field path and value. Validators never mutate their input.
"""
import math
from typing import Any

from config import CLIP_TYPES, TRACK_TYPES
from core.errors import ValidationError
from models.timeline import Clip, Track, TimelineState


CLIP_UPDATE_FIELDS = ("id", "track_id", "start", "duration", "clip_type", "metadata")
TRACK_UPDATE_FIELDS = ("id", "name", "track_type", "height", "is_visible", "is_muted")


def is_number(value: Any) -> bool:
    """True for finite int/float values. bool is rejected even though it subclasses int."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


# ---------------------------------------------------------------------------
# Field rules shared by full and partial validation
# ---------------------------------------------------------------------------

def _check_clip_start(value):
    if not is_number(value) or value < 0:
        raise ValidationError("Clip start time must be a non-negative number", "start", value)


def _check_clip_duration(value):
    if not is_number(value) or value < 0:
        raise ValidationError("Clip duration must be a non-negative number", "duration", value)


def _check_clip_type(value):
    if value not in CLIP_TYPES:
        raise ValidationError(
            f"Clip type must be one of: {', '.join(CLIP_TYPES)}", "type", value
        )


def _check_clip_metadata(metadata):
    if not isinstance(metadata, dict):
        raise ValidationError("Clip metadata must be a mapping", "metadata", metadata)

    speed = metadata.get("speed")
    if speed is not None and (not is_number(speed) or speed <= 0):
        raise ValidationError("Clip metadata speed must be a positive number", "metadata.speed", speed)

    is_ai = metadata.get("isAI")
    if is_ai is not None and not isinstance(is_ai, bool):
        raise ValidationError("Clip metadata isAI must be a boolean", "metadata.isAI", is_ai)

    for key in ("name", "thumbnailUrl", "text"):
        value = metadata.get(key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Clip metadata {key} must be a string", f"metadata.{key}", value)

    waveform = metadata.get("waveform")
    if waveform is not None and not isinstance(waveform, (list, tuple)):
        raise ValidationError("Clip metadata waveform must be a list", "metadata.waveform", waveform)


def _check_track_name(value):
    if not _is_non_empty_str(value):
        raise ValidationError("Track name must be a non-empty string", "name", value)


def _check_track_type(value):
    if value not in TRACK_TYPES:
        raise ValidationError(
            f"Track type must be one of: {', '.join(TRACK_TYPES)}", "type", value
        )


def _check_track_height(value):
    if not is_number(value) or value <= 0:
        raise ValidationError("Track height must be a positive number", "height", value)


def _check_track_visible(value):
    if not isinstance(value, bool):
        raise ValidationError("Track isVisible must be a boolean", "isVisible", value)


def _check_track_muted(value):
    if value is not None and not isinstance(value, bool):
        raise ValidationError("Track isMuted must be a boolean", "isMuted", value)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

def validate_clip(clip: Clip) -> None:
    """Validate a single clip in isolation."""
    if not _is_non_empty_str(clip.id):
        raise ValidationError("Clip ID must be a non-empty string", "id", clip.id)
    if not _is_non_empty_str(clip.track_id):
        raise ValidationError("Clip trackId must be a non-empty string", "trackId", clip.track_id)
    _check_clip_start(clip.start)
    _check_clip_duration(clip.duration)
    _check_clip_type(clip.clip_type)
    _check_clip_metadata(clip.metadata)


def validate_track(track: Track) -> None:
    """Validate a track and every clip it owns.

    Clip errors are re-raised with the field path prefixed by ``clips[i].``.
    Clips may be stored in any order here; overlap is checked on a
    start-sorted copy.
    """
    if not _is_non_empty_str(track.id):
        raise ValidationError("Track ID must be a non-empty string", "id", track.id)
    _check_track_type(track.track_type)
    _check_track_name(track.name)
    _check_track_height(track.height)
    _check_track_visible(track.is_visible)
    _check_track_muted(track.is_muted)

    if not isinstance(track.clips, (tuple, list)):
        raise ValidationError("Track clips must be a sequence", "clips", track.clips)

    for index, clip in enumerate(track.clips):
        if not isinstance(clip, Clip):
            raise ValidationError(f"Invalid clip at index {index}: not a clip", f"clips[{index}]", clip)
        try:
            validate_clip(clip)
        except ValidationError as e:
            raise ValidationError(
                f"Invalid clip at index {index}: {e.message}", f"clips[{index}].{e.field}", e.value
            ) from e
        if clip.track_id != track.id:
            raise ValidationError(
                f'Clip at index {index} has trackId "{clip.track_id}" but belongs to track "{track.id}"',
                f"clips[{index}].trackId",
                clip.track_id,
            )

    ordered = sorted(track.clips, key=lambda c: c.start)
    for current, following in zip(ordered, ordered[1:]):
        if current.end > following.start:
            raise ValidationError(
                f'Clips "{current.id}" and "{following.id}" overlap in track "{track.id}"',
                "clips",
                (current.id, following.id),
            )


def validate_timeline_state(state: TimelineState) -> None:
    """Validate a whole snapshot, re-validating every track and clip."""
    if not isinstance(state.tracks, (tuple, list)):
        raise ValidationError("Timeline state tracks must be a sequence", "tracks", state.tracks)
    if not is_number(state.current_time) or state.current_time < 0:
        raise ValidationError(
            "Timeline state currentTime must be a non-negative number", "currentTime", state.current_time
        )
    if not is_number(state.duration) or state.duration < 0:
        raise ValidationError(
            "Timeline state duration must be a non-negative number", "duration", state.duration
        )
    if not is_number(state.zoom) or state.zoom <= 0:
        raise ValidationError("Timeline state zoom must be a positive number", "zoom", state.zoom)
    if state.selected_clip_id is not None and not isinstance(state.selected_clip_id, str):
        raise ValidationError(
            "Timeline state selectedClipId must be a string or absent", "selectedClipId", state.selected_clip_id
        )
    if not isinstance(state.is_playing, bool):
        raise ValidationError("Timeline state isPlaying must be a boolean", "isPlaying", state.is_playing)

    track_ids = set()
    clip_ids = set()
    for index, track in enumerate(state.tracks):
        if not isinstance(track, Track):
            raise ValidationError(f"Invalid track at index {index}: not a track", f"tracks[{index}]", track)
        try:
            validate_track(track)
        except ValidationError as e:
            raise ValidationError(
                f"Invalid track at index {index}: {e.message}", f"tracks[{index}].{e.field}", e.value
            ) from e

        if track.id in track_ids:
            raise ValidationError(f'Duplicate track ID "{track.id}" found', f"tracks[{index}].id", track.id)
        track_ids.add(track.id)

        for clip in track.clips:
            if clip.id in clip_ids:
                raise ValidationError(f'Duplicate clip ID "{clip.id}" found', f"tracks[{index}].clips", clip.id)
            clip_ids.add(clip.id)

    if state.selected_clip_id is not None and state.selected_clip_id not in clip_ids:
        raise ValidationError(
            f'Selected clip ID "{state.selected_clip_id}" does not exist in any track',
            "selectedClipId",
            state.selected_clip_id,
        )

    if state.current_time > state.duration:
        raise ValidationError("Timeline currentTime cannot exceed duration", "currentTime", state.current_time)


def is_valid_timeline_state(state: TimelineState) -> bool:
    """Predicate form of validate_timeline_state."""
    try:
        validate_timeline_state(state)
    except ValidationError:
        return False
    return True


# ---------------------------------------------------------------------------
# Partial updates
# ---------------------------------------------------------------------------

def validate_clip_updates(clip_id: str, updates: dict) -> None:
    """Validate a partial clip update before it is merged.

    A clip cannot be renamed or moved to another track through an update;
    moving between tracks is a remove followed by an add.
    """
    for key in updates:
        if key not in CLIP_UPDATE_FIELDS:
            raise ValidationError(f'Unknown clip field "{key}"', key, updates[key])

    if "id" in updates and updates["id"] != clip_id:
        raise ValidationError("Cannot change clip ID through updates", "id", updates["id"])
    if "track_id" in updates:
        raise ValidationError(
            "Cannot move a clip to another track through updates", "trackId", updates["track_id"]
        )
    if "start" in updates:
        _check_clip_start(updates["start"])
    if "duration" in updates:
        _check_clip_duration(updates["duration"])
    if "clip_type" in updates:
        _check_clip_type(updates["clip_type"])
    if "metadata" in updates:
        _check_clip_metadata(updates["metadata"])


def validate_track_updates(track_id: str, updates: dict) -> None:
    """Validate a partial track update before it is merged."""
    for key in updates:
        if key not in TRACK_UPDATE_FIELDS:
            raise ValidationError(f'Unknown track field "{key}"', key, updates[key])

    if "id" in updates and updates["id"] != track_id:
        raise ValidationError("Cannot change track ID through updates", "id", updates["id"])
    if "track_type" in updates:
        _check_track_type(updates["track_type"])
    if "name" in updates:
        _check_track_name(updates["name"])
    if "height" in updates:
        _check_track_height(updates["height"])
    if "is_visible" in updates:
        _check_track_visible(updates["is_visible"])
    if "is_muted" in updates:
        _check_track_muted(updates["is_muted"])
