"""
View-state transitions: selection, playhead, zoom and playback flag.

These change what the user is looking at, not the edited document, so
they are applied directly and never recorded in history.
"""
from dataclasses import replace

from core.errors import ValidationError
from core.validation import is_number
from models.timeline import TimelineState


def select_clip(state: TimelineState, clip_id: str) -> TimelineState:
    if state.find_clip(clip_id) is None:
        raise ValidationError(f'Clip "{clip_id}" does not exist', "selectedClipId", clip_id)
    return replace(state, selected_clip_id=clip_id)


def deselect_clip(state: TimelineState) -> TimelineState:
    return replace(state, selected_clip_id=None)


def set_current_time(state: TimelineState, time: float) -> TimelineState:
    """Move the playhead, clamped to the timeline duration."""
    if not is_number(time) or time < 0:
        raise ValidationError("Current time must be a non-negative number", "currentTime", time)
    return replace(state, current_time=min(time, state.duration))


def set_zoom(state: TimelineState, zoom: float) -> TimelineState:
    if not is_number(zoom) or zoom <= 0:
        raise ValidationError("Zoom must be a positive number", "zoom", zoom)
    return replace(state, zoom=zoom)


def set_playing(state: TimelineState, playing: bool) -> TimelineState:
    if not isinstance(playing, bool):
        raise ValidationError("isPlaying must be a boolean", "isPlaying", playing)
    return replace(state, is_playing=playing)
