"""
Command Layer - atomic, invertible timeline edits.

A command carries only its parameters when constructed. execute() returns a
new TimelineState and remembers the few pre-execution values undo() needs
(the touched track's clip sequence, the prior duration, the prior
selection). States are immutable, so those values are shared with the old
state rather than copied.

Contract for every command:
    can_execute(s) -> bool
    execute(s) -> s'            (requires can_execute(s))
    can_undo(s') -> bool
    undo(s') -> s               (undo(execute(s)) == s)
"""
import copy
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from core.errors import CommandError, CommandNotExecutableError, ValidationError
from core.validation import (
    is_number,
    is_valid_timeline_state,
    validate_clip,
    validate_clip_updates,
    validate_timeline_state,
    validate_track,
    validate_track_updates,
)
from models.timeline import Clip, Track, TimelineState


def sort_clips(clips: Iterable[Clip]) -> Tuple[Clip, ...]:
    """Sort clips ascending by start. Ties keep their prior relative order."""
    return tuple(sorted(clips, key=lambda c: c.start))


def compute_duration(tracks: Iterable[Track], nominal: float) -> float:
    """Maximum clip end across *tracks*, floored at *nominal*."""
    ends = [clip.end for track in tracks for clip in track.clips]
    return max([nominal] + ends)


@dataclass(frozen=True)
class _TrackSnapshot:
    """Pre-execution values a clip command restores on undo."""
    track_id: str
    clips: Tuple[Clip, ...]
    duration: float
    selected_clip_id: Optional[str]


def _restore_snapshot(state: TimelineState, snapshot: _TrackSnapshot, selected_clip_id) -> TimelineState:
    track = state.get_track(snapshot.track_id)
    restored = state.with_track(replace(track, clips=snapshot.clips))
    return replace(
        restored,
        duration=snapshot.duration,
        current_time=min(state.current_time, snapshot.duration),
        selected_clip_id=selected_clip_id,
    )


class Command:
    """Base class for timeline commands."""

    description = ""

    def can_execute(self, state: TimelineState) -> bool:
        return True

    def execute(self, state: TimelineState) -> TimelineState:
        raise NotImplementedError

    def can_undo(self, state: TimelineState) -> bool:
        return False

    def undo(self, state: TimelineState) -> TimelineState:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.description!r}>"


# ---------------------------------------------------------------------------
# Clip commands
# ---------------------------------------------------------------------------

class AddClipCommand(Command):
    """Append a clip to a track, keeping the track sorted by start."""

    def __init__(self, clip_id: str, track_id: str, clip: Clip, description: str = "Add clip"):
        self.clip_id = clip_id
        self.track_id = track_id
        # The stored clip always belongs to the target track under the given id
        self.clip = replace(clip, id=clip_id, track_id=track_id)
        self.description = description
        self._before: Optional[_TrackSnapshot] = None

    def can_execute(self, state: TimelineState) -> bool:
        if state.get_track(self.track_id) is None:
            return False
        return state.find_clip(self.clip_id) is None

    def execute(self, state: TimelineState) -> TimelineState:
        validate_clip(self.clip)
        track = state.get_track(self.track_id)
        new_track = replace(track, clips=sort_clips(track.clips + (self.clip,)))
        validate_track(new_track)

        self._before = _TrackSnapshot(track.id, track.clips, state.duration, state.selected_clip_id)
        new_state = state.with_track(new_track)
        return replace(new_state, duration=compute_duration(new_state.tracks, state.duration))

    def can_undo(self, state: TimelineState) -> bool:
        return self._before is not None and state.find_clip(self.clip_id) is not None

    def undo(self, state: TimelineState) -> TimelineState:
        selected = state.selected_clip_id
        if selected == self.clip_id:
            selected = None
        return _restore_snapshot(state, self._before, selected)


class RemoveClipCommand(Command):
    """Delete a clip from whichever track owns it."""

    def __init__(self, clip_id: str, description: str = "Remove clip"):
        self.clip_id = clip_id
        self.description = description
        self._before: Optional[_TrackSnapshot] = None

    def can_execute(self, state: TimelineState) -> bool:
        return state.find_clip(self.clip_id) is not None

    def execute(self, state: TimelineState) -> TimelineState:
        track = state.find_track_of_clip(self.clip_id)
        new_track = replace(track, clips=tuple(c for c in track.clips if c.id != self.clip_id))

        self._before = _TrackSnapshot(track.id, track.clips, state.duration, state.selected_clip_id)
        new_state = state.with_track(new_track)
        selected = None if state.selected_clip_id == self.clip_id else state.selected_clip_id
        return replace(
            new_state,
            duration=compute_duration(new_state.tracks, state.duration),
            selected_clip_id=selected,
        )

    def can_undo(self, state: TimelineState) -> bool:
        if self._before is None or state.find_clip(self.clip_id) is not None:
            return False
        return state.get_track(self._before.track_id) is not None

    def undo(self, state: TimelineState) -> TimelineState:
        return _restore_snapshot(state, self._before, self._before.selected_clip_id)


class UpdateClipCommand(Command):
    """Shallow-merge field updates into a clip.

    Updates use attribute names: start, duration, clip_type, metadata.
    metadata is replaced as a whole, not merged key by key.
    """

    def __init__(self, clip_id: str, updates: dict, description: str = "Update clip"):
        self.clip_id = clip_id
        self.updates = copy.deepcopy(dict(updates))
        self.description = description
        self._before: Optional[_TrackSnapshot] = None

    def can_execute(self, state: TimelineState) -> bool:
        return state.find_clip(self.clip_id) is not None

    def execute(self, state: TimelineState) -> TimelineState:
        validate_clip_updates(self.clip_id, self.updates)
        track = state.find_track_of_clip(self.clip_id)
        updated = replace(track.get_clip(self.clip_id), **self.updates)
        validate_clip(updated)
        new_track = replace(
            track, clips=sort_clips(updated if c.id == self.clip_id else c for c in track.clips)
        )
        validate_track(new_track)

        self._before = _TrackSnapshot(track.id, track.clips, state.duration, state.selected_clip_id)
        new_state = state.with_track(new_track)
        return replace(new_state, duration=compute_duration(new_state.tracks, state.duration))

    def can_undo(self, state: TimelineState) -> bool:
        return self._before is not None and state.find_clip(self.clip_id) is not None

    def undo(self, state: TimelineState) -> TimelineState:
        return _restore_snapshot(state, self._before, state.selected_clip_id)


class CompositeCommand(Command):
    """Several commands applied as one all-or-nothing unit.

    Every sub-command must be executable against the same starting state,
    and the whole sequence must fold without error. undo runs the
    sub-commands' undo in reverse order.
    """

    def __init__(self, commands: Sequence[Command], description: Optional[str] = None):
        self.commands: Tuple[Command, ...] = tuple(commands)
        self.description = description or f"Composite command ({len(self.commands)} operations)"
        self._executed = False

    def can_execute(self, state: TimelineState) -> bool:
        if not all(cmd.can_execute(state) for cmd in self.commands):
            return False
        # Dry run on copies so the real sub-commands keep their undo memos
        try:
            self._fold(copy.deepcopy(self.commands), state)
        except (CommandError, ValidationError):
            return False
        return True

    @staticmethod
    def _fold(commands: Sequence[Command], state: TimelineState) -> TimelineState:
        current = state
        for cmd in commands:
            if not cmd.can_execute(current):
                raise CommandNotExecutableError(cmd)
            current = cmd.execute(current)
        return current

    def execute(self, state: TimelineState) -> TimelineState:
        current = self._fold(self.commands, state)
        self._executed = True
        return current

    def can_undo(self, state: TimelineState) -> bool:
        return self._executed

    def undo(self, state: TimelineState) -> TimelineState:
        current = state
        for cmd in reversed(self.commands):
            current = cmd.undo(current)
        return current


# ---------------------------------------------------------------------------
# Track commands
# ---------------------------------------------------------------------------

class AddTrackCommand(Command):
    """Append a track (optionally already holding clips)."""

    def __init__(self, track: Track, description: str = "Add track"):
        self.track = replace(track, clips=tuple(replace(clip) for clip in track.clips))
        self.description = description
        self._prior_duration: Optional[float] = None

    def can_execute(self, state: TimelineState) -> bool:
        if state.get_track(self.track.id) is not None:
            return False
        existing = set(state.clip_ids())
        return not any(clip.id in existing for clip in self.track.clips)

    def execute(self, state: TimelineState) -> TimelineState:
        track = replace(self.track, clips=sort_clips(self.track.clips))
        validate_track(track)

        self._prior_duration = state.duration
        tracks = state.tracks + (track,)
        return replace(state, tracks=tracks, duration=compute_duration(tracks, state.duration))

    def can_undo(self, state: TimelineState) -> bool:
        return self._prior_duration is not None and state.get_track(self.track.id) is not None

    def undo(self, state: TimelineState) -> TimelineState:
        removed = state.get_track(self.track.id)
        selected = state.selected_clip_id
        if selected is not None and removed.get_clip(selected) is not None:
            selected = None
        return replace(
            state,
            tracks=tuple(t for t in state.tracks if t.id != self.track.id),
            duration=self._prior_duration,
            current_time=min(state.current_time, self._prior_duration),
            selected_clip_id=selected,
        )


class RemoveTrackCommand(Command):
    """Delete a track with all its clips."""

    def __init__(self, track_id: str, description: str = "Remove track"):
        self.track_id = track_id
        self.description = description
        self._removed: Optional[Tuple[int, Track, Optional[str], float]] = None

    def can_execute(self, state: TimelineState) -> bool:
        return state.get_track(self.track_id) is not None

    def execute(self, state: TimelineState) -> TimelineState:
        index = state.track_index(self.track_id)
        track = state.tracks[index]
        self._removed = (index, track, state.selected_clip_id, state.duration)

        selected = state.selected_clip_id
        if selected is not None and track.get_clip(selected) is not None:
            selected = None
        tracks = tuple(t for t in state.tracks if t.id != self.track_id)
        return replace(
            state,
            tracks=tracks,
            duration=compute_duration(tracks, state.duration),
            selected_clip_id=selected,
        )

    def can_undo(self, state: TimelineState) -> bool:
        return self._removed is not None and state.get_track(self.track_id) is None

    def undo(self, state: TimelineState) -> TimelineState:
        index, track, selected, duration = self._removed
        tracks = state.tracks[:index] + (track,) + state.tracks[index:]
        return replace(state, tracks=tracks, selected_clip_id=selected, duration=duration)


class UpdateTrackCommand(Command):
    """Shallow-merge field updates into a track.

    Updates use attribute names: name, track_type, height, is_visible, is_muted.
    """

    def __init__(self, track_id: str, updates: dict, description: str = "Update track"):
        self.track_id = track_id
        self.updates = copy.deepcopy(dict(updates))
        self.description = description
        self._prior_values: Optional[dict] = None

    def can_execute(self, state: TimelineState) -> bool:
        return state.get_track(self.track_id) is not None

    def execute(self, state: TimelineState) -> TimelineState:
        validate_track_updates(self.track_id, self.updates)
        track = state.get_track(self.track_id)
        updated = replace(track, **self.updates)
        validate_track(updated)

        self._prior_values = {key: getattr(track, key) for key in self.updates}
        return state.with_track(updated)

    def can_undo(self, state: TimelineState) -> bool:
        return self._prior_values is not None and state.get_track(self.track_id) is not None

    def undo(self, state: TimelineState) -> TimelineState:
        track = state.get_track(self.track_id)
        return state.with_track(replace(track, **self._prior_values))


class ReorderTracksCommand(Command):
    """Reorder tracks to match a permutation of their ids."""

    def __init__(self, track_ids: Sequence[str], description: str = "Reorder tracks"):
        self.track_ids: Tuple[str, ...] = tuple(track_ids)
        self.description = description
        self._prior_order: Optional[List[str]] = None

    def can_execute(self, state: TimelineState) -> bool:
        current = state.track_ids()
        if len(self.track_ids) != len(current) or len(set(self.track_ids)) != len(self.track_ids):
            return False
        return set(self.track_ids) == set(current)

    @staticmethod
    def _reordered(state: TimelineState, order: Sequence[str]) -> TimelineState:
        by_id = {t.id: t for t in state.tracks}
        return replace(state, tracks=tuple(by_id[track_id] for track_id in order))

    def execute(self, state: TimelineState) -> TimelineState:
        self._prior_order = state.track_ids()
        return self._reordered(state, self.track_ids)

    def can_undo(self, state: TimelineState) -> bool:
        return self._prior_order is not None and set(state.track_ids()) == set(self._prior_order)

    def undo(self, state: TimelineState) -> TimelineState:
        return self._reordered(state, self._prior_order)


# ---------------------------------------------------------------------------
# Timeline commands
# ---------------------------------------------------------------------------

class SetDurationCommand(Command):
    """Set the nominal timeline duration.

    The result never drops below the end of the last clip, and the playhead
    is clamped into the new range.
    """

    def __init__(self, duration: float, description: str = "Set duration"):
        self.duration = duration
        self.description = description
        self._prior: Optional[Tuple[float, float]] = None

    def can_execute(self, state: TimelineState) -> bool:
        return is_number(self.duration) and self.duration >= 0

    def execute(self, state: TimelineState) -> TimelineState:
        self._prior = (state.duration, state.current_time)
        duration = max(self.duration, state.max_clip_end())
        return replace(state, duration=duration, current_time=min(state.current_time, duration))

    def can_undo(self, state: TimelineState) -> bool:
        return self._prior is not None

    def undo(self, state: TimelineState) -> TimelineState:
        duration, current_time = self._prior
        return replace(state, duration=duration, current_time=current_time)


class ReplaceStateCommand(Command):
    """Replace the whole state with another validated snapshot (import, restore)."""

    def __init__(self, state: TimelineState, description: str = "Replace state"):
        self.state = state
        self.description = description
        self._previous: Optional[TimelineState] = None

    def can_execute(self, state: TimelineState) -> bool:
        return is_valid_timeline_state(self.state)

    def execute(self, state: TimelineState) -> TimelineState:
        validate_timeline_state(self.state)
        self._previous = state
        return self.state

    def can_undo(self, state: TimelineState) -> bool:
        return self._previous is not None

    def undo(self, state: TimelineState) -> TimelineState:
        return self._previous
