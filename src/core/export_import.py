"""
Export/Import helpers - merging imported timelines, id regeneration, backups.
"""
import json
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from core.commands import compute_duration, sort_clips
from core.errors import SerializationError
from core.serialization import (
    DeserializationOptions,
    SerializationOptions,
    deserialize_timeline_state,
    is_serialized_envelope,
    serialize_timeline_state,
)
from core.validation import validate_timeline_state
from models.timeline import Track, TimelineState

logger = logging.getLogger(__name__)

CONFLICT_RESOLUTIONS = ("use-imported", "keep-current", "merge")
TRACK_MERGE_STRATEGIES = ("append", "replace", "merge-by-type")


def generate_unique_id(prefix: str, existing: Iterable[str] = ()) -> str:
    """Return "<prefix>-<hex>" not present in *existing*."""
    taken = set(existing)
    while True:
        candidate = f"{prefix}-{uuid.uuid4().hex[:12]}"
        if candidate not in taken:
            return candidate


def _reassign_track(track: Track, track_id: str, taken_clip_ids: set) -> Track:
    """Copy *track* under a new id, giving each clip a fresh id as well."""
    clips = []
    for clip in track.clips:
        clip_id = generate_unique_id("clip", taken_clip_ids)
        taken_clip_ids.add(clip_id)
        clips.append(replace(clip, id=clip_id, track_id=track_id))
    return replace(track, id=track_id, clips=tuple(clips))


def regenerate_ids(state: TimelineState) -> TimelineState:
    """Give every track and clip a fresh id. The selection is cleared."""
    track_ids: set = set()
    clip_ids: set = set()
    tracks = []
    for track in state.tracks:
        track_id = generate_unique_id("track", track_ids)
        track_ids.add(track_id)
        tracks.append(_reassign_track(track, track_id, clip_ids))
    return replace(state, tracks=tuple(tracks), selected_clip_id=None)


def merge_states(
    current: TimelineState,
    imported: TimelineState,
    conflict_resolution: str = "use-imported",
    track_merge_strategy: str = "append",
) -> TimelineState:
    """Combine an imported timeline with the current one.

    Track merge strategies:
        append:        imported tracks are added after the current ones under fresh ids.
        replace:       imported tracks replace the current ones.
        merge-by-type: imported clips join the first current track of the same
                       type; tracks of a new type are appended.

    conflict_resolution picks whose playhead, zoom, play flag and selection
    win. "merge" takes the imported view settings but keeps the current
    selection when the imported one no longer resolves. A selection that
    resolves in neither is dropped.

    Raises:
        ValueError: unknown strategy name.
        ValidationError: the merged state is invalid (e.g. clips overlap
            after merge-by-type).
    """
    if conflict_resolution not in CONFLICT_RESOLUTIONS:
        raise ValueError(f"Unknown conflict resolution: {conflict_resolution!r}")
    if track_merge_strategy not in TRACK_MERGE_STRATEGIES:
        raise ValueError(f"Unknown track merge strategy: {track_merge_strategy!r}")

    tracks: List[Track] = list(current.tracks)
    track_ids = set(current.track_ids())
    clip_ids = set(current.clip_ids())

    if track_merge_strategy == "append":
        for track in imported.tracks:
            track_id = generate_unique_id("track", track_ids)
            track_ids.add(track_id)
            tracks.append(_reassign_track(track, track_id, clip_ids))

    elif track_merge_strategy == "replace":
        tracks = list(imported.tracks)

    else:
        for incoming in imported.tracks:
            index = next((i for i, t in enumerate(tracks) if t.track_type == incoming.track_type), -1)
            if index >= 0:
                target = tracks[index]
                moved = _reassign_track(incoming, target.id, clip_ids).clips
                tracks[index] = replace(target, clips=sort_clips(target.clips + moved))
            else:
                track_id = generate_unique_id("track", track_ids)
                track_ids.add(track_id)
                tracks.append(_reassign_track(incoming, track_id, clip_ids))

    def resolves(clip_id):
        return clip_id is not None and any(t.get_clip(clip_id) for t in tracks)

    winner = current if conflict_resolution == "keep-current" else imported
    selected = winner.selected_clip_id
    if not resolves(selected):
        selected = None
        if conflict_resolution == "merge" and resolves(current.selected_clip_id):
            selected = current.selected_clip_id

    merged = TimelineState(
        tracks=tuple(tracks),
        current_time=winner.current_time,
        duration=compute_duration(tracks, max(current.duration, imported.duration)),
        zoom=winner.zoom,
        selected_clip_id=selected,
        is_playing=winner.is_playing,
    )
    validate_timeline_state(merged)
    logger.debug(
        "Merged %d imported tracks (%s, %s)", len(imported.tracks), track_merge_strategy, conflict_resolution
    )
    return merged


@dataclass(frozen=True)
class ExportSummary:
    version: str
    timestamp: datetime
    size: int  # characters in the exported text
    track_count: int
    clip_count: int
    duration: float


def get_export_metadata(text: str) -> ExportSummary:
    """Summarise an exported envelope without building a TimelineState.

    Raises:
        SerializationError: text is not valid envelope JSON.
    """
    try:
        envelope = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"JSON parsing failed: {e}", e) from e
    if not is_serialized_envelope(envelope):
        raise SerializationError("Invalid serialized state format")

    state = envelope["state"]
    tracks = state.get("tracks", [])
    try:
        clip_count = sum(len(track.get("clips", [])) for track in tracks)
    except (AttributeError, TypeError) as e:
        raise SerializationError(f"Invalid serialized state format: {e}", e) from e

    return ExportSummary(
        version=envelope["version"],
        timestamp=datetime.fromtimestamp(envelope["timestamp"] / 1000, tz=timezone.utc),
        size=len(text),
        track_count=len(tracks),
        clip_count=clip_count,
        duration=state.get("duration", 0.0),
    )


def create_backup(state: TimelineState, description: Optional[str] = None) -> str:
    """Export *state* as a validated, metadata-carrying envelope."""
    extra = {"description": description} if description else {}
    options = SerializationOptions(include_metadata=True, compact=False, validate=True, extra_metadata=extra)
    return serialize_timeline_state(state, options)


def restore_from_backup(text: str, options: Optional[DeserializationOptions] = None) -> TimelineState:
    """Import a backup made by create_backup. Validation is always on."""
    if options is None:
        options = DeserializationOptions()
    return deserialize_timeline_state(text, replace(options, validate=True))
