"""
Timeline - Tracks and clips of the edited document.

All types here are immutable values. Every edit produces a new
TimelineState; nothing mutates a Track's clip sequence or a Clip in place.

The wire form (to_dict/from_dict) uses the camelCase keys of the export
envelope. from_dict copies values through without coercion so that the
validator can judge imported data instead of it being silently repaired.
"""
import copy
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Iterator

from config import DEFAULT_TRACK_HEIGHT, DEFAULT_ZOOM


def _plain_copy(value):
    """Private copy of a metadata value, with every sequence stored as a list."""
    if isinstance(value, dict):
        return {k: _plain_copy(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain_copy(v) for v in value]
    return copy.deepcopy(value)


# ---------------------------------------------------------------------------
# Clip
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Clip:
    """A placed media/text segment on a track.

    Attributes:
        id: Unique identifier across the whole timeline.
        track_id: Id of the owning Track.
        start: Timeline position in seconds.
        duration: Length on the timeline in seconds.
        clip_type: "video" | "audio" | "text" | "overlay".
        metadata: Open bag (name, thumbnailUrl, speed, isAI, waveform, text, ...).
    """
    id: str
    track_id: str
    start: float
    duration: float
    clip_type: str = "video"
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        # Metadata is a private copy; sequences are stored as lists, as JSON reads them back
        object.__setattr__(self, "metadata", _plain_copy(self.metadata))

    @property
    def end(self) -> float:
        return self.start + self.duration

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "trackId": self.track_id,
            "start": self.start,
            "duration": self.duration,
            "type": self.clip_type,
        }
        if self.metadata:
            d["metadata"] = _plain_copy(self.metadata)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Clip":
        return cls(
            id=data.get("id", ""),
            track_id=data.get("trackId", ""),
            start=data.get("start", 0.0),
            duration=data.get("duration", 0.0),
            clip_type=data.get("type", "video"),
            metadata=data.get("metadata", {}),
        )


# ---------------------------------------------------------------------------
# Track
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Track:
    """An ordered lane of clips.

    Attributes:
        track_type: "video" | "audio" | "text" | "overlay".
        is_muted: Only meaningful for audio tracks; None when unset.
        clips: Clips sorted ascending by start after every committed command.
    """
    id: str
    name: str
    track_type: str = "video"
    height: float = DEFAULT_TRACK_HEIGHT
    is_visible: bool = True
    is_muted: Optional[bool] = None
    clips: Tuple[Clip, ...] = ()

    def __post_init__(self):
        if isinstance(self.clips, list):
            object.__setattr__(self, "clips", tuple(self.clips))

    def get_clip(self, clip_id: str) -> Optional[Clip]:
        for clip in self.clips:
            if clip.id == clip_id:
                return clip
        return None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "type": self.track_type,
            "name": self.name,
            "height": self.height,
            "isVisible": self.is_visible,
            "clips": [clip.to_dict() for clip in self.clips],
        }
        if self.is_muted is not None:
            d["isMuted"] = self.is_muted
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        clips = data.get("clips", [])
        if isinstance(clips, list):
            clips = tuple(Clip.from_dict(c) for c in clips)
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            track_type=data.get("type", "video"),
            height=data.get("height", DEFAULT_TRACK_HEIGHT),
            is_visible=data.get("isVisible", True),
            is_muted=data.get("isMuted"),
            clips=clips,
        )


# ---------------------------------------------------------------------------
# TimelineState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimelineState:
    """The whole-document snapshot at one point in time.

    Provides lookup helpers for finding tracks and clips; edits are made
    with dataclasses.replace() by the command layer.
    """
    tracks: Tuple[Track, ...] = ()
    current_time: float = 0.0
    duration: float = 0.0
    zoom: float = DEFAULT_ZOOM
    selected_clip_id: Optional[str] = None
    is_playing: bool = False

    def __post_init__(self):
        if isinstance(self.tracks, list):
            object.__setattr__(self, "tracks", tuple(self.tracks))

    # -- Lookup ------------------------------------------------------------

    def get_track(self, track_id: str) -> Optional[Track]:
        for t in self.tracks:
            if t.id == track_id:
                return t
        return None

    def track_index(self, track_id: str) -> int:
        """Index of the track with *track_id*, or -1."""
        for i, t in enumerate(self.tracks):
            if t.id == track_id:
                return i
        return -1

    def all_clips(self) -> Iterator[Clip]:
        """Iterate clips across all tracks in track order."""
        for track in self.tracks:
            yield from track.clips

    def find_clip(self, clip_id: str) -> Optional[Clip]:
        for clip in self.all_clips():
            if clip.id == clip_id:
                return clip
        return None

    def find_track_of_clip(self, clip_id: str) -> Optional[Track]:
        for track in self.tracks:
            if track.get_clip(clip_id) is not None:
                return track
        return None

    def track_ids(self) -> list[str]:
        return [t.id for t in self.tracks]

    def clip_ids(self) -> list[str]:
        return [c.id for c in self.all_clips()]

    def max_clip_end(self) -> float:
        """End of the last clip on any track (0.0 for an empty timeline)."""
        ends = [clip.end for clip in self.all_clips()]
        return max(ends) if ends else 0.0

    def with_track(self, track: Track) -> "TimelineState":
        """Return a copy with the track of the same id replaced."""
        tracks = tuple(track if t.id == track.id else t for t in self.tracks)
        return replace(self, tracks=tracks)

    # -- Serialization -----------------------------------------------------

    def to_dict(self) -> dict:
        d = {
            "tracks": [t.to_dict() for t in self.tracks],
            "currentTime": self.current_time,
            "duration": self.duration,
            "zoom": self.zoom,
            "isPlaying": self.is_playing,
        }
        if self.selected_clip_id is not None:
            d["selectedClipId"] = self.selected_clip_id
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "TimelineState":
        tracks = data.get("tracks", [])
        if isinstance(tracks, list):
            tracks = tuple(Track.from_dict(t) for t in tracks)
        return cls(
            tracks=tracks,
            current_time=data.get("currentTime", 0.0),
            duration=data.get("duration", 0.0),
            zoom=data.get("zoom", DEFAULT_ZOOM),
            selected_clip_id=data.get("selectedClipId"),
            is_playing=data.get("isPlaying", False),
        )
