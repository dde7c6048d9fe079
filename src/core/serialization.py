"""
Serialization - versioned envelope export/import, migration, equality and diff.

Envelope wire format:

    {"version": "1.0.0", "timestamp": <epoch ms>, "state": {...}, "metadata": {...}}

Imports also accept a bare state object (no envelope) written by older
builds.
"""
import copy
import json
import logging
import platform
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from config import (
    APP_NAME,
    APP_VERSION,
    DEFAULT_MIGRATION_STRATEGY,
    MIGRATION_STRATEGIES,
    SERIALIZATION_VERSION,
)
from core.errors import SerializationError, ValidationError
from core.commands import sort_clips
from core.validation import validate_timeline_state
from models.timeline import TimelineState
from runtime_config import RuntimeConfig, get_config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

@dataclass
class SerializationOptions:
    include_metadata: bool = True
    compact: bool = False  # True: no indentation
    validate: bool = True
    extra_metadata: dict = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "SerializationOptions":
        return cls(
            include_metadata=config.include_metadata,
            compact=config.compact_export,
            validate=config.validate_on_export,
        )


@dataclass
class DeserializationOptions:
    validate: bool = True
    allow_version_mismatch: bool = False
    migration_strategy: str = DEFAULT_MIGRATION_STRATEGY  # 'strict' | 'lenient' | 'auto'

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "DeserializationOptions":
        return cls(
            validate=config.validate_on_import,
            allow_version_mismatch=config.allow_version_mismatch,
            migration_strategy=config.migration_strategy,
        )


# ---------------------------------------------------------------------------
# Migration (keyed by source envelope version)
# ---------------------------------------------------------------------------

Migration = Callable[[dict], dict]

MIGRATIONS: Dict[str, Migration] = {
    SERIALIZATION_VERSION: lambda envelope: envelope,
}


def register_migration(version: str, migration: Migration) -> None:
    """Register the step that maps an envelope of *version* to the current shape."""
    MIGRATIONS[version] = migration


def migrate_envelope(envelope: dict) -> dict:
    """Map an envelope of any version to the current version.

    Unknown versions are assumed compatible: the state is kept as-is and
    only the version field is rewritten.
    """
    source = envelope.get("version")
    migration = MIGRATIONS.get(source)
    if migration is not None:
        migrated = migration(dict(envelope))
    else:
        migrated = dict(envelope)
        logger.debug("No migration registered for %s, assuming compatible", source)
    migrated["version"] = SERIALIZATION_VERSION
    logger.debug("Migrated envelope %s -> %s", source, SERIALIZATION_VERSION)
    return migrated


# ---------------------------------------------------------------------------
# Shape guards
# ---------------------------------------------------------------------------

def _is_plain_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_serialized_envelope(obj: Any) -> bool:
    """True if *obj* has the versioned envelope shape."""
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("version"), str)
        and _is_plain_number(obj.get("timestamp"))
        and isinstance(obj.get("state"), dict)
    )


def is_raw_state(obj: Any) -> bool:
    """True if *obj* looks like a bare, un-enveloped state."""
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("tracks"), list)
        and _is_plain_number(obj.get("currentTime"))
        and _is_plain_number(obj.get("duration"))
        and _is_plain_number(obj.get("zoom"))
        and isinstance(obj.get("isPlaying"), bool)
    )


# ---------------------------------------------------------------------------
# Serialize / deserialize
# ---------------------------------------------------------------------------

def _envelope_metadata(extra: dict) -> dict:
    metadata = {
        "exportedBy": APP_NAME,
        "appVersion": APP_VERSION,
        "userAgent": f"Python/{platform.python_version()}",
    }
    metadata.update(extra)
    return metadata


def serialize_timeline_state(state: TimelineState, options: Optional[SerializationOptions] = None) -> str:
    """Wrap *state* in a versioned envelope and render it as JSON text.

    Raises:
        SerializationError: validation was requested and the state is invalid.
    """
    if options is None:
        options = SerializationOptions.from_config(get_config())

    if options.validate:
        try:
            validate_timeline_state(state)
        except ValidationError as e:
            raise SerializationError(f"State validation failed: {e.message}", e) from e

    envelope = {
        "version": SERIALIZATION_VERSION,
        "timestamp": int(time.time() * 1000),
        "state": state.to_dict(),
    }
    if options.include_metadata:
        envelope["metadata"] = _envelope_metadata(options.extra_metadata)

    try:
        return json.dumps(envelope, ensure_ascii=False, indent=None if options.compact else 2)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Serialization failed: {e}", e) from e


def _state_from_dict(data: dict) -> TimelineState:
    try:
        return TimelineState.from_dict(data)
    except (AttributeError, TypeError) as e:
        raise SerializationError(f"Deserialization failed: {e}", e) from e


def deserialize_timeline_state(text: str, options: Optional[DeserializationOptions] = None) -> TimelineState:
    """Parse envelope (or bare state) JSON text back into a TimelineState.

    Raises:
        SerializationError: malformed JSON, unrecognised shape, a version
            mismatch under the 'strict' strategy, or a state that fails
            validation.
        ValueError: unknown migration strategy.
    """
    if options is None:
        options = DeserializationOptions.from_config(get_config())
    if options.migration_strategy not in MIGRATION_STRATEGIES:
        raise ValueError(f"Unknown migration strategy: {options.migration_strategy!r}")

    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"JSON parsing failed: {e}", e) from e

    if is_serialized_envelope(parsed):
        envelope = parsed
        if not options.allow_version_mismatch and envelope["version"] != SERIALIZATION_VERSION:
            if options.migration_strategy == "strict":
                raise SerializationError(
                    f"Version mismatch: expected {SERIALIZATION_VERSION}, got {envelope['version']}"
                )
            if options.migration_strategy == "auto":
                envelope = migrate_envelope(envelope)
            # 'lenient' continues without transformation
        state = _state_from_dict(envelope["state"])
    elif is_raw_state(parsed):
        state = _state_from_dict(parsed)
    else:
        raise SerializationError("Invalid serialized state format")

    if options.validate:
        try:
            validate_timeline_state(state)
        except ValidationError as e:
            raise SerializationError(f"State validation failed: {e.message}", e) from e

    return state


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def compress_timeline_state(state: TimelineState) -> TimelineState:
    """Drop tracks that are both empty and hidden; sort every track's clips."""
    tracks = tuple(
        replace(track, clips=sort_clips(track.clips))
        for track in state.tracks
        if track.clips or track.is_visible
    )
    return replace(state, tracks=tracks)


def clone_timeline_state(state: TimelineState) -> TimelineState:
    """Return a fully independent deep copy."""
    return copy.deepcopy(state)


def _canonical_json(state: TimelineState) -> str:
    return json.dumps(
        compress_timeline_state(state).to_dict(),
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
    )


def are_states_equal(a: TimelineState, b: TimelineState) -> bool:
    """Compare two states by their canonical serialization.

    Key order, clip storage order and empty hidden tracks do not affect
    the result.
    """
    try:
        return _canonical_json(a) == _canonical_json(b)
    except (TypeError, ValueError):
        return False


def get_serialized_state_size(state: TimelineState) -> int:
    """UTF-8 byte size of the compact envelope for *state*."""
    text = serialize_timeline_state(
        state, SerializationOptions(include_metadata=True, compact=True, validate=False)
    )
    return len(text.encode("utf-8"))


@dataclass
class StateDiff:
    """Differences between two states, by id."""
    tracks_added: List[str] = field(default_factory=list)
    tracks_removed: List[str] = field(default_factory=list)
    tracks_modified: List[str] = field(default_factory=list)
    clips_added: List[str] = field(default_factory=list)
    clips_removed: List[str] = field(default_factory=list)
    clips_modified: List[str] = field(default_factory=list)
    properties_changed: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any((
            self.tracks_added, self.tracks_removed, self.tracks_modified,
            self.clips_added, self.clips_removed, self.clips_modified,
            self.properties_changed,
        ))


_DIFF_PROPERTIES = (
    ("currentTime", "current_time"),
    ("duration", "duration"),
    ("zoom", "zoom"),
    ("selectedClipId", "selected_clip_id"),
    ("isPlaying", "is_playing"),
)


def create_state_diff(old: TimelineState, new: TimelineState) -> StateDiff:
    """Report added/removed/modified tracks and clips and changed scalar properties.

    A track counts as modified when any of its own fields differ; clip
    changes are reported under the clip categories. A clip counts as
    modified when any field differs, including being moved to another track.
    """
    diff = StateDiff()

    old_tracks = {t.id: t for t in old.tracks}
    new_tracks = {t.id: t for t in new.tracks}
    diff.tracks_added = [t.id for t in new.tracks if t.id not in old_tracks]
    diff.tracks_removed = [t.id for t in old.tracks if t.id not in new_tracks]
    diff.tracks_modified = [
        t.id for t in new.tracks
        if t.id in old_tracks and replace(t, clips=()) != replace(old_tracks[t.id], clips=())
    ]

    old_clips = {c.id: c for c in old.all_clips()}
    new_clips = {c.id: c for c in new.all_clips()}
    diff.clips_added = [c.id for c in new.all_clips() if c.id not in old_clips]
    diff.clips_removed = [c.id for c in old.all_clips() if c.id not in new_clips]
    diff.clips_modified = [
        c.id for c in new.all_clips() if c.id in old_clips and c != old_clips[c.id]
    ]

    for wire_name, attr in _DIFF_PROPERTIES:
        if getattr(old, attr) != getattr(new, attr):
            diff.properties_changed.append(wire_name)

    return diff
