"""
Timeline Core Configuration
"""
# Application identity (written into export envelopes)
APP_NAME = "Timeline Core"
APP_VERSION = "0.1.0"

# Serialization settings
SERIALIZATION_VERSION = "1.0.0"  # Envelope format version written on export
MIGRATION_STRATEGIES = ("strict", "lenient", "auto")
DEFAULT_MIGRATION_STRATEGY = "auto"

# History settings
HISTORY_MAX_SIZE = 100  # Undo steps kept before the oldest is evicted

# Timeline defaults
DEFAULT_ZOOM = 1.0
DEFAULT_TRACK_HEIGHT = 60

# Clip/track discriminants
CLIP_TYPES = ("video", "audio", "text", "overlay")
TRACK_TYPES = ("video", "audio", "text", "overlay")
