"""
Runtime Configuration Module

Manages runtime-configurable settings for the timeline core.
Loads default values from config.py and allows runtime modifications.
"""
from dataclasses import dataclass, asdict
from typing import Optional

# Import defaults from config.py
from config import (
    HISTORY_MAX_SIZE,
    DEFAULT_MIGRATION_STRATEGY,
)


@dataclass
class RuntimeConfig:
    """
    Runtime configuration consulted by the history and serialization layers.

    Values act as defaults only: explicit options passed to an operation
    always win over what is stored here.
    """
    # History settings
    max_history_size: int = HISTORY_MAX_SIZE

    # Import settings
    migration_strategy: str = DEFAULT_MIGRATION_STRATEGY  # 'strict' | 'lenient' | 'auto'
    allow_version_mismatch: bool = False
    validate_on_import: bool = True

    # Export settings
    validate_on_export: bool = True
    include_metadata: bool = True
    compact_export: bool = False  # True: single-line JSON, False: indented

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RuntimeConfig":
        """Create from dictionary."""
        # Filter only known fields to avoid errors with old/new config versions
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}
        return cls(**filtered_data)

    def reset_to_defaults(self):
        """Reset all settings to default values from config.py."""
        self.max_history_size = HISTORY_MAX_SIZE
        self.migration_strategy = DEFAULT_MIGRATION_STRATEGY
        self.allow_version_mismatch = False
        self.validate_on_import = True
        self.validate_on_export = True
        self.include_metadata = True
        self.compact_export = False


# Global singleton instance
_runtime_config: Optional[RuntimeConfig] = None


def get_config() -> RuntimeConfig:
    """Get the global runtime configuration instance."""
    global _runtime_config
    if _runtime_config is None:
        _runtime_config = RuntimeConfig()
    return _runtime_config


def set_config(config: RuntimeConfig):
    """Set the global runtime configuration instance."""
    global _runtime_config
    _runtime_config = config
