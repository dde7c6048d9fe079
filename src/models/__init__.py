"""
Timeline data models.

Public API:

    Clip, Track, TimelineState
"""

from models.timeline import Clip, Track, TimelineState

__all__ = [
    "Clip",
    "Track",
    "TimelineState",
]
