"""Profile generation, composition and tabular export."""

from .composer import ProfileCollection, compose
from .frames import (
    AGGREGATE_SCHEMA,
    PROFILE_SCHEMA,
    INDEX_SCHEMA,
    aggregates_to_frame,
    frame_to_profiles,
    profile_index_frame,
    profiles_to_frame,
)
from .what_if import profile_observation, what_if

__all__ = [
    "ProfileCollection",
    "compose",
    "AGGREGATE_SCHEMA",
    "PROFILE_SCHEMA",
    "INDEX_SCHEMA",
    "profile_index_frame",
    "aggregates_to_frame",
    "frame_to_profiles",
    "profiles_to_frame",
    "profile_observation",
    "what_if",
]
