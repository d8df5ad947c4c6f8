"""Ceteris-paribus (what-if) profiles for trained predictive models."""

from ceteris.aggregation import AggregationResult, aggregate, aggregate_to_frame
from ceteris.domain import (
    AggregatedProfile,
    CeterisParibusError,
    ConfigurationError,
    EmptyGroupError,
    GridMismatchError,
    PredictionError,
    Profile,
    ProfilePoint,
    SchemaMismatchError,
    UnsupportedVariableError,
    VariableGrid,
    VariableKind,
)
from ceteris.explainers import Explainer
from ceteris.grids import build_grid
from ceteris.profiles import ProfileCollection, compose, what_if

__all__ = [
    "AggregationResult",
    "aggregate",
    "aggregate_to_frame",
    "AggregatedProfile",
    "CeterisParibusError",
    "ConfigurationError",
    "EmptyGroupError",
    "GridMismatchError",
    "PredictionError",
    "Profile",
    "ProfilePoint",
    "SchemaMismatchError",
    "UnsupportedVariableError",
    "VariableGrid",
    "VariableKind",
    "Explainer",
    "build_grid",
    "ProfileCollection",
    "compose",
    "what_if",
]
