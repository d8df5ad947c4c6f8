"""Domain layer: entities, protocols and errors."""

from .entities import (
    Record,
    VariableKind,
    VariableGrid,
    ProfilePoint,
    Profile,
    AggregatedProfile,
    is_missing,
)

from .errors import (
    CeterisParibusError,
    ConfigurationError,
    UnsupportedVariableError,
    PredictionError,
    SchemaMismatchError,
    GridMismatchError,
    EmptyGroupError,
)

from .protocols import (
    IPredictor,
    IReducer,
    IProfileStore,
    PredictFunction,
)

__all__ = [
    "Record",
    "VariableKind",
    "VariableGrid",
    "ProfilePoint",
    "Profile",
    "AggregatedProfile",
    "is_missing",
    "CeterisParibusError",
    "ConfigurationError",
    "UnsupportedVariableError",
    "PredictionError",
    "SchemaMismatchError",
    "GridMismatchError",
    "EmptyGroupError",
    "IPredictor",
    "IReducer",
    "IProfileStore",
    "PredictFunction",
]
