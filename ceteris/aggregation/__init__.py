"""Aggregation of profiles into group and partial-dependence curves."""

from .aggregator import AggregationResult, aggregate, aggregate_to_frame
from .reducers import (
    CustomReducer,
    MaxReducer,
    MeanReducer,
    MedianReducer,
    MinReducer,
    SumReducer,
    create_standard_reducers,
    get_reducer,
)

__all__ = [
    "AggregationResult",
    "aggregate",
    "aggregate_to_frame",
    "CustomReducer",
    "MaxReducer",
    "MeanReducer",
    "MedianReducer",
    "MinReducer",
    "SumReducer",
    "create_standard_reducers",
    "get_reducer",
]
