"""Grid construction for what-if profiles."""

from .grid_builder import (
    DEFAULT_RESOLUTION,
    GridMethod,
    build_grid,
    column_values,
    infer_variable_kind,
    insert_observed,
)

__all__ = [
    "DEFAULT_RESOLUTION",
    "GridMethod",
    "build_grid",
    "column_values",
    "infer_variable_kind",
    "insert_observed",
]
