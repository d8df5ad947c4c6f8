"""Grid construction for ceteris-paribus profiles.

Builds the ordered set of probe values for a variable:
- Continuous variables: evenly spaced quantiles (or a uniform range) of the
  observed values, inclusive of min and max
- Categorical variables: the sorted distinct levels observed (grouped by
  type when a column mixes, say, booleans and strings)

The observation's own value is always part of the grid so that the
"no change" point is exactly representable.
"""

from enum import Enum
import logging
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from ceteris.domain.entities import Record, VariableGrid, VariableKind, is_missing
from ceteris.domain.errors import ConfigurationError, UnsupportedVariableError


logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 101


class GridMethod(str, Enum):
    """Spacing of continuous grids."""
    QUANTILES = "quantiles"
    UNIFORM = "uniform"


def _is_number(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return False
    return isinstance(value, (int, float, np.integer, np.floating))


def _is_level(value: Any) -> bool:
    return isinstance(value, (str, bool, np.bool_))


def _level_sort_key(value: Any) -> tuple[str, Any]:
    """Order levels of mixed types (e.g. bool and str) without comparing across types."""
    if _is_number(value):
        return ("number", value)
    return (type(value).__name__, value)


def infer_variable_kind(values: Iterable[Any]) -> VariableKind | None:
    """Infer the kind of a column from its values.

    Returns None when the column is all missing or mixes numbers with
    labels; such columns are never coerced.
    """
    present = [v for v in values if not is_missing(v)]
    if not present:
        return None
    if all(_is_number(v) for v in present):
        return VariableKind.CONTINUOUS
    if all(_is_level(v) for v in present):
        return VariableKind.CATEGORICAL
    return None


def column_values(records: Sequence[Record], variable: str) -> list[Any]:
    """Extract one column from a sequence of records (absent keys become None)."""
    return [record.get(variable) for record in records]


def _as_observations(observation: Record | Sequence[Record] | None) -> list[Record]:
    if observation is None:
        return []
    if isinstance(observation, Mapping):
        return [observation]
    return list(observation)


def _continuous_base(
    values: np.ndarray,
    resolution: int,
    method: GridMethod,
) -> tuple[float, ...]:
    if method is GridMethod.UNIFORM:
        grid = np.linspace(values.min(), values.max(), resolution)
    else:
        grid = np.quantile(values, np.linspace(0.0, 1.0, resolution))
    return tuple(float(v) for v in np.unique(grid))


def build_grid(
    data: Sequence[Record],
    variable: str,
    resolution: int | None = None,
    observation: Record | Sequence[Record] | None = None,
    method: GridMethod | str = GridMethod.QUANTILES,
    kind: VariableKind | None = None,
) -> VariableGrid:
    """Build the probe grid for one variable.

    Args:
        data: Reference records the grid is derived from
        variable: Variable to build the grid for
        resolution: Number of points for continuous grids (default 101).
                    Duplicate quantiles collapse, so the base grid may be shorter.
        observation: One observation or several whose values for ``variable``
                     must appear in the grid
        method: "quantiles" or "uniform" spacing for continuous grids
        kind: Declared kind; inferred from ``data`` when omitted

    Returns:
        VariableGrid for the variable

    Raises:
        UnsupportedVariableError: If the kind cannot be determined or an
            observation value does not fit the kind
        ConfigurationError: If resolution is below 2
    """
    resolution = DEFAULT_RESOLUTION if resolution is None else resolution
    if resolution < 2:
        raise ConfigurationError(f"Grid resolution must be at least 2, got {resolution}")
    method = GridMethod(method)

    if not any(variable in record for record in data):
        raise UnsupportedVariableError(variable, "variable not present in reference data")

    raw = column_values(data, variable)
    if kind is None:
        kind = infer_variable_kind(raw)
    if kind is None:
        raise UnsupportedVariableError(
            variable, "kind cannot be inferred (all values missing or mixed types)"
        )

    present = [v for v in raw if not is_missing(v)]
    if not present:
        raise UnsupportedVariableError(variable, "all values missing")

    if kind is VariableKind.CONTINUOUS:
        if not all(_is_number(v) for v in present):
            raise UnsupportedVariableError(variable, "declared continuous but holds non-numeric values")
        values = np.asarray(present, dtype=np.float64)
        grid = VariableGrid(variable, _continuous_base(values, resolution, method), kind)
    else:
        grid = VariableGrid(variable, tuple(sorted(set(present), key=_level_sort_key)), kind)

    return insert_observed(grid, observation)


def insert_observed(
    grid: VariableGrid,
    observation: Record | Sequence[Record] | None,
) -> VariableGrid:
    """Return ``grid`` extended with the observations' own values.

    Raises:
        UnsupportedVariableError: If an observation holds a non-numeric value
            for a continuous variable
    """
    variable = grid.variable
    extra = [obs.get(variable) for obs in _as_observations(observation)]
    if grid.kind is VariableKind.CONTINUOUS:
        bad = [v for v in extra if not is_missing(v) and not _is_number(v)]
        if bad:
            raise UnsupportedVariableError(
                variable, f"observation value {bad[0]!r} is not numeric"
            )

    merged = grid.with_values(extra)
    if len(merged) != len(grid):
        logger.debug(
            "Inserted %d observed value(s) into grid for '%s'",
            len(merged) - len(grid),
            variable,
        )
    return merged
