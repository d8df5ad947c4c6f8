"""Reduction functions for profile aggregation.

Provides the standard reductions (mean, median, min, max, sum) by name for
configuration-driven runs, and a wrapper for user-defined reductions.
"""

from dataclasses import dataclass
from typing import Callable

import numpy as np

from ceteris.domain.errors import ConfigurationError
from ceteris.domain.protocols import IReducer


@dataclass(frozen=True)
class MeanReducer:
    """Arithmetic mean; the partial-dependence reduction."""

    @property
    def name(self) -> str:
        return "mean"

    def __call__(self, responses: np.ndarray) -> float:
        return float(np.mean(responses))


@dataclass(frozen=True)
class MedianReducer:
    """Median of responses.

    More robust to outlying profiles than the mean.
    """

    @property
    def name(self) -> str:
        return "median"

    def __call__(self, responses: np.ndarray) -> float:
        return float(np.median(responses))


@dataclass(frozen=True)
class MinReducer:
    """Lowest response at each value."""

    @property
    def name(self) -> str:
        return "min"

    def __call__(self, responses: np.ndarray) -> float:
        return float(np.min(responses))


@dataclass(frozen=True)
class MaxReducer:
    """Highest response at each value."""

    @property
    def name(self) -> str:
        return "max"

    def __call__(self, responses: np.ndarray) -> float:
        return float(np.max(responses))


@dataclass(frozen=True)
class SumReducer:
    """Sum of responses at each value."""

    @property
    def name(self) -> str:
        return "sum"

    def __call__(self, responses: np.ndarray) -> float:
        return float(np.sum(responses))


@dataclass(frozen=True)
class CustomReducer:
    """Wrapper for user-defined reduction functions."""

    reducer_name: str
    reduce_fn: Callable[[np.ndarray], float]

    @property
    def name(self) -> str:
        return self.reducer_name

    def __call__(self, responses: np.ndarray) -> float:
        return float(self.reduce_fn(responses))


def create_standard_reducers() -> list[IReducer]:
    """Create the list of built-in reducers."""
    return [
        MeanReducer(),
        MedianReducer(),
        MinReducer(),
        MaxReducer(),
        SumReducer(),
    ]


def get_reducer(reduce_fn: str | Callable[[np.ndarray], float] | None = None) -> IReducer:
    """Resolve a reducer from a name, a callable or None (mean).

    Raises:
        ConfigurationError: If a name does not match a built-in reducer
    """
    if reduce_fn is None:
        return MeanReducer()
    if isinstance(reduce_fn, str):
        reducers = {r.name: r for r in create_standard_reducers()}
        if reduce_fn not in reducers:
            raise ConfigurationError(
                f"Unknown reducer '{reduce_fn}'; expected one of {sorted(reducers)}"
            )
        return reducers[reduce_fn]
    if isinstance(reduce_fn, IReducer):
        return reduce_fn
    if not callable(reduce_fn):
        raise ConfigurationError("reduce_fn must be a reducer name or a callable")
    return CustomReducer(getattr(reduce_fn, "__name__", "custom"), reduce_fn)
