"""Exception taxonomy for ceteris-paribus profiling.

Construction errors are raised immediately. Per-variable and per-point
failures raised while profiling are collected as diagnostics instead, so a
single bad grid value does not abort a multi-observation run.
"""

from typing import Any


class CeterisParibusError(Exception):
    """Base class for all profiling errors."""


class ConfigurationError(CeterisParibusError, ValueError):
    """Raised when an Explainer or a configuration value is malformed."""


class UnsupportedVariableError(CeterisParibusError):
    """Raised when no grid can be built for a variable."""

    def __init__(self, variable: str, reason: str) -> None:
        super().__init__(f"Cannot build grid for variable '{variable}': {reason}")
        self.variable = variable
        self.reason = reason


class PredictionError(CeterisParibusError):
    """Raised when the wrapped model fails to score a record.

    The original exception is chained as ``__cause__``. When raised by the
    profile generator, ``variable``, ``value``, ``observation_id`` and
    ``label`` identify the dropped profile point.
    """

    def __init__(
        self,
        message: str,
        record_index: int | None = None,
        variable: str | None = None,
        value: Any = None,
        observation_id: str | None = None,
        label: str | None = None,
    ) -> None:
        super().__init__(message)
        self.record_index = record_index
        self.variable = variable
        self.value = value
        self.observation_id = observation_id
        self.label = label


class SchemaMismatchError(CeterisParibusError):
    """Raised when profiles meant to be aggregated jointly disagree on variables."""


class GridMismatchError(CeterisParibusError):
    """Raised when continuous profiles in one group were built on different grids."""

    def __init__(self, variable: str, group: Any) -> None:
        super().__init__(
            f"Profiles for variable '{variable}' in group '{group}' were built "
            f"from different grids; re-derive grids from a shared reference dataset"
        )
        self.variable = variable
        self.group = group


class EmptyGroupError(CeterisParibusError):
    """Recorded when an aggregation group has no usable responses."""

    def __init__(self, variable: str, group: Any, value: Any) -> None:
        super().__init__(
            f"No responses to reduce for variable '{variable}', group '{group}', value {value!r}"
        )
        self.variable = variable
        self.group = group
        self.value = value
