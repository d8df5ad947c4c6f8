"""Domain entities for ceteris-paribus profiling."""

from dataclasses import dataclass, field
from enum import Enum
import math
from types import MappingProxyType
from typing import Any, Mapping

import numpy as np


Record = Mapping[str, Any]


class VariableKind(str, Enum):
    """How a variable is probed: quantile grid or full enumeration."""
    CONTINUOUS = "continuous"
    CATEGORICAL = "categorical"


def is_missing(value: Any) -> bool:
    """Return True for None and floating point NaN."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


@dataclass(frozen=True)
class VariableGrid:
    """Ordered probe values for one variable."""
    variable: str
    values: tuple[Any, ...]
    kind: VariableKind

    def __post_init__(self) -> None:
        if len(set(self.values)) != len(self.values):
            raise ValueError(f"Grid values for '{self.variable}' must be unique")
        if self.kind is VariableKind.CONTINUOUS:
            if any(b <= a for a, b in zip(self.values, self.values[1:])):
                raise ValueError(
                    f"Continuous grid for '{self.variable}' must be strictly increasing"
                )

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, value: Any) -> bool:
        return value in self.values

    def with_values(self, extra: list[Any]) -> "VariableGrid":
        """Return a grid that also contains ``extra`` values.

        Continuous grids stay sorted; categorical levels not yet present are
        appended in the order given.
        """
        missing = [v for v in extra if not is_missing(v) and v not in self.values]
        if not missing:
            return self
        if self.kind is VariableKind.CONTINUOUS:
            merged = sorted(set(self.values) | {float(v) for v in missing})
            return VariableGrid(self.variable, tuple(merged), self.kind)
        appended = list(self.values)
        for value in missing:
            if value not in appended:
                appended.append(value)
        return VariableGrid(self.variable, tuple(appended), self.kind)


@dataclass(frozen=True)
class ProfilePoint:
    """One probed value and the model response at that value."""
    variable: str
    value: Any
    response: float
    is_observed: bool = False


@dataclass(frozen=True)
class Profile:
    """What-if curve of one variable for one observation under one explainer.

    ``grid_values`` is the full grid the profile was probed on; ``points``
    omits grid values the model failed to score.
    """
    label: str
    observation_id: str
    variable: str
    kind: VariableKind
    points: tuple[ProfilePoint, ...]
    grid_values: tuple[Any, ...] = ()
    observation: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.observation, MappingProxyType):
            object.__setattr__(self, "observation", MappingProxyType(dict(self.observation)))

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(p.value for p in self.points)

    @property
    def responses(self) -> np.ndarray:
        return np.array([p.response for p in self.points], dtype=np.float64)

    @property
    def observed_point(self) -> ProfilePoint | None:
        for point in self.points:
            if point.is_observed:
                return point
        return None

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class AggregatedProfile:
    """Reduced curve of one variable within one group."""
    variable: str
    group: Any
    kind: VariableKind
    values: tuple[Any, ...]
    responses: tuple[float, ...]
    n_profiles: int = 0

    def __post_init__(self) -> None:
        if len(self.values) != len(self.responses):
            raise ValueError(
                f"Values length ({len(self.values)}) must match "
                f"responses length ({len(self.responses)})"
            )

    @property
    def points(self) -> list[tuple[Any, float]]:
        return list(zip(self.values, self.responses))

    def to_profile(self) -> Profile:
        """View the aggregate as a profile labelled by its group key.

        Allows feeding aggregates back into ``aggregate``.
        """
        points = tuple(
            ProfilePoint(variable=self.variable, value=v, response=r)
            for v, r in zip(self.values, self.responses)
        )
        return Profile(
            label=str(self.group),
            observation_id="aggregate",
            variable=self.variable,
            kind=self.kind,
            points=points,
            grid_values=self.values,
        )
