"""Profile collections and multi-source composition.

Composition is plain concatenation with provenance preserved. Schema
alignment across sources is only checked when a joint aggregation is
requested, since plotting raw profiles of several models does not need it.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import polars as pl

from ceteris.domain.entities import Profile
from ceteris.domain.errors import CeterisParibusError, PredictionError, UnsupportedVariableError
from ceteris.profiles.frames import profiles_to_frame


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


@dataclass(frozen=True)
class ProfileCollection(Sequence[Profile]):
    """Profiles of many observations, variables and explainers.

    ``diagnostics`` lists every skipped variable and dropped point recorded
    while the profiles were produced.
    """

    profiles: tuple[Profile, ...] = ()
    diagnostics: tuple[CeterisParibusError, ...] = ()
    cancelled: bool = False

    def __iter__(self) -> Iterator[Profile]:
        return iter(self.profiles)

    def __len__(self) -> int:
        return len(self.profiles)

    def __getitem__(self, index):
        return self.profiles[index]

    def __add__(self, other: "ProfileCollection") -> "ProfileCollection":
        return compose(self, other)

    @property
    def labels(self) -> list[str]:
        return _unique(p.label for p in self.profiles)

    @property
    def variables(self) -> list[str]:
        return _unique(p.variable for p in self.profiles)

    @property
    def observation_ids(self) -> list[str]:
        return _unique(p.observation_id for p in self.profiles)

    @property
    def skipped_variables(self) -> list[UnsupportedVariableError]:
        return [d for d in self.diagnostics if isinstance(d, UnsupportedVariableError)]

    @property
    def dropped_points(self) -> list[PredictionError]:
        return [d for d in self.diagnostics if isinstance(d, PredictionError)]

    def filter(
        self,
        variables: Iterable[str] | None = None,
        labels: Iterable[str] | None = None,
        observation_ids: Iterable[str] | None = None,
    ) -> "ProfileCollection":
        """Return the profiles matching every given selector."""
        variables = set(variables) if variables is not None else None
        labels = set(labels) if labels is not None else None
        observation_ids = set(observation_ids) if observation_ids is not None else None
        selected = tuple(
            p for p in self.profiles
            if (variables is None or p.variable in variables)
            and (labels is None or p.label in labels)
            and (observation_ids is None or p.observation_id in observation_ids)
        )
        return ProfileCollection(selected, self.diagnostics, self.cancelled)

    def to_frame(self, include_observations: bool = False) -> pl.DataFrame:
        return profiles_to_frame(self.profiles, include_observations)


def compose(*collections: ProfileCollection | Iterable[Profile]) -> ProfileCollection:
    """Concatenate profile collections, keeping labels, ids and diagnostics.

    Args:
        collections: ProfileCollections or plain iterables of Profile

    Returns:
        A single ProfileCollection in argument order
    """
    profiles: list[Profile] = []
    diagnostics: list[CeterisParibusError] = []
    cancelled = False
    for collection in collections:
        if isinstance(collection, ProfileCollection):
            profiles.extend(collection.profiles)
            diagnostics.extend(collection.diagnostics)
            cancelled = cancelled or collection.cancelled
        else:
            profiles.extend(collection)
    return ProfileCollection(tuple(profiles), tuple(diagnostics), cancelled)
