"""Aggregation of ceteris-paribus profiles into summary curves.

Profile points are grouped by (variable, group key, probed value) and the
responses of each group are reduced, which yields partial-dependence style
curves when the reduction is the mean.

Policies:
- Continuous profiles of one (variable, group) must share a grid; otherwise
  the call fails with GridMismatchError instead of interpolating.
- NaN responses are excluded from the reduction. A value with no remaining
  responses is omitted and recorded as an EmptyGroupError diagnostic.
- Responses are sorted before reduction, so permuting the input does not
  change the result.
"""

from collections import defaultdict
from dataclasses import dataclass
import logging
from typing import Any, Callable, Iterable, Iterator, Sequence

import numpy as np
import polars as pl

from ceteris.aggregation.reducers import get_reducer
from ceteris.domain.entities import AggregatedProfile, Profile, VariableKind
from ceteris.domain.errors import (
    CeterisParibusError,
    EmptyGroupError,
    GridMismatchError,
    SchemaMismatchError,
)
from ceteris.profiles.frames import AGGREGATE_SCHEMA, aggregates_to_frame, profiles_to_frame


logger = logging.getLogger(__name__)

GroupBy = str | Callable[[Profile], Any] | None


@dataclass(frozen=True)
class AggregationResult(Sequence[AggregatedProfile]):
    """Aggregated profiles plus the diagnostics for omitted values."""

    profiles: tuple[AggregatedProfile, ...] = ()
    diagnostics: tuple[CeterisParibusError, ...] = ()

    def __iter__(self) -> Iterator[AggregatedProfile]:
        return iter(self.profiles)

    def __len__(self) -> int:
        return len(self.profiles)

    def __getitem__(self, index):
        return self.profiles[index]

    def get(self, variable: str, group: Any) -> AggregatedProfile | None:
        for aggregate in self.profiles:
            if aggregate.variable == variable and aggregate.group == group:
                return aggregate
        return None

    def to_frame(self) -> pl.DataFrame:
        return aggregates_to_frame(self.profiles)


def _sort_key(value: Any) -> tuple[str, Any]:
    return (type(value).__name__, value)


def _group_key_function(group_by: GroupBy) -> Callable[[Profile], Any]:
    if group_by is None:
        return lambda profile: profile.label
    if callable(group_by):
        return group_by

    def by_attribute(profile: Profile) -> Any:
        if group_by not in profile.observation:
            raise SchemaMismatchError(
                f"Cannot group by '{group_by}': observation '{profile.observation_id}' "
                f"of '{profile.label}' has no such attribute"
            )
        return profile.observation[group_by]

    return by_attribute


def _as_profiles(collection: Iterable[Profile | AggregatedProfile]) -> list[Profile]:
    return [
        item.to_profile() if isinstance(item, AggregatedProfile) else item
        for item in collection
    ]


def _check_schema(profiles: list[Profile], variables: Sequence[str] | None) -> None:
    kinds: dict[str, VariableKind] = {}
    for profile in profiles:
        known = kinds.setdefault(profile.variable, profile.kind)
        if known is not profile.kind:
            raise SchemaMismatchError(
                f"Variable '{profile.variable}' is {known.value} in some profiles "
                f"and {profile.kind.value} in others"
            )

    if variables is None:
        return
    by_label: dict[str, set[str]] = defaultdict(set)
    for profile in profiles:
        by_label[profile.label].add(profile.variable)
    for label, present in by_label.items():
        missing = [v for v in variables if v not in present]
        if missing:
            raise SchemaMismatchError(
                f"Profiles labelled '{label}' lack variables {missing} requested for joint aggregation"
            )


def aggregate(
    collection: Iterable[Profile | AggregatedProfile],
    reduce_fn: str | Callable[[np.ndarray], float] | None = None,
    group_by: GroupBy = None,
    variables: Sequence[str] | None = None,
) -> AggregationResult:
    """Reduce profiles into one curve per (variable, group).

    Args:
        collection: Profiles (or aggregated profiles) to reduce
        reduce_fn: Reduction over the responses at one value; a callable or
                   one of "mean", "median", "min", "max", "sum" (default mean)
        group_by: None to group by explainer label, an observation attribute
                  name, or a callable mapping a Profile to its group key
        variables: Variables to aggregate jointly; every label must provide
                   all of them

    Returns:
        AggregationResult sorted by variable then group key

    Raises:
        GridMismatchError: If continuous profiles of one group use different grids
        SchemaMismatchError: If labels disagree on the requested variables or
            profiles disagree on a variable's kind
    """
    reducer = get_reducer(reduce_fn)
    key_of = _group_key_function(group_by)
    profiles = _as_profiles(collection)
    _check_schema(profiles, variables)
    if variables is not None:
        wanted = set(variables)
        profiles = [p for p in profiles if p.variable in wanted]

    groups: dict[tuple[str, Any], list[Profile]] = defaultdict(list)
    for profile in profiles:
        groups[(profile.variable, key_of(profile))].append(profile)

    aggregates: list[AggregatedProfile] = []
    diagnostics: list[CeterisParibusError] = []
    for (variable, group) in sorted(groups, key=lambda k: (k[0], _sort_key(k[1]))):
        members = groups[(variable, group)]
        kind = members[0].kind

        if kind is VariableKind.CONTINUOUS:
            grids = {p.grid_values or p.values for p in members}
            if len(grids) > 1:
                raise GridMismatchError(variable, group)

        responses: dict[Any, list[float]] = defaultdict(list)
        for profile in members:
            for point in profile.points:
                responses[point.value].append(point.response)

        values: list[Any] = []
        reduced: list[float] = []
        for value in sorted(responses, key=_sort_key):
            usable = np.array([r for r in responses[value] if not np.isnan(r)], dtype=np.float64)
            if usable.size == 0:
                diagnostics.append(EmptyGroupError(variable, group, value))
                continue
            values.append(value)
            reduced.append(reducer(np.sort(usable)))

        if not values:
            logger.warning("Omitting group '%s' for '%s': no responses to reduce", group, variable)
            continue

        aggregates.append(AggregatedProfile(
            variable=variable,
            group=group,
            kind=kind,
            values=tuple(values),
            responses=tuple(reduced),
            n_profiles=len(members),
        ))

    logger.debug("Aggregated %d profiles into %d curves with '%s'", len(profiles), len(aggregates), reducer.name)
    return AggregationResult(tuple(aggregates), tuple(diagnostics))


def aggregate_to_frame(
    collection: Iterable[Profile | AggregatedProfile],
    reduce_fn: str | Callable[[np.ndarray], float] | None = None,
    group_by: GroupBy = None,
    variables: Sequence[str] | None = None,
    keep_profiles: bool = False,
) -> pl.DataFrame:
    """Aggregate and flatten into one frame for rendering.

    Args:
        collection: Profiles to aggregate
        reduce_fn: See ``aggregate``
        group_by: See ``aggregate``
        variables: See ``aggregate``
        keep_profiles: Also emit the raw per-observation rows, tagged with
                       their group key and ``row_type == "profile"``

    Returns:
        DataFrame with the aggregate columns plus ``row_type``,
        ``observation_id`` and ``is_observed``
    """
    profiles = _as_profiles(collection)
    result = aggregate(profiles, reduce_fn=reduce_fn, group_by=group_by, variables=variables)

    aggregated = result.to_frame().with_columns(
        pl.lit("aggregate").alias("row_type"),
        pl.lit(None, dtype=pl.Utf8).alias("observation_id"),
        pl.lit(None, dtype=pl.Boolean).alias("is_observed"),
    )
    if not keep_profiles:
        return aggregated

    key_of = _group_key_function(group_by)
    if variables is not None:
        wanted = set(variables)
        profiles = [p for p in profiles if p.variable in wanted]
    groups = [str(key_of(p)) for p in profiles for _ in p.points]
    raw = profiles_to_frame(profiles).with_columns(
        pl.Series("group", groups, dtype=pl.Utf8),
        pl.lit("profile").alias("row_type"),
        pl.lit(None, dtype=pl.Int64).alias("n_profiles"),
    )
    columns = [*AGGREGATE_SCHEMA, "row_type", "observation_id", "is_observed"]
    return pl.concat([aggregated.select(columns), raw.select(columns)])
