"""Tabular views of profiles for rendering and persistence.

Continuous probe values are stored in the Float64 ``value`` column and
categorical levels in the Utf8 ``level`` column, so one frame can hold
profiles of both kinds.
"""

import json
from typing import Any, Iterable

import polars as pl

from ceteris.domain.entities import AggregatedProfile, Profile, ProfilePoint, VariableKind


PROFILE_SCHEMA = {
    "variable": pl.Utf8,
    "kind": pl.Utf8,
    "value": pl.Float64,
    "level": pl.Utf8,
    "response": pl.Float64,
    "label": pl.Utf8,
    "observation_id": pl.Utf8,
    "is_observed": pl.Boolean,
}

AGGREGATE_SCHEMA = {
    "variable": pl.Utf8,
    "kind": pl.Utf8,
    "value": pl.Float64,
    "level": pl.Utf8,
    "response": pl.Float64,
    "group": pl.Utf8,
    "n_profiles": pl.Int64,
}

INDEX_SCHEMA = {
    "profile_id": pl.Int64,
    "label": pl.Utf8,
    "observation_id": pl.Utf8,
    "variable": pl.Utf8,
    "kind": pl.Utf8,
    "grid": pl.Utf8,
    "observation": pl.Utf8,
}


def _split_value(kind: VariableKind, value: Any) -> tuple[float | None, str | None]:
    if kind is VariableKind.CONTINUOUS:
        return float(value), None
    return None, str(value)


def _stored_value(kind: VariableKind, value: Any) -> Any:
    numeric, level = _split_value(kind, value)
    return numeric if kind is VariableKind.CONTINUOUS else level


def profiles_to_frame(
    profiles: Iterable[Profile],
    include_observations: bool = False,
    include_profile_ids: bool = False,
) -> pl.DataFrame:
    """Flatten profiles into one row per profile point.

    Args:
        profiles: Profiles to flatten
        include_observations: Add an ``observation`` column holding each
                              observation record as JSON
        include_profile_ids: Add a ``profile_id`` column holding each
                             profile's position, matching ``profile_index_frame``

    Returns:
        DataFrame with the PROFILE_SCHEMA columns
    """
    rows: list[dict[str, Any]] = []
    for profile_id, profile in enumerate(profiles):
        observation = (
            json.dumps(dict(profile.observation), default=str) if include_observations else None
        )
        for point in profile.points:
            value, level = _split_value(profile.kind, point.value)
            row = {
                "variable": profile.variable,
                "kind": profile.kind.value,
                "value": value,
                "level": level,
                "response": point.response,
                "label": profile.label,
                "observation_id": profile.observation_id,
                "is_observed": point.is_observed,
            }
            if include_observations:
                row["observation"] = observation
            if include_profile_ids:
                row["profile_id"] = profile_id
            rows.append(row)

    schema = dict(PROFILE_SCHEMA)
    if include_observations:
        schema["observation"] = pl.Utf8
    if include_profile_ids:
        schema["profile_id"] = pl.Int64
    return pl.DataFrame(rows, schema=schema)


def profile_index_frame(profiles: Iterable[Profile]) -> pl.DataFrame:
    """One row per profile: identity, full probe grid and observation as JSON.

    Profiles whose points were all dropped still get a row, so the pair
    ``(profile_index_frame, profiles_to_frame(..., include_profile_ids=True))``
    restores every profile with the grid it was probed on.
    """
    rows = [
        {
            "profile_id": profile_id,
            "label": profile.label,
            "observation_id": profile.observation_id,
            "variable": profile.variable,
            "kind": profile.kind.value,
            "grid": json.dumps([_stored_value(profile.kind, v) for v in profile.grid_values]),
            "observation": json.dumps(dict(profile.observation), default=str),
        }
        for profile_id, profile in enumerate(profiles)
    ]
    return pl.DataFrame(rows, schema=INDEX_SCHEMA)


def _point_from_row(row: dict[str, Any], kind: VariableKind) -> ProfilePoint:
    return ProfilePoint(
        variable=row["variable"],
        value=row["value"] if kind is VariableKind.CONTINUOUS else row["level"],
        response=row["response"],
        is_observed=row["is_observed"],
    )


def frame_to_profiles(frame: pl.DataFrame, index: pl.DataFrame | None = None) -> list[Profile]:
    """Rebuild profiles from a frame produced by ``profiles_to_frame``.

    With an ``index`` from ``profile_index_frame`` the profiles keep their
    grids and observations, and profiles without points are restored too.
    Categorical levels come back as strings.
    """
    if index is not None:
        points: dict[int, list[ProfilePoint]] = {}
        kinds = {row["profile_id"]: VariableKind(row["kind"]) for row in index.iter_rows(named=True)}
        for row in frame.iter_rows(named=True):
            profile_id = row["profile_id"]
            points.setdefault(profile_id, []).append(_point_from_row(row, kinds[profile_id]))
        return [
            Profile(
                label=row["label"],
                observation_id=row["observation_id"],
                variable=row["variable"],
                kind=kinds[row["profile_id"]],
                points=tuple(points.get(row["profile_id"], ())),
                grid_values=tuple(json.loads(row["grid"])),
                observation=json.loads(row["observation"]),
            )
            for row in index.sort("profile_id").iter_rows(named=True)
        ]

    grouped: dict[tuple[str, str, str], dict[str, Any]] = {}
    has_observations = "observation" in frame.columns
    for row in frame.iter_rows(named=True):
        key = (row["label"], row["observation_id"], row["variable"])
        kind = VariableKind(row["kind"])
        entry = grouped.setdefault(key, {
            "kind": kind,
            "points": [],
            "observation": json.loads(row["observation"]) if has_observations and row["observation"] else {},
        })
        entry["points"].append(_point_from_row(row, kind))

    return [
        Profile(
            label=label,
            observation_id=observation_id,
            variable=variable,
            kind=entry["kind"],
            points=tuple(entry["points"]),
            observation=entry["observation"],
        )
        for (label, observation_id, variable), entry in grouped.items()
    ]


def aggregates_to_frame(aggregates: Iterable[AggregatedProfile]) -> pl.DataFrame:
    """Flatten aggregated profiles into one row per (value, reduced response)."""
    rows: list[dict[str, Any]] = []
    for aggregate in aggregates:
        for value, response in zip(aggregate.values, aggregate.responses):
            numeric, level = _split_value(aggregate.kind, value)
            rows.append({
                "variable": aggregate.variable,
                "kind": aggregate.kind.value,
                "value": numeric,
                "level": level,
                "response": response,
                "group": str(aggregate.group),
                "n_profiles": aggregate.n_profiles,
            })
    return pl.DataFrame(rows, schema=AGGREGATE_SCHEMA)
