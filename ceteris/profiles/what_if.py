"""What-if engine: ceteris-paribus profiles for observations.

For every requested (observation, variable) pair the observation is copied
once per grid value with only that variable replaced, and all copies are
scored in one batched call. Grid points the model cannot score are dropped
and recorded as diagnostics; variables without a grid are skipped and
recorded. Partial results are always returned.
"""

from concurrent.futures import ThreadPoolExecutor
import logging
import threading
from typing import Any, Mapping, Sequence

import polars as pl

from ceteris.domain.entities import Profile, ProfilePoint, Record, VariableGrid, is_missing
from ceteris.domain.errors import (
    CeterisParibusError,
    ConfigurationError,
    PredictionError,
    UnsupportedVariableError,
)
from ceteris.explainers.explainer import Explainer
from ceteris.grids.grid_builder import GridMethod
from ceteris.profiles.composer import ProfileCollection


logger = logging.getLogger(__name__)


def _as_observations(observations: Any) -> list[dict[str, Any]]:
    if isinstance(observations, pl.DataFrame):
        return observations.to_dicts()
    if isinstance(observations, Mapping):
        return [dict(observations)]
    return [dict(obs) for obs in observations]


def _resolution_for(
    variable: str,
    grid_resolution: int | Mapping[str, int] | None,
) -> int | None:
    if isinstance(grid_resolution, Mapping):
        return grid_resolution.get(variable)
    return grid_resolution


def profile_observation(
    explainer: Explainer,
    observation: Record,
    observation_id: str,
    grid: VariableGrid,
) -> tuple[Profile, list[PredictionError]]:
    """Compute one profile for one observation over a prepared grid.

    Args:
        explainer: Explainer scoring the perturbed records
        observation: Observation to perturb; never mutated
        observation_id: Identifier attached to the profile
        grid: Grid of the profiled variable

    Returns:
        Tuple of (profile without the failed points, errors for failed points)
    """
    variable = grid.variable
    observed = observation.get(variable)
    has_observed = not is_missing(observed)

    batch: list[dict[str, Any]] = []
    for value in grid.values:
        record = dict(observation)
        if not (has_observed and value == observed):
            record[variable] = value
        batch.append(record)

    scores, errors = explainer.predict_each(batch)

    failed: set[int] = set()
    for error in errors:
        failed.add(error.record_index)
        error.variable = variable
        error.value = grid.values[error.record_index]
        error.observation_id = observation_id

    points = tuple(
        ProfilePoint(
            variable=variable,
            value=value,
            response=float(score),
            is_observed=has_observed and value == observed,
        )
        for index, (value, score) in enumerate(zip(grid.values, scores))
        if index not in failed
    )

    profile = Profile(
        label=explainer.label,
        observation_id=observation_id,
        variable=variable,
        kind=grid.kind,
        points=points,
        grid_values=grid.values,
        observation=observation,
    )
    return profile, errors


def what_if(
    explainer: Explainer,
    observations: Record | Sequence[Record] | pl.DataFrame,
    variables: Sequence[str] | None = None,
    grid_resolution: int | Mapping[str, int] | None = None,
    grid_method: GridMethod | str = GridMethod.QUANTILES,
    observation_ids: Sequence[str] | None = None,
    workers: int = 1,
    cancel: threading.Event | None = None,
) -> ProfileCollection:
    """Compute ceteris-paribus profiles.

    Within one call every profile of a variable shares a single grid: the
    Explainer's cached base grid plus the values of all observations.

    Args:
        explainer: Explainer wrapping the model
        observations: One record, a sequence of records or a DataFrame
        variables: Variables to profile (default: all variables of the
                   first observation, plus any the others add)
        grid_resolution: Continuous grid size, globally or per variable
        grid_method: "quantiles" or "uniform"
        observation_ids: Identifiers for the observations (default: "0", "1", ...)
        workers: Size of the thread pool for (observation, variable) tasks
        cancel: Event checked between tasks; once set, remaining tasks are
                abandoned and the result is flagged ``cancelled``

    Returns:
        ProfileCollection ordered by observation then variable, with
        diagnostics for skipped variables and dropped points

    Raises:
        ConfigurationError: If observation_ids does not match the
            observations or workers is below 1
    """
    records = _as_observations(observations)
    if observation_ids is None:
        observation_ids = [str(i) for i in range(len(records))]
    else:
        observation_ids = [str(i) for i in observation_ids]
        if len(observation_ids) != len(records):
            raise ConfigurationError(
                f"Got {len(observation_ids)} observation ids for {len(records)} observations"
            )
    if workers < 1:
        raise ConfigurationError(f"workers must be at least 1, got {workers}")

    if variables is None:
        variables = list(dict.fromkeys(v for record in records for v in record))

    diagnostics: list[CeterisParibusError] = []
    grids: dict[str, VariableGrid] = {}
    for variable in variables:
        try:
            grids[variable] = explainer.grid(
                variable,
                resolution=_resolution_for(variable, grid_resolution),
                method=grid_method,
                observation=records,
            )
        except UnsupportedVariableError as exc:
            logger.warning("Skipping variable '%s' for '%s': %s", variable, explainer.label, exc.reason)
            diagnostics.append(exc)

    tasks = [
        (record, obs_id, grids[variable])
        for record, obs_id in zip(records, observation_ids)
        for variable in variables
        if variable in grids
    ]

    def run(task: tuple[dict[str, Any], str, VariableGrid]):
        if cancel is not None and cancel.is_set():
            return None
        record, obs_id, grid = task
        return profile_observation(explainer, record, obs_id, grid)

    if workers == 1:
        results = [run(task) for task in tasks]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(run, tasks))

    profiles: list[Profile] = []
    for result in results:
        if result is None:
            continue
        profile, errors = result
        profiles.append(profile)
        diagnostics.extend(errors)

    cancelled = any(result is None for result in results)
    dropped = sum(isinstance(d, PredictionError) for d in diagnostics)
    if dropped:
        logger.warning("Dropped %d grid point(s) for '%s' after model failures", dropped, explainer.label)
    if cancelled:
        logger.warning(
            "Profiling for '%s' cancelled after %d of %d tasks",
            explainer.label,
            len(profiles),
            len(tasks),
        )

    return ProfileCollection(tuple(profiles), tuple(diagnostics), cancelled)
