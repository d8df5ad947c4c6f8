"""Uniform adapter binding a model to its reference data.

An Explainer wraps an arbitrary model behind a single batched ``predict``
call. It resolves the kind of every variable once, at construction, and
caches base grids per variable so that every observation profiled through
the same Explainer is probed on the same grid.
"""

from dataclasses import dataclass, field
import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Sequence

import numpy as np
import polars as pl

from ceteris.domain.entities import Record, VariableGrid, VariableKind
from ceteris.domain.errors import ConfigurationError, PredictionError
from ceteris.domain.protocols import IPredictor, PredictFunction
from ceteris.grids.grid_builder import (
    GridMethod,
    build_grid,
    column_values,
    infer_variable_kind,
    insert_observed,
)


logger = logging.getLogger(__name__)


def _as_records(data: Any) -> tuple[Mapping[str, Any], ...]:
    if isinstance(data, pl.DataFrame):
        rows = data.to_dicts()
    elif isinstance(data, Mapping):
        rows = [data]
    else:
        rows = list(data)
    return tuple(MappingProxyType(dict(row)) for row in rows)


def _call_predict(model: IPredictor, records: Sequence[Record]) -> np.ndarray:
    return model.predict(records)


@dataclass(frozen=True)
class _ClassColumn:
    """Prediction function fixed to one class of a probabilistic model."""
    predict_proba: Callable[[Any, Sequence[Record]], Any]
    index: int
    class_label: Any

    def __call__(self, model: Any, records: Sequence[Record]) -> np.ndarray:
        output = self.predict_proba(model, records)
        rows = list(output) if not isinstance(output, np.ndarray) else None
        if rows and isinstance(rows[0], Mapping):
            return np.array([row[self.class_label] for row in rows], dtype=np.float64)
        return np.asarray(output, dtype=np.float64)[:, self.index]


@dataclass(eq=False)
class Explainer:
    """Model adapter for what-if profiling.

    Binds a model, its reference data, an optional response vector and a
    prediction function ``(model, records) -> scores``. Treat instances as
    immutable: grids are cached on the assumption that the reference data
    never changes.

    Set ``thread_safe=False`` for models that cannot be called from several
    threads at once; calls are then serialized with a lock.
    """

    model: Any
    data: Any
    predict_function: PredictFunction | None
    y: Any = None
    label: str | None = None
    categorical: Iterable[str] | None = None
    thread_safe: bool = True

    _records: tuple[Mapping[str, Any], ...] = field(default=(), init=False, repr=False)
    _kinds: dict[str, VariableKind | None] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _grid_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _grid_cache: dict[tuple[str, int | None, str], VariableGrid] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.predict_function is None or not callable(self.predict_function):
            raise ConfigurationError("predict_function must be a callable (model, records) -> scores")

        self._records = _as_records(self.data)
        if not self._records:
            raise ConfigurationError("Reference data must contain at least one record")

        if self.y is not None:
            self.y = np.asarray(self.y)
            if len(self.y) != len(self._records):
                raise ConfigurationError(
                    f"Response vector length ({len(self.y)}) must match "
                    f"reference data length ({len(self._records)})"
                )

        if self.label is None:
            self.label = type(self.model).__name__

        forced = set(self.categorical or ())
        variables: dict[str, None] = {}
        for record in self._records:
            variables.update(dict.fromkeys(record))
        unknown = forced - variables.keys()
        if unknown:
            raise ConfigurationError(f"Categorical overrides name unknown variables: {sorted(unknown)}")

        for variable in variables:
            if variable in forced:
                self._kinds[variable] = VariableKind.CATEGORICAL
            else:
                self._kinds[variable] = infer_variable_kind(column_values(self._records, variable))

        logger.debug(
            "Explainer '%s' built on %d records, %d variables",
            self.label,
            len(self._records),
            len(self._kinds),
        )

    @classmethod
    def from_predictor(
        cls,
        predictor: IPredictor,
        data: Any,
        y: Any = None,
        label: str | None = None,
        **kwargs: Any,
    ) -> "Explainer":
        """Build an Explainer around an object exposing ``predict(records)``."""
        if not isinstance(predictor, IPredictor):
            raise ConfigurationError(f"{type(predictor).__name__} does not expose predict(records)")
        return cls(
            model=predictor,
            data=data,
            predict_function=_call_predict,
            y=y,
            label=label or type(predictor).__name__,
            **kwargs,
        )

    @classmethod
    def for_classes(
        cls,
        model: Any,
        data: Any,
        predict_proba: Callable[[Any, Sequence[Record]], Any],
        classes: Sequence[Any],
        y: Any = None,
        label: str | None = None,
        **kwargs: Any,
    ) -> list["Explainer"]:
        """Build one Explainer per class of a probabilistic classifier.

        Args:
            model: The classifier
            data: Reference records
            predict_proba: Function returning either an (n_records, n_classes)
                           array with columns ordered as ``classes`` or one
                           mapping class -> probability per record
            classes: Class labels to build explainers for
            y: Optional response vector
            label: Base label; each explainer is labelled "<label>.<class>"

        Returns:
            List of explainers, one per class, in ``classes`` order
        """
        if not callable(predict_proba):
            raise ConfigurationError("predict_proba must be callable")
        base = label or type(model).__name__
        return [
            cls(
                model=model,
                data=data,
                predict_function=_ClassColumn(predict_proba, index, class_label),
                y=y,
                label=f"{base}.{class_label}",
                **kwargs,
            )
            for index, class_label in enumerate(classes)
        ]

    @property
    def records(self) -> tuple[Mapping[str, Any], ...]:
        return self._records

    @property
    def variables(self) -> list[str]:
        return list(self._kinds)

    @property
    def kinds(self) -> dict[str, VariableKind | None]:
        return dict(self._kinds)

    def kind_of(self, variable: str) -> VariableKind | None:
        return self._kinds.get(variable)

    def grid(
        self,
        variable: str,
        resolution: int | None = None,
        method: GridMethod | str = GridMethod.QUANTILES,
        observation: Record | Sequence[Record] | None = None,
    ) -> VariableGrid:
        """Return the grid for a variable.

        The base grid derived from the reference data is built on first use
        and cached; the observations' own values are inserted on every call.

        Raises:
            UnsupportedVariableError: If no grid can be built for the variable
        """
        method = GridMethod(method)
        key = (variable, resolution, method.value)
        with self._grid_lock:
            grid = self._grid_cache.get(key)
            if grid is None:
                grid = build_grid(
                    self._records,
                    variable,
                    resolution=resolution,
                    method=method,
                    kind=self._kinds.get(variable),
                )
                self._grid_cache[key] = grid
                logger.debug("Cached %s grid for '%s' (%d values)", grid.kind.value, variable, len(grid))
        return insert_observed(grid, observation)

    def predict(self, records: Sequence[Record]) -> np.ndarray:
        """Score a batch of records.

        Args:
            records: Records to score; never mutated

        Returns:
            Float array with one score per record, in record order

        Raises:
            PredictionError: If the model fails on any record; carries the
                offending record index and the original cause
        """
        scores, errors = self.predict_each(records)
        if errors:
            raise errors[0]
        return scores

    def predict_each(self, records: Sequence[Record]) -> tuple[np.ndarray, list[PredictionError]]:
        """Score a batch, isolating records the model fails on.

        The whole batch is scored in one call. If that call fails, records are
        re-scored one at a time to find the failing ones.

        Returns:
            Tuple of (scores with NaN for failed records, list of PredictionError)
        """
        batch = [dict(record) for record in records]
        if not batch:
            return np.empty(0, dtype=np.float64), []

        try:
            return self._score(batch), []
        except PredictionError as exc:
            logger.debug("Batch of %d failed for '%s' (%s); scoring records individually",
                         len(batch), self.label, exc)

        scores = np.full(len(batch), np.nan, dtype=np.float64)
        errors: list[PredictionError] = []
        for index, record in enumerate(records):
            try:
                scores[index] = self._score([dict(record)])[0]
            except PredictionError as exc:
                exc.record_index = index
                exc.label = self.label
                errors.append(exc)
        return scores, errors

    def _score(self, batch: list[dict[str, Any]]) -> np.ndarray:
        try:
            if self.thread_safe:
                output = self.predict_function(self.model, batch)
            else:
                with self._lock:
                    output = self.predict_function(self.model, batch)
        except Exception as exc:
            index = 0 if len(batch) == 1 else None
            raise PredictionError(
                f"Model '{self.label}' failed: {exc}", record_index=index, label=self.label
            ) from exc

        try:
            scores = np.asarray(output, dtype=np.float64).reshape(-1)
        except (TypeError, ValueError) as exc:
            raise PredictionError(
                f"Model '{self.label}' returned non-numeric scores", label=self.label
            ) from exc

        if len(scores) != len(batch):
            raise PredictionError(
                f"Model '{self.label}' returned {len(scores)} scores for {len(batch)} records",
                label=self.label,
            )
        return scores
