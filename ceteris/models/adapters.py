"""Predictor adapters for common model libraries.

Each adapter turns a batch of records into the feature matrix its model
expects and returns one score per record, satisfying ``IPredictor``.
Categorical levels are mapped to numeric codes through an explicit
``encoding``; unknown levels become NaN and it is up to the model whether
it can score them.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np
import xgboost as xgb
from sklearn.base import BaseEstimator

from ceteris.domain.entities import Record, is_missing
from ceteris.domain.errors import ConfigurationError


def records_to_matrix(
    records: Sequence[Record],
    feature_names: Sequence[str],
    encoding: Mapping[str, Mapping[Any, float]] | None = None,
) -> np.ndarray:
    """Build a (n_records, n_features) float matrix from records.

    Args:
        records: Records to convert
        feature_names: Column order of the matrix
        encoding: Optional level -> code mapping per categorical feature

    Returns:
        Float matrix; missing values and unknown levels are NaN
    """
    encoding = encoding or {}
    matrix = np.full((len(records), len(feature_names)), np.nan, dtype=np.float64)
    for row, record in enumerate(records):
        for col, name in enumerate(feature_names):
            value = record.get(name)
            if is_missing(value):
                continue
            if name in encoding:
                matrix[row, col] = encoding[name].get(value, np.nan)
            else:
                matrix[row, col] = float(value)
    return matrix


def call_predict_proba(model: Any, records: Sequence[Record]) -> np.ndarray:
    """Prediction function returning class probabilities of a predictor."""
    return model.predict_proba(records)


@dataclass
class SklearnPredictor:
    """Adapter for fitted scikit-learn estimators.

    When ``class_index`` is set, ``predict`` returns that column of
    ``predict_proba`` instead of ``predict``.
    """

    estimator: BaseEstimator
    feature_names: list[str]
    encoding: dict[str, dict[Any, float]] = field(default_factory=dict)
    class_index: int | None = None

    @property
    def classes(self) -> list[Any]:
        return list(getattr(self.estimator, "classes_", []))

    def predict(self, records: Sequence[Record]) -> np.ndarray:
        X = records_to_matrix(records, self.feature_names, self.encoding)
        if self.class_index is not None:
            return self.estimator.predict_proba(X)[:, self.class_index]
        return np.asarray(self.estimator.predict(X), dtype=np.float64)

    def predict_proba(self, records: Sequence[Record]) -> np.ndarray:
        X = records_to_matrix(records, self.feature_names, self.encoding)
        return self.estimator.predict_proba(X)


@dataclass
class XGBoostPredictor:
    """Adapter for trained XGBoost boosters."""

    booster: xgb.Booster
    feature_names: list[str]
    encoding: dict[str, dict[Any, float]] = field(default_factory=dict)

    def predict(self, records: Sequence[Record]) -> np.ndarray:
        X = records_to_matrix(records, self.feature_names, self.encoding)
        dmatrix = xgb.DMatrix(X, feature_names=self.booster.feature_names)
        return self.booster.predict(dmatrix)

    @classmethod
    def load(
        cls,
        path: Path,
        feature_names: list[str] | None = None,
        encoding: dict[str, dict[Any, float]] | None = None,
    ) -> "XGBoostPredictor":
        """Load a booster saved with ``Booster.save_model``.

        Feature names default to the ones stored in the model file.
        """
        booster = xgb.Booster()
        booster.load_model(str(path))
        names = feature_names or booster.feature_names
        if not names:
            raise ConfigurationError(f"Model at {path} has no feature names; pass feature_names explicitly")
        return cls(booster=booster, feature_names=list(names), encoding=encoding or {})
