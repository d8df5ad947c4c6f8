"""Predictor adapters for trained models."""

from .adapters import (
    SklearnPredictor,
    XGBoostPredictor,
    call_predict_proba,
    records_to_matrix,
)

__all__ = [
    "SklearnPredictor",
    "XGBoostPredictor",
    "call_predict_proba",
    "records_to_matrix",
]
