"""Protocol interfaces for profiling components."""

from pathlib import Path
from typing import Any, Protocol, Sequence, runtime_checkable

import numpy as np

from .entities import Record


@runtime_checkable
class IPredictor(Protocol):
    """Interface for anything that scores a batch of records.

    Implementations can wrap scikit-learn estimators, XGBoost boosters, or
    plain functions. The engine never inspects model internals.
    """

    def predict(self, records: Sequence[Record]) -> np.ndarray:
        """Return one numeric score per record, in record order."""
        ...


class PredictFunction(Protocol):
    """Signature of an Explainer's prediction function."""

    def __call__(self, model: Any, records: Sequence[Record]) -> Sequence[float]:
        ...


@runtime_checkable
class IReducer(Protocol):
    """Interface for named aggregation reductions."""

    @property
    def name(self) -> str:
        """Return the reducer's identifier."""
        ...

    def __call__(self, responses: np.ndarray) -> float:
        """Reduce a finite multiset of responses to one value."""
        ...


@runtime_checkable
class IProfileStore(Protocol):
    """Interface for profile persistence."""

    def save_profiles(self, collection: Any, name: str) -> Path:
        """Persist a profile collection under ``name``."""
        ...

    def load_profiles(self, name: str) -> Any:
        """Load a previously saved profile collection."""
        ...

    def list_profile_sets(self) -> list[str]:
        """List all stored collections."""
        ...
