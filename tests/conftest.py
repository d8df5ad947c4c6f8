"""Pytest fixtures for ceteris tests."""

from collections.abc import Generator
from pathlib import Path
import tempfile
from typing import Any, Sequence

import pytest

from ceteris.explainers.explainer import Explainer


def linear_predict(model: Any, records: Sequence[dict]) -> list[float]:
    """predict(x) = 2 * feature1 + 10, plus 3 when feature2 is "y"."""
    return [
        2.0 * r["feature1"] + 10.0 + (3.0 if r.get("feature2") == "y" else 0.0)
        for r in records
    ]


class FailingModel:
    """Model that cannot score records where feature1 equals ``fails_on``."""

    def __init__(self, fails_on: float) -> None:
        self.fails_on = fails_on
        self.calls = 0

    def predict(self, records: Sequence[dict]) -> list[float]:
        self.calls += 1
        for record in records:
            if record["feature1"] == self.fails_on:
                raise ValueError(f"cannot score feature1={record['feature1']}")
        return linear_predict(self, records)


class CountingModel:
    """Linear model that counts predict calls and batch sizes."""

    def __init__(self) -> None:
        self.batch_sizes: list[int] = []

    def predict(self, records: Sequence[dict]) -> list[float]:
        self.batch_sizes.append(len(records))
        return linear_predict(self, records)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def reference_records() -> list[dict]:
    return [
        {"feature1": 0, "feature2": "x"},
        {"feature1": 5, "feature2": "y"},
        {"feature1": 10, "feature2": "x"},
    ]


@pytest.fixture
def explainer(reference_records: list[dict]) -> Explainer:
    """Explainer over the linear model, labelled M1."""
    return Explainer(
        model=None,
        data=reference_records,
        predict_function=linear_predict,
        label="M1",
    )


@pytest.fixture
def failing_explainer(reference_records: list[dict]) -> Explainer:
    """Explainer whose model fails for feature1 == 10."""
    return Explainer.from_predictor(FailingModel(fails_on=10), reference_records, label="M1")
