"""Tests for the Explainer adapter."""

from concurrent.futures import ThreadPoolExecutor
import threading
import time

import numpy as np
import polars as pl
import pytest

from ceteris.domain.entities import VariableKind
from ceteris.domain.errors import ConfigurationError, PredictionError
from ceteris.explainers.explainer import Explainer

from conftest import FailingModel, linear_predict


class TestConstruction:
    """Tests for Explainer construction and validation."""

    def test_missing_predict_function_rejected(self, reference_records: list[dict]) -> None:
        with pytest.raises(ConfigurationError):
            Explainer(model=None, data=reference_records, predict_function=None)

    def test_non_callable_predict_function_rejected(self, reference_records: list[dict]) -> None:
        with pytest.raises(ConfigurationError):
            Explainer(model=None, data=reference_records, predict_function="predict")

    def test_response_length_must_match_data(self, reference_records: list[dict]) -> None:
        with pytest.raises(ConfigurationError, match="Response vector length"):
            Explainer(
                model=None,
                data=reference_records,
                predict_function=linear_predict,
                y=[1.0, 2.0],
            )

    def test_response_vector_stored(self, reference_records: list[dict]) -> None:
        explainer = Explainer(
            model=None,
            data=reference_records,
            predict_function=linear_predict,
            y=[1.0, 2.0, 3.0],
        )
        np.testing.assert_array_equal(explainer.y, [1.0, 2.0, 3.0])

    def test_empty_data_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            Explainer(model=None, data=[], predict_function=linear_predict)

    def test_label_defaults_to_model_class(self, reference_records: list[dict]) -> None:
        explainer = Explainer(
            model=FailingModel(fails_on=-1),
            data=reference_records,
            predict_function=linear_predict,
        )
        assert explainer.label == "FailingModel"

    def test_accepts_polars_frame(self) -> None:
        frame = pl.DataFrame({"feature1": [0, 5, 10], "feature2": ["x", "y", "x"]})
        explainer = Explainer(model=None, data=frame, predict_function=linear_predict)
        assert len(explainer.records) == 3
        assert explainer.records[1] == {"feature1": 5, "feature2": "y"}

    def test_from_predictor_requires_predict(self, reference_records: list[dict]) -> None:
        with pytest.raises(ConfigurationError):
            Explainer.from_predictor(object(), reference_records)


class TestSchema:
    """Tests for variable kind resolution."""

    def test_kinds_inferred(self, explainer: Explainer) -> None:
        assert explainer.kind_of("feature1") is VariableKind.CONTINUOUS
        assert explainer.kind_of("feature2") is VariableKind.CATEGORICAL
        assert explainer.variables == ["feature1", "feature2"]

    def test_categorical_override(self, reference_records: list[dict]) -> None:
        explainer = Explainer(
            model=None,
            data=reference_records,
            predict_function=linear_predict,
            categorical=["feature1"],
        )
        assert explainer.kind_of("feature1") is VariableKind.CATEGORICAL

    def test_unknown_override_rejected(self, reference_records: list[dict]) -> None:
        with pytest.raises(ConfigurationError, match="unknown variables"):
            Explainer(
                model=None,
                data=reference_records,
                predict_function=linear_predict,
                categorical=["nope"],
            )

    def test_all_missing_column_has_no_kind(self) -> None:
        records = [{"feature1": 1, "empty": None}, {"feature1": 2, "empty": None}]
        explainer = Explainer(model=None, data=records, predict_function=linear_predict)
        assert explainer.kind_of("empty") is None

    def test_grid_is_cached(self, explainer: Explainer) -> None:
        first = explainer.grid("feature1", resolution=3)
        second = explainer.grid("feature1", resolution=3)
        assert first is second
        assert first.values == (0.0, 5.0, 10.0)


class TestPredict:
    """Tests for batched prediction."""

    def test_scores_in_record_order(self, explainer: Explainer) -> None:
        scores = explainer.predict([{"feature1": 1}, {"feature1": 3, "feature2": "y"}])
        np.testing.assert_array_equal(scores, [12.0, 19.0])
        assert scores.dtype == np.float64

    def test_input_records_not_mutated(self, reference_records: list[dict]) -> None:
        def mutating_predict(model, records):
            for record in records:
                record["feature1"] = -1
            return [0.0] * len(records)

        explainer = Explainer(model=None, data=reference_records, predict_function=mutating_predict)
        batch = [{"feature1": 4}]
        explainer.predict(batch)

        assert batch == [{"feature1": 4}]
        assert explainer.records[0]["feature1"] == 0

    def test_model_failure_wrapped(self, failing_explainer: Explainer) -> None:
        with pytest.raises(PredictionError) as exc_info:
            failing_explainer.predict([{"feature1": 1}, {"feature1": 10}, {"feature1": 2}])

        assert exc_info.value.record_index == 1
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_predict_each_isolates_failures(self, failing_explainer: Explainer) -> None:
        scores, errors = failing_explainer.predict_each(
            [{"feature1": 1}, {"feature1": 10}, {"feature1": 2}]
        )

        assert scores[0] == 12.0
        assert np.isnan(scores[1])
        assert scores[2] == 14.0
        assert [e.record_index for e in errors] == [1]
        assert errors[0].label == "M1"

    def test_wrong_output_length(self, reference_records: list[dict]) -> None:
        explainer = Explainer(
            model=None,
            data=reference_records,
            predict_function=lambda model, records: [1.0, 2.0, 3.0],
        )
        with pytest.raises(PredictionError):
            explainer.predict([{"feature1": 1}, {"feature1": 2}])

    def test_non_numeric_output(self, reference_records: list[dict]) -> None:
        explainer = Explainer(
            model=None,
            data=reference_records,
            predict_function=lambda model, records: ["high"] * len(records),
        )
        with pytest.raises(PredictionError):
            explainer.predict([{"feature1": 1}])

    def test_empty_batch(self, explainer: Explainer) -> None:
        assert explainer.predict([]).shape == (0,)

    def test_not_thread_safe_serializes_calls(self, reference_records: list[dict]) -> None:
        active = 0
        peak = 0
        guard = threading.Lock()

        def slow_predict(model, records):
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with guard:
                active -= 1
            return linear_predict(model, records)

        explainer = Explainer(
            model=None,
            data=reference_records,
            predict_function=slow_predict,
            thread_safe=False,
        )
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda i: explainer.predict([{"feature1": i}]), range(8)))

        assert peak == 1


class TestForClasses:
    """Tests for per-class explainers."""

    def test_array_probabilities(self, reference_records: list[dict]) -> None:
        def predict_proba(model, records):
            return np.array([[0.25, 0.75]] * len(records))

        explainers = Explainer.for_classes(
            None, reference_records, predict_proba, classes=["no", "yes"], label="clf"
        )

        assert [e.label for e in explainers] == ["clf.no", "clf.yes"]
        np.testing.assert_array_equal(explainers[0].predict([{"feature1": 1}]), [0.25])
        np.testing.assert_array_equal(explainers[1].predict([{"feature1": 1}]), [0.75])

    def test_mapping_probabilities(self, reference_records: list[dict]) -> None:
        def predict_proba(model, records):
            return [{"a": 0.1, "b": 0.9} for _ in records]

        explainers = Explainer.for_classes(None, reference_records, predict_proba, classes=["a", "b"])

        np.testing.assert_array_equal(explainers[1].predict([{"feature1": 1}, {"feature1": 2}]), [0.9, 0.9])
