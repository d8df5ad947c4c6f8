"""Tests for profile aggregation."""

import numpy as np
import polars as pl
import pytest

from ceteris.aggregation.aggregator import aggregate, aggregate_to_frame
from ceteris.aggregation.reducers import MeanReducer, create_standard_reducers, get_reducer
from ceteris.domain.entities import Profile, ProfilePoint, VariableKind
from ceteris.domain.errors import (
    ConfigurationError,
    EmptyGroupError,
    GridMismatchError,
    SchemaMismatchError,
)
from ceteris.explainers.explainer import Explainer
from ceteris.profiles.composer import ProfileCollection, compose
from ceteris.profiles.what_if import what_if

from conftest import linear_predict


@pytest.fixture
def two_profiles(explainer: Explainer) -> ProfileCollection:
    """feature1 profiles of two observations sharing the grid (0, 1, 5, 9, 10)."""
    return what_if(
        explainer,
        [{"feature1": 1, "feature2": "x"}, {"feature1": 9, "feature2": "y"}],
        variables=["feature1"],
        grid_resolution=3,
    )


def _profile(variable: str, kind: VariableKind, values: tuple, responses: tuple, label: str = "M1") -> Profile:
    points = tuple(ProfilePoint(variable, v, r) for v, r in zip(values, responses))
    return Profile(label, "0", variable, kind, points, grid_values=values)


class TestAggregate:
    """Tests for the default mean aggregation."""

    def test_categorical_mean(self, explainer: Explainer) -> None:
        profiles = what_if(
            explainer,
            [{"feature1": 0, "feature2": "x"}, {"feature1": 10, "feature2": "y"}],
            variables=["feature2"],
        )

        result = aggregate(profiles)

        assert len(result) == 1
        curve = result[0]
        assert curve.variable == "feature2"
        assert curve.group == "M1"
        assert curve.kind is VariableKind.CATEGORICAL
        assert curve.points == [("x", 20.0), ("y", 23.0)]
        assert curve.n_profiles == 2

    def test_continuous_mean(self, two_profiles: ProfileCollection) -> None:
        curve = aggregate(two_profiles).get("feature1", "M1")

        assert curve.values == (0.0, 1.0, 5.0, 9.0, 10.0)
        np.testing.assert_allclose(curve.responses, [2 * v + 11.5 for v in curve.values])

    def test_named_reducer(self, two_profiles: ProfileCollection) -> None:
        curve = aggregate(two_profiles, reduce_fn="max")[0]
        np.testing.assert_allclose(curve.responses, [2 * v + 13.0 for v in curve.values])

    def test_callable_reducer(self, two_profiles: ProfileCollection) -> None:
        curve = aggregate(two_profiles, reduce_fn=lambda r: r[0])[0]
        np.testing.assert_allclose(curve.responses, [2 * v + 10.0 for v in curve.values])

    def test_order_independent(self, two_profiles: ProfileCollection) -> None:
        forward = aggregate(two_profiles)
        backward = aggregate(list(reversed(two_profiles)))
        assert forward.profiles == backward.profiles

    def test_idempotent_on_single_group(self, two_profiles: ProfileCollection) -> None:
        once = aggregate(two_profiles)
        twice = aggregate(once)

        assert len(twice) == 1
        assert twice[0].group == once[0].group
        assert twice[0].values == once[0].values
        assert twice[0].responses == once[0].responses

    def test_dropped_points_do_not_mismatch(self, failing_explainer: Explainer) -> None:
        profiles = what_if(failing_explainer, [{"feature1": 1}, {"feature1": 5}], grid_resolution=3)

        result = aggregate(profiles)

        assert result[0].values == (0.0, 1.0, 5.0)
        assert result.diagnostics == ()

    def test_sorted_by_variable_then_group(self, explainer: Explainer, reference_records: list[dict]) -> None:
        other = Explainer(model=None, data=reference_records, predict_function=linear_predict, label="A0")
        observation = {"feature1": 5, "feature2": "x"}
        profiles = compose(what_if(explainer, observation, grid_resolution=3),
                           what_if(other, observation, grid_resolution=3))

        result = aggregate(profiles)

        assert [(c.variable, c.group) for c in result] == [
            ("feature1", "A0"), ("feature1", "M1"), ("feature2", "A0"), ("feature2", "M1"),
        ]


class TestGrouping:
    """Tests for group_by."""

    def test_group_by_attribute(self, explainer: Explainer) -> None:
        profiles = what_if(
            explainer,
            [{"feature1": 1, "feature2": "x"}, {"feature1": 9, "feature2": "y"}, {"feature1": 5, "feature2": "x"}],
            variables=["feature1"],
            grid_resolution=3,
        )

        result = aggregate(profiles, group_by="feature2")

        assert [c.group for c in result] == ["x", "y"]
        assert result.get("feature1", "x").n_profiles == 2
        assert result.get("feature1", "y").n_profiles == 1

    def test_group_by_callable(self, two_profiles: ProfileCollection) -> None:
        result = aggregate(two_profiles, group_by=lambda p: p.observation_id)
        assert [c.group for c in result] == ["0", "1"]

    def test_missing_attribute(self, two_profiles: ProfileCollection) -> None:
        with pytest.raises(SchemaMismatchError):
            aggregate(two_profiles, group_by="gender")


class TestMismatches:
    """Tests for refused aggregations."""

    def test_different_grids(self, explainer: Explainer) -> None:
        first = what_if(explainer, {"feature1": 2}, grid_resolution=3)
        second = what_if(explainer, {"feature1": 7}, grid_resolution=3)

        with pytest.raises(GridMismatchError) as exc_info:
            aggregate(compose(first, second))

        assert exc_info.value.variable == "feature1"
        assert exc_info.value.group == "M1"

    def test_joint_variables_missing(self, explainer: Explainer, reference_records: list[dict]) -> None:
        other = Explainer(model=None, data=reference_records, predict_function=linear_predict, label="M2")
        profiles = compose(
            what_if(explainer, {"feature1": 5, "feature2": "x"}, grid_resolution=3),
            what_if(other, {"feature1": 5, "feature2": "x"}, variables=["feature1"], grid_resolution=3),
        )

        with pytest.raises(SchemaMismatchError):
            aggregate(profiles, variables=["feature1", "feature2"])

        result = aggregate(profiles, variables=["feature1"])
        assert [(c.variable, c.group) for c in result] == [("feature1", "M1"), ("feature1", "M2")]

    def test_kind_disagreement(self) -> None:
        profiles = [
            _profile("v", VariableKind.CONTINUOUS, (1.0, 2.0), (1.0, 2.0)),
            _profile("v", VariableKind.CATEGORICAL, ("a", "b"), (1.0, 2.0), label="M2"),
        ]
        with pytest.raises(SchemaMismatchError):
            aggregate(profiles)


class TestMissingResponses:
    """Tests for NaN responses."""

    def test_nan_excluded(self) -> None:
        profiles = [
            _profile("v", VariableKind.CONTINUOUS, (1.0, 2.0), (1.0, np.nan)),
            _profile("v", VariableKind.CONTINUOUS, (1.0, 2.0), (3.0, 4.0)),
        ]
        curve = aggregate(profiles)[0]

        assert curve.values == (1.0, 2.0)
        assert curve.responses == (2.0, 4.0)

    def test_empty_value_omitted(self) -> None:
        profiles = [
            _profile("v", VariableKind.CONTINUOUS, (1.0, 2.0), (1.0, np.nan)),
            _profile("v", VariableKind.CONTINUOUS, (1.0, 2.0), (3.0, np.nan)),
        ]
        result = aggregate(profiles)

        assert result[0].values == (1.0,)
        assert len(result.diagnostics) == 1
        diagnostic = result.diagnostics[0]
        assert isinstance(diagnostic, EmptyGroupError)
        assert (diagnostic.variable, diagnostic.group, diagnostic.value) == ("v", "M1", 2.0)

    def test_all_empty_group_omitted(self) -> None:
        profiles = [_profile("v", VariableKind.CATEGORICAL, ("a",), (np.nan,))]
        result = aggregate(profiles)

        assert len(result) == 0
        assert len(result.diagnostics) == 1


class TestAggregateToFrame:
    """Tests for the flattened aggregation output."""

    def test_aggregate_rows(self, two_profiles: ProfileCollection) -> None:
        frame = aggregate_to_frame(two_profiles)

        assert len(frame) == 5
        assert set(frame["row_type"].to_list()) == {"aggregate"}
        assert frame["group"].to_list() == ["M1"] * 5
        assert frame["n_profiles"].to_list() == [2] * 5

    def test_keep_profiles(self, two_profiles: ProfileCollection) -> None:
        frame = aggregate_to_frame(two_profiles, keep_profiles=True)

        assert len(frame) == 5 + 10
        raw = frame.filter(pl.col("row_type") == "profile")
        assert sorted(set(raw["observation_id"].to_list())) == ["0", "1"]
        assert raw["group"].to_list() == ["M1"] * 10
        assert raw.filter(pl.col("is_observed")).height == 2


class TestReducers:
    """Tests for reducer resolution."""

    def test_default_is_mean(self) -> None:
        assert get_reducer(None) == MeanReducer()

    def test_standard_names(self) -> None:
        names = [r.name for r in create_standard_reducers()]
        assert names == ["mean", "median", "min", "max", "sum"]
        for name in names:
            assert get_reducer(name).name == name

    def test_unknown_name(self) -> None:
        with pytest.raises(ConfigurationError):
            get_reducer("mode")

    def test_callable_wrapped(self) -> None:
        reducer = get_reducer(np.median)
        assert reducer.name == "median"
        assert reducer(np.array([1.0, 2.0, 9.0])) == 2.0
