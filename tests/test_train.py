"""Tests for the cross-validated search and tuned classifier."""

import copy

import numpy as np
import pandas as pd
import pytest

from diabetes_risk.config.constants import CLASS_LABELS, TARGET_COLUMN
from diabetes_risk.config.settings import DEFAULT_METRIC, Metric, parse_metric, validate_search_space
from diabetes_risk.models import train as train_module
from diabetes_risk.models.baseline import split_dataset
from diabetes_risk.models.train import (
    run_search,
    select_best,
    suggest_params,
    summarize_cv,
    train_tuned_model,
)

SMALL_SPACE = {
    "n_estimators": {"min": 5, "max": 20},
    "max_depth": {"min": 2, "max": 4},
    "num_leaves": {"min": 4, "max": 12},
    "learning_rate": {"min": 0.05, "max": 0.3, "log": True},
    "mtry": {"min": 2, "max": 6},
    "min_child_samples": {"min": 5, "max": 15},
    "min_split_gain": {"min": 0.0, "max": 0.1},
}


@pytest.fixture
def partitions(balanced_survey):
    return split_dataset(balanced_survey, TARGET_COLUMN, test_size=0.25, random_state=42)


class TestSearchSpaceValidation:
    """Test configuration errors are caught at setup."""

    def test_valid_space_accepted(self):
        assert validate_search_space(SMALL_SPACE, n_features=20) is SMALL_SPACE

    def test_inverted_bounds_rejected(self):
        space = copy.deepcopy(SMALL_SPACE)
        space["n_estimators"] = {"min": 1500, "max": 300}

        with pytest.raises(ValueError, match="n_estimators"):
            validate_search_space(space)

    def test_missing_parameter_rejected(self):
        space = {key: value for key, value in SMALL_SPACE.items() if key != "num_leaves"}

        with pytest.raises(ValueError, match="missing"):
            validate_search_space(space)

    def test_mtry_above_feature_count_rejected(self):
        with pytest.raises(ValueError, match="mtry"):
            validate_search_space(SMALL_SPACE, n_features=4)

    def test_non_positive_learning_rate_rejected(self):
        space = copy.deepcopy(SMALL_SPACE)
        space["learning_rate"] = {"min": 0.0, "max": 0.1}

        with pytest.raises(ValueError, match="learning_rate"):
            validate_search_space(space)

    def test_log_scale_with_zero_lower_bound_rejected(self):
        space = copy.deepcopy(SMALL_SPACE)
        space["min_split_gain"] = {"min": 0.0, "max": 0.1, "log": True}

        with pytest.raises(ValueError, match="min_split_gain.*log scale"):
            validate_search_space(space, n_features=20)

    def test_log_scale_space_rejected_before_any_trial(self, partitions, monkeypatch):
        X_train, _, y_train, _ = partitions
        space = copy.deepcopy(SMALL_SPACE)
        space["min_split_gain"] = {"min": 0.0, "max": 0.1, "log": True}
        calls = []
        monkeypatch.setattr(train_module, "cross_validate", lambda *args, **kwargs: calls.append(1))

        with pytest.raises(ValueError, match="min_split_gain"):
            run_search(X_train, y_train, space, n_trials=3, cv_folds=3, n_jobs=1)
        assert calls == []

    def test_search_rejects_before_running(self, partitions):
        X_train, _, y_train, _ = partitions
        space = copy.deepcopy(SMALL_SPACE)
        space["max_depth"] = {"min": 6, "max": 2}

        with pytest.raises(ValueError, match="max_depth"):
            run_search(X_train, y_train, space, n_trials=1, cv_folds=3, n_jobs=1)


class RecordingTrial:
    """Stand-in for an optuna trial that returns lower bounds and records the call."""

    def __init__(self):
        self.calls = {}

    def suggest_int(self, name, low, high, log=False):
        self.calls[name] = ("int", log)
        return low

    def suggest_float(self, name, low, high, log=False):
        self.calls[name] = ("float", log)
        return low


class TestSuggestParams:
    """Test sampling within the declared bounds."""

    def test_log_scale_passed_to_integer_parameters(self):
        space = copy.deepcopy(SMALL_SPACE)
        space["n_estimators"] = {"min": 5, "max": 500, "log": True}
        trial = RecordingTrial()

        params = suggest_params(trial, space)

        assert trial.calls["n_estimators"] == ("int", True)
        assert trial.calls["max_depth"] == ("int", False)
        assert trial.calls["learning_rate"] == ("float", True)
        assert params["n_estimators"] == 5


class TestMetricChoice:
    """Test the closed set of selection metrics."""

    def test_default_is_accuracy(self):
        assert parse_metric(None) is Metric.ACCURACY
        assert DEFAULT_METRIC is Metric.ACCURACY

    def test_known_names(self):
        assert parse_metric("MCC") is Metric.MCC
        assert parse_metric("roc_auc") is Metric.ROC_AUC

    def test_unknown_name_rejected(self):
        with pytest.raises(ValueError, match="Unsupported metric"):
            parse_metric("f1")


class TestSummarizeCv:
    """Test fold aggregation."""

    def test_failed_folds_excluded(self):
        cv_results = {
            "test_accuracy": np.array([0.8, np.nan, 0.6]),
            "test_roc_auc": np.array([0.9, np.nan, 0.7]),
            "test_mcc": np.array([0.4, np.nan, 0.2]),
        }

        summary = summarize_cv(cv_results)

        assert summary["mean_accuracy"] == pytest.approx(0.7)
        assert summary["mean_mcc"] == pytest.approx(0.3)
        assert summary["n_failed_folds"] == 1

    def test_all_failed_is_null(self):
        cv_results = {f"test_{metric.value}": np.array([np.nan, np.nan]) for metric in Metric}

        summary = summarize_cv(cv_results)

        assert np.isnan(summary["mean_accuracy"])
        assert summary["n_failed_folds"] == 2


class TestSelectBest:
    """Test choosing the winning configuration."""

    def _trials(self):
        base = {name: bounds["min"] for name, bounds in SMALL_SPACE.items()}
        rows = [
            {"trial": 0, "state": "COMPLETE", **base, "n_estimators": 5,
             "mean_accuracy": 0.70, "mean_roc_auc": 0.80, "mean_mcc": 0.45},
            {"trial": 1, "state": "COMPLETE", **base, "n_estimators": 10,
             "mean_accuracy": 0.75, "mean_roc_auc": 0.78, "mean_mcc": 0.40},
            {"trial": 2, "state": "FAIL", **base, "n_estimators": 20,
             "mean_accuracy": np.nan, "mean_roc_auc": np.nan, "mean_mcc": np.nan},
        ]
        return pd.DataFrame(rows)

    def test_selects_by_nominated_metric(self):
        trials = self._trials()

        assert select_best(trials, Metric.ACCURACY)["n_estimators"] == 10
        assert select_best(trials, "mcc")["n_estimators"] == 5

    def test_integer_parameters_cast(self):
        params = select_best(self._trials())

        assert isinstance(params["n_estimators"], int)
        assert isinstance(params["learning_rate"], float)

    def test_no_scored_trial_raises(self):
        trials = self._trials().iloc[[2]]

        with pytest.raises(RuntimeError, match="No trial"):
            select_best(trials)


class TestRunSearch:
    """Test the random search end to end."""

    def test_parameters_within_bounds(self, partitions):
        X_train, _, y_train, _ = partitions

        trials = run_search(
            X_train, y_train, SMALL_SPACE, n_trials=3, cv_folds=3, random_state=0, n_jobs=1
        )

        assert len(trials) == 3
        for name, bounds in SMALL_SPACE.items():
            assert trials[name].between(bounds["min"], bounds["max"]).all()
        scored = trials[trials["state"] == "COMPLETE"]
        assert scored["mean_accuracy"].between(0, 1).all()
        assert scored["mean_mcc"].between(-1, 1).all()

        best = select_best(trials)
        for name, bounds in SMALL_SPACE.items():
            assert bounds["min"] <= best[name] <= bounds["max"]

    def test_same_seed_same_trials(self, partitions):
        X_train, _, y_train, _ = partitions

        first = run_search(X_train, y_train, SMALL_SPACE, n_trials=2, cv_folds=3, random_state=5, n_jobs=1)
        second = run_search(X_train, y_train, SMALL_SPACE, n_trials=2, cv_folds=3, random_state=5, n_jobs=1)

        pd.testing.assert_frame_equal(first, second)

    def test_interrupt_keeps_finished_trials(self, partitions, monkeypatch):
        X_train, _, y_train, _ = partitions
        calls = []

        def interrupt_on_second_trial(*args, **kwargs):
            calls.append(1)
            if len(calls) > 1:
                raise KeyboardInterrupt
            return {f"test_{metric.value}": np.array([0.7, 0.8, 0.75]) for metric in Metric}

        monkeypatch.setattr(train_module, "cross_validate", interrupt_on_second_trial)

        trials = run_search(
            X_train, y_train, SMALL_SPACE, n_trials=5, cv_folds=3, random_state=0, n_jobs=1
        )

        assert len(calls) == 2
        assert trials.loc[0, "state"] == "COMPLETE"
        assert trials.loc[0, "mean_accuracy"] == pytest.approx(0.75)
        assert (trials["state"] == "COMPLETE").sum() == 1

        best = select_best(trials)
        assert best["n_estimators"] == int(trials.loc[0, "n_estimators"])

    def test_too_many_folds_rejected(self, partitions):
        X_train, _, y_train, _ = partitions

        with pytest.raises(ValueError, match="folds"):
            run_search(X_train.head(20), y_train.head(20), SMALL_SPACE, n_trials=1, cv_folds=15)


class TestTrainTunedModel:
    """Test search, refit and evaluation together."""

    def test_end_to_end(self, partitions):
        X_train, X_test, y_train, y_test = partitions
        X_train, X_test = X_train.drop(columns="NoDocbcCost"), X_test.drop(columns="NoDocbcCost")
        tuning_config = {
            "engine": "gbdt",
            "metric": "accuracy",
            "n_trials": 2,
            "cv_folds": 3,
            "n_jobs": 1,
            "search_space": SMALL_SPACE,
        }

        outcome = train_tuned_model(X_train, X_test, y_train, y_test, tuning_config, random_state=0)
        report = outcome["report"]

        assert report["confusion_matrix"].values.sum() == len(X_test)
        assert list(report["confusion_matrix"].index) == CLASS_LABELS
        assert 0 <= report["accuracy"] <= 1
        assert -1 <= report["mcc"] <= 1
        assert set(outcome["model"].predict(X_test)) <= set(CLASS_LABELS)

        importance = outcome["importance"]
        assert "NoDocbcCost" not in importance["feature"].tolist()
        assert importance["gain"].is_monotonic_decreasing

    def test_mismatched_partitions_rejected(self, partitions):
        X_train, X_test, y_train, y_test = partitions

        with pytest.raises(ValueError, match="different predictors"):
            train_tuned_model(
                X_train, X_test.drop(columns="Sex"), y_train, y_test, {"search_space": SMALL_SPACE}
            )
