"""Tests for stage orchestration and the command-line entry point."""

import logging
from pathlib import Path

import pandas as pd
import pytest
import yaml

from diabetes_risk import workflow
from diabetes_risk.config.constants import COST_BARRIER_COLUMN, DEFAULT_CONFIG_PATH
from diabetes_risk.config.settings import load_config
from diabetes_risk.features.boruta import CONFIRMED, REJECTED

REPO_CONFIG = Path(__file__).resolve().parents[1] / DEFAULT_CONFIG_PATH

SMALL_SPACE = {
    "n_estimators": {"min": 5, "max": 20},
    "max_depth": {"min": 2, "max": 4},
    "num_leaves": {"min": 4, "max": 12},
    "learning_rate": {"min": 0.05, "max": 0.3, "log": True},
    "mtry": {"min": 2, "max": 6},
    "min_child_samples": {"min": 5, "max": 15},
    "min_split_gain": {"min": 0.0, "max": 0.1},
}


def fake_runners(calls, failing=None):
    """Stage runners that record their call and return the stage name."""

    def make(stage):
        def run(df, config, output_dir, results):
            calls.append((stage, sorted(results)))
            if stage == failing:
                raise RuntimeError(f"{stage} broke")
            return stage

        return run

    return {stage: make(stage) for stage in workflow.STAGES}


def tuned_config(drop_features=None):
    config = {
        "data": {"target_column": "Diabetes", "random_seed": 0, "test_size": 0.25},
        "boruta": {},
        "tuning": {
            "engine": "gbdt",
            "metric": "accuracy",
            "n_trials": 1,
            "cv_folds": 3,
            "n_jobs": 1,
            "search_space": SMALL_SPACE,
        },
        "mlflow": {"enabled": False},
    }
    if drop_features is not None:
        config["boruta"]["drop_features"] = drop_features
    return config


def boruta_warnings(caplog):
    return [record for record in caplog.records if record.name == "diabetes_risk.features.boruta"]


def boruta_stats(decisions):
    return pd.DataFrame({"decision": decisions}).rename_axis("feature")


class TestRunStages:
    """Test stage isolation."""

    def test_failing_stage_does_not_stop_later_stages(self, balanced_survey, tmp_path, monkeypatch):
        calls = []
        for stage, runner in fake_runners(calls, failing="scoring").items():
            monkeypatch.setitem(workflow.STAGE_RUNNERS, stage, runner)

        status = workflow.run_stages(balanced_survey, {}, tmp_path, workflow.STAGES)

        assert [stage for stage, _ in calls] == workflow.STAGES
        assert status["scoring"] == "failed: scoring broke"
        assert all(status[stage] == "success" for stage in workflow.STAGES if stage != "scoring")

    def test_later_stages_see_earlier_results(self, balanced_survey, tmp_path, monkeypatch):
        calls = []
        for stage, runner in fake_runners(calls, failing="baseline").items():
            monkeypatch.setitem(workflow.STAGE_RUNNERS, stage, runner)

        workflow.run_stages(balanced_survey, {}, tmp_path, ["scoring", "baseline", "boruta", "tuned"])

        assert dict(calls)["tuned"] == ["boruta", "scoring"]


class TestMain:
    """Test the command-line entry point."""

    @pytest.fixture
    def cli(self, raw_survey, tmp_path, monkeypatch):
        input_path = tmp_path / "survey.csv"
        raw_survey.to_csv(input_path, index=False)

        config = load_config(REPO_CONFIG)
        config["mlflow"]["enabled"] = False
        config_path = tmp_path / "config.yaml"
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)

        args = [
            "diabetes-risk",
            "--input", str(input_path),
            "--config", str(config_path),
            "--output-dir", str(tmp_path / "reports"),
        ]
        monkeypatch.setattr("sys.argv", args)

    def test_exit_status_nonzero_when_a_stage_fails(self, cli, monkeypatch):
        calls = []
        for stage, runner in fake_runners(calls, failing="projection").items():
            monkeypatch.setitem(workflow.STAGE_RUNNERS, stage, runner)

        assert workflow.main() == 1
        assert [stage for stage, _ in calls] == workflow.STAGES

    def test_exit_status_zero_when_all_stages_succeed(self, cli, monkeypatch):
        calls = []
        for stage, runner in fake_runners(calls).items():
            monkeypatch.setitem(workflow.STAGE_RUNNERS, stage, runner)

        assert workflow.main() == 0

    def test_missing_input_fails(self, cli, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "sys.argv",
            ["diabetes-risk", "--input", str(tmp_path / "absent.csv"), "--config", str(tmp_path / "config.yaml")],
        )

        assert workflow.main() == 1


class TestRunTuned:
    """Test the drop of configured predictors before the tuned model."""

    @pytest.fixture
    def logged_params(self, monkeypatch):
        logged = {}

        def capture(mlflow_config, params, report, extra_params=None):
            logged.update(extra_params or {})

        monkeypatch.setattr(workflow, "log_run", capture)
        return logged

    def test_warns_when_boruta_did_not_reject(self, balanced_survey, tmp_path, logged_params, caplog):
        results = {"boruta": boruta_stats({"NoDocbcCost": CONFIRMED, "HighBP": CONFIRMED})}

        with caplog.at_level(logging.WARNING, logger="diabetes_risk.features.boruta"):
            outcome = workflow.run_tuned(
                balanced_survey, tuned_config(["NoDocbcCost"]), tmp_path, results
            )

        assert any("NoDocbcCost" in record.message for record in boruta_warnings(caplog))
        assert "NoDocbcCost" not in outcome["importance"]["feature"].tolist()
        assert logged_params["dropped_boruta_decisions"] == f"NoDocbcCost={CONFIRMED}"

    def test_rejected_drop_is_silent(self, balanced_survey, tmp_path, logged_params, caplog):
        results = {"boruta": boruta_stats({"NoDocbcCost": REJECTED})}

        with caplog.at_level(logging.WARNING, logger="diabetes_risk.features.boruta"):
            workflow.run_tuned(balanced_survey, tuned_config(["NoDocbcCost"]), tmp_path, results)

        assert boruta_warnings(caplog) == []
        assert logged_params["dropped_boruta_decisions"] == f"NoDocbcCost={REJECTED}"

    def test_cost_barrier_dropped_by_default(self, balanced_survey, tmp_path, logged_params):
        outcome = workflow.run_tuned(balanced_survey, tuned_config(), tmp_path, {})

        assert logged_params["dropped_features"] == COST_BARRIER_COLUMN
        assert logged_params["dropped_boruta_decisions"] == ""
        assert COST_BARRIER_COLUMN not in outcome["importance"]["feature"].tolist()


class TestShippedConfig:
    """Test the repository configuration."""

    def test_power_transform_columns_come_from_constants(self):
        config = load_config(REPO_CONFIG)

        assert "numeric_columns" not in config["tuning"]
