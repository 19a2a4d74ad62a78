"""Shared fixtures: synthetic BRFSS-shaped survey records."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from diabetes_risk.config.constants import (
    BINARY_COLUMNS,
    FEATURE_COLUMNS,
    SOURCE_TARGET_COLUMN,
    TARGET_COLUMN,
    VALUE_RANGES,
)
from diabetes_risk.data.load import coerce_predictors, recode_outcome


def make_raw_survey(n_rows=600, seed=0):
    """Survey records with a three-level outcome driven by a few predictors."""
    rng = np.random.default_rng(seed)

    data = {}
    for col in BINARY_COLUMNS:
        data[col] = rng.integers(0, 2, n_rows)
    data["CholCheck"] = (rng.random(n_rows) < 0.97).astype(int)
    for col, (low, high) in VALUE_RANGES.items():
        if col == "BMI":
            data[col] = np.clip(rng.normal(28, 6, n_rows).round(), 12, 90)
        else:
            data[col] = rng.integers(low, high + 1, n_rows)

    logit = (
        -1.0
        + 1.2 * data["HighBP"]
        + 0.6 * data["HighChol"]
        + 0.08 * (data["BMI"] - 28)
        + 0.6 * (data["GenHlth"] - 3)
        + 0.15 * (data["Age"] - 7)
    )
    p_diabetes = 1 / (1 + np.exp(-logit))
    draws = rng.random(n_rows)
    outcome = np.where(draws < p_diabetes, 2, 0)
    outcome[rng.random(n_rows) < 0.05] = 1

    df = pd.DataFrame(data)[FEATURE_COLUMNS]
    df[SOURCE_TARGET_COLUMN] = outcome
    return df


@pytest.fixture
def raw_survey():
    return make_raw_survey()


@pytest.fixture
def survey(raw_survey):
    """Recoded survey with a No/Yes outcome (unbalanced)."""
    return coerce_predictors(recode_outcome(raw_survey)).reset_index(drop=True)


@pytest.fixture
def balanced_survey(survey):
    """Survey with exactly 150 records per outcome category."""
    parts = [
        survey[survey[TARGET_COLUMN] == label].sample(n=150, random_state=1)
        for label in ["No", "Yes"]
    ]
    return pd.concat(parts).reset_index(drop=True)


@pytest.fixture
def toy_survey():
    """Five records coded {0, 0, 2, 2, 2} with a single predictor."""
    return pd.DataFrame({"x": [1, 0, 1, 0, 1], SOURCE_TARGET_COLUMN: [0, 0, 2, 2, 2]})
