"""Chi-squared association between each predictor and the outcome."""

import logging

import pandas as pd
from scipy.stats import chi2_contingency

from diabetes_risk.config.constants import TARGET_COLUMN

logger = logging.getLogger(__name__)


def chi_squared_score(feature: pd.Series, outcome: pd.Series) -> dict:
    """Chi-squared statistic of one predictor against the outcome.

    A contingency table with fewer than two levels on either axis has no
    defined statistic; it scores 0.0 with p-value 1.0.
    """
    table = pd.crosstab(feature, outcome)
    table = table.loc[table.sum(axis=1) > 0, table.sum(axis=0) > 0]
    if table.shape[0] < 2 or table.shape[1] < 2:
        logger.warning(
            f"'{feature.name}' has a degenerate {table.shape[0]}x{table.shape[1]} "
            "contingency table, scoring 0"
        )
        return {"score": 0.0, "p_value": 1.0, "dof": 0}

    statistic, p_value, dof, _ = chi2_contingency(table, correction=False)
    return {"score": float(statistic), "p_value": float(p_value), "dof": int(dof)}


def chi_squared_scores(
    df: pd.DataFrame, target_column: str = TARGET_COLUMN, features: list = None
) -> pd.DataFrame:
    """Rank predictors by chi-squared statistic against the outcome.

    Args:
        df: Survey records
        target_column: Outcome column
        features: Predictors to score, all non-outcome columns by default

    Returns:
        DataFrame with feature, score, p_value, dof sorted by score
        descending (ties by feature name)
    """
    features = features or [col for col in df.columns if col != target_column]

    rows = []
    for feature in features:
        result = chi_squared_score(df[feature], df[target_column])
        rows.append({"feature": feature, **result})

    scores = pd.DataFrame(rows, columns=["feature", "score", "p_value", "dof"])
    scores = scores.sort_values(
        ["score", "feature"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)

    return scores
