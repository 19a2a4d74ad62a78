"""Baseline logistic regression with odds ratios."""

import logging

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.model_selection import train_test_split

from diabetes_risk.config.constants import CLASS_LABELS, POSITIVE_LABEL, TARGET_COLUMN
from diabetes_risk.models.evaluate import evaluate_predictions

logger = logging.getLogger(__name__)


def split_dataset(
    df: pd.DataFrame,
    target_column: str = TARGET_COLUMN,
    test_size: float = 0.25,
    random_state: int = None,
) -> tuple:
    """Stratified train/test split.

    Returns:
        Tuple of (X_train, X_test, y_train, y_test)
    """
    X = df.drop(columns=target_column)
    y = df[target_column]

    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=test_size, random_state=random_state, stratify=y
    )

    logger.info(f"Train size: {len(X_train)}, Test size: {len(X_test)}")
    logger.info(f"Train positive rate: {(y_train == POSITIVE_LABEL).mean():.3f}")
    logger.info(f"Test positive rate: {(y_test == POSITIVE_LABEL).mean():.3f}")

    return X_train, X_test, y_train, y_test


def near_zero_variance(X: pd.DataFrame, max_share: float = 0.95) -> list:
    """Predictors dominated by a single value.

    Returns:
        Names of predictors with zero variance or whose most frequent value
        covers more than ``max_share`` of the rows
    """
    flagged = []
    for col in X.columns:
        top_share = X[col].value_counts(normalize=True).iloc[0]
        if X[col].nunique() < 2 or top_share > max_share:
            flagged.append(col)
    return flagged


def encode_outcome(y: pd.Series) -> pd.Series:
    """1 for the positive label, 0 otherwise."""
    return (y == POSITIVE_LABEL).astype(int)


def fit_logistic(X: pd.DataFrame, y: pd.Series):
    """Fit an unregularized logistic regression with intercept.

    Returns:
        statsmodels results object
    """
    model = sm.Logit(encode_outcome(y), sm.add_constant(X, has_constant="add"))
    return model.fit(disp=0)


def wide_intervals(odds_ratios: pd.DataFrame, max_interval_ratio: float = 100) -> list:
    """Predictors whose odds ratio interval is unbounded or spans over ``max_interval_ratio``."""
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = odds_ratios["ci_upper"] / odds_ratios["ci_lower"]
    return odds_ratios.index[~np.isfinite(ratio) | (ratio > max_interval_ratio)].tolist()


def odds_ratio_table(
    result, alpha: float = 0.05, unstable=None, max_interval_ratio: float = 100
) -> pd.DataFrame:
    """Coefficients, odds ratios and confidence intervals per predictor.

    Args:
        result: Fitted statsmodels Logit results
        alpha: Significance level of the confidence interval
        unstable: Predictors to flag as numerically unstable
        max_interval_ratio: Rows with a wider (or unbounded) interval are
            flagged as unstable too

    Returns:
        DataFrame indexed by predictor (intercept excluded), ordered by
        odds ratio descending
    """
    conf_int = result.conf_int(alpha=alpha)

    with np.errstate(over="ignore"):
        table = pd.DataFrame(
            {
                "coef": result.params,
                "std_err": result.bse,
                "odds_ratio": np.exp(result.params),
                "ci_lower": np.exp(conf_int[0]),
                "ci_upper": np.exp(conf_int[1]),
                "p_value": result.pvalues,
            }
        ).drop(index="const")

    flagged = list(unstable or []) + wide_intervals(table, max_interval_ratio)
    table["unstable"] = table.index.isin(flagged)

    return table.sort_values("odds_ratio", ascending=False)


def predict_proba(result, X: pd.DataFrame) -> np.ndarray:
    """Probability of the positive outcome."""
    return np.asarray(result.predict(sm.add_constant(X, has_constant="add")))


def predict_labels(result, X: pd.DataFrame, threshold: float = 0.5) -> pd.Series:
    """No/Yes predictions at a probability threshold."""
    proba = predict_proba(result, X)
    labels = np.where(proba >= threshold, CLASS_LABELS[1], CLASS_LABELS[0])
    return pd.Series(pd.Categorical(labels, categories=CLASS_LABELS), index=X.index)


def run_baseline(
    X_train: pd.DataFrame,
    X_test: pd.DataFrame,
    y_train: pd.Series,
    y_test: pd.Series,
    threshold: float = 0.5,
    alpha: float = 0.05,
    near_zero_share: float = 0.95,
) -> tuple:
    """Fit the logistic baseline on all predictors and evaluate it.

    Predictors with near-zero variance or an unbounded / very wide odds ratio
    interval stay in the model but are flagged in the odds ratio table and
    logged, since their coefficients are unreliable. A fit that did not
    converge is logged as well.

    Returns:
        Tuple of (result, odds_ratios, evaluation_report, test_probabilities)
    """
    unstable = near_zero_variance(X_train, max_share=near_zero_share)
    for col in unstable:
        top_share = X_train[col].value_counts(normalize=True).iloc[0]
        logger.warning(
            f"'{col}' has near-zero variance ({top_share:.1%} of rows share one value); "
            "its coefficient and odds ratio are unstable"
        )

    result = fit_logistic(X_train, y_train)
    if not result.mle_retvals.get("converged", True):
        logger.warning(
            f"Logistic regression did not converge after {result.mle_retvals.get('iterations')} "
            "iterations; coefficients may reflect separated predictors"
        )

    odds_ratios = odds_ratio_table(result, alpha=alpha, unstable=unstable)

    for col in wide_intervals(odds_ratios):
        logger.warning(
            f"'{col}' has an odds ratio interval that is unbounded or spans over two orders of magnitude"
        )

    y_score = predict_proba(result, X_test)
    y_pred = predict_labels(result, X_test, threshold=threshold)
    report = evaluate_predictions(y_test, y_pred, y_score)

    logger.info(f"Baseline accuracy: {report['accuracy']:.4f}, AUC: {report['roc_auc']:.4f}")

    return result, odds_ratios, report, y_score
