"""All-relevant feature selection against shadow features (Boruta)."""

import logging

import numpy as np
import pandas as pd
from scipy.stats import binom
from sklearn.ensemble import RandomForestClassifier

logger = logging.getLogger(__name__)

CONFIRMED = "Confirmed"
TENTATIVE = "Tentative"
REJECTED = "Rejected"


def make_shadow_features(X: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    """Copy every column and permute each copy independently."""
    shadow = pd.DataFrame(
        {f"shadow_{col}": rng.permutation(X[col].values) for col in X.columns},
        index=X.index,
    )
    return shadow


def _round_importances(X, y, rng, n_estimators, max_depth, n_jobs):
    shadow = make_shadow_features(X, rng)
    combined = pd.concat([X, shadow], axis=1)

    forest = RandomForestClassifier(
        n_estimators=n_estimators,
        max_depth=max_depth,
        random_state=int(rng.integers(0, 2**31 - 1)),
        n_jobs=n_jobs,
    )
    forest.fit(combined, y)

    importances = pd.Series(forest.feature_importances_, index=combined.columns)
    return importances[X.columns], importances[shadow.columns].max()


def _decide(hits, n_rounds, undecided, alpha):
    """Binomial tests of hit counts in both directions, Bonferroni-corrected."""
    corrected_alpha = alpha / max(len(undecided), 1)

    decisions = {}
    for feature in undecided:
        k = hits[feature]
        p_confirm = binom.sf(k - 1, n_rounds, 0.5)
        p_reject = binom.cdf(k, n_rounds, 0.5)
        if p_confirm < corrected_alpha:
            decisions[feature] = CONFIRMED
        elif p_reject < corrected_alpha:
            decisions[feature] = REJECTED

    return decisions


def boruta_select(
    X: pd.DataFrame,
    y: pd.Series,
    max_rounds: int = 11,
    alpha: float = 0.05,
    n_estimators: int = 200,
    max_depth: int = 7,
    random_state: int = None,
    n_jobs: int = -1,
) -> pd.DataFrame:
    """Classify every predictor as Confirmed, Tentative or Rejected.

    Each round fits a random forest on the real predictors plus freshly
    permuted shadow copies. A predictor scores a hit when its importance
    exceeds the best shadow importance. After each round, hit counts are
    tested against a fair coin; rejected predictors leave later rounds.

    Args:
        X: Predictors
        y: Outcome
        max_rounds: Upper bound on importance rounds
        alpha: Significance level before Bonferroni correction
        n_estimators: Trees per round
        max_depth: Tree depth per round
        random_state: Seed for shadow permutations and forests
        n_jobs: Worker count of each forest

    Returns:
        DataFrame indexed by predictor with mean/median/min/max importance,
        hits, norm_hits (hits per round the predictor took part in) and
        decision
    """
    if max_rounds < 1:
        raise ValueError(f"max_rounds must be at least 1, got {max_rounds}")

    rng = np.random.default_rng(random_state)

    history = {col: [] for col in X.columns}
    hits = {col: 0 for col in X.columns}
    rounds = {col: 0 for col in X.columns}
    decisions = {}

    for round_number in range(1, max_rounds + 1):
        active = [col for col in X.columns if decisions.get(col) != REJECTED]
        undecided = [col for col in active if col not in decisions]
        if not undecided:
            break

        importances, shadow_max = _round_importances(
            X[active], y, rng, n_estimators, max_depth, n_jobs
        )
        for col in active:
            history[col].append(importances[col])
            rounds[col] += 1
            if importances[col] > shadow_max:
                hits[col] += 1

        for feature, decision in _decide(hits, round_number, undecided, alpha).items():
            decisions[feature] = decision
            logger.info(f"Round {round_number}: {feature} {decision.lower()} ({hits[feature]} hits)")

    rows = []
    for col in X.columns:
        values = np.array(history[col])
        rows.append(
            {
                "feature": col,
                "mean_importance": values.mean(),
                "median_importance": np.median(values),
                "min_importance": values.min(),
                "max_importance": values.max(),
                "hits": hits[col],
                "norm_hits": hits[col] / rounds[col],
                "decision": decisions.get(col, TENTATIVE),
            }
        )

    stats = pd.DataFrame(rows).set_index("feature")
    summary = stats["decision"].value_counts().to_dict()
    logger.info(f"Boruta finished after {max(rounds.values())} rounds: {summary}")

    return stats.sort_values("mean_importance", ascending=False)


def selected_features(stats: pd.DataFrame, include_tentative: bool = False) -> list:
    """Predictors to keep after Boruta, in importance order."""
    keep = [CONFIRMED, TENTATIVE] if include_tentative else [CONFIRMED]
    return stats.index[stats["decision"].isin(keep)].tolist()


def rejected_features(stats: pd.DataFrame) -> list:
    """Predictors Boruta rejected."""
    return stats.index[stats["decision"] == REJECTED].tolist()


def drop_predictors(frames, columns: list) -> list:
    """Drop the same predictors from every partition.

    Args:
        frames: Iterable of DataFrames (e.g. train and test features)
        columns: Predictors to remove

    Returns:
        List of reduced copies, in input order

    Raises:
        KeyError: If any frame lacks one of the columns
    """
    frames = list(frames)
    for position, frame in enumerate(frames):
        missing = [col for col in columns if col not in frame.columns]
        if missing:
            raise KeyError(f"Frame {position} has no columns {missing}")

    return [frame.drop(columns=columns) for frame in frames]


def check_drop_decisions(stats: pd.DataFrame, columns: list) -> dict:
    """Boruta decision of each predictor chosen for removal.

    A warning is logged for every predictor Boruta did not reject, or did
    not assess at all; the caller still decides what is dropped.

    Returns:
        Mapping of predictor to its decision, None when it was not assessed
    """
    decisions = {}
    for col in columns:
        decision = stats["decision"].get(col)
        decisions[col] = decision
        if decision is None:
            logger.warning(f"Dropping '{col}', which Boruta did not assess")
        elif decision != REJECTED:
            logger.warning(f"Dropping '{col}' although Boruta marked it {decision}")
    return decisions
