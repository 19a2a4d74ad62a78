"""Descriptive statistics, correlations and comparison plots for the balanced survey."""

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from diabetes_risk.config.constants import TARGET_COLUMN

CORRELATION_METHODS = ("pearson", "spearman", "kendall")


def _predictors(df: pd.DataFrame, target_column: str) -> list:
    return [col for col in df.columns if col != target_column]


def summary_statistics(df: pd.DataFrame, target_column: str = TARGET_COLUMN) -> pd.DataFrame:
    """Describe every predictor, with skewness and kurtosis.

    Args:
        df: Survey records
        target_column: Outcome column, excluded from the summary

    Returns:
        One row per predictor
    """
    predictors = df[_predictors(df, target_column)]

    summary = predictors.describe().T
    summary["skewness"] = predictors.skew()
    summary["kurtosis"] = predictors.kurtosis()

    return summary


def class_means(df: pd.DataFrame, target_column: str = TARGET_COLUMN) -> pd.DataFrame:
    """Mean of every predictor within each outcome category."""
    means = df.groupby(target_column, observed=False)[_predictors(df, target_column)].mean().T
    means.columns = [str(col) for col in means.columns]
    if len(means.columns) == 2:
        first, second = means.columns
        means["difference"] = means[second] - means[first]
    return means


def correlation_matrix(
    df: pd.DataFrame,
    method: str = "spearman",
    columns: list = None,
    target_column: str = TARGET_COLUMN,
) -> pd.DataFrame:
    """Pairwise association between predictors.

    Args:
        df: Survey records
        method: One of pearson, spearman (rank-based, default), kendall
        columns: Predictors to include, all non-outcome columns by default
        target_column: Outcome column, never included

    Returns:
        Square correlation matrix
    """
    if method not in CORRELATION_METHODS:
        raise ValueError(f"Unsupported correlation method '{method}', expected one of {CORRELATION_METHODS}")

    columns = columns or _predictors(df, target_column)
    return df[columns].corr(method=method)


def top_correlated_pairs(corr: pd.DataFrame, k: int = 10) -> pd.DataFrame:
    """Strongest predictor pairs by absolute correlation, self pairs excluded.

    Args:
        corr: Square correlation matrix
        k: Number of pairs to return

    Returns:
        DataFrame with feature_a, feature_b, correlation (signed) and
        abs_correlation, ordered by abs_correlation descending
    """
    mask = np.triu(np.ones(corr.shape, dtype=bool), k=1)
    pairs = corr.where(mask).stack().dropna().reset_index()
    pairs.columns = ["feature_a", "feature_b", "correlation"]
    pairs["abs_correlation"] = pairs["correlation"].abs()

    pairs = pairs.sort_values(
        ["abs_correlation", "feature_a", "feature_b"],
        ascending=[False, True, True],
        kind="mergesort",
    )

    return pairs.head(k).reset_index(drop=True)


def proportion_table(
    df: pd.DataFrame, feature: str, target_column: str = TARGET_COLUMN
) -> pd.DataFrame:
    """Share of each outcome category within each level of a predictor.

    Rows are predictor levels, columns outcome categories; every row sums to 1.
    """
    return pd.crosstab(df[feature], df[target_column], normalize="index")


def plot_correlation_heatmap(corr: pd.DataFrame, output_path: Path, title: str = None) -> Path:
    """Save an annotated correlation heatmap."""
    fig, ax = plt.subplots(figsize=(14, 12))
    sns.heatmap(
        corr,
        annot=True,
        fmt=".2f",
        cmap="coolwarm",
        center=0,
        square=True,
        linewidths=0.5,
        annot_kws={"size": 7},
        vmin=-1,
        vmax=1,
        ax=ax,
    )
    ax.set_title(title or "Predictor Correlation Matrix", fontsize=14, fontweight="bold")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path


def plot_proportions(
    df: pd.DataFrame, features: list, output_path: Path, target_column: str = TARGET_COLUMN
) -> Path:
    """Save stacked bar charts of outcome shares per predictor level."""
    n_cols = 2
    n_rows = int(np.ceil(len(features) / n_cols))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(14, 4.5 * n_rows), squeeze=False)
    axes = axes.flatten()

    for ax, feature in zip(axes, features):
        table = proportion_table(df, feature, target_column)
        table.plot(kind="bar", stacked=True, ax=ax, colormap="coolwarm", edgecolor="black")
        ax.set_xlabel(feature)
        ax.set_ylabel("Proportion")
        ax.set_title(f"{target_column} by {feature}")
        ax.legend(title=target_column, loc="upper right")

    for ax in axes[len(features):]:
        ax.axis("off")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path


def plot_distributions(
    df: pd.DataFrame, features: list, output_path: Path, target_column: str = TARGET_COLUMN
) -> Path:
    """Save per-outcome histograms of continuous predictors."""
    fig, axes = plt.subplots(1, len(features), figsize=(6 * len(features), 5), squeeze=False)

    for ax, feature in zip(axes[0], features):
        sns.histplot(
            data=df,
            x=feature,
            hue=target_column,
            stat="density",
            common_norm=False,
            element="step",
            ax=ax,
        )
        ax.set_title(f"{feature} by {target_column}")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path
