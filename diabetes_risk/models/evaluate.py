"""Held-out evaluation, feature importance and report plots."""

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import (
    accuracy_score,
    auc,
    confusion_matrix,
    matthews_corrcoef,
    roc_auc_score,
    roc_curve,
)

from diabetes_risk.config.constants import CLASS_LABELS, POSITIVE_LABEL


def evaluate_predictions(y_true, y_pred, y_score) -> dict:
    """Evaluation report for one model on one held-out partition.

    Args:
        y_true: True No/Yes labels
        y_pred: Predicted No/Yes labels
        y_score: Predicted probability of Yes

    Returns:
        Dictionary with accuracy, mcc, roc_auc, confusion_matrix
        (rows actual, columns predicted) and n_test
    """
    y_true = np.asarray(y_true, dtype=object)
    y_pred = np.asarray(y_pred, dtype=object)

    cm = pd.DataFrame(
        confusion_matrix(y_true, y_pred, labels=CLASS_LABELS),
        index=pd.Index(CLASS_LABELS, name="actual"),
        columns=pd.Index(CLASS_LABELS, name="predicted"),
    )

    return {
        "accuracy": accuracy_score(y_true, y_pred),
        "mcc": matthews_corrcoef(y_true, y_pred),
        "roc_auc": roc_auc_score(y_true == POSITIVE_LABEL, y_score),
        "confusion_matrix": cm,
        "n_test": len(y_true),
    }


def evaluate_classifier(model, X, y) -> dict:
    """Evaluate a fitted sklearn classifier on a held-out partition."""
    classes = list(model.classes_)
    y_score = model.predict_proba(X)[:, classes.index(POSITIVE_LABEL)]
    y_pred = model.predict(X)
    return evaluate_predictions(y, y_pred, y_score)


def gain_importance(pipeline) -> pd.DataFrame:
    """Total split gain per predictor of a fitted LightGBM pipeline.

    Returns:
        DataFrame with feature, gain and gain_share, gain descending
    """
    booster = pipeline.named_steps["model"].booster_
    gains = booster.feature_importance(importance_type="gain")

    importance = pd.DataFrame({"feature": booster.feature_name(), "gain": gains})
    total = importance["gain"].sum()
    importance["gain_share"] = importance["gain"] / total if total > 0 else 0.0

    return importance.sort_values(
        ["gain", "feature"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)


def format_report(report: dict) -> str:
    """Plain-text rendering of an evaluation report."""
    lines = [
        f"  accuracy: {report['accuracy']:.4f}",
        f"  mcc: {report['mcc']:.4f}",
        f"  roc_auc: {report['roc_auc']:.4f}",
        f"  n_test: {report['n_test']}",
        "  confusion matrix:",
    ]
    lines.extend("    " + line for line in report["confusion_matrix"].to_string().splitlines())
    return "\n".join(lines)


def generate_confusion_matrix_plot(cm: pd.DataFrame, output_path: Path, title: str = None) -> Path:
    """Save a confusion matrix heatmap."""
    fig, ax = plt.subplots(figsize=(8, 6))
    sns.heatmap(cm, annot=True, fmt="d", cmap="Blues", ax=ax)

    ax.set_title(title or "Confusion Matrix", fontsize=14, fontweight="bold")
    ax.set_xlabel("Predicted", fontsize=12)
    ax.set_ylabel("Actual", fontsize=12)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path


def generate_roc_curve(y_true, y_score, output_path: Path, title: str = None) -> Path:
    """Save a ROC curve."""
    fpr, tpr, _ = roc_curve(np.asarray(y_true, dtype=object) == POSITIVE_LABEL, y_score)
    roc_auc = auc(fpr, tpr)

    fig, ax = plt.subplots(figsize=(8, 7))
    ax.plot(fpr, tpr, linewidth=2, label=f"ROC Curve (AUC = {roc_auc:.3f})")
    ax.plot([0, 1], [0, 1], "k--", linewidth=1, label="Random Classifier")

    ax.set_xlabel("False Positive Rate", fontsize=12)
    ax.set_ylabel("True Positive Rate", fontsize=12)
    ax.set_title(title or "ROC Curve", fontsize=14, fontweight="bold")
    ax.legend(loc="lower right", fontsize=10)
    ax.grid(alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path


def generate_importance_plot(
    scores: pd.DataFrame, value_column: str, output_path: Path, title: str = None
) -> Path:
    """Save a horizontal bar chart of a ranked feature score table."""
    ordered = scores.sort_values(value_column, ascending=True)

    fig, ax = plt.subplots(figsize=(10, max(4, 0.35 * len(ordered))))
    ax.barh(ordered["feature"], ordered[value_column], color="steelblue", edgecolor="black")
    ax.set_xlabel(value_column)
    ax.set_title(title or f"Feature {value_column}", fontsize=14, fontweight="bold")
    ax.grid(axis="x", alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path


def generate_odds_ratio_plot(odds_ratios: pd.DataFrame, output_path: Path) -> Path:
    """Save a forest plot of odds ratios with confidence intervals."""
    ordered = odds_ratios.sort_values("odds_ratio")
    positions = np.arange(len(ordered))

    fig, ax = plt.subplots(figsize=(10, max(4, 0.35 * len(ordered))))
    ax.errorbar(
        ordered["odds_ratio"],
        positions,
        xerr=[
            ordered["odds_ratio"] - ordered["ci_lower"],
            ordered["ci_upper"] - ordered["odds_ratio"],
        ],
        fmt="o",
        color="black",
        ecolor="gray",
        capsize=3,
    )
    ax.axvline(x=1.0, color="red", linestyle="--", alpha=0.7)
    ax.set_yticks(positions)
    ax.set_yticklabels(ordered.index)
    ax.set_xscale("log")
    ax.set_xlabel("Odds Ratio (log scale)")
    ax.set_title("Logistic Regression Odds Ratios", fontsize=14, fontweight="bold")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path
