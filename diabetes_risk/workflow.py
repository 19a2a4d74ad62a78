"""End-to-end BRFSS diabetes risk analysis.

Runs the analysis stages in order over one balanced dataset:

- ``eda``: summary statistics, correlations, proportion plots
- ``projection``: UMAP embedding of a stratified subsample
- ``scoring``: chi-squared ranking of predictors
- ``baseline``: logistic regression, odds ratios, ROC
- ``boruta``: all-relevant feature selection
- ``tuned``: cross-validated LightGBM search, refit and evaluation

Each stage reads the balanced table and writes its own reports; ``tuned``
also checks its dropped predictors against the ``boruta`` decisions when
that stage ran. A failing stage is logged and the others still run.
"""

import argparse
import logging
from pathlib import Path

import pandas as pd

from diabetes_risk.analysis.eda import (
    class_means,
    correlation_matrix,
    plot_correlation_heatmap,
    plot_distributions,
    plot_proportions,
    proportion_table,
    summary_statistics,
    top_correlated_pairs,
)
from diabetes_risk.analysis.projection import plot_projection, project_umap
from diabetes_risk.config.constants import COST_BARRIER_COLUMN, DEFAULT_CONFIG_PATH, POSITIVE_LABEL
from diabetes_risk.config.settings import load_config
from diabetes_risk.data.load import balance_classes, load_survey
from diabetes_risk.features.boruta import (
    boruta_select,
    check_drop_decisions,
    drop_predictors,
    rejected_features,
)
from diabetes_risk.features.scoring import chi_squared_scores
from diabetes_risk.models.baseline import run_baseline, split_dataset
from diabetes_risk.models.evaluate import (
    format_report,
    generate_confusion_matrix_plot,
    generate_importance_plot,
    generate_odds_ratio_plot,
    generate_roc_curve,
)
from diabetes_risk.models.train import log_run, train_tuned_model

logger = logging.getLogger(__name__)

STAGES = ["eda", "projection", "scoring", "baseline", "boruta", "tuned"]


def run_eda(df: pd.DataFrame, config: dict, output_dir: Path, results: dict):
    """Descriptive statistics, correlations and comparison plots."""
    target = config["data"]["target_column"]
    eda_config = config["eda"]

    summary = summary_statistics(df, target)
    summary.to_csv(output_dir / "summary_statistics.csv")
    print("\nSummary statistics:")
    print(summary.round(3).to_string())

    means = class_means(df, target)
    means.to_csv(output_dir / "class_means.csv")

    corr = correlation_matrix(df, method=eda_config["correlation_method"], target_column=target)
    corr.to_csv(output_dir / "correlation_matrix.csv")
    plot_correlation_heatmap(
        corr,
        output_dir / "correlation_heatmap.png",
        title=f"{eda_config['correlation_method'].title()} Correlation Matrix",
    )

    pairs = top_correlated_pairs(corr, k=eda_config["top_k_pairs"])
    pairs.to_csv(output_dir / "top_correlated_pairs.csv", index=False)
    print("\nStrongest correlated predictor pairs:")
    print(pairs.round(3).to_string(index=False))

    features = eda_config["proportion_features"]
    for feature in features:
        proportion_table(df, feature, target).to_csv(output_dir / f"proportions_{feature}.csv")
    plot_proportions(df, features, output_dir / "outcome_proportions.png", target_column=target)
    plot_distributions(
        df, eda_config["distribution_features"], output_dir / "distributions.png", target_column=target
    )


def run_projection(df: pd.DataFrame, config: dict, output_dir: Path, results: dict):
    """UMAP embedding of a stratified subsample."""
    target = config["data"]["target_column"]
    projection_config = config["projection"]

    projection = project_umap(
        df,
        n_per_class=projection_config["n_per_class"],
        n_neighbors=projection_config["n_neighbors"],
        min_dist=projection_config["min_dist"],
        target_column=target,
        random_state=config["data"]["random_seed"],
    )
    projection.to_csv(output_dir / "umap_projection.csv", index=False)
    plot_projection(projection, output_dir / "umap_projection.png", target_column=target)


def run_scoring(df: pd.DataFrame, config: dict, output_dir: Path, results: dict):
    """Chi-squared ranking of predictors."""
    scores = chi_squared_scores(df, config["data"]["target_column"])
    scores.to_csv(output_dir / "chi_squared_scores.csv", index=False)
    generate_importance_plot(
        scores, "score", output_dir / "chi_squared_scores.png", title="Chi-squared Scores"
    )

    print("\nChi-squared feature ranking:")
    print(scores.to_string(index=False))


def run_baseline_stage(df: pd.DataFrame, config: dict, output_dir: Path, results: dict):
    """Logistic regression on all predictors."""
    data_config = config["data"]
    baseline_config = config["baseline"]

    X_train, X_test, y_train, y_test = split_dataset(
        df,
        data_config["target_column"],
        test_size=data_config["test_size"],
        random_state=data_config["random_seed"],
    )

    result, odds_ratios, report, y_score = run_baseline(
        X_train,
        X_test,
        y_train,
        y_test,
        threshold=baseline_config["threshold"],
        alpha=baseline_config["alpha"],
        near_zero_share=baseline_config["near_zero_share"],
    )

    odds_ratios.to_csv(output_dir / "baseline_odds_ratios.csv")
    generate_odds_ratio_plot(odds_ratios, output_dir / "baseline_odds_ratios.png")
    generate_confusion_matrix_plot(
        report["confusion_matrix"],
        output_dir / "baseline_confusion_matrix.png",
        title="Logistic Regression Confusion Matrix",
    )
    generate_roc_curve(
        y_test, y_score, output_dir / "baseline_roc_curve.png", title="Logistic Regression ROC Curve"
    )

    print("\nLogistic regression odds ratios:")
    print(odds_ratios.round(4).to_string())
    print("\nLogistic regression test performance:")
    print(format_report(report))


def run_boruta(df: pd.DataFrame, config: dict, output_dir: Path, results: dict):
    """All-relevant feature selection."""
    target = config["data"]["target_column"]
    boruta_config = config["boruta"]

    stats = boruta_select(
        df.drop(columns=target),
        df[target].astype(object),
        max_rounds=boruta_config["max_rounds"],
        alpha=boruta_config["alpha"],
        n_estimators=boruta_config["n_estimators"],
        max_depth=boruta_config["max_depth"],
        random_state=config["data"]["random_seed"],
    )
    stats.to_csv(output_dir / "boruta_decisions.csv")

    print("\nBoruta decisions:")
    print(stats.round(4).to_string())

    rejected = rejected_features(stats)
    if rejected:
        logger.info(f"Boruta rejected: {rejected}")

    return stats


def run_tuned(df: pd.DataFrame, config: dict, output_dir: Path, results: dict):
    """Cross-validated LightGBM search, refit and evaluation.

    The predictors in ``boruta.drop_features`` are removed from both
    partitions first. When the boruta stage ran, its decisions for those
    predictors are checked and recorded with the run.
    """
    data_config = config["data"]
    target = data_config["target_column"]
    drop_features = config["boruta"].get("drop_features", [COST_BARRIER_COLUMN]) or []

    drop_decisions = {}
    boruta_stats = results.get("boruta")
    if boruta_stats is not None and drop_features:
        drop_decisions = check_drop_decisions(boruta_stats, drop_features)

    X_train, X_test, y_train, y_test = split_dataset(
        df,
        target,
        test_size=data_config["test_size"],
        random_state=data_config["random_seed"],
    )
    if drop_features:
        X_train, X_test = drop_predictors([X_train, X_test], drop_features)
        logger.info(f"Dropped {drop_features} from train and test partitions")

    outcome = train_tuned_model(
        X_train, X_test, y_train, y_test, config["tuning"], random_state=data_config["random_seed"]
    )
    report = outcome["report"]

    outcome["trials"].to_csv(output_dir / "tuning_trials.csv", index=False)
    outcome["importance"].to_csv(output_dir / "gain_importance.csv", index=False)
    generate_importance_plot(
        outcome["importance"], "gain", output_dir / "gain_importance.png", title="LightGBM Gain Importance"
    )
    generate_confusion_matrix_plot(
        report["confusion_matrix"],
        output_dir / "tuned_confusion_matrix.png",
        title="Tuned LightGBM Confusion Matrix",
    )
    model = outcome["model"]
    y_score = model.predict_proba(X_test)[:, list(model.classes_).index(POSITIVE_LABEL)]
    generate_roc_curve(y_test, y_score, output_dir / "tuned_roc_curve.png", title="Tuned LightGBM ROC Curve")

    log_run(
        config.get("mlflow"),
        outcome["best_params"],
        report,
        extra_params={
            "engine": outcome["engine"].value,
            "selection_metric": outcome["metric"].value,
            "dropped_features": ",".join(drop_features),
            "dropped_boruta_decisions": ",".join(
                f"{col}={decision or 'not assessed'}" for col, decision in drop_decisions.items()
            ),
        },
    )

    print(f"\nBest configuration by {outcome['metric'].value}: {outcome['best_params']}")
    print("\nTuned LightGBM test performance:")
    print(format_report(report))
    print("\nGain importance:")
    print(outcome["importance"].round(4).to_string(index=False))

    return outcome


STAGE_RUNNERS = {
    "eda": run_eda,
    "projection": run_projection,
    "scoring": run_scoring,
    "baseline": run_baseline_stage,
    "boruta": run_boruta,
    "tuned": run_tuned,
}


def run_stages(df: pd.DataFrame, config: dict, output_dir: Path, stages: list) -> dict:
    """Run the requested stages, isolating failures.

    Every runner receives the values returned by the stages that already
    succeeded, keyed by stage name.

    Returns:
        Mapping of stage name to "success" or the error message
    """
    status = {}
    results = {}
    for stage in stages:
        logger.info(f"Running stage: {stage}")
        try:
            results[stage] = STAGE_RUNNERS[stage](df, config, output_dir, results)
            status[stage] = "success"
        except Exception as e:
            logger.exception(f"Stage '{stage}' failed: {e}")
            status[stage] = f"failed: {e}"
    return status


def main():
    """CLI entry point for the analysis workflow."""
    parser = argparse.ArgumentParser(description="BRFSS diabetes risk analysis")
    parser.add_argument("--input", type=Path, help="Survey file (.csv or .xlsx), overrides config")
    parser.add_argument(
        "--config", type=Path, default=Path(DEFAULT_CONFIG_PATH), help="Config file path"
    )
    parser.add_argument("--output-dir", type=Path, default=Path("reports"))
    parser.add_argument(
        "--stages", nargs="+", choices=STAGES, default=STAGES, help="Stages to run, in order"
    )
    args = parser.parse_args()

    config = load_config(args.config)

    log_level = config.get("logging", {}).get("log_level", "INFO")
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    data_config = config["data"]
    input_path = args.input or Path(data_config["raw_path"])
    args.output_dir.mkdir(parents=True, exist_ok=True)

    try:
        survey = load_survey(
            input_path,
            source_column=data_config["source_target_column"],
            target_column=data_config["target_column"],
        )
        balanced = balance_classes(
            survey, data_config["target_column"], random_state=data_config["random_seed"]
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load survey data: {e}")
        return 1

    stages = [stage for stage in STAGES if stage in args.stages]
    status = run_stages(balanced, config, args.output_dir, stages)

    logger.info(f"{'=' * 60}")
    logger.info("ANALYSIS REPORT")
    logger.info(f"{'=' * 60}")
    for stage, outcome in status.items():
        logger.info(f"  {stage:12s} {outcome}")
    logger.info(f"Reports saved to: {args.output_dir}")

    return 0 if all(outcome == "success" for outcome in status.values()) else 1


if __name__ == "__main__":
    exit(main())
