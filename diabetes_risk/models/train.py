"""Cross-validated hyperparameter search and final fit of the LightGBM classifier."""

import logging

import mlflow
import numpy as np
import optuna
import pandas as pd
from sklearn.metrics import make_scorer, matthews_corrcoef
from sklearn.model_selection import StratifiedKFold, cross_validate

from diabetes_risk.config.constants import NUMERIC_COLUMNS
from diabetes_risk.config.settings import (
    INTEGER_PARAMETERS,
    SEARCH_PARAMETERS,
    Engine,
    Metric,
    parse_engine,
    parse_metric,
    validate_search_space,
)
from diabetes_risk.features.preprocess import build_model_pipeline
from diabetes_risk.models.evaluate import evaluate_classifier, gain_importance

logger = logging.getLogger(__name__)


def as_labels(y) -> pd.Series:
    """Outcome as plain No/Yes strings, the form LightGBM and sklearn scorers expect."""
    return pd.Series(y).astype(object)


SCORING = {
    Metric.ACCURACY.value: "accuracy",
    Metric.ROC_AUC.value: "roc_auc",
    Metric.MCC.value: make_scorer(matthews_corrcoef),
}


def suggest_params(trial, search_space: dict) -> dict:
    """Sample one configuration within the declared bounds."""
    params = {}
    for name in SEARCH_PARAMETERS:
        bounds = search_space[name]
        log = bounds.get("log", False)
        if name in INTEGER_PARAMETERS:
            params[name] = trial.suggest_int(name, int(bounds["min"]), int(bounds["max"]), log=log)
        else:
            params[name] = trial.suggest_float(name, bounds["min"], bounds["max"], log=log)
    return params


def summarize_cv(cv_results: dict) -> dict:
    """Mean score per metric over the folds that produced one.

    Folds that failed carry NaN and are left out of the mean; a metric with
    no scored fold is NaN.
    """
    summary = {}
    n_failed = 0
    for metric in SCORING:
        scores = np.asarray(cv_results[f"test_{metric}"], dtype=float)
        failed = np.isnan(scores)
        n_failed = max(n_failed, int(failed.sum()))
        summary[f"mean_{metric}"] = float("nan") if failed.all() else float(scores[~failed].mean())
        summary[f"std_{metric}"] = float("nan") if failed.all() else float(scores[~failed].std())
    summary["n_failed_folds"] = n_failed
    return summary


class CrossValidationObjective:
    """Optuna objective scoring one configuration with stratified k-fold CV."""

    def __init__(
        self,
        X,
        y,
        search_space,
        metric=Metric.ACCURACY,
        engine=Engine.GBDT,
        numeric_columns=None,
        cv_folds=10,
        random_state=None,
        n_jobs=-1,
    ):
        """Initialize objective.

        Args:
            X, y: Training partition
            search_space: Validated parameter bounds
            metric: Metric returned to the study
            engine: Boosting engine
            numeric_columns: Predictors to power-transform
            cv_folds: Number of folds
            random_state: Seed for fold assignment and boosters
            n_jobs: Folds fitted in parallel
        """
        self.X = X
        self.y = as_labels(y)
        self.search_space = search_space
        self.metric = parse_metric(metric)
        self.engine = parse_engine(engine)
        self.numeric_columns = numeric_columns
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.cv = StratifiedKFold(n_splits=cv_folds, shuffle=True, random_state=random_state)

    def __call__(self, trial):
        """Optuna objective function.

        Args:
            trial: Optuna trial

        Returns:
            Mean of the nominated metric, NaN if no fold produced a score
        """
        params = suggest_params(trial, self.search_space)

        pipeline = build_model_pipeline(
            params,
            self.X.columns,
            numeric_columns=self.numeric_columns,
            engine=self.engine,
            random_state=self.random_state,
            n_jobs=1,
        )

        cv_results = cross_validate(
            pipeline,
            self.X,
            self.y,
            cv=self.cv,
            scoring=SCORING,
            n_jobs=self.n_jobs,
            error_score=np.nan,
        )

        summary = summarize_cv(cv_results)
        for key, value in summary.items():
            trial.set_user_attr(key, value)

        if summary["n_failed_folds"]:
            logger.warning(f"Trial {trial.number}: {summary['n_failed_folds']} folds failed to score")

        return summary[f"mean_{self.metric.value}"]


def trials_table(study) -> pd.DataFrame:
    """One row per trial with its parameters, state and mean CV scores."""
    rows = []
    for trial in study.trials:
        row = {"trial": trial.number, "state": trial.state.name}
        row.update(trial.params)
        row.update(trial.user_attrs)
        rows.append(row)

    columns = ["trial", "state"] + SEARCH_PARAMETERS
    columns += [f"mean_{metric}" for metric in SCORING] + [f"std_{metric}" for metric in SCORING]
    columns += ["n_failed_folds"]

    return pd.DataFrame(rows).reindex(columns=columns)


def run_search(
    X,
    y,
    search_space: dict,
    n_trials: int = 20,
    cv_folds: int = 10,
    metric=Metric.ACCURACY,
    engine=Engine.GBDT,
    numeric_columns=None,
    random_state=None,
    n_jobs=-1,
    timeout=None,
) -> pd.DataFrame:
    """Random search over the bounded hyperparameter space.

    Invalid settings are rejected before the first trial. Trials whose
    folds all fail are recorded with a null score and the search goes on.
    An interrupt stops the search and keeps the finished trials.

    Returns:
        Trial table (see ``trials_table``)
    """
    metric = parse_metric(metric)
    engine = parse_engine(engine)
    validate_search_space(search_space, n_features=X.shape[1])

    if n_trials < 1:
        raise ValueError(f"n_trials must be at least 1, got {n_trials}")
    if cv_folds < 2:
        raise ValueError(f"cv_folds must be at least 2, got {cv_folds}")
    smallest_class = int(pd.Series(y).value_counts().min())
    if smallest_class < cv_folds:
        raise ValueError(
            f"Smallest outcome class has {smallest_class} records, fewer than {cv_folds} folds"
        )

    objective = CrossValidationObjective(
        X,
        y,
        search_space,
        metric=metric,
        engine=engine,
        numeric_columns=numeric_columns,
        cv_folds=cv_folds,
        random_state=random_state,
        n_jobs=n_jobs,
    )

    optuna.logging.set_verbosity(optuna.logging.WARNING)
    study = optuna.create_study(
        direction="maximize", sampler=optuna.samplers.RandomSampler(seed=random_state)
    )

    logger.info(f"Searching {n_trials} configurations with {cv_folds}-fold CV ({metric.value})")
    try:
        study.optimize(
            objective,
            n_trials=n_trials,
            timeout=timeout,
            catch=(ValueError, RuntimeError),
        )
    except KeyboardInterrupt:
        logger.warning(f"Search interrupted after {len(study.trials)} trials, keeping finished ones")

    trials = trials_table(study)
    n_complete = int((trials["state"] == "COMPLETE").sum())
    logger.info(f"Search finished: {n_complete}/{len(trials)} trials scored")

    return trials


def select_best(trials: pd.DataFrame, metric=Metric.ACCURACY) -> dict:
    """Parameters of the trial with the highest mean of ``metric``.

    Raises:
        RuntimeError: If no trial has a score for the metric
    """
    metric = parse_metric(metric)
    column = f"mean_{metric.value}"

    scored = trials[trials[column].notna()]
    if scored.empty:
        raise RuntimeError(f"No trial produced a {metric.value} score")

    best = scored.loc[scored[column].idxmax()]
    params = {}
    for name in SEARCH_PARAMETERS:
        value = best[name]
        params[name] = int(value) if name in INTEGER_PARAMETERS else float(value)

    logger.info(f"Best trial {int(best['trial'])}: {column}={best[column]:.4f} {params}")

    return params


def refit_final(
    params: dict,
    X_train,
    y_train,
    engine=Engine.GBDT,
    numeric_columns=None,
    random_state=None,
    n_jobs=-1,
):
    """Fit the pipeline with the chosen configuration on the full training partition."""
    pipeline = build_model_pipeline(
        params,
        X_train.columns,
        numeric_columns=numeric_columns,
        engine=engine,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    pipeline.fit(X_train, as_labels(y_train))
    return pipeline


def log_run(mlflow_config: dict, params: dict, report: dict, extra_params: dict = None):
    """Record parameters and test metrics of the tuned model in MLflow."""
    if not mlflow_config or not mlflow_config.get("enabled", False):
        return

    mlflow.set_tracking_uri(mlflow_config["tracking_uri"])
    mlflow.set_experiment(mlflow_config["experiment_name"])

    with mlflow.start_run():
        mlflow.log_params(params)
        if extra_params:
            mlflow.log_params(extra_params)
        mlflow.log_metrics(
            {
                "test_accuracy": report["accuracy"],
                "test_mcc": report["mcc"],
                "test_roc_auc": report["roc_auc"],
            }
        )
        logger.info(f"MLflow run ID: {mlflow.active_run().info.run_id}")


def train_tuned_model(X_train, X_test, y_train, y_test, tuning_config: dict, random_state=None):
    """Search, select, refit and evaluate the tuned classifier.

    Args:
        X_train, X_test, y_train, y_test: Stratified partitions with the same predictors
        tuning_config: ``tuning`` section of the analysis config
        random_state: Seed for folds, sampler and boosters

    Returns:
        Dictionary with trials, best_params, model, report and importance
    """
    if list(X_train.columns) != list(X_test.columns):
        raise ValueError("Train and test partitions have different predictors")

    engine = parse_engine(tuning_config.get("engine", Engine.GBDT.value))
    metric = parse_metric(tuning_config.get("metric"))
    numeric_columns = NUMERIC_COLUMNS
    n_jobs = tuning_config.get("n_jobs", -1)

    trials = run_search(
        X_train,
        y_train,
        tuning_config["search_space"],
        n_trials=tuning_config.get("n_trials", 20),
        cv_folds=tuning_config.get("cv_folds", 10),
        metric=metric,
        engine=engine,
        numeric_columns=numeric_columns,
        random_state=random_state,
        n_jobs=n_jobs,
        timeout=tuning_config.get("timeout_seconds"),
    )

    best_params = select_best(trials, metric)
    model = refit_final(
        best_params,
        X_train,
        y_train,
        engine=engine,
        numeric_columns=numeric_columns,
        random_state=random_state,
        n_jobs=n_jobs,
    )

    report = evaluate_classifier(model, X_test, y_test)
    importance = gain_importance(model)

    return {
        "trials": trials,
        "best_params": best_params,
        "metric": metric,
        "engine": engine,
        "model": model,
        "report": report,
        "importance": importance,
    }
