"""Analysis configuration loading and validation."""

from enum import Enum
from pathlib import Path

import yaml


class Engine(Enum):
    """Boosting engines supported by the tuned classifier."""

    GBDT = "gbdt"
    DART = "dart"


class Metric(Enum):
    """Cross-validation metrics a configuration can be selected by."""

    ACCURACY = "accuracy"
    ROC_AUC = "roc_auc"
    MCC = "mcc"


# Selection metric used when the config does not name one. Accuracy is kept
# even though MCC is computed for every configuration.
DEFAULT_METRIC = Metric.ACCURACY

# Hyperparameters every search space has to bound
SEARCH_PARAMETERS = [
    "n_estimators",
    "max_depth",
    "num_leaves",
    "learning_rate",
    "mtry",
    "min_child_samples",
    "min_split_gain",
]

INTEGER_PARAMETERS = {
    "n_estimators",
    "max_depth",
    "num_leaves",
    "mtry",
    "min_child_samples",
}


def load_config(config_path: Path) -> dict:
    """Load analysis configuration."""
    with open(config_path, "r") as f:
        return yaml.safe_load(f)


def parse_engine(name) -> Engine:
    """Resolve an engine name from config into an ``Engine``."""
    if isinstance(name, Engine):
        return name
    try:
        return Engine(str(name).lower())
    except ValueError:
        choices = [engine.value for engine in Engine]
        raise ValueError(f"Unsupported engine '{name}', expected one of {choices}") from None


def parse_metric(name) -> Metric:
    """Resolve a metric name from config into a ``Metric``.

    ``None`` resolves to ``DEFAULT_METRIC``.
    """
    if name is None:
        return DEFAULT_METRIC
    if isinstance(name, Metric):
        return name
    try:
        return Metric(str(name).lower())
    except ValueError:
        choices = [metric.value for metric in Metric]
        raise ValueError(f"Unsupported metric '{name}', expected one of {choices}") from None


def validate_search_space(search_space: dict, n_features: int = None) -> dict:
    """Check hyperparameter bounds before any search starts.

    Args:
        search_space: Mapping of parameter name to ``{"min", "max", "log"}``
        n_features: Number of predictors, bounds ``mtry`` when given

    Returns:
        The validated search space

    Raises:
        ValueError: If a parameter is missing or its range is invalid
    """
    errors = []

    missing = [name for name in SEARCH_PARAMETERS if name not in search_space]
    if missing:
        raise ValueError(f"Search space is missing parameters: {missing}")

    for name in SEARCH_PARAMETERS:
        bounds = search_space[name]
        if "min" not in bounds or "max" not in bounds:
            errors.append(f"'{name}' needs both 'min' and 'max'")
            continue

        low, high = bounds["min"], bounds["max"]
        if low > high:
            errors.append(f"'{name}' lower bound {low} is above upper bound {high}")
        if name in INTEGER_PARAMETERS and (int(low) != low or int(high) != high):
            errors.append(f"'{name}' bounds must be integers, got [{low}, {high}]")
        if name == "learning_rate" and low <= 0:
            errors.append(f"'learning_rate' must be positive, got {low}")
        if name == "min_split_gain" and low < 0:
            errors.append(f"'min_split_gain' must be non-negative, got {low}")
        if name in INTEGER_PARAMETERS and low < 1:
            errors.append(f"'{name}' must be at least 1, got {low}")
        if name == "num_leaves" and low < 2:
            errors.append(f"'num_leaves' must be at least 2, got {low}")
        if bounds.get("log", False) and low <= 0:
            errors.append(f"'{name}' uses a log scale and needs a positive lower bound, got {low}")
        if name == "mtry" and n_features is not None and high > n_features:
            errors.append(f"'mtry' upper bound {high} exceeds the {n_features} predictors")

    if errors:
        raise ValueError("Invalid search space: " + "; ".join(errors))

    return search_space
