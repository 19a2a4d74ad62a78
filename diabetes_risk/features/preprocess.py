"""Preprocessing and model pipelines for the tuned diabetes classifier."""

from lightgbm import LGBMClassifier
from sklearn.compose import ColumnTransformer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PowerTransformer

from diabetes_risk.config.constants import NUMERIC_COLUMNS
from diabetes_risk.config.settings import Engine, parse_engine


def create_preprocessing_pipeline(feature_columns, numeric_columns=None):
    """Create the skew-reducing preprocessor.

    A Yeo-Johnson power transform is fitted on the numeric predictors that
    are present in ``feature_columns``; flags pass through unchanged.

    Args:
        feature_columns: Predictors the pipeline will receive
        numeric_columns: Candidates for the power transform

    Returns:
        sklearn ColumnTransformer producing a pandas DataFrame
    """
    if numeric_columns is None:
        numeric_columns = NUMERIC_COLUMNS

    transformed = [col for col in feature_columns if col in numeric_columns]

    preprocessor = ColumnTransformer(
        [("power", PowerTransformer(method="yeo-johnson", standardize=True), transformed)],
        remainder="passthrough",
        verbose_feature_names_out=False,
    )
    preprocessor.set_output(transform="pandas")

    return preprocessor


def to_lightgbm_params(params: dict, n_features: int, engine=Engine.GBDT) -> dict:
    """Translate search parameters into LGBMClassifier arguments.

    ``mtry`` (predictors sampled per split) becomes ``feature_fraction_bynode``.
    """
    engine = parse_engine(engine)
    lgbm_params = {key: value for key, value in params.items() if key != "mtry"}

    if "mtry" in params:
        lgbm_params["feature_fraction_bynode"] = min(1.0, params["mtry"] / n_features)

    lgbm_params["boosting_type"] = engine.value
    lgbm_params.setdefault("verbose", -1)

    return lgbm_params


def build_model_pipeline(
    params: dict,
    feature_columns,
    numeric_columns=None,
    engine=Engine.GBDT,
    random_state=None,
    n_jobs=1,
):
    """Create the preprocessing + LightGBM pipeline for one configuration.

    Args:
        params: Hyperparameters (search names, ``mtry`` included)
        feature_columns: Predictors in training order
        numeric_columns: Predictors to power-transform
        engine: Boosting engine
        random_state: Seed of the booster
        n_jobs: Threads used by LightGBM

    Returns:
        Unfitted sklearn Pipeline
    """
    feature_columns = list(feature_columns)
    lgbm_params = to_lightgbm_params(params, len(feature_columns), engine)

    pipeline = Pipeline(
        [
            ("preprocessor", create_preprocessing_pipeline(feature_columns, numeric_columns)),
            ("model", LGBMClassifier(random_state=random_state, n_jobs=n_jobs, **lgbm_params)),
        ]
    )

    return pipeline


def get_feature_names(pipeline):
    """Extract feature names as seen by the fitted booster."""
    return list(pipeline.named_steps["preprocessor"].get_feature_names_out())
