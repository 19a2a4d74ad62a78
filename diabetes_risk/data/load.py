"""Loading, outcome recoding and class balancing of BRFSS survey records."""

import logging
from pathlib import Path

import pandas as pd

from diabetes_risk.config.constants import (
    CLASS_LABELS,
    DROPPED_OUTCOME_CODE,
    FEATURE_COLUMNS,
    OUTCOME_LABELS,
    SOURCE_TARGET_COLUMN,
    TARGET_COLUMN,
)
from diabetes_risk.data.validate_input import SurveyDataValidator

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = {".xlsx", ".xls"}


def read_table(path: Path) -> pd.DataFrame:
    """Read a CSV or Excel spreadsheet.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the suffix is not a supported spreadsheet format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Survey file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix in SPREADSHEET_SUFFIXES:
        return pd.read_excel(path)

    raise ValueError(f"Unsupported survey file format '{suffix}' for {path}")


def recode_outcome(
    df: pd.DataFrame,
    source_column: str = SOURCE_TARGET_COLUMN,
    target_column: str = TARGET_COLUMN,
) -> pd.DataFrame:
    """Drop the middle outcome code and recode the rest to No/Yes.

    Args:
        df: Records with a three-level outcome code {0, 1, 2}
        source_column: Column holding the coded outcome
        target_column: Name of the recoded categorical outcome

    Returns:
        Copy without code-1 rows, with ``target_column`` as a No/Yes category
        in place of ``source_column``

    Raises:
        ValueError: If the outcome holds codes other than 0, 1, 2
    """
    codes = df[source_column]
    unexpected = set(codes.dropna().unique()) - set(OUTCOME_LABELS) - {DROPPED_OUTCOME_CODE}
    if unexpected or codes.isnull().any():
        raise ValueError(
            f"Unexpected outcome codes in '{source_column}': "
            f"{sorted(unexpected) if unexpected else 'null values'}"
        )

    kept = df[codes != DROPPED_OUTCOME_CODE].copy()
    logger.info(
        f"Dropped {len(df) - len(kept)} records coded {DROPPED_OUTCOME_CODE} in '{source_column}'"
    )

    labels = kept[source_column].astype(int).map(OUTCOME_LABELS)
    kept = kept.drop(columns=source_column)
    kept[target_column] = pd.Categorical(labels, categories=CLASS_LABELS)

    return kept


def coerce_predictors(df: pd.DataFrame) -> pd.DataFrame:
    """Cast survey predictors to their declared dtypes (BMI float, the rest int)."""
    df = df.copy()
    for col in FEATURE_COLUMNS:
        if col not in df.columns:
            continue
        if col == "BMI":
            df[col] = df[col].astype(float)
        else:
            df[col] = df[col].astype(int)
    return df


def load_survey(
    path: Path,
    source_column: str = SOURCE_TARGET_COLUMN,
    target_column: str = TARGET_COLUMN,
) -> pd.DataFrame:
    """Load, validate and recode a BRFSS survey extract.

    Args:
        path: Path to the spreadsheet (.csv, .xlsx, .xls)
        source_column: Name of the three-level outcome code column
        target_column: Name for the recoded binary outcome

    Returns:
        Fully typed dataframe with the 21 predictors and a No/Yes outcome

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: If the file cannot be parsed or fails schema validation
    """
    df = read_table(path)
    logger.info(f"Loaded {len(df)} records with {df.shape[1]} columns from {path}")

    validator = SurveyDataValidator(target_column=source_column)
    is_valid, errors = validator.validate_schema(df)
    if not is_valid:
        shown = errors[:10]
        more = f" (+{len(errors) - len(shown)} more)" if len(errors) > len(shown) else ""
        raise ValueError(f"Survey file {path} failed validation: {shown}{more}")

    df = df[FEATURE_COLUMNS + [source_column]]
    df = recode_outcome(df, source_column=source_column, target_column=target_column)
    df = coerce_predictors(df)

    counts = df[target_column].value_counts()
    logger.info(f"Outcome counts after recoding: {counts.to_dict()}")

    return df.reset_index(drop=True)


def balance_classes(
    df: pd.DataFrame, target_column: str = TARGET_COLUMN, random_state: int = None
) -> pd.DataFrame:
    """Undersample every outcome category to the size of the smallest one.

    Args:
        df: Records with a categorical outcome
        target_column: Outcome column
        random_state: Seed for the sampling

    Returns:
        Balanced dataframe, categories concatenated in category order

    Raises:
        ValueError: If any outcome category has no records
    """
    outcome = df[target_column]
    if isinstance(outcome.dtype, pd.CategoricalDtype):
        categories = list(outcome.cat.categories)
    else:
        categories = sorted(outcome.dropna().unique())

    counts = outcome.value_counts().reindex(categories, fill_value=0)
    if len(counts) < 2:
        raise ValueError(
            f"Cannot balance '{target_column}': need at least two categories, got {categories}"
        )

    empty = counts[counts == 0].index.tolist()
    if empty:
        raise ValueError(f"Cannot balance '{target_column}': no records for categories {empty}")

    n_per_class = int(counts.min())
    samples = [
        df[outcome == category].sample(n=n_per_class, replace=False, random_state=random_state)
        for category in categories
    ]
    balanced = pd.concat(samples)

    logger.info(
        f"Balanced '{target_column}' to {n_per_class} records per category "
        f"({len(balanced)} total, from {len(df)})"
    )

    return balanced.reset_index(drop=True)
