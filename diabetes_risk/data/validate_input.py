"""Input validation for BRFSS survey extracts."""

from typing import List, Tuple

import pandas as pd
import pandera as pa
from pandera import Column, DataFrameSchema

from diabetes_risk.config.constants import (
    BINARY_COLUMNS,
    FEATURE_COLUMNS,
    SOURCE_OUTCOME_CODES,
    SOURCE_TARGET_COLUMN,
    VALUE_RANGES,
)


class SurveyDataValidator:
    """Validates raw survey records before any processing."""

    REQUIRED_COLUMNS = FEATURE_COLUMNS

    def __init__(self, target_column: str = SOURCE_TARGET_COLUMN):
        """Initialize validator with schema.

        Args:
            target_column: Name of the three-level outcome code column
        """
        self.target_column = target_column

        columns = {
            col: Column(float, checks=[pa.Check.isin([0, 1])], nullable=False, coerce=True)
            for col in BINARY_COLUMNS
        }
        for col, (low, high) in VALUE_RANGES.items():
            columns[col] = Column(
                float, checks=[pa.Check.in_range(low, high)], nullable=False, coerce=True
            )
        columns[target_column] = Column(
            float, checks=[pa.Check.isin(SOURCE_OUTCOME_CODES)], nullable=False, coerce=True
        )

        self.schema = DataFrameSchema(columns, strict=False)

    def validate_schema(self, df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Validate dataframe against required columns and value ranges.

        Checks for:
        - Missing predictor or outcome columns
        - Null values
        - Flags outside {0, 1}, ordinal codes outside their range
        - Outcome codes outside {0, 1, 2}

        Args:
            df: Raw survey dataframe

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        required = self.REQUIRED_COLUMNS + [self.target_column]
        missing_cols = [col for col in required if col not in df.columns]
        if missing_cols:
            errors.append(f"Missing required columns: {missing_cols}")
            return False, errors

        try:
            self.schema.validate(df[required], lazy=True)
            return True, []
        except pa.errors.SchemaErrors as e:
            for _, row in e.failure_cases.iterrows():
                errors.append(
                    f"Column '{row['column']}' failed check '{row['check']}' "
                    f"at index {row['index']}"
                )
            return False, errors
