"""Shared constants for the BRFSS diabetes risk analysis."""

# Predictor columns of the BRFSS 2015 diabetes health indicators extract
FEATURE_COLUMNS = [
    "HighBP",
    "HighChol",
    "CholCheck",
    "BMI",
    "Smoker",
    "Stroke",
    "HeartDiseaseorAttack",
    "PhysActivity",
    "Fruits",
    "Veggies",
    "HvyAlcoholConsump",
    "AnyHealthcare",
    "NoDocbcCost",
    "GenHlth",
    "MentHlth",
    "PhysHlth",
    "DiffWalk",
    "Sex",
    "Age",
    "Education",
    "Income",
]

# Ordinal / count predictors, everything else is a 0/1 flag
NUMERIC_COLUMNS = [
    "BMI",
    "GenHlth",
    "MentHlth",
    "PhysHlth",
    "Age",
    "Education",
    "Income",
]

BINARY_COLUMNS = [col for col in FEATURE_COLUMNS if col not in NUMERIC_COLUMNS]

# Inclusive value ranges used by the input schema
VALUE_RANGES = {
    "BMI": (1, 100),
    "GenHlth": (1, 5),
    "MentHlth": (0, 30),
    "PhysHlth": (0, 30),
    "Age": (1, 13),
    "Education": (1, 6),
    "Income": (1, 8),
}

# Outcome as coded in the source file: 0 = no diabetes, 1 = prediabetes, 2 = diabetes
SOURCE_TARGET_COLUMN = "Diabetes_012"
SOURCE_OUTCOME_CODES = [0, 1, 2]
DROPPED_OUTCOME_CODE = 1
OUTCOME_LABELS = {0: "No", 2: "Yes"}

# Outcome after recoding
TARGET_COLUMN = "Diabetes"
CLASS_LABELS = ["No", "Yes"]
POSITIVE_LABEL = "Yes"

# "Could not see a doctor because of cost"
COST_BARRIER_COLUMN = "NoDocbcCost"

DEFAULT_CONFIG_PATH = "configs/analysis_config.yaml"
