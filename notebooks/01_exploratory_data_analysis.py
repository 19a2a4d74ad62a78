"""Exploratory Data Analysis for the BRFSS 2015 Diabetes Health Indicators.

This marimo notebook walks through the analysis stages interactively:
- Loading, recoding and balancing the survey
- Descriptive statistics and rank correlations
- Outcome proportions across key predictors
- UMAP projection of a stratified subsample
- Chi-squared feature ranking and the logistic regression baseline
"""

import marimo

__generated_with = "0.17.7"
app = marimo.App()


@app.cell
def _():
    import marimo as mo
    import matplotlib.pyplot as plt
    import seaborn as sns
    from pathlib import Path

    from diabetes_risk.analysis.eda import (
        class_means,
        correlation_matrix,
        proportion_table,
        summary_statistics,
        top_correlated_pairs,
    )
    from diabetes_risk.analysis.projection import project_umap
    from diabetes_risk.config.settings import load_config
    from diabetes_risk.data.load import balance_classes, load_survey
    from diabetes_risk.features.scoring import chi_squared_scores
    from diabetes_risk.models.baseline import run_baseline, split_dataset

    # Set plotting style
    plt.style.use('seaborn-v0_8-darkgrid')
    sns.set_palette("husl")

    mo.md(
        """
        # Exploratory Data Analysis: BRFSS 2015 Diabetes Health Indicators

        **Objective**: Understand which self-reported health indicators separate
        respondents with diabetes from those without, before tuning a gradient
        boosted classifier.

        **Dataset**: CDC Behavioral Risk Factor Surveillance System 2015
        (21 predictors, outcome coded 0 = no diabetes, 1 = prediabetes, 2 = diabetes)
        """
    )
    return (
        Path,
        balance_classes,
        chi_squared_scores,
        class_means,
        correlation_matrix,
        load_config,
        load_survey,
        mo,
        plt,
        project_umap,
        proportion_table,
        run_baseline,
        sns,
        split_dataset,
        summary_statistics,
        top_correlated_pairs,
    )


@app.cell
def _(Path, balance_classes, load_config, load_survey):
    # Load data - use robust path resolution
    project_dir = Path(__file__).parent.parent
    config = load_config(project_dir / "configs" / "analysis_config.yaml")
    data_config = config["data"]
    seed = data_config["random_seed"]
    target = data_config["target_column"]

    survey = load_survey(project_dir / data_config["raw_path"])
    df = balance_classes(survey, target, random_state=seed)

    n_raw = len(survey)
    n_balanced = len(df)
    raw_counts = survey[target].value_counts()
    return config, df, n_balanced, n_raw, raw_counts, seed, target


@app.cell
def _(mo, n_balanced, n_raw, raw_counts):
    mo.md(f"""
    ## 1. Dataset Overview

    **Respondents after dropping prediabetes**: {n_raw:,}
    **No diabetes**: {raw_counts['No']:,} ({raw_counts['No'] / n_raw:.1%})
    **Diabetes**: {raw_counts['Yes']:,} ({raw_counts['Yes'] / n_raw:.1%})

    The majority class is undersampled to the minority count, leaving
    **{n_balanced:,}** respondents with a 50/50 outcome split.

    ### Predictor Groups

    | Group | Predictors |
    |-------|-----------|
    | Cardiovascular | HighBP, HighChol, CholCheck, Stroke, HeartDiseaseorAttack |
    | Lifestyle | Smoker, PhysActivity, Fruits, Veggies, HvyAlcoholConsump |
    | Access to care | AnyHealthcare, NoDocbcCost |
    | Self-rated health | GenHlth (1-5), MentHlth (days), PhysHlth (days), DiffWalk |
    | Demographics | Sex, Age (1-13), Education (1-6), Income (1-8) |
    | Anthropometry | BMI |
    """)
    return


@app.cell
def _(df, summary_statistics, target):
    summary = summary_statistics(df, target)
    summary.round(2)
    return (summary,)


@app.cell
def _(mo, summary):
    _skewed = summary["skewness"].abs().sort_values(ascending=False).head(3)
    mo.md(f"""
    **Most skewed predictors**: {", ".join(f"{name} ({value:.2f})" for name, value in _skewed.items())}

    Skewed counts such as MentHlth and PhysHlth motivate the Yeo-Johnson
    power transform in the tuned model pipeline.
    """)
    return


@app.cell
def _(class_means, df, target):
    means = class_means(df, target).sort_values("difference", ascending=False)
    means.round(3)
    return


@app.cell
def _(mo):
    mo.md("""
    ## 2. Rank Correlations Between Predictors
    """)
    return


@app.cell
def _(config, correlation_matrix, df, plt, sns, target):
    corr_matrix = correlation_matrix(
        df, method=config["eda"]["correlation_method"], target_column=target
    )

    _fig, _ax = plt.subplots(figsize=(14, 12))
    sns.heatmap(corr_matrix, annot=True, fmt='.2f', cmap='coolwarm',
                center=0, square=True, linewidths=0.5, ax=_ax,
                annot_kws={"size": 7}, vmin=-1, vmax=1)
    _ax.set_title('Spearman Correlation Matrix', fontsize=14, fontweight='bold')
    plt.tight_layout()
    _fig
    return (corr_matrix,)


@app.cell
def _(config, corr_matrix, top_correlated_pairs):
    pairs = top_correlated_pairs(corr_matrix, k=config["eda"]["top_k_pairs"])
    pairs.round(3)
    return (pairs,)


@app.cell
def _(mo, pairs):
    _top = pairs.iloc[0]
    mo.md(f"""
    **Findings**:
    - **Strongest pair**: {_top['feature_a']} / {_top['feature_b']} (rho = {_top['correlation']:.3f})
    - Self-rated general, physical and mental health move together, as do
      education and income
    """)
    return


@app.cell
def _(mo):
    mo.md("""
    ## 3. Outcome Proportions by Predictor Level
    """)
    return


@app.cell
def _(config, df, plt, proportion_table, target):
    _features = config["eda"]["proportion_features"]
    _fig, _axes = plt.subplots(3, 2, figsize=(14, 14))
    _axes = _axes.flatten()

    for _ax, _feature in zip(_axes, _features):
        _table = proportion_table(df, _feature, target)
        _table.plot(kind='bar', stacked=True, ax=_ax, colormap='coolwarm', edgecolor='black')
        _ax.set_ylabel('Proportion')
        _ax.set_title(f'Diabetes by {_feature}')
        _ax.axhline(y=0.5, color='black', linestyle='--', alpha=0.5)

    for _ax in _axes[len(_features):]:
        _ax.axis('off')

    plt.tight_layout()
    _fig
    return


@app.cell
def _(mo):
    mo.md("""
    **Observations**:
    - The share of diabetes rises steadily with age bracket and with worse
      self-rated general health
    - Lower income and education brackets carry a higher diabetes share
    - High blood pressure and high cholesterol flags split the outcome sharply
    """)
    return


@app.cell
def _(mo):
    mo.md("""
    ## 4. UMAP Projection
    """)
    return


@app.cell
def _(config, df, plt, project_umap, seed, sns, target):
    _projection_config = config["projection"]
    projection = project_umap(
        df,
        n_per_class=_projection_config["n_per_class"],
        n_neighbors=_projection_config["n_neighbors"],
        min_dist=_projection_config["min_dist"],
        target_column=target,
        random_state=seed,
    )

    _fig, _ax = plt.subplots(figsize=(10, 8))
    sns.scatterplot(data=projection, x='UMAP1', y='UMAP2', hue=target,
                    palette='coolwarm', s=12, alpha=0.6, edgecolor=None, ax=_ax)
    _ax.set_title('UMAP Projection of Survey Responses', fontsize=14, fontweight='bold')
    plt.tight_layout()
    _fig
    return


@app.cell
def _(mo):
    mo.md("""
    The two outcome groups overlap heavily in the embedding: no single
    neighbourhood structure separates them, so a supervised model is needed.

    ## 5. Chi-squared Feature Ranking
    """)
    return


@app.cell
def _(chi_squared_scores, df, target):
    chi_scores = chi_squared_scores(df, target)
    chi_scores
    return


@app.cell
def _(mo):
    mo.md("""
    ## 6. Logistic Regression Baseline
    """)
    return


@app.cell
def _(config, df, run_baseline, seed, split_dataset, target):
    X_train, X_test, y_train, y_test = split_dataset(
        df, target, test_size=config["data"]["test_size"], random_state=seed
    )
    _result, odds_ratios, baseline_report, _y_score = run_baseline(
        X_train,
        X_test,
        y_train,
        y_test,
        threshold=config["baseline"]["threshold"],
        alpha=config["baseline"]["alpha"],
        near_zero_share=config["baseline"]["near_zero_share"],
    )
    odds_ratios.round(3)
    return baseline_report, odds_ratios


@app.cell
def _(baseline_report, mo, odds_ratios):
    _unstable = odds_ratios.index[odds_ratios["unstable"]].tolist()
    mo.md(f"""
    **Baseline test performance**: accuracy {baseline_report['accuracy']:.3f},
    AUC {baseline_report['roc_auc']:.3f}, MCC {baseline_report['mcc']:.3f}

    **Near-zero-variance predictors**: {", ".join(_unstable) or "none"}.
    Their odds ratios are inflated and their intervals wide; CholCheck is the
    usual offender since almost every respondent had a cholesterol check.
    """)
    return


@app.cell
def _(baseline_report):
    baseline_report["confusion_matrix"]
    return


if __name__ == "__main__":
    app.run()
