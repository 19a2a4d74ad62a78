"""Two-dimensional UMAP projection of a stratified survey subsample."""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
import umap
from sklearn.preprocessing import StandardScaler

from diabetes_risk.config.constants import TARGET_COLUMN

logger = logging.getLogger(__name__)


def stratified_subsample(
    df: pd.DataFrame,
    n_per_class: int,
    target_column: str = TARGET_COLUMN,
    random_state: int = None,
) -> pd.DataFrame:
    """Draw the same number of records from every outcome category.

    Raises:
        ValueError: If a category has fewer than ``n_per_class`` records
    """
    counts = df[target_column].value_counts()
    short = counts[counts < n_per_class]
    if not short.empty:
        raise ValueError(
            f"Cannot draw {n_per_class} records per class, available: {short.to_dict()}"
        )

    samples = [
        group.sample(n=n_per_class, replace=False, random_state=random_state)
        for _, group in df.groupby(target_column, observed=True)
    ]
    return pd.concat(samples).reset_index(drop=True)


def project_umap(
    df: pd.DataFrame,
    n_per_class: int = 1000,
    n_neighbors: int = 15,
    min_dist: float = 0.1,
    target_column: str = TARGET_COLUMN,
    random_state: int = None,
) -> pd.DataFrame:
    """Embed a stratified subsample in two dimensions.

    Features are standardized with statistics of the subsample only.

    Args:
        df: Survey records
        n_per_class: Records drawn per outcome category
        n_neighbors: UMAP neighbourhood size
        min_dist: UMAP minimum distance between embedded points
        target_column: Outcome column
        random_state: Seed for both the subsample and the embedding

    Returns:
        DataFrame with UMAP1, UMAP2 and the outcome of each sampled record
    """
    sample = stratified_subsample(
        df, n_per_class, target_column=target_column, random_state=random_state
    )
    features = sample.drop(columns=target_column)

    scaled = StandardScaler().fit_transform(features)

    reducer = umap.UMAP(
        n_components=2,
        n_neighbors=n_neighbors,
        min_dist=min_dist,
        metric="euclidean",
        random_state=random_state,
    )
    embedding = reducer.fit_transform(scaled)
    logger.info(f"Embedded {len(sample)} records with UMAP (n_neighbors={n_neighbors}, min_dist={min_dist})")

    return pd.DataFrame(
        {
            "UMAP1": embedding[:, 0],
            "UMAP2": embedding[:, 1],
            target_column: sample[target_column].values,
        }
    )


def plot_projection(
    projection: pd.DataFrame, output_path: Path, target_column: str = TARGET_COLUMN
) -> Path:
    """Save the embedding as a scatter plot coloured by outcome."""
    fig, ax = plt.subplots(figsize=(10, 8))
    sns.scatterplot(
        data=projection,
        x="UMAP1",
        y="UMAP2",
        hue=target_column,
        palette="coolwarm",
        s=12,
        alpha=0.6,
        edgecolor=None,
        ax=ax,
    )
    ax.set_title("UMAP Projection of Survey Responses", fontsize=14, fontweight="bold")
    ax.set_xlabel("UMAP Dimension 1")
    ax.set_ylabel("UMAP Dimension 2")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    return output_path
