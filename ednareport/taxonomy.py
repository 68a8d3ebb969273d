"""Read and species counts per phylum, location and sample type."""

import logging

import pandas as pd

logger = logging.getLogger(__name__)


PHYLUM_KEY = ['phylum', 'locationID', 'eventType']


def summarize_phyla(df: pd.DataFrame, control_location: str = "Control") -> pd.DataFrame:
    """
    Aggregate reads and distinct species per (phylum, locationID, eventType).

    Control samples and records without a phylum or a locationID are
    excluded. Records without a sample type form their own eventType group.

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with derived columns
    control_location : str
        locationID of negative controls (default: "Control")

    Returns
    -------
    pd.DataFrame
        Columns: phylum, locationID, eventType, reads, species
    """
    keep = (
        df['locationID'].notna()
        & (df['locationID'] != control_location)
        & df['phylum'].notna()
    )
    subset = df.loc[keep]

    if subset.empty:
        return pd.DataFrame(columns=PHYLUM_KEY + ['reads', 'species'])

    stats = (
        subset
        .groupby(PHYLUM_KEY, dropna=False)
        .agg(
            reads=('organismQuantity', 'sum'),
            species=('species', 'nunique'),
        )
        .reset_index()
    )

    logger.info(f"  ✓ Aggregated {stats['phylum'].nunique()} phyla across {len(stats)} groups")
    return stats
