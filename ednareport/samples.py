"""
Per-sample summaries for the sample map and sample table.

Each sample is one unique combination of location, event, material sample,
sample type, coordinates and date. Records without coordinates cannot be
placed on the map and are dropped before grouping.
"""

import logging

import pandas as pd

logger = logging.getLogger(__name__)


SAMPLE_KEY = [
    'locationID',
    'eventID',
    'materialSampleID',
    'eventType',
    'decimalLongitude',
    'decimalLatitude',
    'eventDate',
]

SAMPLE_ORDER = ['locationID', 'eventDate', 'eventType', 'materialSampleID']


def summarize_samples(df: pd.DataFrame) -> pd.DataFrame:
    """
    Summarize occurrence records per sample.

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with derived columns (see loader.derive_columns)

    Returns
    -------
    pd.DataFrame
        One row per sample with the SAMPLE_KEY columns plus:
        - asvs: number of occurrence records
        - reads: sum of organismQuantity
        - species: number of distinct non-null species names
        Sorted by locationID, eventDate, eventType, materialSampleID with
        nulls last.
    """
    has_coords = df['decimalLongitude'].notna() & df['decimalLatitude'].notna()
    n_dropped = int((~has_coords).sum())
    if n_dropped:
        logger.warning(f"  ⚠ Dropped {n_dropped} records without coordinates from the sample summary")

    located = df.loc[has_coords]
    if located.empty:
        return pd.DataFrame(columns=SAMPLE_KEY + ['asvs', 'reads', 'species'])

    summary = (
        located
        .groupby(SAMPLE_KEY, dropna=False, sort=False)
        .agg(
            asvs=('organismQuantity', 'size'),
            reads=('organismQuantity', 'sum'),
            species=('species', 'nunique'),
        )
        .reset_index()
    )

    summary = summary.sort_values(
        SAMPLE_ORDER, na_position='last', kind='mergesort'
    ).reset_index(drop=True)

    logger.info(f"  ✓ Summarized {len(summary)} samples")
    return summary
