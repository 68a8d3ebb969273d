"""
Relative Abundance Tables

This module computes, for every taxon, the share of reads it contributes to
each sample type, and the species list used by the report tables.

Abundance is computed in two stages:
1. Reads are summed per (aphiaID, species, eventType); within each eventType
   every row is divided by the eventType's total reads and expressed as a
   percentage rounded to 3 decimals.
2. The long table is pivoted to one column per eventType. Rows sharing an
   aphiaID and eventType are summed with nulls ignored.

A taxon that was never observed in a sample type gets a null abundance in
that column, not 0. The report renders null and 0.000% differently, so the
wide table uses the nullable ``Float64`` dtype.

Example Usage:
    >>> from ednareport.abundance import abundance_table, species_list
    >>> wide = abundance_table(occurrences)
    >>> species = species_list(occurrences, abundance=wide)
"""

from typing import Optional
import logging

import pandas as pd

from .config import EVENT_TYPES

logger = logging.getLogger(__name__)


SPECIES_KEY = ['phylum', 'class', 'species', 'aphiaID']


def category_abundance(df: pd.DataFrame) -> pd.DataFrame:
    """
    Compute per-taxon read percentages within each sample type.

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with derived columns

    Returns
    -------
    pd.DataFrame
        Columns: aphiaID, species, eventType, reads, total_reads, abundance.
        Records without an eventType are excluded.
    """
    typed = df.loc[df['eventType'].notna()]
    columns = ['aphiaID', 'species', 'eventType', 'reads', 'total_reads', 'abundance']
    if typed.empty:
        return pd.DataFrame(columns=columns)

    long = (
        typed
        .groupby(['aphiaID', 'species', 'eventType'], dropna=False)
        .agg(reads=('organismQuantity', 'sum'))
        .reset_index()
    )
    long['total_reads'] = long.groupby('eventType')['reads'].transform('sum')
    long['abundance'] = (long['reads'] / long['total_reads'] * 100).round(3)

    return long[columns]


def abundance_table(
    df: pd.DataFrame,
    long: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Pivot category abundances to one nullable column per sample type.

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with derived columns
    long : pd.DataFrame, optional
        Output of category_abundance(df), if already computed

    Returns
    -------
    pd.DataFrame
        Columns: aphiaID, plankton, plate, water. One row per aphiaID.
        Abundance columns are Float64; <NA> means the taxon has no records
        of that sample type.
    """
    if long is None:
        long = category_abundance(df)

    if long.empty:
        wide = pd.DataFrame({'aphiaID': pd.Series(dtype=object)})
        for event_type in EVENT_TYPES:
            wide[event_type] = pd.Series(dtype='Float64')
        return wide

    summed = (
        long
        .groupby(['aphiaID', 'eventType'], dropna=False)['abundance']
        .sum(min_count=1)
        .reset_index()
    )

    wide = pd.DataFrame({'aphiaID': summed['aphiaID'].drop_duplicates().to_numpy()})
    for event_type in EVENT_TYPES:
        part = (
            summed.loc[summed['eventType'] == event_type, ['aphiaID', 'abundance']]
            .rename(columns={'abundance': event_type})
        )
        wide = wide.merge(part, on='aphiaID', how='left')
        wide[event_type] = wide[event_type].astype('Float64')

    unknown = set(long['eventType'].dropna()) - set(EVENT_TYPES)
    if unknown:
        logger.warning(f"  ⚠ Ignoring unknown sample types in abundance table: {sorted(unknown)}")

    return wide


def species_list(
    df: pd.DataFrame,
    abundance: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Build the species table with total reads and per-type abundances.

    Only records with both a species name and a sample type are counted.
    Rows are sorted by reads, descending; ties keep the grouping order
    (phylum, class, species, aphiaID).

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with derived columns
    abundance : pd.DataFrame, optional
        Output of abundance_table(df), if already computed

    Returns
    -------
    pd.DataFrame
        Columns: phylum, class, species, aphiaID, reads, plankton, plate, water
    """
    if abundance is None:
        abundance = abundance_table(df)

    subset = df.loc[df['species'].notna() & df['eventType'].notna()]
    if subset.empty:
        species = pd.DataFrame({col: pd.Series(dtype=object) for col in SPECIES_KEY})
        species['reads'] = pd.Series(dtype=float)
    else:
        species = (
            subset
            .groupby(SPECIES_KEY, dropna=False)
            .agg(reads=('organismQuantity', 'sum'))
            .reset_index()
        )
        species = species.sort_values(
            'reads', ascending=False, kind='mergesort'
        ).reset_index(drop=True)

    species = species.merge(
        abundance[['aphiaID'] + list(EVENT_TYPES)], on='aphiaID', how='left'
    )
    for event_type in EVENT_TYPES:
        species[event_type] = species[event_type].astype('Float64')

    logger.info(f"  ✓ Species list contains {len(species)} species")
    return species
