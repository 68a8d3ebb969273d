"""
Occurrence and DNA Extension Table Loading

This module reads the two tab-separated tables produced by the upstream
bioinformatics pipeline and derives the fields every downstream summary
relies on.

Key Responsibilities:
1. Parse the occurrence table, validating the required columns:
   - eventID: encodes the sample category marker and a YYYYMMDD date stamp
   - materialSampleID, locationID: sample and site identifiers
   - scientificName, scientificNameID, taxonRank, phylum, class: taxonomy
   - organismQuantity: read count (non-negative)
   - decimalLongitude, decimalLatitude: optional coordinates

2. Derive columns at load time:
   - species: scientificName when taxonRank == "species"
   - eventDate: date parsed from the first _<digits>_ run of eventID
   - aphiaID: first run of digits in scientificNameID
   - eventType: plankton (_P), plate (_S) or water (_W)

3. Parse the DNA derived-data extension table, which is passed through to
   the report unchanged.

Loading is all-or-nothing per file: a missing file, a row whose field count
differs from the header, a missing required column or a non-numeric value
in a numeric column raises. The derivation helpers never raise; they return
None when their pattern does not match.

Example Usage:
    >>> from ednareport.loader import load_occurrences, classify_event_type
    >>> df = load_occurrences("occurrence.tsv")
    >>> classify_event_type("FJI_20220601_P_01")
    'plankton'
"""

from typing import List, Optional, Union
from pathlib import Path
from datetime import date, datetime
import csv
import logging
import re

import numpy as np
import pandas as pd

from . import utils

logger = logging.getLogger(__name__)


OCCURRENCE_COLUMNS = [
    'eventID',
    'materialSampleID',
    'locationID',
    'scientificName',
    'scientificNameID',
    'taxonRank',
    'phylum',
    'class',
    'organismQuantity',
    'decimalLongitude',
    'decimalLatitude',
]

DNA_COLUMNS = ['occurrenceID']

# Checked in order; the first marker found in eventID wins.
EVENT_TYPE_PATTERNS = [
    ('_P', 'plankton'),
    ('_S', 'plate'),
    ('_W', 'water'),
]

_DATE_STAMP = re.compile(r'_(\d+)_')
_DIGITS = re.compile(r'\d+')


# ============================================================================
# Derivation Helpers
# ============================================================================

def parse_event_date(event_id: Optional[str]) -> Optional[date]:
    """
    Parse the YYYYMMDD date stamp embedded in an eventID.

    Only the first run of digits surrounded by underscores is considered.

    Examples
    --------
    >>> parse_event_date("FJI_20220601_P_01")
    datetime.date(2022, 6, 1)
    >>> parse_event_date("FJI_P_01") is None
    True
    """
    if not isinstance(event_id, str):
        return None
    match = _DATE_STAMP.search(event_id)
    if match is None:
        return None
    stamp = match.group(1)
    if len(stamp) != 8:
        return None
    try:
        return datetime.strptime(stamp, '%Y%m%d').date()
    except ValueError:
        return None


def extract_aphia_id(scientific_name_id: Optional[str]) -> Optional[str]:
    """
    Extract the taxon identifier from a scientificNameID.

    Examples
    --------
    >>> extract_aphia_id("urn:lsid:marinespecies.org:taxname:123456")
    '123456'
    """
    if not isinstance(scientific_name_id, str):
        return None
    match = _DIGITS.search(scientific_name_id)
    return match.group(0) if match else None


def classify_event_type(event_id: Optional[str]) -> Optional[str]:
    """Return plankton, plate or water from the marker in eventID, or None."""
    if not isinstance(event_id, str):
        return None
    for marker, event_type in EVENT_TYPE_PATTERNS:
        if marker in event_id:
            return event_type
    return None


def derive_species(scientific_name: Optional[str], taxon_rank: Optional[str]) -> Optional[str]:
    """Return scientific_name for species-rank records, else None."""
    if taxon_rank == 'species' and isinstance(scientific_name, str):
        return scientific_name
    return None


def _as_nullable(series: pd.Series) -> pd.Series:
    """Use NaN as the single missing marker in an object column."""
    series = series.astype(object)
    return series.where(series.notna(), np.nan)


def derive_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add species, eventDate, aphiaID and eventType columns.

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with the columns in OCCURRENCE_COLUMNS

    Returns
    -------
    pd.DataFrame
        Copy of df with the derived columns
    """
    out = df.copy()

    out['species'] = _as_nullable(out['scientificName'].where(out['taxonRank'] == 'species'))
    out['eventDate'] = pd.to_datetime(out['eventID'].map(parse_event_date))
    out['aphiaID'] = _as_nullable(out['scientificNameID'].map(extract_aphia_id))
    out['eventType'] = _as_nullable(out['eventID'].map(classify_event_type))

    n_no_date = int(out['eventDate'].isna().sum())
    if n_no_date:
        logger.warning(f"  ⚠ {n_no_date} records have no parseable date in eventID")

    n_no_type = int(out['eventType'].isna().sum())
    if n_no_type:
        examples = out.loc[out['eventType'].isna(), 'eventID'].dropna().unique()[:5].tolist()
        logger.warning(
            f"  ⚠ {n_no_type} records have no sample type marker in eventID "
            f"(examples: {examples}); they are excluded from per-type summaries"
        )

    return out


# ============================================================================
# Table Parsing
# ============================================================================

def _read_tsv(
    tsv_path: Union[str, Path],
    required_columns: List[str],
    label: str,
    encoding: str = 'utf-8',
) -> pd.DataFrame:
    """Read a tab-separated table where only the empty string means null."""
    path = Path(tsv_path)

    if not path.exists():
        raise FileNotFoundError(f"{label} table not found: {path}")

    logger.info(f"Reading {label} table: {path}")

    header = utils.validate_tsv_structure(path, encoding=encoding)
    validate_required_columns(header, required_columns, label)

    df = pd.read_csv(
        path,
        sep='\t',
        encoding=encoding,
        dtype=str,
        keep_default_na=False,
        na_values=[''],
        quoting=csv.QUOTE_NONE,
        low_memory=False,
    )

    # Clean up whitespace in string columns
    for col in df.columns:
        stripped = df[col].str.strip()
        df[col] = stripped.where(stripped != '', np.nan)

    logger.info(f"Read {len(df)} rows and {len(df.columns)} columns")
    return df


def validate_required_columns(
    columns: List[str],
    required_columns: List[str],
    label: str = "Input",
) -> bool:
    """
    Validate that a header contains the required columns.

    Raises
    ------
    ValueError
        If any required columns are missing
    """
    missing_columns = [col for col in required_columns if col not in columns]

    if missing_columns:
        logger.error(
            f"Missing required columns: {missing_columns}\n"
            f"Available columns: {sorted(columns)[:20]}..."
        )
        raise ValueError(
            f"{label} table is missing required columns: {missing_columns}. "
            f"Found {len(columns)} columns total."
        )

    logger.debug(f"All required columns present: {required_columns}")
    return True


def _coerce_numeric(
    df: pd.DataFrame,
    column: str,
    path: Path,
    required: bool = False,
) -> pd.Series:
    """Convert a string column to float, raising on unparseable values."""
    values = pd.to_numeric(df[column], errors='coerce')
    bad = values.isna() & df[column].notna()
    if bad.any():
        examples = df.loc[bad, column].head(5).tolist()
        raise ValueError(
            f"Column '{column}' in {path} has {int(bad.sum())} non-numeric values "
            f"(examples: {examples})"
        )
    if required and values.isna().any():
        raise ValueError(
            f"Column '{column}' in {path} has {int(values.isna().sum())} empty values"
        )
    return values.astype(float)


def read_occurrence_table(
    tsv_path: Union[str, Path],
    encoding: str = 'utf-8',
) -> pd.DataFrame:
    """
    Parse the occurrence table and convert numeric columns.

    Parameters
    ----------
    tsv_path : Union[str, Path]
        Path to the occurrence TSV
    encoding : str
        File encoding (default: 'utf-8')

    Returns
    -------
    pd.DataFrame
        Occurrence records; string columns hold NaN for empty fields

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    ValueError
        If a row is malformed, a required column is missing, or a numeric
        column holds non-numeric or negative read counts
    pd.errors.EmptyDataError
        If the table has no records
    """
    path = Path(tsv_path)
    df = _read_tsv(path, OCCURRENCE_COLUMNS, "Occurrence", encoding=encoding)

    if df.empty:
        raise pd.errors.EmptyDataError(f"Occurrence table has no records: {path}")

    df['organismQuantity'] = _coerce_numeric(df, 'organismQuantity', path, required=True)
    df['decimalLongitude'] = _coerce_numeric(df, 'decimalLongitude', path)
    df['decimalLatitude'] = _coerce_numeric(df, 'decimalLatitude', path)

    negative = df['organismQuantity'] < 0
    if negative.any():
        raise ValueError(
            f"Column 'organismQuantity' in {path} has {int(negative.sum())} negative read counts"
        )

    return df


def load_occurrences(
    tsv_path: Union[str, Path],
    encoding: str = 'utf-8',
) -> pd.DataFrame:
    """Read the occurrence table and add the derived columns."""
    df = derive_columns(read_occurrence_table(tsv_path, encoding=encoding))
    _log_data_quality(df)
    return df


def load_dna_extension(
    tsv_path: Union[str, Path],
    encoding: str = 'utf-8',
) -> pd.DataFrame:
    """
    Parse the DNA derived-data extension table.

    All columns are kept as strings; the table is only summarised in the
    report.
    """
    df = _read_tsv(tsv_path, DNA_COLUMNS, "DNA extension", encoding=encoding)
    if df.empty:
        logger.warning(f"  ⚠ DNA extension table has no records: {tsv_path}")
    return df


def _log_data_quality(df: pd.DataFrame) -> None:
    """Log data quality statistics for the occurrence table."""
    stats = {
        'total_records': len(df),
        'samples': df['materialSampleID'].nunique(),
        'locations': df['locationID'].nunique(),
        'species_records': int(df['species'].notna().sum()),
        'records_without_coordinates': int(
            df[['decimalLongitude', 'decimalLatitude']].isna().any(axis=1).sum()
        ),
        'total_reads': float(df['organismQuantity'].sum()),
    }

    logger.info("Data quality summary:")
    for key, value in stats.items():
        logger.info(f"  {key}: {value}")
