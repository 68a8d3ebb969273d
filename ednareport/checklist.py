"""
Introduced Species Checklist

Loads a checklist of taxon identifiers for species recorded as introduced
(non-native) and filters the species list down to the taxa it contains.

The checklist source is either a local file or an http(s) URL and may be:
- a plain list with one identifier per line (LSIDs and URLs are reduced to
  their numeric identifier), or
- a tab- or comma-separated table with an identifier column (aphiaID,
  AphiaID, taxonID or acceptedNameUsageID by default)

An unavailable checklist never aborts a report build: load_checklist()
returns an empty, degraded ChecklistResult and the introduced-species
section of the report states why it is empty.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, Optional
from urllib.request import Request, urlopen
import io
import logging
import re

import pandas as pd

from .loader import extract_aphia_id

logger = logging.getLogger(__name__)


DEFAULT_ID_COLUMNS = ("aphiaID", "AphiaID", "taxonID", "acceptedNameUsageID")


@dataclass(frozen=True)
class ChecklistResult:
    """Identifiers loaded from a checklist, or the reason none were."""
    ids: FrozenSet[str]
    source: Optional[str] = None
    degraded: bool = False
    reason: Optional[str] = None


def _read_source(source: str, timeout: float) -> str:
    """Return the checklist text from a URL or a local path."""
    if re.match(r'^https?://', source, flags=re.IGNORECASE):
        logger.info(f"Downloading checklist from {source}")
        request = Request(source, headers={'User-Agent': 'ednareport'})
        with urlopen(request, timeout=timeout) as response:
            return response.read().decode('utf-8')

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Checklist file not found: {path}")
    logger.info(f"Reading checklist from {path}")
    return path.read_text(encoding='utf-8')


def parse_checklist(
    text: str,
    id_columns: Iterable[str] = DEFAULT_ID_COLUMNS,
) -> FrozenSet[str]:
    """
    Parse checklist text into a set of numeric taxon identifiers.

    Raises
    ------
    ValueError
        If the text is a delimited table without an identifier column
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return frozenset()

    header = lines[0]
    delimiter = '\t' if '\t' in header else (',' if ',' in header else None)

    if delimiter is not None:
        table = pd.read_csv(io.StringIO(text), sep=delimiter, dtype=str, keep_default_na=False)
        id_columns = list(id_columns)
        column = next((col for col in id_columns if col in table.columns), None)
        if column is None:
            raise ValueError(
                f"Checklist table has no identifier column; expected one of {id_columns}, "
                f"found {list(table.columns)[:10]}"
            )
        values = table[column].tolist()
    else:
        values = lines

    ids = {extract_aphia_id(value.strip()) for value in values}
    ids.discard(None)
    return frozenset(ids)


def load_checklist(
    source: Optional[str],
    timeout: float = 30.0,
    id_columns: Iterable[str] = DEFAULT_ID_COLUMNS,
) -> ChecklistResult:
    """
    Load the introduced-species checklist.

    Parameters
    ----------
    source : Optional[str]
        Local path or http(s) URL. None means no checklist is configured.
    timeout : float
        Network timeout in seconds (default: 30)
    id_columns : Iterable[str]
        Candidate identifier columns for delimited checklists

    Returns
    -------
    ChecklistResult
        Identifiers, or an empty degraded result if the checklist could not
        be loaded. Never raises.
    """
    if not source:
        reason = "No introduced species checklist configured"
        logger.warning(f"  ⚠ {reason}; introduced species section will be empty")
        return ChecklistResult(ids=frozenset(), source=None, degraded=True, reason=reason)

    try:
        ids = parse_checklist(_read_source(str(source), timeout), id_columns)
    except Exception as e:
        reason = f"Introduced species checklist unavailable ({source}): {e}"
        logger.warning(f"  ⚠ {reason}")
        return ChecklistResult(ids=frozenset(), source=str(source), degraded=True, reason=reason)

    if not ids:
        logger.warning(f"  ⚠ Checklist {source} contains no taxon identifiers")
    else:
        logger.info(f"  ✓ Loaded {len(ids)} taxon identifiers from checklist")

    return ChecklistResult(ids=ids, source=str(source))


def filter_introduced(species: pd.DataFrame, checklist: ChecklistResult) -> pd.DataFrame:
    """Return the species list rows whose aphiaID is in the checklist."""
    introduced = species.loc[species['aphiaID'].isin(sorted(checklist.ids))].reset_index(drop=True)
    logger.info(f"  ✓ {len(introduced)} species on the introduced species checklist")
    return introduced.copy()
