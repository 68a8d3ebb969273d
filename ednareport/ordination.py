"""
NMDS Ordination of Samples

This module builds sample-by-feature matrices from occurrence records and
embeds the samples in two dimensions with nonmetric multidimensional
scaling (NMDS) on Bray-Curtis dissimilarities.

Two matrix modes are supported:
- "reads": features are phyla, cells are summed read counts
- "presence": features are species, cells are 1 when any record of the
  species in the sample has reads, else 0

Both matrices are row-normalized before the dissimilarities are computed.
A sample whose row sums to zero cannot be normalized; its row becomes NaN.
run_nmds() drops such rows, logs a warning and lists them in
OrdinationResult.dropped_samples. They are never placed at the origin.

The embedding is deterministic for a fixed seed. After fitting, sample
scores are centred and rotated to their principal axes, and feature scores
are the abundance-weighted averages of the sample scores.

Example Usage:
    >>> from ednareport.ordination import ordinate
    >>> from ednareport.config import OrdinationConfig
    >>> result = ordinate(occurrences, mode="reads", cfg=OrdinationConfig(seed=42))
    >>> result.samples[["materialSampleID", "NMDS1", "NMDS2"]].head()
"""

from dataclasses import dataclass, field
from typing import List, Optional
import logging

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform
from sklearn.manifold import MDS

from .config import OrdinationConfig

logger = logging.getLogger(__name__)


MODES = ("reads", "presence")
SAMPLE_ID = 'materialSampleID'
METADATA_COLUMNS = ['materialSampleID', 'eventID', 'locationID', 'eventType', 'eventDate']


@dataclass
class OrdinationResult:
    """
    Two-dimensional NMDS scores for samples and features.

    Attributes
    ----------
    mode : str
        "reads" (phylum read abundance) or "presence" (species presence)
    samples : pd.DataFrame
        materialSampleID, NMDS1, NMDS2 and the joined sample metadata
    features : pd.DataFrame
        feature, NMDS1, NMDS2
    stress : float
        Final stress of the embedding, NaN when no embedding was computed
    dropped_samples : List[str]
        Samples removed because their matrix row summed to zero
    message : Optional[str]
        Reason the embedding was skipped, if it was
    """
    mode: str
    samples: pd.DataFrame
    features: pd.DataFrame
    stress: float = float('nan')
    dropped_samples: List[str] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def empty(self) -> bool:
        return self.samples.empty


# ============================================================================
# Matrix Construction
# ============================================================================

def build_abundance_matrix(df: pd.DataFrame) -> pd.DataFrame:
    """Sample x phylum matrix of summed reads; missing cells are 0."""
    keep = df['phylum'].notna() & df['eventType'].notna() & df[SAMPLE_ID].notna()
    return (
        df.loc[keep]
        .groupby([SAMPLE_ID, 'phylum'])['organismQuantity']
        .sum()
        .unstack(fill_value=0)
        .astype(float)
    )


def build_presence_matrix(df: pd.DataFrame) -> pd.DataFrame:
    """Sample x species presence/absence matrix; missing cells are 0."""
    keep = df['species'].notna() & df[SAMPLE_ID].notna()
    present = (
        df.loc[keep]
        .groupby([SAMPLE_ID, 'species'])['organismQuantity']
        .max()
        > 0
    )
    return present.astype(int).unstack(fill_value=0).astype(float)


def normalize_rows(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Divide each row by its sum.

    Rows summing to zero become all-NaN.
    """
    row_sums = matrix.sum(axis=1)
    zero_rows = row_sums == 0
    if zero_rows.any():
        logger.debug(f"{int(zero_rows.sum())} matrix rows sum to zero")
    return matrix.div(row_sums.where(~zero_rows), axis=0)


# ============================================================================
# NMDS
# ============================================================================

def _nonmetric_mds(cfg: OrdinationConfig) -> MDS:
    """Create a nonmetric MDS estimator on precomputed dissimilarities."""
    return MDS(
        n_components=2,
        metric=False,
        dissimilarity='precomputed',
        n_init=cfg.n_init,
        max_iter=cfg.max_iter,
        eps=cfg.eps,
        normalized_stress='auto',
        random_state=cfg.seed,
    )


def _principal_axes(coords: np.ndarray) -> np.ndarray:
    """Centre scores, rotate to principal axes and fix the axis signs."""
    coords = coords - coords.mean(axis=0)
    _, _, vt = np.linalg.svd(coords, full_matrices=False)
    coords = coords @ vt.T
    anchors = np.abs(coords).argmax(axis=0)
    signs = np.sign(coords[anchors, np.arange(coords.shape[1])])
    signs[signs == 0] = 1
    return coords * signs


def empty_result(mode: str, dropped: List[str], message: str) -> OrdinationResult:
    """Result for an ordination that could not be computed."""
    return OrdinationResult(
        mode=mode,
        samples=pd.DataFrame(columns=[SAMPLE_ID, 'NMDS1', 'NMDS2']),
        features=pd.DataFrame(columns=['feature', 'NMDS1', 'NMDS2']),
        dropped_samples=dropped,
        message=message,
    )


def run_nmds(
    normalized: pd.DataFrame,
    mode: str = "reads",
    cfg: Optional[OrdinationConfig] = None,
) -> OrdinationResult:
    """
    Embed the rows of a row-normalized matrix in two dimensions.

    Parameters
    ----------
    normalized : pd.DataFrame
        Output of normalize_rows(); index holds sample identifiers
    mode : str
        Label stored on the result ("reads" or "presence")
    cfg : OrdinationConfig, optional
        Seed and solver settings (default: OrdinationConfig())

    Returns
    -------
    OrdinationResult
        Sample and feature scores. Empty, with a message, when fewer than
        cfg.min_samples rows remain after dropping zero-sum rows.
    """
    if cfg is None:
        cfg = OrdinationConfig()

    nan_rows = normalized.isna().any(axis=1)
    dropped = [str(sample) for sample in normalized.index[nan_rows.to_numpy()]]
    if dropped:
        logger.warning(
            f"  ⚠ {mode} ordination: dropped {len(dropped)} samples with zero total "
            f"({', '.join(dropped[:5])}{'...' if len(dropped) > 5 else ''})"
        )
    usable = normalized.loc[~nan_rows]

    if len(usable) < cfg.min_samples:
        message = (
            f"Not enough samples for ordination: {len(usable)} usable, "
            f"{cfg.min_samples} required"
        )
        logger.warning(f"  ⚠ {mode} ordination skipped. {message}")
        return empty_result(mode, dropped, message)

    values = usable.to_numpy(dtype=float)
    dissimilarities = squareform(pdist(values, metric='braycurtis'))

    mds = _nonmetric_mds(cfg)
    coords = _principal_axes(mds.fit_transform(dissimilarities))
    stress = float(mds.stress_)

    samples = pd.DataFrame(coords, columns=['NMDS1', 'NMDS2'])
    samples.insert(0, SAMPLE_ID, usable.index.astype(str))

    weights = values.sum(axis=0)
    observed = weights > 0
    feature_scores = (values[:, observed].T @ coords) / weights[observed][:, None]
    features = pd.DataFrame(feature_scores, columns=['NMDS1', 'NMDS2'])
    features.insert(0, 'feature', usable.columns[observed].astype(str))

    logger.info(
        f"  ✓ {mode} ordination: {len(samples)} samples, {len(features)} features, "
        f"stress {stress:.4f}"
    )
    return OrdinationResult(
        mode=mode,
        samples=samples,
        features=features,
        stress=stress,
        dropped_samples=dropped,
    )


def sample_metadata(df: pd.DataFrame) -> pd.DataFrame:
    """First eventID, locationID, eventType and eventDate seen for each sample."""
    return (
        df.loc[df[SAMPLE_ID].notna(), METADATA_COLUMNS]
        .drop_duplicates(SAMPLE_ID)
        .reset_index(drop=True)
    )


def ordinate(
    df: pd.DataFrame,
    mode: str = "reads",
    cfg: Optional[OrdinationConfig] = None,
) -> OrdinationResult:
    """
    Build, normalize and embed a sample matrix, then join sample metadata.

    Parameters
    ----------
    df : pd.DataFrame
        Occurrence records with derived columns
    mode : str
        "reads" for phylum read abundance, "presence" for species presence
    cfg : OrdinationConfig, optional
        Seed and solver settings

    Returns
    -------
    OrdinationResult
        Scores with sample metadata joined on materialSampleID
    """
    if mode not in MODES:
        raise ValueError(f"Unknown ordination mode: {mode}. Expected one of {MODES}")

    if mode == "reads":
        matrix = build_abundance_matrix(df)
    else:
        matrix = build_presence_matrix(df)

    logger.info(f"{mode} ordination matrix: {matrix.shape[0]} samples x {matrix.shape[1]} features")

    result = run_nmds(normalize_rows(matrix), mode=mode, cfg=cfg)
    if not result.empty:
        metadata = sample_metadata(df)
        metadata[SAMPLE_ID] = metadata[SAMPLE_ID].astype(str)
        result.samples = result.samples.merge(metadata, on=SAMPLE_ID, how='left')
    return result
