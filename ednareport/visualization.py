"""
Report Figures

This module draws the static figures embedded in the HTML report:

1. Sample Map
   - One point per sample, colored by sample type
   - Point size scaled by read count
   - Coastline basemap when cartopy is installed, plain axes otherwise

2. Phylum Bar Charts
   - Stacked bars of reads (or species) per phylum
   - One panel per sample type, one bar per location

3. Ordination Plots
   - NMDS sample scores colored by sample type
   - Feature (phylum or species) scores drawn as text labels

All functions return the written path, or None when there is not enough
data to draw the figure (a warning is logged).

Example Usage:
    >>> from ednareport.visualization import plot_sample_map
    >>> plot_sample_map(samples, "report/figures/sample_map.png")
"""

from typing import Dict, List, Optional, Sequence, Union
from pathlib import Path
import logging
import warnings

import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
import numpy as np
import pandas as pd
import seaborn as sns

from .config import EVENT_TYPES

try:
    import cartopy.crs as ccrs
    import cartopy.feature as cfeature
    CARTOPY_AVAILABLE = True
except ImportError:
    CARTOPY_AVAILABLE = False

# Configure logging
logger = logging.getLogger(__name__)

EVENT_TYPE_COLORS = {
    'plankton': '#5AB4AC',
    'plate': '#F2CC8F',
    'water': '#9D7ABE',
}
UNKNOWN_COLOR = '#999999'


def get_palette(n_colors: int) -> List[str]:
    """
    Generate a colorblind-friendly palette with n_colors hex colors.

    Falls back to repeating the matplotlib Tableau colors if seaborn
    cannot build the palette.
    """
    if n_colors <= 0:
        return []
    try:
        return sns.color_palette("colorblind", n_colors).as_hex()
    except Exception:
        pal = list(mcolors.TABLEAU_COLORS.values())
        while len(pal) < n_colors:
            pal += pal
        return pal[:n_colors]


def event_type_color(event_type: Optional[str]) -> str:
    """Color for a sample type; unknown types are grey."""
    if not isinstance(event_type, str):
        return UNKNOWN_COLOR
    return EVENT_TYPE_COLORS.get(event_type, UNKNOWN_COLOR)


def _save(fig: plt.Figure, out: Path, dpi: int) -> Path:
    """Save a figure (PNG at dpi, other formats as vectors) and close it."""
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix.lower() == ".png":
        fig.savefig(out, dpi=dpi, bbox_inches="tight")
    else:
        fig.savefig(out, bbox_inches="tight")
    plt.close(fig)
    logger.debug(f"Saved figure: {out}")
    return out


def _type_label(event_type) -> str:
    return event_type if isinstance(event_type, str) else "unknown"


def plot_sample_map(
    samples: pd.DataFrame,
    output_path: Union[str, Path],
    figsize: Sequence[float] = (10, 6),
    dpi: int = 150,
) -> Optional[Path]:
    """
    Map sample locations colored by sample type.

    Parameters
    ----------
    samples : pd.DataFrame
        Output of samples.summarize_samples()
    output_path : Union[str, Path]
        Path for output figure (PNG or PDF)
    figsize : Sequence[float], optional
        Figure size in inches (default: 10x6)
    dpi : int, optional
        Resolution for PNG output (default: 150)
    """
    out = Path(output_path)
    if samples.empty:
        logger.warning(f"No samples with coordinates; skipping map: {out}")
        return None

    d = samples.copy()
    reads = d['reads'].astype(float)
    if reads.max() > reads.min():
        d['_size'] = 20 + (reads - reads.min()) / (reads.max() - reads.min()) * 180
    else:
        d['_size'] = 50

    lon = d['decimalLongitude']
    lat = d['decimalLatitude']
    pad = 2.0
    extent = [
        max(lon.min() - pad, -180), min(lon.max() + pad, 180),
        max(lat.min() - pad, -90), min(lat.max() + pad, 90),
    ]

    fig = plt.figure(figsize=figsize)
    scatter_kwargs: Dict = {}
    if CARTOPY_AVAILABLE:
        ax = fig.add_subplot(1, 1, 1, projection=ccrs.PlateCarree())
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            ax.add_feature(cfeature.LAND, zorder=0, edgecolor="black", linewidth=0.2, facecolor="#f2f2f2")
            ax.add_feature(cfeature.OCEAN, zorder=0, facecolor="#d9edf7")
            ax.add_feature(cfeature.COASTLINE, linewidth=0.3)
        ax.set_extent(extent, crs=ccrs.PlateCarree())
        gl = ax.gridlines(draw_labels=True, linewidth=0.2, color="gray", alpha=0.5, linestyle='--')
        gl.top_labels = False
        gl.right_labels = False
        scatter_kwargs['transform'] = ccrs.PlateCarree()
    else:
        ax = fig.add_subplot(1, 1, 1)
        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        ax.set_xlim(extent[0], extent[1])
        ax.set_ylim(extent[2], extent[3])
        ax.grid(True, linestyle="--", linewidth=0.3, alpha=0.5)

    for event_type, sub in d.groupby(d['eventType'].map(_type_label), sort=True):
        ax.scatter(
            sub['decimalLongitude'], sub['decimalLatitude'],
            s=sub['_size'], alpha=0.8, label=event_type,
            color=event_type_color(sub['eventType'].iloc[0]),
            edgecolors="black", linewidths=0.3, **scatter_kwargs,
        )

    ax.legend(title="Sample type", loc="lower left", bbox_to_anchor=(1.02, 0.0), frameon=False)
    fig.tight_layout()
    return _save(fig, out, dpi)


def plot_phylum_bars(
    phylum_stats: pd.DataFrame,
    output_path: Union[str, Path],
    value: str = "reads",
    dpi: int = 150,
) -> Optional[Path]:
    """
    Stacked bar chart of reads or species per phylum, faceted by sample type.

    Parameters
    ----------
    phylum_stats : pd.DataFrame
        Output of taxonomy.summarize_phyla()
    output_path : Union[str, Path]
        Path for output figure
    value : str
        "reads" or "species"
    dpi : int, optional
        Resolution for PNG output (default: 150)
    """
    if value not in ("reads", "species"):
        raise ValueError(f"value must be 'reads' or 'species', got '{value}'")

    out = Path(output_path)
    d = phylum_stats.dropna(subset=['eventType'])
    if d.empty:
        logger.warning(f"No phylum statistics with a sample type; skipping chart: {out}")
        return None

    types = [t for t in EVENT_TYPES if t in set(d['eventType'])]
    phyla = (
        d.groupby('phylum')[value].sum().sort_values(ascending=False).index.tolist()
    )
    colors = dict(zip(phyla, get_palette(len(phyla))))

    fig, axes = plt.subplots(
        len(types), 1, figsize=(10, 3 + 2.5 * len(types)), squeeze=False, sharex=True,
    )
    locations = sorted(d['locationID'].fillna("unknown").unique())

    for ax, event_type in zip(axes[:, 0], types):
        sub = d.loc[d['eventType'] == event_type].copy()
        sub['locationID'] = sub['locationID'].fillna("unknown")
        wide = (
            sub.pivot_table(index='locationID', columns='phylum', values=value,
                            aggfunc='sum', fill_value=0)
            .reindex(index=locations, fill_value=0)
        )
        bottom = np.zeros(len(wide))
        for phylum in [p for p in phyla if p in wide.columns]:
            vals = wide[phylum].to_numpy(dtype=float)
            ax.bar(wide.index, vals, bottom=bottom, label=phylum, color=colors[phylum])
            bottom += vals
        ax.set_title(event_type)
        ax.set_ylabel(value)

    handles, labels = [], []
    for ax in axes[:, 0]:
        for handle, label in zip(*ax.get_legend_handles_labels()):
            if label not in labels:
                handles.append(handle)
                labels.append(label)
    fig.legend(handles, labels, title="Phylum", loc="upper left",
               bbox_to_anchor=(1.0, 0.95), frameon=False, fontsize=8)
    plt.setp(axes[-1, 0].get_xticklabels(), rotation=45, ha="right")
    fig.tight_layout()
    return _save(fig, out, dpi)


def plot_ordination(
    result,
    output_path: Union[str, Path],
    max_labels: int = 40,
    dpi: int = 150,
) -> Optional[Path]:
    """
    Plot NMDS sample scores with feature labels.

    Parameters
    ----------
    result : ordination.OrdinationResult
        Ordination to draw
    output_path : Union[str, Path]
        Path for output figure
    max_labels : int
        Maximum number of feature labels drawn, furthest from the origin
        first (default: 40)
    dpi : int, optional
        Resolution for PNG output (default: 150)
    """
    out = Path(output_path)
    if result.empty:
        logger.warning(f"Empty {result.mode} ordination; skipping plot: {out}")
        return None

    samples = result.samples
    fig, ax = plt.subplots(figsize=(8, 7))

    types = samples['eventType'] if 'eventType' in samples.columns else pd.Series([None] * len(samples))
    for label, sub in samples.groupby(types.map(_type_label), sort=True):
        first = sub['eventType'].iloc[0] if 'eventType' in sub.columns else None
        ax.scatter(sub['NMDS1'], sub['NMDS2'], s=60, alpha=0.85, label=label,
                   color=event_type_color(first), edgecolors="white", linewidths=0.6, zorder=3)

    features = result.features
    if not features.empty:
        dist = np.hypot(features['NMDS1'], features['NMDS2'])
        shown = features.loc[dist.sort_values(ascending=False).index[:max_labels]]
        for _, row in shown.iterrows():
            ax.annotate(row['feature'], (row['NMDS1'], row['NMDS2']),
                        fontsize=7, color="#444444", ha="center", va="center")

    title = "Phylum read abundance" if result.mode == "reads" else "Species presence"
    ax.set_title(f"NMDS ({title}), stress={result.stress:.3f}")
    ax.set_xlabel("NMDS1")
    ax.set_ylabel("NMDS2")
    ax.axhline(0, color="#cccccc", linewidth=0.5, zorder=0)
    ax.axvline(0, color="#cccccc", linewidth=0.5, zorder=0)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.legend(title="Sample type", frameon=False)
    fig.tight_layout()
    return _save(fig, out, dpi)
