"""
ednareport: Summary Reports for eDNA Metabarcoding Surveys

ednareport turns the occurrence and DNA derived-data tables produced by an
eDNA metabarcoding pipeline into a static HTML report for human review.

Core functionality includes:
- Loading occurrence and DNA extension tables with derived sample type,
  date and taxon identifier fields
- Per-sample, per-phylum and per-species summaries
- Relative read abundance per sample type
- NMDS ordination of samples (phylum reads and species presence)
- Cross-referencing species against an introduced species checklist
- A self-contained HTML report with maps, charts and sortable tables
"""

__version__ = "0.1.0"

# Import main modules for easy access
from . import config
from . import utils
from . import loader
from . import samples
from . import taxonomy
from . import abundance
from . import ordination
from . import checklist

__all__ = [
    "config",
    "utils",
    "loader",
    "samples",
    "taxonomy",
    "abundance",
    "ordination",
    "checklist",
]
