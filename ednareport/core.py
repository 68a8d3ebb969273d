"""
Core Pipeline Orchestration for ednareport

This module runs a complete report build, from the two input tables to the
HTML report:

1. Data loading (occurrence and DNA extension tables)
2. Sample, phylum, abundance and species summaries
3. NMDS ordinations (phylum read abundance and species presence)
4. Introduced species checklist filtering
5. Figure generation
6. Table export and HTML report rendering

Load errors are fatal and propagate to the caller before any output is
written. Ordination, checklist and figure problems are tolerated: they are
logged, recorded in ReportResult.warnings and shown in the report, whose
affected sections are marked incomplete.

Example Usage:
    >>> from ednareport.core import run_pipeline
    >>> result = run_pipeline(
    ...     occurrence_path="data/occurrence.tsv",
    ...     dna_path="data/dna_derived_data.tsv",
    ...     output_dir="report",
    ... )
    >>> print(result.report_path, result.degraded)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging
import time

import pandas as pd

from . import (
    __version__, abundance, checklist, config, loader, ordination, reports,
    samples, taxonomy, utils, visualization,
)
from .checklist import ChecklistResult
from .ordination import OrdinationResult

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    """
    Everything computed in one report build.

    Attributes
    ----------
    occurrences, dna : pd.DataFrame
        Loaded input tables (occurrences with derived columns)
    samples, phylum_stats, abundance, species, introduced : pd.DataFrame
        Summary tables
    ordinations : Dict[str, OrdinationResult]
        Keyed by mode ("reads", "presence")
    checklist : Optional[ChecklistResult]
        Introduced species checklist, or why it is missing
    figures : Dict[str, Optional[Path]]
        Figure name to written path (None if not drawn)
    warnings : List[str]
        Tolerated problems shown in the report
    degraded_sections : List[str]
        Report sections that are incomplete
    """
    occurrences: pd.DataFrame
    dna: pd.DataFrame
    samples: pd.DataFrame
    phylum_stats: pd.DataFrame
    abundance: pd.DataFrame
    species: pd.DataFrame
    introduced: pd.DataFrame
    ordinations: Dict[str, OrdinationResult] = field(default_factory=dict)
    checklist: Optional[ChecklistResult] = None
    figures: Dict[str, Optional[Path]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    degraded_sections: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, Path] = field(default_factory=dict)
    report_path: Optional[Path] = None

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_sections)

    def mark_degraded(self, section: str, message: str) -> None:
        if section not in self.degraded_sections:
            self.degraded_sections.append(section)
        self.warnings.append(message)


def _data_quality_warnings(occurrences: pd.DataFrame) -> List[str]:
    """Describe tolerated input problems for the report."""
    messages = []
    no_coords = occurrences[['decimalLongitude', 'decimalLatitude']].isna().any(axis=1).sum()
    if no_coords:
        messages.append(
            f"{int(no_coords)} occurrence records have no coordinates and are not "
            f"included in the sample map and sample table."
        )
    no_date = occurrences['eventDate'].isna().sum()
    if no_date:
        messages.append(f"{int(no_date)} occurrence records have no parseable date in eventID.")
    no_type = occurrences['eventType'].isna().sum()
    if no_type:
        messages.append(
            f"{int(no_type)} occurrence records have no sample type marker (_P, _S, _W) in "
            f"eventID and are excluded from per-type summaries."
        )
    return messages


def _setup_directories(base_output: Path) -> Dict[str, Path]:
    """Create the output directory structure."""
    dirs = {
        'base': base_output,
        'tables': base_output / 'tables',
        'figures': base_output / 'figures',
    }
    for dir_path in dirs.values():
        utils.create_output_directory(dir_path)
    return dirs


def _pipeline_parameters(
    cfg: config.PipelineConfig,
    occurrence_path: Path,
    dna_path: Path,
) -> Dict[str, Any]:
    return {
        'ednareport_version': __version__,
        'occurrence_table': str(occurrence_path),
        'dna_table': str(dna_path),
        'control_location': cfg.inputs.control_location,
        'ordination_seed': cfg.ordination.seed,
        'ordination_n_init': cfg.ordination.n_init,
        'ordination_max_iter': cfg.ordination.max_iter,
        'ordination_eps': cfg.ordination.eps,
        'checklist_source': cfg.checklist.source,
    }


def compute_summaries(
    occurrences: pd.DataFrame,
    dna: pd.DataFrame,
    cfg: Optional[config.PipelineConfig] = None,
) -> ReportResult:
    """
    Compute every summary table, ordination and the introduced species subset.

    No files are written. Ordination and checklist problems are recorded on
    the result instead of raised.
    """
    if cfg is None:
        cfg = config.get_default_config()

    logger.info("PHASE 2: Sample and taxon summaries")
    logger.info("-" * 80)
    sample_summary = samples.summarize_samples(occurrences)
    phylum_stats = taxonomy.summarize_phyla(occurrences, control_location=cfg.inputs.control_location)
    wide = abundance.abundance_table(occurrences)
    species = abundance.species_list(occurrences, abundance=wide)

    result = ReportResult(
        occurrences=occurrences,
        dna=dna,
        samples=sample_summary,
        phylum_stats=phylum_stats,
        abundance=wide,
        species=species,
        introduced=species.iloc[0:0].copy(),
        warnings=_data_quality_warnings(occurrences),
    )

    logger.info("")
    logger.info("PHASE 3: NMDS ordination")
    logger.info("-" * 80)
    for mode in ordination.MODES:
        try:
            ordination_result = ordination.ordinate(occurrences, mode=mode, cfg=cfg.ordination)
        except Exception as e:
            logger.warning(f"{mode} ordination failed (non-critical): {e}", exc_info=True)
            ordination_result = ordination.empty_result(mode, [], f"Ordination failed: {e}")
        result.ordinations[mode] = ordination_result
        if ordination_result.message:
            result.mark_degraded('ordination', f"{mode} ordination: {ordination_result.message}")
        if ordination_result.dropped_samples:
            result.warnings.append(
                f"{mode} ordination: {len(ordination_result.dropped_samples)} samples with "
                f"zero total were left out."
            )

    logger.info("")
    logger.info("PHASE 4: Introduced species")
    logger.info("-" * 80)
    result.checklist = checklist.load_checklist(
        cfg.checklist.source,
        timeout=cfg.checklist.timeout,
        id_columns=cfg.checklist.id_columns,
    )
    if result.checklist.degraded:
        result.mark_degraded('introduced', result.checklist.reason)
    else:
        result.introduced = checklist.filter_introduced(species, result.checklist)

    return result


def generate_figures(
    result: ReportResult,
    figures_dir: Path,
    cfg: Optional[config.ReportConfig] = None,
) -> Dict[str, Optional[Path]]:
    """Draw all report figures; failures are recorded on the result."""
    if cfg is None:
        cfg = config.ReportConfig()

    jobs = {
        'sample_map': lambda p: visualization.plot_sample_map(result.samples, p, dpi=cfg.figure_dpi),
        'phylum_reads': lambda p: visualization.plot_phylum_bars(
            result.phylum_stats, p, value="reads", dpi=cfg.figure_dpi),
        'phylum_species': lambda p: visualization.plot_phylum_bars(
            result.phylum_stats, p, value="species", dpi=cfg.figure_dpi),
    }
    for mode, ordination_result in result.ordinations.items():
        jobs[f'ordination_{mode}'] = (
            lambda p, o=ordination_result: visualization.plot_ordination(o, p, dpi=cfg.figure_dpi)
        )

    for name, draw in jobs.items():
        try:
            result.figures[name] = draw(Path(figures_dir) / f"{name}.png")
        except Exception as e:
            logger.warning(f"Figure {name} failed (non-critical): {e}", exc_info=True)
            result.figures[name] = None
            result.mark_degraded('figures', f"Figure {name} could not be drawn: {e}")
        if result.figures[name] is not None:
            logger.info(f"  ✓ Figure: {result.figures[name].name}")

    return result.figures


def run_pipeline(
    occurrence_path: Optional[Union[str, Path]] = None,
    dna_path: Optional[Union[str, Path]] = None,
    output_dir: Optional[Union[str, Path]] = None,
    cfg: Optional[config.PipelineConfig] = None,
) -> ReportResult:
    """
    Run a complete report build.

    Parameters
    ----------
    occurrence_path : Union[str, Path], optional
        Occurrence table (TSV) (default: cfg.inputs.occurrence_path)
    dna_path : Union[str, Path], optional
        DNA extension table (TSV) (default: cfg.inputs.dna_path)
    output_dir : Union[str, Path], optional
        Output directory (default: cfg.output_dir)
    cfg : PipelineConfig, optional
        Pipeline configuration (default: get_default_config())

    Returns
    -------
    ReportResult
        Computed tables, written file paths and any tolerated problems

    Raises
    ------
    FileNotFoundError
        If an input table does not exist
    ValueError
        If an input table is not given, is malformed, misses required
        columns or holds non-numeric values in numeric columns
    pd.errors.EmptyDataError
        If the occurrence table has no records
    """
    if cfg is None:
        cfg = config.get_default_config()

    if occurrence_path is None:
        occurrence_path = cfg.inputs.occurrence_path
    if dna_path is None:
        dna_path = cfg.inputs.dna_path
    if occurrence_path is None or dna_path is None:
        missing = "occurrence" if occurrence_path is None else "DNA extension"
        raise ValueError(
            f"No {missing} table given; pass it on the command line or set it "
            f"under inputs in the configuration file"
        )

    occurrence_path = Path(occurrence_path)
    dna_path = Path(dna_path)
    base_output = Path(output_dir) if output_dir is not None else cfg.output_dir
    start = time.time()

    logger.info("=" * 80)
    logger.info(f"ednareport {__version__}: {cfg.report.title}")
    logger.info("=" * 80)
    logger.info(f"Occurrence table: {occurrence_path}")
    logger.info(f"DNA extension table: {dna_path}")
    logger.info(f"Output directory: {base_output}")
    logger.info("")

    logger.info("PHASE 1: Data loading")
    logger.info("-" * 80)
    occurrences = loader.load_occurrences(occurrence_path, encoding=cfg.inputs.encoding)
    dna = loader.load_dna_extension(dna_path, encoding=cfg.inputs.encoding)
    logger.info(f"  ✓ Loaded {len(occurrences)} occurrence and {len(dna)} DNA extension records")
    logger.info("")

    result = compute_summaries(occurrences, dna, cfg)
    result.parameters = _pipeline_parameters(cfg, occurrence_path, dna_path)

    dirs = _setup_directories(base_output)
    params_file = dirs['base'] / "pipeline_parameters.json"
    with open(params_file, 'w') as f:
        json.dump(result.parameters, f, indent=2)
    logger.info(f"Saved pipeline parameters to {params_file}")

    logger.info("")
    logger.info("PHASE 5: Figures")
    logger.info("-" * 80)
    if cfg.report.make_figures:
        generate_figures(result, dirs['figures'], cfg.report)
    else:
        logger.info("  ⊘ Figure generation disabled")

    logger.info("")
    logger.info("PHASE 6: Tables and report")
    logger.info("-" * 80)
    result.tables = reports.write_tables(result, dirs['tables'])
    result.report_path = reports.generate_html_report(
        result, dirs['base'] / cfg.report.report_filename, cfg.report
    )

    logger.info("")
    logger.info("=" * 80)
    if result.degraded:
        logger.warning(
            f"Report completed with incomplete sections: {', '.join(result.degraded_sections)}"
        )
    else:
        logger.info("Report completed")
    logger.info(f"Elapsed: {utils.format_elapsed_time(time.time() - start)}")
    logger.info("=" * 80)

    return result
