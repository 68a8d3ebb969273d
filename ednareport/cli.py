#!/usr/bin/env python3
"""
ednareport Command-Line Interface

Builds the survey report from an occurrence table and a DNA extension table.
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

from . import __version__, config, core, utils

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> config.PipelineConfig:
    """
    Assemble the pipeline configuration.

    Precedence, lowest to highest: defaults, config file, EDNAREPORT_*
    environment variables, command-line options.
    """
    if args.config is not None:
        cfg = config.load_config_from_file(args.config)
    else:
        cfg = config.get_default_config()

    env_overrides = config.load_config_from_env()
    if env_overrides:
        cfg = cfg.update(**env_overrides)

    overrides = {
        'output_dir': args.output,
        'log_level': args.log_level,
        'inputs__occurrence_path': args.occurrence,
        'inputs__dna_path': args.dna,
    }
    if args.checklist is not None:
        overrides['checklist__source'] = args.checklist
    if args.seed is not None:
        overrides['ordination__seed'] = args.seed
    if args.title is not None:
        overrides['report__title'] = args.title
    if args.report_filename is not None:
        overrides['report__report_filename'] = args.report_filename
    if args.no_figures:
        overrides['report__make_figures'] = False

    return cfg.update(**{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='ednareport',
        description='ednareport: summary report for eDNA metabarcoding survey data',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build the report into ./report
  ednareport data/occurrence.tsv data/dna_derived_data.tsv

  # Cross-reference species against an introduced species checklist
  ednareport data/occurrence.tsv data/dna_derived_data.tsv --checklist checklists/introduced.txt

  # Use a configuration file and a different ordination seed
  ednareport data/occurrence.tsv data/dna_derived_data.tsv --config survey.yaml --seed 7

  # Build a site whose front page is the report
  ednareport data/occurrence.tsv data/dna_derived_data.tsv --output docs --report-filename index.html

Notes:
  - Both inputs are tab-separated with a header row; empty fields are null
  - Without a checklist the introduced species section is left empty and
    the report is marked incomplete
        """
    )

    parser.add_argument(
        'occurrence', type=Path, nargs='?', default=None,
        help='Occurrence table (TSV); defaults to inputs.occurrence_path from --config'
    )
    parser.add_argument(
        'dna', type=Path, nargs='?', default=None,
        help='DNA derived-data extension table (TSV); defaults to inputs.dna_path from --config'
    )

    parser.add_argument(
        '--output', '--output-dir',
        type=Path,
        default=None,
        help='Output directory (default: report)'
    )

    parser.add_argument(
        '--checklist',
        type=str,
        default=None,
        help='Introduced species checklist: local file or http(s) URL'
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Configuration file (.yaml, .yml or .json)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for the NMDS ordinations (default: 42)'
    )

    parser.add_argument(
        '--title',
        type=str,
        default=None,
        help='Report title'
    )

    parser.add_argument(
        '--report-filename',
        type=str,
        default=None,
        help='Name of the HTML report in the output directory (default: report.html)'
    )

    parser.add_argument(
        '--no-figures',
        action='store_true',
        help='Skip figure generation (tables and report are still written)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging verbosity (default: INFO)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'ednareport {__version__}'
    )

    args = parser.parse_args(argv)

    try:
        cfg = build_config(args)
    except (FileNotFoundError, ValueError, TypeError, ImportError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    output_dir = cfg.output_dir.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "ednareport.log"
    utils.setup_logging(log_level=cfg.log_level, log_file=str(log_file))

    try:
        result = core.run_pipeline(
            occurrence_path=cfg.inputs.occurrence_path,
            dna_path=cfg.inputs.dna_path,
            output_dir=output_dir,
            cfg=cfg,
        )
    except KeyboardInterrupt:
        print("\n\nReport build interrupted by user", file=sys.stderr)
        return 130
    except (FileNotFoundError, ValueError, pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        logger.error(f"Input error: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Report build failed with error: {e}", exc_info=True)
        print(f"\nError: Report build failed. Check log file: {log_file}", file=sys.stderr)
        return 1

    print(f"\nReport written to {result.report_path}")
    if result.degraded:
        print(f"Incomplete sections: {', '.join(result.degraded_sections)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
