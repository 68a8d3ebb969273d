"""
Helper Functions and Utilities

This module provides common utility functions used throughout the ednareport
package: logging configuration, output directory handling, tab-separated
input validation and small formatting helpers shared by the report and the
CLI.

Key Utilities:
1. Logging Configuration
   - Centralized setup of the ``ednareport`` package logger
   - Console and optional file output with a shared format

2. File Operations
   - Output directory creation using pathlib
   - Structural validation of tab-separated inputs (header and field counts)

3. Formatting
   - Numbers, percentages and elapsed times for report and console output

Example Usage:
    >>> from ednareport.utils import setup_logging, validate_tsv_structure
    >>> logger = setup_logging(log_level="DEBUG", log_file="report/ednareport.log")
    >>> header = validate_tsv_structure("occurrence.tsv")
"""

from typing import Optional, List, Union
from pathlib import Path
import logging
import sys
from datetime import datetime

import numpy as np
import pandas as pd

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# Logging Configuration
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for ednareport.

    Sets up the package logger with console and optional file output.

    Parameters
    ----------
    log_level : str, optional
        Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)
    log_file : str, optional
        Path to log file. If None, logs only to console (default: None)
    format_string : str, optional
        Custom format string for log messages. If None, uses default format

    Returns
    -------
    logging.Logger
        Configured logger instance

    Notes
    -----
    The default format includes timestamp, level, and message:
    [2025-11-03 10:30:45] INFO: Loaded 1520 occurrence records
    """
    package_logger = logging.getLogger("ednareport")
    package_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    for handler in list(package_logger.handlers):
        handler.close()
    package_logger.handlers.clear()

    if format_string is None:
        format_string = "[%(asctime)s] %(levelname)s: %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

        package_logger.info(f"Logging to file: {log_file}")

    return package_logger


# ============================================================================
# File Operations
# ============================================================================

def create_output_directory(output_dir: Union[str, Path]) -> Path:
    """
    Create output directory if it doesn't exist.

    Raises
    ------
    OSError
        If directory cannot be created due to permissions or other issues
    """
    path = Path(output_dir)

    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created/verified output directory: {path}")
        return path
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        raise


def validate_tsv_structure(
    tsv_path: Union[str, Path],
    encoding: str = 'utf-8',
) -> List[str]:
    """
    Check that every row of a tab-separated file has as many fields as the header.

    A leading UTF-8 byte-order mark is not part of the first column name.

    Parameters
    ----------
    tsv_path : Union[str, Path]
        Path to TSV file
    encoding : str
        File encoding (default: 'utf-8')

    Returns
    -------
    List[str]
        Header column names

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    pd.errors.EmptyDataError
        If the file has no header line
    ValueError
        If a row has a different number of fields than the header
    """
    path = Path(tsv_path)

    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")

    with open(path, 'r', encoding=encoding, newline='') as fh:
        header_line = fh.readline().rstrip('\r\n').lstrip('\ufeff')
        if not header_line:
            raise pd.errors.EmptyDataError(f"Input table is empty: {path}")
        headers = header_line.split('\t')

        for line_number, line in enumerate(fh, start=2):
            line = line.rstrip('\r\n')
            if not line:
                continue
            n_fields = line.count('\t') + 1
            if n_fields != len(headers):
                raise ValueError(
                    f"Malformed row in {path} at line {line_number}: "
                    f"expected {len(headers)} fields, found {n_fields}"
                )

    return headers


# ============================================================================
# Formatting
# ============================================================================

def format_number(value: float, decimals: int = 2) -> str:
    """Format a number for display."""
    if value is None or pd.isna(value):
        return "N/A"
    if isinstance(value, (int, np.integer)):
        return f"{value:,}"
    return f"{value:,.{decimals}f}"


def format_percentage(value: Optional[float], decimals: int = 3) -> str:
    """
    Format an abundance percentage for display.

    Null values format as an empty string so tables can tell
    "no data" apart from "0.000%".
    """
    if value is None or pd.isna(value):
        return ""
    return f"{value:.{decimals}f}%"


def format_elapsed_time(seconds: float) -> str:
    """
    Format elapsed time in human-readable format.

    Examples
    --------
    >>> format_elapsed_time(45)
    '45s'
    >>> format_elapsed_time(150)
    '2m 30s'
    """
    if seconds < 60:
        return f"{seconds:.0f}s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def get_timestamp() -> str:
    """Get current timestamp string in ISO format."""
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
