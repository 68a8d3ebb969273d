"""
Configuration Management for ednareport

This module provides the configuration system for a report build using
frozen dataclasses. The configuration system supports:

1. Default parameter values for a standard metabarcoding survey report
2. Loading configuration from YAML/JSON files
3. Environment variable overrides
4. Validation in __post_init__

Configuration Structure:
- InputConfig: Input table paths and the null/control conventions
- OrdinationConfig: NMDS parameters (seed, iterations, restarts)
- ChecklistConfig: Introduced-species checklist source
- ReportConfig: Report title, figures and output layout
- PipelineConfig: Master configuration combining all components

Example Usage:
    >>> from ednareport.config import get_default_config, load_config_from_file
    >>>
    >>> config = get_default_config()
    >>> print(config.ordination.seed)
    42
    >>>
    >>> config = load_config_from_file("survey.yaml")
    >>>
    >>> custom_config = config.update(
    ...     ordination__seed=7,
    ...     checklist__source="checklists/introduced.txt"
    ... )
"""

from dataclasses import dataclass, field, fields, asdict, replace
from pathlib import Path
from typing import Optional, List, Dict, Any, Union
import os
import json
import logging

logger = logging.getLogger(__name__)

# Try to import YAML support
try:
    import yaml
    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False
    logger.debug("PyYAML not available; YAML config files not supported")


EVENT_TYPES = ("plankton", "plate", "water")


# ============================================================================
# Input Configuration
# ============================================================================

@dataclass(frozen=True)
class InputConfig:
    """
    Configuration for the two input tables.

    Attributes
    ----------
    occurrence_path : Optional[Path]
        Occurrence table (tab-separated). Usually given on the command line.

    dna_path : Optional[Path]
        DNA derived-data extension table (tab-separated).

    control_location : str
        locationID used for negative controls (default: "Control").
        Control records are excluded from the phylum charts.

    encoding : str
        File encoding of both tables (default: "utf-8")
    """
    occurrence_path: Optional[Path] = None
    dna_path: Optional[Path] = None
    control_location: str = "Control"
    encoding: str = "utf-8"

    def __post_init__(self):
        """Normalize paths."""
        for name in ("occurrence_path", "dna_path"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, Path(value))
        if not self.control_location:
            raise ValueError("control_location must not be empty")


# ============================================================================
# Ordination Configuration
# ============================================================================

@dataclass(frozen=True)
class OrdinationConfig:
    """
    Configuration for the nonmetric multidimensional scaling step.

    Attributes
    ----------
    seed : int
        Random seed passed to the MDS solver (default: 42). A fixed seed
        makes ordination coordinates identical across runs.

    n_init : int
        Number of random starts; the lowest-stress solution is kept
        (default: 4)

    max_iter : int
        Maximum SMACOF iterations per start (default: 300)

    eps : float
        Relative stress tolerance for convergence (default: 1e-3)

    min_samples : int
        Minimum number of samples with a nonzero row needed to run NMDS
        (default: 3)
    """
    seed: int = 42
    n_init: int = 4
    max_iter: int = 300
    eps: float = 1e-3
    min_samples: int = 3

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.n_init < 1:
            raise ValueError("n_init must be at least 1")
        if self.max_iter < 1:
            raise ValueError("max_iter must be at least 1")
        if not self.eps > 0:
            raise ValueError("eps must be positive")
        if self.min_samples < 3:
            raise ValueError("min_samples must be at least 3")


# ============================================================================
# Checklist Configuration
# ============================================================================

@dataclass(frozen=True)
class ChecklistConfig:
    """
    Configuration for the introduced-species checklist.

    Attributes
    ----------
    source : Optional[str]
        Local path or http(s) URL of the checklist. When None, the
        introduced-species section is rendered empty and the run is
        flagged as degraded.

    timeout : float
        Network timeout in seconds for URL sources (default: 30)

    id_columns : List[str]
        Column names searched for taxon identifiers when the checklist is
        a delimited table.
    """
    source: Optional[str] = None
    timeout: float = 30.0
    id_columns: List[str] = field(
        default_factory=lambda: ["aphiaID", "AphiaID", "taxonID", "acceptedNameUsageID"]
    )

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if isinstance(self.source, Path):
            object.__setattr__(self, 'source', str(self.source))


# ============================================================================
# Report Configuration
# ============================================================================

@dataclass(frozen=True)
class ReportConfig:
    """
    Configuration for the rendered report.

    Attributes
    ----------
    title : str
        Report title (default: "eDNA survey results")

    make_figures : bool
        Render map, bar chart and ordination figures (default: True)

    figure_dpi : int
        Resolution for PNG figures (default: 150)

    abundance_decimals : int
        Decimals shown for abundance percentages (default: 3)

    max_table_rows : int
        Maximum rows rendered per HTML table; TSV exports are never
        truncated (default: 5000)

    report_filename : str
        Name of the HTML report inside the output directory
        (default: "report.html"). Use "index.html" when the output
        directory is published as a static site.
    """
    title: str = "eDNA survey results"
    make_figures: bool = True
    figure_dpi: int = 150
    abundance_decimals: int = 3
    max_table_rows: int = 5000
    report_filename: str = "report.html"

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.figure_dpi < 50:
            raise ValueError("figure_dpi must be at least 50")
        if not 0 <= self.abundance_decimals <= 6:
            raise ValueError("abundance_decimals must be between 0 and 6")
        if self.max_table_rows < 1:
            raise ValueError("max_table_rows must be at least 1")
        name = Path(self.report_filename)
        if name.name != self.report_filename or name.suffix.lower() not in (".html", ".htm"):
            raise ValueError("report_filename must be a plain .html file name")


# ============================================================================
# Master Pipeline Configuration
# ============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """
    Master configuration for a report build.

    Attributes
    ----------
    inputs : InputConfig
        Input table configuration

    ordination : OrdinationConfig
        NMDS configuration

    checklist : ChecklistConfig
        Introduced-species checklist configuration

    report : ReportConfig
        Report rendering configuration

    log_level : str
        Logging level (default: "INFO")

    output_dir : Path
        Base output directory (default: "report")
    """
    inputs: InputConfig = field(default_factory=InputConfig)
    ordination: OrdinationConfig = field(default_factory=OrdinationConfig)
    checklist: ChecklistConfig = field(default_factory=ChecklistConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    log_level: str = "INFO"
    output_dir: Path = field(default_factory=lambda: Path("report"))

    def __post_init__(self):
        """Validate and normalize configuration."""
        if isinstance(self.output_dir, str):
            object.__setattr__(self, 'output_dir', Path(self.output_dir))

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")

    def update(self, **kwargs) -> 'PipelineConfig':
        """
        Create a new configuration with updated values.

        Supports nested updates using double underscore notation:
        config.update(ordination__seed=7)

        Parameters
        ----------
        **kwargs
            Configuration parameters to update. Use double underscore
            for nested parameters (e.g., report__title)

        Returns
        -------
        PipelineConfig
            New configuration object with updates
        """
        top_level = {}
        nested = {}

        for key, value in kwargs.items():
            if '__' in key:
                component, param = key.split('__', 1)
                nested.setdefault(component, {})[param] = value
            else:
                top_level[key] = value

        _check_options(PipelineConfig, top_level)
        for component, updates in nested.items():
            if component not in _SECTIONS:
                raise ValueError(f"Unknown configuration section: {component}")
            _check_options(_SECTIONS[component], updates, component)
            current = getattr(self, component)
            top_level[component] = replace(current, **updates)

        return replace(self, **top_level)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a nested dictionary."""
        return asdict(self)

    def to_yaml(self, output_path: Union[str, Path]) -> None:
        """
        Save configuration to YAML file.

        Raises
        ------
        ImportError
            If PyYAML is not installed
        """
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required to save YAML config files")

        config_dict = _convert_paths_to_strings(self.to_dict())

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {path}")

    def to_json(self, output_path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        config_dict = _convert_paths_to_strings(self.to_dict())

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(config_dict, f, indent=2)

        logger.info(f"Configuration saved to {path}")


# ============================================================================
# Helper Functions
# ============================================================================

_SECTIONS = {
    'inputs': InputConfig,
    'ordination': OrdinationConfig,
    'checklist': ChecklistConfig,
    'report': ReportConfig,
}


def _check_options(cls, keys, section: Optional[str] = None) -> None:
    """Raise ValueError if any key is not a field of the config class."""
    known = {f.name for f in fields(cls)}
    unknown = [key for key in keys if key not in known]
    if unknown:
        name = f"{section}.{unknown[0]}" if section else unknown[0]
        raise ValueError(f"Unknown configuration option: {name}")


def _is_known_option(key: str) -> bool:
    """Whether a PipelineConfig.update() key names an existing option."""
    if '__' in key:
        section, param = key.split('__', 1)
        return section in _SECTIONS and param in {f.name for f in fields(_SECTIONS[section])}
    return key in {f.name for f in fields(PipelineConfig)} and key not in _SECTIONS


def get_default_config() -> PipelineConfig:
    """Get default pipeline configuration."""
    return PipelineConfig()


def load_config_from_file(config_path: Union[str, Path]) -> PipelineConfig:
    """
    Load configuration from YAML or JSON file.

    Automatically detects file format based on extension.

    Parameters
    ----------
    config_path : Union[str, Path]
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    PipelineConfig
        Loaded configuration

    Raises
    ------
    FileNotFoundError
        If configuration file doesn't exist
    ValueError
        If file format is not supported
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required to load YAML config files")
        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}
    elif suffix == '.json':
        with open(path, 'r') as f:
            config_dict = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}")

    logger.info(f"Loaded configuration from {path}")
    return _dict_to_config(config_dict)


def _dict_to_config(config_dict: Dict[str, Any]) -> PipelineConfig:
    """Convert a nested dictionary to a PipelineConfig object."""
    config_dict = dict(config_dict)

    nested_configs = {}
    for name, cls in _SECTIONS.items():
        if name in config_dict:
            values = config_dict.pop(name) or {}
            if not isinstance(values, dict):
                raise ValueError(f"Configuration section '{name}' must be a mapping")
            _check_options(cls, values, name)
            nested_configs[name] = cls(**values)
    _check_options(PipelineConfig, config_dict)

    return PipelineConfig(**nested_configs, **config_dict)


def _convert_paths_to_strings(obj: Any) -> Any:
    """Recursively convert Path objects to strings for serialization."""
    if isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: _convert_paths_to_strings(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_paths_to_strings(item) for item in obj]
    elif isinstance(obj, tuple):
        return tuple(_convert_paths_to_strings(item) for item in obj)
    else:
        return obj


def load_config_from_env() -> Dict[str, Any]:
    """
    Load configuration overrides from environment variables.

    Environment variables are prefixed with EDNAREPORT_ and use double
    underscores for nesting:

    EDNAREPORT_ORDINATION__SEED=7
    EDNAREPORT_CHECKLIST__SOURCE=https://example.org/introduced.txt

    Returns
    -------
    Dict[str, Any]
        Overrides suitable for PipelineConfig.update()
    """
    prefix = "EDNAREPORT_"
    overrides = {}

    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            if not _is_known_option(config_key):
                logger.warning(f"Ignoring unknown configuration variable {key}")
                continue
            overrides[config_key] = _parse_env_value(value)

    if overrides:
        logger.debug(f"Loaded {len(overrides)} configuration overrides from environment")

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ['true', 'yes']:
        return True
    if value.lower() in ['false', 'no']:
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value
