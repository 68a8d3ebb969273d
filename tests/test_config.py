"""
Unit tests for ednareport.config and ednareport.utils
"""

import json
import logging
from pathlib import Path

import pandas as pd
import pytest

from ednareport import config, utils
from ednareport.config import (
    OrdinationConfig,
    PipelineConfig,
    ReportConfig,
    get_default_config,
    load_config_from_env,
    load_config_from_file,
)


class TestPipelineConfig:
    """Tests for configuration defaults, validation and updates."""

    def test_defaults(self):
        cfg = get_default_config()

        assert cfg.ordination.seed == 42
        assert cfg.inputs.control_location == "Control"
        assert cfg.checklist.source is None
        assert cfg.report.abundance_decimals == 3
        assert cfg.output_dir == Path("report")

    def test_update_nested(self):
        cfg = get_default_config().update(ordination__seed=7, report__title="Fiji 2022")

        assert cfg.ordination.seed == 7
        assert cfg.report.title == "Fiji 2022"
        assert get_default_config().ordination.seed == 42

    def test_update_top_level(self):
        cfg = get_default_config().update(output_dir="out", log_level="DEBUG")
        assert cfg.output_dir == Path("out")
        assert cfg.log_level == "DEBUG"

    def test_update_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration section"):
            get_default_config().update(plotting__dpi=300)

    def test_update_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown configuration option: ordination.seeds"):
            get_default_config().update(ordination__seeds=3)

    def test_update_unknown_top_level_option(self):
        with pytest.raises(ValueError, match="Unknown configuration option: outdir"):
            get_default_config().update(outdir="site")

    @pytest.mark.parametrize("kwargs", [
        {'n_init': 0},
        {'max_iter': 0},
        {'eps': 0},
        {'min_samples': 2},
    ])
    def test_ordination_validation(self, kwargs):
        with pytest.raises(ValueError):
            OrdinationConfig(**kwargs)

    def test_report_validation(self):
        with pytest.raises(ValueError):
            ReportConfig(abundance_decimals=9)

    @pytest.mark.parametrize("name", ["sub/index.html", "report.txt", ""])
    def test_report_filename_validation(self, name):
        with pytest.raises(ValueError, match="report_filename"):
            ReportConfig(report_filename=name)

    def test_report_filename(self):
        cfg = get_default_config()
        assert cfg.report.report_filename == "report.html"
        assert cfg.update(report__report_filename="index.html").report.report_filename == "index.html"

    def test_log_level_validation(self):
        with pytest.raises(ValueError):
            PipelineConfig(log_level="LOUD")

    def test_frozen(self):
        cfg = get_default_config()
        with pytest.raises(Exception):
            cfg.log_level = "DEBUG"


class TestConfigFiles:
    """Tests for loading and saving configuration files."""

    def test_json_round_trip(self, tmp_path):
        cfg = get_default_config().update(
            ordination__seed=11, checklist__source="introduced.txt"
        )
        path = tmp_path / "config.json"
        cfg.to_json(path)

        loaded = load_config_from_file(path)
        assert loaded == cfg

    def test_yaml_file(self, tmp_path):
        pytest.importorskip("yaml")
        path = tmp_path / "config.yaml"
        path.write_text(
            "ordination:\n  seed: 3\nreport:\n  make_figures: false\n",
            encoding='utf-8',
        )

        cfg = load_config_from_file(path)
        assert cfg.ordination.seed == 3
        assert cfg.report.make_figures is False
        assert cfg.ordination.n_init == 4

    def test_yaml_round_trip(self, tmp_path):
        pytest.importorskip("yaml")
        cfg = get_default_config().update(report__title="Fiji 2022", inputs__control_location="Blank")
        path = tmp_path / "config.yml"
        cfg.to_yaml(path)

        assert load_config_from_file(path) == cfg

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.json")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("", encoding='utf-8')
        with pytest.raises(ValueError, match="Unsupported"):
            load_config_from_file(path)

    def test_misspelled_option_in_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'ordination': {'seeds': 3}}), encoding='utf-8')

        with pytest.raises(ValueError, match="Unknown configuration option: ordination.seeds"):
            load_config_from_file(path)

    def test_unknown_top_level_key_in_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'log_level': 'INFO', 'plotting': {'dpi': 300}}), encoding='utf-8')

        with pytest.raises(ValueError, match="Unknown configuration option: plotting"):
            load_config_from_file(path)

    def test_section_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'ordination': 7}), encoding='utf-8')

        with pytest.raises(ValueError, match="must be a mapping"):
            load_config_from_file(path)

    def test_input_paths_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps({'inputs': {'occurrence_path': 'data/occ.tsv', 'dna_path': 'data/dna.tsv'}}),
            encoding='utf-8',
        )

        cfg = load_config_from_file(path)
        assert cfg.inputs.occurrence_path == Path("data/occ.tsv")
        assert cfg.inputs.dna_path == Path("data/dna.tsv")


class TestEnvironment:
    """Tests for EDNAREPORT_* overrides."""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("EDNAREPORT_ORDINATION__SEED", "7")
        monkeypatch.setenv("EDNAREPORT_REPORT__MAKE_FIGURES", "false")
        monkeypatch.setenv("EDNAREPORT_CHECKLIST__SOURCE", "https://checklists.example.org/x.txt")

        overrides = load_config_from_env()
        cfg = get_default_config().update(**overrides)

        assert cfg.ordination.seed == 7
        assert cfg.report.make_figures is False
        assert cfg.checklist.source == "https://checklists.example.org/x.txt"

    def test_unrelated_variables_ignored(self, monkeypatch, caplog):
        monkeypatch.setenv("EDNAREPORT_HOME", "/opt/ednareport")
        monkeypatch.setenv("EDNAREPORT_ORDINATION__SEEDS", "3")
        monkeypatch.setenv("EDNAREPORT_ORDINATION__SEED", "7")

        with caplog.at_level(logging.WARNING, logger="ednareport.config"):
            overrides = load_config_from_env()

        assert overrides['ordination__seed'] == 7
        assert 'home' not in overrides
        assert 'ordination__seeds' not in overrides
        assert "EDNAREPORT_HOME" in caplog.text
        assert "EDNAREPORT_ORDINATION__SEEDS" in caplog.text
        assert get_default_config().update(**overrides).ordination.seed == 7

    def test_parse_env_value(self):
        assert config._parse_env_value("yes") is True
        assert config._parse_env_value("12") == 12
        assert config._parse_env_value("0.5") == 0.5
        assert config._parse_env_value("Control") == "Control"


class TestUtils:
    """Tests for helper functions."""

    def test_validate_tsv_structure(self, tmp_path):
        path = tmp_path / "t.tsv"
        path.write_text("a\tb\n1\t2\n\n3\t4\n", encoding='utf-8')
        assert utils.validate_tsv_structure(path) == ['a', 'b']

    def test_validate_tsv_structure_byte_order_mark(self, tmp_path):
        path = tmp_path / "t.tsv"
        path.write_text("\ufeffeventID\tb\n1\t2\n", encoding='utf-8')
        assert utils.validate_tsv_structure(path) == ['eventID', 'b']

    def test_validate_tsv_structure_malformed(self, tmp_path):
        path = tmp_path / "t.tsv"
        path.write_text("a\tb\n1\t2\t3\n", encoding='utf-8')
        with pytest.raises(ValueError, match="expected 2 fields, found 3"):
            utils.validate_tsv_structure(path)

    def test_validate_tsv_structure_empty(self, tmp_path):
        path = tmp_path / "t.tsv"
        path.write_text("", encoding='utf-8')
        with pytest.raises(pd.errors.EmptyDataError):
            utils.validate_tsv_structure(path)

    def test_format_percentage(self):
        assert utils.format_percentage(25.0) == "25.000%"
        assert utils.format_percentage(0.0) == "0.000%"
        assert utils.format_percentage(None) == ""
        assert utils.format_percentage(float('nan')) == ""
        assert utils.format_percentage(pd.NA) == ""

    def test_format_elapsed_time(self):
        assert utils.format_elapsed_time(45) == "45s"
        assert utils.format_elapsed_time(150) == "2m 30s"
        assert utils.format_elapsed_time(3720) == "1h 2m"

    def test_format_number(self):
        assert utils.format_number(1234) == "1,234"
        assert utils.format_number(None) == "N/A"

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "logs" / "ednareport.log"
        logger = utils.setup_logging(log_level="DEBUG", log_file=str(log_file))
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert "hello" in log_file.read_text(encoding='utf-8')

        utils.setup_logging(log_level="INFO")
        assert len(logger.handlers) == 1

    def test_params_file_is_json(self, tmp_path):
        cfg = get_default_config()
        path = tmp_path / "c.json"
        cfg.to_json(path)
        assert json.loads(path.read_text())['ordination']['seed'] == 42
