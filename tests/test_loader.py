"""
Unit tests for ednareport.loader

Tests cover:
1. eventID parsing (sample type marker and date stamp)
2. Taxon identifier extraction from scientificNameID
3. Derived species column
4. Occurrence and DNA extension table parsing
5. Error handling for missing files, malformed rows and bad values
"""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from ednareport.loader import (
    classify_event_type,
    derive_columns,
    derive_species,
    extract_aphia_id,
    load_dna_extension,
    load_occurrences,
    parse_event_date,
    read_occurrence_table,
    validate_required_columns,
)

from conftest import OCCURRENCE_HEADER, occurrence_rows, write_table


# ============================================================================
# Derivation Helpers
# ============================================================================

class TestEventIDParsing:
    """Tests for sample type and date derivation from eventID."""

    @pytest.mark.parametrize("event_id,expected", [
        ("FJI_20220601_P_01", "plankton"),
        ("FJI_20220601_S_02", "plate"),
        ("FJI_20220601_W_03", "water"),
        ("FJI_20220601_X_04", None),
        (None, None),
    ])
    def test_classify_event_type(self, event_id, expected):
        assert classify_event_type(event_id) == expected

    def test_first_marker_wins(self):
        """Markers are checked in order plankton, plate, water."""
        assert classify_event_type("FJI_W_20220601_P_01") == "plankton"

    def test_parse_event_date(self):
        assert parse_event_date("FJI_20220601_P_01") == date(2022, 6, 1)

    def test_only_first_digit_run_is_used(self):
        """A later, valid stamp does not rescue an invalid first one."""
        assert parse_event_date("FJI_01_20220601_P") is None

    @pytest.mark.parametrize("event_id", [
        "FJI_P_01",
        "FJI_20221345_P_01",
        "FJI_2022061_P_01",
        "20220601",
        None,
    ])
    def test_unparseable_dates_are_null(self, event_id):
        assert parse_event_date(event_id) is None


class TestTaxonIdentifiers:
    """Tests for aphiaID and species derivation."""

    def test_extract_aphia_id_from_lsid(self):
        assert extract_aphia_id("urn:lsid:marinespecies.org:taxname:213289") == "213289"

    def test_extract_aphia_id_from_url(self):
        assert extract_aphia_id("https://www.marinespecies.org/aphia.php?p=taxdetails&id=140481") == "140481"

    def test_extract_aphia_id_without_digits(self):
        assert extract_aphia_id("urn:lsid:unknown") is None
        assert extract_aphia_id(None) is None

    def test_derive_species(self):
        assert derive_species("Acanthaster planci", "species") == "Acanthaster planci"
        assert derive_species("Calanoida", "order") is None
        assert derive_species(None, "species") is None

    def test_derived_fields_for_one_record(self):
        df = pd.DataFrame({
            'eventID': ["FJI_20220601_P_01"],
            'scientificName': ["Exampleus fakus"],
            'scientificNameID': [".../123456"],
            'taxonRank': ["species"],
            'organismQuantity': [42.0],
        })
        row = derive_columns(df).iloc[0]

        assert row['species'] == "Exampleus fakus"
        assert row['eventDate'] == pd.Timestamp(2022, 6, 1)
        assert row['eventType'] == "plankton"
        assert row['aphiaID'] == "123456"

    def test_species_present_only_for_species_rank(self):
        df = pd.DataFrame({
            'eventID': ["FJI_20220601_P_01"] * 3,
            'scientificName': ["Acanthaster planci", "Calanoida", np.nan],
            'scientificNameID': ["urn:lsid:marinespecies.org:taxname:213289", "1100", np.nan],
            'taxonRank': ["species", "order", "species"],
        })
        out = derive_columns(df)

        is_species = (out['taxonRank'] == 'species') & out['scientificName'].notna()
        assert (out['species'].notna() == is_species).all()
        assert out.loc[0, 'species'] == "Acanthaster planci"
        assert pd.isna(out.loc[2, 'aphiaID'])


# ============================================================================
# Table Parsing
# ============================================================================

class TestOccurrenceTable:
    """Tests for occurrence table loading."""

    def test_load_derives_columns(self, occurrence_tsv):
        df = load_occurrences(occurrence_tsv)

        assert len(df) == 11
        for col in ['species', 'eventDate', 'aphiaID', 'eventType']:
            assert col in df.columns

        first = df.iloc[0]
        assert first['eventType'] == 'plankton'
        assert first['eventDate'] == pd.Timestamp(2022, 6, 1)
        assert first['aphiaID'] == '213289'
        assert first['species'] == 'Acanthaster planci'
        assert df['organismQuantity'].dtype == float

    def test_empty_fields_are_null(self, tmp_path):
        rows = occurrence_rows([('S1', 'mussel', 10)])
        rows[0][OCCURRENCE_HEADER.index('phylum')] = ''
        rows[0][OCCURRENCE_HEADER.index('decimalLongitude')] = ''
        path = write_table(tmp_path / "occ.tsv", OCCURRENCE_HEADER, rows)

        df = read_occurrence_table(path)
        assert pd.isna(df.loc[0, 'phylum'])
        assert pd.isna(df.loc[0, 'decimalLongitude'])

    def test_na_strings_are_not_null(self, tmp_path):
        """Only the empty string marks a missing value."""
        rows = occurrence_rows([('S1', 'mussel', 10)])
        rows[0][OCCURRENCE_HEADER.index('class')] = 'NA'
        path = write_table(tmp_path / "occ.tsv", OCCURRENCE_HEADER, rows)

        df = read_occurrence_table(path)
        assert df.loc[0, 'class'] == 'NA'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_occurrences(tmp_path / "missing.tsv")

    def test_malformed_row(self, tmp_path):
        rows = occurrence_rows([('S1', 'mussel', 10), ('S2', 'mussel', 20)])
        rows[1] = rows[1][:-2]
        path = write_table(tmp_path / "occ.tsv", OCCURRENCE_HEADER, rows)

        with pytest.raises(ValueError, match="line 3"):
            load_occurrences(path)

    def test_missing_required_column(self, tmp_path):
        drop = OCCURRENCE_HEADER.index('organismQuantity')
        header = OCCURRENCE_HEADER[:drop] + OCCURRENCE_HEADER[drop + 1:]
        rows = [row[:drop] + row[drop + 1:] for row in occurrence_rows()]
        path = write_table(tmp_path / "occ.tsv", header, rows)

        with pytest.raises(ValueError, match="organismQuantity"):
            load_occurrences(path)

    def test_non_numeric_quantity(self, tmp_path):
        rows = occurrence_rows([('S1', 'mussel', 10)])
        rows[0][OCCURRENCE_HEADER.index('organismQuantity')] = 'ten'
        path = write_table(tmp_path / "occ.tsv", OCCURRENCE_HEADER, rows)

        with pytest.raises(ValueError, match="non-numeric"):
            load_occurrences(path)

    def test_negative_quantity(self, tmp_path):
        rows = occurrence_rows([('S1', 'mussel', 10)])
        rows[0][OCCURRENCE_HEADER.index('organismQuantity')] = '-5'
        path = write_table(tmp_path / "occ.tsv", OCCURRENCE_HEADER, rows)

        with pytest.raises(ValueError, match="negative"):
            load_occurrences(path)

    def test_byte_order_mark(self, tmp_path):
        """Tables saved with a UTF-8 BOM keep their first column name."""
        path = tmp_path / "occ.tsv"
        lines = ["\t".join(OCCURRENCE_HEADER)] + ["\t".join(row) for row in occurrence_rows()]
        path.write_text("\ufeff" + "\n".join(lines) + "\n", encoding='utf-8')

        df = load_occurrences(path)
        assert 'occurrenceID' in df.columns
        assert len(df) == 11

    def test_header_only_table(self, tmp_path):
        path = write_table(tmp_path / "occ.tsv", OCCURRENCE_HEADER, [])

        with pytest.raises(pd.errors.EmptyDataError):
            load_occurrences(path)


class TestDNAExtension:
    """Tests for DNA extension table loading."""

    def test_load(self, dna_tsv):
        df = load_dna_extension(dna_tsv)
        assert len(df) == 11
        assert set(df['target_gene']) == {'COI'}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dna_extension(tmp_path / "missing.tsv")


def test_validate_required_columns():
    assert validate_required_columns(['a', 'b'], ['a'])
    with pytest.raises(ValueError, match="missing required columns"):
        validate_required_columns(['a'], ['a', 'b'], label="Occurrence")
