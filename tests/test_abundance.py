"""
Unit tests for ednareport.abundance

Relative abundance is the share of a sample type's reads contributed by
each taxon, in percent. A taxon never observed in a sample type has a null
abundance there, which is not the same as an observed abundance of zero.
"""

import numpy as np
import pandas as pd
import pytest

from ednareport.abundance import abundance_table, category_abundance, species_list


def _records(rows):
    """Occurrence-like records: (aphiaID, species, eventType, reads, phylum, class)."""
    return pd.DataFrame(
        rows,
        columns=['aphiaID', 'species', 'eventType', 'organismQuantity', 'phylum', 'class'],
    ).astype({'organismQuantity': float})


@pytest.fixture
def water_records():
    """100 water reads; species 1 contributes two records of 10 and 15 reads."""
    return _records([
        ('1', 'Acanthaster planci', 'water', 10, 'Echinodermata', 'Asteroidea'),
        ('1', 'Acanthaster planci', 'water', 15, 'Echinodermata', 'Asteroidea'),
        ('2', 'Mytilus galloprovincialis', 'water', 75, 'Mollusca', 'Bivalvia'),
        ('2', 'Mytilus galloprovincialis', 'plate', 0, 'Mollusca', 'Bivalvia'),
        ('3', 'Sabella spallanzanii', 'plate', 40, 'Annelida', 'Polychaeta'),
    ])


class TestCategoryAbundance:
    """Tests for the long per-type abundance table."""

    def test_records_summed_within_type(self, water_records):
        long = category_abundance(water_records)
        row = long.loc[(long['aphiaID'] == '1') & (long['eventType'] == 'water')].iloc[0]

        assert row['reads'] == 25
        assert row['total_reads'] == 100
        assert row['abundance'] == pytest.approx(25.0)

    def test_abundance_sums_to_100_per_type(self, occurrences):
        long = category_abundance(occurrences)
        totals = long.groupby('eventType')['abundance'].sum()
        for total in totals:
            assert total == pytest.approx(100.0, abs=0.01)

    def test_rounded_to_three_decimals(self):
        df = _records([
            ('1', 'A a', 'water', 1, 'P', 'C'),
            ('2', 'B b', 'water', 2, 'P', 'C'),
        ])
        long = category_abundance(df).set_index('aphiaID')
        assert long.loc['1', 'abundance'] == pytest.approx(33.333)
        assert long.loc['2', 'abundance'] == pytest.approx(66.667)

    def test_untyped_records_excluded(self, water_records):
        df = pd.concat([
            water_records,
            _records([('9', 'X x', None, 500, 'P', 'C')]),
        ], ignore_index=True)
        long = category_abundance(df)
        assert '9' not in long['aphiaID'].tolist()

    def test_non_species_records_included(self):
        """Higher-rank taxa have no species name but still count."""
        df = _records([
            ('1', 'A a', 'water', 50, 'P', 'C'),
            ('1100', None, 'water', 50, 'Arthropoda', 'Copepoda'),
        ])
        long = category_abundance(df)
        assert len(long) == 2
        assert long['abundance'].tolist() == [50.0, 50.0]


class TestAbundanceTable:
    """Tests for the wide abundance table."""

    def test_columns(self, water_records):
        wide = abundance_table(water_records)
        assert list(wide.columns) == ['aphiaID', 'plankton', 'plate', 'water']
        for col in ['plankton', 'plate', 'water']:
            assert str(wide[col].dtype) == 'Float64'

    def test_null_and_zero_are_distinct(self, water_records):
        wide = abundance_table(water_records).set_index('aphiaID')

        # observed on plates with zero reads
        assert wide.loc['2', 'plate'] == 0
        assert not pd.isna(wide.loc['2', 'plate'])
        # never observed on plates
        assert pd.isna(wide.loc['1', 'plate'])
        # no plankton samples at all
        assert wide['plankton'].isna().all()

    def test_one_row_per_taxon(self, occurrences):
        wide = abundance_table(occurrences)
        assert wide['aphiaID'].is_unique
        assert set(wide['aphiaID']) == set(occurrences['aphiaID'])

    def test_column_sums(self, occurrences):
        wide = abundance_table(occurrences)
        for col in ['plankton', 'plate', 'water']:
            assert float(wide[col].sum()) == pytest.approx(100.0, abs=0.01)

    def test_empty_input(self, water_records):
        wide = abundance_table(water_records.iloc[0:0])
        assert wide.empty
        assert list(wide.columns) == ['aphiaID', 'plankton', 'plate', 'water']


class TestSpeciesList:
    """Tests for the species table."""

    def test_sorted_by_reads(self, occurrences):
        species = species_list(occurrences)
        assert species['reads'].is_monotonic_decreasing
        assert species.iloc[0]['species'] == 'Mytilus galloprovincialis'

    def test_only_species_rank(self, occurrences):
        species = species_list(occurrences)
        assert 'Calanoida' not in species['species'].tolist()
        assert species['species'].notna().all()

    def test_reads_and_abundance(self, occurrences):
        species = species_list(occurrences).set_index('species')

        mussel = species.loc['Mytilus galloprovincialis']
        assert mussel['reads'] == 215
        assert mussel['plate'] == pytest.approx(83.333)
        assert pd.isna(species.loc['Sabella spallanzanii', 'plankton'])

    def test_ties_keep_grouping_order(self):
        df = _records([
            ('2', 'Zostera marina', 'water', 10, 'Tracheophyta', 'Magnoliopsida'),
            ('1', 'Acropora muricata', 'water', 10, 'Cnidaria', 'Anthozoa'),
        ])
        species = species_list(df)
        assert species['species'].tolist() == ['Acropora muricata', 'Zostera marina']

    def test_no_species(self):
        df = _records([('1100', None, 'water', 50, 'Arthropoda', 'Copepoda')])
        species = species_list(df)
        assert species.empty
        assert 'water' in species.columns
