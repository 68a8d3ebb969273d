"""
Shared fixtures for ednareport tests.

Builds a small Fiji survey: four field samples at two locations covering
all three sample types, plus one negative control.
"""

import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


OCCURRENCE_HEADER = [
    'occurrenceID',
    'eventID',
    'materialSampleID',
    'locationID',
    'scientificName',
    'scientificNameID',
    'taxonRank',
    'phylum',
    'class',
    'organismQuantity',
    'decimalLongitude',
    'decimalLatitude',
]

# name, scientificNameID, rank, phylum, class
TAXA = {
    'crown_of_thorns': ('Acanthaster planci', 'urn:lsid:marinespecies.org:taxname:213289',
                        'species', 'Echinodermata', 'Asteroidea'),
    'mussel': ('Mytilus galloprovincialis', 'urn:lsid:marinespecies.org:taxname:140481',
               'species', 'Mollusca', 'Bivalvia'),
    'copepods': ('Calanoida', 'urn:lsid:marinespecies.org:taxname:1100',
                 'order', 'Arthropoda', 'Copepoda'),
    'fanworm': ('Sabella spallanzanii', 'urn:lsid:marinespecies.org:taxname:130967',
                'species', 'Annelida', 'Polychaeta'),
}

# eventID, materialSampleID, locationID, lon, lat
SAMPLES = {
    'S1': ('FJI_20220601_P_01', 'S1', 'Suva', '178.4419', '-18.1416'),
    'S2': ('FJI_20220601_S_02', 'S2', 'Suva', '178.4419', '-18.1416'),
    'S3': ('FJI_20220602_W_03', 'S3', 'Lautoka', '177.4167', '-17.6167'),
    'S4': ('FJI_20220603_W_04', 'S4', 'Lautoka', '177.4200', '-17.6100'),
    'C1': ('FJI_20220604_W_C1', 'C1', 'Control', '178.0000', '-18.0000'),
}

# sample, taxon, reads
RECORDS = [
    ('S1', 'crown_of_thorns', 100),
    ('S1', 'copepods', 50),
    ('S1', 'mussel', 10),
    ('S2', 'mussel', 200),
    ('S2', 'fanworm', 40),
    ('S3', 'crown_of_thorns', 30),
    ('S3', 'fanworm', 70),
    ('S3', 'copepods', 20),
    ('S4', 'mussel', 5),
    ('S4', 'copepods', 300),
    ('C1', 'crown_of_thorns', 2),
]


def occurrence_rows(records=RECORDS):
    """Occurrence table rows (lists of strings) for the given records."""
    rows = []
    for i, (sample, taxon, reads) in enumerate(records, start=1):
        event_id, material_id, location, lon, lat = SAMPLES[sample]
        name, name_id, rank, phylum, cls = TAXA[taxon]
        rows.append([
            f'occ{i:03d}', event_id, material_id, location, name, name_id,
            rank, phylum, cls, str(reads), lon, lat,
        ])
    return rows


def write_table(path, header, rows):
    """Write a tab-separated table and return its path."""
    path = Path(path)
    lines = ['\t'.join(header)] + ['\t'.join(row) for row in rows]
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path


@pytest.fixture
def occurrence_tsv(tmp_path):
    """Occurrence table for the Fiji survey."""
    return write_table(tmp_path / "occurrence.tsv", OCCURRENCE_HEADER, occurrence_rows())


@pytest.fixture
def dna_tsv(tmp_path):
    """DNA extension table matching occurrence_tsv."""
    header = ['occurrenceID', 'DNA_sequence', 'target_gene',
              'pcr_primer_name_forward', 'pcr_primer_name_reverse']
    rows = [
        [f'occ{i:03d}', 'ACGTACGTAC', 'COI', 'mlCOIintF', 'jgHCO2198']
        for i in range(1, len(RECORDS) + 1)
    ]
    return write_table(tmp_path / "dna_derived_data.tsv", header, rows)


@pytest.fixture
def checklist_file(tmp_path):
    """Checklist listing the crown-of-thorns starfish and the fanworm."""
    path = tmp_path / "introduced.txt"
    path.write_text(
        "urn:lsid:marinespecies.org:taxname:213289\n130967\n",
        encoding='utf-8',
    )
    return path


@pytest.fixture
def occurrences(occurrence_tsv):
    """Loaded occurrence records with derived columns."""
    from ednareport.loader import load_occurrences
    return load_occurrences(occurrence_tsv)
