"""Shared fixtures: small occurrence datasets with known geometry."""

import logging
import math

import pandas as pd
import pytest

from geosubsample.abstractions.types import CoordinateSystem, OccurrenceDataset, OccurrenceRecord
from geosubsample.config import ProcessingConfig

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

TAXA = ['Lingula', 'Orthis', 'Spirifer', 'Rhynchonella', 'Terebratula', 'Productus']


@pytest.fixture
def sequential():
    """Single-worker processing settings, independent of any config.yml."""
    return ProcessingConfig(max_workers=1)


@pytest.fixture
def grid_frame():
    """Occurrence table on a 1-degree lon/lat grid: 8 x 5 sites, 3 records per site."""
    rows = []
    for i in range(8):
        for j in range(5):
            site = f"c{i}_{j}"
            for k in range(3):
                rows.append({
                    'taxon': TAXA[(i + 2 * j + k) % len(TAXA)],
                    'cell': site,
                    'lon': 10.0 + i,
                    'lat': 40.0 + j,
                    'collection': f"col{(i + j) % 4}",
                })
    return pd.DataFrame(rows)


@pytest.fixture
def grid_dataset(grid_frame):
    return OccurrenceDataset.from_frame(
        grid_frame, taxon_col='taxon', site_col='cell', x_col='lon', y_col='lat',
        collection_col='collection'
    )


@pytest.fixture
def ring_dataset():
    """13 planar sites within radius 100 of one another.

    A centre site ``s0``, eleven sites on a ring of radius 10 around it and
    one outlying site ``far`` 80 units east of the centre. From every site
    but ``far`` itself, ``far`` is the most distant companion by a wide margin.
    """
    records = [OccurrenceRecord('Lingula', 's0', 0.0, 0.0)]
    for k in range(11):
        angle = 2 * math.pi * k / 11
        records.append(OccurrenceRecord(
            TAXA[k % len(TAXA)], f"r{k}", 10 * math.cos(angle), 10 * math.sin(angle)
        ))
    records.append(OccurrenceRecord('Productus', 'far', 80.0, 0.0))
    return OccurrenceDataset(records, crs=CoordinateSystem.PLANAR)


@pytest.fixture
def band_dataset():
    """11 sites in the [10, 30) latitude band and 15 sites in [30, 50)."""
    records = []
    for k in range(11):
        records.append(OccurrenceRecord(TAXA[k % 6], f"low{k}", float(k), 12.0 + 1.5 * k))
    for k in range(15):
        records.append(OccurrenceRecord(TAXA[k % 6], f"mid{k}", float(k), 31.0 + k))
    return OccurrenceDataset(records)


@pytest.fixture
def chain_dataset():
    """16 planar sites one unit apart on a line, plus three isolated outliers."""
    records = [OccurrenceRecord(TAXA[k % 6], f"p{k}", float(k), 0.0) for k in range(16)]
    for k, (x, y) in enumerate([(1000.0, 1000.0), (-1000.0, 2000.0), (3000.0, -1000.0)]):
        records.append(OccurrenceRecord('Orthis', f"out{k}", x, y))
    return OccurrenceDataset(records, crs=CoordinateSystem.PLANAR)


@pytest.fixture
def community_frame():
    """One subsample's records: 4 sites, 6 taxa with uneven abundances."""
    counts = {'Lingula': 8, 'Orthis': 4, 'Spirifer': 3, 'Rhynchonella': 2,
              'Terebratula': 1, 'Productus': 1}
    sites = [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)]
    rows = []
    n = 0
    for taxon, count in counts.items():
        for _ in range(count):
            x, y = sites[n % len(sites)]
            rows.append({'taxon_id': taxon, 'x': x, 'y': y, 'collection_id': f"k{n % 5}"})
            n += 1
    return pd.DataFrame(rows)
