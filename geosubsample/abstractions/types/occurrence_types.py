# geosubsample/abstractions/types/occurrence_types.py
"""Occurrence, site and dataset type definitions."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ...exceptions import InvalidConfigurationError


class CoordinateSystem(Enum):
    """Coordinate reference systems a dataset can declare.

    GEOGRAPHIC coordinates are (longitude, latitude) in decimal degrees and
    distances are reported in kilometres. PLANAR coordinates are projected
    (x, y) and distances are reported in the projection's units.
    """
    GEOGRAPHIC = "geographic"
    PLANAR = "planar"

    @property
    def is_geographic(self) -> bool:
        return self is CoordinateSystem.GEOGRAPHIC


class SiteCoordinates(Enum):
    """How a site's representative coordinate is derived from its records."""
    FIRST = "first"
    CENTROID = "centroid"


@dataclass(frozen=True)
class OccurrenceRecord:
    """One occurrence of a taxon at a site."""
    taxon_id: Hashable
    site_id: Hashable
    x: float
    y: float
    collection_id: Optional[Hashable] = None
    reference_id: Optional[Hashable] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Site:
    """A unique spatial unit with one representative coordinate."""
    site_id: Hashable
    x: float
    y: float

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.x, self.y)


RECORD_COLUMNS = ['taxon_id', 'site_id', 'x', 'y', 'collection_id', 'reference_id']
SITE_COLUMNS = ['site_id', 'x', 'y']


def sites_to_frame(sites: Iterable[Site]) -> pd.DataFrame:
    """Tabulate sites as a ``site_id, x, y`` frame."""
    return pd.DataFrame(
        [(s.site_id, s.x, s.y) for s in sites],
        columns=SITE_COLUMNS
    )


def records_to_frame(records: Iterable[OccurrenceRecord]) -> pd.DataFrame:
    """Tabulate occurrence records with one column per record field."""
    return pd.DataFrame(
        [(r.taxon_id, r.site_id, r.x, r.y, r.collection_id, r.reference_id)
         for r in records],
        columns=RECORD_COLUMNS
    )


class OccurrenceDataset:
    """Immutable set of occurrence records and the site pool derived from them.

    The site pool is built once, in first-seen order of site ids, and is
    shared read-only by every sampler that draws from the dataset.
    """

    def __init__(self,
                 records: Sequence[OccurrenceRecord],
                 crs: CoordinateSystem = CoordinateSystem.GEOGRAPHIC,
                 site_coordinates: SiteCoordinates = SiteCoordinates.FIRST):
        """Initialize dataset.

        Args:
            records: Occurrence records
            crs: Coordinate system shared by every record
            site_coordinates: How each site's representative point is chosen
        """
        self._records: Tuple[OccurrenceRecord, ...] = tuple(records)
        self.crs = CoordinateSystem(crs)
        self.site_coordinates = SiteCoordinates(site_coordinates)

        if not self._records:
            raise InvalidConfigurationError("Dataset contains no occurrence records")

        self._validate_coordinates()
        self._build_site_pool()

    def _validate_coordinates(self) -> None:
        xy = np.array([(r.x, r.y) for r in self._records], dtype=float)
        if not np.all(np.isfinite(xy)):
            n_bad = int((~np.isfinite(xy)).any(axis=1).sum())
            raise InvalidConfigurationError(f"{n_bad} records have missing or non-finite coordinates")

        if self.crs.is_geographic:
            if np.any(np.abs(xy[:, 0]) > 180) or np.any(np.abs(xy[:, 1]) > 90):
                raise InvalidConfigurationError(
                    "Geographic coordinates must lie within longitude [-180, 180] "
                    "and latitude [-90, 90]"
                )

    def _build_site_pool(self) -> None:
        grouped: Dict[Hashable, List[OccurrenceRecord]] = {}
        for record in self._records:
            grouped.setdefault(record.site_id, []).append(record)

        sites = []
        for site_id, members in grouped.items():
            if self.site_coordinates is SiteCoordinates.CENTROID:
                x = float(np.mean([r.x for r in members]))
                y = float(np.mean([r.y for r in members]))
            else:
                x, y = float(members[0].x), float(members[0].y)
            sites.append(Site(site_id, x, y))

        self._sites: Tuple[Site, ...] = tuple(sites)
        self._site_index = {site.site_id: i for i, site in enumerate(self._sites)}
        self._records_by_site = {k: tuple(v) for k, v in grouped.items()}
        self._coords = np.array([s.coordinates for s in self._sites], dtype=float)
        self._coords.setflags(write=False)

    @classmethod
    def from_frame(cls,
                   frame: pd.DataFrame,
                   taxon_col: str,
                   site_col: str,
                   x_col: str,
                   y_col: str,
                   collection_col: Optional[str] = None,
                   reference_col: Optional[str] = None,
                   crs: CoordinateSystem = CoordinateSystem.GEOGRAPHIC,
                   site_coordinates: SiteCoordinates = SiteCoordinates.FIRST) -> 'OccurrenceDataset':
        """Build a dataset from a table, resolving column names once.

        Args:
            frame: Occurrence table, one row per record
            taxon_col: Column holding taxon names or ids
            site_col: Column holding the site (grid cell) id
            x_col, y_col: Coordinate columns (longitude/latitude when geographic)
            collection_col: Optional collection id column
            reference_col: Optional reference id column
            crs: Coordinate system of ``x_col``/``y_col``
            site_coordinates: How each site's representative point is chosen

        Raises:
            InvalidConfigurationError: if a named column is absent or a
                required field is missing in any row
        """
        selected = {
            'taxon_id': taxon_col, 'site_id': site_col, 'x': x_col, 'y': y_col,
            'collection_id': collection_col, 'reference_id': reference_col
        }
        missing_cols = [c for c in selected.values() if c is not None and c not in frame.columns]
        if missing_cols:
            raise InvalidConfigurationError(f"Columns not found in occurrence table: {missing_cols}")

        required = [taxon_col, site_col, x_col, y_col]
        incomplete = frame[required].isna().any(axis=1)
        if incomplete.any():
            raise InvalidConfigurationError(
                f"{int(incomplete.sum())} rows lack a taxon, site or coordinate value"
            )

        columns = {}
        for field_name, col in selected.items():
            if col is None:
                columns[field_name] = [None] * len(frame)
            else:
                values = frame[col].astype(object).where(frame[col].notna(), None)
                columns[field_name] = values.tolist()

        records = [
            OccurrenceRecord(
                taxon_id=t, site_id=s, x=float(x), y=float(y),
                collection_id=c, reference_id=r
            )
            for t, s, x, y, c, r in zip(
                columns['taxon_id'], columns['site_id'], columns['x'], columns['y'],
                columns['collection_id'], columns['reference_id']
            )
        ]
        return cls(records, crs=crs, site_coordinates=site_coordinates)

    def with_records(self, records: Sequence[OccurrenceRecord]) -> 'OccurrenceDataset':
        """New dataset over ``records`` with the same coordinate settings."""
        return OccurrenceDataset(records, crs=self.crs, site_coordinates=self.site_coordinates)

    @property
    def records(self) -> Tuple[OccurrenceRecord, ...]:
        return self._records

    @property
    def site_pool(self) -> Tuple[Site, ...]:
        return self._sites

    @property
    def site_coordinates_array(self) -> np.ndarray:
        """Read-only (n_sites, 2) array aligned with ``site_pool``."""
        return self._coords

    @property
    def n_sites(self) -> int:
        return len(self._sites)

    @property
    def n_records(self) -> int:
        return len(self._records)

    def site_position(self, site_id: Hashable) -> int:
        """Index of ``site_id`` in the site pool."""
        return self._site_index[site_id]

    def records_for_sites(self, site_ids: Iterable[Hashable]) -> Tuple[OccurrenceRecord, ...]:
        """Records whose site id is in ``site_ids``, in dataset order."""
        wanted = set(site_ids)
        return tuple(r for r in self._records if r.site_id in wanted)

    def to_frame(self) -> pd.DataFrame:
        return records_to_frame(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return (f"OccurrenceDataset(n_records={self.n_records}, n_sites={self.n_sites}, "
                f"crs={self.crs.value})")
