"""Collapse duplicate taxon-at-location occurrences ("uniqify")."""

from typing import Sequence, Union

import pandas as pd

from ..abstractions.types import OccurrenceDataset, OccurrenceRecord
from ..exceptions import InvalidConfigurationError
from ..infrastructure.logging import get_logger

logger = get_logger(__name__)

RECORD_FIELDS = ('taxon_id', 'site_id', 'x', 'y', 'collection_id', 'reference_id')


def dedupe(data: Union[OccurrenceDataset, pd.DataFrame],
           taxon_key: str = 'taxon_id',
           coordinate_keys: Sequence[str] = ('x', 'y'),
           drop_missing: bool = True):
    """Keep the first occurrence of every (taxon, coordinates) combination.

    Order of the surviving records follows their first appearance. The
    function is pure and idempotent.

    Args:
        data: OccurrenceDataset (keys name record fields) or DataFrame (keys
            name columns)
        taxon_key: Field or column identifying the taxon
        coordinate_keys: Fields or columns identifying the location, e.g.
            ``('x', 'y')`` for raw coordinates or ``('site_id',)`` for cells
        drop_missing: For tables, drop rows with a missing key value first

    Returns:
        Same type as ``data``
    """
    keys = [taxon_key, *coordinate_keys]
    if len(coordinate_keys) == 0:
        raise InvalidConfigurationError("coordinate_keys must name at least one field")

    if isinstance(data, OccurrenceDataset):
        unknown = [k for k in keys if k not in RECORD_FIELDS]
        if unknown:
            raise InvalidConfigurationError(f"Unknown occurrence record fields: {unknown}")
        kept = _first_per_key(data.records, keys)
        logger.debug(f"uniqify: {data.n_records - len(kept)} duplicate records removed")
        return data.with_records(kept)

    if isinstance(data, pd.DataFrame):
        missing_cols = [k for k in keys if k not in data.columns]
        if missing_cols:
            raise InvalidConfigurationError(f"Columns not found: {missing_cols}")
        frame = data.dropna(subset=keys) if drop_missing else data
        result = frame.drop_duplicates(subset=keys, keep='first')
        logger.debug(f"uniqify: {len(data) - len(result)} rows removed")
        return result

    raise InvalidConfigurationError(f"Cannot deduplicate {type(data).__name__}")


def _first_per_key(records: Sequence[OccurrenceRecord], keys: Sequence[str]):
    seen = set()
    kept = []
    for record in records:
        key = tuple(getattr(record, k) for k in keys)
        if key in seen:
            continue
        seen.add(key)
        kept.append(record)
    return kept


uniqify = dedupe
