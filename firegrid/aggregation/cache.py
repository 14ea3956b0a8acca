"""
Memoization of cumulative (date-range) aggregations.

Computing a range aggregation pulls records for every day in the range from
the record store, so results are cached under ``(start, end, resolution)``
plus the key of the region whose grid they were binned onto.
The cache is a bounded LRU: once ``max_entries`` is reached the least
recently used result is evicted.
"""

import logging
from collections import OrderedDict
from datetime import date
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from firegrid.aggregation.binner import FireBinner
from firegrid.geometry import validate_resolution
from firegrid.grid.cache import GridCache
from firegrid.models import AggregationResult, FireRecord, Region

logger = logging.getLogger(__name__)

RecordsProvider = Callable[[date, date], Iterable[FireRecord]]
CacheKey = Tuple[date, date, int, str]


class AggregationCache:
    """Get-or-compute cache of range aggregations (global grid by default)."""

    def __init__(self, grid_cache: GridCache, binner: Optional[FireBinner] = None,
                 max_entries: int = 128):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.grid_cache = grid_cache
        self.binner = binner or FireBinner()
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, AggregationResult]" = OrderedDict()

    @staticmethod
    def key_label(key: CacheKey) -> str:
        start, end, resolution, region_key = key
        label = f"{start.isoformat()}_{end.isoformat()}_{resolution}"
        if region_key != Region.global_().key:
            label = f"{label}_{region_key}"
        return label

    def get_or_compute(
        self,
        start: date,
        end: date,
        resolution: int,
        records_provider: RecordsProvider,
        region: Optional[Region] = None,
    ) -> AggregationResult:
        resolution = validate_resolution(resolution)
        region = region or Region.global_()
        key = (start, end, resolution, region.key)
        if key in self._entries:
            self._entries.move_to_end(key)
            logger.info(f"Using cached cumulated fire data for {self.key_label(key)}")
            return self._entries[key]

        logger.info(
            f"Calculating cumulated fire data for {start} to {end} at resolution {resolution}"
        )
        records = list(records_provider(start, end))
        grid = self.grid_cache.get(resolution, region)
        result = self.binner.aggregate(grid, records, start=start, end=end)

        self._entries[key] = result
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.info(f"Evicted cumulated fire data for {self.key_label(evicted)}")
        return result

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cumulated fire data cache cleared")

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "keys": [self.key_label(k) for k in self._entries],
            "max_entries": self.max_entries,
        }
