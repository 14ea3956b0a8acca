"""
Service facade over the fire grid core.

FireGridService wires the components explicitly (no module-level
singletons) and exposes the operations an HTTP layer or a script needs:

    service = FireGridService.from_config()
    service.get_grid_for_zoom(8)
    service.aggregate_range("2025-07-01", "2025-07-31", 6)
    service.cache_status()

Validation errors are raised before any work is done. Any other
FireGridError during an aggregation, or a record store that cannot be
read, degrades to an empty, zero-valued result so a failed computation
never takes the host down.
"""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from firegrid.aggregation import AggregationCache, FireBinner
from firegrid.config import FireGridConfig, configure_logging
from firegrid.exceptions import FireGridError, ValidationError
from firegrid.geometry import ResolutionSelector, validate_resolution
from firegrid.grid import (
    CacheStorage,
    DiskStorage,
    GridCache,
    GridIndexer,
    LatticeScanStrategy,
    MemoryStorage,
    RegionalizerStrategy,
)
from firegrid.models import AggregationResult, FireRecord, Grid, Region
from firegrid.paths import DataPaths
from firegrid.records import JsonRecordStore, RecordStore, parse_date

logger = logging.getLogger(__name__)

DateLike = Union[str, date]
Viewport = Mapping[str, float]


class FireGridService:
    """Grids, aggregations and cache administration behind one object."""

    def __init__(
        self,
        config: Optional[FireGridConfig] = None,
        storage: Optional[CacheStorage] = None,
        record_store: Optional[RecordStore] = None,
        indexer: Optional[GridIndexer] = None,
    ):
        self.config = config or FireGridConfig()
        self.paths = DataPaths(self.config.data_root)

        if storage is None:
            if self.config.grid_storage == 'memory':
                storage = MemoryStorage()
            else:
                storage = DiskStorage(self.paths.grid_cache())

        if indexer is None:
            indexer = GridIndexer(
                coverage_bounds=self.config.coverage_box(),
                strategies=[
                    RegionalizerStrategy(),
                    LatticeScanStrategy(
                        step_fraction=self.config.lattice_step_fraction,
                        max_samples=self.config.lattice_max_samples,
                    ),
                ],
            )

        self.selector = ResolutionSelector(
            tuple((threshold, resolution) for threshold, resolution in self.config.zoom_resolution_steps)
        )
        self.grid_cache = GridCache(indexer, storage)
        self.binner = FireBinner()
        self.aggregation_cache = AggregationCache(
            self.grid_cache, self.binner, max_entries=self.config.aggregation_cache_size,
        )
        self.record_store = record_store or JsonRecordStore(
            self.paths.historical(), self.paths.current_file()
        )

    @classmethod
    def from_config(cls, config_path: Optional[Union[str, Path]] = None, **kwargs) -> 'FireGridService':
        """Build a service from a YAML file (the packaged default when None)."""
        config = FireGridConfig.from_yaml(config_path) if config_path else FireGridConfig.default()
        configure_logging(config.log_level.upper())
        return cls(config, **kwargs)

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    def region_for(self, viewport: Optional[Viewport] = None) -> Region:
        """Global region when ``viewport`` is None, else the quantized viewport."""
        if viewport is None:
            return Region.global_()
        try:
            return Region.viewport(
                north=viewport['north'],
                south=viewport['south'],
                east=viewport['east'],
                west=viewport['west'],
                precision=self.config.viewport_precision,
            )
        except KeyError as e:
            raise ValidationError(f"Viewport is missing {e.args[0]!r}") from e

    # ------------------------------------------------------------------
    # Grids
    # ------------------------------------------------------------------

    def grid(self, resolution: int, region: Optional[Region] = None) -> Grid:
        return self.grid_cache.get(resolution, region or Region.global_())

    def get_grid(self, resolution: int, region: Optional[Region] = None) -> Dict[str, Any]:
        """Grid payload with ``[lng, lat]`` rings."""
        return self.grid(resolution, region).to_wire()

    def get_grid_for_zoom(self, zoom: float, viewport: Optional[Viewport] = None) -> Dict[str, Any]:
        resolution = self.selector.resolution_for_zoom(zoom)
        return self.get_grid(resolution, self.region_for(viewport))

    def get_grid_geojson(self, zoom: float, viewport: Optional[Viewport] = None) -> Dict[str, Any]:
        resolution = self.selector.resolution_for_zoom(zoom)
        return self.grid(resolution, self.region_for(viewport)).to_feature_collection()

    async def get_grid_async(self, resolution: int, region: Optional[Region] = None) -> Dict[str, Any]:
        """``get_grid`` in a worker thread; covering is CPU-bound."""
        return await asyncio.to_thread(self.get_grid, resolution, region)

    def pregenerate(self, resolutions: Optional[Iterable[int]] = None) -> Dict[int, int]:
        resolutions = list(resolutions) if resolutions is not None else self.config.overview_resolutions
        return self.grid_cache.pregenerate(resolutions)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate_snapshot(self, records: Iterable[FireRecord], grid: Grid) -> AggregationResult:
        """Bin ``records`` onto an existing grid (no caching)."""
        return self.binner.aggregate(grid, records)

    def aggregate_day(self, day: DateLike, resolution: int,
                      region: Optional[Region] = None) -> AggregationResult:
        """Snapshot aggregation of one day's records."""
        day = parse_date(day)
        resolution = validate_resolution(resolution)
        try:
            records = self.record_store.query(day)
        except Exception as e:
            logger.error(f"Could not read fire records for {day}: {e}")
            return AggregationResult.empty(resolution, day, day)
        try:
            grid = self.grid(resolution, region)
            return self.binner.aggregate(grid, records, start=day, end=day)
        except FireGridError as e:
            logger.error(f"Aggregation for {day} at res{resolution} failed: {e}")
            return AggregationResult.empty(resolution, day, day)

    def aggregate_range(self, start: DateLike, end: DateLike, resolution: int) -> AggregationResult:
        """Cumulative aggregation over ``start``..``end`` (inclusive), cached."""
        start, end = parse_date(start), parse_date(end)
        if start > end:
            raise ValidationError(f"Start date {start} is after end date {end}")
        resolution = validate_resolution(resolution)
        try:
            return self.aggregation_cache.get_or_compute(
                start, end, resolution, self.record_store.query_range
            )
        except FireGridError as e:
            logger.error(f"Cumulated aggregation {start}..{end} at res{resolution} failed: {e}")
            return AggregationResult.empty(resolution, start, end)

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    def cache_status(self) -> Dict[str, Any]:
        return {
            "grids": self.grid_cache.status(),
            "aggregations": self.aggregation_cache.stats(),
        }

    def clear_cache(self) -> Dict[str, int]:
        """Drop every cached grid and aggregation."""
        removed = self.grid_cache.invalidate()
        aggregations = self.aggregation_cache.stats()["size"]
        self.aggregation_cache.clear()
        return {"grids": removed, "aggregations": aggregations}
