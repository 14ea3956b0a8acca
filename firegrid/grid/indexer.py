"""
Grid indexer: enumerate the hexagon cells covering a region.

The "global" region is the fixed coverage polygon (mainland Spain plus a
margin by default). Viewports are clipped to that polygon, so a viewport
wholly outside the covered territory produces an empty grid rather than an
error.
"""

import logging
import time
from typing import List, Optional, Set

import shapely
from shapely.geometry.base import BaseGeometry

from firegrid.exceptions import GenerationError
from firegrid.geometry import cell_boundary, log_grid_summary, validate_resolution
from firegrid.grid.strategies import (
    GenerationStrategy,
    LatticeScanStrategy,
    RegionalizerStrategy,
)
from firegrid.models import BoundingBox, Grid, HexagonCell, Region

logger = logging.getLogger(__name__)

# Mainland Spain and the Balearics, slightly expanded to ensure coverage.
SPAIN_BOUNDS = BoundingBox(north=44.0, south=35.8, east=3.5, west=-9.5)


def default_strategies() -> List[GenerationStrategy]:
    """Primary SRAI regionalizer, then the naive lattice scan."""
    return [RegionalizerStrategy(), LatticeScanStrategy()]


class GridIndexer:
    """Compute hexagon grids for the coverage area or a viewport.

    Usage::

        indexer = GridIndexer()
        grid = indexer.generate(6, Region.global_())
        grid = indexer.generate(7, Region.viewport(north=40.6, south=40.2, east=-3.4, west=-3.9))
    """

    def __init__(
        self,
        coverage_bounds: BoundingBox = SPAIN_BOUNDS,
        strategies: Optional[List[GenerationStrategy]] = None,
        coverage_polygon: Optional[BaseGeometry] = None,
    ):
        self.coverage_bounds = coverage_bounds
        self.coverage_polygon = (
            coverage_polygon if coverage_polygon is not None else coverage_bounds.to_polygon()
        )
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        if not self.strategies:
            raise ValueError("GridIndexer needs at least one generation strategy")

    # ------------------------------------------------------------------
    # Region handling
    # ------------------------------------------------------------------

    def _check_polygon(self, polygon: BaseGeometry, label: str) -> None:
        if polygon.geom_type not in ("Polygon", "MultiPolygon"):
            raise GenerationError(f"Region {label} is not polygonal: {polygon.geom_type}")
        if not polygon.is_valid:
            raise GenerationError(
                f"Region {label} is malformed: {shapely.is_valid_reason(polygon)}"
            )

    def region_polygon(self, region: Region) -> Optional[BaseGeometry]:
        """Polygon to cover for ``region``, or None when nothing is covered."""
        self._check_polygon(self.coverage_polygon, "coverage")
        if region.is_global:
            return self.coverage_polygon

        clipped = region.bbox.to_polygon().intersection(self.coverage_polygon)
        if clipped.geom_type == "GeometryCollection":
            parts = [g for g in clipped.geoms if g.geom_type in ("Polygon", "MultiPolygon")]
            clipped = shapely.unary_union(parts) if parts else shapely.Polygon()
        if clipped.is_empty or clipped.area == 0:
            return None
        self._check_polygon(clipped, region.key)
        return clipped

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def cover(self, polygon: BaseGeometry, resolution: int) -> Set[str]:
        """Run the strategy chain; the first strategy that succeeds wins."""
        failures = []
        for strategy in self.strategies:
            try:
                cell_ids = strategy.cover(polygon, resolution)
            except Exception as e:
                logger.warning(
                    f"Generation strategy '{strategy.name}' failed at res{resolution}: {e}"
                )
                failures.append(f"{strategy.name}: {e}")
                continue
            if failures:
                logger.info(f"Fell back to '{strategy.name}' after {len(failures)} failure(s)")
            return cell_ids

        raise GenerationError(
            f"All generation strategies failed at res{resolution}: " + "; ".join(failures)
        )

    def generate(self, resolution: int, region: Region) -> Grid:
        """Build the grid for ``region`` at ``resolution``.

        Raises:
            ValidationError: Resolution outside 0-15.
            GenerationError: Malformed region or every strategy failed.
        """
        resolution = validate_resolution(resolution)
        logger.info(f"Generating hexagon grid for {region.key} at resolution {resolution}...")
        start_time = time.time()

        polygon = self.region_polygon(region)
        if polygon is None:
            logger.info(f"Region {region.key} does not intersect the coverage area; empty grid")
            return Grid(resolution=resolution, cells={}, region=region)

        cell_ids = self.cover(polygon, resolution)
        cells = {
            cell_id: HexagonCell(cell_id, cell_boundary(cell_id), resolution)
            for cell_id in sorted(cell_ids)
        }

        elapsed_ms = (time.time() - start_time) * 1000
        log_grid_summary(resolution, len(cells), region.key, logger)
        logger.info(f"Generated grid for {region.key} in {elapsed_ms:.0f}ms")
        return Grid(resolution=resolution, cells=cells, region=region)
