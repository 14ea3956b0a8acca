"""
Tests for firegrid/grid: GridIndexer and the covering strategy chain.

Coverage targets:
- Global and viewport generation over a small synthetic coverage area
- Viewport clipping (outside coverage -> empty grid, partial -> subset)
- Strategy agreement: SRAI regionalizer, lattice scan and h3 centre fill
- Fallback: failing primary strategy, exhausted chain, lattice budget
- Input rejection: invalid resolution, malformed coverage polygon

The coverage area is a ~45 km box around Madrid so every test runs on a few
dozen res-6 cells instead of the whole country.
"""

import h3
import pytest
from shapely.geometry import LineString, Polygon

from firegrid.exceptions import GenerationError, ValidationError
from firegrid.geometry import cells_with_center_in
from firegrid.grid import (
    GenerationStrategy,
    GridIndexer,
    LatticeScanStrategy,
    RegionalizerStrategy,
)
from firegrid.models import BoundingBox, Region


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_RES = 6
_COVERAGE = BoundingBox(north=40.6, south=40.2, east=-3.4, west=-3.9)


class _FailingStrategy(GenerationStrategy):
    name = "failing"

    def __init__(self):
        self.calls = 0

    def cover(self, polygon, resolution):
        self.calls += 1
        raise RuntimeError("indexing service unavailable")


class _CentreStrategy(GenerationStrategy):
    name = "centre"

    def cover(self, polygon, resolution):
        return cells_with_center_in(polygon, resolution)


def _indexer(*strategies):
    return GridIndexer(coverage_bounds=_COVERAGE, strategies=list(strategies) or None)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def global_grid():
    return _indexer(_CentreStrategy()).generate(_RES, Region.global_())


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGenerate:

    def test_global_grid(self, global_grid):
        assert global_grid.resolution == _RES
        assert global_grid.region.is_global
        # ~45 x 44 km at ~36 km2 per cell
        assert 20 < len(global_grid) < 150
        assert all(h3.get_resolution(c) == _RES for c in global_grid.cells)

    def test_cell_ids_unique_and_sorted(self, global_grid):
        ids = list(global_grid.cells)
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_cells_carry_closed_boundaries(self, global_grid):
        for cell in global_grid.cells.values():
            assert cell.boundary[0] == cell.boundary[-1]
            assert cell.resolution == _RES

    def test_generation_is_deterministic(self, global_grid):
        again = _indexer(_CentreStrategy()).generate(_RES, Region.global_())
        assert again.cell_ids == global_grid.cell_ids

    def test_viewport_outside_coverage_is_empty(self):
        region = Region.viewport(north=10.0, south=9.0, east=10.0, west=9.0)
        grid = _indexer(_CentreStrategy()).generate(_RES, region)
        assert len(grid) == 0
        assert grid.region == region

    def test_viewport_is_clipped_to_coverage(self, global_grid):
        # Overlaps the north-east corner of the coverage area
        region = Region.viewport(north=41.0, south=40.4, east=-3.0, west=-3.65)
        grid = _indexer(_CentreStrategy()).generate(_RES, region)
        assert len(grid) > 0
        assert grid.cell_ids < global_grid.cell_ids

    def test_wire_format_uses_lnglat(self, global_grid):
        wire = global_grid.to_wire()
        assert wire["cell_count"] == len(global_grid)
        ring = wire["cells"][0]["boundary"]
        lng, lat = ring[0]
        assert -4.0 < lng < -3.3
        assert 40.1 < lat < 40.7
        assert ring[0] == ring[-1]

    def test_to_gdf(self, global_grid):
        gdf = global_grid.to_gdf()
        assert gdf.index.name == "region_id"
        assert gdf.crs.to_epsg() == 4326
        assert len(gdf) == len(global_grid)
        assert gdf.geometry.is_valid.all()


class TestInputRejection:

    @pytest.mark.parametrize("resolution", [-1, 16, "6"])
    def test_invalid_resolution(self, resolution):
        with pytest.raises(ValidationError):
            _indexer(_CentreStrategy()).generate(resolution, Region.global_())

    def test_self_intersecting_coverage(self):
        bowtie = Polygon([(-3.9, 40.2), (-3.4, 40.6), (-3.4, 40.2), (-3.9, 40.6)])
        indexer = GridIndexer(coverage_polygon=bowtie, strategies=[_CentreStrategy()])
        with pytest.raises(GenerationError, match="malformed"):
            indexer.generate(_RES, Region.global_())

    def test_non_polygonal_coverage(self):
        line = LineString([(-3.9, 40.2), (-3.4, 40.6)])
        indexer = GridIndexer(coverage_polygon=line, strategies=[_CentreStrategy()])
        with pytest.raises(GenerationError, match="not polygonal"):
            indexer.generate(_RES, Region.global_())

    def test_empty_strategy_chain(self):
        with pytest.raises(ValueError):
            GridIndexer(coverage_bounds=_COVERAGE, strategies=[])

    def test_viewport_validation(self):
        with pytest.raises(ValidationError):
            Region.viewport(north=40.0, south=41.0, east=-3.0, west=-4.0)


# ---------------------------------------------------------------------------
# Strategy chain
# ---------------------------------------------------------------------------


class TestStrategyChain:

    def test_fallback_after_primary_failure(self, global_grid):
        failing = _FailingStrategy()
        grid = _indexer(failing, LatticeScanStrategy()).generate(_RES, Region.global_())
        assert failing.calls == 1
        assert grid.cell_ids == global_grid.cell_ids

    def test_all_strategies_failing(self):
        with pytest.raises(GenerationError, match="All generation strategies failed"):
            _indexer(_FailingStrategy(), _FailingStrategy()).generate(_RES, Region.global_())

    def test_lattice_budget_exceeded(self):
        strategy = LatticeScanStrategy(max_samples=10)
        with pytest.raises(GenerationError, match="samples"):
            strategy.cover(_COVERAGE.to_polygon(), _RES)

    def test_lattice_budget_falls_through_chain(self, global_grid):
        grid = _indexer(LatticeScanStrategy(max_samples=10), _CentreStrategy()).generate(
            _RES, Region.global_()
        )
        assert grid.cell_ids == global_grid.cell_ids


class TestStrategyAgreement:
    """Every strategy applies centre containment to the same polygon."""

    @pytest.fixture(scope="class")
    def polygon(self):
        return _COVERAGE.to_polygon()

    @pytest.fixture(scope="class")
    def expected(self, polygon):
        return cells_with_center_in(polygon, _RES)

    def test_regionalizer_matches_centre_fill(self, polygon, expected):
        assert RegionalizerStrategy().cover(polygon, _RES) == expected

    def test_lattice_matches_centre_fill(self, polygon, expected):
        assert LatticeScanStrategy().cover(polygon, _RES) == expected

    def test_lattice_matches_at_finer_resolution(self):
        small = BoundingBox(north=40.45, south=40.40, east=-3.65, west=-3.72).to_polygon()
        assert LatticeScanStrategy().cover(small, 8) == cells_with_center_in(small, 8)
