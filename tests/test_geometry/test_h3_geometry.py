"""
Unit tests for the H3 geometry helpers.

Validates the zoom -> resolution policy, coordinate-order conversions and
polygon covering against actual H3 library operations.
"""

import h3
import pytest
from shapely.geometry import LineString, MultiPolygon, Point, Polygon, box

from firegrid.exceptions import ValidationError
from firegrid.geometry import (
    ResolutionSelector,
    average_edge_length_km,
    cell_boundary,
    cell_centroid,
    cell_for_point,
    cell_polygon,
    cells_for_geometry,
    cells_with_center_in,
    to_lnglat_ring,
    validate_resolution,
)

# Central Madrid
MADRID = (40.4168, -3.7038)


def _madrid_cell(resolution=6):
    cell = h3.latlng_to_cell(*MADRID, resolution)
    assert not h3.is_pentagon(cell)
    return cell


class TestResolutionSelector:
    """Zoom level -> resolution step table."""

    def test_default_policy(self):
        selector = ResolutionSelector()
        assert selector.resolution_for_zoom(0) == 6
        assert selector.resolution_for_zoom(5.5) == 6
        assert selector.resolution_for_zoom(8.99) == 6
        assert selector.resolution_for_zoom(9) == 7
        assert selector.resolution_for_zoom(18) == 7

    def test_zoom_below_every_threshold_gets_first_tier(self):
        selector = ResolutionSelector([(3, 5), (9, 7)])
        assert selector.resolution_for_zoom(-2) == 5
        assert selector.resolution_for_zoom(1) == 5

    def test_custom_steps_are_sorted(self):
        selector = ResolutionSelector([(11, 8), (0, 5), (7, 6)])
        assert selector.steps == [(0.0, 5), (7.0, 6), (11.0, 8)]
        assert selector.resolution_for_zoom(10) == 6
        assert selector.resolution_for_zoom(11) == 8

    def test_duplicate_thresholds_rejected(self):
        with pytest.raises(ValidationError):
            ResolutionSelector([(0, 6), (0, 7)])

    def test_invalid_resolution_in_table_rejected(self):
        with pytest.raises(ValidationError):
            ResolutionSelector([(0, 6), (9, 16)])


class TestValidateResolution:

    @pytest.mark.parametrize("resolution", [0, 6, 15])
    def test_valid(self, resolution):
        assert validate_resolution(resolution) == resolution

    @pytest.mark.parametrize("resolution", [-1, 16, 6.0, "6", None, True])
    def test_invalid(self, resolution):
        with pytest.raises(ValidationError):
            validate_resolution(resolution)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_resolution(99)


class TestCellGeometry:
    """Boundary rings and coordinate order."""

    def test_boundary_is_closed_hexagon(self):
        ring = cell_boundary(_madrid_cell())
        assert len(ring) == 7
        assert ring[0] == ring[-1]

    def test_boundary_keeps_h3_order(self):
        lat, lng = cell_boundary(_madrid_cell())[0]
        # Madrid: latitude ~40, longitude ~-3.7
        assert 39 < lat < 42
        assert -5 < lng < -2

    def test_lnglat_ring_swaps_order(self):
        boundary = cell_boundary(_madrid_cell())
        ring = to_lnglat_ring(boundary)
        assert ring[0] == [boundary[0][1], boundary[0][0]]
        assert ring[0] == ring[-1]
        assert len(ring) == len(boundary)

    def test_lnglat_ring_closes_open_ring(self):
        ring = to_lnglat_ring([(40.0, -3.0), (40.1, -3.0), (40.1, -3.1)])
        assert len(ring) == 4
        assert ring[-1] == [-3.0, 40.0]

    def test_cell_polygon_contains_centre(self):
        cell = _madrid_cell()
        lat, lng = h3.cell_to_latlng(cell)
        polygon = cell_polygon(cell)
        assert polygon.is_valid
        assert polygon.contains(Point(lng, lat))

    def test_centroid_close_to_h3_centre(self):
        cell = _madrid_cell()
        lat, lng = cell_centroid(cell)
        h3_lat, h3_lng = h3.cell_to_latlng(cell)
        assert lat == pytest.approx(h3_lat, abs=1e-3)
        assert lng == pytest.approx(h3_lng, abs=1e-3)

    def test_cell_for_point(self):
        assert cell_for_point(*MADRID, 6) == _madrid_cell(6)
        assert h3.get_resolution(cell_for_point(*MADRID, 9)) == 9

    def test_edge_length_shrinks_with_resolution(self):
        lengths = [average_edge_length_km(r) for r in range(0, 16)]
        assert all(a > b for a, b in zip(lengths, lengths[1:]))


class TestCovering:
    """Polygon -> cells, centre containment vs. intersection."""

    @pytest.mark.parametrize("resolution", range(0, 16))
    def test_covered_cells_resolve_back_to_themselves(self, resolution):
        # Box of about one edge length around Madrid, capped for coarse levels
        half = min(average_edge_length_km(resolution) / 111.0, 0.2)
        lat, lng = MADRID
        cells = cells_for_geometry(box(lng - half, lat - half, lng + half, lat + half), resolution)
        assert cells
        for cell in cells:
            assert cell_for_point(*cell_centroid(cell), resolution) == cell

    def test_tiny_polygon_inside_one_cell(self):
        cell = _madrid_cell()
        lat, lng = h3.cell_to_latlng(cell)
        # ~100 m square, offset ~400 m from the cell centre
        tiny = box(lng + 0.0045, lat - 0.0005, lng + 0.0055, lat + 0.0005)

        assert cells_with_center_in(tiny, 6) == set()
        assert cells_for_geometry(tiny, 6) == {cell}

    def test_polygon_around_vertex_hits_three_cells(self):
        cell = _madrid_cell()
        v_lat, v_lng = h3.cell_to_boundary(cell)[0]
        around_vertex = box(v_lng - 0.001, v_lat - 0.001, v_lng + 0.001, v_lat + 0.001)

        cells = cells_for_geometry(around_vertex, 6)
        assert len(cells) == 3
        assert cell in cells

    def test_intersection_cover_contains_centre_cover(self):
        viewport = box(-3.9, 40.2, -3.4, 40.6)
        centre = cells_with_center_in(viewport, 6)
        cover = cells_for_geometry(viewport, 6)

        assert centre
        assert centre <= cover
        assert all(cell_polygon(c).intersects(viewport) for c in cover)
        assert all(h3.get_resolution(c) == 6 for c in cover)

    def test_multipolygon(self):
        a = box(-3.71, 40.41, -3.70, 40.42)
        b = box(-1.01, 41.61, -1.00, 41.62)
        cells = cells_for_geometry(MultiPolygon([a, b]), 6)
        assert cells_for_geometry(a, 6) | cells_for_geometry(b, 6) == cells

    def test_empty_geometry(self):
        assert cells_for_geometry(Polygon(), 6) == set()
        assert cells_for_geometry(None, 6) == set()

    def test_non_polygonal_rejected(self):
        with pytest.raises(ValueError):
            cells_for_geometry(Point(-3.7, 40.4), 6)
        with pytest.raises(ValueError):
            cells_with_center_in(LineString([(-3.7, 40.4), (-3.6, 40.5)]), 6)

    def test_invalid_resolution_rejected(self):
        with pytest.raises(ValidationError):
            cells_for_geometry(box(-3.9, 40.2, -3.4, 40.6), 16)
