"""
H3 Geometry Helpers for the Fire Grid
=====================================

Thin layer over the ``h3`` (v4) API used by the grid indexer and the fire
binner. Everything that touches coordinate order lives here so the rest of
the package never has to remember which library wants what.

Coordinate conventions:
- H3 speaks ``(lat, lng)``: ``cell_to_boundary`` and ``latlng_to_cell``.
- Shapely and GeoJSON speak ``(lng, lat)``.
- HexagonCell.boundary keeps H3 order; anything emitted to collaborators is
  normalised to closed ``[lng, lat]`` rings by ``to_lnglat_ring``.

Key Functions:
- ResolutionSelector: zoom level -> H3 resolution step table
- cell_for_point: the single cell covering a point
- cells_for_geometry: every cell a (multi)polygon intersects
- cell_boundary / cell_polygon: closed boundary ring and shapely polygon
"""

import logging
from bisect import bisect_right
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import h3
import shapely
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from firegrid.exceptions import ValidationError

logger = logging.getLogger(__name__)

MIN_RESOLUTION = 0
MAX_RESOLUTION = 15

# Mean length of one degree of latitude.
KM_PER_DEGREE = 111.32

LatLng = Tuple[float, float]


# ============================================================================
# RESOLUTION
# ============================================================================

def validate_resolution(resolution) -> int:
    """Return ``resolution`` as an int, or raise ValidationError.

    Booleans are rejected even though they are ints.
    """
    if isinstance(resolution, bool) or not isinstance(resolution, int):
        raise ValidationError(f"Resolution must be an integer, got {resolution!r}")
    if resolution < MIN_RESOLUTION or resolution > MAX_RESOLUTION:
        raise ValidationError(
            f"Invalid resolution: {resolution}. "
            f"Must be between {MIN_RESOLUTION} and {MAX_RESOLUTION}."
        )
    return resolution


class ResolutionSelector:
    """Map a map zoom level to an H3 resolution tier.

    The policy is an ordered step table of ``(zoom_threshold, resolution)``
    pairs. The tier with the highest threshold <= zoom wins; a zoom below
    every threshold gets the first tier.

    Default policy: zoom < 9 -> 6, zoom >= 9 -> 7.

    Usage::

        selector = ResolutionSelector()
        selector.resolution_for_zoom(5.5)   # 6
        selector.resolution_for_zoom(12)    # 7
    """

    DEFAULT_STEPS = ((0, 6), (9, 7))

    def __init__(self, steps: Optional[Sequence[Tuple[float, int]]] = None):
        steps = sorted(tuple(s) for s in (steps or self.DEFAULT_STEPS))
        if not steps:
            raise ValidationError("Resolution step table must not be empty")
        thresholds = [float(t) for t, _ in steps]
        if len(set(thresholds)) != len(thresholds):
            raise ValidationError(f"Duplicate zoom thresholds in step table: {steps}")
        self._thresholds = thresholds
        self._resolutions = [validate_resolution(r) for _, r in steps]

    @property
    def steps(self) -> List[Tuple[float, int]]:
        return list(zip(self._thresholds, self._resolutions))

    def resolution_for_zoom(self, zoom: float) -> int:
        idx = bisect_right(self._thresholds, zoom) - 1
        return self._resolutions[max(idx, 0)]


def average_edge_length_km(resolution: int) -> float:
    """Average hexagon edge length at ``resolution`` in kilometres."""
    return h3.average_hexagon_edge_length(resolution, unit="km")


# ============================================================================
# CELL GEOMETRY
# ============================================================================

def cell_boundary(cell_id: str) -> Tuple[LatLng, ...]:
    """Closed boundary ring of a cell in H3 ``(lat, lng)`` order."""
    ring = tuple((float(lat), float(lng)) for lat, lng in h3.cell_to_boundary(cell_id))
    return ring + (ring[0],)


def to_lnglat_ring(boundary: Iterable[Sequence[float]]) -> List[List[float]]:
    """Convert an H3 ``(lat, lng)`` ring into a closed GeoJSON ``[lng, lat]`` ring."""
    ring = [[float(lng), float(lat)] for lat, lng in boundary]
    if ring and ring[0] != ring[-1]:
        ring.append(list(ring[0]))
    return ring


def cell_polygon(cell_id: str) -> Polygon:
    """Shapely polygon of a cell in ``(lng, lat)`` order."""
    # h3.cell_to_boundary returns (lat, lon), but Polygon expects (lon, lat)
    return Polygon([(lng, lat) for lat, lng in h3.cell_to_boundary(cell_id)])


def cell_centroid(cell_id: str) -> LatLng:
    """Centroid of a cell's boundary polygon as ``(lat, lng)``."""
    centroid = cell_polygon(cell_id).centroid
    return centroid.y, centroid.x


def cell_for_point(lat: float, lng: float, resolution: int) -> str:
    """The single cell covering a point."""
    return h3.latlng_to_cell(lat, lng, resolution)


# ============================================================================
# POLYGON COVERING
# ============================================================================

def _polygonal(geometry: BaseGeometry) -> BaseGeometry:
    if geometry.geom_type not in ("Polygon", "MultiPolygon"):
        raise ValueError(f"Expected a Polygon or MultiPolygon, got {geometry.geom_type}")
    return geometry


def cells_with_center_in(geometry: BaseGeometry, resolution: int) -> Set[str]:
    """Cells whose centre lies inside a (multi)polygon given in ``(lng, lat)``."""
    return set(h3.geo_to_cells(_polygonal(geometry), resolution))


def cells_for_geometry(geometry: BaseGeometry, resolution: int) -> Set[str]:
    """Every cell at ``resolution`` that a (multi)polygon intersects.

    Centre containment misses cells the polygon only clips, and returns
    nothing for polygons smaller than a cell. The candidate set is therefore
    the centre fill plus the 1-ring around cells sampled along the boundary
    (sample spacing below a quarter edge length), filtered by true
    intersection with each cell polygon.
    """
    validate_resolution(resolution)
    if geometry is None or geometry.is_empty:
        return set()
    _polygonal(geometry)

    candidates = cells_with_center_in(geometry, resolution)

    spacing = 0.25 * average_edge_length_km(resolution) / KM_PER_DEGREE
    boundary = shapely.segmentize(geometry.boundary, spacing)
    lines = getattr(boundary, "geoms", [boundary])
    seeds = set()
    for line in lines:
        for lng, lat in line.coords:
            seeds.add(h3.latlng_to_cell(lat, lng, resolution))
    for seed in seeds:
        candidates.update(h3.grid_disk(seed, 1))

    return {cell for cell in candidates if cell_polygon(cell).intersects(geometry)}


def log_grid_summary(
    resolution: int,
    cell_count: int,
    label: str,
    logger_instance: Optional[logging.Logger] = None,
) -> None:
    """Log a short summary of a generated grid."""
    log = logger_instance or logger
    edge_km = average_edge_length_km(resolution)
    log.info(
        f"Grid {label}: {cell_count:,} hexagons at res{resolution} "
        f"(avg edge {edge_km:.3f} km)"
    )
