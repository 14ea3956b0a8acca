"""
H3 Geometry Module
==================

Resolution policy, cell geometry and polygon covering built on ``h3``.

Key Functions:
- ResolutionSelector: zoom -> resolution step table
- validate_resolution: 0..15 check raising ValidationError
- cells_for_geometry: cells a fire polygon intersects
- cell_for_point: point -> single cell
- to_lnglat_ring: H3 (lat, lng) ring -> closed GeoJSON [lng, lat] ring
"""

from .h3_geometry import (
    # Resolution
    MIN_RESOLUTION,
    MAX_RESOLUTION,
    ResolutionSelector,
    validate_resolution,
    average_edge_length_km,

    # Cell geometry
    cell_boundary,
    cell_polygon,
    cell_centroid,
    cell_for_point,
    to_lnglat_ring,

    # Covering
    cells_with_center_in,
    cells_for_geometry,

    # Utilities
    log_grid_summary,
)

__all__ = [
    'MIN_RESOLUTION',
    'MAX_RESOLUTION',
    'ResolutionSelector',
    'validate_resolution',
    'average_edge_length_km',
    'cell_boundary',
    'cell_polygon',
    'cell_centroid',
    'cell_for_point',
    'to_lnglat_ring',
    'cells_with_center_in',
    'cells_for_geometry',
    'log_grid_summary',
]
