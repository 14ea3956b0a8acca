"""
Covering strategies for grid generation.

A strategy turns a region polygon into the set of H3 cell ids covering it.
The indexer walks an ordered chain of strategies and keeps the first one
that succeeds:

    RegionalizerStrategy (SRAI H3Regionalizer)  ->  LatticeScanStrategy  ->  GenerationError

Both strategies use centre containment, so for a given polygon they agree on
the resulting cell set.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Set

import geopandas as gpd
import h3
import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry
from srai.regionalizers import H3Regionalizer

from firegrid.exceptions import GenerationError
from firegrid.geometry import average_edge_length_km
from firegrid.geometry.h3_geometry import KM_PER_DEGREE

logger = logging.getLogger(__name__)


class GenerationStrategy(ABC):
    """Abstract base class for polygon-to-cells covering strategies."""

    name = "base"

    @abstractmethod
    def cover(self, polygon: BaseGeometry, resolution: int) -> Set[str]:
        """Return the ids of cells covering ``polygon`` (lng/lat, EPSG:4326)."""
        pass


class RegionalizerStrategy(GenerationStrategy):
    """Primary covering through SRAI's ``H3Regionalizer``.

    ``buffer=False`` keeps cells whose centre lies inside the polygon, the
    same containment rule as ``h3.polygon_to_cells``.
    """

    name = "regionalizer"

    def __init__(self, buffer: bool = False):
        self.buffer = buffer

    def cover(self, polygon: BaseGeometry, resolution: int) -> Set[str]:
        area_gdf = gpd.GeoDataFrame(geometry=[polygon], crs="EPSG:4326")
        regionalizer = H3Regionalizer(resolution=resolution, buffer=self.buffer)
        regions_gdf = regionalizer.transform(area_gdf)
        return {str(region_id) for region_id in regions_gdf.index}


class LatticeScanStrategy(GenerationStrategy):
    """Naive fallback: sample a regular lat/lng lattice over the polygon bounds.

    Every sample is resolved with ``h3.latlng_to_cell``; cells whose centre
    lies inside the polygon are kept. The lattice step is a fraction of the
    average edge length, small enough that every cell with its centre in the
    bounds contains at least one sample. The scan refuses to run when it
    would need more than ``max_samples`` points.
    """

    name = "lattice_scan"

    def __init__(self, step_fraction: float = 0.35, max_samples: int = 2_000_000):
        if step_fraction <= 0:
            raise ValueError("step_fraction must be > 0")
        self.step_fraction = step_fraction
        self.max_samples = max_samples

    def _lattice(self, polygon: BaseGeometry, resolution: int):
        minx, miny, maxx, maxy = polygon.bounds
        step_km = self.step_fraction * average_edge_length_km(resolution)

        lat_step = step_km / KM_PER_DEGREE
        # Degrees of longitude are longest near the equator; size the step there.
        nearest_equator = 0.0 if miny <= 0.0 <= maxy else min(abs(miny), abs(maxy))
        lng_step = step_km / (KM_PER_DEGREE * max(math.cos(math.radians(nearest_equator)), 1e-6))

        lats = np.arange(miny - lat_step, maxy + 2 * lat_step, lat_step)
        lngs = np.arange(minx - lng_step, maxx + 2 * lng_step, lng_step)
        lats = np.clip(lats, -90.0, 90.0)
        lngs = np.clip(lngs, -180.0, 180.0)
        return lats, lngs

    def cover(self, polygon: BaseGeometry, resolution: int) -> Set[str]:
        lats, lngs = self._lattice(polygon, resolution)
        n_samples = len(lats) * len(lngs)
        if n_samples > self.max_samples:
            raise GenerationError(
                f"Lattice scan at res{resolution} needs {n_samples:,} samples "
                f"(limit {self.max_samples:,})"
            )

        sampled = {
            h3.latlng_to_cell(float(lat), float(lng), resolution)
            for lat in lats
            for lng in lngs
        }
        if not sampled:
            return set()

        ids = sorted(sampled)
        centers = np.array([h3.cell_to_latlng(cell) for cell in ids])
        inside = shapely.contains_xy(polygon, centers[:, 1], centers[:, 0])
        return {cell for cell, keep in zip(ids, inside) if keep}
