"""
Data contracts shared by the grid, binning and cache layers.

Hexagon cells and grids are produced by the indexer, fire records come from
the record store, and aggregates are produced by the binner. Grids and fire
records are treated as immutable once built; aggregates are only mutated by
the binner while a result is being assembled.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

import geopandas as gpd
import pandas as pd
from shapely.errors import GEOSException
from shapely.geometry import Polygon, box, shape
from shapely.geometry.base import BaseGeometry

from firegrid.exceptions import ValidationError
from firegrid.geometry import to_lnglat_ring

logger = logging.getLogger(__name__)

LatLng = Tuple[float, float]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoundingBox:
    """Geographic bounding box in decimal degrees (WGS84)."""
    north: float
    south: float
    east: float
    west: float

    def __post_init__(self):
        for name in ("north", "south", "east", "west"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"Bounding box {name} must be a number, got {value!r}")
        if not (-90.0 <= self.south < self.north <= 90.0):
            raise ValidationError(
                f"Invalid latitude span: south={self.south}, north={self.north}"
            )
        if not (-180.0 <= self.west < self.east <= 180.0):
            raise ValidationError(
                f"Invalid longitude span: west={self.west}, east={self.east} "
                f"(antimeridian-crossing boxes are not supported)"
            )

    def quantized(self, precision: int) -> "BoundingBox":
        """Snap outward to a ``precision``-decimal lattice.

        The quantized box always contains the requested one, so a cached grid
        for the rounded key still covers the whole requested viewport.
        """
        factor = 10 ** precision
        return BoundingBox(
            north=min(round(math.ceil(self.north * factor - 1e-9) / factor, precision), 90.0),
            south=max(round(math.floor(self.south * factor + 1e-9) / factor, precision), -90.0),
            east=min(round(math.ceil(self.east * factor - 1e-9) / factor, precision), 180.0),
            west=max(round(math.floor(self.west * factor + 1e-9) / factor, precision), -180.0),
        )

    def to_polygon(self) -> Polygon:
        """Closed polygon in ``(lng, lat)`` order."""
        return box(self.west, self.south, self.east, self.north)

    def to_dict(self) -> Dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoundingBox":
        try:
            return cls(
                north=data["north"], south=data["south"],
                east=data["east"], west=data["west"],
            )
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Bounding box needs north/south/east/west: {data!r}") from e


class RegionKind(str, Enum):
    GLOBAL = "global"
    VIEWPORT = "viewport"


@dataclass(frozen=True)
class Region:
    """Either the fixed coverage area ("global") or an explicit viewport.

    Viewports are quantized on construction so that the grid generated for a
    viewport is exactly the grid stored under its cache key.
    """
    kind: RegionKind
    bbox: Optional[BoundingBox] = None

    DEFAULT_PRECISION = 2

    @classmethod
    def global_(cls) -> "Region":
        return cls(RegionKind.GLOBAL)

    @classmethod
    def viewport(
        cls,
        north: float,
        south: float,
        east: float,
        west: float,
        precision: int = DEFAULT_PRECISION,
    ) -> "Region":
        bbox = BoundingBox(north=north, south=south, east=east, west=west).quantized(precision)
        return cls(RegionKind.VIEWPORT, bbox)

    @property
    def is_global(self) -> bool:
        return self.kind is RegionKind.GLOBAL

    @property
    def key(self) -> str:
        if self.is_global:
            return "global"
        b = self.bbox
        return f"viewport_{b.west}_{b.south}_{b.east}_{b.north}"

    def to_dict(self) -> Dict[str, Any]:
        data = {"kind": self.kind.value, "key": self.key}
        if self.bbox is not None:
            data["bbox"] = self.bbox.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Region":
        kind = RegionKind(data["kind"])
        if kind is RegionKind.GLOBAL:
            return cls.global_()
        return cls(kind, BoundingBox.from_dict(data["bbox"]))


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HexagonCell:
    """One H3 cell. ``boundary`` is a closed ring in H3 ``(lat, lng)`` order."""
    id: str
    boundary: Tuple[LatLng, ...]
    resolution: int

    def geojson_ring(self) -> List[List[float]]:
        return to_lnglat_ring(self.boundary)


@dataclass
class Grid:
    """Set of hexagon cells covering a region at one resolution.

    Cells are keyed by id, so ids are unique by construction. A grid is
    immutable after generation; cache invalidation replaces it wholesale.
    """
    resolution: int
    cells: Dict[str, HexagonCell]
    region: Region
    generated_at: str = field(default_factory=utc_now_iso)

    def __len__(self) -> int:
        return len(self.cells)

    def __contains__(self, cell_id: str) -> bool:
        return cell_id in self.cells

    @property
    def cell_ids(self) -> FrozenSet[str]:
        return frozenset(self.cells)

    def sorted_cells(self) -> List[HexagonCell]:
        return [self.cells[cid] for cid in sorted(self.cells)]

    def to_wire(self) -> Dict[str, Any]:
        """Collaborator payload: ``[lng, lat]`` rings, counts and metadata."""
        return {
            "cells": [{"id": c.id, "boundary": c.geojson_ring()} for c in self.sorted_cells()],
            "cell_count": len(self.cells),
            "generated_at": self.generated_at,
            "region": self.region.to_dict(),
            "resolution": self.resolution,
        }

    def to_feature_collection(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": {"type": "Polygon", "coordinates": [cell.geojson_ring()]},
                    "properties": {"h3Index": cell.id, "resolution": self.resolution},
                }
                for cell in self.sorted_cells()
            ],
            "metadata": {
                "totalHexagons": len(self.cells),
                "generatedAt": self.generated_at,
                "region": self.region.to_dict(),
            },
        }

    def to_gdf(self) -> gpd.GeoDataFrame:
        """GeoDataFrame indexed by ``region_id`` in EPSG:4326."""
        cells = self.sorted_cells()
        gdf = gpd.GeoDataFrame(
            {"region_id": [c.id for c in cells]},
            geometry=[Polygon([(lng, lat) for lat, lng in c.boundary]) for c in cells],
            crs="EPSG:4326",
        )
        return gdf.set_index("region_id")

    # -- persistence ---------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolution": self.resolution,
            "region": self.region.to_dict(),
            "generated_at": self.generated_at,
            "hexagons": [
                {"index": c.id, "boundary": [list(p) for p in c.boundary]}
                for c in self.sorted_cells()
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Grid":
        resolution = int(data["resolution"])
        cells = {}
        for hexagon in data["hexagons"]:
            boundary = tuple((float(lat), float(lng)) for lat, lng in hexagon["boundary"])
            cells[hexagon["index"]] = HexagonCell(hexagon["index"], boundary, resolution)
        return cls(
            resolution=resolution,
            cells=cells,
            region=Region.from_dict(data["region"]),
            generated_at=data["generated_at"],
        )


# ---------------------------------------------------------------------------
# Fire records
# ---------------------------------------------------------------------------


def _parse_day(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


@dataclass(frozen=True)
class FireRecord:
    """A burnt-area record as read from the record store.

    ``polygon`` is in ``(lng, lat)`` order; ``centroid`` is ``(lat, lng)``.
    """
    id: str
    area_hectares: float
    centroid: Optional[LatLng] = None
    polygon: Optional[BaseGeometry] = None
    date: Optional[date] = None
    province: Optional[str] = None
    commune: Optional[str] = None

    def __post_init__(self):
        if not math.isfinite(self.area_hectares) or self.area_hectares < 0:
            raise ValueError(
                f"Fire {self.id}: area_hectares must be a finite number >= 0, got {self.area_hectares}"
            )

    @property
    def has_polygon(self) -> bool:
        return (
            self.polygon is not None
            and not self.polygon.is_empty
            and self.polygon.geom_type in ("Polygon", "MultiPolygon")
        )

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "FireRecord":
        """Build a record from an EFFIS burnt-area JSON object.

        Raises:
            ValueError: If the id is missing or the area is not a finite,
                non-negative number.
        """
        if payload.get("id") is None:
            raise ValueError("Fire record without id")
        fire_id = str(payload["id"])
        area = float(payload.get("area_ha") or 0.0)

        centroid = None
        coords = (payload.get("centroid") or {}).get("coordinates")
        if coords and len(coords) >= 2:
            centroid = (float(coords[1]), float(coords[0]))

        polygon = None
        shape_data = payload.get("shape")
        if shape_data and shape_data.get("coordinates"):
            try:
                polygon = shape(shape_data)
                if not polygon.is_valid:
                    polygon = polygon.buffer(0)
            except (GEOSException, ValueError, TypeError, AttributeError, IndexError) as e:
                logger.warning(f"Fire {fire_id}: unusable shape ({e}), centroid only")
                polygon = None

        return cls(
            id=fire_id,
            area_hectares=area,
            centroid=centroid,
            polygon=polygon,
            date=_parse_day(payload.get("firedate")) or _parse_day(payload.get("lastupdate")),
            province=payload.get("province"),
            commune=payload.get("commune"),
        )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class SizeClass(str, Enum):
    NONE = "none"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @classmethod
    def classify(cls, total_area_hectares: float, fire_count: int) -> "SizeClass":
        """Severity bucket of a cell: <10 small, [10, 100) medium, >=100 large."""
        if fire_count == 0:
            return cls.NONE
        if total_area_hectares < 10:
            return cls.SMALL
        if total_area_hectares < 100:
            return cls.MEDIUM
        return cls.LARGE


@dataclass
class CellAggregate:
    cell_id: str
    total_area_hectares: float = 0.0
    fire_count: int = 0
    size_class: SizeClass = SizeClass.NONE
    contributing_fire_ids: Set[str] = field(default_factory=set)

    def add(self, area_hectares: float, fire_id: str) -> None:
        self.total_area_hectares += area_hectares
        self.fire_count += 1
        self.contributing_fire_ids.add(fire_id)

    def classify(self) -> SizeClass:
        self.size_class = SizeClass.classify(self.total_area_hectares, self.fire_count)
        return self.size_class

    @property
    def has_fire_data(self) -> bool:
        return self.fire_count > 0

    @property
    def average_area_hectares(self) -> float:
        return self.total_area_hectares / self.fire_count if self.fire_count else 0.0

    def to_properties(self) -> Dict[str, Any]:
        return {
            "hasFireData": self.has_fire_data,
            "totalArea": self.total_area_hectares,
            "fireCount": self.fire_count,
            "averageArea": self.average_area_hectares,
            "size": self.size_class.value,
            "fires": sorted(self.contributing_fire_ids),
        }


@dataclass
class AggregationResult:
    """Per-cell aggregates for one date (start == end) or a date range."""
    resolution: int
    start: date
    end: date
    per_cell: Dict[str, CellAggregate]
    total_fires: int = 0
    total_area_hectares: float = 0.0
    unbinned_fire_ids: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, resolution: int, start: date, end: date) -> "AggregationResult":
        return cls(resolution=resolution, start=start, end=end, per_cell={})

    @property
    def is_snapshot(self) -> bool:
        return self.start == self.end

    def affected_cells(self) -> Dict[str, CellAggregate]:
        return {cid: agg for cid, agg in self.per_cell.items() if agg.fire_count > 0}

    def to_frame(self) -> pd.DataFrame:
        """Per-cell table indexed by ``region_id``."""
        rows = [
            {
                "region_id": agg.cell_id,
                "total_area_hectares": agg.total_area_hectares,
                "fire_count": agg.fire_count,
                "average_area_hectares": agg.average_area_hectares,
                "size_class": agg.size_class.value,
                "fires": sorted(agg.contributing_fire_ids),
            }
            for _, agg in sorted(self.per_cell.items())
        ]
        columns = ["region_id", "total_area_hectares", "fire_count",
                   "average_area_hectares", "size_class", "fires"]
        return pd.DataFrame(rows, columns=columns).set_index("region_id")

    def to_feature_collection(self, grid: Grid) -> Dict[str, Any]:
        """The grid as GeoJSON with aggregate properties on every cell."""
        collection = grid.to_feature_collection()
        for feature in collection["features"]:
            cell_id = feature["properties"]["h3Index"]
            agg = self.per_cell.get(cell_id) or CellAggregate(cell_id)
            feature["properties"].update(agg.to_properties())
        collection["metadata"].update({
            "totalFires": self.total_fires,
            "totalArea": self.total_area_hectares,
            "dateRange": {"start": self.start.isoformat(), "end": self.end.isoformat()},
        })
        return collection

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolution": self.resolution,
            "dateRange": {"start": self.start.isoformat(), "end": self.end.isoformat()},
            "hexagonData": {
                cid: {
                    "totalArea": agg.total_area_hectares,
                    "fireCount": agg.fire_count,
                    "fires": sorted(agg.contributing_fire_ids),
                    "size": agg.size_class.value,
                }
                for cid, agg in sorted(self.affected_cells().items())
            },
            "totalFires": self.total_fires,
            "totalArea": self.total_area_hectares,
        }
