"""
FireGrid: hexagonal aggregation of wildfire burnt areas
=======================================================

Bins burnt-area records onto H3 hexagon grids covering Spain.

Components:
- geometry: zoom -> resolution policy and H3 cell helpers
- grid: grid generation (SRAI regionalizer with a lattice-scan fallback)
  and the persistent grid cache
- aggregation: per-cell fire aggregation and the date-range result cache
- records: read-only access to archived fire records
- service: FireGridService, the facade tying everything together
"""

__version__ = "0.1.0"

from .exceptions import (
    FireGridError,
    ValidationError,
    GenerationError,
    CacheIOError,
    BinningError,
)
from .models import (
    BoundingBox,
    Region,
    RegionKind,
    HexagonCell,
    Grid,
    FireRecord,
    SizeClass,
    CellAggregate,
    AggregationResult,
)
from .geometry import ResolutionSelector
from .grid import GridIndexer, GridCache, MemoryStorage, DiskStorage
from .aggregation import FireBinner, AggregationCache
from .records import JsonRecordStore, MemoryRecordStore
from .config import FireGridConfig, configure_logging
from .paths import DataPaths
from .service import FireGridService

__all__ = [
    # Errors
    'FireGridError',
    'ValidationError',
    'GenerationError',
    'CacheIOError',
    'BinningError',

    # Data model
    'BoundingBox',
    'Region',
    'RegionKind',
    'HexagonCell',
    'Grid',
    'FireRecord',
    'SizeClass',
    'CellAggregate',
    'AggregationResult',

    # Components
    'ResolutionSelector',
    'GridIndexer',
    'GridCache',
    'MemoryStorage',
    'DiskStorage',
    'FireBinner',
    'AggregationCache',
    'JsonRecordStore',
    'MemoryRecordStore',

    # Wiring
    'FireGridConfig',
    'configure_logging',
    'DataPaths',
    'FireGridService',
]
