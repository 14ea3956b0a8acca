"""
Grid generation and caching.

- GridIndexer: region polygon -> Grid through an ordered strategy chain
- GenerationStrategy / RegionalizerStrategy / LatticeScanStrategy
- GridCache: (resolution, region) -> Grid, persisted through CacheStorage
- MemoryStorage / DiskStorage: storage backends
"""

from .strategies import GenerationStrategy, RegionalizerStrategy, LatticeScanStrategy
from .indexer import GridIndexer, SPAIN_BOUNDS, default_strategies
from .storage import CacheStorage, MemoryStorage, DiskStorage
from .cache import GridCache

__all__ = [
    'GenerationStrategy',
    'RegionalizerStrategy',
    'LatticeScanStrategy',
    'GridIndexer',
    'SPAIN_BOUNDS',
    'default_strategies',
    'CacheStorage',
    'MemoryStorage',
    'DiskStorage',
    'GridCache',
]
