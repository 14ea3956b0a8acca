"""
Fire aggregation onto hexagon grids.

- FireBinner: per-cell aggregates for one grid and a record set
- AggregationCache: bounded LRU memoization of date-range aggregations
"""

from .binner import FireBinner
from .cache import AggregationCache

__all__ = [
    'FireBinner',
    'AggregationCache',
]
