"""
Durable, best-effort cache of generated grids.

Grids are keyed by ``(resolution, region key)`` and stored as JSON through a
pluggable CacheStorage. Generation is deterministic, so concurrent misses on
the same key may both regenerate and overwrite without harm. A storage
failure never reaches the caller: reads degrade to a miss and writes are
logged and dropped.

Each grid entry ``grid__<region>__res<n>`` has a small companion entry
``meta__<region>__res<n>`` with its generation time and cell count, so
``status`` never has to decode whole grids.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from firegrid.exceptions import CacheIOError
from firegrid.geometry import validate_resolution
from firegrid.grid.indexer import GridIndexer
from firegrid.grid.storage import CacheStorage, MemoryStorage
from firegrid.models import Grid, Region, utc_now_iso

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^grid__(?P<region>.+)__res(?P<resolution>\d+)$")


class GridCache:
    """Get-or-generate access to hexagon grids.

    Usage::

        cache = GridCache(GridIndexer(), DiskStorage(paths.grid_cache()))
        grid = cache.get(6, Region.global_())
        cache.status()
        cache.invalidate()
    """

    PREFIX = "grid__"
    META_PREFIX = "meta__"

    def __init__(self, indexer: GridIndexer, storage: Optional[CacheStorage] = None):
        self.indexer = indexer
        self.storage = storage if storage is not None else MemoryStorage()

    @classmethod
    def cache_key(cls, resolution: int, region_key: str) -> str:
        return f"{cls.PREFIX}{region_key}__res{resolution}"

    @classmethod
    def meta_key(cls, key: str) -> str:
        return cls.META_PREFIX + key[len(cls.PREFIX):]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, key: str) -> Optional[Grid]:
        try:
            raw = self.storage.read(key)
        except CacheIOError as e:
            logger.warning(f"Grid cache read failed for {key}, regenerating: {e}")
            return None
        if raw is None:
            return None
        try:
            return Grid.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding corrupt grid cache entry {key}: {e}")
            return None

    def _store(self, key: str, grid: Grid) -> bool:
        try:
            payload = json.dumps(grid.to_dict(), separators=(",", ":")).encode("utf-8")
            self.storage.write(key, payload)
        except CacheIOError as e:
            logger.error(f"Failed to cache hexagon grid {key}: {e}")
            return False
        logger.info(f"Cached hexagon grid {key} ({len(payload):,} bytes)")

        meta = {"generated_at": grid.generated_at, "cell_count": len(grid)}
        try:
            self.storage.write(self.meta_key(key), json.dumps(meta).encode("utf-8"))
        except CacheIOError as e:
            logger.warning(f"Failed to cache metadata for {key}: {e}")
        return True

    def _generated_at(self, key: str) -> Optional[str]:
        """Generation time of a stored grid, from its metadata entry when present."""
        try:
            raw = self.storage.read(self.meta_key(key))
        except CacheIOError as e:
            logger.warning(f"Grid cache metadata read failed for {key}: {e}")
            raw = None
        if raw is not None:
            try:
                return json.loads(raw.decode("utf-8"))["generated_at"]
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding corrupt metadata for {key}: {e}")
        # Entries written without metadata
        grid = self._load(key)
        return grid.generated_at if grid is not None else None

    def _keys(self, prefix: str = PREFIX) -> List[str]:
        try:
            return self.storage.list(prefix)
        except CacheIOError as e:
            logger.error(f"Could not list grid cache entries: {e}")
            return []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, resolution: int, region: Region) -> Grid:
        """Return the cached grid, generating and persisting it on a miss."""
        resolution = validate_resolution(resolution)
        key = self.cache_key(resolution, region.key)

        grid = self._load(key)
        if grid is not None and grid.resolution == resolution:
            logger.info(
                f"Loaded cached hexagon grid for {region.key} at resolution "
                f"{resolution}: {len(grid):,} hexagons"
            )
            return grid

        logger.info(f"Cache miss for {region.key} at resolution {resolution}, generating new grid...")
        grid = self.indexer.generate(resolution, region)
        self._store(key, grid)
        return grid

    def invalidate(self, region_key: Optional[str] = None, resolution: Optional[int] = None) -> int:
        """Remove cached grids; with no arguments every entry goes.

        Returns the number of entries removed.
        """
        if region_key is not None and resolution is not None:
            keys = [self.cache_key(resolution, region_key)]
        elif region_key is not None:
            keys = self._keys(f"{self.PREFIX}{region_key}__")
        elif resolution is not None:
            keys = [k for k in self._keys() if k.endswith(f"__res{resolution}")]
        else:
            keys = self._keys()

        removed = 0
        for key in keys:
            try:
                self.storage.delete(self.meta_key(key))
                if self.storage.delete(key):
                    removed += 1
            except CacheIOError as e:
                logger.error(f"Could not delete grid cache entry {key}: {e}")
        logger.info(f"Cleared {removed} cached hexagon grid(s)")
        return removed

    def status(self) -> Dict[str, Any]:
        """Summary of the cache contents.

        ``last_updated`` is the newest ``generated_at`` among stored grids
        (None when the cache is empty); ``cached_resolutions`` lists the
        resolutions cached for the global region.
        """
        keys = self._keys()
        total_size = 0
        generated = []
        cached_resolutions = []
        viewport_caches = 0
        for key in keys:
            try:
                total_size += self.storage.size(key)
            except CacheIOError as e:
                logger.warning(f"Could not size grid cache entry {key}: {e}")
            match = _KEY_RE.match(key)
            if match is None:
                continue
            if match.group("region") == "global":
                cached_resolutions.append(int(match.group("resolution")))
            else:
                viewport_caches += 1
            generated_at = self._generated_at(key)
            if generated_at is not None:
                generated.append(generated_at)

        return {
            "keys": keys,
            "total_size": total_size,
            "last_updated": max(generated) if generated else None,
            "cached_resolutions": sorted(cached_resolutions),
            "viewport_caches": viewport_caches,
            "checked_at": utc_now_iso(),
        }

    def pregenerate(self, resolutions: Iterable[int], region: Optional[Region] = None) -> Dict[int, int]:
        """Warm the cache; returns ``{resolution: cell_count}``."""
        region = region or Region.global_()
        counts = {}
        for resolution in resolutions:
            grid = self.get(resolution, region)
            counts[resolution] = len(grid)
        logger.info(f"Pre-generated {region.key} grids: {counts}")
        return counts
