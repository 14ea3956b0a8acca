"""
Centralized path management for grid caches and archived fire data.

Every on-disk location firegrid touches is constructed through DataPaths,
so the cache directory and the record archive are defined in one place.
"""

from pathlib import Path


class DataPaths:
    """Single source of truth for firegrid data paths.

    Usage::

        paths = DataPaths("/srv/fires/data")
        storage = DiskStorage(paths.grid_cache())
        store = JsonRecordStore(paths.historical(), paths.current_file())

    Layout::

        {data_root}/
        ├── hexagon-grids/          # serialized grids, one JSON per key
        ├── historical/             # YYYY-MM-DD.json per archived day
        └── current_fires.json      # rolling current-day data

    The class does NOT create directories. Callers use
    ``path.mkdir(parents=True, exist_ok=True)`` as needed.
    """

    def __init__(self, data_root: "Path | str | None" = None, project_root: "Path | str | None" = None):
        self.project_root = Path(project_root) if project_root else _find_project_root()
        self.root = Path(data_root) if data_root else self.project_root / "data"

    def grid_cache(self) -> Path:
        """Directory holding serialized hexagon grids."""
        return self.root / "hexagon-grids"

    def historical(self) -> Path:
        """Directory with one archived JSON file per day."""
        return self.root / "historical"

    def current_file(self) -> Path:
        """Rolling file with the current day's records."""
        return self.root / "current_fires.json"


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains setup.py)."""
    current = Path(__file__).resolve().parent
    while current != current.parent:
        if (current / "setup.py").exists():
            return current
        current = current.parent
    return Path.cwd()
