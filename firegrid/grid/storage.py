"""
Byte-oriented key/value storage behind the grid cache.

Two backends:
- MemoryStorage: plain dict, used in tests and short-lived processes.
- DiskStorage: one JSON file per key under a cache directory.

Every backend failure surfaces as CacheIOError so callers can treat the
cache as best-effort.
"""

import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from firegrid.exceptions import CacheIOError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


def _check_key(key: str) -> str:
    if not _KEY_PATTERN.match(key) or key in (".", ".."):
        raise CacheIOError(f"Invalid cache key: {key!r}")
    return key


class CacheStorage(ABC):
    """Abstract key/value store holding serialized grids."""

    @abstractmethod
    def read(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when the key is not present."""
        pass

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        pass

    @abstractmethod
    def list(self, prefix: str = "") -> List[str]:
        """Sorted keys starting with ``prefix``."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; returns False when it was not present."""
        pass

    def size(self, key: str) -> int:
        data = self.read(key)
        return len(data) if data is not None else 0


class MemoryStorage(CacheStorage):
    """In-process storage; nothing survives the process."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def read(self, key: str) -> Optional[bytes]:
        return self._data.get(_check_key(key))

    def write(self, key: str, data: bytes) -> None:
        self._data[_check_key(key)] = bytes(data)

    def list(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def delete(self, key: str) -> bool:
        return self._data.pop(_check_key(key), None) is not None


class DiskStorage(CacheStorage):
    """Directory-based storage: ``<root>/<key>.json``.

    Writes go through a temporary file and an atomic rename, so concurrent
    writers of the same key leave one complete payload behind.
    """

    SUFFIX = ".json"

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_check_key(key)}{self.SUFFIX}"

    def _ensure_root(self) -> None:
        try:
            if not self.root.exists():
                self.root.mkdir(parents=True, exist_ok=True)
                logger.info(f"Grid cache directory created: {self.root}")
        except OSError as e:
            raise CacheIOError(f"Cannot create cache directory {self.root}: {e}") from e

    def read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheIOError(f"Cannot read {path}: {e}") from e

    def write(self, key: str, data: bytes) -> None:
        self._ensure_root()
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=self.SUFFIX)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheIOError(f"Cannot write {path}: {e}") from e

    def list(self, prefix: str = "") -> List[str]:
        if not self.root.exists():
            return []
        try:
            keys = [
                p.name[: -len(self.SUFFIX)]
                for p in self.root.iterdir()
                if p.is_file() and p.name.endswith(self.SUFFIX) and not p.name.startswith(".tmp-")
            ]
        except OSError as e:
            raise CacheIOError(f"Cannot list {self.root}: {e}") from e
        return sorted(k for k in keys if k.startswith(prefix))

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(f"Cannot delete {path}: {e}") from e

    def size(self, key: str) -> int:
        try:
            return self._path(key).stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise CacheIOError(f"Cannot stat {key}: {e}") from e
