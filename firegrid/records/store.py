"""
Read-only access to archived burnt-area records.

The collector (out of scope here) writes one JSON file per day to a
historical directory, plus a rolling file with the current day's data:

    historical/2025-07-14.json   {"date": ..., "fireCount": n, "fires": [...]}
    current_fires.json           {"lastUpdated": ..., "results": [...]}

A day without a historical file falls back to the current-data file,
filtered on each record's ``lastupdate`` date.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from firegrid.exceptions import ValidationError
from firegrid.models import FireRecord

logger = logging.getLogger(__name__)


def parse_date(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` string (dates pass through).

    Raises:
        ValidationError: Anything that is not a valid calendar date.
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) != 10:
        raise ValidationError(f"Invalid date {value!r}. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid date {value!r}. Use YYYY-MM-DD") from e


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every day from ``start`` to ``end`` inclusive."""
    if start > end:
        raise ValidationError(f"Start date {start} is after end date {end}")
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def parse_records(payloads: Iterable[Dict[str, Any]], source: str = "") -> List[FireRecord]:
    """Parse raw API objects, skipping (and logging) malformed ones."""
    records = []
    for payload in payloads:
        try:
            records.append(FireRecord.from_api(payload))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed fire record in {source or 'payload'}: {e}")
    return records


class RecordStore(ABC):
    """Abstract read-only record store."""

    @abstractmethod
    def query(self, day: date) -> List[FireRecord]:
        """Records for one day; may be empty, may raise on failure."""
        pass

    def query_range(self, start: date, end: date) -> List[FireRecord]:
        return records_in_range(self, start, end)


def records_in_range(store: RecordStore, start: date, end: date) -> List[FireRecord]:
    """Gather records day by day; failed days are logged and skipped."""
    all_fires: List[FireRecord] = []
    for day in iter_days(start, end):
        try:
            day_fires = store.query(day)
        except Exception as e:
            logger.warning(f"No data found for {day.isoformat()}: {e}")
            continue
        if day_fires:
            all_fires.extend(day_fires)
            logger.info(f"Found {len(day_fires)} fires for {day.isoformat()}")
    logger.info(f"Total fires found in date range: {len(all_fires)}")
    return all_fires


class MemoryRecordStore(RecordStore):
    """Records held in a ``{date: [FireRecord, ...]}`` mapping."""

    def __init__(self, records_by_day: Optional[Mapping[date, Iterable[FireRecord]]] = None):
        self._records = {day: list(fires) for day, fires in (records_by_day or {}).items()}

    def add(self, day: date, records: Iterable[FireRecord]) -> None:
        self._records.setdefault(day, []).extend(records)

    def query(self, day: date) -> List[FireRecord]:
        return list(self._records.get(day, []))


class JsonRecordStore(RecordStore):
    """Record store over the collector's JSON files."""

    def __init__(self, historical_dir: Union[str, Path], current_file: Optional[Union[str, Path]] = None):
        self.historical_dir = Path(historical_dir)
        self.current_file = Path(current_file) if current_file else None

    def day_file(self, day: date) -> Path:
        return self.historical_dir / f"{day.isoformat()}.json"

    def _read_json(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")
        return data

    def _current_for_day(self, day: date) -> List[FireRecord]:
        if self.current_file is None:
            return []
        current = self._read_json(self.current_file)
        if not current:
            return []
        wanted = day.isoformat()
        results = [
            fire for fire in current.get("results") or []
            if str(fire.get("lastupdate") or "")[:10] == wanted
        ]
        return parse_records(results, str(self.current_file))

    def query(self, day: date) -> List[FireRecord]:
        """Records archived for ``day``.

        Raises:
            OSError, ValueError: The day's file exists but cannot be read or
                parsed. ``records_in_range`` skips such days.
        """
        path = self.day_file(day)
        data = self._read_json(path)
        if data is not None and data.get("fires") is not None:
            return parse_records(data["fires"], str(path))
        return self._current_for_day(day)
