"""
Record store collaborators: read-only access to burnt-area records.
"""

from .store import (
    RecordStore,
    JsonRecordStore,
    MemoryRecordStore,
    records_in_range,
    iter_days,
    parse_date,
    parse_records,
)

__all__ = [
    'RecordStore',
    'JsonRecordStore',
    'MemoryRecordStore',
    'records_in_range',
    'iter_days',
    'parse_date',
    'parse_records',
]
