"""
Error taxonomy for the fire grid core.

None of these are fatal to a hosting process. Validation errors are raised
before any computation; the others are caught at the component boundary that
owns the fallback (strategy chain, cache, binner, service).
"""


class FireGridError(Exception):
    """Base class for all errors raised by firegrid."""


class ValidationError(FireGridError, ValueError):
    """Invalid resolution, date or viewport input."""


class GenerationError(FireGridError):
    """Covering computation failed for every generation strategy."""


class CacheIOError(FireGridError, OSError):
    """Cache storage could not be read or written."""


class BinningError(FireGridError):
    """A single record could not be binned onto the grid."""

    def __init__(self, message: str, fire_id: str = None):
        super().__init__(message)
        self.fire_id = fire_id
