"""Error kinds raised by the FloorScale engine.

User-facing errors (InvalidInputError, DecodeError) carry a message that
the UI shows as-is. PersistenceUnavailableError is never shown; callers
log it and carry on without persistence.
"""


class FloorScaleError(Exception):
    """Base class for all FloorScale errors."""


class InvalidInputError(FloorScaleError):
    """Rejected user input: non-image file, bad reference length, degenerate line."""


class DecodeError(FloorScaleError):
    """Image bytes could not be decoded."""


class PersistenceUnavailableError(FloorScaleError):
    """The durable store could not be read or written."""
