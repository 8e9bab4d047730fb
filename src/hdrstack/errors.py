"""Error taxonomy for the viewer core.

Every error here is local and recoverable: the caller gets the exception,
the session keeps running. Numerically odd pixel data (NaN, inf, division
by zero inside a blend) is never an error.
"""


class HDRStackError(Exception):
    """Base class for all recoverable viewer errors."""


class InvalidParameter(HDRStackError, ValueError):
    """Out-of-range index, non-positive gamma, reference == current, ..."""


class NotFound(HDRStackError, LookupError):
    """Unknown or already removed image id (or unknown action id)."""


class NothingToUndo(HDRStackError):
    pass


class NothingToRedo(HDRStackError):
    pass


class EmptyStack(HDRStackError):
    """Rendering was requested while no image is selected."""
