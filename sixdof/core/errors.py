"""
Exception types raised by the flight dynamics core.

Recoverable conditions (missing tables, malformed setup files, lookups outside
a table) are handled where they occur and never reach the caller. The types
below are the ones that do propagate, or that loaders use internally to
signal which fallback to take.
"""


class SixDOFError(Exception):
    """Base class for all flight dynamics errors."""


class TableBuildError(SixDOFError):
    """A derivative lookup table could not be built from its source data."""


class DegenerateInertiaError(SixDOFError):
    """Inertia tensor is singular; the aircraft spec is invalid."""


class ConfigurationError(SixDOFError):
    """A configuration file is missing required data."""


class StateCorruptionError(SixDOFError):
    """The integrated state vector contains NaN or Inf values."""

    def __init__(self, message: str, time: float = float('nan')):
        super().__init__(message)
        self.time = time
