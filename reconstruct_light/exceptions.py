"""
Error taxonomy for the reconstruction pipeline.

Only :class:`ConfigurationError` is fatal to a run. The other conditions
are raised by the scalar entry points and recovered locally by the table
operations, which exclude the offending sample, group or grid cell and
count it in the run diagnostics.
"""


class ReconstructionError(Exception):
    """Base class for light-field reconstruction errors."""


class InvalidMeasurement(ReconstructionError, ValueError):
    """A single radiometric value is non-finite or out of range."""


class InsufficientData(ReconstructionError):
    """A regression group cannot be fit."""


class NoCoefficientAvailable(ReconstructionError):
    """Neither an own-bin nor a fallback coefficient exists for a cell."""


class ConfigurationError(ReconstructionError, ValueError):
    """Invalid run configuration."""
