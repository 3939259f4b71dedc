"""
reconstruct_light: Underwater Light-Field Reconstruction
========================================================

Reconstruction of a time- and depth-resolved underwater irradiance field
from a sparse set of vertical light profiles and a continuous surface
irradiance record.

The profiles supply an empirical diffuse attenuation coefficient Kd per
wavelength and depth bin; the surface record supplies the time-resolved
boundary condition. Kd is applied with a Beer-Lambert law over a regular
time × depth grid.

Main Classes
------------
LightFieldReconstruction
    Main class running the full reconstruction for one mission.
ReconstructionConfig
    Validated run configuration.

Modules
-------
conversion
    Conversion of profiler irradiance to quantum flux.
attenuation
    Kd estimation per depth bin with quality gating.
composition
    Own-bin index and deepest-reliable fallback coefficients.
surface
    Time-bucket aggregation of the surface record.
extrapolation
    Exponential extrapolation of surface irradiance to depth.

Example
-------
>>> from reconstruct_light import LightFieldReconstruction
>>> from reconstruct_light.extrapolation import attenuate
>>> print(f"{attenuate(10.0, 0.05, 25.0):.3f}")
2.778
"""

__version__ = "0.1.0"

from reconstruct_light.config import ReconstructionConfig
from reconstruct_light.reconstruction import (
    LightFieldReconstruction,
    ReconstructionResult,
    reconstruct,
)
from reconstruct_light.constants import (
    QUANTUM_CONVERSION_FACTOR,
    SURFACE_REFLECTANCE_FACTOR,
)

__all__ = [
    "LightFieldReconstruction",
    "ReconstructionConfig",
    "ReconstructionResult",
    "reconstruct",
    "QUANTUM_CONVERSION_FACTOR",
    "SURFACE_REFLECTANCE_FACTOR",
    "__version__",
]
