"""
Physical constants and instrument parameters for light-field reconstruction.

This module contains constants used throughout the reconstruction
pipeline, including:

- Radiometric constants (quantum conversion, surface reflectance loss)
- Irradiance unit scale factors used to normalise profiler output to SI
- The reference band set shared by the profiler and the surface sensor
- Default run configuration values

References
----------
.. [1] Morel, A. and Smith, R.C. (1974). Relation between total quanta and
       total energy for aquatic photosynthesis. Limnol. Oceanogr.,
       19:591-600.
.. [2] Kirk, J.T.O. (2011). Light and Photosynthesis in Aquatic
       Ecosystems, 3rd ed. Cambridge University Press.
"""

from typing import Dict, Tuple

# =============================================================================
# Radiometric Constants
# =============================================================================

#: Energy to quanta factor: E [W m^-2 nm^-1] * lambda [nm] * factor
#: gives quantum flux [umol photons m^-2 s^-1 nm^-1]
QUANTUM_CONVERSION_FACTOR: float = 0.836e-2

#: Fraction of downwelling irradiance transmitted through the air-sea interface
SURFACE_REFLECTANCE_FACTOR: float = 0.97

# =============================================================================
# Irradiance Units
# =============================================================================

#: Scale factor from each irradiance unit to W m^-2 nm^-1
IRRADIANCE_UNIT_TO_SI: Dict[str, float] = {
    "uW_cm2_nm": 0.01,   # C-OPS profiler export
    "mW_cm2_um": 0.1,
    "W_m2_nm": 1.0,
}

#: Unit of the profiler radiometric values unless configured otherwise
DEFAULT_PROFILER_UNITS: str = "uW_cm2_nm"

# =============================================================================
# Band Definitions
# =============================================================================

#: Wavelengths [nm] common to the C-OPS profiler and TriOS surface sensor.
#: Surface wavelengths outside the profiled set are reported against it.
REFERENCE_WAVELENGTHS: Tuple[float, ...] = (
    380.0, 395.0, 412.0, 443.0, 465.0, 490.0, 510.0, 532.0, 555.0, 560.0,
    589.0, 625.0, 665.0, 683.0, 694.0, 710.0, 765.0, 780.0, 875.0,
)

#: Plausibility window of the TriOS quantum flux export
#: [umol m^-2 s^-1 nm^-1], for ``ReconstructionConfig.surface_valid_range``
SURFACE_FLUX_VALID_RANGE: Tuple[float, float] = (-1.0e-5, 1.0)

# =============================================================================
# Default Configuration
# =============================================================================

#: Width of the depth bins used for the attenuation fit [m]
DEFAULT_DEPTH_BIN_WIDTH: float = 5.0

#: Width of the surface time buckets [minutes]
DEFAULT_BUCKET_WIDTH_MINUTES: int = 5

#: Minimum coefficient of determination for a retained fit (exclusive)
DEFAULT_MIN_R_SQUARED: float = 0.9

#: Minimum number of usable samples to attempt a fit
DEFAULT_MIN_FIT_SAMPLES: int = 4

#: Output depth grid (min, max, step) [m]
DEFAULT_DEPTH_GRID: Tuple[float, float, float] = (0.0, 1500.0, 5.0)


def irradiance_scale_to_si(units: str) -> float:
    """
    Get the multiplicative factor converting ``units`` to W m^-2 nm^-1.

    Parameters
    ----------
    units : str
        One of the keys of :data:`IRRADIANCE_UNIT_TO_SI`.

    Returns
    -------
    float
        Scale factor.

    Raises
    ------
    ValueError
        If the unit is not recognized.
    """
    if units not in IRRADIANCE_UNIT_TO_SI:
        raise ValueError(
            f"Unknown irradiance units: {units}. "
            f"Supported: {', '.join(IRRADIANCE_UNIT_TO_SI)}"
        )
    return IRRADIANCE_UNIT_TO_SI[units]
