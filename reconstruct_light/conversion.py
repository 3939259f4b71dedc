"""
Radiometric conversion of profiler measurements to quantum flux.

The profiler reports downwelling irradiance as an energy flux per unit
wavelength. Everything downstream works in quantum flux, obtained by
normalising the value to SI and applying

.. math::

    Q(\\lambda) = E(\\lambda) \\, \\lambda \\, 0.836 \\times 10^{-2}

with E in W m^-2 nm^-1, lambda in nm and Q in umol photons m^-2 s^-1 nm^-1.

References
----------
.. [1] Morel, A. and Smith, R.C. (1974). Relation between total quanta and
       total energy for aquatic photosynthesis. Limnol. Oceanogr.,
       19:591-600.
"""

import logging
from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from reconstruct_light.constants import (
    DEFAULT_PROFILER_UNITS,
    QUANTUM_CONVERSION_FACTOR,
    irradiance_scale_to_si,
)
from reconstruct_light.exceptions import InvalidMeasurement

logger = logging.getLogger(__name__)

#: Columns an upstream parser must supply for the profile stream
PROFILE_COLUMNS = ("cast_id", "station", "timestamp", "wavelength", "depth",
                   "radiometric_value")


def convert_irradiance_units(
    irradiance: Union[float, np.ndarray],
    from_units: str,
    to_units: str = "W_m2_nm",
) -> np.ndarray:
    """
    Rescale irradiance from one spectral unit to another.

    Both units must be keys of
    :data:`reconstruct_light.constants.IRRADIANCE_UNIT_TO_SI`; the value is
    taken to W m^-2 nm^-1 first and then to ``to_units``. The profiler
    values are normalised this way before the quantum conversion.
    """
    scale = irradiance_scale_to_si(from_units) / irradiance_scale_to_si(to_units)
    return np.asarray(irradiance, dtype=np.float64) * scale


def quantum_flux(
    radiometric_value: Union[float, np.ndarray],
    wavelength: Union[float, np.ndarray],
    units: str = DEFAULT_PROFILER_UNITS,
) -> Union[float, np.ndarray]:
    """
    Convert energy irradiance to quantum flux.

    Parameters
    ----------
    radiometric_value : float or array_like
        Downwelling irradiance in ``units``.
    wavelength : float or array_like
        Wavelength in nm.
    units : str, optional
        Units of ``radiometric_value``. Default is "uW_cm2_nm".

    Returns
    -------
    float or ndarray
        Quantum flux [umol photons m^-2 s^-1 nm^-1].

    Raises
    ------
    InvalidMeasurement
        If any value is negative or non-finite, or any wavelength is not a
        positive finite number.

    Examples
    --------
    >>> q = quantum_flux(100.0, 490.0)  # 1 W m^-2 nm^-1 at 490 nm
    >>> print(f"{q:.3f} umol m^-2 s^-1 nm^-1")
    4.096 umol m^-2 s^-1 nm^-1
    """
    value = np.asarray(radiometric_value, dtype=np.float64)
    wl = np.asarray(wavelength, dtype=np.float64)

    if not np.all(valid_measurement_mask(value, wl)):
        raise InvalidMeasurement(
            f"Cannot convert radiometric value {radiometric_value} "
            f"at wavelength {wavelength}"
        )

    q = convert_irradiance_units(value, units) * wl * QUANTUM_CONVERSION_FACTOR
    if q.ndim == 0:
        return float(q)
    return q


def valid_measurement_mask(
    radiometric_value: np.ndarray,
    wavelength: np.ndarray,
    detection_limit: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Flag measurements that can be converted.

    Parameters
    ----------
    radiometric_value : array_like
        Radiometric values.
    wavelength : array_like
        Wavelengths in nm.
    detection_limit : array_like, optional
        Per-sample detection limit in the units of ``radiometric_value``;
        NaN means no limit. Values below their limit are invalid.

    Returns
    -------
    ndarray of bool
        True where the value is finite and non-negative and the wavelength
        is finite and positive.
    """
    value = np.asarray(radiometric_value, dtype=np.float64)
    wl = np.asarray(wavelength, dtype=np.float64)

    with np.errstate(invalid="ignore"):
        mask = np.isfinite(value) & (value >= 0) & np.isfinite(wl) & (wl > 0)
        if detection_limit is not None:
            limit = np.asarray(detection_limit, dtype=np.float64)
            mask &= ~(value < limit)
    return mask


def convert_profile(
    profile: pd.DataFrame,
    units: str = DEFAULT_PROFILER_UNITS,
    detection_limits: Optional[Dict[float, float]] = None,
) -> Tuple[pd.DataFrame, int]:
    """
    Attach quantum flux to a table of Profile Samples.

    Invalid samples are dropped rather than failing the run.

    Parameters
    ----------
    profile : DataFrame
        Profile samples with the columns in :data:`PROFILE_COLUMNS`.
        A ``day`` column is derived from ``timestamp`` when absent
        and is normalised to midnight timestamps either way.
    units : str, optional
        Units of ``radiometric_value``. Default is "uW_cm2_nm".
    detection_limits : dict, optional
        Mapping of wavelength [nm] to the instrument detection limit in
        ``units``. Samples below the limit of their wavelength are dropped.

    Returns
    -------
    samples : DataFrame
        Copy of the valid rows with ``day`` and ``quantum_flux`` columns.
    n_invalid : int
        Number of samples dropped.

    Raises
    ------
    ValueError
        If required columns are missing.
    """
    missing = [c for c in PROFILE_COLUMNS if c not in profile.columns]
    if "day" in profile.columns and "timestamp" in missing:
        missing.remove("timestamp")
    if missing:
        raise ValueError(f"Profile table is missing columns: {missing}")

    samples = profile.copy()
    day_source = samples["day"] if "day" in samples.columns else samples["timestamp"]
    samples["day"] = pd.to_datetime(day_source).dt.floor("D")
    samples["wavelength"] = samples["wavelength"].astype(np.float64)
    samples["depth"] = samples["depth"].astype(np.float64)

    limit = None
    if detection_limits:
        limit = samples["wavelength"].map(
            {float(k): v for k, v in detection_limits.items()}
        ).to_numpy(dtype=np.float64)

    mask = valid_measurement_mask(
        samples["radiometric_value"].to_numpy(dtype=np.float64),
        samples["wavelength"].to_numpy(),
        limit,
    )
    with np.errstate(invalid="ignore"):
        mask &= np.isfinite(samples["depth"].to_numpy()) & (samples["depth"].to_numpy() >= 0)
    # Rows without a group key would vanish silently in the Kd groupby
    mask &= (samples["station"].notna() & samples["day"].notna()).to_numpy()

    n_invalid = int((~mask).sum())
    if n_invalid:
        logger.debug("Dropping %d invalid profile samples", n_invalid)

    samples = samples.loc[mask].reset_index(drop=True)
    samples["quantum_flux"] = quantum_flux(
        samples["radiometric_value"].to_numpy(dtype=np.float64),
        samples["wavelength"].to_numpy(),
        units,
    )
    return samples, n_invalid
