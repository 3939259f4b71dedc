"""
Extrapolation of surface irradiance to depth.

Each surface bucket is propagated down a regular depth grid with

.. math::

    Q(z, t) = 0.97 \\, \\overline{Q}_{surf}(t) \\exp(-K_d z)

where 0.97 accounts for the loss at the air-sea interface and z is
measured from the surface. Kd is taken from the attenuation estimate of
the cell's own depth bin if one exists, otherwise from the deepest
reliable estimate of the same day and wavelength. Cells with neither are
not emitted.
"""

import logging
from typing import Dict, Iterable, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from reconstruct_light.attenuation import AttenuationEstimate, depth_bin
from reconstruct_light.composition import (
    DayWavelength,
    DayWavelengthBin,
    FallbackCoefficient,
    index_by_depth_bin,
)
from reconstruct_light.constants import DEFAULT_DEPTH_BIN_WIDTH, SURFACE_REFLECTANCE_FACTOR
from reconstruct_light.exceptions import NoCoefficientAvailable

logger = logging.getLogger(__name__)

#: Coefficient provenance tags
OWN_BIN = "own_bin"
FALLBACK = "fallback"

#: Columns of the Grid Cell table
GRID_COLUMNS = ["time_bucket", "day", "wavelength", "depth", "irradiance",
                "effective_coefficient", "coefficient_source"]


def attenuate(
    surface_flux: Union[float, np.ndarray],
    coefficient: Union[float, np.ndarray],
    depth: Union[float, np.ndarray],
    reflectance_factor: float = SURFACE_REFLECTANCE_FACTOR,
) -> Union[float, np.ndarray]:
    """
    Apply the exponential attenuation law.

    Parameters
    ----------
    surface_flux : float or array_like
        Above-surface quantum flux.
    coefficient : float or array_like
        Kd [m^-1].
    depth : float or array_like
        Depth below the surface [m].
    reflectance_factor : float, optional
        Air-sea transmission factor. Default is 0.97.

    Returns
    -------
    float or ndarray
        Quantum flux at depth, in the units of ``surface_flux``.

    Examples
    --------
    >>> print(f"{attenuate(10.0, 0.05, 25.0):.3f}")
    2.778
    """
    result = (
        reflectance_factor
        * np.asarray(surface_flux, dtype=np.float64)
        * np.exp(-np.asarray(coefficient, dtype=np.float64) * np.asarray(depth, dtype=np.float64))
    )
    if result.ndim == 0:
        return float(result)
    return result


def resolve_coefficient(
    day: pd.Timestamp,
    wavelength: float,
    depth: float,
    own_index: Dict[DayWavelengthBin, AttenuationEstimate],
    fallback: Dict[DayWavelength, FallbackCoefficient],
    bin_width: float = DEFAULT_DEPTH_BIN_WIDTH,
) -> Tuple[float, str]:
    """
    Find the attenuation coefficient for one grid cell.

    Parameters
    ----------
    day : Timestamp
        Day of the cell.
    wavelength : float
        Wavelength [nm].
    depth : float
        Depth [m].
    own_index : dict
        Estimates keyed by (day, wavelength, depth_bin).
    fallback : dict
        Fallback coefficients keyed by (day, wavelength).
    bin_width : float, optional
        Depth bin width [m]. Default is 5.

    Returns
    -------
    coefficient : float
        Kd [m^-1].
    source : str
        ``"own_bin"`` or ``"fallback"``.

    Raises
    ------
    NoCoefficientAvailable
        If neither lookup succeeds.
    """
    wavelength = float(wavelength)
    est = own_index.get((day, wavelength, depth_bin(depth, bin_width)))
    if est is not None:
        return est.coefficient, OWN_BIN
    fb = fallback.get((day, wavelength))
    if fb is not None:
        return fb.coefficient, FALLBACK
    raise NoCoefficientAvailable(
        f"No Kd for {wavelength} nm at {depth} m on {day}"
    )


def extrapolate_field(
    surface_buckets: pd.DataFrame,
    estimates: Iterable[AttenuationEstimate],
    fallback: Dict[DayWavelength, FallbackCoefficient],
    depth_grid: np.ndarray,
    bin_width: float = DEFAULT_DEPTH_BIN_WIDTH,
    reflectance_factor: float = SURFACE_REFLECTANCE_FACTOR,
) -> Tuple[pd.DataFrame, int]:
    """
    Reconstruct the irradiance field over time and depth.

    Parameters
    ----------
    surface_buckets : DataFrame
        Output of :func:`reconstruct_light.surface.aggregate_surface`.
    estimates : iterable of AttenuationEstimate
        Retained attenuation estimates.
    fallback : dict
        Output of :func:`reconstruct_light.composition.compose_fallback`.
    depth_grid : array_like
        Depths [m] at which to evaluate the field.
    bin_width : float, optional
        Depth bin width used by the estimates [m]. Default is 5.
    reflectance_factor : float, optional
        Air-sea transmission factor. Default is 0.97.

    Returns
    -------
    field : DataFrame
        Grid Cell table with columns :data:`GRID_COLUMNS`, sorted by
        (day, wavelength, time_bucket, depth).
    n_dropped : int
        Number of (bucket, depth) cells without a coefficient.
    """
    depth_grid = np.asarray(depth_grid, dtype=np.float64)
    own_index = index_by_depth_bin(estimates)

    frames = []
    n_dropped = 0
    if surface_buckets.empty or depth_grid.size == 0:
        return pd.DataFrame(columns=GRID_COLUMNS), n_dropped

    for (day, wavelength), group in surface_buckets.groupby(["day", "wavelength"], sort=True):
        coefficient = np.full(depth_grid.shape, np.nan)
        source = np.empty(depth_grid.shape, dtype=object)
        for i, z in enumerate(depth_grid):
            try:
                coefficient[i], source[i] = resolve_coefficient(
                    day, wavelength, z, own_index, fallback, bin_width
                )
            except NoCoefficientAvailable:
                pass

        resolved = ~np.isnan(coefficient)
        n_buckets = len(group)
        n_dropped += int((~resolved).sum()) * n_buckets
        if not resolved.any():
            logger.warning(
                "No attenuation coefficient for %s nm on %s; %d surface buckets not extrapolated",
                wavelength, day, n_buckets,
            )
            continue

        depths = depth_grid[resolved]
        kd = coefficient[resolved]
        flux = group["mean_surface_flux"].to_numpy(dtype=np.float64)
        irradiance = attenuate(flux[:, np.newaxis], kd[np.newaxis, :],
                               depths[np.newaxis, :], reflectance_factor)

        n_depths = depths.size
        frames.append(pd.DataFrame({
            "time_bucket": np.repeat(group["time_bucket"].to_numpy(), n_depths),
            "day": day,
            "wavelength": float(wavelength),
            "depth": np.tile(depths, n_buckets),
            "irradiance": irradiance.ravel(),
            "effective_coefficient": np.tile(kd, n_buckets),
            "coefficient_source": np.tile(source[resolved], n_buckets),
        }))

    if not frames:
        return pd.DataFrame(columns=GRID_COLUMNS), n_dropped

    field = pd.concat(frames, ignore_index=True)
    logger.debug("Extrapolated %d grid cells, dropped %d", len(field), n_dropped)
    return field[GRID_COLUMNS], n_dropped


def field_to_dataset(field: pd.DataFrame) -> xr.Dataset:
    """
    Grid the Grid Cell table on (time_bucket, wavelength, depth).

    Cells that were not emitted appear as NaN.

    Parameters
    ----------
    field : DataFrame
        Output of :func:`extrapolate_field`.

    Returns
    -------
    Dataset
        ``irradiance`` and ``effective_coefficient`` variables.
    """
    ds = (
        field.set_index(["time_bucket", "wavelength", "depth"])
        [["irradiance", "effective_coefficient"]]
        .astype(np.float64)
        .to_xarray()
    )
    ds["wavelength"].attrs["units"] = "nm"
    ds["depth"].attrs["units"] = "m"
    ds["irradiance"].attrs["units"] = "umol m-2 s-1 nm-1"
    ds["effective_coefficient"].attrs["units"] = "m-1"
    return ds
