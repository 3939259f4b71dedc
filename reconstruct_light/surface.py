"""
Aggregation of the continuous surface irradiance record.

The deck sensor samples every few seconds for the whole mission. It is
reduced to fixed-width time buckets (floored to multiples of the bucket
width since the epoch) and restricted to the wavelengths also measured by
the profiler, so that each bucket can in principle be paired with an
attenuation coefficient.

Surface values are expected in quantum units already
(umol photons m^-2 s^-1 nm^-1), as exported by the TriOS processing.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

from reconstruct_light.constants import DEFAULT_BUCKET_WIDTH_MINUTES, REFERENCE_WAVELENGTHS
from reconstruct_light.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

#: Columns an upstream parser must supply for the surface stream
SURFACE_COLUMNS = ("timestamp", "wavelength", "radiometric_value")

#: Columns of the aggregated table
BUCKET_COLUMNS = ["time_bucket", "day", "wavelength", "mean_surface_flux", "n_readings"]


@dataclass
class AggregationSummary:
    """Counts of surface readings excluded during aggregation."""

    invalid_readings: int = 0
    wavelengths_dropped: int = 0


def screen_surface_outliers(
    flux: np.ndarray,
    valid_range: Tuple[float, float],
) -> np.ndarray:
    """
    Replace implausible surface readings by NaN.

    Parameters
    ----------
    flux : array_like
        Surface quantum flux.
    valid_range : tuple of float
        Inclusive (low, high) plausibility window.

    Returns
    -------
    ndarray
        Copy of ``flux`` with out-of-window values set to NaN.
    """
    flux = np.asarray(flux, dtype=np.float64)
    low, high = valid_range
    with np.errstate(invalid="ignore"):
        return np.where((flux >= low) & (flux <= high), flux, np.nan)


def aggregate_surface(
    surface: pd.DataFrame,
    profile_wavelengths: Iterable[float],
    bucket_width: Union[float, pd.Timedelta] = DEFAULT_BUCKET_WIDTH_MINUTES,
    valid_range: Optional[Tuple[float, float]] = None,
) -> Tuple[pd.DataFrame, AggregationSummary]:
    """
    Average surface readings over fixed time buckets.

    Parameters
    ----------
    surface : DataFrame
        Raw surface samples with the columns in :data:`SURFACE_COLUMNS`.
    profile_wavelengths : iterable of float
        Wavelengths present in the profile samples [nm]. Readings at any
        other wavelength are discarded.
    bucket_width : float or Timedelta, optional
        Bucket width, in minutes when given as a number. Default is 5.
    valid_range : tuple of float, optional
        Plausibility window applied before averaging. Default is None.

    Returns
    -------
    buckets : DataFrame
        One row per (time_bucket, wavelength) with columns
        :data:`BUCKET_COLUMNS`. Buckets without any usable reading are
        omitted.
    summary : AggregationSummary
        Exclusion counts.

    Raises
    ------
    ValueError
        If required columns are missing.
    ConfigurationError
        If the bucket width is not a positive whole number of seconds.
    """
    missing = [c for c in SURFACE_COLUMNS if c not in surface.columns]
    if missing:
        raise ValueError(f"Surface table is missing columns: {missing}")

    if not isinstance(bucket_width, pd.Timedelta):
        bucket_width = pd.Timedelta(minutes=bucket_width)
    seconds = bucket_width.total_seconds()
    if seconds <= 0 or seconds != int(seconds):
        raise ConfigurationError(
            f"Bucket width must be a positive whole number of seconds, got {bucket_width}"
        )

    summary = AggregationSummary()
    wavelengths = np.unique(np.asarray(list(profile_wavelengths), dtype=np.float64))

    readings = pd.DataFrame({
        "timestamp": pd.to_datetime(surface["timestamp"]),
        "wavelength": surface["wavelength"].astype(np.float64),
        "flux": pd.to_numeric(surface["radiometric_value"], errors="coerce"),
    })

    shared = readings["wavelength"].isin(wavelengths)
    dropped = np.unique(readings.loc[~shared, "wavelength"].to_numpy())
    summary.wavelengths_dropped = int(dropped.size)
    unknown = dropped[~np.isin(dropped, REFERENCE_WAVELENGTHS)]
    if unknown.size:
        logger.warning("Surface wavelengths outside the reference bands: %s", unknown.tolist())
    readings = readings.loc[shared]

    flux = readings["flux"].to_numpy(dtype=np.float64)
    if valid_range is not None:
        flux = screen_surface_outliers(flux, valid_range)
    # Irradiance cannot be negative, whatever the plausibility window allows
    with np.errstate(invalid="ignore"):
        usable = np.isfinite(flux) & (flux >= 0)
    summary.invalid_readings = int((~usable).sum())
    readings = readings.assign(flux=flux).loc[usable]

    if readings.empty:
        logger.warning("No usable surface readings at the profiled wavelengths")
        return pd.DataFrame(columns=BUCKET_COLUMNS), summary

    readings = readings.assign(time_bucket=readings["timestamp"].dt.floor(f"{int(seconds)}s"))
    buckets = (
        readings.groupby(["time_bucket", "wavelength"], sort=True)["flux"]
        .agg(mean_surface_flux="mean", n_readings="count")
        .reset_index()
    )
    buckets.insert(1, "day", buckets["time_bucket"].dt.floor("D"))

    logger.debug(
        "Aggregated %d surface readings into %d buckets (%d invalid, %d wavelengths dropped)",
        len(readings), len(buckets), summary.invalid_readings, summary.wavelengths_dropped,
    )
    return buckets[BUCKET_COLUMNS], summary
