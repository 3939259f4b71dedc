"""
Underwater Light-Field Reconstruction
=====================================

Main driver composing the profile and surface streams of one mission into
a time- and depth-resolved irradiance field.

The reconstruction proceeds in five steps:

1. Convert profiler irradiance to quantum flux
2. Fit Kd per (day, station, wavelength, depth bin) and gate on quality
3. Select the deepest reliable Kd per (day, wavelength) as fallback
4. Average the surface record into time buckets at the profiled wavelengths
5. Propagate every surface bucket down the depth grid

Sample-, group- and cell-level problems shrink the output and are counted
in :class:`ReconstructionDiagnostics`; only an invalid configuration stops
a run.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd
import xarray as xr

from reconstruct_light.attenuation import (
    AttenuationEstimate,
    estimate_attenuation,
    estimates_to_frame,
)
from reconstruct_light.composition import DayWavelength, FallbackCoefficient, compose_fallback
from reconstruct_light.config import ReconstructionConfig
from reconstruct_light.conversion import convert_profile
from reconstruct_light.extrapolation import extrapolate_field, field_to_dataset
from reconstruct_light.surface import aggregate_surface

logger = logging.getLogger(__name__)


@dataclass
class ReconstructionDiagnostics:
    """
    Counts of data excluded at each stage of a run.

    Attributes
    ----------
    invalid_samples : int
        Profile samples rejected by the radiometric converter.
    nonpositive_flux_samples : int
        Profile samples left out of a log-linear fit.
    insufficient_groups : int
        Regression groups with too few samples or no depth spread.
    rejected_fits : int
        Fits discarded by the r² gate.
    negative_coefficients : int
        Retained fits with Kd < 0 (flux increasing with depth).
    invalid_surface_readings : int
        Negative, non-finite or implausible surface readings.
    surface_wavelengths_dropped : int
        Surface wavelengths absent from the profiles.
    dropped_cells : int
        Grid cells without own-bin or fallback coefficient.
    """

    invalid_samples: int = 0
    nonpositive_flux_samples: int = 0
    insufficient_groups: int = 0
    rejected_fits: int = 0
    negative_coefficients: int = 0
    invalid_surface_readings: int = 0
    surface_wavelengths_dropped: int = 0
    dropped_cells: int = 0


@dataclass
class ReconstructionResult:
    """
    Results of a reconstruction run.

    Attributes
    ----------
    field : DataFrame
        Grid Cell table (time_bucket, day, wavelength, depth, irradiance,
        effective_coefficient, coefficient_source).
    estimates : list of AttenuationEstimate
        Retained attenuation estimates.
    fallback : dict
        Fallback coefficients keyed by (day, wavelength).
    surface_buckets : DataFrame
        Aggregated surface record.
    diagnostics : ReconstructionDiagnostics
        Exclusion counts.
    """

    field: pd.DataFrame
    estimates: List[AttenuationEstimate]
    fallback: Dict[DayWavelength, FallbackCoefficient]
    surface_buckets: pd.DataFrame
    diagnostics: ReconstructionDiagnostics

    @property
    def estimates_frame(self) -> pd.DataFrame:
        """Attenuation estimates as a table."""
        return estimates_to_frame(self.estimates)

    def to_dataset(self) -> xr.Dataset:
        """Reconstructed field on a (time_bucket, wavelength, depth) grid."""
        return field_to_dataset(self.field)


class LightFieldReconstruction:
    """
    Reconstruction of the underwater light field for one mission.

    Parameters
    ----------
    config : ReconstructionConfig, optional
        Run configuration. Defaults are used if None.
    detection_limits : dict, optional
        Profiler detection limit per wavelength [nm], in the profiler
        units. Samples below their limit are dropped.

    Examples
    --------
    >>> recon = LightFieldReconstruction(ReconstructionConfig(depth_grid_max_m=200))
    >>> result = recon.process(profile, surface)
    >>> result.field.query("wavelength == 490 and depth == 25")
    """

    def __init__(
        self,
        config: Optional[ReconstructionConfig] = None,
        detection_limits: Optional[Dict[float, float]] = None,
    ):
        self.config = config if config is not None else ReconstructionConfig()
        self.detection_limits = detection_limits

    def process(self, profile: pd.DataFrame, surface: pd.DataFrame) -> ReconstructionResult:
        """
        Run the full reconstruction.

        Parameters
        ----------
        profile : DataFrame
            Profile samples (cast_id, station, timestamp, wavelength, depth,
            radiometric_value).
        surface : DataFrame
            Surface samples (timestamp, wavelength, radiometric_value) in
            quantum units.

        Returns
        -------
        ReconstructionResult
            Reconstructed field, intermediate products and diagnostics.
        """
        cfg = self.config
        diagnostics = ReconstructionDiagnostics()

        # Step 1: Radiometric conversion
        samples, diagnostics.invalid_samples = convert_profile(
            profile, cfg.instrument_units, self.detection_limits
        )

        # Step 2: Kd per depth bin
        estimates, est_summary = estimate_attenuation(samples, cfg)
        diagnostics.nonpositive_flux_samples = est_summary.nonpositive_flux_samples
        diagnostics.insufficient_groups = est_summary.insufficient_groups
        diagnostics.rejected_fits = est_summary.rejected_fits
        diagnostics.negative_coefficients = est_summary.negative_coefficients

        # Step 3: Deepest reliable Kd
        fallback = compose_fallback(estimates)

        # Step 4: Surface buckets at the profiled wavelengths
        buckets, surf_summary = aggregate_surface(
            surface,
            samples["wavelength"].unique(),
            cfg.bucket_width,
            cfg.surface_valid_range,
        )
        diagnostics.invalid_surface_readings = surf_summary.invalid_readings
        diagnostics.surface_wavelengths_dropped = surf_summary.wavelengths_dropped

        # Step 5: Extrapolate to depth
        grid, diagnostics.dropped_cells = extrapolate_field(
            buckets,
            estimates,
            fallback,
            cfg.depth_grid(),
            bin_width=cfg.depth_bin_width_m,
            reflectance_factor=cfg.reflectance_factor,
        )

        logger.info(
            "Reconstructed %d grid cells from %d Kd estimates and %d surface buckets",
            len(grid), len(estimates), len(buckets),
        )
        return ReconstructionResult(
            field=grid,
            estimates=estimates,
            fallback=fallback,
            surface_buckets=buckets,
            diagnostics=diagnostics,
        )


def reconstruct(
    profile: pd.DataFrame,
    surface: pd.DataFrame,
    config: Optional[ReconstructionConfig] = None,
    detection_limits: Optional[Dict[float, float]] = None,
) -> ReconstructionResult:
    """Convenience wrapper around :meth:`LightFieldReconstruction.process`."""
    return LightFieldReconstruction(config, detection_limits).process(profile, surface)
