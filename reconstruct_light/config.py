"""
Run configuration for the light-field reconstruction.

All options are read-only for the duration of a run and shared by every
stage. Validation happens on construction so that an invalid setting is
reported before any data is touched.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from reconstruct_light.constants import (
    DEFAULT_BUCKET_WIDTH_MINUTES,
    DEFAULT_DEPTH_BIN_WIDTH,
    DEFAULT_DEPTH_GRID,
    DEFAULT_MIN_FIT_SAMPLES,
    DEFAULT_MIN_R_SQUARED,
    DEFAULT_PROFILER_UNITS,
    IRRADIANCE_UNIT_TO_SI,
    SURFACE_REFLECTANCE_FACTOR,
)
from reconstruct_light.exceptions import ConfigurationError


@dataclass(frozen=True)
class ReconstructionConfig:
    """
    Configuration of a reconstruction run.

    Attributes
    ----------
    depth_bin_width_m : float
        Width of the depth bins used to localize the attenuation fit [m].
        Default is 5.
    bucket_width_minutes : int
        Width of the surface time buckets [minutes]. Default is 5.
    min_r_squared : float
        Fits with r² at or below this value are discarded. Default is 0.9.
    min_fit_samples : int
        Minimum number of usable samples to attempt a fit. Default is 4.
    depth_grid_min_m, depth_grid_max_m, depth_grid_step_m : float
        Bounds and spacing of the output depth grid [m].
        Default is 0 to 1500 every 5 m.
    reflectance_factor : float
        Air-sea transmission factor. Fixed at 0.97; only overridden in tests.
    instrument_units : str
        Units of the profiler radiometric values. Default is "uW_cm2_nm".
    surface_valid_range : tuple of float, optional
        (low, high) plausibility window for surface readings; readings
        outside it are ignored. Default is None (no screening). Negative
        readings are dropped whether or not a window is set.
    show_progress : bool
        Display a progress bar over the regression groups. Default is False.

    Examples
    --------
    Screen the deck record with the TriOS export window:

    >>> from reconstruct_light.constants import SURFACE_FLUX_VALID_RANGE
    >>> cfg = ReconstructionConfig(surface_valid_range=SURFACE_FLUX_VALID_RANGE)
    >>> cfg.bucket_width
    Timedelta('0 days 00:05:00')
    """

    depth_bin_width_m: float = DEFAULT_DEPTH_BIN_WIDTH
    bucket_width_minutes: int = DEFAULT_BUCKET_WIDTH_MINUTES
    min_r_squared: float = DEFAULT_MIN_R_SQUARED
    min_fit_samples: int = DEFAULT_MIN_FIT_SAMPLES
    depth_grid_min_m: float = DEFAULT_DEPTH_GRID[0]
    depth_grid_max_m: float = DEFAULT_DEPTH_GRID[1]
    depth_grid_step_m: float = DEFAULT_DEPTH_GRID[2]
    reflectance_factor: float = SURFACE_REFLECTANCE_FACTOR
    instrument_units: str = DEFAULT_PROFILER_UNITS
    surface_valid_range: Optional[Tuple[float, float]] = None
    show_progress: bool = False

    def __post_init__(self):
        """Validate settings."""
        if not self.depth_bin_width_m > 0:
            raise ConfigurationError(
                f"depth_bin_width_m must be positive, got {self.depth_bin_width_m}"
            )
        if not self.bucket_width_minutes > 0:
            raise ConfigurationError(
                f"bucket_width_minutes must be positive, got {self.bucket_width_minutes}"
            )
        seconds = self.bucket_width.total_seconds()
        if seconds != int(seconds):
            raise ConfigurationError(
                "bucket_width_minutes must be a whole number of seconds, "
                f"got {self.bucket_width_minutes}"
            )
        if not 0.0 <= self.min_r_squared < 1.0:
            raise ConfigurationError(
                f"min_r_squared must be in [0, 1), got {self.min_r_squared}"
            )
        # Two points always give a perfect line
        if self.min_fit_samples < 3:
            raise ConfigurationError(
                f"min_fit_samples must be at least 3, got {self.min_fit_samples}"
            )
        if self.depth_grid_min_m < 0 or self.depth_grid_max_m < 0:
            raise ConfigurationError(
                "Depth grid bounds must be non-negative, got "
                f"({self.depth_grid_min_m}, {self.depth_grid_max_m})"
            )
        if self.depth_grid_max_m < self.depth_grid_min_m:
            raise ConfigurationError(
                f"depth_grid_max_m ({self.depth_grid_max_m}) is below "
                f"depth_grid_min_m ({self.depth_grid_min_m})"
            )
        if not self.depth_grid_step_m > 0:
            raise ConfigurationError(
                f"depth_grid_step_m must be positive, got {self.depth_grid_step_m}"
            )
        if not self.reflectance_factor > 0:
            raise ConfigurationError(
                f"reflectance_factor must be positive, got {self.reflectance_factor}"
            )
        if self.instrument_units not in IRRADIANCE_UNIT_TO_SI:
            raise ConfigurationError(
                f"Unknown instrument_units '{self.instrument_units}'. "
                f"Supported: {list(IRRADIANCE_UNIT_TO_SI)}"
            )
        if self.surface_valid_range is not None:
            low, high = self.surface_valid_range
            if not low < high:
                raise ConfigurationError(
                    f"surface_valid_range must be (low, high), got {self.surface_valid_range}"
                )

    @property
    def bucket_width(self) -> pd.Timedelta:
        """Surface bucket width as a timedelta."""
        return pd.Timedelta(minutes=self.bucket_width_minutes)

    def depth_grid(self) -> np.ndarray:
        """
        Uniform depth sequence of the output grid.

        Returns
        -------
        ndarray
            Depths [m] from ``depth_grid_min_m`` to ``depth_grid_max_m``
            inclusive, spaced by ``depth_grid_step_m``.
        """
        n_steps = int(np.floor(
            (self.depth_grid_max_m - self.depth_grid_min_m) / self.depth_grid_step_m
            + 1e-9
        ))
        return self.depth_grid_min_m + self.depth_grid_step_m * np.arange(n_steps + 1)
