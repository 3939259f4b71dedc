"""
End-to-end tests for the reconstruction driver.
"""

import numpy as np
import pandas as pd
import pytest

from reconstruct_light import LightFieldReconstruction, ReconstructionConfig, reconstruct
from reconstruct_light.exceptions import ConfigurationError
from reconstruct_light.extrapolation import FALLBACK, GRID_COLUMNS, OWN_BIN


class TestLightFieldReconstruction:
    """Tests for a full run."""

    def test_reference_scenario(self, profile, surface):
        """Kd 0.05 at 490 nm and surface 10.0 give 2.778 at 25 m."""
        result = reconstruct(profile, surface)
        cells = result.field[(result.field["wavelength"] == 490.0) & (result.field["depth"] == 25.0)]

        assert len(cells) == 2  # two 5-minute buckets
        assert np.allclose(cells["irradiance"], 2.778, atol=1e-3)
        assert np.allclose(cells["effective_coefficient"], 0.05)
        assert (cells["coefficient_source"] == OWN_BIN).all()

    def test_full_field(self, profile, surface):
        """Every bucket and depth resolves at the profiled wavelengths."""
        result = reconstruct(profile, surface)
        n_depths = len(ReconstructionConfig().depth_grid())

        assert list(result.field.columns) == GRID_COLUMNS
        assert len(result.field) == 2 * 3 * n_depths
        assert result.diagnostics.dropped_cells == 0
        # 665 nm is only measured at the surface
        assert 665.0 not in result.field["wavelength"].values
        assert result.diagnostics.surface_wavelengths_dropped == 1

    def test_extrapolation_below_profile(self, profile, surface):
        """Depths below the deepest cast use the fallback Kd."""
        result = reconstruct(profile, surface)
        deep = result.field[result.field["depth"] > 40.0]
        assert (deep["coefficient_source"] == FALLBACK).all()
        fb = result.fallback[(pd.Timestamp("2021-10-01"), 490.0)]
        assert fb.depth_bin == 35.0

    def test_two_stations(self, profile_factory, surface_factory):
        """Fallback comes from the deeper of two stations."""
        profile = pd.concat([
            profile_factory({490: 0.09}, station="DE001", depths=np.arange(10.0, 15.0)),
            profile_factory({490: 0.05}, station="DE002", depths=np.arange(30.0, 35.0)),
        ], ignore_index=True)
        result = reconstruct(profile, surface_factory({490: 10.0}))

        fb = result.fallback[(pd.Timestamp("2021-10-01"), 490.0)]
        assert fb.depth_bin == 30.0
        assert fb.coefficient == pytest.approx(0.05)
        cell = result.field[result.field["depth"] == 100.0].iloc[0]
        assert cell["effective_coefficient"] == pytest.approx(0.05)
        cell = result.field[result.field["depth"] == 10.0].iloc[0]
        assert cell["effective_coefficient"] == pytest.approx(0.09)

    def test_day_without_profile(self, profile, surface_factory):
        """Surface data on a day without casts produces no cells that day."""
        surface = pd.concat([
            surface_factory({490: 10.0}),
            surface_factory({490: 9.0}, start="2021-10-02 10:00"),
        ], ignore_index=True)
        result = reconstruct(profile, surface)

        days = result.field["day"].unique()
        assert list(days) == [pd.Timestamp("2021-10-01")]
        # two buckets on the second day
        assert result.diagnostics.dropped_cells == 2 * len(ReconstructionConfig().depth_grid())

    def test_diagnostics(self, profile, surface):
        """Excluded data is counted instead of raising."""
        profile = profile.copy()
        profile.loc[0, "radiometric_value"] = -1.0
        profile.loc[1, "radiometric_value"] = 0.0
        surface = surface.copy()
        surface.loc[0, "radiometric_value"] = np.nan

        result = reconstruct(profile, surface)
        diag = result.diagnostics
        assert diag.invalid_samples == 1
        assert diag.nonpositive_flux_samples == 1
        assert diag.invalid_surface_readings == 1
        assert diag.rejected_fits == 0
        assert not result.field.empty

    def test_negative_surface_never_negative_irradiance(self, profile, surface_factory):
        """Slightly negative deck readings inside the window are dropped."""
        surface = surface_factory({490: -5e-6})
        surface.loc[0, "radiometric_value"] = 0.5
        cfg = ReconstructionConfig(depth_grid_max_m=20, surface_valid_range=(-1e-5, 1.0))
        result = reconstruct(profile, surface, cfg)

        assert (result.field["irradiance"] >= 0).all()
        assert len(result.surface_buckets) == 1
        assert result.diagnostics.invalid_surface_readings == len(surface) - 1

    def test_detection_limits_through_wrapper(self, profile, surface):
        """The convenience wrapper accepts detection limits."""
        result = reconstruct(profile, surface, detection_limits={490: 1e6})
        assert 490.0 not in result.field["wavelength"].values
        assert result.diagnostics.invalid_samples == int((profile["wavelength"] == 490).sum())

    def test_missing_station_counted(self, profile, surface):
        """Samples without a station are counted as invalid."""
        profile = profile.copy()
        profile.loc[:2, "station"] = None
        result = reconstruct(profile, surface)
        assert result.diagnostics.invalid_samples == 3

    def test_sparse_data_does_not_raise(self, profile_factory, surface):
        """Profiles too short to fit give an empty field, not an error."""
        short = profile_factory({490: 0.05}, depths=np.arange(0.0, 3.0))
        result = reconstruct(short, surface)
        assert result.field.empty
        assert result.estimates == []
        assert result.diagnostics.insufficient_groups == 1

    def test_detection_limits(self, profile, surface):
        """Samples below the detection limit are dropped."""
        recon = LightFieldReconstruction(detection_limits={490: 1e6})
        result = recon.process(profile, surface)
        assert 490.0 not in result.field["wavelength"].values
        assert result.diagnostics.invalid_samples == int((profile["wavelength"] == 490).sum())

    def test_custom_grid(self, profile, surface):
        """Depth grid follows the configuration."""
        cfg = ReconstructionConfig(depth_grid_min_m=10, depth_grid_max_m=30, depth_grid_step_m=10)
        result = LightFieldReconstruction(cfg).process(profile, surface)
        assert sorted(result.field["depth"].unique()) == [10.0, 20.0, 30.0]

    def test_estimates_frame_and_dataset(self, profile, surface):
        """Tabular and gridded views of the outputs."""
        cfg = ReconstructionConfig(depth_grid_max_m=50)
        result = reconstruct(profile, surface, cfg)
        assert len(result.estimates_frame) == len(result.estimates)
        ds = result.to_dataset()
        assert ds["irradiance"].shape == (2, 3, 11)

    def test_logs_summary(self, profile, surface, caplog):
        """Run summary is logged at INFO."""
        with caplog.at_level("INFO", logger="reconstruct_light.reconstruction"):
            reconstruct(profile, surface)
        assert "Reconstructed" in caplog.text

    def test_configuration_error_is_fatal(self):
        """Invalid configuration fails before any computation."""
        with pytest.raises(ConfigurationError):
            LightFieldReconstruction(ReconstructionConfig(depth_grid_step_m=-5))
