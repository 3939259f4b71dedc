"""
Tests for surface record aggregation.
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

from reconstruct_light.exceptions import ConfigurationError
from reconstruct_light.surface import (
    BUCKET_COLUMNS,
    aggregate_surface,
    screen_surface_outliers,
)


class TestScreening:
    """Tests for surface outlier screening."""

    def test_out_of_range_to_nan(self):
        """Values outside the window become NaN."""
        out = screen_surface_outliers(np.array([-1.0, 0.0, 0.5, 2.0]), (-1e-5, 1.0))
        assert np.isnan(out[0]) and np.isnan(out[3])
        assert_allclose(out[1:3], [0.0, 0.5])


class TestAggregateSurface:
    """Tests for time-bucket averaging."""

    def test_bucket_means(self, surface_factory):
        """Readings every 30 s average into 5-minute buckets."""
        surface = surface_factory({490: 10.0}, periods=20)
        surface.loc[surface.index[:10], "radiometric_value"] = np.arange(10.0)
        buckets, summary = aggregate_surface(surface, [490.0])

        assert list(buckets.columns) == BUCKET_COLUMNS
        assert len(buckets) == 2
        assert buckets["time_bucket"].tolist() == [
            pd.Timestamp("2021-10-01 10:00"), pd.Timestamp("2021-10-01 10:05"),
        ]
        assert_allclose(buckets["mean_surface_flux"], [4.5, 10.0])
        assert buckets["n_readings"].tolist() == [10, 10]
        assert (buckets["day"] == pd.Timestamp("2021-10-01")).all()
        assert summary.invalid_readings == 0

    def test_floor_to_bucket(self, surface_factory):
        """Times are floored, not rounded."""
        surface = surface_factory({490: 1.0}, start="2021-10-01 10:04:50", periods=2, freq="20s")
        buckets, _ = aggregate_surface(surface, [490.0])
        assert buckets["time_bucket"].tolist() == [
            pd.Timestamp("2021-10-01 10:00"), pd.Timestamp("2021-10-01 10:05"),
        ]

    def test_wavelengths_intersected(self, surface):
        """Only wavelengths present in the profiles are kept."""
        buckets, summary = aggregate_surface(surface, [443.0, 490.0, 412.0])
        assert sorted(buckets["wavelength"].unique()) == [443.0, 490.0]
        # 555 and 665 nm are not profiled
        assert summary.wavelengths_dropped == 2

    def test_non_finite_ignored(self, surface_factory):
        """NaN and inf readings do not enter the mean."""
        surface = surface_factory({490: 6.0}, periods=4)
        surface.loc[0, "radiometric_value"] = np.nan
        surface.loc[1, "radiometric_value"] = np.inf
        buckets, summary = aggregate_surface(surface, [490.0])
        assert_allclose(buckets["mean_surface_flux"], [6.0])
        assert buckets["n_readings"].tolist() == [2]
        assert summary.invalid_readings == 2

    def test_all_invalid_bucket_omitted(self, surface_factory):
        """A bucket with no finite reading is not emitted."""
        surface = surface_factory({490: np.nan}, periods=4)
        buckets, summary = aggregate_surface(surface, [490.0])
        assert buckets.empty
        assert list(buckets.columns) == BUCKET_COLUMNS
        assert summary.invalid_readings == 4

    def test_valid_range(self, surface_factory):
        """Plausibility screening drops outliers before averaging."""
        surface = surface_factory({490: 0.4}, periods=4)
        surface.loc[0, "radiometric_value"] = 250.0
        buckets, summary = aggregate_surface(surface, [490.0], valid_range=(-1e-5, 1.0))
        assert_allclose(buckets["mean_surface_flux"], [0.4])
        assert summary.invalid_readings == 1

    def test_negative_readings_dropped(self, surface_factory):
        """Negative readings are invalid even inside the plausibility window."""
        surface = surface_factory({490: 0.4}, periods=4)
        surface.loc[0, "radiometric_value"] = -5e-6
        surface.loc[1, "radiometric_value"] = -3.0
        for valid_range in (None, (-1e-5, 1.0)):
            buckets, summary = aggregate_surface(surface, [490.0], valid_range=valid_range)
            assert_allclose(buckets["mean_surface_flux"], [0.4])
            assert buckets["n_readings"].tolist() == [2]
            assert summary.invalid_readings == 2

    def test_unknown_band_logged(self, surface_factory, caplog):
        """Dropped wavelengths outside the reference bands are reported."""
        surface = surface_factory({490: 1.0, 500: 1.0}, periods=2)
        with caplog.at_level("WARNING", logger="reconstruct_light.surface"):
            _, summary = aggregate_surface(surface, [490.0])
        assert summary.wavelengths_dropped == 1
        assert "500.0" in caplog.text

    def test_bucket_width(self, surface_factory):
        """Custom bucket widths, in minutes or as a timedelta."""
        surface = surface_factory({490: 1.0}, periods=40)  # 20 minutes
        by_minutes, _ = aggregate_surface(surface, [490.0], bucket_width=10)
        by_delta, _ = aggregate_surface(surface, [490.0], bucket_width=pd.Timedelta("10min"))
        assert len(by_minutes) == 2
        assert by_minutes.equals(by_delta)

    @pytest.mark.parametrize("width", [0, -5, pd.Timedelta("1.5s")])
    def test_invalid_bucket_width(self, surface, width):
        """Non-positive or fractional-second widths are rejected."""
        with pytest.raises(ConfigurationError):
            aggregate_surface(surface, [490.0], bucket_width=width)

    def test_missing_columns(self, surface):
        """Missing columns raise ValueError."""
        with pytest.raises(ValueError, match="missing columns"):
            aggregate_surface(surface.drop(columns="wavelength"), [490.0])
