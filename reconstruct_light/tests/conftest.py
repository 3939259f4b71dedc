"""
Pytest configuration and shared fixtures for reconstruct_light tests.
"""

import numpy as np
import pandas as pd
import pytest


def make_profile(
    kd,
    station="DE001",
    cast=1,
    time="2021-10-01 10:00",
    depths=None,
    surface_value=100.0,
):
    """
    Noise-free profile with exp(-Kd z) decay.

    ``kd`` maps wavelength [nm] to Kd [m^-1]; values are in uW cm^-2 nm^-1.
    """
    if depths is None:
        depths = np.arange(0.0, 40.0, 1.0)
    rows = []
    for wl, k in kd.items():
        for z in depths:
            rows.append({
                "cast_id": f"{station}_{cast}",
                "station": station,
                "timestamp": pd.Timestamp(time),
                "wavelength": float(wl),
                "depth": float(z),
                "radiometric_value": surface_value * np.exp(-k * z),
            })
    return pd.DataFrame(rows)


def make_surface(values, start="2021-10-01 10:00", periods=12, freq="30s"):
    """Surface record with a constant reading per wavelength."""
    times = pd.date_range(start, periods=periods, freq=freq)
    rows = [
        {"timestamp": t, "wavelength": float(wl), "radiometric_value": v}
        for wl, v in values.items()
        for t in times
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def reference_kd():
    """Kd per wavelength for clear coastal water."""
    return {443: 0.04, 490: 0.05, 555: 0.08}


@pytest.fixture
def profile(reference_kd):
    """Single-cast profile from the surface to 39 m."""
    return make_profile(reference_kd)


@pytest.fixture
def surface():
    """Surface record over two 5-minute buckets."""
    return make_surface({443: 8.0, 490: 10.0, 555: 12.0, 665: 5.0}, periods=20)


@pytest.fixture
def profile_factory():
    """Builder for synthetic profiles (see ``make_profile``)."""
    return make_profile


@pytest.fixture
def surface_factory():
    """Builder for synthetic surface records (see ``make_surface``)."""
    return make_surface
