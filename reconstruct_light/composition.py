"""
Keyed lookups over attenuation estimates.

Two indices are built from the retained estimates:

- the own-bin index, keyed by (day, wavelength, depth_bin), used for grid
  cells whose depth bin was sampled by a profile;
- the fallback map, keyed by (day, wavelength), holding the estimate from
  the deepest reliable bin, used for every other depth.

A missing key means no coefficient is available, never a zero Kd.

When several stations share a key the first estimate encountered wins.
:func:`reconstruct_light.attenuation.estimate_attenuation` emits estimates
sorted by (day, station, wavelength, depth_bin), so with its output the
lowest-sorting station is used.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, Tuple

import pandas as pd

from reconstruct_light.attenuation import AttenuationEstimate

DayWavelength = Tuple[pd.Timestamp, float]
DayWavelengthBin = Tuple[pd.Timestamp, float, float]


@dataclass(frozen=True)
class FallbackCoefficient:
    """
    Deepest reliable attenuation coefficient for one day and wavelength.

    Attributes
    ----------
    day : Timestamp
        Day (midnight).
    wavelength : float
        Wavelength [nm].
    coefficient : float
        Kd [m^-1].
    depth_bin : float
        Bin the coefficient was fitted in [m].
    station : str
        Station the coefficient came from.
    """

    day: pd.Timestamp
    wavelength: float
    coefficient: float
    depth_bin: float
    station: Hashable


def compose_fallback(
    estimates: Iterable[AttenuationEstimate],
) -> Dict[DayWavelength, FallbackCoefficient]:
    """
    Select the deepest estimate for each (day, wavelength).

    Parameters
    ----------
    estimates : iterable of AttenuationEstimate
        Retained estimates.

    Returns
    -------
    dict
        Mapping (day, wavelength) -> FallbackCoefficient. Pairs without any
        estimate are absent.

    Examples
    --------
    >>> fallback = compose_fallback(estimates)
    >>> kd = fallback.get((day, 490.0))  # None when no fallback exists
    """
    fallback: Dict[DayWavelength, FallbackCoefficient] = {}
    for est in estimates:
        key = (est.day, float(est.wavelength))
        current = fallback.get(key)
        # Strict comparison keeps the first of equally deep estimates
        if current is None or est.depth_bin > current.depth_bin:
            fallback[key] = FallbackCoefficient(
                day=est.day,
                wavelength=float(est.wavelength),
                coefficient=est.coefficient,
                depth_bin=est.depth_bin,
                station=est.station,
            )
    return fallback


def index_by_depth_bin(
    estimates: Iterable[AttenuationEstimate],
) -> Dict[DayWavelengthBin, AttenuationEstimate]:
    """
    Index estimates by (day, wavelength, depth_bin).

    Station is not part of the key; the first estimate for a key wins.
    """
    index: Dict[DayWavelengthBin, AttenuationEstimate] = {}
    for est in estimates:
        index.setdefault((est.day, float(est.wavelength), float(est.depth_bin)), est)
    return index
