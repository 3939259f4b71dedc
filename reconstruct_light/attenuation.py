"""
Diffuse attenuation coefficient estimation from light profiles.

Within a depth bin the downwelling quantum flux is assumed to follow the
Beer-Lambert law

.. math::

    Q(z) = Q(z_0) \\exp[-K_d (z - z_0)]

so that ln Q is linear in depth with slope -Kd. The profile is grouped by
(day, station, wavelength, depth bin), an ordinary least squares line is
fit to ln Q against depth in each group, and only fits with enough samples
and a high coefficient of determination are kept. Poorly constrained bins
are left without an estimate; a spurious Kd would propagate through the
whole extrapolated column whereas a missing one is filled by the deepest
reliable value (see :mod:`reconstruct_light.composition`).

References
----------
.. [1] Kirk, J.T.O. (2011). Light and Photosynthesis in Aquatic
       Ecosystems, 3rd ed., Chapter 6. Cambridge University Press.
.. [2] Mobley, C.D. (1994). Light and Water: Radiative Transfer in Natural
       Waters. Academic Press.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from reconstruct_light.config import ReconstructionConfig
from reconstruct_light.constants import DEFAULT_MIN_FIT_SAMPLES
from reconstruct_light.exceptions import InsufficientData

logger = logging.getLogger(__name__)

#: Keys of one regression group
GROUP_KEYS = ["day", "station", "wavelength", "depth_bin"]

#: Columns of the tabular view of the estimates
ESTIMATE_COLUMNS = GROUP_KEYS + ["coefficient", "r_squared", "sample_count"]

# Guards floor() against grid depths such as 24.999999999 landing one bin low
_BIN_EPS = 1e-9


@dataclass(frozen=True)
class AttenuationEstimate:
    """
    Attenuation coefficient fitted over one depth bin.

    Attributes
    ----------
    day : Timestamp
        Day of the cast (midnight).
    station : str
        Station identifier.
    wavelength : float
        Wavelength [nm].
    depth_bin : float
        Upper edge (shallowest depth) of the bin [m].
    coefficient : float
        Diffuse attenuation coefficient Kd [m^-1]. Positive means the
        flux decays with depth.
    r_squared : float
        Coefficient of determination of the log-linear fit.
    sample_count : int
        Number of samples used in the fit.
    """

    day: pd.Timestamp
    station: str
    wavelength: float
    depth_bin: float
    coefficient: float
    r_squared: float
    sample_count: int


@dataclass
class EstimationSummary:
    """Counts of samples and groups excluded during estimation."""

    nonpositive_flux_samples: int = 0
    insufficient_groups: int = 0
    rejected_fits: int = 0
    negative_coefficients: int = 0


def depth_bin(
    depth: Union[float, np.ndarray],
    bin_width: float,
) -> Union[float, np.ndarray]:
    """
    Floor depth to the start of its bin.

    Parameters
    ----------
    depth : float or array_like
        Depth [m].
    bin_width : float
        Bin width [m].

    Returns
    -------
    float or ndarray
        Bin start [m], a multiple of ``bin_width``.

    Examples
    --------
    >>> depth_bin(27.3, 5.0)
    25.0
    """
    binned = np.floor(np.asarray(depth, dtype=np.float64) / bin_width + _BIN_EPS) * bin_width
    if binned.ndim == 0:
        return float(binned)
    return binned


def fit_log_linear(
    depth: np.ndarray,
    flux: np.ndarray,
    min_samples: int = DEFAULT_MIN_FIT_SAMPLES,
) -> Tuple[float, float, int]:
    """
    Fit ln(flux) = a - Kd * depth by ordinary least squares.

    Samples with zero, negative or non-finite flux are left out of the fit.

    Parameters
    ----------
    depth : array_like
        Sample depths [m].
    flux : array_like
        Quantum flux at each depth.
    min_samples : int, optional
        Minimum number of usable samples. Default is 4.

    Returns
    -------
    coefficient : float
        Attenuation coefficient Kd [m^-1] (negated slope).
    r_squared : float
        Coefficient of determination. NaN when ln(flux) is constant.
    sample_count : int
        Number of samples used.

    Raises
    ------
    InsufficientData
        If fewer than ``min_samples`` usable samples remain, or all of them
        sit at the same depth.
    """
    depth = np.asarray(depth, dtype=np.float64)
    flux = np.asarray(flux, dtype=np.float64)

    with np.errstate(invalid="ignore"):
        usable = np.isfinite(depth) & np.isfinite(flux) & (flux > 0)
    x = depth[usable]
    n = x.size
    if n < min_samples:
        raise InsufficientData(f"{n} usable samples, need {min_samples}")
    if np.ptp(x) == 0:
        raise InsufficientData(f"All {n} samples at depth {x[0]} m")

    y = np.log(flux[usable])
    slope, intercept = np.polyfit(x, y, 1)

    ss_res = np.sum((y - (intercept + slope * x)) ** 2)
    ss_tot = np.sum((y - y.mean()) ** 2)
    r_squared = 1.0 - ss_res / ss_tot if np.ptp(y) > 0 else np.nan

    return float(-slope), float(r_squared), int(n)


def estimate_attenuation(
    samples: pd.DataFrame,
    config: Optional[ReconstructionConfig] = None,
) -> Tuple[List[AttenuationEstimate], EstimationSummary]:
    """
    Estimate Kd per (day, station, wavelength, depth bin).

    Parameters
    ----------
    samples : DataFrame
        Converted profile samples with ``day``, ``station``, ``wavelength``,
        ``depth`` and ``quantum_flux`` columns
        (see :func:`reconstruct_light.conversion.convert_profile`).
    config : ReconstructionConfig, optional
        Bin width and quality gates. Defaults are used if None.

    Returns
    -------
    estimates : list of AttenuationEstimate
        Retained estimates, ordered by (day, station, wavelength, depth_bin).
    summary : EstimationSummary
        Exclusion counts.

    Notes
    -----
    An estimate is kept only when at least ``min_fit_samples`` usable
    samples enter the fit and r² is strictly greater than
    ``min_r_squared``. Groups are independent of each other.
    """
    if config is None:
        config = ReconstructionConfig()

    summary = EstimationSummary()
    estimates: List[AttenuationEstimate] = []
    if samples.empty:
        return estimates, summary

    binned = samples.assign(
        depth_bin=depth_bin(samples["depth"].to_numpy(), config.depth_bin_width_m)
    )
    groups = binned.groupby(GROUP_KEYS, sort=True)

    for key, group in tqdm(groups, total=groups.ngroups,
                           desc="Fitting Kd", disable=not config.show_progress):
        day, station, wavelength, bin_start = key
        flux = group["quantum_flux"].to_numpy(dtype=np.float64)
        with np.errstate(invalid="ignore"):
            summary.nonpositive_flux_samples += int(np.sum(~(flux > 0)))

        try:
            coefficient, r_squared, n = fit_log_linear(
                group["depth"].to_numpy(), flux, config.min_fit_samples
            )
        except InsufficientData as exc:
            logger.debug("Skipping %s: %s", key, exc)
            summary.insufficient_groups += 1
            continue

        if not r_squared > config.min_r_squared:
            summary.rejected_fits += 1
            continue

        if coefficient < 0:
            summary.negative_coefficients += 1
            logger.warning(
                "Negative Kd %.4f m^-1 at station %s, %s nm, bin %s m on %s",
                coefficient, station, wavelength, bin_start, day,
            )

        estimates.append(AttenuationEstimate(
            day=day,
            station=station,
            wavelength=float(wavelength),
            depth_bin=float(bin_start),
            coefficient=coefficient,
            r_squared=r_squared,
            sample_count=n,
        ))

    logger.debug(
        "Kept %d of %d Kd fits (%d insufficient, %d below r2 gate)",
        len(estimates), groups.ngroups,
        summary.insufficient_groups, summary.rejected_fits,
    )
    return estimates, summary


def estimates_to_frame(estimates: Iterable[AttenuationEstimate]) -> pd.DataFrame:
    """Tabulate attenuation estimates, one row per estimate."""
    return pd.DataFrame([asdict(e) for e in estimates], columns=ESTIMATE_COLUMNS)
