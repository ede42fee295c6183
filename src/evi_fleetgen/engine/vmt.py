"""Daily-mileage (VMT) weight generator.

Turns a mean daily mileage into binned weight tables, one per day type.
Daily VMT is modelled as Gamma(shape, scale) with an empirical shape per
(location class, day type) and ``scale = mean_vmt / shape`` so that the
distribution mean equals ``mean_vmt``.

Bins are labelled by their lower edge (``0, w, 2w, …``), the same
convention as ``schedule_vmt_bin`` in the source pool.  Bin mass is the
gamma CDF difference across the bin; the last bin (the one containing
``max_vmt``) absorbs the upper tail, so the table always sums to 1.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pandas as pd
from scipy import stats

from evi_fleetgen.config.generation import VMTConfig
from evi_fleetgen.config.vocabulary import DAYS_OF_WEEK, VMT_DIMENSION
from evi_fleetgen.config.weights import WeightTable
from evi_fleetgen.errors import ConfigurationError

GAMMA_SHAPE: dict[tuple[str, str], float] = {
    ("urban", "weekday"): 1.9,
    ("urban", "weekend"): 1.4,
    ("rural", "weekday"): 2.3,
    ("rural", "weekend"): 1.6,
}
"""Empirical gamma shape by (loc_class, day_of_week).  Weekends are more dispersed."""

VMTGenerator = Callable[[float, float, int, str, str], WeightTable]
"""Signature: (mean_vmt, max_vmt, bin_width, loc_class, day_of_week) → WeightTable."""


def generate_vmt_weights(
    mean_vmt: float,
    max_vmt: float,
    bin_width: int,
    loc_class: str,
    day_of_week: str,
) -> WeightTable:
    """Binned mileage weights for one day type.

    Parameters
    ----------
    mean_vmt : float
        Mean daily miles (> 0).
    max_vmt : float
        Largest mileage to cover; its bin is the last one.
    bin_width : int
        Bin width in miles (>= 1).
    loc_class : str
        ``"urban"`` or ``"rural"``.
    day_of_week : str
        ``"weekday"`` or ``"weekend"``.

    Returns
    -------
    WeightTable
        ``vmt_weights`` table keyed by bin lower edge (as a string).
    """
    if mean_vmt <= 0:
        raise ConfigurationError(f"mean_vmt must be > 0, got {mean_vmt!r}")
    if bin_width < 1 or int(bin_width) != bin_width:
        raise ConfigurationError(f"bin_width must be a positive integer, got {bin_width!r}")
    if not max_vmt > 0:
        raise ConfigurationError(f"max_vmt must be > 0, got {max_vmt!r}")
    try:
        shape = GAMMA_SHAPE[(loc_class, day_of_week)]
    except KeyError:
        raise ConfigurationError(
            f"no mileage distribution for loc_class={loc_class!r}, day_of_week={day_of_week!r}"
        ) from None

    bin_width = int(bin_width)
    n_bins = int(max_vmt // bin_width) + 1
    lower = np.arange(n_bins, dtype=np.int64) * bin_width
    upper = (lower + bin_width).astype(np.float64)
    upper[-1] = np.inf

    dist = stats.gamma(a=shape, scale=mean_vmt / shape)
    mass = dist.cdf(upper) - dist.cdf(lower)
    mass = mass / mass.sum()

    return WeightTable(
        dimension=VMT_DIMENSION,
        weights={str(edge): float(w) for edge, w in zip(lower, mass)},
    )


def resolve_max_vmt(source: pd.DataFrame, vmt: VMTConfig) -> float:
    """Upper end of the mileage range: explicit setting, else the source pool's range."""
    if vmt.max_vmt is not None:
        return vmt.max_vmt
    if "schedule_vmt" in source.columns and source["schedule_vmt"].notna().any():
        return float(source["schedule_vmt"].max(skipna=True))
    if source["schedule_vmt_bin"].notna().any():
        return float(source["schedule_vmt_bin"].max(skipna=True))
    raise ConfigurationError("cannot infer max_vmt: source pool has no mileage values")


def build_vmt_tables(
    vmt: VMTConfig,
    max_vmt: float,
    generator: VMTGenerator = generate_vmt_weights,
) -> dict[str, WeightTable]:
    """One mileage weight table per day type, weekday first."""
    return {
        day: generator(vmt.mean_vmt, max_vmt, vmt.bin_width, vmt.loc_class, day)
        for day in DAYS_OF_WEEK
    }
