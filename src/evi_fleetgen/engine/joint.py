"""Joint distribution builder.

Composes the per-dimension weight tables into one stratum table in a single
Cartesian-product-and-multiply step::

    stat_weight(stratum) = Π  weight(dimension, label of stratum in dimension)

The mileage dimension arrives as one table per day type; the two are merged
into one combined dimension whose entries carry both ``day_of_week`` and
``schedule_vmt_bin``.  Each day-type partition of the output therefore sums
to 1 on its own.
"""

from __future__ import annotations

import math
from functools import reduce

import numpy as np
import pandas as pd

from evi_fleetgen.config.vocabulary import DAYS_OF_WEEK, DIMENSIONS, STRATUM_COLUMNS, VMT_DIMENSION
from evi_fleetgen.config.weights import DEFAULT_WEIGHT_TOLERANCE, FleetWeights, WeightTable
from evi_fleetgen.errors import ConfigurationError

# Product axis order; "_vmt" indexes the combined (day_of_week, schedule_vmt_bin) entries.
_AXES = ("pev_weights", "pref_weights", "home_weights", "work_weights", VMT_DIMENSION, "vehicle_weights")


def _check_table(table: WeightTable, expected_dimension: str, tolerance: float) -> None:
    if table.dimension != expected_dimension:
        raise ConfigurationError(f"expected a {expected_dimension!r} table, got {table.dimension!r}")
    total = math.fsum(table.weights.values())
    if not math.isclose(total, 1.0, rel_tol=tolerance, abs_tol=tolerance):
        raise ConfigurationError(
            f"{table.dimension}: weights sum to {total!r}, expected 1 (tolerance {tolerance:g})"
        )


def build_joint_distribution(
    weights: FleetWeights,
    vmt_tables: dict[str, WeightTable],
    tolerance: float = DEFAULT_WEIGHT_TOLERANCE,
) -> pd.DataFrame:
    """Build the joint stratum table.

    Parameters
    ----------
    weights : FleetWeights
        The five caller-supplied dimension tables.
    vmt_tables : dict[str, WeightTable]
        ``day_of_week → vmt_weights`` table, for every day type.
    tolerance : float
        Relative tolerance for each table summing to 1.

    Returns
    -------
    pd.DataFrame
        One row per stratum with columns ``STRATUM_COLUMNS + ("stat_weight",)``.
        Zero-weight strata are kept; the materializer skips them.
    """
    tables = weights.tables()
    for name, table in tables.items():
        _check_table(table, name, tolerance)

    missing_days = [day for day in DAYS_OF_WEEK if day not in vmt_tables]
    if missing_days:
        raise ConfigurationError(f"missing mileage weights for {missing_days}")
    for day in DAYS_OF_WEEK:
        _check_table(vmt_tables[day], VMT_DIMENSION, tolerance)

    vmt_days: list[str] = []
    vmt_bins: list[int] = []
    vmt_weights: list[float] = []
    for day in DAYS_OF_WEEK:
        for label, weight in vmt_tables[day].weights.items():
            vmt_days.append(day)
            vmt_bins.append(int(label))
            vmt_weights.append(weight)

    levels: list[list] = []
    arrays: list[np.ndarray] = []
    names: list[str] = []
    for axis in _AXES:
        if axis == VMT_DIMENSION:
            levels.append(list(range(len(vmt_weights))))
            arrays.append(np.asarray(vmt_weights, dtype=np.float64))
            names.append("_vmt")
        else:
            levels.append(tables[axis].labels)
            arrays.append(tables[axis].as_array())
            names.append(DIMENSIONS[axis][0])

    # from_product varies the last level fastest, matching the C-order ravel of the outer product.
    strata = pd.MultiIndex.from_product(levels, names=names).to_frame(index=False)
    strata["stat_weight"] = reduce(np.multiply.outer, arrays).ravel()

    position = strata.pop("_vmt").to_numpy()
    strata["day_of_week"] = np.asarray(vmt_days, dtype=object)[position]
    strata["schedule_vmt_bin"] = np.asarray(vmt_bins, dtype=np.int64)[position]

    return strata[list(STRATUM_COLUMNS) + ["stat_weight"]]
