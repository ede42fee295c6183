"""Fleet materializer — expand the stratum table into one row per vehicle.

Two phases, applied independently to each day-type partition:

  1. **Proportional expansion** — every stratum with ``stat_weight > 0`` is
     replicated ``round(stat_weight × fleet_size)`` times.  This reproduces
     the requested weights as closely as integer counts allow, but the
     partition total drifts from ``fleet_size`` because each stratum rounds
     on its own.

  2. **Size reconciliation** — relative error = |rows − fleet_size| / fleet_size.
     - error ≤ ``size_tolerance`` (default 0.1%): accepted as-is, no
       randomness introduced.
     - otherwise: existing rows are duplicated uniformly at random (with
       replacement) when short, or deleted uniformly at random (without
       replacement) when over, until the partition holds exactly
       ``fleet_size`` rows.  A ``SizeReconciliationWarning`` reports the
       pre-correction error.

Small fleets and skewed weights make rounding error large relative to the
fleet; the tolerance caps how much random perturbation of the target
distribution is allowed in exchange for an exact size.

``numpy.random.Generator`` is passed in by the caller; nothing here touches
global random state.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from evi_fleetgen.config.vocabulary import DAYS_OF_WEEK
from evi_fleetgen.errors import ConfigurationError, SizeReconciliationWarning, emit_warning
from evi_fleetgen.models.results import ReconciliationReport

DEFAULT_SIZE_TOLERANCE = 0.001

_log = logging.getLogger(__name__)


def expand_strata(strata: pd.DataFrame, fleet_size: int) -> pd.DataFrame:
    """Phase 1: replicate each weight-bearing stratum ``round(stat_weight × fleet_size)`` times.

    Rounding is half-to-even.  Row order follows the stratum table.
    """
    weighted = strata[strata["stat_weight"] > 0]
    counts = np.round(weighted["stat_weight"].to_numpy() * fleet_size).astype(np.int64)
    return weighted.iloc[np.repeat(np.arange(len(weighted)), counts)].reset_index(drop=True)


def _reconcile_partition(
    part: pd.DataFrame,
    day_strata: pd.DataFrame,
    fleet_size: int,
    rng: np.random.Generator,
) -> tuple[pd.DataFrame, int, int]:
    """Force ``part`` to exactly ``fleet_size`` rows.  Returns (rows, added, removed)."""
    n = len(part)
    if n == 0:
        # Every stratum rounded to zero: nothing to duplicate, so draw strata by weight.
        p = day_strata["stat_weight"].to_numpy()
        picks = rng.choice(len(day_strata), size=fleet_size, replace=True, p=p / p.sum())
        return day_strata.iloc[np.sort(picks)], fleet_size, 0
    if n < fleet_size:
        picks = rng.integers(0, n, size=fleet_size - n)
        return pd.concat([part, part.iloc[picks]]), fleet_size - n, 0
    drop = rng.choice(n, size=n - fleet_size, replace=False)
    keep = np.ones(n, dtype=bool)
    keep[drop] = False
    return part[keep], 0, n - fleet_size


def materialize_fleet(
    strata: pd.DataFrame,
    fleet_size: int,
    rng: np.random.Generator,
    size_tolerance: float = DEFAULT_SIZE_TOLERANCE,
    logger: logging.Logger | None = None,
) -> tuple[pd.DataFrame, list[ReconciliationReport]]:
    """Materialize the fleet for every day type.

    Parameters
    ----------
    strata : pd.DataFrame
        Joint stratum table from ``build_joint_distribution``.
    fleet_size : int
        Target vehicles per day type.
    rng : numpy.random.Generator
        Source of randomness for reconciliation.
    size_tolerance : float
        Largest relative size error accepted without correction.
    logger : logging.Logger, optional
        Receives stage messages and warnings.  Defaults to this module's logger.

    Returns
    -------
    (fleet, reports)
        ``fleet`` has one row per vehicle (stratum columns + ``stat_weight``),
        weekday rows first; ``reports`` has one entry per day type.
    """
    log = logger or _log
    if isinstance(fleet_size, bool) or not isinstance(fleet_size, (int, np.integer)) or fleet_size < 1:
        raise ConfigurationError(f"fleet_size must be a positive integer, got {fleet_size!r}")
    fleet_size = int(fleet_size)

    expanded = expand_strata(strata, fleet_size)
    weighted = strata[strata["stat_weight"] > 0]

    parts: list[pd.DataFrame] = []
    reports: list[ReconciliationReport] = []
    for day in DAYS_OF_WEEK:
        part = expanded[expanded["day_of_week"] == day]
        n = len(part)
        error = abs(n - fleet_size) / fleet_size
        log.debug("%s: proportional expansion gave %d rows for target %d", day, n, fleet_size)

        if error <= size_tolerance:
            parts.append(part)
            reports.append(ReconciliationReport(
                day_of_week=day, target_size=fleet_size, materialized_size=n,
                relative_error=error, corrected=False,
            ))
            continue

        action = "duplication" if n < fleet_size else "deletion"
        emit_warning(
            f"{day} fleet size error of {error:.4%} ({n} rows for target {fleet_size}); "
            f"correcting by random {action}",
            SizeReconciliationWarning,
            log,
        )
        day_strata = weighted[weighted["day_of_week"] == day]
        part, added, removed = _reconcile_partition(part, day_strata, fleet_size, rng)
        parts.append(part)
        reports.append(ReconciliationReport(
            day_of_week=day, target_size=fleet_size, materialized_size=n,
            relative_error=error, corrected=True,
            rows_added=added, rows_removed=removed,
        ))

    fleet = pd.concat(parts, ignore_index=True)
    log.info("materialized %d fleet rows across %d day types", len(fleet), len(DAYS_OF_WEEK))
    return fleet, reports
