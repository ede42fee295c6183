"""Vehicle-ID binder — attach a concrete source vehicle to every fleet member.

For each member, the candidates are the distinct ``source_vehicle_id``s in
the source pool whose stratifying attributes (``MATCH_KEYS``) equal the
member's.  One candidate is drawn uniformly **with replacement**, so
several members may share a source vehicle; ``fleet_id`` is the fleet's
only unique key.

Members whose stratum has no candidates are dropped and reported with a
``SparseMatchWarning``.  The fleet may then end up smaller than the target;
no compensation is attempted.  Surviving members get a dense
``fleet_id`` of 1..N in fleet order.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from evi_fleetgen.config.vocabulary import MATCH_KEYS, STRATUM_COLUMNS
from evi_fleetgen.errors import SparseMatchWarning, emit_warning
from evi_fleetgen.models.results import SparseMatchReport, UnmatchedStratum

_log = logging.getLogger(__name__)


def match_keys(df: pd.DataFrame) -> pd.DataFrame:
    """Normalized copy of the ``MATCH_KEYS`` columns: labels as ``str``, mileage bin as int64.

    Lets categorical, object, and string columns from different loaders compare equal.
    """
    keys = pd.DataFrame(index=df.index)
    for column in MATCH_KEYS:
        if column == "schedule_vmt_bin":
            keys[column] = df[column].astype(np.int64)
        else:
            keys[column] = df[column].astype(str)
    return keys


def candidate_ids(source: pd.DataFrame) -> dict[tuple, np.ndarray]:
    """Stratum key → sorted distinct source vehicle ids."""
    pool = source.dropna(subset=list(MATCH_KEYS) + ["source_vehicle_id"])
    keys = match_keys(pool)
    keys["source_vehicle_id"] = pool["source_vehicle_id"].to_numpy()
    grouped = keys.groupby(list(MATCH_KEYS), sort=True)["source_vehicle_id"].unique()
    return {key: np.sort(ids) for key, ids in grouped.items()}


def bind_vehicle_ids(
    fleet: pd.DataFrame,
    source: pd.DataFrame,
    rng: np.random.Generator,
    logger: logging.Logger | None = None,
) -> tuple[pd.DataFrame, SparseMatchReport]:
    """Bind source vehicles to fleet members.

    Parameters
    ----------
    fleet : pd.DataFrame
        Materialized fleet (one row per member, stratum columns present).
    source : pd.DataFrame
        Source pool with ``MATCH_KEYS`` and ``source_vehicle_id`` columns.
    rng : numpy.random.Generator
        Source of randomness for the with-replacement draws.
    logger : logging.Logger, optional
        Receives stage messages and the sparse-match warning.

    Returns
    -------
    (members, report)
        ``members`` has columns ``fleet_id``, ``STRATUM_COLUMNS`` and
        ``source_vehicle_id``; ``report`` counts dropped members by stratum.
    """
    log = logger or _log
    candidates = candidate_ids(source)
    keys = match_keys(fleet)

    assigned = np.empty(len(fleet), dtype=object)
    matched = np.zeros(len(fleet), dtype=bool)
    unmatched: list[UnmatchedStratum] = []

    for key, positions in keys.groupby(list(MATCH_KEYS), sort=True).indices.items():
        ids = candidates.get(key)
        if ids is None:
            labels = {
                column: int(value) if column == "schedule_vmt_bin" else str(value)
                for column, value in zip(MATCH_KEYS, key)
            }
            unmatched.append(UnmatchedStratum(**labels, members=len(positions)))
            continue
        assigned[positions] = ids[rng.integers(0, len(ids), size=len(positions))]
        matched[positions] = True

    dropped = int((~matched).sum())
    if dropped:
        emit_warning(
            f"no source vehicle matches {len(unmatched)} stratum/strata; "
            f"removing {dropped} of {len(fleet)} fleet members",
            SparseMatchWarning,
            log,
        )

    members = keys.loc[matched, list(STRATUM_COLUMNS)].reset_index(drop=True)
    members.insert(0, "fleet_id", np.arange(1, len(members) + 1, dtype=np.int64))
    members["source_vehicle_id"] = pd.Series(assigned[matched]).astype(source["source_vehicle_id"].dtype)

    log.info("bound %d fleet members to %d distinct source vehicles",
             len(members), members["source_vehicle_id"].nunique())
    report = SparseMatchReport(
        members_in=len(fleet),
        members_bound=len(members),
        members_dropped=dropped,
        unmatched_strata=unmatched,
    )
    return members, report
