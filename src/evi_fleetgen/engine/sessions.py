"""Session joiner — expand bound fleet members into their charging sessions.

Each member pulls every source row that shares its ``SESSION_KEYS``
(stratifying attributes + ``source_vehicle_id``), carrying its
``fleet_id`` forward.  One member usually becomes several activity rows.

The source pool's ``schedule_vmt_bin`` labels must use the same bin width
as the fleet's mileage weights; mismatched widths simply produce no
matches and are not checked here.
"""

from __future__ import annotations

import logging

import pandas as pd

from evi_fleetgen.config.vocabulary import MATCH_KEYS, SESSION_KEYS, STRATUM_COLUMNS
from evi_fleetgen.engine.binding import match_keys

_log = logging.getLogger(__name__)


def join_sessions(
    members: pd.DataFrame,
    source: pd.DataFrame,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """One-to-many join of fleet members onto source session rows.

    Returns
    -------
    pd.DataFrame
        ``fleet_id``, ``STRATUM_COLUMNS``, ``source_vehicle_id`` followed by
        the source's session columns, sorted by ``fleet_id`` with each
        member's sessions in source order.
    """
    log = logger or _log

    sessions = source.dropna(subset=list(SESSION_KEYS)).copy()
    sessions[list(MATCH_KEYS)] = match_keys(sessions)
    sessions["_session_order"] = range(len(sessions))

    activity = members.merge(sessions, on=list(SESSION_KEYS), how="inner", validate="many_to_many")
    activity = activity.sort_values(["fleet_id", "_session_order"], kind="stable").drop(columns="_session_order")

    lead = ["fleet_id", *STRATUM_COLUMNS, "source_vehicle_id"]
    session_columns = [c for c in activity.columns if c not in lead]
    activity = activity[lead + session_columns].reset_index(drop=True)

    log.info("expanded %d fleet members into %d activity rows", members["fleet_id"].nunique(), len(activity))
    return activity
