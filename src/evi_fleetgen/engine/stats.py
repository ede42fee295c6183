"""Fleet statistics — realized composition versus the requested weights.

Shares are computed over distinct fleet members (``fleet_id``), not activity
rows, separately for each day type.  Mileage bins are compared against that
day type's own mileage table.
"""

from __future__ import annotations

import pandas as pd

from evi_fleetgen.config.vocabulary import DAYS_OF_WEEK, DIMENSIONS
from evi_fleetgen.config.weights import FleetWeights, WeightTable
from evi_fleetgen.models.results import CategoryShare, DimensionStats, FleetStats


def _shares(members: pd.DataFrame, column: str, table: WeightTable) -> list[CategoryShare]:
    counts = members[column].astype(str).value_counts()
    total = len(members)
    labels = table.labels + sorted(label for label in counts.index if label not in table.weights)
    return [
        CategoryShare(
            label=label,
            target=table.get(label),
            realized=(int(counts.get(label, 0)) / total) if total else 0.0,
            members=int(counts.get(label, 0)),
        )
        for label in labels
    ]


def measure_fleet_weights(
    fleet_activity: pd.DataFrame,
    weights: FleetWeights,
    vmt_tables: dict[str, WeightTable],
) -> FleetStats:
    """Summarize realized per-dimension shares for QA.

    Parameters
    ----------
    fleet_activity : pd.DataFrame
        Output of the session joiner (or the bound member table).
    weights : FleetWeights
        Caller-supplied target tables.
    vmt_tables : dict[str, WeightTable]
        Mileage target table per day type.
    """
    members = fleet_activity.drop_duplicates("fleet_id")
    tables = weights.tables()

    dimensions: list[DimensionStats] = []
    for day in DAYS_OF_WEEK:
        day_members = members[members["day_of_week"].astype(str) == day]
        for name, (column, _) in DIMENSIONS.items():
            dimensions.append(DimensionStats(
                dimension=column,
                day_of_week=day,
                fleet_members=len(day_members),
                shares=_shares(day_members, column, tables[name]),
            ))
        if day in vmt_tables:
            dimensions.append(DimensionStats(
                dimension="schedule_vmt_bin",
                day_of_week=day,
                fleet_members=len(day_members),
                shares=_shares(day_members, "schedule_vmt_bin", vmt_tables[day]),
            ))
    return FleetStats(dimensions=dimensions)
