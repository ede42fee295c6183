"""Result types — what a generation run reports besides its tables.

The DataFrames themselves (fleet, activity) travel in ``FleetResult``; the
models here are the serialisable side-channel: what reconciliation did, how
many members went unmatched, and how the realized fleet compares with the
requested weights.
"""

from __future__ import annotations

import pandas as pd
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════
# Stage reports
# ═══════════════════════════════════════════════════════════════════════════

class ReconciliationReport(BaseModel):
    """Size reconciliation outcome for one day-type partition."""

    day_of_week: str
    target_size: int
    materialized_size: int
    """Rows produced by proportional expansion, before any correction."""
    relative_error: float
    """|materialized_size − target_size| / target_size."""
    corrected: bool
    """True when randomized duplication/deletion was applied."""
    rows_added: int = 0
    rows_removed: int = 0

    @property
    def final_size(self) -> int:
        return self.materialized_size + self.rows_added - self.rows_removed


class UnmatchedStratum(BaseModel):
    """A stratum whose members found no source vehicle."""

    day_of_week: str
    power_work: str
    power_home: str
    preferred_loc: str
    pev_type: str
    schedule_vmt_bin: int
    vehicle_class: str
    members: int


class SparseMatchReport(BaseModel):
    """Binding outcome: how many fleet members could not be matched."""

    members_in: int
    members_bound: int
    members_dropped: int
    unmatched_strata: list[UnmatchedStratum] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════
# Fleet statistics
# ═══════════════════════════════════════════════════════════════════════════

class CategoryShare(BaseModel):
    """Realized vs. target share of one label."""

    label: str
    target: float
    realized: float
    members: int

    @property
    def deviation(self) -> float:
        return self.realized - self.target


class DimensionStats(BaseModel):
    """Shares for one dimension within one day-type partition."""

    dimension: str
    """Stratum column, e.g. ``pev_type`` or ``schedule_vmt_bin``."""
    day_of_week: str
    fleet_members: int
    shares: list[CategoryShare]

    @property
    def max_abs_deviation(self) -> float:
        return max((abs(s.deviation) for s in self.shares), default=0.0)


class FleetStats(BaseModel):
    """Realized fleet composition next to the requested weights."""

    dimensions: list[DimensionStats] = Field(default_factory=list)

    @property
    def max_abs_deviation(self) -> float:
        return max((d.max_abs_deviation for d in self.dimensions), default=0.0)

    def get(self, dimension: str, day_of_week: str) -> DimensionStats:
        for d in self.dimensions:
            if d.dimension == dimension and d.day_of_week == day_of_week:
                return d
        raise KeyError((dimension, day_of_week))

    def to_frame(self) -> pd.DataFrame:
        """Tidy table: one row per (dimension, day_of_week, label)."""
        rows = [
            {
                "dimension": d.dimension,
                "day_of_week": d.day_of_week,
                "label": s.label,
                "target": s.target,
                "realized": s.realized,
                "deviation": s.deviation,
                "members": s.members,
            }
            for d in self.dimensions
            for s in d.shares
        ]
        columns = ["dimension", "day_of_week", "label", "target", "realized", "deviation", "members"]
        return pd.DataFrame(rows, columns=columns)
