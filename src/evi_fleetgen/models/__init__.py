"""Result models — reports and fleet statistics."""

from evi_fleetgen.models.results import (
    CategoryShare,
    DimensionStats,
    FleetStats,
    ReconciliationReport,
    SparseMatchReport,
    UnmatchedStratum,
)

__all__ = [
    "CategoryShare",
    "DimensionStats",
    "FleetStats",
    "ReconciliationReport",
    "SparseMatchReport",
    "UnmatchedStratum",
]
