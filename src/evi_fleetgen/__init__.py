"""Synthesize EV charging fleets that match target weights from a pool of simulated vehicles."""

from evi_fleetgen.engine.orchestrator import FleetResult, generate, generate_fleet
from evi_fleetgen.errors import (
    ConfigurationError,
    FleetGenWarning,
    SizeReconciliationWarning,
    SparseMatchWarning,
)

__version__ = "2.1.0"

__all__ = [
    "FleetResult",
    "generate",
    "generate_fleet",
    "ConfigurationError",
    "FleetGenWarning",
    "SizeReconciliationWarning",
    "SparseMatchWarning",
]
