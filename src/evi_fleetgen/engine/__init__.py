"""Engine — distribution composition, materialization, binding, joining."""

from evi_fleetgen.engine.vmt import build_vmt_tables, generate_vmt_weights
from evi_fleetgen.engine.joint import build_joint_distribution
from evi_fleetgen.engine.materialize import expand_strata, materialize_fleet
from evi_fleetgen.engine.binding import bind_vehicle_ids
from evi_fleetgen.engine.sessions import join_sessions
from evi_fleetgen.engine.stats import measure_fleet_weights
from evi_fleetgen.engine.pool import combine_class_pools, validate_source_population
from evi_fleetgen.engine.orchestrator import FleetResult, generate, generate_fleet

__all__ = [
    "build_vmt_tables",
    "generate_vmt_weights",
    "build_joint_distribution",
    "expand_strata",
    "materialize_fleet",
    "bind_vehicle_ids",
    "join_sessions",
    "measure_fleet_weights",
    "combine_class_pools",
    "validate_source_population",
    # Pipeline
    "FleetResult",
    "generate",
    "generate_fleet",
]
