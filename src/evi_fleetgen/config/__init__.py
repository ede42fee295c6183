"""Configuration models — vocabularies, weight tables, generation settings."""

from evi_fleetgen.config.vocabulary import (
    DAYS_OF_WEEK,
    MATCH_KEYS,
    SESSION_KEYS,
    STRATUM_COLUMNS,
    vocabulary,
)
from evi_fleetgen.config.weights import FleetWeights, WeightTable, coerce_weights
from evi_fleetgen.config.generation import FleetRequest, GenerationConfig, VMTConfig

__all__ = [
    "DAYS_OF_WEEK",
    "MATCH_KEYS",
    "SESSION_KEYS",
    "STRATUM_COLUMNS",
    "vocabulary",
    "WeightTable",
    "FleetWeights",
    "coerce_weights",
    "VMTConfig",
    "GenerationConfig",
    "FleetRequest",
]
