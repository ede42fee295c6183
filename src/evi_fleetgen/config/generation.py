"""Mileage and generation settings, plus the top-level request bundle."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from evi_fleetgen.config.vocabulary import LocClass
from evi_fleetgen.config.weights import FleetWeights, coerce_weights
from evi_fleetgen.errors import ConfigurationError


class VMTConfig(BaseModel):
    """Inputs to the daily-mileage (VMT) distribution generator."""

    model_config = ConfigDict(frozen=True)

    mean_vmt: float = Field(default=40.0, gt=0, description="Mean daily vehicle miles travelled")
    bin_width: int = Field(
        default=10,
        ge=1,
        description="Mileage bin width (miles).  Must equal the bin width used to label "
                    "``schedule_vmt_bin`` in the source pool.",
    )
    loc_class: LocClass = Field(default="urban", description="Selects the empirical gamma shape")
    max_vmt: float | None = Field(
        default=None,
        gt=0,
        description="Upper end of the mileage range.  None = taken from the source pool.",
    )


class GenerationConfig(BaseModel):
    """Fleet size, seeding, and tolerances for one generation run."""

    model_config = ConfigDict(frozen=True)

    fleet_size: int = Field(ge=1, description="Target vehicles per day type (weekday and weekend)")
    random_seed: int | None = Field(
        default=None,
        ge=0,
        description="Seed for the run's private RNG.  None = non-deterministic.",
    )
    size_tolerance: float = Field(
        default=0.001,
        ge=0,
        lt=1,
        description="Largest relative fleet-size error accepted without randomized correction "
                    "(0.001 = 0.1%).",
    )
    weight_tolerance: float = Field(
        default=1e-6,
        gt=0,
        lt=1,
        description="Relative tolerance on each weight table summing to 1.",
    )

    @field_validator("fleet_size", mode="before")
    @classmethod
    def _no_bool_size(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError(f"fleet_size must be a positive integer, got {v!r}")
        return v


class FleetRequest(BaseModel):
    """Complete input bundle for one fleet generation run (source pool excluded).

    ``weights`` are checked against ``generation.weight_tolerance``, so a
    request can relax or tighten the sum check on its own.
    """

    weights: FleetWeights
    vmt: VMTConfig = Field(default_factory=VMTConfig)
    generation: GenerationConfig

    @model_validator(mode="before")
    @classmethod
    def _weights_at_request_tolerance(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "weights" not in data:
            return data
        try:
            gen = GenerationConfig.model_validate(data.get("generation"))
        except ValidationError:
            # reported by field validation
            return data
        try:
            weights = coerce_weights(data["weights"], gen.weight_tolerance)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc
        return {**data, "weights": weights}
