"""Per-dimension weight tables — the caller's target fleet composition.

A ``WeightTable`` is an ordered ``label → weight`` mapping for one
stratifying dimension.  Weights are non-negative and must sum to 1 within
a relative tolerance; labels must belong to the dimension's closed
vocabulary.  The sum tolerance can be tightened or relaxed per call via
pydantic's validation context::

    FleetWeights.model_validate(raw, context={"weight_tolerance": 1e-9})

``FleetWeights`` bundles exactly the five caller-supplied dimensions.
Mileage (VMT) weights are always derived internally, and the legacy
``public_weights`` / ``vmt_weights`` keys are rejected outright — mixing
pev and vmt weighting produced too many unmatched strata.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import numpy as np
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

from evi_fleetgen.config.vocabulary import DIMENSIONS, LEGACY_WEIGHT_KEYS, VMT_DIMENSION
from evi_fleetgen.errors import ConfigurationError

DEFAULT_WEIGHT_TOLERANCE = 1e-6


def _tolerance(info: ValidationInfo) -> float:
    if info.context and "weight_tolerance" in info.context:
        return float(info.context["weight_tolerance"])
    return DEFAULT_WEIGHT_TOLERANCE


def _as_weight_mapping(raw: Any) -> Any:
    """Accept ``{label: weight}`` or ``[{"name": label, "weight": w}, ...]``."""
    if isinstance(raw, (list, tuple)):
        out: dict[str, float] = {}
        for row in raw:
            if not isinstance(row, Mapping) or "name" not in row or "weight" not in row:
                raise ValueError("weight rows must have 'name' and 'weight' keys")
            name = str(row["name"])
            if name in out:
                raise ValueError(f"duplicate label {name!r}")
            out[name] = row["weight"]
        return out
    if isinstance(raw, Mapping):
        return dict(raw)
    return raw


class WeightTable(BaseModel):
    """Target shares for the categories of one dimension."""

    model_config = ConfigDict(frozen=True)

    dimension: str = Field(description="Weight key, e.g. 'pev_weights' or 'vmt_weights'")
    weights: dict[str, float] = Field(
        min_length=1,
        description="Ordered label → share of fleet.  Shares sum to 1.",
    )

    @field_validator("weights", mode="before")
    @classmethod
    def _coerce_rows(cls, v: Any) -> Any:
        return _as_weight_mapping(v)

    @field_validator("weights", mode="after")
    @classmethod
    def _read_only(cls, v: dict[str, float]) -> MappingProxyType:
        return MappingProxyType(v)

    @field_serializer("weights")
    def _dump_weights(self, v: Mapping[str, float]) -> dict[str, float]:
        return dict(v)

    @model_validator(mode="after")
    def _check_table(self, info: ValidationInfo) -> "WeightTable":
        for label, weight in self.weights.items():
            if not math.isfinite(weight) or weight < 0:
                raise ValueError(f"{self.dimension}: weight for {label!r} must be a finite number >= 0")

        if self.dimension == VMT_DIMENSION:
            for label in self.weights:
                if not label.isdigit():
                    raise ValueError(f"{self.dimension}: mileage bin label {label!r} is not a non-negative integer")
        elif self.dimension in DIMENSIONS:
            _, allowed = DIMENSIONS[self.dimension]
            unknown = [label for label in self.weights if label not in allowed]
            if unknown:
                raise ValueError(
                    f"{self.dimension}: unknown label(s) {unknown}; allowed: {list(allowed)}"
                )
        else:
            raise ValueError(f"unknown weight dimension {self.dimension!r}")

        total = math.fsum(self.weights.values())
        tol = _tolerance(info)
        if not math.isclose(total, 1.0, rel_tol=tol, abs_tol=tol):
            raise ValueError(f"{self.dimension}: weights sum to {total!r}, expected 1 (tolerance {tol:g})")
        return self

    @property
    def labels(self) -> list[str]:
        return list(self.weights)

    def as_array(self) -> np.ndarray:
        """Weights in label order as a float array."""
        return np.fromiter(self.weights.values(), dtype=np.float64, count=len(self.weights))

    def get(self, label: str) -> float:
        """Weight of ``label``; 0.0 for labels absent from the table."""
        return self.weights.get(label, 0.0)

    @classmethod
    def from_records(cls, dimension: str, rows: list[Mapping[str, Any]]) -> "WeightTable":
        """Build from ``name``/``weight`` rows, raising ``ConfigurationError`` on bad input."""
        try:
            return cls(dimension=dimension, weights=rows)
        except ValidationError as exc:
            raise ConfigurationError.from_validation_error(exc, dimension) from exc


class FleetWeights(BaseModel):
    """The five caller-supplied weight tables."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pev_weights: WeightTable
    pref_weights: WeightTable
    home_weights: WeightTable
    work_weights: WeightTable
    vehicle_weights: WeightTable

    @model_validator(mode="before")
    @classmethod
    def _reject_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            legacy = sorted(LEGACY_WEIGHT_KEYS.intersection(data))
            if legacy:
                raise ValueError(
                    f"unsupported weight key(s) {legacy}: mileage weights are derived from "
                    "mean_vmt and public/temperature weighting is no longer supported"
                )
        return data

    @field_validator("*", mode="before")
    @classmethod
    def _wrap_table(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, WeightTable):
            if v.dimension != info.field_name:
                raise ValueError(f"table for {v.dimension!r} supplied as {info.field_name!r}")
            return v
        return {"dimension": info.field_name, "weights": v}

    def tables(self) -> dict[str, WeightTable]:
        """Weight key → table, in declaration order."""
        return {name: getattr(self, name) for name in type(self).model_fields}


def coerce_weights(
    raw: FleetWeights | Mapping[str, Any],
    weight_tolerance: float = DEFAULT_WEIGHT_TOLERANCE,
) -> FleetWeights:
    """Validate caller weights, raising ``ConfigurationError`` on any problem."""
    if isinstance(raw, FleetWeights):
        raw = {name: table.weights for name, table in raw.tables().items()}
    try:
        return FleetWeights.model_validate(raw, context={"weight_tolerance": weight_tolerance})
    except ValidationError as exc:
        raise ConfigurationError.from_validation_error(exc, "weights") from exc
