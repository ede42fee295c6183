"""Fleet generation pipeline.

Wires the stages together, each consuming the previous stage's output in
full::

    weights + mean_vmt ─► joint strata ─► materialize + reconcile
                      ─► bind source vehicle ids ─► join sessions ─► stats

All inputs are validated before any sampling happens, so configuration
errors never leave partial output behind.  Every random draw comes from one
``numpy.random.Generator`` created for (or handed to) this call; there is
no module-level mutable state, so many calls can run in parallel threads or
processes without interfering.

Entry points: ``generate(...)`` (keyword form) and
``generate_fleet(request, source)`` (``FleetRequest`` form).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from pydantic import ValidationError

from evi_fleetgen.config.generation import FleetRequest, GenerationConfig, VMTConfig
from evi_fleetgen.config.weights import FleetWeights, WeightTable, coerce_weights
from evi_fleetgen.engine.binding import bind_vehicle_ids
from evi_fleetgen.engine.joint import build_joint_distribution
from evi_fleetgen.engine.materialize import materialize_fleet
from evi_fleetgen.engine.pool import validate_source_population
from evi_fleetgen.engine.sessions import join_sessions
from evi_fleetgen.engine.stats import measure_fleet_weights
from evi_fleetgen.engine.vmt import VMTGenerator, build_vmt_tables, generate_vmt_weights, resolve_max_vmt
from evi_fleetgen.errors import ConfigurationError
from evi_fleetgen.models.results import FleetStats, ReconciliationReport, SparseMatchReport

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FleetResult:
    """Everything one generation run produces."""

    fleet_activity: pd.DataFrame
    """One row per (fleet member, source session): ``fleet_id``, stratum columns,
    ``source_vehicle_id``, then the source's session columns."""

    fleet_stats: FleetStats
    """Realized vs. target shares per dimension and day type."""

    fleet: pd.DataFrame
    """One row per surviving fleet member: ``fleet_id``, stratum columns, ``source_vehicle_id``."""

    reconciliation: list[ReconciliationReport] = field(default_factory=list)
    sparse_match: SparseMatchReport | None = None
    vmt_weights: dict[str, WeightTable] = field(default_factory=dict)
    seed: int | None = None
    """Seed the run's RNG was created from; None when an RNG was injected or no seed given."""

    @property
    def fleet_size(self) -> int:
        return len(self.fleet)


def _validated(model: type, what: str, **values: Any):
    try:
        return model(**values)
    except ValidationError as exc:
        raise ConfigurationError.from_validation_error(exc, what) from exc


def generate(
    source: pd.DataFrame,
    fleet_size: int,
    weights: FleetWeights | Mapping[str, Any],
    mean_vmt: float = 40.0,
    bin_width: int = 10,
    loc_class: str = "urban",
    *,
    random_seed: int | None = None,
    rng: np.random.Generator | None = None,
    logger: logging.Logger | None = None,
    vmt_generator: VMTGenerator = generate_vmt_weights,
    max_vmt: float | None = None,
    size_tolerance: float = 0.001,
    weight_tolerance: float = 1e-6,
) -> FleetResult:
    """Generate a fleet and its charging activity from a source pool.

    Parameters
    ----------
    source : pd.DataFrame
        Source pool: ``MATCH_KEYS`` + ``source_vehicle_id`` + session columns.
    fleet_size : int
        Target vehicles per day type.
    weights : FleetWeights | Mapping
        ``pev_weights``, ``pref_weights``, ``home_weights``, ``work_weights``,
        ``vehicle_weights``; each a ``WeightTable``, ``{label: weight}`` or
        ``[{"name", "weight"}, ...]``.
    mean_vmt, bin_width, loc_class :
        Mileage distribution inputs.
    random_seed : int, optional
        Seed for this run's private RNG.  Mutually exclusive with ``rng``.
    rng : numpy.random.Generator, optional
        Caller-owned RNG.
    logger : logging.Logger, optional
        Receives stage messages and warnings.
    vmt_generator : callable
        Replaceable mileage weight generator.
    max_vmt : float, optional
        Mileage range override; default is inferred from the source pool.
    size_tolerance, weight_tolerance : float
        Reconciliation threshold and weight-sum tolerance.

    Raises
    ------
    ConfigurationError
        On any invalid input, before sampling starts.
    """
    gen = _validated(
        GenerationConfig, "generation settings",
        fleet_size=fleet_size, random_seed=random_seed,
        size_tolerance=size_tolerance, weight_tolerance=weight_tolerance,
    )
    vmt = _validated(
        VMTConfig, "mileage settings",
        mean_vmt=mean_vmt, bin_width=bin_width, loc_class=loc_class, max_vmt=max_vmt,
    )
    return _run(source, coerce_weights(weights, gen.weight_tolerance), vmt, gen, rng, logger, vmt_generator)


def generate_fleet(
    request: FleetRequest,
    source: pd.DataFrame,
    *,
    rng: np.random.Generator | None = None,
    logger: logging.Logger | None = None,
    vmt_generator: VMTGenerator = generate_vmt_weights,
) -> FleetResult:
    """``generate`` for a pre-built ``FleetRequest``."""
    weights = coerce_weights(request.weights, request.generation.weight_tolerance)
    return _run(source, weights, request.vmt, request.generation, rng, logger, vmt_generator)


def _run(
    source: pd.DataFrame,
    weights: FleetWeights,
    vmt: VMTConfig,
    gen: GenerationConfig,
    rng: np.random.Generator | None,
    logger: logging.Logger | None,
    vmt_generator: VMTGenerator,
) -> FleetResult:
    log = logger or _log
    injected = rng is not None
    if injected and gen.random_seed is not None:
        raise ConfigurationError("pass either random_seed or rng, not both")
    validate_source_population(source)

    # ── Configuration (no randomness) ───────────────────────────────────
    try:
        vmt_tables = build_vmt_tables(vmt, resolve_max_vmt(source, vmt), vmt_generator)
    except ValidationError as exc:
        raise ConfigurationError.from_validation_error(exc, "mileage weights") from exc
    strata = build_joint_distribution(weights, vmt_tables, gen.weight_tolerance)
    log.info(
        "built %d strata (%d weight-bearing) for fleet_size=%d, mean_vmt=%g, %s",
        len(strata), int((strata["stat_weight"] > 0).sum()), gen.fleet_size, vmt.mean_vmt, vmt.loc_class,
    )

    # ── Sampling ────────────────────────────────────────────────────────
    if rng is None:
        rng = np.random.default_rng(gen.random_seed)
    fleet, reconciliation = materialize_fleet(strata, gen.fleet_size, rng, gen.size_tolerance, log)
    members, sparse_match = bind_vehicle_ids(fleet, source, rng, log)
    activity = join_sessions(members, source, log)
    stats = measure_fleet_weights(activity, weights, vmt_tables)

    return FleetResult(
        fleet_activity=activity,
        fleet_stats=stats,
        fleet=members,
        reconciliation=reconciliation,
        sparse_match=sparse_match,
        vmt_weights=vmt_tables,
        seed=None if injected else gen.random_seed,
    )
