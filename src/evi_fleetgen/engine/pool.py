"""Source pool assembly and checks.

Simulation output arrives as one table per vehicle class, each numbering
its vehicles from the same range.  ``combine_class_pools`` stacks them
into one pool, tagging ``vehicle_class`` and shifting each class's ids by
a fixed offset so identifiers stay unique.  The same call works for
session tables and for precomputed load-profile tables, which must be
offset identically to stay joinable.
"""

from __future__ import annotations

from collections.abc import Mapping

import pandas as pd

from evi_fleetgen.config.vocabulary import REQUIRED_SOURCE_COLUMNS, VEHICLE_CLASSES
from evi_fleetgen.errors import ConfigurationError

CLASS_ID_OFFSET = 100_000_000
"""Id shift per vehicle class, in vocabulary order (Sedan +0, SUV +1e8)."""


def combine_class_pools(
    pools: Mapping[str, pd.DataFrame],
    id_column: str = "source_vehicle_id",
    id_offset: int = CLASS_ID_OFFSET,
) -> pd.DataFrame:
    """Stack per-class tables into one pool with class-unique vehicle ids.

    Parameters
    ----------
    pools : Mapping[str, pd.DataFrame]
        ``vehicle_class → table``.  Classes must be in the vehicle vocabulary.
    id_column : str
        Vehicle id column to offset.
    id_offset : int
        Id shift between consecutive classes.

    Returns
    -------
    pd.DataFrame
        Concatenated pool with a categorical ``vehicle_class`` column.
    """
    unknown = [cls for cls in pools if cls not in VEHICLE_CLASSES]
    if unknown:
        raise ConfigurationError(f"unknown vehicle class(es) {unknown}; allowed: {list(VEHICLE_CLASSES)}")

    frames = []
    for position, cls in enumerate(VEHICLE_CLASSES):
        if cls not in pools:
            continue
        frame = pools[cls].copy()
        if id_column not in frame.columns:
            raise ConfigurationError(f"{cls} pool has no {id_column!r} column")
        if frame[id_column].max() >= id_offset:
            raise ConfigurationError(f"{cls} pool ids reach {id_offset}; they would collide after offsetting")
        frame[id_column] = frame[id_column] + position * id_offset
        frame["vehicle_class"] = cls
        frames.append(frame)

    if not frames:
        raise ConfigurationError("no vehicle class pools supplied")
    combined = pd.concat(frames, ignore_index=True)
    combined["vehicle_class"] = pd.Categorical(combined["vehicle_class"], categories=list(VEHICLE_CLASSES))
    return combined


def validate_source_population(source: pd.DataFrame) -> None:
    """Raise ``ConfigurationError`` unless the pool has every binding column and at least one row."""
    if not isinstance(source, pd.DataFrame):
        raise ConfigurationError(f"source population must be a pandas DataFrame, got {type(source).__name__}")
    missing = [c for c in REQUIRED_SOURCE_COLUMNS if c not in source.columns]
    if missing:
        raise ConfigurationError(f"source population is missing column(s) {missing}")
    if "fleet_id" in source.columns:
        raise ConfigurationError("source population must not have a fleet_id column; fleet_id is assigned to generated members")
    if source.empty:
        raise ConfigurationError("source population is empty")
