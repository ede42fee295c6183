"""Closed category vocabularies for every stratifying dimension.

Each vocabulary is a ``Literal`` alias (used directly in pydantic models)
plus an ordered tuple of its levels.  Level order matches the integer codes
of the upstream simulation file-naming convention and is used wherever
output needs a stable category order.
"""

from typing import Literal, get_args

PevType = Literal["PHEV20", "PHEV50", "BEV100", "BEV250"]
PreferredLoc = Literal["PrefHome", "PrefWork"]
PowerHome = Literal["HomeL1", "HomeL2", "HomeNone"]
PowerWork = Literal["WorkL1", "WorkL2"]
VehicleClass = Literal["Sedan", "SUV"]
DayOfWeek = Literal["weekday", "weekend"]
LocClass = Literal["urban", "rural"]

PEV_TYPES: tuple[str, ...] = get_args(PevType)
PREFERRED_LOCS: tuple[str, ...] = get_args(PreferredLoc)
POWER_HOME_LEVELS: tuple[str, ...] = get_args(PowerHome)
POWER_WORK_LEVELS: tuple[str, ...] = get_args(PowerWork)
VEHICLE_CLASSES: tuple[str, ...] = get_args(VehicleClass)
DAYS_OF_WEEK: tuple[str, ...] = get_args(DayOfWeek)
LOC_CLASSES: tuple[str, ...] = get_args(LocClass)

# Caller-supplied weight key → (stratum column, allowed labels)
DIMENSIONS: dict[str, tuple[str, tuple[str, ...]]] = {
    "pev_weights": ("pev_type", PEV_TYPES),
    "pref_weights": ("preferred_loc", PREFERRED_LOCS),
    "home_weights": ("power_home", POWER_HOME_LEVELS),
    "work_weights": ("power_work", POWER_WORK_LEVELS),
    "vehicle_weights": ("vehicle_class", VEHICLE_CLASSES),
}

VMT_DIMENSION = "vmt_weights"
"""Mileage dimension — derived internally, never caller-supplied."""

LEGACY_WEIGHT_KEYS: frozenset[str] = frozenset({"public_weights", "temp_weights", VMT_DIMENSION})
"""Weight keys from older fleet builds that are no longer accepted."""

STRATUM_COLUMNS: tuple[str, ...] = (
    "pev_type",
    "preferred_loc",
    "power_home",
    "power_work",
    "day_of_week",
    "schedule_vmt_bin",
    "vehicle_class",
)

MATCH_KEYS: tuple[str, ...] = (
    "day_of_week",
    "power_work",
    "power_home",
    "preferred_loc",
    "pev_type",
    "schedule_vmt_bin",
    "vehicle_class",
)
"""Composite key a fleet member must share with a source vehicle."""

SESSION_KEYS: tuple[str, ...] = MATCH_KEYS + ("source_vehicle_id",)

REQUIRED_SOURCE_COLUMNS: tuple[str, ...] = MATCH_KEYS + ("source_vehicle_id",)


def vocabulary() -> dict[str, list[str]]:
    """Column name → ordered allowed labels, for every categorical column."""
    vocab = {column: list(levels) for column, levels in DIMENSIONS.values()}
    vocab["day_of_week"] = list(DAYS_OF_WEEK)
    vocab["loc_class"] = list(LOC_CLASSES)
    return vocab
