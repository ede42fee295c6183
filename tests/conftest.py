"""Shared test fixtures — weight sets and a synthetic source pool."""

from __future__ import annotations

import itertools

import pandas as pd
import pytest

from evi_fleetgen.config.vocabulary import (
    DAYS_OF_WEEK,
    PEV_TYPES,
    POWER_HOME_LEVELS,
    POWER_WORK_LEVELS,
    PREFERRED_LOCS,
    VEHICLE_CLASSES,
)
from evi_fleetgen.config.weights import WeightTable

DEFAULT_BINS = tuple(range(0, 110, 10))


def _make_source(
    pev_types=PEV_TYPES,
    preferred_locs=PREFERRED_LOCS,
    power_home=POWER_HOME_LEVELS,
    power_work=POWER_WORK_LEVELS,
    vehicle_classes=VEHICLE_CLASSES,
    days=DAYS_OF_WEEK,
    bins=DEFAULT_BINS,
    vehicles_per_stratum: int = 2,
    sessions_per_vehicle: int = 3,
) -> pd.DataFrame:
    """Source pool with every listed stratum present; each vehicle id belongs to one stratum."""
    rows = []
    vid = 0
    for day, work, home, pref, pev, vmt_bin, cls in itertools.product(
        days, power_work, power_home, preferred_locs, pev_types, bins, vehicle_classes,
    ):
        for _ in range(vehicles_per_stratum):
            vid += 1
            for s in range(sessions_per_vehicle):
                rows.append({
                    "day_of_week": day,
                    "power_work": work,
                    "power_home": home,
                    "preferred_loc": pref,
                    "pev_type": pev,
                    "schedule_vmt_bin": vmt_bin,
                    "schedule_vmt": vmt_bin + 5.0,
                    "power_public": "PublicL2",
                    "vehicle_class": cls,
                    "source_vehicle_id": vid,
                    "session_id": s + 1,
                    "start_time": pd.Timestamp("2019-06-03 07:00") + pd.Timedelta(hours=4 * s),
                    "energy_kwh": 1.5 + s,
                })
    return pd.DataFrame(rows)


@pytest.fixture
def make_source():
    """Factory for custom source pools."""
    return _make_source


@pytest.fixture(scope="session")
def source_pool() -> pd.DataFrame:
    """Full-vocabulary pool, mileage bins 0..100 by 10, 2 vehicles × 3 sessions per stratum."""
    return _make_source()


@pytest.fixture
def mixed_weights() -> dict[str, dict[str, float]]:
    return {
        "pev_weights": {"PHEV20": 0.1, "PHEV50": 0.2, "BEV100": 0.3, "BEV250": 0.4},
        "pref_weights": {"PrefHome": 0.75, "PrefWork": 0.25},
        "home_weights": {"HomeL1": 0.2, "HomeL2": 0.7, "HomeNone": 0.1},
        "work_weights": {"WorkL1": 0.4, "WorkL2": 0.6},
        "vehicle_weights": {"Sedan": 0.55, "SUV": 0.45},
    }


@pytest.fixture
def single_weights() -> dict[str, dict[str, float]]:
    """Every dimension pinned to one label."""
    return {
        "pev_weights": {"PHEV20": 1.0},
        "pref_weights": {"PrefHome": 1.0},
        "home_weights": {"HomeL2": 1.0},
        "work_weights": {"WorkL2": 1.0},
        "vehicle_weights": {"Sedan": 1.0},
    }


@pytest.fixture
def single_bin_vmt():
    """Mileage generator that puts every vehicle in the 30-mile bin."""
    def generator(mean_vmt, max_vmt, bin_width, loc_class, day_of_week):
        return WeightTable(dimension="vmt_weights", weights={"30": 1.0})
    return generator
