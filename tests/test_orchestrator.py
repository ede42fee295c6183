"""Tests for engine/orchestrator.py — the full generation pipeline.

Covers:
  - Exact per-day fleet size after reconciliation
  - No cross-stratum leakage between members and source vehicles
  - Dense, unique fleet_id
  - Same seed → identical activity; injected RNG
  - Single-label weights scenario
  - Unmatched stratum scenario (drop, warn, no compensation)
  - Tiny fleet with many small strata
  - Configuration errors raised before sampling
  - FleetRequest entry point and its weight tolerance
  - Rejected inputs: boolean fleet size, source fleet_id column
  - Threaded runs with repeated seeds
"""

from __future__ import annotations

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd
import pytest

from evi_fleetgen import ConfigurationError, SizeReconciliationWarning, SparseMatchWarning, generate, generate_fleet
from evi_fleetgen.config.generation import FleetRequest
from evi_fleetgen.config.vocabulary import MATCH_KEYS, STRATUM_COLUMNS


def _assert_no_leakage(activity: pd.DataFrame, source: pd.DataFrame) -> None:
    attrs = source.drop_duplicates("source_vehicle_id").set_index("source_vehicle_id")[list(MATCH_KEYS)]
    joined = activity.join(attrs, on="source_vehicle_id", rsuffix="_src")
    for key in MATCH_KEYS:
        assert (joined[key].astype(str) == joined[f"{key}_src"].astype(str)).all(), key


# ═══════════════════════════════════════════════════════════════════════════
# Core properties
# ═══════════════════════════════════════════════════════════════════════════

class TestProperties:
    """Invariants that hold for every run."""

    @pytest.fixture
    def result(self, source_pool, mixed_weights):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", SizeReconciliationWarning)
            return generate(source_pool, 250, mixed_weights, mean_vmt=35, random_seed=2024)

    def test_exact_size_per_day(self, result):
        counts = result.fleet.day_of_week.value_counts()
        assert counts["weekday"] == 250
        assert counts["weekend"] == 250
        assert result.fleet_size == 500

    def test_no_cross_stratum_leakage(self, result, source_pool):
        _assert_no_leakage(result.fleet_activity, source_pool)

    def test_fleet_id_dense_and_unique(self, result):
        ids = result.fleet.fleet_id
        assert ids.is_unique
        assert ids.tolist() == list(range(1, len(ids) + 1))
        assert set(result.fleet_activity.fleet_id) == set(ids)

    def test_each_member_gets_all_vehicle_sessions(self, result):
        per_member = result.fleet_activity.groupby("fleet_id").size()
        assert (per_member == 3).all()
        assert len(result.fleet_activity) == 3 * result.fleet_size

    def test_activity_columns(self, result):
        lead = ["fleet_id", *STRATUM_COLUMNS, "source_vehicle_id"]
        assert list(result.fleet_activity.columns[: len(lead)]) == lead
        assert {"session_id", "start_time", "energy_kwh", "power_public"} <= set(result.fleet_activity.columns)

    def test_reports_and_stats(self, result):
        assert [r.day_of_week for r in result.reconciliation] == ["weekday", "weekend"]
        assert all(r.final_size == 250 for r in result.reconciliation)
        assert result.sparse_match.members_dropped == 0
        assert result.fleet_stats.get("pev_type", "weekday").fleet_members == 250
        assert set(result.vmt_weights) == {"weekday", "weekend"}
        assert result.seed == 2024

    @pytest.mark.filterwarnings("ignore::evi_fleetgen.errors.SizeReconciliationWarning")
    def test_realized_shares_follow_weights(self, source_pool, mixed_weights):
        result = generate(source_pool, 4000, mixed_weights, random_seed=5)
        pev = {s.label: s for s in result.fleet_stats.get("pev_type", "weekday").shares}
        for label, share in pev.items():
            assert share.realized == pytest.approx(share.target, abs=0.03), label


class TestReproducibility:
    def test_same_seed_same_activity(self, source_pool, mixed_weights):
        with pytest.warns(SizeReconciliationWarning):
            a = generate(source_pool, 40, mixed_weights, random_seed=99)
        with pytest.warns(SizeReconciliationWarning):
            b = generate(source_pool, 40, mixed_weights, random_seed=99)
        pd.testing.assert_frame_equal(a.fleet_activity, b.fleet_activity)
        pd.testing.assert_frame_equal(
            a.fleet[["fleet_id", "source_vehicle_id"]], b.fleet[["fleet_id", "source_vehicle_id"]],
        )

    def test_injected_rng_matches_seed(self, source_pool, mixed_weights):
        with pytest.warns(SizeReconciliationWarning):
            a = generate(source_pool, 40, mixed_weights, random_seed=3)
        with pytest.warns(SizeReconciliationWarning):
            b = generate(source_pool, 40, mixed_weights, rng=np.random.default_rng(3))
        pd.testing.assert_frame_equal(a.fleet_activity, b.fleet_activity)
        assert b.seed is None

    def test_seed_and_rng_together_rejected(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="not both"):
            generate(source_pool, 40, mixed_weights, random_seed=3, rng=np.random.default_rng(3))


# ═══════════════════════════════════════════════════════════════════════════
# Scenarios
# ═══════════════════════════════════════════════════════════════════════════

class TestScenarios:
    """Concrete end-to-end cases."""

    def test_single_label_fleet(self, source_pool, single_weights, single_bin_vmt, recwarn):
        result = generate(source_pool, 100, single_weights, random_seed=1, vmt_generator=single_bin_vmt)
        fleet = result.fleet
        assert (fleet.day_of_week == "weekday").sum() == 100
        assert (fleet.day_of_week == "weekend").sum() == 100
        assert fleet.drop(columns=["fleet_id", "source_vehicle_id", "day_of_week"]).drop_duplicates().shape[0] == 1
        assert not any(issubclass(w.category, SizeReconciliationWarning) for w in recwarn)

        for day in ("weekday", "weekend"):
            mask = (
                (source_pool.day_of_week == day) & (source_pool.pev_type == "PHEV20")
                & (source_pool.preferred_loc == "PrefHome") & (source_pool.power_home == "HomeL2")
                & (source_pool.power_work == "WorkL2") & (source_pool.schedule_vmt_bin == 30)
                & (source_pool.vehicle_class == "Sedan")
            )
            allowed = set(source_pool.loc[mask, "source_vehicle_id"])
            assert set(fleet.loc[fleet.day_of_week == day, "source_vehicle_id"]) <= allowed

    def test_unmatched_stratum_dropped_without_compensation(
        self, source_pool, single_weights, single_bin_vmt,
    ):
        single_weights["pev_weights"] = {"PHEV20": 0.5, "BEV250": 0.5}
        sparse = source_pool[~((source_pool.pev_type == "BEV250") & (source_pool.day_of_week == "weekday"))]
        with pytest.warns(SparseMatchWarning, match="removing 50 of 200"):
            result = generate(sparse, 100, single_weights, random_seed=8, vmt_generator=single_bin_vmt)
        assert result.sparse_match.members_dropped == 50
        assert result.fleet_size == 200 - 50
        assert (result.fleet.day_of_week == "weekday").sum() == 50
        assert not ((result.fleet.pev_type == "BEV250") & (result.fleet.day_of_week == "weekday")).any()
        assert result.fleet.fleet_id.tolist() == list(range(1, 151))

    def test_tiny_fleet_many_strata(self, source_pool, mixed_weights):
        with pytest.warns(SizeReconciliationWarning):
            result = generate(source_pool, 3, mixed_weights, random_seed=17)
        assert (result.fleet.day_of_week == "weekday").sum() == 3
        assert (result.fleet.day_of_week == "weekend").sum() == 3
        assert all(r.corrected for r in result.reconciliation)
        _assert_no_leakage(result.fleet_activity, source_pool)

    def test_rows_form_weights(self, source_pool, single_bin_vmt):
        weights = {
            "pev_weights": [{"name": "BEV100", "weight": 1.0}],
            "pref_weights": [{"name": "PrefWork", "weight": 1.0}],
            "home_weights": [{"name": "HomeL1", "weight": 1.0}],
            "work_weights": [{"name": "WorkL1", "weight": 1.0}],
            "vehicle_weights": [{"name": "SUV", "weight": 1.0}],
        }
        result = generate(source_pool, 10, weights, random_seed=0, vmt_generator=single_bin_vmt)
        assert set(result.fleet.vehicle_class) == {"SUV"}


# ═══════════════════════════════════════════════════════════════════════════
# Configuration errors
# ═══════════════════════════════════════════════════════════════════════════

class TestConfigurationErrors:
    """Fail fast, before any sampling."""

    @pytest.mark.parametrize("size", [0, -1])
    def test_bad_fleet_size(self, source_pool, mixed_weights, size):
        with pytest.raises(ConfigurationError, match="fleet_size"):
            generate(source_pool, size, mixed_weights)

    def test_bad_mean_vmt(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="mean_vmt"):
            generate(source_pool, 10, mixed_weights, mean_vmt=0)

    def test_bad_bin_width(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="bin_width"):
            generate(source_pool, 10, mixed_weights, bin_width=0)

    def test_bad_loc_class(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="loc_class"):
            generate(source_pool, 10, mixed_weights, loc_class="suburban")

    def test_bad_weight_sum(self, source_pool, mixed_weights):
        mixed_weights["home_weights"] = {"HomeL1": 0.5, "HomeL2": 0.6}
        with pytest.raises(ConfigurationError, match="home_weights"):
            generate(source_pool, 10, mixed_weights)

    def test_unknown_label(self, source_pool, mixed_weights):
        mixed_weights["pev_weights"] = {"FCEV": 1.0}
        with pytest.raises(ConfigurationError, match="FCEV"):
            generate(source_pool, 10, mixed_weights)

    def test_public_weights_rejected(self, source_pool, mixed_weights):
        mixed_weights["public_weights"] = {"PublicL2": 1.0}
        with pytest.raises(ConfigurationError, match="public_weights"):
            generate(source_pool, 10, mixed_weights)

    def test_missing_source_column(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="source_vehicle_id"):
            generate(source_pool.drop(columns="source_vehicle_id"), 10, mixed_weights)

    def test_no_sampling_on_error(self, source_pool, mixed_weights):
        rng = np.random.default_rng(0)
        before = rng.bit_generator.state
        mixed_weights["work_weights"] = {"WorkL1": 2.0}
        with pytest.raises(ConfigurationError):
            generate(source_pool, 10, mixed_weights, rng=rng)
        assert rng.bit_generator.state == before


class TestRequestAndLogging:
    def test_generate_fleet_from_request(self, source_pool, single_weights, single_bin_vmt):
        request = FleetRequest(
            weights=single_weights,
            vmt={"mean_vmt": 30, "bin_width": 10, "loc_class": "rural"},
            generation={"fleet_size": 20, "random_seed": 4},
        )
        result = generate_fleet(request, source_pool, vmt_generator=single_bin_vmt)
        assert result.fleet_size == 40
        assert result.seed == 4

    def test_injected_logger_receives_warnings(self, source_pool, mixed_weights, caplog):
        logger = logging.getLogger("fleet-run-7")
        with caplog.at_level(logging.INFO, logger="fleet-run-7"):
            with pytest.warns(SizeReconciliationWarning):
                generate(source_pool, 5, mixed_weights, random_seed=1, logger=logger)
        records = [r for r in caplog.records if r.name == "fleet-run-7"]
        assert any(r.levelno == logging.WARNING and "fleet size error" in r.getMessage() for r in records)
        assert any("built" in r.getMessage() for r in records)

    def test_request_weight_tolerance_applies(self, source_pool, single_weights, single_bin_vmt):
        single_weights["pref_weights"] = {"PrefHome": 0.9995}
        request = FleetRequest(
            weights=single_weights,
            generation={"fleet_size": 20, "random_seed": 4, "weight_tolerance": 1e-3},
        )
        result = generate_fleet(request, source_pool, vmt_generator=single_bin_vmt)
        assert result.fleet_size == 40
        assert set(result.fleet.preferred_loc) == {"PrefHome"}


class TestInputGuards:
    def test_bool_fleet_size_rejected(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="fleet_size"):
            generate(source_pool, True, mixed_weights)

    def test_source_with_fleet_id_rejected(self, source_pool, mixed_weights):
        with pytest.raises(ConfigurationError, match="fleet_id"):
            generate(source_pool.assign(fleet_id=0), 10, mixed_weights, random_seed=1)


# ═══════════════════════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════════════════════

class TestConcurrency:
    """Parallel runs share no state: each seed reproduces its own fleet."""

    @pytest.mark.filterwarnings("ignore::evi_fleetgen.errors.FleetGenWarning")
    def test_threaded_runs_match_per_seed(self, source_pool, mixed_weights):
        seeds = [11, 12, 13, 14] * 4

        def run(seed: int) -> pd.DataFrame:
            return generate(source_pool, 40, mixed_weights, random_seed=seed).fleet_activity

        with ThreadPoolExecutor(max_workers=8) as pool:
            frames = list(pool.map(run, seeds))

        first: dict[int, pd.DataFrame] = {}
        for seed, frame in zip(seeds, frames):
            if seed in first:
                pd.testing.assert_frame_equal(frame, first[seed])
            else:
                first[seed] = frame
        assert not first[11].equals(first[12])
