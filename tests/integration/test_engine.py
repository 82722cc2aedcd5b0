"""
Integration tests for PowerEngine and replication seeding.
"""

import warnings

import numpy as np
import pytest
from scipy.special import expit

from tests.config import MC_Z, N_REPS_CHECK, SEED, SUBJ_N_SMALL, TRIAL_N_SMALL


def _quiet_run(engine, *args, **kwargs):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return engine.run(*args, **kwargs)


class TestReproducibility:
    def test_same_seed_same_output(self, pilot_fixef):
        from psepower import PowerEngine

        a = _quiet_run(PowerEngine(pilot_fixef, N_REPS_CHECK, seed=SEED), SUBJ_N_SMALL, TRIAL_N_SMALL, 0.05)
        b = _quiet_run(PowerEngine(pilot_fixef, N_REPS_CHECK, seed=SEED), SUBJ_N_SMALL, TRIAL_N_SMALL, 0.05)
        assert a.to_frame().equals(b.to_frame())

    def test_different_seed_differs(self, pilot_fixef):
        from psepower import PowerEngine

        a = _quiet_run(PowerEngine(pilot_fixef, N_REPS_CHECK, seed=SEED), SUBJ_N_SMALL, TRIAL_N_SMALL)
        b = _quiet_run(PowerEngine(pilot_fixef, N_REPS_CHECK, seed=SEED + 1), SUBJ_N_SMALL, TRIAL_N_SMALL)
        assert not np.array_equal(a.to_frame()["statistic"], b.to_frame()["statistic"])

    def test_replication_independent_of_run(self, pilot_fixef):
        from psepower import PowerEngine
        from psepower.core import run_replication

        result = _quiet_run(PowerEngine(pilot_fixef, 4, seed=SEED), SUBJ_N_SMALL, TRIAL_N_SMALL)
        alone = run_replication(3, pilot_fixef, SUBJ_N_SMALL, TRIAL_N_SMALL, 0.0, SEED)
        assert alone.effects["color"].statistic == result.replications[3].effects["color"].statistic

    def test_dataset_seeding(self, pilot_fixef):
        from psepower.core import replication_rng, simulate_dataset

        a = simulate_dataset(pilot_fixef, 3, 2, 0.1, replication_rng(SEED, 7))
        b = simulate_dataset(pilot_fixef, 3, 2, 0.1, replication_rng(SEED, 7))
        c = simulate_dataset(pilot_fixef, 3, 2, 0.1, replication_rng(SEED, 8))
        assert a.equals(b)
        assert not a["response"].equals(c["response"])

    def test_unseeded_run_records_seed(self, pilot_fixef):
        from psepower import PowerEngine

        result = _quiet_run(PowerEngine(pilot_fixef, 2, seed=None), SUBJ_N_SMALL, TRIAL_N_SMALL)
        assert isinstance(result.settings["seed"], int)
        assert result.settings["seed"] >= 0


class TestNullScenario:
    """subj_n=10, trial_n=24 with every coefficient zero."""

    def test_response_rate_is_half(self, null_fixef):
        from psepower.core import replication_rng, simulate_dataset

        trials = simulate_dataset(null_fixef, 10, 24, 0.0, replication_rng(SEED, 0))
        assert len(trials) == 10 * 24 * 72
        se = np.sqrt(0.25 / len(trials))
        assert abs(trials["response"].mean() - 0.5) < MC_Z * se

    def test_intercept_only_rate(self):
        from psepower import FixedEffectSet
        from psepower.core import replication_rng, simulate_dataset

        trials = simulate_dataset(FixedEffectSet.null(intercept=-0.7), 10, 24, 0.0, replication_rng(SEED, 0))
        expected = expit(-0.7)
        se = np.sqrt(expected * (1 - expected) / len(trials))
        assert abs(trials["response"].mean() - expected) < MC_Z * se


class TestDegradationExtremes:
    def test_no_exclusions(self, pilot_fixef):
        from psepower.core import replication_rng, simulate_dataset

        trials = simulate_dataset(pilot_fixef, 3, 2, 0.0, replication_rng(SEED, 0))
        assert trials["response"].notna().all()

    def test_everything_excluded_fails_run(self, pilot_fixef):
        from psepower import PowerEngine

        with pytest.raises(RuntimeError, match="All replications failed"):
            _quiet_run(PowerEngine(pilot_fixef, 2, seed=SEED), 4, 2, 1.0)

    def test_single_subject_fails_run(self, pilot_fixef):
        from psepower import PowerEngine

        with pytest.raises(RuntimeError, match="All replications failed"):
            _quiet_run(PowerEngine(pilot_fixef, 2, seed=SEED), 1, 2)

    def test_failed_replication_record(self, pilot_fixef):
        from psepower.core import run_replication

        rep = run_replication(0, pilot_fixef, 4, 2, 1.0, SEED)
        assert rep.failed
        assert rep.n_pse_invalid == 16
        assert rep.n_subjects_excluded == 4
        assert rep.effects == {}

    def test_steep_size_effect_keeps_subjects(self):
        from psepower.core import FixedEffectSet, run_replication

        fixef = FixedEffectSet.null(intercept=0.5, subject_sd=0.5).replace(size=3.0, color_e=0.4)
        rep = run_replication(0, fixef, 10, 2, 0.0, SEED)
        assert not rep.failed
        assert rep.n_pse_invalid == 0
        assert rep.n_subjects_excluded == 0


class TestInteractionScenarios:
    """R=5 runs contrasting a null interaction with a strong one."""

    def _mean_f(self, fixef, effect):
        from psepower import PowerEngine

        result = _quiet_run(PowerEngine(fixef, N_REPS_CHECK, seed=SEED), SUBJ_N_SMALL, 8)
        values = np.asarray(result[effect], dtype=float)
        return values[np.isfinite(values)].mean()

    def test_null_interaction_small_and_below_strong(self, pilot_fixef):
        null = self._mean_f(pilot_fixef.replace(color_x_contrast=0.0), "color:contrast")
        strong = self._mean_f(pilot_fixef.replace(color_x_contrast=2.0), "color:contrast")
        assert null < 0.75
        assert null < strong

    def test_stronger_size_effect_narrows_pse_spread(self, pilot_fixef):
        from psepower import PowerEngine

        def mean_pse_sd(size):
            result = _quiet_run(PowerEngine(pilot_fixef.replace(size=size), N_REPS_CHECK, seed=SEED), SUBJ_N_SMALL, 8)
            return np.nanmean([r.pse_sd for r in result.successful])

        assert mean_pse_sd(1.6) < mean_pse_sd(0.2)


class TestFailurePolicy:
    def test_warns_on_exclusions(self, pilot_fixef, monkeypatch):
        import dataclasses

        from psepower import PowerEngine
        from psepower.core import simulation
        from psepower.errors import IncompleteDesignWarning

        original = simulation.estimate_pses

        def drop_first_cell(trials):
            estimates = original(trials)
            estimates.estimates[0] = dataclasses.replace(estimates.estimates[0], pse=float("nan"), valid=False, reason="forced")
            return estimates

        monkeypatch.setattr(simulation, "estimate_pses", drop_first_cell)
        engine = PowerEngine(pilot_fixef, 3, seed=SEED)
        with pytest.warns(IncompleteDesignWarning):
            result = engine.run(SUBJ_N_SMALL, TRIAL_N_SMALL)
        assert result.diagnostics["n_subjects_excluded"] >= 3
        assert result.diagnostics["invalid_reasons"]["forced"] == 3

    def test_threshold_exceeded(self, pilot_fixef, monkeypatch):
        from psepower import PowerEngine
        from psepower.core import simulation
        from psepower.core.results import ReplicationResult

        original = simulation.run_replication

        def flaky(replication, *args):
            if replication % 2:
                return ReplicationResult(replication=replication, failure_reason="forced")
            return original(replication, *args)

        monkeypatch.setattr(simulation, "run_replication", flaky)
        engine = PowerEngine(pilot_fixef, 4, seed=SEED, max_failed_replications=0.25)
        with pytest.raises(RuntimeError, match="Too many failed replications"):
            _quiet_run(engine, SUBJ_N_SMALL, TRIAL_N_SMALL)

    def test_tolerated_failures_warn(self, pilot_fixef, monkeypatch):
        from psepower import PowerEngine
        from psepower.core import simulation
        from psepower.core.results import ReplicationResult

        original = simulation.run_replication

        def flaky(replication, *args):
            if replication == 0:
                return ReplicationResult(replication=replication, failure_reason="forced")
            return original(replication, *args)

        monkeypatch.setattr(simulation, "run_replication", flaky)
        engine = PowerEngine(pilot_fixef, 4, seed=SEED, max_failed_replications=0.5)
        with pytest.warns(UserWarning, match="1 replications failed"):
            result = engine.run(SUBJ_N_SMALL, TRIAL_N_SMALL)
        assert result.n_replications_used == 3


class TestValidation:
    @pytest.mark.parametrize("subj_n, trial_n, proportion", [(0, 2, 0.0), (3, 0, 0.0), (3, 2, 1.5)])
    def test_invalid_design_raises_before_running(self, pilot_fixef, subj_n, trial_n, proportion):
        from psepower import ConfigurationError, PowerEngine

        with pytest.raises(ConfigurationError):
            PowerEngine(pilot_fixef, 2, seed=SEED).run(subj_n, trial_n, proportion)

    def test_invalid_replications(self, pilot_fixef):
        from psepower import ConfigurationError, PowerEngine

        with pytest.raises(ConfigurationError):
            PowerEngine(pilot_fixef, 0)

    def test_accepts_dict(self):
        from psepower import PowerEngine
        from tests.config import PILOT_FIXEF

        assert PowerEngine(PILOT_FIXEF, 2).fixef["size"] == pytest.approx(0.8)


class TestProgressAndCancel:
    def test_progress_advanced_per_replication(self, pilot_fixef):
        from unittest.mock import MagicMock

        from psepower import PowerEngine, ProgressReporter

        cb = MagicMock()
        reporter = ProgressReporter(3, cb, update_every=1)
        _quiet_run(PowerEngine(pilot_fixef, 3, seed=SEED), SUBJ_N_SMALL, TRIAL_N_SMALL, progress=reporter)
        assert [c.args for c in cb.call_args_list] == [(1, 3), (2, 3), (3, 3)]

    def test_cancel(self, pilot_fixef):
        from psepower import PowerEngine, SimulationCancelled

        with pytest.raises(SimulationCancelled):
            PowerEngine(pilot_fixef, 3, seed=SEED).run(SUBJ_N_SMALL, TRIAL_N_SMALL, cancel_check=lambda: True)


class TestParallel:
    def test_matches_sequential(self, pilot_fixef):
        pytest.importorskip("joblib")
        from psepower import PowerEngine

        seq = _quiet_run(PowerEngine(pilot_fixef, 4, seed=SEED), SUBJ_N_SMALL, TRIAL_N_SMALL)
        par = _quiet_run(PowerEngine(pilot_fixef, 4, seed=SEED, parallel=True, n_cores=2), SUBJ_N_SMALL, TRIAL_N_SMALL)
        np.testing.assert_allclose(par.to_frame()["statistic"], seq.to_frame()["statistic"])

    def test_run_power_simulation(self, pilot_fixef):
        from psepower import run_power_simulation

        result = run_power_simulation(pilot_fixef, SUBJ_N_SMALL, TRIAL_N_SMALL, 0.0, 2, seed=SEED)
        assert result.n_replications_used == 2
        assert set(result) == {"intercept", "color", "contrast", "color:contrast"}
