"""
Replication loop for PSEPower.

Each replication runs the full pipeline

    design -> responses -> degradation -> per-cell PSEs -> RM ANOVA

with its own random generator ``default_rng([seed, replication])``, so
replications are independent, reproducible and can run in any order or in
parallel. ``PowerEngine`` drives the replications and collects their
effect sizes into a ``PowerResult``.
"""

import warnings
from typing import Callable, List, Optional

import numpy as np
import pandas as pd

from ..errors import DegenerateFitError, IncompleteDesignWarning
from ..stats.anova import analyze_effect_sizes
from ..stats.data_generation import degrade, generate_design, simulate_responses
from ..stats.logistic import estimate_pses
from ..utils.validators import _validate_design, _validate_proportion, _validate_replications
from .fixed_effects import FixedEffectSet
from .results import PowerResult, ReplicationResult


def replication_rng(seed: int, replication: int) -> np.random.Generator:
    """Independent generator for one replication of a seeded run."""
    return np.random.default_rng([seed, replication])


def simulate_dataset(
    fixef: FixedEffectSet,
    subj_n: int,
    trial_n: int,
    excluded_proportion: float,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Generate, simulate and degrade one synthetic dataset."""
    trials = generate_design(subj_n, trial_n)
    trials = simulate_responses(trials, fixef, rng)
    return degrade(trials, excluded_proportion, rng)


def run_replication(
    replication: int,
    fixef: FixedEffectSet,
    subj_n: int,
    trial_n: int,
    excluded_proportion: float,
    seed: int,
) -> ReplicationResult:
    """Run one replication end to end.

    A degenerate ANOVA (fewer than two complete subjects) does not raise;
    it is returned as a failed ``ReplicationResult`` carrying the reason.
    """
    rng = replication_rng(seed, replication)
    trials = simulate_dataset(fixef, subj_n, trial_n, excluded_proportion, rng)
    estimates = estimate_pses(trials)

    valid_pse = np.array([e.pse for e in estimates.estimates if e.valid], dtype=float)
    result = ReplicationResult(
        replication=replication,
        n_pse_invalid=estimates.n_invalid,
        n_pse_nonconverged=estimates.n_nonconverged,
        invalid_reasons=estimates.invalid_reasons,
        pse_sd=float(np.std(valid_pse, ddof=1)) if len(valid_pse) > 1 else float("nan"),
    )

    try:
        anova = analyze_effect_sizes(estimates, warn=False)
    except DegenerateFitError as exc:
        valid = estimates.to_frame(valid_only=True)
        n_complete = int((valid.groupby("subjectID").size() == 4).sum()) if len(valid) else 0
        result.failure_reason = str(exc)
        result.n_subjects_excluded = subj_n - n_complete
        return result

    result.effects = anova.effects
    result.n_subjects_excluded = anova.n_subjects_excluded
    return result


class PowerEngine:
    """Runs independent replications and collects effect-size distributions.

    Holds the fixed-effect set and replication count for its lifetime; each
    replication owns its trials and PSEs exclusively.

    Example:
        >>> engine = PowerEngine(fixef, replications=200, seed=2137)
        >>> result = engine.run(subj_n=20, trial_n=24, excluded_proportion=0.05)
        >>> result["color:contrast"][:3]
    """

    def __init__(
        self,
        fixef: FixedEffectSet,
        replications: int,
        seed: Optional[int] = None,
        parallel: bool = False,
        n_cores: int = 1,
        max_failed_replications: float = 0.1,
    ):
        """Initialise the engine.

        Args:
            fixef: Fixed-effect coefficients (``FixedEffectSet`` or a dict
                that converts to one).
            replications: Number of replications per run.
            seed: Run-level seed. ``None`` draws one from OS entropy per run.
            parallel: Run replications through joblib.
            n_cores: Worker count when *parallel* is set.
            max_failed_replications: Largest tolerated share (0–1) of
                replications whose ANOVA was degenerate.

        Raises:
            ConfigurationError: On a malformed fixed-effect set or invalid
                settings.
        """
        if not isinstance(fixef, FixedEffectSet):
            fixef = FixedEffectSet(fixef)
        self.fixef = fixef

        n_reps, result = _validate_replications(replications)
        result.raise_if_invalid()
        _validate_proportion(max_failed_replications, "max_failed_replications").raise_if_invalid()

        self.replications = n_reps
        self.seed = seed
        self.parallel = parallel
        self.n_cores = n_cores
        self.max_failed_replications = max_failed_replications

    def run(
        self,
        subj_n: int,
        trial_n: int,
        excluded_proportion: float = 0.0,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> PowerResult:
        """Run all replications.

        Args:
            subj_n: Subjects per simulated experiment.
            trial_n: Replicate trials per stimulus level.
            excluded_proportion: Share of responses blanked per replication.
            progress: Optional ``ProgressReporter`` (advanced by 1 per
                replication).
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            ``PowerResult`` mapping effect name to Cohen's f values.

        Raises:
            ConfigurationError: On invalid design parameters (nothing runs).
            SimulationCancelled: If *cancel_check* returns ``True``.
            RuntimeError: If all replications fail or the failure share
                exceeds ``max_failed_replications``.
        """
        _validate_design(subj_n, trial_n).raise_if_invalid()
        _validate_proportion(excluded_proportion).raise_if_invalid()

        seed = self.seed if self.seed is not None else int(np.random.SeedSequence().entropy % (2**63))
        args = (self.fixef, subj_n, trial_n, float(excluded_proportion), seed)

        if self.parallel and self.n_cores > 1:
            replications = self._run_parallel(args, progress, cancel_check)
        else:
            replications = self._run_sequential(args, progress, cancel_check)

        power_result = PowerResult(
            replications,
            settings={
                "subj_n": subj_n,
                "trial_n": trial_n,
                "excluded_proportion": float(excluded_proportion),
                "replications": self.replications,
                "seed": seed,
            },
        )
        self._check_failures(power_result)
        return power_result

    def _run_sequential(self, args, progress, cancel_check) -> List[ReplicationResult]:
        from ..progress import SimulationCancelled

        replications = []
        for rep in range(self.replications):
            if cancel_check is not None and cancel_check():
                raise SimulationCancelled("Simulation cancelled by user")
            replications.append(run_replication(rep, *args))
            if progress is not None:
                progress.advance(1)
        return replications

    def _run_parallel(self, args, progress, cancel_check) -> List[ReplicationResult]:
        from joblib import Parallel, delayed

        from ..progress import SimulationCancelled

        try:
            outputs = Parallel(
                n_jobs=self.n_cores,
                backend="loky",
                verbose=0,
                return_as="generator",
            )(delayed(run_replication)(rep, *args) for rep in range(self.replications))
            replications = []
            for result in outputs:
                if cancel_check is not None and cancel_check():
                    raise SimulationCancelled("Simulation cancelled by user")
                replications.append(result)
                if progress is not None:
                    progress.advance(1)
            return replications
        except Exception as e:
            if isinstance(e, SimulationCancelled):
                raise
            print(f"Warning: Parallel execution failed ({e}). Falling back to sequential.")
            return self._run_sequential(args, progress, cancel_check)

    def _check_failures(self, power_result: PowerResult) -> None:
        diag = power_result.diagnostics
        n_total = diag["n_replications"]
        n_failed = diag["n_replications_failed"]

        if n_failed == n_total:
            reasons = ", ".join(f"{r} ({c})" for r, c in diag["failure_reasons"].items())
            raise RuntimeError(f"All replications failed: {reasons}")

        failed_pct = n_failed / n_total
        if failed_pct > self.max_failed_replications:
            raise RuntimeError(
                f"Too many failed replications: {n_failed}/{n_total} "
                f"({failed_pct:.1%}), threshold: {self.max_failed_replications:.1%}"
            )
        if n_failed > 0:
            warnings.warn(f"{n_failed} replications failed ({failed_pct:.1%})", stacklevel=3)

        if diag["n_pse_invalid"]:
            warnings.warn(
                f"{diag['n_pse_invalid']} PSE cell fits were degenerate and excluded "
                f"in {diag['n_replications_with_invalid_pse']}/{n_total} replications",
                stacklevel=3,
            )
        if diag["n_subjects_excluded"] and diag["n_replications_with_exclusions"]:
            warnings.warn(
                f"{diag['n_subjects_excluded']} subjects were excluded listwise from the ANOVA "
                f"in {diag['n_replications_with_exclusions']}/{n_total} replications",
                IncompleteDesignWarning,
                stacklevel=3,
            )


def run_power_simulation(
    fixef,
    subj_n: int,
    trial_n: int,
    excluded_proportion: float,
    replications: int,
    seed: Optional[int] = None,
    parallel: bool = False,
    n_cores: int = 1,
) -> PowerResult:
    """One-call power run: ``PowerEngine(...).run(...)``."""
    engine = PowerEngine(fixef, replications, seed=seed, parallel=parallel, n_cores=n_cores)
    return engine.run(subj_n, trial_n, excluded_proportion)
