"""
PSEPower - simulation-based power analysis for PSE experiments.

This module provides the main PSEPower class, which configures a power run
from a pilot fixed-effect table and reports power and Cohen's f for the
repeated-measures ANOVA on simulated PSEs.
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Union

from .core import FixedEffectSet, PowerEngine, ResultsProcessor, build_power_result, build_sample_size_result
from .stats.anova import EFFECT_NAMES
from .utils.formatters import _format_results
from .utils.pilot_data import excluded_proportion as _excluded_proportion
from .utils.validators import (
    _validate_alpha,
    _validate_design,
    _validate_parallel_settings,
    _validate_power,
    _validate_proportion,
    _validate_replications,
    _validate_sample_size_range,
)


class PSEPower:
    """Monte Carlo power analysis for PSE experiments.

    Simulates same/different judgments from a pilot model's fixed effects,
    re-estimates one PSE per subject x color x contrast cell and runs a
    repeated-measures ANOVA on the PSEs in every replication.

    Most ``set_*`` methods return ``self`` for method chaining.

    Attributes:
        seed: Random seed for reproducibility (default: 2137).
        power: Target power level in percent (default: 80.0).
        alpha: Significance level (default: 0.05).
        n_replications: Number of replications per run (default: 100).
        excluded_proportion: Share of responses treated as missing (default: 0).
        parallel: Run replications through joblib (default: False).
        n_cores: Number of CPU cores for parallel execution.
        max_failed_replications: Maximum acceptable failure rate (default: 0.1).

    Example:
        >>> model = PSEPower({"(Intercept)": 0.1, "color.e": 0.3, ...})
        >>> model.set_excluded_proportion(0.04).set_replications(200)
        >>> model.find_power(subj_n=20, trial_n=24)
    """

    def __init__(self, fixed_effects: Union[FixedEffectSet, Dict[str, float], Any]):
        """Initialise the analysis.

        Args:
            fixed_effects: ``FixedEffectSet``, dict of term -> coefficient,
                or a pilot coefficient table (pandas Series / DataFrame).

        Raises:
            ConfigurationError: If a required term is missing or unknown.
        """
        if isinstance(fixed_effects, FixedEffectSet):
            self.fixed_effects = fixed_effects
        elif isinstance(fixed_effects, dict):
            self.fixed_effects = FixedEffectSet(fixed_effects)
        else:
            self.fixed_effects = FixedEffectSet.from_table(fixed_effects)

        self.seed: Optional[int] = 2137
        self.power = 80.0
        self.alpha = 0.05
        self.n_replications = 100
        self.excluded_proportion = 0.0
        self.parallel = False
        self.n_cores = 1
        self.max_failed_replications = 0.1

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_seed(self, seed: Optional[int] = None):
        """Set random seed for reproducibility.

        Args:
            seed: Non-negative integer, or ``None`` for fresh entropy per run.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *seed* is not an integer or ``None``.
            ValueError: If *seed* is negative.
        """
        if seed is not None:
            if isinstance(seed, bool) or not isinstance(seed, int):
                raise TypeError("seed must be an integer or None")
            if seed < 0:
                raise ValueError("seed must be non-negative")
        self.seed = seed
        return self

    def set_power(self, power: float):
        """Set the target power (percent) used by ``find_sample_size``."""
        _validate_power(power).raise_if_invalid()
        self.power = float(power)
        return self

    def set_alpha(self, alpha: float):
        """Set the significance level for the ANOVA F tests."""
        _validate_alpha(alpha).raise_if_invalid()
        self.alpha = float(alpha)
        return self

    def set_replications(self, n_replications: int):
        """Set the number of replications per run.

        Args:
            n_replications: Positive integer. Fewer than 100 triggers a warning.

        Returns:
            self: For method chaining.
        """
        n_reps, result = _validate_replications(n_replications)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.n_replications = n_reps
        return self

    def set_excluded_proportion(self, proportion: float):
        """Set the share of responses blanked in every replication (0–1)."""
        _validate_proportion(proportion).raise_if_invalid()
        self.excluded_proportion = float(proportion)
        return self

    def set_excluded_proportion_from_data(self, raw, retained):
        """Estimate the excluded share from pilot data.

        Args:
            raw: All recorded pilot trials (DataFrame, dict, or trial count).
            retained: Pilot trials kept after the exclusion criteria.

        Returns:
            self: For method chaining.
        """
        proportion = _excluded_proportion(raw, retained)
        print(f"Excluded proportion estimated from pilot data: {proportion:.2%}")
        return self.set_excluded_proportion(proportion)

    def set_parallel(self, enable: bool = True, n_cores: Optional[int] = None):
        """Enable or disable parallel replications.

        Requires ``joblib``. Falls back to sequential processing with a
        warning if it is unavailable.
        """
        if enable is False:
            self.parallel, self.n_cores = False, 1
            return self

        try:
            import joblib  # noqa: F401
        except ImportError:
            print("Warning: joblib not available. Install with: pip install joblib")
            print("Warning: Continuing with sequential processing.")
            self.parallel = False
            return self

        settings, result = _validate_parallel_settings(enable, n_cores)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.parallel, self.n_cores = settings
        return self

    def set_max_failed_replications(self, proportion: float):
        """Set the largest tolerated share (0–1) of failed replications."""
        _validate_proportion(proportion, "max_failed_replications").raise_if_invalid()
        self.max_failed_replications = float(proportion)
        return self

    def _engine(self) -> PowerEngine:
        return PowerEngine(
            self.fixed_effects,
            self.n_replications,
            seed=self.seed,
            parallel=self.parallel,
            n_cores=self.n_cores,
            max_failed_replications=self.max_failed_replications,
        )

    # =========================================================================
    # Analyses
    # =========================================================================

    def find_power(
        self,
        subj_n: int,
        trial_n: int,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """
        Estimate power and Cohen's f for one design.

        Args:
            subj_n: Subjects per simulated experiment
            trial_n: Replicate trials per stimulus level
            print_results: Whether to print results
            summary: Output detail level ("short" or "long")
            return_results: Return results dict
            progress_callback: ``None`` (PrintReporter when printing),
                ``False`` (no progress) or a ``(current, total)`` callable
            cancel_check: Optional callable returning ``True`` to abort

        Returns:
            dict or None: With *return_results*, a dict with ``"model"``
            (settings) and ``"results"`` (powers, Cohen's f, diagnostics).
        """
        result = _validate_design(subj_n, trial_n)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()

        reporter = self._make_reporter(progress_callback, print_results, 1)
        with reporter or nullcontext():
            power_result = self._engine().run(subj_n, trial_n, self.excluded_proportion, progress=reporter, cancel_check=cancel_check)

        processor = ResultsProcessor(target_power=self.power)
        output = build_power_result(
            fixed_effects=dict(self.fixed_effects),
            subj_n=subj_n,
            trial_n=trial_n,
            excluded_proportion=self.excluded_proportion,
            alpha=self.alpha,
            target_power=self.power,
            n_replications=self.n_replications,
            seed=self.seed,
            parallel=self.parallel,
            power_results=processor.calculate_powers(power_result, self.alpha),
        )

        if print_results:
            print(f"\n{'=' * 80}")
            print("PSE POWER ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            print(_format_results("power", output, summary))

        return output if return_results else None

    def find_sample_size(
        self,
        trial_n: int,
        target_effect: Union[str, List[str]] = "all",
        from_size: int = 10,
        to_size: int = 50,
        by: int = 5,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """
        Find the smallest subject count reaching the target power.

        Args:
            trial_n: Replicate trials per stimulus level
            target_effect: Effect name(s) to track, or ``"all"``
            from_size: Smallest subject count tested
            to_size: Largest subject count tested
            by: Step between subject counts
            print_results: Whether to print results
            summary: Output detail level ("short" or "long")
            return_results: Return results dict
            progress_callback: As in ``find_power``
            cancel_check: Optional callable returning ``True`` to abort

        Returns:
            dict or None: With *return_results*, the sweep results.
        """
        range_result = _validate_sample_size_range(from_size, to_size, by)
        for warning in range_result.warnings:
            print(f"Warning: {warning}")
        range_result.raise_if_invalid()
        _validate_design(from_size, trial_n).raise_if_invalid()
        target_effects = self._parse_target_effects(target_effect)

        sample_sizes = list(range(from_size, to_size + 1, by))
        reporter = self._make_reporter(progress_callback, print_results, len(sample_sizes))

        engine = self._engine()
        processor = ResultsProcessor(target_power=self.power)
        results = []
        with reporter or nullcontext():
            for subj_n in sample_sizes:
                power_result = engine.run(subj_n, trial_n, self.excluded_proportion, progress=reporter, cancel_check=cancel_check)
                results.append((subj_n, processor.calculate_powers(power_result, self.alpha)))

        output = build_sample_size_result(
            fixed_effects=dict(self.fixed_effects),
            sample_sizes=sample_sizes,
            trial_n=trial_n,
            excluded_proportion=self.excluded_proportion,
            alpha=self.alpha,
            n_replications=self.n_replications,
            target_power=self.power,
            target_effects=target_effects,
            analysis_results=processor.process_sample_size_results(results, target_effects),
        )

        if print_results:
            print(f"\n{'=' * 80}")
            print("PSE SAMPLE SIZE ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            print(_format_results("sample_size", output, summary))

        return output if return_results else None

    def _parse_target_effects(self, target_effect: Union[str, List[str]]) -> List[str]:
        if target_effect == "all":
            return list(EFFECT_NAMES)
        effects = [target_effect] if isinstance(target_effect, str) else list(target_effect)
        unknown = [e for e in effects if e not in EFFECT_NAMES]
        if unknown:
            raise ValueError(f"Unknown effect(s): {', '.join(unknown)}. Available: {', '.join(EFFECT_NAMES)}")
        return effects

    def _make_reporter(self, progress_callback, print_results: bool, n_sample_sizes: int):
        from .progress import PrintReporter, ProgressReporter, compute_total_replications

        if progress_callback is None:
            effective_cb = PrintReporter() if print_results else None
        elif progress_callback is False:
            effective_cb = None
        else:
            effective_cb = progress_callback

        if effective_cb is None:
            return None
        return ProgressReporter(compute_total_replications(self.n_replications, n_sample_sizes), effective_cb)

    def __repr__(self):
        return f"PSEPower(replications={self.n_replications}, excluded_proportion={self.excluded_proportion}, seed={self.seed})"
