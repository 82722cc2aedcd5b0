"""
Results processing for PSEPower.

``PowerResult`` accumulates the per-effect Cohen's f distribution of a
power run and exposes it as a read-only mapping. ``ResultsProcessor``
turns runs into power estimates and sample-size sweeps, and the
``build_*`` helpers assemble the result dictionaries returned by
``PSEPower``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..stats.anova import EFFECT_NAMES, EffectSizeRecord

OUTPUT_COLUMNS = ["replication", "effect", "statistic", "df_effect", "df_error", "p_value", "pes", "cohens_f"]


@dataclass
class ReplicationResult:
    """Outcome of one replication.

    Attributes:
        replication: Replication index (0-based).
        effects: Effect records keyed by effect name (empty if failed).
        n_pse_invalid: Cells whose PSE fit was degenerate.
        n_pse_nonconverged: Valid cells whose fit hit the iteration limit.
        n_subjects_excluded: Subjects dropped listwise from the ANOVA.
        invalid_reasons: Count of invalid PSE cells per reason.
        pse_sd: Standard deviation of the valid PSEs.
        failure_reason: Why the replication produced no effect sizes.
    """

    replication: int
    effects: Dict[str, EffectSizeRecord] = field(default_factory=dict)
    n_pse_invalid: int = 0
    n_pse_nonconverged: int = 0
    n_subjects_excluded: int = 0
    invalid_reasons: Dict[str, int] = field(default_factory=dict)
    pse_sd: float = float("nan")
    failure_reason: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure_reason is not None


class PowerResult(Mapping):
    """Per-effect Cohen's f values collected over a power run.

    Behaves as ``Mapping[effect_name, List[cohens_f]]`` over the successful
    replications; failed replications are kept for diagnostics only.
    """

    def __init__(self, replications: List[ReplicationResult], settings: Optional[Dict[str, Any]] = None):
        self.replications = sorted(replications, key=lambda r: r.replication)
        self.settings = dict(settings or {})
        self._cohens_f: Dict[str, List[float]] = {name: [] for name in EFFECT_NAMES}
        for rep in self.successful:
            for name, record in rep.effects.items():
                self._cohens_f.setdefault(name, []).append(record.cohens_f)

    @property
    def successful(self) -> List[ReplicationResult]:
        return [r for r in self.replications if not r.failed]

    @property
    def failed(self) -> List[ReplicationResult]:
        return [r for r in self.replications if r.failed]

    @property
    def n_replications_used(self) -> int:
        return len(self.successful)

    @property
    def n_replications_failed(self) -> int:
        return len(self.failed)

    @property
    def diagnostics(self) -> Dict[str, Any]:
        """Counts of degraded cells, exclusions and failures across the run."""
        failure_reasons: Dict[str, int] = {}
        invalid_reasons: Dict[str, int] = {}
        for rep in self.replications:
            if rep.failed:
                failure_reasons[rep.failure_reason] = failure_reasons.get(rep.failure_reason, 0) + 1
            for reason, count in rep.invalid_reasons.items():
                invalid_reasons[reason] = invalid_reasons.get(reason, 0) + count
        return {
            "n_replications": len(self.replications),
            "n_replications_used": self.n_replications_used,
            "n_replications_failed": self.n_replications_failed,
            "n_pse_invalid": sum(r.n_pse_invalid for r in self.replications),
            "n_replications_with_invalid_pse": sum(1 for r in self.replications if r.n_pse_invalid),
            "n_pse_nonconverged": sum(r.n_pse_nonconverged for r in self.replications),
            "n_subjects_excluded": sum(r.n_subjects_excluded for r in self.replications),
            "n_replications_with_exclusions": sum(1 for r in self.replications if r.n_subjects_excluded),
            "invalid_reasons": invalid_reasons,
            "failure_reasons": failure_reasons,
        }

    def to_frame(self) -> pd.DataFrame:
        """Output table: one row per (replication, effect)."""
        rows = [
            {
                "replication": rep.replication,
                "effect": rec.effect,
                "statistic": rec.statistic,
                "df_effect": rec.df_effect,
                "df_error": rec.df_error,
                "p_value": rec.p_value,
                "pes": rec.pes,
                "cohens_f": rec.cohens_f,
            }
            for rep in self.successful
            for rec in rep.effects.values()
        ]
        return pd.DataFrame(rows, columns=OUTPUT_COLUMNS)

    def p_values(self, effect: str) -> np.ndarray:
        return np.array([r.effects[effect].p_value for r in self.successful], dtype=float)

    def power(self, alpha: float = 0.05) -> Dict[str, float]:
        """Percentage of successful replications with ``p < alpha`` per effect."""
        powers = {}
        for name in self._cohens_f:
            p = self.p_values(name)
            powers[name] = float(np.mean(p < alpha) * 100) if len(p) else float("nan")
        return powers

    def summary(self) -> pd.DataFrame:
        """Mean, SD and percentiles of Cohen's f per effect."""
        rows = []
        for name, values in self._cohens_f.items():
            arr = np.asarray(values, dtype=float)
            arr = arr[np.isfinite(arr)]
            if len(arr):
                q025, q50, q975 = np.percentile(arr, [2.5, 50, 97.5])
                sd = float(np.std(arr, ddof=1)) if len(arr) > 1 else float("nan")
                rows.append({"effect": name, "n": len(arr), "mean": float(np.mean(arr)), "sd": sd, "q025": q025, "median": q50, "q975": q975})
            else:
                nan = float("nan")
                rows.append({"effect": name, "n": 0, "mean": nan, "sd": nan, "q025": nan, "median": nan, "q975": nan})
        return pd.DataFrame(rows, columns=["effect", "n", "mean", "sd", "q025", "median", "q975"])

    def __getitem__(self, key: str) -> List[float]:
        return list(self._cohens_f[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._cohens_f)

    def __len__(self) -> int:
        return len(self._cohens_f)

    def __repr__(self):
        return f"PowerResult(effects={list(self._cohens_f)}, replications={self.n_replications_used}/{len(self.replications)})"


class ResultsProcessor:
    """Converts power runs into power estimates and sample-size sweeps."""

    def __init__(self, target_power: float = 80.0):
        """Initialise the results processor.

        Args:
            target_power: Target power as a percentage (0–100).
        """
        self.target_power = target_power

    def calculate_powers(self, power_result: PowerResult, alpha: float) -> Dict[str, Any]:
        """Power, effect-size summary and diagnostics of one run."""
        summary = power_result.summary().set_index("effect")
        return {
            "individual_powers": power_result.power(alpha),
            "mean_cohens_f": summary["mean"].to_dict(),
            "cohens_f": {name: list(values) for name, values in power_result.items()},
            "n_replications_used": power_result.n_replications_used,
            "diagnostics": power_result.diagnostics,
        }

    def process_sample_size_results(
        self,
        results: List[Tuple[int, Dict]],
        target_effects: List[str],
    ) -> Dict[str, Any]:
        """
        Process power results from a subject-count sweep.

        Args:
            results: List of (subj_n, calculate_powers output) tuples
            target_effects: Effects to track

        Returns:
            Dictionary with the sweep results
        """
        powers_by_effect: Dict[str, List[float]] = {effect: [] for effect in target_effects}
        first_achieved = dict.fromkeys(target_effects, -1)

        for subj_n, power_result in results:
            for effect in target_effects:
                power = power_result["individual_powers"][effect]
                powers_by_effect[effect].append(power)
                if power >= self.target_power and first_achieved[effect] == -1:
                    first_achieved[effect] = subj_n

        return {
            "sample_sizes_tested": [r[0] for r in results],
            "powers_by_test": powers_by_effect,
            "first_achieved": first_achieved,
        }


def build_power_result(
    fixed_effects: Dict[str, float],
    subj_n: int,
    trial_n: int,
    excluded_proportion: float,
    alpha: float,
    target_power: float,
    n_replications: int,
    seed: Optional[int],
    parallel: bool,
    power_results: Dict,
) -> Dict[str, Any]:
    """Assemble the dictionary returned by ``PSEPower.find_power``."""
    return {
        "model": {
            "fixed_effects": dict(fixed_effects),
            "subj_n": subj_n,
            "trial_n": trial_n,
            "excluded_proportion": excluded_proportion,
            "alpha": alpha,
            "target_power": target_power,
            "n_replications": power_results.get("n_replications_used", n_replications),
            "seed": seed,
            "parallel": parallel,
        },
        "results": power_results,
    }


def build_sample_size_result(
    fixed_effects: Dict[str, float],
    sample_sizes: List[int],
    trial_n: int,
    excluded_proportion: float,
    alpha: float,
    n_replications: int,
    target_power: float,
    target_effects: List[str],
    analysis_results: Dict,
) -> Dict[str, Any]:
    """Assemble the dictionary returned by ``PSEPower.find_sample_size``."""
    return {
        "model": {
            "fixed_effects": dict(fixed_effects),
            "trial_n": trial_n,
            "excluded_proportion": excluded_proportion,
            "alpha": alpha,
            "n_replications": n_replications,
            "target_power": target_power,
            "target_tests": target_effects,
            "sample_size_range": {
                "from_size": sample_sizes[0],
                "to_size": sample_sizes[-1],
                "by": sample_sizes[1] - sample_sizes[0] if len(sample_sizes) > 1 else 1,
            },
        },
        "results": analysis_results,
    }
