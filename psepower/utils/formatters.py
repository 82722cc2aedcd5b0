"""
Text formatting of PSEPower results.

Renders the dictionaries built by ``build_power_result`` and
``build_sample_size_result`` as plain-text tables for console output.
"""

from typing import Any, Dict, List, Optional

import numpy as np

__all__ = []


class _TableFormatter:
    """Fixed-width plain-text tables."""

    def _format_value(self, value: Any, spec: Optional[str] = None) -> str:
        if isinstance(value, float):
            if spec is not None:
                return format(value, spec)
            if np.isnan(value):
                return "nan"
            if value != 0 and abs(value) < 0.001:
                return f"{value:.6f}"
            return f"{value:.4f}"
        return str(value)

    def _create_table(self, headers: List[str], rows: List[List[str]], col_widths: Optional[List[int]] = None) -> str:
        if col_widths is None:
            col_widths = [max(len(str(h)), *(len(str(r[i])) for r in rows)) if rows else len(str(h)) for i, h in enumerate(headers)]
        lines = [" ".join(str(h).ljust(w) for h, w in zip(headers, col_widths))]
        lines.append(" ".join("-" * w for w in col_widths))
        for row in rows:
            lines.append(" ".join(str(c).ljust(w) for c, w in zip(row, col_widths)))
        return "\n".join(lines)


class _ResultFormatter(_TableFormatter):
    """Short and long reports for power runs and subject-count sweeps."""

    def _format_short_power(self, data: Dict) -> str:
        model = data["model"]
        results = data["results"]
        powers = results["individual_powers"]
        mean_f = results.get("mean_cohens_f", {})
        target = model.get("target_power", 80.0)

        rows = []
        for effect, power in powers.items():
            achieved = "✓" if power >= target else "✗"
            rows.append([effect, f"{power:.1f}", self._format_value(float(mean_f.get(effect, np.nan)), ".3f"), achieved])

        n_achieved = sum(1 for p in powers.values() if p >= target)
        lines = [
            f"Power Analysis Results (subjects N={model['subj_n']}, trials per level={model['trial_n']}, "
            f"excluded={model['excluded_proportion']:.1%}):",
            self._create_table(["Effect", "Power", "Mean f", "Target"], rows),
            f"Result: {n_achieved}/{len(powers)} tests achieved target power ({target:.0f}%)",
        ]
        return "\n".join(lines)

    def _format_long_power(self, data: Dict) -> str:
        results = data["results"]
        diag = results.get("diagnostics", {})
        lines = [self._format_short_power(data), "", "Cohen's f Distribution:"]

        rows = []
        for effect, values in results.get("cohens_f", {}).items():
            arr = np.asarray(values, dtype=float)
            arr = arr[np.isfinite(arr)]
            if len(arr):
                q025, q50, q975 = np.percentile(arr, [2.5, 50, 97.5])
                rows.append([effect, len(arr), f"{np.mean(arr):.3f}", f"{q025:.3f}", f"{q50:.3f}", f"{q975:.3f}"])
            else:
                rows.append([effect, 0, "nan", "nan", "nan", "nan"])
        lines.append(self._create_table(["Effect", "N", "Mean", "2.5%", "Median", "97.5%"], rows))

        if diag:
            lines += [
                "",
                "Diagnostics:",
                f"  Replications used: {diag.get('n_replications_used', 0)}/{diag.get('n_replications', 0)}",
                f"  Degenerate PSE fits: {diag.get('n_pse_invalid', 0)} "
                f"(in {diag.get('n_replications_with_invalid_pse', 0)} replications)",
                f"  Non-converged PSE fits kept: {diag.get('n_pse_nonconverged', 0)}",
                f"  Subjects excluded listwise: {diag.get('n_subjects_excluded', 0)} "
                f"(in {diag.get('n_replications_with_exclusions', 0)} replications)",
            ]
        return "\n".join(lines)

    def _format_short_sample_size(self, data: Dict) -> str:
        model = data["model"]
        results = data["results"]
        to_size = model["sample_size_range"]["to_size"]

        rows = []
        for effect, n in results["first_achieved"].items():
            rows.append([effect, str(n) if n > 0 else f">{to_size}"])
        return "\n".join(["Sample Size Requirements (subjects):", self._create_table(["Effect", "Required N"], rows)])

    def _format_long_sample_size(self, data: Dict) -> str:
        results = data["results"]
        sizes = results["sample_sizes_tested"]
        lines = [self._format_short_sample_size(data), "", "Power by Subject Count:"]
        headers = ["N"] + list(results["powers_by_test"])
        rows = [[str(n)] + [f"{results['powers_by_test'][e][i]:.1f}" for e in results["powers_by_test"]] for i, n in enumerate(sizes)]
        lines.append(self._create_table(headers, rows))
        return "\n".join(lines)


def _format_results(analysis_type: str, data: Dict, summary: str = "short") -> str:
    """Render a result dictionary (``"power"`` or ``"sample_size"``)."""
    formatter = _ResultFormatter()
    if analysis_type == "power":
        return formatter._format_long_power(data) if summary == "long" else formatter._format_short_power(data)
    if analysis_type == "sample_size":
        return formatter._format_long_sample_size(data) if summary == "long" else formatter._format_short_sample_size(data)
    raise ValueError(f"Unknown analysis type: {analysis_type}")
