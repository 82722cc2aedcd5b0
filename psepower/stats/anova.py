"""
Repeated-measures ANOVA on PSEs and effect-size conversion.

The PSEs of one replication form a subjects x color x contrast table. A
two-way within-subject ANOVA (no sphericity correction; both factors have
two levels) partitions it into:

- ``intercept``: grand mean tested against between-subject variance,
- ``color``, ``contrast``: main effects tested against their
  subject-by-factor interactions,
- ``color:contrast``: interaction tested against the three-way residual.

Partial eta squared ``pes = SS / (SS + SS_error)`` is converted into
Cohen's f ``sqrt(pes / (1 - pes))``.
"""

import warnings
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from ..errors import DegenerateFitError, IncompleteDesignWarning
from .data_generation import COLOR_LEVELS, CONTRAST_LEVELS

EFFECT_NAMES: Tuple[str, ...] = ("intercept", "color", "contrast", "color:contrast")


@dataclass
class EffectSizeRecord:
    """ANOVA statistics and effect size for one effect.

    Attributes:
        effect: Effect name (see ``EFFECT_NAMES``).
        statistic: F statistic.
        df_effect: Numerator degrees of freedom.
        df_error: Denominator degrees of freedom.
        p_value: Upper-tail F probability.
        pes: Partial eta squared.
        cohens_f: ``sqrt(pes / (1 - pes))``.
    """

    effect: str
    statistic: float
    df_effect: int
    df_error: int
    p_value: float
    pes: float
    cohens_f: float


@dataclass
class AnovaResult:
    """Effect records plus the listwise-exclusion count."""

    effects: Dict[str, EffectSizeRecord]
    n_subjects: int
    n_subjects_excluded: int


def cohens_f(pes: float) -> float:
    """Convert partial eta squared into Cohen's f.

    Returns ``inf`` for ``pes == 1`` and NaN for NaN input.

    Raises:
        ValueError: If *pes* is outside [0, 1].
    """
    if np.isnan(pes):
        return float("nan")
    if pes < 0.0 or pes > 1.0:
        raise ValueError(f"partial eta squared must be within [0, 1], got {pes}")
    if pes == 1.0:
        return float("inf")
    return float(np.sqrt(pes / (1.0 - pes)))


def _complete_cell_table(valid: pd.DataFrame, subjects) -> Tuple[np.ndarray, int]:
    """Pivot valid PSEs to a (subjects, color, contrast) array.

    Subjects in *subjects* missing any of the four cells are dropped.

    Returns:
        ``(table, n_excluded)``.
    """
    cells = pd.MultiIndex.from_product([COLOR_LEVELS, CONTRAST_LEVELS], names=["color", "contrast"])
    if valid.empty:
        wide = pd.DataFrame(np.nan, index=pd.Index(subjects, name="subjectID"), columns=cells)
    else:
        wide = valid.pivot_table(index="subjectID", columns=["color", "contrast"], values="pse", aggfunc="mean")
        wide = wide.reindex(index=pd.Index(subjects, name="subjectID"), columns=cells)
    complete = wide.dropna(axis=0, how="any")
    n_excluded = len(wide) - len(complete)
    table = complete.to_numpy(dtype=float).reshape(len(complete), len(COLOR_LEVELS), len(CONTRAST_LEVELS))
    return table, n_excluded


def _f_record(effect: str, ss: float, df: int, ss_error: float, df_error: int) -> EffectSizeRecord:
    from scipy.stats import f as f_dist

    with np.errstate(divide="ignore", invalid="ignore"):
        statistic = (ss / df) / (ss_error / df_error)
        pes = ss / (ss + ss_error)
    statistic = float(statistic)
    pes = float(pes)
    p_value = float(f_dist.sf(statistic, df, df_error)) if np.isfinite(statistic) else (0.0 if statistic == np.inf else float("nan"))
    return EffectSizeRecord(effect, statistic, df, df_error, p_value, pes, cohens_f(pes))


def rm_anova(table: np.ndarray) -> Dict[str, EffectSizeRecord]:
    """Two-way within-subject ANOVA on a (subjects, a, b) array.

    Raises:
        DegenerateFitError: With fewer than two subjects.
    """
    n, a, b = table.shape
    if n < 2:
        raise DegenerateFitError(f"need at least two complete subjects for the ANOVA, got {n}")

    grand = table.mean()
    m_s = table.mean(axis=(1, 2))
    m_a = table.mean(axis=(0, 2))
    m_b = table.mean(axis=(0, 1))
    m_sa = table.mean(axis=2)
    m_sb = table.mean(axis=1)
    m_ab = table.mean(axis=0)

    ss_intercept = n * a * b * grand**2
    ss_subjects = a * b * np.sum((m_s - grand) ** 2)
    ss_a = n * b * np.sum((m_a - grand) ** 2)
    ss_b = n * a * np.sum((m_b - grand) ** 2)
    ss_ab = n * np.sum((m_ab - m_a[:, None] - m_b[None, :] + grand) ** 2)
    ss_as = b * np.sum((m_sa - m_s[:, None] - m_a[None, :] + grand) ** 2)
    ss_bs = a * np.sum((m_sb - m_s[:, None] - m_b[None, :] + grand) ** 2)
    resid = (
        table
        - m_sa[:, :, None]
        - m_sb[:, None, :]
        - m_ab[None, :, :]
        + m_s[:, None, None]
        + m_a[None, :, None]
        + m_b[None, None, :]
        - grand
    )
    ss_abs = np.sum(resid**2)

    df_s = n - 1
    return {
        "intercept": _f_record("intercept", ss_intercept, 1, ss_subjects, df_s),
        "color": _f_record("color", ss_a, a - 1, ss_as, (a - 1) * df_s),
        "contrast": _f_record("contrast", ss_b, b - 1, ss_bs, (b - 1) * df_s),
        "color:contrast": _f_record("color:contrast", ss_ab, (a - 1) * (b - 1), ss_abs, (a - 1) * (b - 1) * df_s),
    }


def analyze_effect_sizes(estimates, warn: bool = True) -> AnovaResult:
    """Run the repeated-measures ANOVA on one replication's PSEs.

    Args:
        estimates: ``PSEEstimates`` or a DataFrame with ``subjectID, color,
            contrast, pse`` (and optionally ``valid``) columns.
        warn: Emit ``IncompleteDesignWarning`` when subjects are excluded.

    Returns:
        ``AnovaResult`` with one ``EffectSizeRecord`` per effect.

    Raises:
        DegenerateFitError: If fewer than two subjects have all four cells.
    """
    frame = estimates.to_frame() if hasattr(estimates, "to_frame") else pd.DataFrame(estimates)
    subjects = np.sort(frame["subjectID"].unique())
    if "valid" in frame.columns:
        frame = frame[frame["valid"].astype(bool)]
    frame = frame[np.isfinite(frame["pse"].to_numpy(dtype=float))]

    table, n_excluded = _complete_cell_table(frame, subjects)
    if n_excluded and warn:
        warnings.warn(
            f"{n_excluded} subject(s) excluded from the ANOVA because at least one color x contrast cell had no valid PSE",
            IncompleteDesignWarning,
            stacklevel=2,
        )

    return AnovaResult(effects=rm_anova(table), n_subjects=table.shape[0], n_subjects_excluded=n_excluded)
