"""
Per-cell logistic regression and PSE estimation.

Each (subject, color, contrast) cell of a simulated dataset is fitted with a
single-predictor logistic regression of ``response`` on raw ``size_delta``.
The point of subjective equality is where the fitted probability crosses
0.5, i.e. ``pse = -beta0 / beta1``.

The fitter is a small IRLS (Newton-Raphson) solver using the usual GLM
settings: start at ``mu = (y + 0.5) / 2``, stop when the relative deviance
change drops below ``1e-8``, run at most 25 iterations. A fit that reaches
the iteration limit with finite coefficients is returned with
``converged=False``; this is the usual outcome for completely separated
cells, whose slope keeps growing while ``-beta0 / beta1`` settles at the
crossing point. Cells that cannot be fitted at all raise
``DegenerateFitError``; ``estimate_pses`` records them as invalid estimates
instead of aborting the replication.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..errors import DegenerateFitError
from .links import logistic, logit

GROUP_KEYS = ["subjectID", "color", "contrast"]

IRLS_TOLERANCE = 1e-8
IRLS_MAX_ITER = 25
MU_EPSILON = 1e-10
SLOPE_NEAR_ZERO = 1e-10


@dataclass
class LogisticFit:
    """Result of a single-predictor logistic fit."""

    intercept: float
    slope: float
    deviance: float
    n_iter: int
    converged: bool


@dataclass
class PSEEstimate:
    """PSE of one (subject, color, contrast) cell.

    Attributes:
        subjectID: Subject identifier.
        color: Color level of the cell.
        contrast: Contrast level of the cell.
        pse: ``-beta0 / beta1`` in ``size_delta`` units (NaN when invalid).
        valid: Whether the fit produced a usable PSE.
        reason: Why the estimate is invalid (``None`` when valid).
        n_trials: Non-missing trials used in the fit.
        converged: Whether IRLS met its deviance criterion. A valid PSE may
            come from a non-converged fit of separated responses.
    """

    subjectID: int
    color: bool
    contrast: str
    pse: float
    valid: bool = True
    reason: Optional[str] = None
    n_trials: int = 0
    converged: bool = True


@dataclass
class PSEEstimates:
    """All cell estimates of one replication."""

    estimates: List[PSEEstimate] = field(default_factory=list)

    @property
    def n_invalid(self) -> int:
        return sum(1 for e in self.estimates if not e.valid)

    @property
    def n_nonconverged(self) -> int:
        return sum(1 for e in self.estimates if e.valid and not e.converged)

    @property
    def invalid_reasons(self) -> Dict[str, int]:
        reasons: Dict[str, int] = {}
        for e in self.estimates:
            if not e.valid:
                reasons[e.reason] = reasons.get(e.reason, 0) + 1
        return reasons

    def to_frame(self, valid_only: bool = False) -> pd.DataFrame:
        rows = [
            {
                "subjectID": e.subjectID,
                "color": e.color,
                "contrast": e.contrast,
                "pse": e.pse,
                "valid": e.valid,
                "reason": e.reason,
                "n_trials": e.n_trials,
            }
            for e in self.estimates
            if e.valid or not valid_only
        ]
        columns = ["subjectID", "color", "contrast", "pse", "valid", "reason", "n_trials"]
        return pd.DataFrame(rows, columns=columns)


def _binomial_deviance(y: np.ndarray, mu: np.ndarray) -> float:
    """Deviance of 0/1 outcomes under fitted probabilities *mu*."""
    mu = np.clip(mu, MU_EPSILON, 1.0 - MU_EPSILON)
    return float(-2.0 * np.sum(y * np.log(mu) + (1.0 - y) * np.log1p(-mu)))


def fit_logistic(x: np.ndarray, y: np.ndarray) -> LogisticFit:
    """Fit ``logit(P(y = 1)) = b0 + b1 * x`` by iteratively reweighted least squares.

    Args:
        x: Predictor values.
        y: Outcomes coded 0/1, no missing values.

    Returns:
        ``LogisticFit`` with the last iterate. ``converged`` is False when
        the deviance criterion was not met within ``IRLS_MAX_ITER``
        iterations, as happens for completely separated data.

    Raises:
        DegenerateFitError: If *y* has fewer than two distinct values, the
            weighted normal equations are singular, or the coefficients are
            not finite.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(np.unique(y)) < 2:
        raise DegenerateFitError("fewer than two distinct responses")

    X = np.column_stack((np.ones(len(x)), x))
    mu = (y + 0.5) / 2.0
    eta = logit(mu)
    dev_old = _binomial_deviance(y, mu)
    beta = np.zeros(2)

    for iteration in range(1, IRLS_MAX_ITER + 1):
        w = mu * (1.0 - mu)
        z = eta + (y - mu) / w
        XtW = X.T * w
        try:
            beta = np.linalg.solve(XtW @ X, XtW @ z)
        except np.linalg.LinAlgError:
            raise DegenerateFitError("singular information matrix") from None
        if not np.all(np.isfinite(beta)):
            raise DegenerateFitError("non-finite coefficients")

        eta = X @ beta
        mu = np.clip(logistic(eta), MU_EPSILON, 1.0 - MU_EPSILON)
        dev = _binomial_deviance(y, mu)
        if abs(dev - dev_old) / (abs(dev) + 0.1) < IRLS_TOLERANCE:
            return LogisticFit(float(beta[0]), float(beta[1]), dev, iteration, True)
        dev_old = dev

    return LogisticFit(float(beta[0]), float(beta[1]), dev, IRLS_MAX_ITER, False)


def compute_pse(fit: LogisticFit) -> float:
    """``-intercept / slope`` of a fitted psychometric function."""
    if not np.isfinite(fit.slope) or abs(fit.slope) <= SLOPE_NEAR_ZERO:
        raise DegenerateFitError("slope is zero, PSE undefined")
    pse = -fit.intercept / fit.slope
    if not np.isfinite(pse):
        raise DegenerateFitError("PSE is not finite")
    return float(pse)


def estimate_pses(trials: pd.DataFrame) -> PSEEstimates:
    """Estimate one PSE per (subject, color, contrast) cell.

    Missing responses are dropped before fitting. Cells whose fit is
    degenerate are kept as invalid estimates with the failure reason, so the
    caller can count and exclude them.
    """
    result = PSEEstimates()
    for (subject, color, contrast), cell in trials.groupby(GROUP_KEYS, sort=True):
        observed = cell[cell["response"].notna()]
        n_trials = len(observed)
        try:
            fit = fit_logistic(observed["size_delta"].to_numpy(), observed["response"].to_numpy())
            pse = compute_pse(fit)
        except DegenerateFitError as exc:
            result.estimates.append(PSEEstimate(int(subject), bool(color), str(contrast), np.nan, False, str(exc), n_trials))
            continue
        result.estimates.append(PSEEstimate(int(subject), bool(color), str(contrast), pse, True, None, n_trials, fit.converged))
    return result
