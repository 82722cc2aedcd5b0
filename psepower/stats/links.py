"""Logistic link functions."""

import numpy as np
from scipy.special import expit

from ..errors import NumericDomainError


def logistic(y):
    """Inverse logit ``1 / (1 + exp(-y))``; scalars in, scalars out."""
    return expit(y)


def logit(p):
    """Log-odds ``log(p / (1 - p))``.

    Raises:
        NumericDomainError: If any value lies outside the open interval (0, 1).
    """
    arr = np.asarray(p, dtype=float)
    if np.any(~np.isfinite(arr)) or np.any(arr <= 0.0) or np.any(arr >= 1.0):
        raise NumericDomainError(f"logit is only defined on (0, 1), got {p!r}")
    out = np.log(arr) - np.log1p(-arr)
    return float(out) if out.ndim == 0 else out
