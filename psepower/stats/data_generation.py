"""
Data generation for PSE power simulations.

Builds the factorial trial design, simulates binary responses through the
logistic link, and blanks responses at random to mimic trial exclusions.

All randomness flows through a ``numpy.random.Generator`` passed in by the
caller, so one generator per replication reproduces that replication
exactly.
"""

from typing import Tuple

import numpy as np
import pandas as pd

from ..core.fixed_effects import TERMS, FixedEffectSet
from ..errors import ConfigurationError
from ..utils.validators import _number_error
from .links import logistic

CONTRAST_LEVELS: Tuple[str, ...] = ("positive", "negative")
COLOR_LEVELS: Tuple[bool, ...] = (True, False)
SIZE_MAGNITUDES: Tuple[int, ...] = tuple(range(0, 90, 10))
SIZE_SIGNS: Tuple[int, ...] = (1, -1)
SIZE_SCALE = 10.0

# Sum-to-zero codes
CONTRAST_CODES = {"positive": 0.5, "negative": -0.5}
COLOR_CODES = {True: 0.5, False: -0.5}

TRIALS_PER_SUBJECT_REPLICATE = len(CONTRAST_LEVELS) * len(COLOR_LEVELS) * len(SIZE_MAGNITUDES) * len(SIZE_SIGNS)


def generate_design(subj_n: int, trial_n: int) -> pd.DataFrame:
    """Build the trial-level design skeleton.

    Crosses subjects x replicate trials x contrast x color x size magnitude
    x sign. Magnitude 0 is crossed with both signs, so every cell holds two
    identical ``size_delta == 0`` rows per replicate; they are kept as is.

    Args:
        subj_n: Number of subjects (positive integer).
        trial_n: Replicate trials per stimulus level (positive integer).

    Returns:
        DataFrame with columns ``subjectID, trial, contrast, color,
        size_delta, color_e, contrast_e, size, response`` where ``response``
        is all-NaN until ``simulate_responses`` fills it.
    """
    for value, name in ((subj_n, "subj_n"), (trial_n, "trial_n")):
        error = _number_error(value, name, 1, integer=True)
        if error:
            raise ConfigurationError(error)

    index = pd.MultiIndex.from_product(
        [
            np.arange(1, subj_n + 1),
            np.arange(1, trial_n + 1),
            CONTRAST_LEVELS,
            COLOR_LEVELS,
            SIZE_MAGNITUDES,
            SIZE_SIGNS,
        ],
        names=["subjectID", "trial", "contrast", "color", "magnitude", "sign"],
    )
    design = index.to_frame(index=False)

    size_delta = design["magnitude"].to_numpy(dtype=np.int64) * design["sign"].to_numpy(dtype=np.int64)
    trials = pd.DataFrame(
        {
            "subjectID": design["subjectID"].to_numpy(dtype=np.int64),
            "trial": design["trial"].to_numpy(dtype=np.int64),
            "contrast": design["contrast"].astype(str).to_numpy(),
            "color": design["color"].astype(bool).to_numpy(),
            "size_delta": size_delta,
        }
    )
    trials["color_e"] = trials["color"].map(COLOR_CODES).astype(float)
    trials["contrast_e"] = trials["contrast"].map(CONTRAST_CODES).astype(float)
    trials["size"] = trials["size_delta"] / SIZE_SCALE
    trials["response"] = np.nan
    return trials


def draw_random_intercepts(subj_n: int, subject_sd: float, rng: np.random.Generator) -> np.ndarray:
    """One N(0, subject_sd) intercept offset per subject."""
    return rng.normal(0.0, subject_sd, size=subj_n)


def linear_predictor(trials: pd.DataFrame, fixef: FixedEffectSet, sub_i=0.0) -> np.ndarray:
    """Linear predictor ``Y`` for every trial.

    ``Y = sub_i + sum(beta_term * term(trial))`` over the enumerated fixed
    terms. *sub_i* is a scalar or one value per row.
    """
    X = np.column_stack([term.column(trials) for term in TERMS])
    return X @ fixef.fixed_coefficients() + np.asarray(sub_i, dtype=float)


def simulate_responses(trials: pd.DataFrame, fixef: FixedEffectSet, rng: np.random.Generator) -> pd.DataFrame:
    """Draw random intercepts and a Bernoulli response for every trial.

    Args:
        trials: Output of ``generate_design``.
        fixef: Coefficients for the linear predictor and random-intercept SD.
        rng: Replication-specific random generator.

    Returns:
        A copy of *trials* with ``response`` set to 0.0 / 1.0.
    """
    subjects = np.sort(trials["subjectID"].unique())
    offsets = draw_random_intercepts(len(subjects), fixef.subject_sd, rng)
    subject_pos = np.searchsorted(subjects, trials["subjectID"].to_numpy())

    p = logistic(linear_predictor(trials, fixef, offsets[subject_pos]))
    simulated = trials.copy()
    simulated["response"] = rng.binomial(1, p).astype(float)
    return simulated


def degrade(trials: pd.DataFrame, proportion: float, rng: np.random.Generator) -> pd.DataFrame:
    """Mark a random subset of responses as missing.

    Selects ``round(proportion * n)`` rows uniformly without replacement,
    independent of the covariates, and sets their response to NaN.

    Raises:
        ConfigurationError: If *proportion* is outside [0, 1].
    """
    if not 0.0 <= proportion <= 1.0:
        raise ConfigurationError(f"excluded proportion must be within [0, 1], got {proportion}")

    degraded = trials.copy()
    n_missing = int(round(proportion * len(degraded)))
    if n_missing == 0:
        return degraded
    rows = rng.choice(len(degraded), size=n_missing, replace=False)
    response = degraded["response"].to_numpy(dtype=float, copy=True)
    response[rows] = np.nan
    degraded["response"] = response
    return degraded
