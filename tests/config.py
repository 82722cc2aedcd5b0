"""
Shared test configuration constants.

All test files should import from this module to ensure consistency
across the test suite.
"""

# Replication counts
N_REPS_CHECK = 5
"""Smoke tests: verify no crash, structure, API contract."""

N_REPS_ORDERING = 20
"""Ordering tests: A < B checks between scenarios."""

SEED = 2137
"""Default random seed for reproducibility."""

# Statistical test parameters
DEFAULT_ALPHA = 0.05
"""Default significance level for hypothesis tests."""

MC_Z = 3.5
"""Z-score for Monte Carlo margins of error; keeps the suite's false alarm rate low."""

# Small designs keep the suite fast
SUBJ_N_SMALL = 10
TRIAL_N_SMALL = 4

# Pilot-like coefficients (logit scale, size in units of 10 size_delta)
PILOT_FIXEF = {
    "intercept": 0.2,
    "color_e": 0.1,
    "contrast_e": -0.1,
    "size": 0.8,
    "color_x_contrast": 0.3,
    "color_x_size": 0.05,
    "contrast_x_size": 0.0,
    "color_x_contrast_x_size": 0.0,
    "subject_sd": 0.5,
}
"""Complete fixed-effect set resembling a pilot fit."""
