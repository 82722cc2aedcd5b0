"""PSEPower - simulation-based power analysis for PSE experiments.

Simulates psychophysical same/different judgments from a pilot model's
fixed effects, re-estimates the point of subjective equality (PSE) per
subject and condition, and collects the distribution of repeated-measures
ANOVA effect sizes (Cohen's f) across replications.

Example:
    >>> from psepower import PSEPower
    >>>
    >>> model = PSEPower(pilot_coefficients)
    >>> model.set_excluded_proportion(0.04)
    >>> model.find_power(subj_n=20, trial_n=24)
    >>>
    >>> model.find_sample_size(trial_n=24, from_size=10, to_size=40, by=5)
"""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _get_version

from .core import FixedEffectSet, PowerEngine, PowerResult, run_power_simulation
from .errors import ConfigurationError, DegenerateFitError, IncompleteDesignWarning, NumericDomainError
from .model import PSEPower
from .progress import PrintReporter, ProgressReporter, SimulationCancelled, TqdmReporter

try:
    __version__ = _get_version("PSEPower")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "PSEPower",
    "PowerEngine",
    "PowerResult",
    "FixedEffectSet",
    "run_power_simulation",
    "ConfigurationError",
    "DegenerateFitError",
    "IncompleteDesignWarning",
    "NumericDomainError",
    "SimulationCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
