"""
Validation of run settings and design parameters.

Validators never raise on their own: each returns a ``_ValidationResult``
holding error and warning messages. Callers print the warnings and call
``raise_if_invalid``, which turns errors into a ``ConfigurationError``
before any replication runs.
"""

import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np

from ..errors import ConfigurationError

__all__ = []


@dataclass
class _ValidationResult:
    """Errors and warnings collected by a validator."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self):
        if self.errors:
            raise ConfigurationError("Invalid settings: " + "; ".join(self.errors))


def _number_error(
    value: Any,
    name: str,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    integer: bool = False,
) -> Optional[str]:
    """Message describing why *value* is not an acceptable number, or ``None``.

    Bounds are inclusive. NumPy scalars count as their Python kinds, so
    counts taken from arrays pass. Booleans are rejected even though they
    are ints.
    """
    kinds = (int, np.integer) if integer else (int, float, np.integer, np.floating)
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, kinds):
        return f"{name} must be {'an integer' if integer else 'a number'}, got {type(value).__name__}"
    if isinstance(value, (float, np.floating)) and math.isnan(value):
        return f"{name} must be a number, got NaN"
    if lower is not None and value < lower:
        return f"{name} must be >= {lower}, got {value}"
    if upper is not None and value > upper:
        return f"{name} must be <= {upper}, got {value}"
    return None


def _single(error: Optional[str]) -> _ValidationResult:
    return _ValidationResult(errors=[error] if error else [])


def _validate_power(power: Any) -> _ValidationResult:
    """Target power in percent, 0 to 100."""
    return _single(_number_error(power, "Power", 0, 100))


def _validate_alpha(alpha: Any) -> _ValidationResult:
    """Significance level, 0 to 0.25."""
    return _single(_number_error(alpha, "Alpha", 0, 0.25))


def _validate_proportion(proportion: Any, name: str = "excluded_proportion") -> _ValidationResult:
    return _single(_number_error(proportion, name, 0, 1))


def _validate_replications(replications: Any) -> Tuple[int, _ValidationResult]:
    """Replication count; returns ``(count, result)`` with count 0 when invalid."""
    result = _single(_number_error(replications, "Number of replications", 1, integer=True))
    if not result.is_valid:
        return 0, result
    if replications < 100:
        result.warnings.append(
            f"Low replication count ({replications}). Consider using at least 100 for stable effect-size distributions."
        )
    return int(replications), result


def _validate_design(subj_n: Any, trial_n: Any) -> _ValidationResult:
    """Subjects per experiment and replicate trials per stimulus level."""
    result = _ValidationResult()
    for value, name in ((subj_n, "subj_n"), (trial_n, "trial_n")):
        error = _number_error(value, name, 1, integer=True)
        if error:
            result.errors.append(error)
    if result.is_valid and subj_n < 2:
        result.warnings.append("subj_n < 2 leaves no error degrees of freedom; every replication will fail")
    return result


def _validate_sample_size_range(from_size: Any, to_size: Any, by: Any) -> _ValidationResult:
    """Subject-count sweep ``range(from_size, to_size + 1, by)``."""
    result = _ValidationResult()
    for value, name in ((from_size, "from_size"), (to_size, "to_size"), (by, "by")):
        error = _number_error(value, name, 1, integer=True)
        if error:
            result.errors.append(error)
    if not result.is_valid:
        return result

    if from_size >= to_size:
        result.errors.append(f"from_size ({from_size}) must be less than to_size ({to_size})")
    if from_size < 2:
        result.errors.append(f"from_size must be at least 2 subjects, got {from_size}")

    n_sizes = len(range(from_size, to_size + 1, by))
    if n_sizes > 50:
        result.warnings.append(f"Large number of subject counts to test ({n_sizes}). This may take significant time.")
    return result


def _validate_parallel_settings(enable: Any, n_cores: Optional[int]) -> Tuple[Tuple[bool, int], _ValidationResult]:
    """Parallel switch and worker count; ``n_cores`` defaults to half the CPUs."""
    import multiprocessing as mp

    result = _ValidationResult()
    if not isinstance(enable, bool):
        result.errors.append(f"enable must be True or False, got {enable!r}")

    max_cores = mp.cpu_count() or 1
    if n_cores is None:
        n_cores = max(1, max_cores // 2)
    else:
        error = _number_error(n_cores, "n_cores", 1, integer=True)
        if error:
            result.errors.append(error)
            n_cores = 1
        elif n_cores > max_cores:
            result.warnings.append(f"n_cores ({n_cores}) exceeds available CPUs ({max_cores}); using {max_cores}")
            n_cores = max_cores

    return (bool(enable), int(n_cores)), result
