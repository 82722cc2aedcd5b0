"""
Fixed-effect terms and coefficient sets for PSEPower.

The linear predictor is described by an explicit, enumerated list of terms
instead of a runtime-parsed formula. Each term is the product of zero or
more trial covariates (``color_e``, ``contrast_e``, ``size``); the intercept
is the empty product. ``FixedEffectSet`` maps every term name, plus the
random-intercept standard deviation, to a coefficient.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, Tuple

import numpy as np

from ..errors import ConfigurationError


@dataclass(frozen=True)
class Term:
    """One column of the simulation design matrix.

    Attributes:
        name: Coefficient name used throughout the package.
        covariates: Trial columns multiplied together to form the column.
    """

    name: str
    covariates: Tuple[str, ...]

    def column(self, trials) -> np.ndarray:
        """Evaluate the term on a trial table."""
        values = np.ones(len(trials), dtype=float)
        for covariate in self.covariates:
            values = values * trials[covariate].to_numpy(dtype=float)
        return values


TERMS: Tuple[Term, ...] = (
    Term("intercept", ()),
    Term("color_e", ("color_e",)),
    Term("contrast_e", ("contrast_e",)),
    Term("size", ("size",)),
    Term("color_x_contrast", ("color_e", "contrast_e")),
    Term("color_x_size", ("color_e", "size")),
    Term("contrast_x_size", ("contrast_e", "size")),
    Term("color_x_contrast_x_size", ("color_e", "contrast_e", "size")),
)

RANDOM_INTERCEPT_SD = "subject_sd"

REQUIRED_TERMS: Tuple[str, ...] = tuple(t.name for t in TERMS) + (RANDOM_INTERCEPT_SD,)

# Pilot tables usually come from lme4-style fits; map their covariate names
# onto ours. Interaction components are matched regardless of order.
_PILOT_COVARIATES = {
    "color.e": "color_e",
    "color_e": "color_e",
    "contrast.e": "contrast_e",
    "contrast_e": "contrast_e",
    "size": "size",
}
_PILOT_ALIASES = {
    "(intercept)": "intercept",
    "intercept": "intercept",
    "sd_subjectid": RANDOM_INTERCEPT_SD,
    "sd_(intercept)|subjectid": RANDOM_INTERCEPT_SD,
    "subjectid.(intercept)": RANDOM_INTERCEPT_SD,
    "subject_sd": RANDOM_INTERCEPT_SD,
}
_TERMS_BY_COVARIATES = {frozenset(t.covariates): t.name for t in TERMS if t.covariates}


def canonical_term_name(name: str) -> str:
    """Translate a coefficient label into the package's term name.

    Accepts the package names themselves (``"color_x_size"``) as well as
    lme4 spellings (``"(Intercept)"``, ``"size:color.e"``).

    Raises:
        ConfigurationError: If the label does not name a known term.
    """
    key = str(name).strip()
    if key in REQUIRED_TERMS:
        return key
    lowered = key.lower()
    if lowered in _PILOT_ALIASES:
        return _PILOT_ALIASES[lowered]

    parts = [p.strip() for p in key.split(":")]
    try:
        covariates = frozenset(_PILOT_COVARIATES[p] for p in parts)
    except KeyError:
        raise ConfigurationError(f"Unknown fixed-effect term '{name}'") from None
    if len(covariates) != len(parts) or covariates not in _TERMS_BY_COVARIATES:
        raise ConfigurationError(f"Unknown fixed-effect term '{name}'")
    return _TERMS_BY_COVARIATES[covariates]


class FixedEffectSet(Mapping):
    """Immutable mapping from term name to coefficient.

    Holds exactly the terms of ``TERMS`` plus ``subject_sd``. A missing or
    unknown term is a configuration error, never a silent zero.

    Example:
        >>> fixef = FixedEffectSet({"intercept": 0.2, "color_e": 0.0, ...})
        >>> fixef["intercept"]
        0.2
    """

    def __init__(self, coefficients: Dict[str, float]):
        values: Dict[str, float] = {}
        for raw_name, raw_value in dict(coefficients).items():
            name = canonical_term_name(raw_name)
            if name in values:
                raise ConfigurationError(f"Term '{name}' given more than once (as '{raw_name}')")
            try:
                value = float(raw_value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Coefficient for '{raw_name}' must be numeric, got {raw_value!r}") from None
            if not math.isfinite(value):
                raise ConfigurationError(f"Coefficient for '{raw_name}' must be finite, got {value}")
            values[name] = value

        missing = [t for t in REQUIRED_TERMS if t not in values]
        if missing:
            raise ConfigurationError(f"Fixed-effect set is missing required terms: {', '.join(missing)}")
        if values[RANDOM_INTERCEPT_SD] < 0:
            raise ConfigurationError(f"{RANDOM_INTERCEPT_SD} must be non-negative, got {values[RANDOM_INTERCEPT_SD]}")

        self._values = {t: values[t] for t in REQUIRED_TERMS}

    @classmethod
    def from_table(cls, table, estimate_column: str = "Estimate") -> "FixedEffectSet":
        """Build a set from a pilot coefficient table.

        Args:
            table: ``dict``, pandas ``Series`` (index = term names) or pandas
                ``DataFrame`` (index = term names, one estimate column).
            estimate_column: Column holding the estimates when *table* is a
                DataFrame with more than one column.
        """
        from ..utils.pilot_data import coefficient_table_to_dict

        return cls(coefficient_table_to_dict(table, estimate_column))

    @classmethod
    def null(cls, intercept: float = 0.0, subject_sd: float = 0.0) -> "FixedEffectSet":
        """All slopes and interactions at zero."""
        coefficients = dict.fromkeys(REQUIRED_TERMS, 0.0)
        coefficients["intercept"] = intercept
        coefficients[RANDOM_INTERCEPT_SD] = subject_sd
        return cls(coefficients)

    def replace(self, **changes: float) -> "FixedEffectSet":
        """Return a copy with some coefficients changed."""
        values = dict(self._values)
        values.update(changes)
        return FixedEffectSet(values)

    @property
    def subject_sd(self) -> float:
        return self._values[RANDOM_INTERCEPT_SD]

    def fixed_coefficients(self) -> np.ndarray:
        """Coefficients in ``TERMS`` order (random-intercept SD excluded)."""
        return np.array([self._values[t.name] for t in TERMS], dtype=float)

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self):
        inner = ", ".join(f"{k}={v:g}" for k, v in self._values.items())
        return f"FixedEffectSet({inner})"
