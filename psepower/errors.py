"""
Exception and warning types for PSEPower.

Fatal problems (bad configuration, numeric domain violations) are raised
immediately. Degenerate per-cell fits are raised locally and converted into
invalid estimates by the caller, so a power run survives them and reports
how many cells were affected.
"""


class ConfigurationError(ValueError):
    """Invalid fixed-effect table or design parameters. Nothing is run."""


class NumericDomainError(ValueError):
    """A link function was evaluated outside its domain (e.g. ``logit(0)``)."""


class DegenerateFitError(RuntimeError):
    """A per-cell logistic fit or an ANOVA could not produce a usable estimate."""


class IncompleteDesignWarning(UserWarning):
    """Subjects were dropped from the ANOVA because a cell was missing."""
