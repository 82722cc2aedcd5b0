"""Core components for the PSEPower framework.

Re-exports the foundational building blocks:

- ``FixedEffectSet``, ``TERMS``: the enumerated linear-predictor terms and
  their coefficients.
- ``PowerEngine``, ``run_replication``, ``simulate_dataset``,
  ``run_power_simulation``: replication execution.
- ``PowerResult``, ``ReplicationResult``, ``ResultsProcessor``,
  ``build_power_result``, ``build_sample_size_result``: result collection
  and formatting.
"""

from .fixed_effects import REQUIRED_TERMS, TERMS, FixedEffectSet, Term
from .results import PowerResult, ReplicationResult, ResultsProcessor, build_power_result, build_sample_size_result
from .simulation import PowerEngine, replication_rng, run_power_simulation, run_replication, simulate_dataset

__all__ = [
    # Fixed effects
    "FixedEffectSet",
    "Term",
    "TERMS",
    "REQUIRED_TERMS",
    # Simulation
    "PowerEngine",
    "run_replication",
    "run_power_simulation",
    "simulate_dataset",
    "replication_rng",
    # Results
    "PowerResult",
    "ReplicationResult",
    "ResultsProcessor",
    "build_power_result",
    "build_sample_size_result",
]
