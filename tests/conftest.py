"""
Shared pytest fixtures for PSEPower tests.
"""

import numpy as np
import pytest

from tests.config import PILOT_FIXEF, SEED


@pytest.fixture
def pilot_fixef():
    """FixedEffectSet resembling a pilot fit."""
    from psepower import FixedEffectSet

    return FixedEffectSet(PILOT_FIXEF)


@pytest.fixture
def null_fixef():
    """All slopes zero, no subject variance."""
    from psepower import FixedEffectSet

    return FixedEffectSet.null()


@pytest.fixture
def rng():
    """Seeded generator."""
    return np.random.default_rng(SEED)


@pytest.fixture
def lme4_table():
    """Pilot coefficient table as printed by an lme4 summary."""
    import pandas as pd

    return pd.DataFrame(
        {
            "Estimate": [0.2, 0.1, -0.1, 0.8, 0.3, 0.05, 0.0, 0.0, 0.5],
            "Std. Error": [0.1] * 9,
        },
        index=[
            "(Intercept)",
            "color.e",
            "contrast.e",
            "size",
            "color.e:contrast.e",
            "size:color.e",
            "contrast.e:size",
            "color.e:contrast.e:size",
            "subject_sd",
        ],
    )


@pytest.fixture
def model(pilot_fixef):
    """Small, fast PSEPower model."""
    from psepower import PSEPower

    m = PSEPower(pilot_fixef)
    m.set_seed(SEED)
    m.n_replications = 5
    return m
