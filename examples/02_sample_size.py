"""
Sample Size Calculation Example
===============================

This example reads the pilot coefficient table as a DataFrame (e.g. the
fixed-effects part of an lme4 summary), derives the exclusion rate from the
pilot trials, and sweeps subject counts until the interaction reaches 80%
power.
"""

import pandas as pd

from psepower import PSEPower

print("=" * 60)
print("SAMPLE SIZE CALCULATION EXAMPLE")
print("=" * 60)

coefficients = pd.DataFrame(
    {"Estimate": [0.15, 0.25, -0.10, 0.80, 0.40, 0.05, 0.02, 0.00, 0.60]},
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

model = PSEPower(coefficients)

# 1,440 pilot trials recorded, 1,382 kept after exclusions
model.set_excluded_proportion_from_data(1440, 1382)
model.set_power(80).set_replications(200)

model.find_sample_size(
    trial_n=12,
    target_effect="color:contrast",
    from_size=8,
    to_size=32,
    by=4,
    summary="long",
)
