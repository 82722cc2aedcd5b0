"""
Basic Power Analysis Example
============================

This example estimates the power of a planned PSE experiment from the
fixed effects of a pilot GLMM fit, and shows the distribution of Cohen's f
for each ANOVA effect.
"""

import psepower

# Example: color x contrast size-judgment study
# Research question: Does the color effect on the PSE depend on contrast?

print("=" * 60)
print("BASIC POWER ANALYSIS EXAMPLE")
print("=" * 60)

# 1. Fixed effects from the pilot fit (logit scale; size in units of 10)
pilot = {
    "(Intercept)": 0.15,
    "color.e": 0.25,
    "contrast.e": -0.10,
    "size": 0.80,
    "color.e:contrast.e": 0.40,
    "color.e:size": 0.05,
    "contrast.e:size": 0.02,
    "color.e:contrast.e:size": 0.00,
    "subject_sd": 0.60,
}
model = psepower.PSEPower(pilot)

# 2. About 4% of pilot trials were removed by the exclusion criteria
model.set_excluded_proportion(0.04)

# 3. Power for 20 subjects with 12 replicates of every stimulus level
model.find_power(subj_n=20, trial_n=12)

# 4. Detailed report with the Cohen's f distribution and diagnostics
print("\n" + "=" * 60)
print("DETAILED REPORT")
print("=" * 60)
model.find_power(subj_n=20, trial_n=12, summary="long", progress_callback=False)
