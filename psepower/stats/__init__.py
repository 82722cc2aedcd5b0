"""Statistical building blocks: data generation, PSE fitting, ANOVA."""

from . import anova as anova
from . import data_generation as data_generation
from . import links as links
from . import logistic as logistic
