"""
Pilot data helpers.

Converts in-memory pilot tables (pandas DataFrame or dict of columns) into
the two inputs a power run takes from real data: the proportion of trials
lost to exclusion criteria and the fixed-effect coefficient table of the
pilot model fit.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

PILOT_COLUMNS = ["subjectID", "size_delta", "color", "contrast", "response"]


def normalize_pilot_input(data, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Convert user-supplied pilot data into a DataFrame.

    Accepted inputs:
        - pandas DataFrame: used as is (copied)
        - dict of {name: array}: keys become column names
        - 2D numpy array or list of rows: requires *columns*

    Args:
        data: Raw pilot trials.
        columns: Column names for array input.

    Raises:
        TypeError: If *data* is an unsupported type.
        ConfigurationError: If required columns are missing.
    """
    if isinstance(data, pd.DataFrame):
        frame = data.copy()
    elif isinstance(data, dict):
        frame = pd.DataFrame({k: np.asarray(v) for k, v in data.items()})
    elif isinstance(data, (list, np.ndarray)):
        if columns is None:
            raise ConfigurationError("columns are required for array input")
        frame = pd.DataFrame(np.asarray(data, dtype=object), columns=columns)
    else:
        raise TypeError("data must be a pandas DataFrame, dict, list, or numpy array")

    missing = [c for c in PILOT_COLUMNS if c not in frame.columns]
    if missing:
        raise ConfigurationError(f"Pilot data is missing columns: {', '.join(missing)}")
    return frame


def excluded_proportion(raw, retained) -> float:
    """Proportion of pilot trials removed by the exclusion criteria.

    Args:
        raw: All recorded trials (any input ``normalize_pilot_input`` accepts,
            or just a trial count).
        retained: Trials kept after exclusions (same forms).

    Returns:
        ``1 - n_retained / n_raw``.
    """
    n_raw = raw if isinstance(raw, int) else len(normalize_pilot_input(raw))
    n_retained = retained if isinstance(retained, int) else len(normalize_pilot_input(retained))
    if n_raw <= 0:
        raise ConfigurationError("raw pilot data holds no trials")
    if not 0 <= n_retained <= n_raw:
        raise ConfigurationError(f"retained trials ({n_retained}) must be between 0 and raw trials ({n_raw})")
    return 1.0 - n_retained / n_raw


def coefficient_table_to_dict(table, estimate_column: str = "Estimate") -> Dict[str, float]:
    """Flatten a pilot coefficient table into ``{term label: estimate}``.

    Accepts a dict, a pandas Series indexed by term label, or a DataFrame
    indexed by term label with either a single column or an
    *estimate_column* (e.g. the ``Estimate`` column of a model summary).
    Labels are translated later by ``FixedEffectSet``.
    """
    if isinstance(table, dict):
        return dict(table)
    if isinstance(table, pd.Series):
        return table.to_dict()
    if isinstance(table, pd.DataFrame):
        if estimate_column in table.columns:
            return table[estimate_column].to_dict()
        if table.shape[1] == 1:
            return table.iloc[:, 0].to_dict()
        raise ConfigurationError(f"Coefficient table has no '{estimate_column}' column: {list(table.columns)}")
    raise TypeError("coefficient table must be a dict, pandas Series, or pandas DataFrame")
