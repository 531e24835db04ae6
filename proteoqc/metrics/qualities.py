"""Scoring functions mapping descriptive statistics to a quality in [0, 1].

All functions accept scalars or pandas Series and keep the index of Series input.
"""

from typing import Union

import numpy as np
import pandas as pd

Numeric = Union[float, pd.Series]


def _clip(x: Numeric) -> Numeric:
    if isinstance(x, pd.Series):
        return x.clip(lower=0.0, upper=1.0)
    return float(min(1.0, max(0.0, x)))


def qual_lin_thresh(x: Numeric, threshold: float) -> Numeric:
    """Linear up to `threshold` (x >= threshold scores 1)."""
    if threshold <= 0:
        raise ValueError(f"threshold must be positive, got {threshold}")
    return _clip(x / threshold)


def qual_centered_ref(x: Numeric, ref: float) -> Numeric:
    """1 at zero, falling linearly to 0 at |x| == ref (e.g. mass errors around 0)."""
    if ref <= 0:
        raise ValueError(f"ref must be positive, got {ref}")
    return _clip(1 - abs(x) / ref)


def qual_uniform(x) -> float:
    """How evenly `x` (non-negative weights) is spread: 1 = perfectly uniform, 0 = all in one bin."""
    values = np.asarray(x, dtype=float)
    values = values[~np.isnan(values)]
    n = len(values)
    if n < 2 or values.sum() <= 0:
        return 1.0
    p = values / values.sum()
    worst = 2 * (1 - 1 / n)
    return float(_clip(1 - np.abs(p - 1 / n).sum() / worst))


def qual_median_dist(x: pd.Series) -> pd.Series:
    """Per-entry closeness to the median of all entries (relative to the median)."""
    x = x.astype(float)
    med = np.nanmedian(x) if x.notna().any() else np.nan
    if np.isnan(med):
        return pd.Series(np.nan, index=x.index)
    scale = abs(med) if med != 0 else max(1e-9, float(np.nanmax(np.abs(x))))
    return _clip(1 - (x - med).abs() / scale)


def qual_highest(counts: pd.Series) -> float:
    """Fraction of observations falling into the most frequent level."""
    total = float(counts.sum())
    if total <= 0:
        return 0.0
    return float(counts.max() / total)
