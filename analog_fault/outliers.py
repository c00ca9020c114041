"""
outliers.py — IQR Winsorization

Per-feature Tukey fences computed on a fitting population and applied by
clamping. Rows are never removed, so class counts are unchanged.

    bounds = [Q1 - whisker*IQR, Q3 + whisker*IQR],  IQR = Q3 - Q1

Quartiles use linear interpolation (numpy default), e.g. for
[1, 2, 3, 4, 100]: Q1 = 2, Q3 = 4, bounds = [-1, 7], 100 -> 7.
"""

import logging
import warnings
from dataclasses import dataclass

import numpy as np

from .dataset import require_training_split
from .exceptions import DegenerateFeatureError, DegenerateFeatureWarning, SchemaError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CappingBounds:
    """Per-feature winsorization bounds, in ``feature_names`` order."""
    feature_names: tuple
    lower:         np.ndarray
    upper:         np.ndarray
    degenerate:    tuple = ()


def _readonly(values):
    arr = np.array(values, dtype=float)
    arr.flags.writeable = False
    return arr


def fit_capping(df, feature_names, whisker=1.5, strict=False):
    """
    Compute IQR bounds for each feature over ``df``.

    Parameters
    ----------
    df            : DataFrame — fitting population (training split)
    feature_names : list      — numeric columns to cap
    whisker       : float     — IQR multiplier (default 1.5)
    strict        : bool      — raise instead of warning on zero IQR

    Returns
    -------
    bounds : CappingBounds

    Raises
    ------
    LeakageGuardError      — ``df`` is tagged as a non-training split
    SchemaError            — a feature column is missing
    DegenerateFeatureError — zero IQR with ``strict=True``
    """
    require_training_split(df, 'OutlierCapper')

    missing = [f for f in feature_names if f not in df.columns]
    if missing:
        raise SchemaError("Missing columns for outlier capping", missing)

    X      = df[list(feature_names)].to_numpy(dtype=float)
    q1, q3 = np.quantile(X, [0.25, 0.75], axis=0)
    iqr    = q3 - q1

    degenerate = tuple(f for f, spread in zip(feature_names, iqr) if spread == 0)
    if degenerate:
        if strict:
            raise DegenerateFeatureError("Zero interquartile range", degenerate)
        message = f"Zero IQR, values clamp to a constant for: {list(degenerate)}"
        logger.warning(message)
        warnings.warn(message, DegenerateFeatureWarning, stacklevel=2)

    return CappingBounds(
        feature_names=tuple(feature_names),
        lower=_readonly(q1 - whisker * iqr),
        upper=_readonly(q3 + whisker * iqr),
        degenerate=degenerate
    )


def apply_capping(df, bounds):
    """
    Clamp every bounded feature of ``df`` into its bounds.

    Returns a new frame; ``df`` is not modified and keeps its split tag.
    """
    missing = [f for f in bounds.feature_names if f not in df.columns]
    if missing:
        raise SchemaError("Missing columns for outlier capping", missing)

    cols   = list(bounds.feature_names)
    X      = df[cols].to_numpy(dtype=float)
    capped = np.clip(X, bounds.lower, bounds.upper)

    n_changed = int((capped != X).sum())
    if n_changed:
        logger.debug("Winsorized %d values across %d features", n_changed, len(cols))

    out       = df.copy()
    out[cols] = capped
    out.attrs = dict(df.attrs)
    return out


def cap_outliers(df, feature_names, whisker=1.5, strict=False):
    """Fit bounds on ``df`` and clamp ``df`` with them."""
    bounds = fit_capping(df, feature_names, whisker=whisker, strict=strict)
    return apply_capping(df, bounds), bounds
