"""
scaling.py — Feature Standardisation

Scaling parameters are fit on the training split only and applied
unchanged to validation, test and inference data to prevent leakage.
A constant training feature gets ``scale = 1`` (it is only centred) and
raises a DegenerateFeatureWarning, or DegenerateFeatureError when
``on_degenerate='raise'``.
"""

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from sklearn.preprocessing import StandardScaler

from .dataset import require_training_split
from .exceptions import DegenerateFeatureError, DegenerateFeatureWarning, SchemaError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScalingParameters:
    """Per-feature (center, scale) pairs in ``feature_names`` order."""
    feature_names: tuple
    center:        np.ndarray
    scale:         np.ndarray
    degenerate:    tuple = ()


def _readonly(values):
    arr = np.array(values, dtype=float)
    arr.flags.writeable = False
    return arr


def _feature_matrix(df, feature_names):
    missing = [f for f in feature_names if f not in df.columns]
    if missing:
        raise SchemaError("Missing columns for scaling", missing)
    return df[list(feature_names)].to_numpy(dtype=float)


def fit_scaling(df, feature_names, on_degenerate='warn'):
    """
    Fit mean / standard deviation on the training split.

    Parameters
    ----------
    df            : DataFrame — training split
    feature_names : list      — ordered feature columns
    on_degenerate : str       — 'warn' (scale=1) or 'raise'

    Returns
    -------
    params : ScalingParameters — immutable, independent of ``df``

    Raises
    ------
    LeakageGuardError      — ``df`` is tagged as a non-training split
    DegenerateFeatureError — constant feature with ``on_degenerate='raise'``
    """
    require_training_split(df, 'FeatureScaler')

    X      = _feature_matrix(df, feature_names)
    scaler = StandardScaler().fit(X)

    constant   = np.ptp(X, axis=0) == 0
    degenerate = tuple(f for f, flag in zip(feature_names, constant) if flag)
    scale      = np.where(constant, 1.0, scaler.scale_)

    if degenerate:
        if on_degenerate == 'raise':
            raise DegenerateFeatureError("Zero standard deviation", degenerate)
        message = f"Zero standard deviation, using scale=1 for: {list(degenerate)}"
        logger.warning(message)
        warnings.warn(message, DegenerateFeatureWarning, stacklevel=2)

    return ScalingParameters(
        feature_names=tuple(feature_names),
        center=_readonly(scaler.mean_),
        scale=_readonly(scale),
        degenerate=degenerate
    )


def apply_scaling(df, params):
    """Return a copy of ``df`` with ``(x - center) / scale`` applied to every feature."""
    cols      = list(params.feature_names)
    X         = _feature_matrix(df, cols)
    out       = df.copy()
    out[cols] = (X - params.center) / params.scale
    out.attrs = dict(df.attrs)
    return out


def invert_scaling(df, params):
    """Inverse of ``apply_scaling``: ``x * scale + center``."""
    cols      = list(params.feature_names)
    X         = _feature_matrix(df, cols)
    out       = df.copy()
    out[cols] = X * params.scale + params.center
    out.attrs = dict(df.attrs)
    return out
