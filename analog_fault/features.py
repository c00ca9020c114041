"""
features.py — Feature Engineering

Converts the raw per-waveform statistics produced by the extraction
script into the engineered feature table consumed by the classifier:

    1. Column-name normalisation (case, separators, common aliases)
    2. Raw schema check (no imputation)
    3. Derived ratio / product features, epsilon-guarded at construction
    4. Pruning to the fixed ``ENGINEERED_FEATURES`` list, label last

``ENGINEERED_FEATURES`` is the retained set chosen by
``correlation_pruning``: ``peak_to_peak`` is kept over ``rms`` (it tracks
signal energy more distinctly), ``mean`` over ``median`` and ``min`` over
``max``. Scaling parameters and inference inputs are keyed on this list.
"""

import logging
import re

import numpy as np
import pandas as pd

from .exceptions import SchemaError


logger = logging.getLogger(__name__)

EPSILON = 1e-6

RAW_FEATURES = [
    'mean', 'std', 'max', 'min', 'median', 'peak_to_peak',
    'skewness', 'kurtosis', 'rms', 'zero_crossing_rate',
]

DERIVED_FEATURES = [
    'skew_kurt_ratio',     # skewness / kurtosis
    'max_rms_ratio',       # max / rms  (crest factor)
    'rms_median_ratio',    # rms / |median|
    'variance',            # rms² - median²
    'skew_kurt_product',   # skewness * kurtosis
    'std_min_ratio',       # |std / min|
    'min_ptp_ratio',       # min / peak_to_peak
]

ENGINEERED_FEATURES = [
    'mean', 'std', 'min', 'peak_to_peak', 'skewness', 'kurtosis',
    'zero_crossing_rate',
] + DERIVED_FEATURES

# Tie-break order for correlation pruning: earlier names survive
FEATURE_PRIORITY = ENGINEERED_FEATURES + ['max', 'median', 'rms']

COLUMN_ALIASES = {
    'average':            'mean',
    'std_dev':            'std',
    'stddev':             'std',
    'standard_deviation': 'std',
    'maximum':            'max',
    'minimum':            'min',
    'ptp':                'peak_to_peak',
    'p2p':                'peak_to_peak',
    'peak2peak':          'peak_to_peak',
    'peak_peak':          'peak_to_peak',
    'skew':               'skewness',
    'kurt':               'kurtosis',
    'root_mean_square':   'rms',
    'zcr':                'zero_crossing_rate',
    'zero_crossings':     'zero_crossing_rate',
}


# ── Column Names ───────────────────────────────────────────────────────────────

def canonical_name(column):
    """snake_case a column name and resolve known aliases."""
    name = re.sub(r'[^0-9a-z]+', '_', str(column).strip().lower()).strip('_')
    return COLUMN_ALIASES.get(name, name)


def normalise_column_names(df, label_col='label'):
    """
    Rename columns to their canonical names.

    The label column is matched case-insensitively and always renamed to
    ``label_col``.

    Raises
    ------
    SchemaError — if two source columns collapse onto the same name
    """
    mapping = {}
    for col in df.columns:
        if str(col).strip().lower() == label_col.lower():
            mapping[col] = label_col
        else:
            mapping[col] = canonical_name(col)

    targets    = list(mapping.values())
    duplicates = sorted({t for t in targets if targets.count(t) > 1})
    if duplicates:
        raise SchemaError("Duplicate columns after name normalisation", duplicates)

    out = df.rename(columns=mapping)
    out.attrs = dict(df.attrs)
    return out


# ── Derived Features ───────────────────────────────────────────────────────────

def safe_divide(numerator, denominator, epsilon=EPSILON):
    """
    Divide with the denominator pushed ``epsilon`` away from zero.

    Non-negative denominators get ``+epsilon``, negative ones ``-epsilon``,
    so the guarded denominator is never smaller than ``epsilon`` in
    magnitude. Exact zeros therefore divide by ``epsilon``.
    """
    denominator = np.asarray(denominator, dtype=float)
    guarded     = np.where(denominator >= 0, denominator + epsilon, denominator - epsilon)
    return np.asarray(numerator, dtype=float) / guarded


def derive_features(raw, epsilon=EPSILON):
    """
    Build the derived ratio / product features from raw statistics.

    Parameters
    ----------
    raw     : DataFrame — raw columns (see ``RAW_FEATURES``), all finite
    epsilon : float     — denominator offset

    Returns
    -------
    derived : DataFrame — ``DERIVED_FEATURES`` columns, same index as ``raw``
    """
    derived = pd.DataFrame(index=raw.index)

    derived['skew_kurt_ratio']   = safe_divide(raw['skewness'], raw['kurtosis'], epsilon)
    derived['max_rms_ratio']     = safe_divide(raw['max'], raw['rms'], epsilon)
    derived['rms_median_ratio']  = safe_divide(raw['rms'], raw['median'].abs(), epsilon)
    derived['variance']          = raw['rms'] ** 2 - raw['median'] ** 2
    derived['skew_kurt_product'] = raw['skewness'] * raw['kurtosis']
    derived['std_min_ratio']     = np.abs(safe_divide(raw['std'], raw['min'], epsilon))
    derived['min_ptp_ratio']     = safe_divide(raw['min'], raw['peak_to_peak'], epsilon)

    return derived[DERIVED_FEATURES]


def _raw_matrix(df):
    missing = [c for c in RAW_FEATURES if c not in df.columns]
    if missing:
        raise SchemaError("Missing raw feature columns", missing)

    raw = df[RAW_FEATURES].apply(pd.to_numeric, errors='coerce')

    invalid = [c for c in RAW_FEATURES if not np.isfinite(raw[c].to_numpy()).all()]
    if invalid:
        raise SchemaError("Missing, non-numeric or non-finite raw values in", invalid)

    return raw.astype(float)


def engineer_features(df, label_col='label', retained=None, epsilon=EPSILON,
                      require_label=True):
    """
    Full feature-engineering step for one dataset.

    Parameters
    ----------
    df            : DataFrame — raw statistics (+ label)
    label_col     : str       — label column name
    retained      : list      — ordered output features (default ENGINEERED_FEATURES)
    epsilon       : float     — denominator offset for derived ratios
    require_label : bool      — False for unlabeled inference inputs

    Returns
    -------
    engineered : DataFrame — ``retained`` columns in order, label last

    Raises
    ------
    SchemaError — missing raw columns, missing label, invalid raw values or
                  unknown names in ``retained``
    """
    retained = list(retained or ENGINEERED_FEATURES)
    df       = normalise_column_names(df, label_col=label_col)

    if require_label and label_col not in df.columns:
        raise SchemaError("Missing label column", [label_col])

    raw  = _raw_matrix(df)
    full = pd.concat([raw, derive_features(raw, epsilon)], axis=1)

    unknown = [f for f in retained if f not in full.columns]
    if unknown:
        raise SchemaError("Unknown engineered features requested", unknown)

    engineered = full[retained].copy()
    if label_col in df.columns:
        if df[label_col].isna().any():
            raise SchemaError("Missing label values in", [label_col])
        engineered[label_col] = df[label_col].to_numpy()

    engineered.attrs = dict(df.attrs)
    logger.debug("Engineered %d rows into %d features", len(engineered), len(retained))
    return engineered


# ── Correlation Pruning ────────────────────────────────────────────────────────

def correlation_pruning(df, features, threshold=0.95, priority=None):
    """
    Greedy pruning of highly correlated feature pairs.

    Pairs are visited by descending absolute Pearson correlation. While a
    pair exceeds ``threshold`` and both members are still retained, the
    member that comes later in ``priority`` is dropped. Constant features
    (undefined correlation) are never dropped by this rule.

    Parameters
    ----------
    df        : DataFrame — engineered or raw+derived features
    features  : list      — candidate feature names, in output order
    threshold : float     — absolute correlation above which a pair is pruned
    priority  : list      — preference order (default FEATURE_PRIORITY)

    Returns
    -------
    retained  : list      — surviving features in ``features`` order
    decisions : DataFrame — columns 'kept', 'dropped', 'abs_corr'
    """
    features = list(features)
    priority = list(priority or FEATURE_PRIORITY)
    rank     = {name: i for i, name in enumerate(priority)}
    for i, name in enumerate(features):
        rank.setdefault(name, len(priority) + i)

    corr  = df[features].corr().abs()
    pairs = []
    for i, a in enumerate(features):
        for b in features[i + 1:]:
            r = corr.loc[a, b]
            if pd.notna(r):
                pairs.append((float(r), a, b))
    pairs.sort(key=lambda p: (-p[0], rank[p[1]], rank[p[2]]))

    dropped, decisions = set(), []
    for r, a, b in pairs:
        if r <= threshold:
            break
        if a in dropped or b in dropped:
            continue
        keep, drop = (a, b) if rank[a] <= rank[b] else (b, a)
        dropped.add(drop)
        decisions.append({'kept': keep, 'dropped': drop, 'abs_corr': r})
        logger.info("Pruned %s (|r|=%.3f with %s)", drop, r, keep)

    retained = [f for f in features if f not in dropped]
    return retained, pd.DataFrame(decisions, columns=['kept', 'dropped', 'abs_corr'])
