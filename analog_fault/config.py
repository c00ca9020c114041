"""
config.py — Pipeline Configuration

Central dictionary of every threshold and hyperparameter used by the
pipeline. Callers pass a (possibly overridden) copy of ``DEFAULT_CONFIG``
down to each stage; nothing reads module-level state at call time.

Usage
-----
    from analog_fault.config import make_config, load_config

    cfg = make_config({'training': {'max_epochs': 50}})
    cfg = load_config('experiment.json')
"""

import copy
import json
from pathlib import Path


DEFAULT_CONFIG = {
    # Schema
    'label_column':   'label',
    'minority_label': 'Normal',
    'label_names':    None,           # None = sorted labels of the training split
    'random_state':   42,

    # Feature engineering
    'features': {
        'epsilon':               1e-6,
        'correlation_threshold': 0.95,
    },

    # IQR winsorization
    'outliers': {
        'enabled':  True,
        'whisker':  1.5,
        'strict':   False,            # True = DegenerateFeatureError on zero IQR
    },

    # SMOTE oversampling of the minority class
    'balancing': {
        'enabled':      True,
        'target_ratio': 0.5,          # minority / sum of all other classes
        'k_neighbors':  5,
    },

    # Standardisation
    'scaling': {
        'on_degenerate': 'warn',      # 'warn' (scale=1) or 'raise'
    },

    # Train / validation / test partitioning
    'split': {
        'test_fraction':       0.2,
        'validation_fraction': 0.2,   # fraction of the remaining training data
    },

    # MLP architecture
    'model': {
        'hidden_units':       [128, 256, 128, 64],
        'dropout_rate':       0.3,
        'dropout_blocks':     3,       # dropout on the first N hidden blocks
        'l2_penalty':         1e-3,
        'leaky_slope':        0.1,
        'batchnorm_momentum': 0.9,
    },

    # Optimisation protocol
    'training': {
        'learning_rate':        1e-3,
        'label_smoothing':      0.1,
        'batch_size':           32,
        'max_epochs':           300,
        'early_stop_patience':  20,
        'lr_patience':          10,
        'lr_factor':            0.5,
        'min_learning_rate':    1e-4,
    },

    # Cross-validation
    'evaluation': {
        'folds':      5,
        'stratified': True,
    },

    # ANOVA side-channel
    'anova': {
        'alpha': 0.05,
    },
}


def _deep_update(base, overrides):
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def make_config(overrides=None):
    """
    Return a deep copy of ``DEFAULT_CONFIG`` with nested overrides applied.

    Parameters
    ----------
    overrides : dict — partial config; nested sections are merged key by key

    Returns
    -------
    cfg : dict
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if overrides:
        _deep_update(cfg, copy.deepcopy(overrides))
    return cfg


def load_config(path=None):
    """Load a JSON override file on top of the defaults (None = defaults only)."""
    if path is None:
        return make_config()
    with open(Path(path), encoding='utf-8') as fh:
        return make_config(json.load(fh))
