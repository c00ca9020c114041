"""
Shared fixtures: synthetic raw-statistics tables and a small training config.
"""

import numpy as np
import pandas as pd
import pytest

from analog_fault.config import make_config
from analog_fault.dataset import split_dataset
from analog_fault.features import engineer_features
from analog_fault.training import fit_pipeline


LABELS = ['Normal', 'Fault_A', 'Fault_B']


def create_raw_dataframe(n_per_class=(20, 40, 40), labels=LABELS, seed=42):
    """Raw per-waveform statistics with class-dependent, separable distributions."""
    rng  = np.random.default_rng(seed)
    rows = []

    for c, (label, n) in enumerate(zip(labels, n_per_class)):
        mean   = 1.5 * c + rng.normal(0, 0.1, n)
        std    = 1.0 + 0.4 * c + np.abs(rng.normal(0, 0.05, n))
        spread = 2.0 + rng.normal(0, 0.1, n)
        frame  = pd.DataFrame({
            'mean':               mean,
            'std':                std,
            'max':                mean + spread * std,
            'min':                mean - spread * std,
            'median':             mean + rng.normal(0, 0.05, n),
            'skewness':           0.5 * c - 0.5 + rng.normal(0, 0.1, n),
            'kurtosis':           3.0 + c + rng.normal(0, 0.2, n),
            'rms':                np.sqrt(mean ** 2 + std ** 2),
            'zero_crossing_rate': np.clip(0.1 + 0.05 * c + rng.normal(0, 0.01, n), 0, 1),
        })
        frame['peak_to_peak'] = frame['max'] - frame['min']
        frame['label']        = label
        rows.append(frame)

    raw = pd.concat(rows, ignore_index=True)
    return raw[['mean', 'std', 'max', 'min', 'median', 'peak_to_peak',
                'skewness', 'kurtosis', 'rms', 'zero_crossing_rate', 'label']]


@pytest.fixture
def raw_df():
    return create_raw_dataframe()


@pytest.fixture
def engineered_df(raw_df):
    return engineer_features(raw_df)


@pytest.fixture
def small_config():
    """Fast-training config for tests."""
    return make_config({
        'model': {
            'hidden_units':   [16, 16],
            'dropout_blocks': 1,
        },
        'training': {
            'max_epochs':          15,
            'early_stop_patience': 5,
            'lr_patience':         3,
            'batch_size':          16,
        },
        'evaluation': {'folds': 3},
    })


@pytest.fixture(scope='session')
def trained():
    """A pipeline fitted on 80 % of the synthetic data plus the held-out 20 %."""
    cfg = make_config({
        'model':    {'hidden_units': [16, 16], 'dropout_blocks': 1},
        'training': {'max_epochs': 40, 'early_stop_patience': 10, 'batch_size': 16},
    })
    raw         = create_raw_dataframe()
    engineered  = engineer_features(raw)
    train, test = split_dataset(engineered, 0.2, random_state=cfg['random_state'])
    fitted      = fit_pipeline(train, cfg)
    return {'fitted': fitted, 'test': test, 'raw': raw, 'cfg': cfg}


@pytest.fixture
def raw_csv(raw_df, tmp_path):
    path = tmp_path / 'raw.csv'
    raw_df.to_csv(path, index=False)
    return path
