"""
Class Balancing Tests

Tests verify:
- Only the minority class grows; majority counts are unchanged
- Minority / others ratio does not exceed the target
- Synthetic rows stay inside the minority class's bounding box
- No-op when the minority class already meets the target
- Refusal on non-training splits and on too few minority samples
"""

import numpy as np
import pandas as pd
import pytest

from analog_fault.balancing import balance_classes, target_minority_count
from analog_fault.dataset import INFERENCE, TRAIN, VALIDATION, split_role, tag_split
from analog_fault.exceptions import LeakageGuardError, SchemaError


FEATURES = ['f1', 'f2']


def create_imbalanced_frame(n_normal=10, n_a=30, n_b=30, seed=7):
    rng = np.random.default_rng(seed)

    def block(n, center, label):
        return pd.DataFrame({
            'f1':    rng.normal(center, 0.5, n),
            'f2':    rng.normal(-center, 0.5, n),
            'label': label,
        })

    return pd.concat([block(n_normal, 0.0, 'Normal'),
                      block(n_a, 3.0, 'Fault_A'),
                      block(n_b, 6.0, 'Fault_B')], ignore_index=True)


class TestTargetCount:

    def test_floor_of_ratio(self):
        counts = pd.Series({'Normal': 10, 'Fault_A': 30, 'Fault_B': 31})
        assert target_minority_count(counts, 'Normal', 0.5) == 30

    def test_never_below_current(self):
        counts = pd.Series({'Normal': 50, 'Fault_A': 30})
        assert target_minority_count(counts, 'Normal', 0.5) == 50


class TestBalanceClasses:

    def test_majority_counts_unchanged(self):
        df       = create_imbalanced_frame()
        balanced = balance_classes(df, FEATURES)
        counts   = balanced['label'].value_counts()

        assert counts['Fault_A'] == 30
        assert counts['Fault_B'] == 30
        assert counts['Normal'] == 30

    def test_ratio_within_target(self):
        balanced = balance_classes(create_imbalanced_frame(n_b=33), FEATURES, target_ratio=0.5)
        counts   = balanced['label'].value_counts()
        ratio    = counts['Normal'] / counts.drop('Normal').sum()
        assert ratio <= 0.5

    def test_synthetic_rows_inside_minority_bounds(self):
        df        = create_imbalanced_frame()
        real      = df[df['label'] == 'Normal'][FEATURES]
        balanced  = balance_classes(df, FEATURES)
        synthetic = balanced.iloc[len(df):]

        assert (synthetic['label'] == 'Normal').all()
        for f in FEATURES:
            assert synthetic[f].min() >= real[f].min() - 1e-9
            assert synthetic[f].max() <= real[f].max() + 1e-9

    def test_real_rows_first(self):
        df       = create_imbalanced_frame()
        balanced = balance_classes(df, FEATURES)
        np.testing.assert_allclose(balanced.iloc[:len(df)][FEATURES].to_numpy(),
                                   df[FEATURES].to_numpy())

    def test_output_tagged_train(self):
        balanced = balance_classes(create_imbalanced_frame(), FEATURES)
        assert split_role(balanced) == TRAIN

    def test_noop_when_target_met(self):
        df       = create_imbalanced_frame()
        balanced = balance_classes(df, FEATURES, target_ratio=0.1)
        pd.testing.assert_series_equal(balanced['label'].value_counts(),
                                       df['label'].value_counts())

    def test_small_minority_clips_neighbours(self):
        balanced = balance_classes(create_imbalanced_frame(n_normal=3), FEATURES, k_neighbors=5)
        assert balanced['label'].value_counts()['Normal'] == 30


class TestBalancingErrors:

    @pytest.mark.parametrize('role', [VALIDATION, INFERENCE])
    def test_leakage_guard(self, role):
        df = tag_split(create_imbalanced_frame(), role)
        with pytest.raises(LeakageGuardError):
            balance_classes(df, FEATURES)

    def test_single_minority_sample(self):
        with pytest.raises(ValueError):
            balance_classes(create_imbalanced_frame(n_normal=1), FEATURES)

    def test_missing_minority_class(self):
        df = create_imbalanced_frame()
        with pytest.raises(SchemaError):
            balance_classes(df[df['label'] != 'Normal'], FEATURES)
