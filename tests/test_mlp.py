"""
MLP Tests

Tests verify:
- Block structure: Dense → BatchNorm → LeakyReLU, dropout on the first 3 blocks only
- Fixed hyperparameters: L2 1e-3, he_normal, LeakyReLU 0.1, label smoothing 0.1, Adam 1e-3
- Output is a probability distribution over the label set
- Evaluation-mode forward passes are deterministic, training mode is not
- Separable 2-class toy problems (2-D blobs, one feature at 0 vs 10) reach ≥ 95 % held-out accuracy
- One EpochEvent per epoch; convergence warning and divergence error
- Best validation-loss weights are restored even when the epoch cap is hit
"""

import numpy as np
import pandas as pd
import pytest
from tensorflow.keras.utils import to_categorical

from analog_fault.exceptions import ConvergenceWarning, TrainingDivergedError
from analog_fault.mlp import build_mlp, forward, predict_proba, train_mlp
from analog_fault.scaling import apply_scaling, fit_scaling


def create_toy_problem(n_per_class=10, seed=0):
    """Two well separated Gaussian blobs in 2-D."""
    rng = np.random.default_rng(seed)
    X   = np.vstack([rng.normal(-2.0, 0.3, (n_per_class, 2)),
                     rng.normal(2.0, 0.3, (n_per_class, 2))])
    y   = np.repeat([0, 1], n_per_class)
    return X, y


class TestArchitecture:

    def test_block_layout(self):
        model = build_mlp(14, 7)
        kinds = [type(layer).__name__ for layer in model.layers]

        block = ['Dense', 'BatchNormalization', 'LeakyReLU']
        expected = (block + ['Dropout']) * 3 + block + ['Dense']
        assert kinds == expected

    def test_fixed_hyperparameters(self):
        model  = build_mlp(14, 7)
        dense  = [l for l in model.layers if type(l).__name__ == 'Dense']
        leaky  = [l for l in model.layers if type(l).__name__ == 'LeakyReLU']
        norms  = [l for l in model.layers if type(l).__name__ == 'BatchNormalization']
        drops  = [l for l in model.layers if type(l).__name__ == 'Dropout']

        for layer in dense:
            assert layer.kernel_regularizer.l2 == pytest.approx(1e-3)
        for layer in dense[:-1]:
            assert type(layer.kernel_initializer).__name__ == 'HeNormal'
        assert dense[-1].activation.__name__ == 'softmax'

        assert all(l.negative_slope == pytest.approx(0.1) for l in leaky)
        assert all(l.momentum == pytest.approx(0.9) for l in norms)
        assert all(l.rate == pytest.approx(0.3) for l in drops)

        assert model.loss.label_smoothing == pytest.approx(0.1)
        assert type(model.optimizer).__name__ == 'Adam'
        assert float(np.asarray(model.optimizer.learning_rate)) == pytest.approx(1e-3)

    def test_hidden_widths(self):
        model  = build_mlp(14, 7)
        widths = [layer.units for layer in model.layers if type(layer).__name__ == 'Dense']
        assert widths == [128, 256, 128, 64, 7]

    def test_input_output_shape(self):
        model = build_mlp(14, 7)
        assert model.input_shape[-1] == 14
        assert model.output_shape[-1] == 7

    def test_outputs_are_distributions(self):
        model = build_mlp(5, 3)
        probs = predict_proba(model, np.random.default_rng(1).normal(size=(8, 5)))
        assert probs.shape == (8, 3)
        np.testing.assert_allclose(probs.sum(axis=1), 1.0, atol=1e-5)


class TestForwardMode:

    def test_evaluation_mode_deterministic(self):
        model = build_mlp(5, 3)
        X     = np.random.default_rng(2).normal(size=(64, 5))
        np.testing.assert_array_equal(forward(model, X, training=False),
                                      forward(model, X, training=False))

    def test_training_mode_differs(self):
        model = build_mlp(5, 3)
        X     = np.random.default_rng(2).normal(size=(64, 5))
        assert not np.allclose(forward(model, X, training=True),
                               forward(model, X, training=False))

    def test_empty_batch(self):
        model = build_mlp(5, 3)
        assert forward(model, np.empty((0, 5)), training=False).shape == (0, 3)


@pytest.mark.filterwarnings("ignore::analog_fault.exceptions.ConvergenceWarning")
class TestTraining:

    def test_separable_toy_problem(self):
        X_train, y_train = create_toy_problem(seed=0)
        X_val, y_val     = create_toy_problem(seed=1)
        X_test, y_test   = create_toy_problem(seed=2)

        model, _ = train_mlp(X_train, y_train, X_val, y_val, n_classes=2,
                             training_params={'max_epochs': 150})
        accuracy = np.mean(np.argmax(predict_proba(model, X_test), axis=1) == y_test)
        assert accuracy >= 0.95

    def test_one_feature_toy_problem(self):
        """One feature, class A near 0 and class B near 10, 10 samples each."""
        def draw(seed):
            rng = np.random.default_rng(seed)
            X   = np.concatenate([rng.normal(0.0, 1.0, 10), rng.normal(10.0, 1.0, 10)])
            return X.reshape(-1, 1), np.repeat([0, 1], 10)

        X_train, y_train = draw(10)
        X_val, y_val     = draw(11)
        X_test, y_test   = draw(12)

        params = fit_scaling(pd.DataFrame({'x': X_train[:, 0]}), ['x'])

        def scale(X):
            return apply_scaling(pd.DataFrame({'x': X[:, 0]}), params)[['x']].to_numpy()

        model, _ = train_mlp(scale(X_train), y_train, scale(X_val), y_val, n_classes=2,
                             training_params={'max_epochs': 150})
        accuracy = np.mean(np.argmax(predict_proba(model, scale(X_test)), axis=1) == y_test)
        assert accuracy >= 0.95

    def test_epoch_events(self):
        X, y   = create_toy_problem()
        events = []

        _, history = train_mlp(X, y, X, y, n_classes=2,
                               training_params={'max_epochs': 6},
                               listener=events.append)

        assert events == history.events
        assert [e.epoch for e in events] == list(range(1, history.epochs_run + 1))
        assert all(e.learning_rate <= 1e-3 * (1 + 1e-6) for e in events)
        assert history.best_epoch in [e.epoch for e in events]
        assert list(history.to_frame().columns) == [
            'epoch', 'loss', 'val_loss', 'accuracy', 'val_accuracy', 'learning_rate']

    def test_epoch_cap_warns(self):
        X, y = create_toy_problem()
        with pytest.warns(ConvergenceWarning):
            _, history = train_mlp(X, y, X, y, n_classes=2,
                                   training_params={'max_epochs': 2})
        assert not history.stopped_early
        assert history.epochs_run == 2

    def test_best_weights_restored_at_cap(self):
        X_train, y_train = create_toy_problem(seed=0)
        X_val, y_val     = create_toy_problem(seed=1)

        model, history = train_mlp(X_train, y_train, X_val, y_val, n_classes=2,
                                   training_params={'max_epochs': 8})
        val_loss = model.evaluate(X_val.astype('float32'), to_categorical(y_val, 2), verbose=0)[0]

        assert not history.stopped_early
        assert val_loss == pytest.approx(min(e.val_loss for e in history.events), rel=1e-4)

    def test_divergence_raises(self):
        X, y = create_toy_problem()
        X[0, 0] = np.inf
        with pytest.raises(TrainingDivergedError):
            train_mlp(X, y, X, y, n_classes=2, training_params={'max_epochs': 3})
