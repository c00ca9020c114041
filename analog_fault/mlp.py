"""
mlp.py — Feed-Forward Neural Network for Fault Classification

Multi-layer perceptron over the engineered, scaled feature vector,
producing a probability distribution over the fixed fault-label set.

Architecture
------------
    Input        : (n_features,)
    Block 1      : Dense 128 → BatchNorm → LeakyReLU(0.1) → Dropout
    Block 2      : Dense 256 → BatchNorm → LeakyReLU(0.1) → Dropout
    Block 3      : Dense 128 → BatchNorm → LeakyReLU(0.1) → Dropout
    Block 4      : Dense  64 → BatchNorm → LeakyReLU(0.1)
    Output       : Dense n_classes, Softmax

    Dense layers : He-normal initialisation, L2 penalty 1e-3
    Loss         : categorical cross-entropy, label smoothing 0.1
    Optimiser    : Adam, lr 1e-3, halved after 10 stale epochs (floor 1e-4)
    Stopping     : 20 stale validation epochs (best weights restored), cap 300

Training vs. evaluation mode is never stored on the model: every forward
pass states it explicitly through ``model(x, training=...)``. Batch norm
uses batch statistics and dropout is active only when ``training=True``.
"""

import logging
import warnings
from dataclasses import asdict, dataclass, field

import numpy as np
import pandas as pd

import tensorflow as tf
from tensorflow.keras.models import Sequential
from tensorflow.keras import Input
from tensorflow.keras.layers import Dense, BatchNormalization, LeakyReLU, Dropout
from tensorflow.keras.optimizers import Adam
from tensorflow.keras.losses import CategoricalCrossentropy
from tensorflow.keras.regularizers import l2
from tensorflow.keras.callbacks import Callback, EarlyStopping, ReduceLROnPlateau
from tensorflow.keras.utils import to_categorical

from .config import DEFAULT_CONFIG
from .exceptions import ConvergenceWarning, TrainingDivergedError


logger = logging.getLogger(__name__)


# ── Model Definition ───────────────────────────────────────────────────────────

def build_mlp(n_features, n_classes,
              hidden_units=(128, 256, 128, 64), dropout_rate=0.3, dropout_blocks=3,
              l2_penalty=1e-3, leaky_slope=0.1, batchnorm_momentum=0.9,
              learning_rate=1e-3, label_smoothing=0.1):
    """
    Build and compile the fault-classification MLP.

    Parameters
    ----------
    n_features         : int   — width of the engineered feature vector
    n_classes          : int   — number of output classes
    hidden_units       : tuple — hidden block widths
    dropout_rate       : float — dropout after each of the first blocks
    dropout_blocks     : int   — number of leading blocks followed by dropout
    l2_penalty         : float — L2 coefficient on every Dense kernel
    leaky_slope        : float — LeakyReLU negative slope
    batchnorm_momentum : float — running-statistics momentum
    learning_rate      : float — Adam base learning rate
    label_smoothing    : float — cross-entropy label smoothing

    Returns
    -------
    model : compiled Keras Sequential model
    """
    layers = [Input(shape=(n_features,))]

    for i, units in enumerate(hidden_units):
        layers += [
            Dense(units, kernel_initializer='he_normal',
                  kernel_regularizer=l2(l2_penalty)),
            BatchNormalization(momentum=batchnorm_momentum),
            LeakyReLU(negative_slope=leaky_slope),
        ]
        if i < dropout_blocks:
            layers.append(Dropout(dropout_rate))

    layers.append(Dense(n_classes, activation='softmax',
                        kernel_regularizer=l2(l2_penalty)))

    model = Sequential(layers)
    model.compile(
        optimizer=Adam(learning_rate=learning_rate),
        loss=CategoricalCrossentropy(label_smoothing=label_smoothing),
        metrics=['accuracy']
    )
    return model


# ── Forward Pass ───────────────────────────────────────────────────────────────

def forward(model, X, training, batch_size=256):
    """
    Mini-batched forward pass in an explicit mode.

    Parameters
    ----------
    model      : Keras model
    X          : array (n, n_features)
    training   : bool — True = batch statistics + dropout,
                        False = running statistics, no dropout
    batch_size : int

    Returns
    -------
    probs : array (n, n_classes)
    """
    X = np.asarray(X, dtype='float32')
    if len(X) == 0:
        return np.empty((0, model.output_shape[-1]), dtype='float32')

    outputs = [np.asarray(model(X[i:i + batch_size], training=training))
               for i in range(0, len(X), batch_size)]
    return np.concatenate(outputs, axis=0)


def predict_proba(model, X, batch_size=256):
    """Class probabilities in evaluation mode."""
    return forward(model, X, training=False, batch_size=batch_size)


# ── Training Events ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EpochEvent:
    """Metrics observed at the end of one epoch (1-based ``epoch``)."""
    epoch:         int
    loss:          float
    val_loss:      float
    accuracy:      float
    val_accuracy:  float
    learning_rate: float


@dataclass
class TrainingHistory:
    events:        list = field(default_factory=list)
    stopped_early: bool = False

    @property
    def epochs_run(self):
        return len(self.events)

    @property
    def best_epoch(self):
        """Epoch with the lowest validation loss (None before any epoch)."""
        if not self.events:
            return None
        return min(self.events, key=lambda e: e.val_loss).epoch

    def to_frame(self):
        return pd.DataFrame([asdict(e) for e in self.events],
                            columns=list(EpochEvent.__dataclass_fields__))


def _current_learning_rate(model):
    return float(tf.convert_to_tensor(model.optimizer.learning_rate))


class EpochEventRecorder(Callback):
    """
    Emit one EpochEvent per epoch to an optional listener.

    Must run before ReduceLROnPlateau so the recorded learning rate is the
    one used during the epoch. A non-finite loss stops training; the
    caller turns that into a TrainingDivergedError.
    """

    def __init__(self, listener=None):
        super().__init__()
        self.listener = listener
        self.events   = []

    def on_epoch_end(self, epoch, logs=None):
        logs  = logs or {}
        event = EpochEvent(
            epoch=epoch + 1,
            loss=float(logs.get('loss', np.nan)),
            val_loss=float(logs.get('val_loss', np.nan)),
            accuracy=float(logs.get('accuracy', np.nan)),
            val_accuracy=float(logs.get('val_accuracy', np.nan)),
            learning_rate=_current_learning_rate(self.model)
        )
        self.events.append(event)

        if self.listener is not None:
            self.listener(event)

        if not (np.isfinite(event.loss) and np.isfinite(event.val_loss)):
            self.model.stop_training = True


def log_epoch(event):
    """Default listener: one DEBUG line per epoch."""
    logger.debug("epoch %3d  loss=%.4f  val_loss=%.4f  acc=%.3f  val_acc=%.3f  lr=%.2e",
                 event.epoch, event.loss, event.val_loss,
                 event.accuracy, event.val_accuracy, event.learning_rate)


# ── Training ───────────────────────────────────────────────────────────────────

def train_mlp(X_train, y_train, X_val, y_val, n_classes,
              model_params=None, training_params=None,
              listener=log_epoch, random_state=42, verbose=0):
    """
    Train a freshly initialised MLP with early stopping.

    Parameters
    ----------
    X_train, X_val  : arrays — scaled features (n, n_features)
    y_train, y_val  : arrays — integer class indices (n,)
    n_classes       : int    — size of the label set
    model_params    : dict   — keyword arguments for ``build_mlp``
                               (the 'model' config section)
    training_params : dict   — the 'training' config section
    listener        : callable(EpochEvent) — per-epoch observer (None = silent)
    random_state    : int    — seed for weights, dropout and shuffling
    verbose         : int    — Keras progress output

    Returns
    -------
    model   : trained Keras model carrying the best validation-loss weights
    history : TrainingHistory

    Raises
    ------
    TrainingDivergedError — training or validation loss became NaN/inf

    Warns
    -----
    ConvergenceWarning — epoch cap reached without early stopping
    """
    mp = dict(DEFAULT_CONFIG['model'], **(model_params or {}))
    tp = dict(DEFAULT_CONFIG['training'], **(training_params or {}))

    tf.keras.utils.set_random_seed(random_state)

    model = build_mlp(
        np.shape(X_train)[1], n_classes,
        hidden_units=tuple(mp['hidden_units']),
        dropout_rate=mp['dropout_rate'],
        dropout_blocks=mp['dropout_blocks'],
        l2_penalty=mp['l2_penalty'],
        leaky_slope=mp['leaky_slope'],
        batchnorm_momentum=mp['batchnorm_momentum'],
        learning_rate=tp['learning_rate'],
        label_smoothing=tp['label_smoothing']
    )

    recorder   = EpochEventRecorder(listener)
    early_stop = EarlyStopping(monitor='val_loss', patience=tp['early_stop_patience'],
                               restore_best_weights=True)
    callbacks  = [
        recorder,
        ReduceLROnPlateau(monitor='val_loss', factor=tp['lr_factor'],
                          patience=tp['lr_patience'], min_lr=tp['min_learning_rate']),
        early_stop,
    ]

    model.fit(
        np.asarray(X_train, dtype='float32'), to_categorical(y_train, n_classes),
        validation_data=(np.asarray(X_val, dtype='float32'), to_categorical(y_val, n_classes)),
        epochs=tp['max_epochs'],
        batch_size=tp['batch_size'],
        callbacks=callbacks,
        verbose=verbose
    )

    history = TrainingHistory(events=recorder.events,
                              stopped_early=early_stop.stopped_epoch > 0)

    for event in history.events:
        if not (np.isfinite(event.loss) and np.isfinite(event.val_loss)):
            raise TrainingDivergedError(event.epoch, event.loss)

    if history.stopped_early:
        logger.info("Early stop after %d epochs (best epoch %d)",
                    history.epochs_run, history.best_epoch)
    else:
        message = (f"Reached the {tp['max_epochs']}-epoch cap without early stopping "
                   f"(best validation epoch {history.best_epoch})")
        logger.warning(message)
        warnings.warn(message, ConvergenceWarning, stacklevel=2)

    return model, history
