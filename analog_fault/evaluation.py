"""
evaluation.py — Held-Out Metrics and K-Fold Cross-Validation

Confusion matrices are indexed by the fixed label ordering with actual
classes on the rows and predicted classes on the columns, so row sums are
per-actual-class counts and column sums are per-predicted-class counts.

Cross-validation partitions the engineered dataset before any capping,
balancing or scaling; each fold refits all of them, plus a freshly
initialised network, on the remaining k-1 folds.
"""

import logging

import numpy as np
import pandas as pd
from sklearn.metrics import classification_report, confusion_matrix
from sklearn.model_selection import KFold, StratifiedKFold

from .config import make_config
from .dataset import TEST, TRAIN, encode_labels, tag_split
from .mlp import log_epoch, predict_proba
from .training import fit_pipeline, resolve_label_names


logger = logging.getLogger(__name__)


# ── Held-Out Evaluation ────────────────────────────────────────────────────────

def confusion_table(y_true, y_pred, label_names):
    """
    Confusion matrix as a labelled DataFrame.

    Parameters
    ----------
    y_true, y_pred : arrays — integer class indices
    label_names    : list   — fixed label ordering

    Returns
    -------
    cm : DataFrame — rows 'actual', columns 'predicted'
    """
    cm = confusion_matrix(y_true, y_pred, labels=list(range(len(label_names))))
    return pd.DataFrame(
        cm,
        index=pd.Index(label_names, name='actual'),
        columns=pd.Index(label_names, name='predicted')
    )


def holdout_evaluate(model, X_test, y_test, label_names, batch_size=256):
    """
    Loss, accuracy and confusion matrix on a held-out split.

    The forward pass runs in evaluation mode. The reported loss is the
    plain (unsmoothed, unregularised) categorical cross-entropy.

    Parameters
    ----------
    model       : trained Keras model
    X_test      : array — scaled features (n, n_features)
    y_test      : array — integer class indices (n,)
    label_names : list  — fixed label ordering

    Returns
    -------
    dict with keys 'loss', 'accuracy', 'confusion_matrix', 'y_pred'
    """
    y_test = np.asarray(y_test, dtype=int)
    probs  = predict_proba(model, X_test, batch_size=batch_size)
    y_pred = np.argmax(probs, axis=1)

    eps     = np.finfo('float32').eps
    true_p  = np.clip(probs[np.arange(len(y_test)), y_test], eps, 1.0)

    return {
        'loss':             float(-np.mean(np.log(true_p))),
        'accuracy':         float(np.mean(y_pred == y_test)),
        'confusion_matrix': confusion_table(y_test, y_pred, label_names),
        'y_pred':           y_pred,
    }


def evaluate_fitted(fitted, test_df, label_col='label'):
    """``holdout_evaluate`` for a FittedPipeline on an engineered test frame."""
    X_test = fitted.transform(test_df)
    y_test = encode_labels(test_df[label_col], fitted.label_names)
    return holdout_evaluate(fitted.model, X_test, y_test, fitted.label_names)


def classification_summary(y_true, y_pred, label_names):
    """Per-class precision / recall / F1 / support as a DataFrame."""
    report = classification_report(
        y_true, y_pred,
        labels=list(range(len(label_names))),
        target_names=list(label_names),
        output_dict=True,
        zero_division=0
    )
    return pd.DataFrame(report).T


# ── Cross-Validation ───────────────────────────────────────────────────────────

def make_folds(labels, k, random_state=42, stratified=True):
    """
    Partition row indices into ``k`` disjoint, exhaustive folds.

    Parameters
    ----------
    labels       : array — class labels (used for stratification)
    k            : int   — number of folds
    random_state : int   — shuffle seed
    stratified   : bool  — preserve class proportions per fold

    Returns
    -------
    folds : list of k sorted index arrays
    """
    labels   = np.asarray(labels)
    splitter = (StratifiedKFold if stratified else KFold)(
        n_splits=k, shuffle=True, random_state=random_state)
    return [np.sort(test_idx)
            for _, test_idx in splitter.split(np.zeros(len(labels)), labels)]


def cross_validate(df, k=None, cfg=None, listener=log_epoch):
    """
    K-fold cross-validation of the full training chain.

    Parameters
    ----------
    df       : DataFrame — engineered dataset (not capped, balanced or scaled)
    k        : int       — folds (default cfg['evaluation']['folds'])
    cfg      : dict      — pipeline config
    listener : callable  — per-epoch EpochEvent observer

    Returns
    -------
    dict with keys
        'fold_accuracies' : list of float, one per fold
        'mean_accuracy'   : float
        'std_accuracy'    : float
        'folds'           : list of held-out index arrays
    """
    cfg         = cfg or make_config()
    k           = k or cfg['evaluation']['folds']
    label_col   = cfg['label_column']
    label_names = resolve_label_names(df, cfg)
    folds       = make_folds(df[label_col].to_numpy(), k,
                             random_state=cfg['random_state'],
                             stratified=cfg['evaluation']['stratified'])

    accuracies = []
    for i, test_idx in enumerate(folds, start=1):
        train_idx = np.setdiff1d(np.arange(len(df)), test_idx)
        train_df  = tag_split(df.iloc[train_idx].reset_index(drop=True), TRAIN)
        test_df   = tag_split(df.iloc[test_idx].reset_index(drop=True), TEST)

        fitted  = fit_pipeline(train_df, cfg, label_names=label_names, listener=listener)
        metrics = evaluate_fitted(fitted, test_df, label_col)
        accuracies.append(metrics['accuracy'])

        logger.info("Fold %d/%d: accuracy %.4f (%d held out)",
                    i, k, metrics['accuracy'], len(test_idx))

    mean_acc = float(np.mean(accuracies))
    logger.info("Cross-validated accuracy: %.4f ± %.4f", mean_acc, float(np.std(accuracies)))

    return {
        'fold_accuracies': accuracies,
        'mean_accuracy':   mean_acc,
        'std_accuracy':    float(np.std(accuracies)),
        'folds':           folds,
    }
