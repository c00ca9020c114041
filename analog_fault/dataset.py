"""
dataset.py — Tabular Dataset I/O, Schema Checks and Split Roles

A dataset is a ``pandas.DataFrame`` with feature columns first and the
label column last. The role of a frame within one run (training,
validation, test or inference population) is stored in
``DataFrame.attrs['split']`` so that fitting steps can refuse to fit on
anything other than training data.
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from .exceptions import LeakageGuardError, SchemaError
from .features import normalise_column_names


logger = logging.getLogger(__name__)

SPLIT_ATTR = 'split'
TRAIN      = 'train'
VALIDATION = 'validation'
TEST       = 'test'
INFERENCE  = 'inference'


# ── Split Roles ────────────────────────────────────────────────────────────────

def tag_split(df, role):
    """Tag ``df`` in place with a split role and return it."""
    df.attrs[SPLIT_ATTR] = role
    return df


def split_role(df):
    """Split role of ``df``, or None for an untagged population."""
    return df.attrs.get(SPLIT_ATTR)


def require_training_split(df, operation):
    """
    Guard for fit semantics.

    Untagged frames and frames tagged as training data pass; anything
    else raises LeakageGuardError.
    """
    role = split_role(df)
    if role not in (None, TRAIN):
        raise LeakageGuardError(operation, role)


def split_dataset(df, fraction, label_col='label', random_state=42,
                  holdout_role=TEST):
    """
    Stratified two-way split.

    Parameters
    ----------
    df           : DataFrame — dataset to partition
    fraction     : float     — share of rows sent to the holdout frame
    label_col    : str       — stratification column
    random_state : int       — shuffle seed
    holdout_role : str       — role tag for the holdout frame (test/validation)

    Returns
    -------
    train, holdout : DataFrames tagged 'train' and ``holdout_role``
    """
    train, holdout = train_test_split(
        df,
        test_size=fraction,
        stratify=df[label_col],
        random_state=random_state
    )
    train   = tag_split(train.reset_index(drop=True), TRAIN)
    holdout = tag_split(holdout.reset_index(drop=True), holdout_role)
    return train, holdout


# ── Schema ─────────────────────────────────────────────────────────────────────

def check_feature_schema(df, feature_names, label_col='label', require_label=True):
    """
    Verify that ``df`` holds exactly ``feature_names`` in order, label last.

    Raises
    ------
    SchemaError — on missing, extra or misordered columns
    """
    expected = list(feature_names) + ([label_col] if require_label else [])
    actual   = list(df.columns)

    missing = [c for c in expected if c not in actual]
    if missing:
        raise SchemaError("Missing columns", missing)

    extra = [c for c in actual if c not in expected]
    if extra:
        raise SchemaError("Unexpected columns", extra)

    if actual != expected:
        raise SchemaError("Columns out of order, expected", expected)


def order_columns(df, feature_names, label_col='label'):
    """Return a copy with features in the given order and the label last."""
    columns = list(feature_names)
    if label_col in df.columns:
        columns.append(label_col)
    out = df.loc[:, columns].copy()
    out.attrs = dict(df.attrs)
    return out


def class_distribution(df, label_col='label'):
    """Per-class row counts, sorted by label."""
    return df[label_col].value_counts().sort_index()


def encode_labels(labels, label_names):
    """
    Map label names to integer indices in ``label_names`` order.

    Raises
    ------
    SchemaError — if a label is not part of ``label_names``
    """
    index   = {name: i for i, name in enumerate(label_names)}
    unknown = sorted(set(labels) - set(index))
    if unknown:
        raise SchemaError("Labels not in the fixed label set", unknown)
    return np.array([index[label] for label in labels], dtype=int)


# ── File I/O ───────────────────────────────────────────────────────────────────

def load_dataset(file_path, label_col='label', feature_names=None):
    """
    Read a CSV feature table.

    Column names are normalised to the canonical snake_case names. If
    ``feature_names`` is given the file must match that schema exactly.

    Parameters
    ----------
    file_path     : str  — CSV path
    label_col     : str  — label column name
    feature_names : list — expected ordered feature columns (optional)

    Returns
    -------
    df : DataFrame (untagged)
    """
    df = pd.read_csv(file_path)
    df = normalise_column_names(df, label_col=label_col)

    if feature_names is not None:
        check_feature_schema(df, feature_names, label_col)

    logger.info("Loaded %d rows x %d columns from %s", len(df), df.shape[1], file_path)
    return df


def save_dataset(df, file_path, feature_names, label_col='label'):
    """Write a feature table with features first and the label last."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    order_columns(df, feature_names, label_col).to_csv(path, index=False)
    logger.info("Saved %d rows to %s", len(df), path)
    return path
