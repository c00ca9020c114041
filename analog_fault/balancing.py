"""
balancing.py — Minority-Class Oversampling (SMOTE)

The healthy ("Normal") class is a single class set against the union of
every fault class, so it is structurally under-represented even when
per-class counts look similar. SMOTE raises only that class until

    n_minority <= target_ratio * sum(n_other_classes)

Majority classes are never touched, and balancing is refused on anything
but the training split.
"""

import logging
import math

import pandas as pd
from imblearn.over_sampling import SMOTE

from .dataset import TRAIN, require_training_split, tag_split
from .exceptions import SchemaError


logger = logging.getLogger(__name__)


def target_minority_count(counts, minority_label, target_ratio):
    """
    Number of minority samples required by ``target_ratio``.

    Parameters
    ----------
    counts         : Series — per-class counts
    minority_label : str    — class to oversample
    target_ratio   : float  — minority / (sum of all other classes)

    Returns
    -------
    target : int — floor(target_ratio * others), never below the current count
    """
    others = int(counts.drop(minority_label).sum())
    target = math.floor(target_ratio * others)
    return max(target, int(counts[minority_label]))


def balance_classes(df, feature_names, label_col='label', minority_label='Normal',
                    target_ratio=0.5, k_neighbors=5, random_state=42):
    """
    Oversample the minority class with SMOTE.

    Synthetic rows interpolate between a minority sample and one of its
    ``k_neighbors`` nearest minority neighbours, so they stay inside the
    local neighbourhood of real minority data. Real rows come first in the
    output, synthetic rows after them.

    Parameters
    ----------
    df             : DataFrame — training split (features + label)
    feature_names  : list      — columns used for neighbour search
    label_col      : str       — label column
    minority_label : str       — class to oversample
    target_ratio   : float     — minority / sum of other classes after balancing
    k_neighbors    : int       — SMOTE neighbourhood size (clipped to n_minority - 1)
    random_state   : int       — SMOTE seed

    Returns
    -------
    balanced : DataFrame — tagged 'train'

    Raises
    ------
    LeakageGuardError — ``df`` is tagged as a non-training split
    SchemaError       — label or minority class missing
    ValueError        — fewer than two minority samples to interpolate between
    """
    require_training_split(df, 'ClassBalancer')

    if label_col not in df.columns:
        raise SchemaError("Missing label column", [label_col])

    counts = df[label_col].value_counts()
    if minority_label not in counts.index:
        raise SchemaError("Minority class not present", [minority_label])

    n_minority = int(counts[minority_label])
    target     = target_minority_count(counts, minority_label, target_ratio)

    if target <= n_minority:
        logger.info("'%s' already at %d samples (target %d), no oversampling",
                    minority_label, n_minority, target)
        return tag_split(df.copy(), TRAIN)

    if n_minority < 2:
        raise ValueError(
            f"SMOTE needs at least 2 '{minority_label}' samples, got {n_minority}")

    smote = SMOTE(
        sampling_strategy={minority_label: target},
        k_neighbors=min(k_neighbors, n_minority - 1),
        random_state=random_state
    )
    X_res, y_res = smote.fit_resample(df[list(feature_names)], df[label_col])

    balanced = pd.DataFrame(X_res, columns=list(feature_names))
    balanced[label_col] = pd.Series(y_res).to_numpy()

    logger.info("SMOTE: '%s' %d -> %d (%d synthetic), %d rows total",
                minority_label, n_minority, target, target - n_minority, len(balanced))
    return tag_split(balanced, TRAIN)
