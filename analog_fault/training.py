"""
training.py — Fit the Full Preprocessing + Classifier Chain on One Split

Every fitted quantity (capping bounds, SMOTE samples, scaling parameters,
network weights) comes from the training population handed to
``fit_pipeline``. Validation and test frames are only ever transformed.

    train ─┬─ fit_capping ─ apply ─ balance_classes ─ fit_scaling ─ apply ─┐
           │                                                              train_mlp
    val  ──┴──────────────── apply_capping ─────────────── apply_scaling ─┘
"""

import logging
from dataclasses import dataclass

from .balancing import balance_classes
from .config import make_config
from .dataset import VALIDATION, TRAIN, encode_labels, require_training_split, split_dataset, tag_split
from .features import ENGINEERED_FEATURES
from .mlp import log_epoch, train_mlp
from .outliers import apply_capping, fit_capping
from .scaling import apply_scaling, fit_scaling


logger = logging.getLogger(__name__)


@dataclass
class FittedPipeline:
    """Trained classifier plus the preprocessing fitted alongside it."""
    model:         object
    feature_names: list
    label_names:   list
    scaling:       object
    capping:       object = None
    history:       object = None

    def transform(self, df):
        """Cap (if fitted) and scale an engineered frame into a model-ready array."""
        if self.capping is not None:
            df = apply_capping(df, self.capping)
        return apply_scaling(df, self.scaling)[self.feature_names].to_numpy(dtype=float)


def resolve_label_names(df, cfg):
    """Fixed label ordering: configured list, else sorted training labels."""
    if cfg.get('label_names'):
        return list(cfg['label_names'])
    return sorted(df[cfg['label_column']].unique().tolist())


def fit_pipeline(train_df, cfg=None, validation_df=None, feature_names=None,
                 label_names=None, listener=log_epoch):
    """
    Fit capping, balancing, scaling and a fresh MLP on ``train_df``.

    Parameters
    ----------
    train_df      : DataFrame — engineered training population (untagged or 'train')
    cfg           : dict      — pipeline config (defaults if None)
    validation_df : DataFrame — early-stopping split; carved out of
                                ``train_df`` when not given
    feature_names : list      — ordered model inputs (default ENGINEERED_FEATURES)
    label_names   : list      — fixed label order (default from config / data)
    listener      : callable  — per-epoch EpochEvent observer

    Returns
    -------
    fitted : FittedPipeline

    Raises
    ------
    LeakageGuardError — ``train_df`` is tagged as a non-training split
    """
    require_training_split(train_df, 'fit_pipeline')

    cfg           = cfg or make_config()
    label_col     = cfg['label_column']
    feature_names = list(feature_names or ENGINEERED_FEATURES)
    label_names   = list(label_names or resolve_label_names(train_df, cfg))
    seed          = cfg['random_state']

    if validation_df is None:
        train_df, validation_df = split_dataset(
            tag_split(train_df.copy(), TRAIN),
            cfg['split']['validation_fraction'],
            label_col=label_col,
            random_state=seed,
            holdout_role=VALIDATION
        )

    # Outlier capping
    capping = None
    if cfg['outliers']['enabled']:
        capping       = fit_capping(train_df, feature_names,
                                    whisker=cfg['outliers']['whisker'],
                                    strict=cfg['outliers']['strict'])
        train_df      = apply_capping(train_df, capping)
        validation_df = apply_capping(validation_df, capping)

    # Minority oversampling (training split only)
    if cfg['balancing']['enabled']:
        train_df = balance_classes(
            train_df, feature_names,
            label_col=label_col,
            minority_label=cfg['minority_label'],
            target_ratio=cfg['balancing']['target_ratio'],
            k_neighbors=cfg['balancing']['k_neighbors'],
            random_state=seed
        )

    # Standardisation
    scaling = fit_scaling(train_df, feature_names,
                          on_degenerate=cfg['scaling']['on_degenerate'])
    X_train = apply_scaling(train_df, scaling)[feature_names].to_numpy(dtype=float)
    X_val   = apply_scaling(validation_df, scaling)[feature_names].to_numpy(dtype=float)
    y_train = encode_labels(train_df[label_col], label_names)
    y_val   = encode_labels(validation_df[label_col], label_names)

    logger.info("Training on %d rows, validating on %d rows, %d features, %d classes",
                len(X_train), len(X_val), len(feature_names), len(label_names))

    model, history = train_mlp(
        X_train, y_train, X_val, y_val,
        n_classes=len(label_names),
        model_params=cfg['model'],
        training_params=cfg['training'],
        listener=listener,
        random_state=seed
    )

    return FittedPipeline(
        model=model,
        feature_names=feature_names,
        label_names=label_names,
        scaling=scaling,
        capping=capping,
        history=history
    )
