"""
pipeline.py — End-to-End Stage Runners

Stages, each reading the previous stage's checkpoint:

    prepare : raw stats CSV → engineered.csv (+ prepared.csv, pruning report)
    train   : engineered.csv → held-out metrics + model artifact
    cv      : engineered.csv → k-fold accuracies
    anova   : prepared.csv   → per-feature F-test table

``engineered.csv`` is unbalanced so that training and cross-validation can
balance inside their own training splits. ``prepared.csv`` is the
engineered, capped and balanced table used by the ANOVA side-channel.
"""

import logging
from pathlib import Path

import pandas as pd

from .anova import anova_table
from .balancing import balance_classes
from .config import make_config
from .dataset import class_distribution, encode_labels, load_dataset, save_dataset, split_dataset
from .evaluation import classification_summary, cross_validate, evaluate_fitted
from .features import DERIVED_FEATURES, ENGINEERED_FEATURES, RAW_FEATURES, correlation_pruning, engineer_features
from .inference import artifact_from_fitted, save_artifact
from .outliers import cap_outliers
from .training import fit_pipeline


logger = logging.getLogger(__name__)

ENGINEERED_FILE = 'engineered.csv'
PREPARED_FILE   = 'prepared.csv'
PRUNING_FILE    = 'correlation_pruning.csv'


def _banner(title):
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


def _engineered_frame(data, cfg):
    if isinstance(data, pd.DataFrame):
        return data
    return load_dataset(data, label_col=cfg['label_column'], feature_names=ENGINEERED_FEATURES)


# ── Prepare ────────────────────────────────────────────────────────────────────

def run_prepare(input_path, output_dir='outputs', cfg=None):
    """
    Feature-engineer a raw statistics file and write the checkpoints.

    Returns
    -------
    dict with keys 'engineered', 'prepared', 'pruning', 'paths'
    """
    cfg       = cfg or make_config()
    label_col = cfg['label_column']
    out       = Path(output_dir)

    _banner("PHASE 1: FEATURE ENGINEERING")
    raw        = load_dataset(input_path, label_col=label_col)
    engineered = engineer_features(raw, label_col=label_col,
                                   epsilon=cfg['features']['epsilon'])
    logger.info("Class distribution:\n%s", class_distribution(engineered, label_col).to_string())

    candidates  = RAW_FEATURES + DERIVED_FEATURES
    full        = engineer_features(raw, label_col=label_col, retained=candidates,
                                    epsilon=cfg['features']['epsilon'])
    retained, pruning = correlation_pruning(full, candidates,
                                            threshold=cfg['features']['correlation_threshold'])
    if retained != ENGINEERED_FEATURES:
        logger.info("Correlation analysis on this data would retain %s", retained)

    _banner("PHASE 2: OUTLIER CAPPING & BALANCING")
    prepared = engineered
    if cfg['outliers']['enabled']:
        prepared, _ = cap_outliers(prepared, ENGINEERED_FEATURES,
                                   whisker=cfg['outliers']['whisker'],
                                   strict=cfg['outliers']['strict'])
    if cfg['balancing']['enabled']:
        prepared = balance_classes(
            prepared, ENGINEERED_FEATURES,
            label_col=label_col,
            minority_label=cfg['minority_label'],
            target_ratio=cfg['balancing']['target_ratio'],
            k_neighbors=cfg['balancing']['k_neighbors'],
            random_state=cfg['random_state']
        )
    logger.info("Prepared class distribution:\n%s",
                class_distribution(prepared, label_col).to_string())

    out.mkdir(parents=True, exist_ok=True)
    paths = {
        'engineered': save_dataset(engineered, out / ENGINEERED_FILE, ENGINEERED_FEATURES, label_col),
        'prepared':   save_dataset(prepared, out / PREPARED_FILE, ENGINEERED_FEATURES, label_col),
        'pruning':    out / PRUNING_FILE,
    }
    pruning.to_csv(paths['pruning'], index=False)

    return {'engineered': engineered, 'prepared': prepared, 'pruning': pruning, 'paths': paths}


# ── Train ──────────────────────────────────────────────────────────────────────

def run_training(data, artifact_dir=None, cfg=None, listener=None):
    """
    Hold out a test split, train on the rest, evaluate and save the artifact.

    Parameters
    ----------
    data         : str or DataFrame — engineered dataset (path or frame)
    artifact_dir : str              — where to write the artifact (None = don't save)
    cfg          : dict             — pipeline config
    listener     : callable         — per-epoch EpochEvent observer

    Returns
    -------
    dict with keys 'fitted', 'metrics', 'report', 'history', 'artifact_path'
    """
    cfg       = cfg or make_config()
    label_col = cfg['label_column']
    df        = _engineered_frame(data, cfg)

    _banner("PHASE 3: TRAINING")
    train, test = split_dataset(df, cfg['split']['test_fraction'],
                                label_col=label_col, random_state=cfg['random_state'])
    kwargs = {'listener': listener} if listener is not None else {}
    fitted = fit_pipeline(train, cfg, **kwargs)

    _banner("PHASE 4: HELD-OUT EVALUATION")
    metrics = evaluate_fitted(fitted, test, label_col)
    report  = classification_summary(encode_labels(test[label_col], fitted.label_names),
                                     metrics['y_pred'], fitted.label_names)
    logger.info("Test loss %.4f, accuracy %.4f", metrics['loss'], metrics['accuracy'])
    logger.info("Confusion matrix:\n%s", metrics['confusion_matrix'].to_string())

    artifact_path = None
    if artifact_dir is not None:
        artifact_path = save_artifact(
            artifact_from_fitted(fitted, epsilon=cfg['features']['epsilon']), artifact_dir)
        fitted.history.to_frame().to_csv(Path(artifact_dir) / 'history.csv', index=False)
        metrics['confusion_matrix'].to_csv(Path(artifact_dir) / 'confusion_matrix.csv')

    return {
        'fitted':        fitted,
        'metrics':       metrics,
        'report':        report,
        'history':       fitted.history,
        'artifact_path': artifact_path,
    }


# ── Cross-Validation ───────────────────────────────────────────────────────────

def run_cross_validation(data, k=None, cfg=None):
    """K-fold cross-validation on an engineered dataset (path or frame)."""
    cfg = cfg or make_config()
    _banner("PHASE 5: CROSS-VALIDATION")
    return cross_validate(_engineered_frame(data, cfg), k=k, cfg=cfg)


# ── ANOVA ──────────────────────────────────────────────────────────────────────

def run_anova(data, output_dir=None, cfg=None):
    """Per-feature ANOVA on the prepared dataset (path or frame)."""
    cfg   = cfg or make_config()
    _banner("ANOVA: FEATURE SIGNIFICANCE")
    df    = _engineered_frame(data, cfg)
    table = anova_table(df, ENGINEERED_FEATURES, label_col=cfg['label_column'],
                        alpha=cfg['anova']['alpha'])
    logger.info("\n%s", table.to_string(index=False))

    if output_dir is not None:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        table.to_csv(out / 'anova.csv', index=False)

    return table
