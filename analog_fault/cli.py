"""
cli.py — Command-Line Entry Point

    analog-fault prepare --data raw.csv --out outputs
    analog-fault train   --data outputs/engineered.csv --artifact models/mlp
    analog-fault cv      --data outputs/engineered.csv --folds 5
    analog-fault anova   --data outputs/prepared.csv --out outputs
    analog-fault predict --artifact models/mlp --data new_rows.csv --out predictions.csv
"""

import argparse
import logging

import pandas as pd

from .config import load_config
from .inference import load_artifact, predict_frame
from .logger import setup_logging
from .pipeline import run_anova, run_cross_validation, run_prepare, run_training


logger = logging.getLogger(__name__)


def _prepare(args, cfg):
    run_prepare(args.data, args.out, cfg)


def _train(args, cfg):
    if args.epochs:
        cfg['training']['max_epochs'] = args.epochs
    result = run_training(args.data, args.artifact, cfg)
    logger.info("Per-class report:\n%s", result['report'].to_string())


def _cv(args, cfg):
    if args.epochs:
        cfg['training']['max_epochs'] = args.epochs
    result = run_cross_validation(args.data, k=args.folds, cfg=cfg)
    logger.info("Fold accuracies: %s",
                ", ".join(f"{a:.4f}" for a in result['fold_accuracies']))


def _anova(args, cfg):
    run_anova(args.data, args.out, cfg)


def _predict(args, cfg):
    artifact    = load_artifact(args.artifact)
    rows        = pd.read_csv(args.data)
    predictions = predict_frame(artifact, rows, cap=not args.no_cap)

    if args.out:
        predictions.to_csv(args.out, index=False)
        logger.info("Wrote %d predictions to %s", len(predictions), args.out)
    else:
        logger.info("\n%s", predictions.to_string(index=False))


def build_parser():
    parser = argparse.ArgumentParser(
        prog="analog-fault",
        description="Analog-circuit fault diagnosis from summary signal statistics")
    parser.add_argument("--config", type=str, default=None, help="JSON file of config overrides")
    parser.add_argument("--log_file", type=str, default=None, help="Optional DEBUG log file")
    parser.add_argument("--verbose", action="store_true", help="Log per-epoch progress to the console")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("prepare", help="Engineer features and write checkpoints")
    p.add_argument("--data", required=True, type=str, help="Raw statistics CSV with a label column")
    p.add_argument("--out", default="outputs", type=str, help="Output directory")
    p.set_defaults(func=_prepare)

    p = sub.add_parser("train", help="Train, evaluate on a held-out split and save the artifact")
    p.add_argument("--data", required=True, type=str, help="Engineered CSV (engineered.csv)")
    p.add_argument("--artifact", default="models/mlp", type=str, help="Artifact output directory")
    p.add_argument("--epochs", default=None, type=int, help="Override the epoch cap")
    p.set_defaults(func=_train)

    p = sub.add_parser("cv", help="K-fold cross-validation")
    p.add_argument("--data", required=True, type=str, help="Engineered CSV (engineered.csv)")
    p.add_argument("--folds", default=None, type=int, help="Number of folds")
    p.add_argument("--epochs", default=None, type=int, help="Override the epoch cap")
    p.set_defaults(func=_cv)

    p = sub.add_parser("anova", help="Per-feature one-way ANOVA")
    p.add_argument("--data", required=True, type=str, help="Prepared CSV (prepared.csv)")
    p.add_argument("--out", default=None, type=str, help="Directory for anova.csv")
    p.set_defaults(func=_anova)

    p = sub.add_parser("predict", help="Predict fault labels with a saved artifact")
    p.add_argument("--artifact", required=True, type=str, help="Artifact directory")
    p.add_argument("--data", required=True, type=str, help="CSV of raw or engineered feature rows")
    p.add_argument("--out", default=None, type=str, help="Output CSV (default: log to console)")
    p.add_argument("--no_cap", action="store_true", help="Skip outlier capping at inference")
    p.set_defaults(func=_predict)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    cfg  = load_config(args.config)
    args.func(args, cfg)
    return 0
