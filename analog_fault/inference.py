"""
inference.py — Model Artifact Persistence and Single-Vector Prediction

An artifact directory holds everything prediction needs and nothing is
refit at inference time:

    <dir>/model.keras        — Keras network (architecture + weights)
    <dir>/preprocessing.h5   — scaling center/scale, capping bounds,
                               ordered feature names, ordered label names,
                               derived-feature epsilon

Usage
-----
    from analog_fault.inference import load_artifact, predict

    artifact = load_artifact('models/mlp')
    label    = predict(artifact, {'mean': 0.12, 'std': 1.3, ...})
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import h5py
import numpy as np
import pandas as pd
from tensorflow.keras.models import load_model

from .dataset import INFERENCE, tag_split
from .exceptions import ArtifactMismatchError, SchemaError
from .features import DERIVED_FEATURES, EPSILON, RAW_FEATURES, engineer_features, normalise_column_names
from .mlp import predict_proba as model_proba
from .outliers import CappingBounds, apply_capping
from .scaling import ScalingParameters, apply_scaling


logger = logging.getLogger(__name__)

MODEL_FILE         = 'model.keras'
PREPROCESSING_FILE = 'preprocessing.h5'


@dataclass(frozen=True)
class ModelArtifact:
    """Trained network with the exact preprocessing it was trained behind."""
    model:         object
    feature_names: tuple
    label_names:   tuple
    scaling:       ScalingParameters
    capping:       CappingBounds = None
    epsilon:       float = EPSILON


def artifact_from_fitted(fitted, epsilon=EPSILON):
    """Freeze a FittedPipeline into a ModelArtifact."""
    return ModelArtifact(
        model=fitted.model,
        feature_names=tuple(fitted.feature_names),
        label_names=tuple(str(label) for label in fitted.label_names),
        scaling=fitted.scaling,
        capping=fitted.capping,
        epsilon=epsilon
    )


# ── HDF5 I/O ──────────────────────────────────────────────────────────────────

def _write_strings(group, name, values):
    group.create_dataset(name, data=np.array([str(v) for v in values], dtype=object),
                         dtype=h5py.string_dtype(encoding='utf-8'))


def _read_strings(group, name):
    return tuple(group[name].asstr()[:].tolist())


def save_artifact(artifact, directory, compression='gzip', compression_opts=6):
    """
    Write an artifact directory.

    Parameters
    ----------
    artifact         : ModelArtifact
    directory        : str — output directory (created if missing)
    compression      : str — HDF5 compression for numeric arrays
    compression_opts : int — compression level (1–9)

    Returns
    -------
    path : Path — the artifact directory
    """
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)

    artifact.model.save(str(path / MODEL_FILE))

    with h5py.File(path / PREPROCESSING_FILE, 'w') as hdf:
        hdf.attrs['epsilon'] = artifact.epsilon
        _write_strings(hdf, 'feature_names', artifact.feature_names)
        _write_strings(hdf, 'label_names',   artifact.label_names)

        grp = hdf.create_group('scaling')
        grp.create_dataset('center', data=artifact.scaling.center,
                           compression=compression, compression_opts=compression_opts)
        grp.create_dataset('scale',  data=artifact.scaling.scale,
                           compression=compression, compression_opts=compression_opts)
        _write_strings(grp, 'degenerate', artifact.scaling.degenerate)

        if artifact.capping is not None:
            grp = hdf.create_group('capping')
            grp.create_dataset('lower', data=artifact.capping.lower,
                               compression=compression, compression_opts=compression_opts)
            grp.create_dataset('upper', data=artifact.capping.upper,
                               compression=compression, compression_opts=compression_opts)
            _write_strings(grp, 'degenerate', artifact.capping.degenerate)

    logger.info("Saved model artifact to %s", path)
    return path


def _readonly(values):
    arr = np.array(values, dtype=float)
    arr.flags.writeable = False
    return arr


def load_artifact(directory):
    """
    Load an artifact directory written by ``save_artifact``.

    Raises
    ------
    ArtifactMismatchError — network width disagrees with the persisted
                            feature or label lists
    """
    path  = Path(directory)
    model = load_model(str(path / MODEL_FILE), compile=False)

    with h5py.File(path / PREPROCESSING_FILE, 'r') as hdf:
        feature_names = _read_strings(hdf, 'feature_names')
        label_names   = _read_strings(hdf, 'label_names')
        epsilon       = float(hdf.attrs['epsilon'])

        grp     = hdf['scaling']
        scaling = ScalingParameters(
            feature_names=feature_names,
            center=_readonly(grp['center'][:]),
            scale=_readonly(grp['scale'][:]),
            degenerate=_read_strings(grp, 'degenerate')
        )

        capping = None
        if 'capping' in hdf:
            grp     = hdf['capping']
            capping = CappingBounds(
                feature_names=feature_names,
                lower=_readonly(grp['lower'][:]),
                upper=_readonly(grp['upper'][:]),
                degenerate=_read_strings(grp, 'degenerate')
            )

    n_inputs, n_outputs = model.input_shape[-1], model.output_shape[-1]
    if n_inputs != len(feature_names):
        raise ArtifactMismatchError(
            f"Model expects {n_inputs} inputs but the artifact lists {len(feature_names)} features")
    if n_outputs != len(label_names):
        raise ArtifactMismatchError(
            f"Model has {n_outputs} outputs but the artifact lists {len(label_names)} labels")
    if len(scaling.center) != len(feature_names):
        raise ArtifactMismatchError("Scaling parameters do not match the feature list")

    return ModelArtifact(model, feature_names, label_names, scaling, capping, epsilon)


# ── Prediction ─────────────────────────────────────────────────────────────────

def _as_frame(values):
    """Mapping, Series or DataFrame as-is; positional vectors in ``RAW_FEATURES`` order."""
    if isinstance(values, pd.DataFrame):
        return values
    if isinstance(values, pd.Series):
        return values.to_frame().T
    if isinstance(values, Mapping):
        return pd.DataFrame([dict(values)])

    vector = np.asarray(values, dtype=object)
    if vector.ndim != 1 or len(vector) != len(RAW_FEATURES):
        raise SchemaError(
            f"Positional input must be a single vector of {len(RAW_FEATURES)} raw values "
            f"in this order, or a mapping keyed by feature name", RAW_FEATURES)
    return pd.DataFrame([dict(zip(RAW_FEATURES, vector))])


def model_input(artifact, values, cap=True):
    """
    Turn raw (or already engineered) feature rows into scaled model input.

    Rows carrying the full raw schema are re-engineered with the artifact's
    epsilon; rows carrying the artifact's engineered features are used
    as-is. Capping is optional per deployment; scaling always uses the
    persisted parameters.

    Raises
    ------
    ArtifactMismatchError — input matches neither schema, or the artifact
                            lists features the engineer cannot produce
    SchemaError           — invalid (missing / non-finite) values
    """
    frame         = normalise_column_names(_as_frame(values))
    feature_names = list(artifact.feature_names)

    if all(c in frame.columns for c in RAW_FEATURES):
        unknown = [f for f in feature_names if f not in RAW_FEATURES + DERIVED_FEATURES]
        if unknown:
            raise ArtifactMismatchError(f"Artifact features cannot be engineered: {unknown}")
        engineered = engineer_features(frame, retained=feature_names,
                                       epsilon=artifact.epsilon, require_label=False)
    elif all(f in frame.columns for f in feature_names):
        engineered = frame[feature_names].apply(pd.to_numeric, errors='coerce')
        invalid    = [f for f in feature_names if not np.isfinite(engineered[f].to_numpy()).all()]
        if invalid:
            raise SchemaError("Missing, non-numeric or non-finite values in", invalid)
    else:
        missing = [f for f in feature_names if f not in frame.columns]
        raise ArtifactMismatchError(
            f"Input matches neither the raw schema nor the artifact features, missing {missing}")

    engineered = tag_split(engineered[feature_names].astype(float), INFERENCE)
    if cap and artifact.capping is not None:
        engineered = apply_capping(engineered, artifact.capping)

    return apply_scaling(engineered, artifact.scaling)[feature_names].to_numpy(dtype=float)


def predict_frame(artifact, df, cap=True):
    """
    Predict every row of ``df``.

    Returns
    -------
    predictions : DataFrame — 'predicted' label plus one probability column per label
    """
    probs = model_proba(artifact.model, model_input(artifact, df, cap=cap))
    out   = pd.DataFrame(probs, columns=list(artifact.label_names))
    out.insert(0, 'predicted', [artifact.label_names[i] for i in np.argmax(probs, axis=1)])
    return out


def predict_proba(artifact, values, cap=True):
    """Class probabilities for a single feature vector, keyed by label name."""
    probs = model_proba(artifact.model, model_input(artifact, values, cap=cap))
    if len(probs) != 1:
        raise SchemaError(f"Expected a single feature vector, got {len(probs)} rows")
    return dict(zip(artifact.label_names, probs[0].astype(float).tolist()))


def predict(artifact, values, cap=True):
    """Label of the most probable class for a single feature vector."""
    probs = predict_proba(artifact, values, cap=cap)
    return max(artifact.label_names, key=probs.__getitem__)
