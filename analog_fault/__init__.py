"""
analog_fault — Analog Circuit Fault Classification

Diagnoses analog-circuit faults from summary statistics of measured
signals with a feature-engineering front end and an MLP classifier.

Modules
-------
features   : Column normalisation, derived ratio features, correlation pruning
outliers   : IQR winsorization fitted on the training split
balancing  : SMOTE oversampling of the minority (Normal) class
scaling    : Per-feature standardisation with persisted parameters
anova      : One-way ANOVA significance table per feature
mlp        : MLP architecture, explicit-mode forward pass, training loop
training   : Full preprocessing + classifier fit on one training split
evaluation : Held-out metrics, confusion matrix, k-fold cross-validation
inference  : Model artifact persistence and single-vector prediction
pipeline   : Stage runners (prepare / train / cv / anova)
dataset    : CSV I/O, schema checks, split-role tags
config     : Default hyperparameters and JSON overrides
logger     : Package logging setup
"""

from .config      import DEFAULT_CONFIG, make_config, load_config
from .exceptions  import AnalogFaultError, SchemaError, DegenerateFeatureError, LeakageGuardError, ArtifactMismatchError, TrainingDivergedError, ConvergenceWarning, DegenerateFeatureWarning
from .features    import RAW_FEATURES, DERIVED_FEATURES, ENGINEERED_FEATURES, engineer_features, correlation_pruning
from .outliers    import CappingBounds, fit_capping, apply_capping, cap_outliers
from .balancing   import balance_classes
from .scaling     import ScalingParameters, fit_scaling, apply_scaling, invert_scaling
from .anova       import anova_table
from .mlp         import build_mlp, forward, train_mlp, EpochEvent, TrainingHistory
from .training    import FittedPipeline, fit_pipeline
from .evaluation  import holdout_evaluate, make_folds, cross_validate
from .inference   import ModelArtifact, save_artifact, load_artifact, predict, predict_proba
from .logger      import setup_logging

__version__ = '0.1.0'
