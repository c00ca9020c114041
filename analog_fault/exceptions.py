"""
exceptions.py — Error and Warning Taxonomy

Fatal conditions raise; recoverable ones warn.

    SchemaError            — missing, extra or misordered columns (fatal)
    DegenerateFeatureError — zero-variance / zero-IQR feature in strict mode
    LeakageGuardError      — fit semantics invoked on non-training data
    ArtifactMismatchError  — artifact feature/label lists disagree with input
    TrainingDivergedError  — non-finite loss during training (fatal)

    ConvergenceWarning       — epoch cap reached without early stopping
    DegenerateFeatureWarning — degenerate feature handled by fallback
"""


class AnalogFaultError(Exception):
    """Base class for all pipeline errors."""


class SchemaError(AnalogFaultError):
    """
    Raised when a dataset does not match the expected column schema.

    Parameters
    ----------
    message : str  — human readable description
    columns : list — offending column names (missing, extra or misordered)
    """

    def __init__(self, message, columns=None):
        self.columns = list(columns or [])
        if self.columns:
            message = f"{message}: {self.columns}"
        super().__init__(message)


class DegenerateFeatureError(AnalogFaultError):
    """Raised for zero-variance or zero-IQR features when fallbacks are disabled."""

    def __init__(self, message, features=None):
        self.features = list(features or [])
        if self.features:
            message = f"{message}: {self.features}"
        super().__init__(message)


class LeakageGuardError(AnalogFaultError):
    """Raised when a fitting step is applied to a validation, test or inference split."""

    def __init__(self, operation, role):
        self.operation = operation
        self.role      = role
        super().__init__(
            f"{operation} must only be fit on the training split, "
            f"got a frame tagged '{role}'"
        )


class ArtifactMismatchError(AnalogFaultError):
    """Raised when a model artifact does not agree with its own metadata or the runtime input."""


class TrainingDivergedError(AnalogFaultError):
    """Raised when the training loss becomes NaN or infinite."""

    def __init__(self, epoch, loss):
        self.epoch = epoch
        self.loss  = loss
        super().__init__(f"Training diverged at epoch {epoch}: loss={loss}")


class ConvergenceWarning(UserWarning):
    """Training hit the epoch cap without triggering early stopping."""


class DegenerateFeatureWarning(UserWarning):
    """A constant feature was handled with its documented fallback."""
