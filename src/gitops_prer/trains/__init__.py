"""Release train models and classification."""

from .classifier import (
    GROUPING_ATTRIBUTE,
    ResolvedBinaryError,
    classify_resolved_binaries,
    classify_targets,
    release_train_query,
)
from .models import ReleaseTrain, TargetRecord

__all__ = [
    "GROUPING_ATTRIBUTE",
    "ReleaseTrain",
    "ResolvedBinaryError",
    "TargetRecord",
    "classify_resolved_binaries",
    "classify_targets",
    "release_train_query",
]
