"""Trustweave Core - Shared primitives for the propagation engines."""

from .aggregation import (
    branch_diversity,
    clamp,
    clamp_unit,
    mean,
    probabilistic_union,
    sigmoid,
    trimmed_mean,
    variance,
)
from .exceptions import (
    ConfigException,
    TrustweaveException,
    ValidationException,
)
from .results import CheckResult

__all__ = [
    # Aggregation
    "branch_diversity",
    "clamp",
    "clamp_unit",
    "mean",
    "probabilistic_union",
    "sigmoid",
    "trimmed_mean",
    "variance",
    # Exceptions
    "TrustweaveException",
    "ValidationException",
    "ConfigException",
    # Results
    "CheckResult",
]
