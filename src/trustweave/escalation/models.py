"""Data models for cross-branch escalation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.defaults import (
    CREDIT_CAP,
    ESCALATION_THRESHOLD,
    GAMMA_DIVERSITY,
    GAMMA_IMPACT,
    GAMMA_NEED,
    LAMBDA_CONNECTEDNESS,
    LAMBDA_LOAD,
    LAMBDA_SCARCITY,
    MAX_BRANCH_LOAD,
    MAX_NEIGHBORS,
    SCARCITY_MIDPOINT,
)
from ..core.exceptions import ConfigException


@dataclass(frozen=True)
class Branch:
    """A cohort sharing a local credit pool and escalation boundary.

    Read-only input; the persistence layer owns the live record.
    """

    id: str
    members: tuple[str, ...]
    avg_credits: float
    diversity_score: float  # rho in [0, 1], stance diversity
    open_needs_count: int
    current_load: float  # active contracts and obligations
    location_hint: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "members": list(self.members),
            "avg_credits": self.avg_credits,
            "diversity_score": self.diversity_score,
            "open_needs_count": self.open_needs_count,
            "current_load": self.current_load,
            "location_hint": self.location_hint,
        }


@dataclass(frozen=True)
class Issue:
    """A reported problem affecting *subject_set*."""

    id: str
    subject_set: tuple[str, ...]
    severity: float  # s in [0, 1]
    confidence: float  # k in [0, 1]
    reporter: str
    focal_branch: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "subject_set", tuple(self.subject_set))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject_set": list(self.subject_set),
            "severity": self.severity,
            "confidence": self.confidence,
            "reporter": self.reporter,
            "focal_branch": self.focal_branch,
        }


@dataclass(frozen=True)
class EscalationParameters:
    """Weights and thresholds for escalation and neighbour selection."""

    # Escalation score weights
    gamma1: float = GAMMA_IMPACT  # local impact
    gamma2: float = GAMMA_NEED  # unmet need
    gamma3: float = GAMMA_DIVERSITY  # low stance diversity
    theta_esc: float = ESCALATION_THRESHOLD

    # Neighbour selection weights
    lambda1: float = LAMBDA_CONNECTEDNESS
    lambda2: float = LAMBDA_SCARCITY
    lambda3: float = LAMBDA_LOAD
    max_neighbors: int = MAX_NEIGHBORS
    theta: float = SCARCITY_MIDPOINT
    c_max: float = CREDIT_CAP
    max_load: float = MAX_BRANCH_LOAD

    def __post_init__(self) -> None:
        errors = self.errors()
        if errors:
            raise ConfigException.from_errors("escalation parameters", errors)

    def errors(self) -> list[str]:
        errors = []
        if min(self.gamma1, self.gamma2, self.gamma3) < 0:
            errors.append("gamma weights cannot be negative")
        if min(self.lambda1, self.lambda2, self.lambda3) < 0:
            errors.append("lambda weights cannot be negative")
        if self.theta_esc < 0:
            errors.append("theta_esc cannot be negative")
        if self.max_neighbors < 0:
            errors.append("max_neighbors cannot be negative")
        if not (0.0 <= self.theta <= 1.0):
            errors.append("theta must be in [0, 1]")
        if self.c_max <= 0:
            errors.append("c_max must be positive")
        if self.max_load <= 0:
            errors.append("max_load must be positive")
        return errors


DEFAULT_ESCALATION_PARAMETERS = EscalationParameters()


@dataclass(frozen=True)
class EscalationScore:
    """Weighted escalation components for one branch and issue.

    Components are reported already multiplied by their gamma weights, so
    ``total_score`` is their plain sum.
    """

    branch_id: str
    issue_id: str
    local_impact: float
    need_pressure: float
    diversity_penalty: float
    total_score: float
    threshold: float
    triggered: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "issue_id": self.issue_id,
            "local_impact": self.local_impact,
            "need_pressure": self.need_pressure,
            "diversity_penalty": self.diversity_penalty,
            "total_score": self.total_score,
            "threshold": self.threshold,
            "triggered": self.triggered,
        }


@dataclass(frozen=True)
class NeighborScore:
    """Ranking record for a candidate helping branch.

    Components are unweighted; ``total_score`` applies the lambdas.
    """

    branch_id: str
    connectedness: float
    scarcity_bonus: float
    load_penalty: float
    total_score: float
    recommended: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "connectedness": self.connectedness,
            "scarcity_bonus": self.scarcity_bonus,
            "load_penalty": self.load_penalty,
            "total_score": self.total_score,
            "recommended": self.recommended,
        }
