"""Data models for the credit flow engine.

Credits are non-transferable, earned for care work and burned to request help.
The external ledger owns balances; these records are immutable snapshots the
engine reads and returns.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from ..core.defaults import (
    BETA0,
    BETA1,
    COST_GLOBAL,
    COST_LOCAL,
    COST_XBRANCH,
    CREDIT_CAP,
    CREDIT_DECAY_BASE,
    CREDIT_HALF_LIFE_DAYS,
    EPOCH_DURATION_HOURS,
    ISSUANCE_BASE_RATE,
    REQUIRED_APPROVAL,
    REQUIRED_PARTICIPATION,
    REQUIRED_PATH_DIVERSITY,
    SCARCITY_MIDPOINT,
    VOTE_TRIM_PERCENT,
)
from ..core.exceptions import ConfigException

# =============================================================================
# ENUMS
# =============================================================================


class ActionKind(StrEnum):
    """Kinds of care work that can earn credits."""

    MEDIATION = "mediation"
    SUPPORT_RESPONSE = "support_response"
    REPLICATION = "replication"
    OTHER = "other"


class SpendType(StrEnum):
    """Scope of help a spend pays for."""

    LOCAL = "local"  # within the branch
    XBRANCH = "xbranch"  # cross-branch escalation
    GLOBAL = "global"  # network-wide escalation


class EarnRejection(StrEnum):
    """Reasons an earn event is refused before any award is computed."""

    NON_POSITIVE_CONFIDENCE = "non_positive_confidence"
    NON_POSITIVE_DIVERSITY = "non_positive_diversity"
    MISSING_WITNESSES = "missing_witnesses"
    EMPTY_SUBJECT_SET = "empty_subject_set"
    SELF_HELP = "self_help"


class ApprovalRefusal(StrEnum):
    """Reasons a branch approval, spend or escalation is refused."""

    LOW_PARTICIPATION = "low_participation"
    LOW_PATH_DIVERSITY = "low_path_diversity"
    LOW_APPROVAL = "low_approval"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NOT_APPROVED = "not_approved"
    BELOW_THRESHOLD = "below_threshold"
    NO_NEIGHBORS = "no_neighbors"


# =============================================================================
# PARAMETERS
# =============================================================================


@dataclass(frozen=True)
class CreditParameters:
    """Caps, multipliers, costs and decay for the credit system."""

    # Caps and limits
    c_max: float = CREDIT_CAP  # per-participant soft cap
    issuance_cap_per_epoch: float | None = None  # None: floor(rate * population)
    spend_cap_per_epoch: float | None = None  # None: same as issuance cap
    issuance_base_rate: float = ISSUANCE_BASE_RATE

    # Earning multipliers
    beta0: float = BETA0  # flat floor
    beta1: float = BETA1  # proximity-scaled bonus
    theta: float = SCARCITY_MIDPOINT  # fraction of c_max

    # Spend costs
    c_local: float = COST_LOCAL
    c_xbranch: float = COST_XBRANCH
    c_global: float = COST_GLOBAL

    # Decay
    half_life_days: float = CREDIT_HALF_LIFE_DAYS
    delta: float = CREDIT_DECAY_BASE
    epoch_duration_hours: float = EPOCH_DURATION_HOURS

    # Branch approval quorum
    required_participation: float = REQUIRED_PARTICIPATION  # alpha
    required_paths: float = REQUIRED_PATH_DIVERSITY  # q
    required_approval: float = REQUIRED_APPROVAL  # tau
    trim_percent: float = VOTE_TRIM_PERCENT

    def __post_init__(self) -> None:
        errors = self.errors()
        if errors:
            raise ConfigException.from_errors("credit parameters", errors)

    def errors(self) -> list[str]:
        errors = []
        if self.c_max <= 0:
            errors.append("c_max must be positive")
        if self.issuance_cap_per_epoch is not None and self.issuance_cap_per_epoch < 0:
            errors.append("issuance_cap_per_epoch cannot be negative")
        if self.spend_cap_per_epoch is not None and self.spend_cap_per_epoch < 0:
            errors.append("spend_cap_per_epoch cannot be negative")
        if self.issuance_base_rate < 0:
            errors.append("issuance_base_rate cannot be negative")
        if self.beta0 < 0 or self.beta1 < 0:
            errors.append("beta0 and beta1 cannot be negative")
        elif self.beta0 + self.beta1 <= 0:
            errors.append("beta0 + beta1 must be positive")
        if not (0.0 <= self.theta <= 1.0):
            errors.append("theta must be in [0, 1]")
        if min(self.c_local, self.c_xbranch, self.c_global) < 0:
            errors.append("spend costs cannot be negative")
        if self.half_life_days <= 0:
            errors.append("half_life_days must be positive")
        if not (0.0 < self.delta < 1.0):
            errors.append("delta must be in (0, 1)")
        if self.epoch_duration_hours <= 0:
            errors.append("epoch_duration_hours must be positive")
        if not (0.0 <= self.required_participation <= 1.0):
            errors.append("required_participation must be in [0, 1]")
        if self.required_paths < 0:
            errors.append("required_paths cannot be negative")
        if not (0.0 <= self.required_approval <= 1.0):
            errors.append("required_approval must be in [0, 1]")
        if not (0.0 <= self.trim_percent < 0.5):
            errors.append("trim_percent must be in [0, 0.5)")
        return errors

    def cost_of(self, spend_type: SpendType) -> float:
        return {
            SpendType.LOCAL: self.c_local,
            SpendType.XBRANCH: self.c_xbranch,
            SpendType.GLOBAL: self.c_global,
        }[SpendType(spend_type)]


DEFAULT_CREDIT_PARAMETERS = CreditParameters()


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class EarnableAction:
    """What the helper did."""

    kind: ActionKind
    base_award: float  # w_a
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "base_award": self.base_award,
            "description": self.description,
        }


@dataclass(frozen=True)
class EarnEvent:
    """A claim that *helper* performed care work for *subject_set*."""

    helper: str
    action: EarnableAction
    subject_set: frozenset[str]
    evidence_confidence: float  # k
    diversity_factor: float  # rho
    proximity_score: float  # C(helper, S), probabilistic OR
    branch_avg_credits: float
    witnesses: tuple[str, ...]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "subject_set", frozenset(self.subject_set))
        object.__setattr__(self, "witnesses", tuple(self.witnesses))

    def to_dict(self) -> dict[str, Any]:
        return {
            "helper": self.helper,
            "action": self.action.to_dict(),
            "subject_set": sorted(self.subject_set),
            "evidence_confidence": self.evidence_confidence,
            "diversity_factor": self.diversity_factor,
            "proximity_score": self.proximity_score,
            "branch_avg_credits": self.branch_avg_credits,
            "witnesses": list(self.witnesses),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class BranchApproval:
    """A branch's vote on a spend or escalation."""

    branch_id: str
    votes: Mapping[str, float]  # voter -> vote value
    participation_rate: float  # |V| / |B|
    path_diversity_score: float  # independent path sets among voters
    trimmed_mean: float
    approved: bool = False

    @property
    def voters(self) -> list[str]:
        return list(self.votes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "votes": dict(self.votes),
            "participation_rate": self.participation_rate,
            "path_diversity_score": self.path_diversity_score,
            "trimmed_mean": self.trimmed_mean,
            "approved": self.approved,
        }


@dataclass(frozen=True)
class SpendEvent:
    """Credits burned to request help."""

    requester: str
    spend_type: SpendType
    amount: float
    purpose: str
    branch_approval: BranchApproval
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "requester": self.requester,
            "spend_type": self.spend_type.value,
            "amount": self.amount,
            "purpose": self.purpose,
            "branch_approval": self.branch_approval.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class CreditBalance:
    """Snapshot of one participant's balance as held by the ledger."""

    participant: str
    balance: float
    last_updated_epoch: int
    earn_history: tuple[EarnEvent, ...] = ()
    spend_history: tuple[SpendEvent, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant": self.participant,
            "balance": self.balance,
            "last_updated_epoch": self.last_updated_epoch,
            "earn_history": [e.to_dict() for e in self.earn_history],
            "spend_history": [s.to_dict() for s in self.spend_history],
        }


@dataclass(frozen=True)
class EpochConservation:
    """Per-epoch issuance and spend totals against their caps."""

    total_earned: float
    total_spent: float
    issuance_cap: float
    spend_cap: float
    within_issuance_cap: bool
    within_spend_cap: bool
    unused_issuance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_earned": self.total_earned,
            "total_spent": self.total_spent,
            "issuance_cap": self.issuance_cap,
            "spend_cap": self.spend_cap,
            "within_issuance_cap": self.within_issuance_cap,
            "within_spend_cap": self.within_spend_cap,
            "unused_issuance": self.unused_issuance,
        }
