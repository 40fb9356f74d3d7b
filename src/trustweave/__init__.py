"""Trustweave - Trust and responsibility propagation engine.

Bounded trust signals for a peer-attested identity network:
- Sponsor-graph connectedness with decay and path-diversity weighting
- Connectedness-gated safety tiers with time decay
- Non-transferable care credits: awards, decay, conservation, spend gates
- Cross-branch escalation scoring, neighbour selection and help contracts

Every calculation is a pure function over immutable inputs; storage,
transport and request authentication belong to the caller.
"""

__version__ = "0.1.0"

from .core import CheckResult, ConfigException, TrustweaveException, ValidationException
from .credits import (
    ActionKind,
    BranchApproval,
    CreditBalance,
    CreditParameters,
    EarnableAction,
    EarnEvent,
    SpendEvent,
    SpendType,
    calculate_credit_award,
    decay_balance,
    update_credit_balance,
    validate_earn_event,
)
from .engine import EarnOutcome, EngineConfig, EscalationOutcome, TrustEngine
from .escalation import (
    Branch,
    ContractStatus,
    CrossBranchContract,
    EscalationParameters,
    EscalationScore,
    Issue,
    NeighborScore,
    calculate_escalation_score,
    select_neighbor_branches,
)
from .graph import (
    ConnectednessOptions,
    ConnectednessResult,
    build_sponsor_graph,
    pairwise_connectedness,
    union_connectedness,
)
from .safety import (
    SafetyTier,
    SafetyTierOptions,
    SafetyTierResult,
    aggregate_safety_tiers,
    calculate_safety_tier,
    decay_safety_tier,
)

__all__ = [
    "__version__",
    # Core
    "CheckResult",
    "TrustweaveException",
    "ValidationException",
    "ConfigException",
    # Graph
    "build_sponsor_graph",
    "ConnectednessOptions",
    "ConnectednessResult",
    "pairwise_connectedness",
    "union_connectedness",
    # Safety
    "SafetyTier",
    "SafetyTierOptions",
    "SafetyTierResult",
    "calculate_safety_tier",
    "decay_safety_tier",
    "aggregate_safety_tiers",
    # Credits
    "ActionKind",
    "SpendType",
    "CreditParameters",
    "EarnableAction",
    "EarnEvent",
    "SpendEvent",
    "BranchApproval",
    "CreditBalance",
    "calculate_credit_award",
    "validate_earn_event",
    "decay_balance",
    "update_credit_balance",
    # Escalation
    "Branch",
    "Issue",
    "EscalationParameters",
    "EscalationScore",
    "NeighborScore",
    "ContractStatus",
    "CrossBranchContract",
    "calculate_escalation_score",
    "select_neighbor_branches",
    # Engine
    "EngineConfig",
    "TrustEngine",
    "EarnOutcome",
    "EscalationOutcome",
]
