"""Credit flow engine: awards, decay, conservation and spend gates."""

from .flow import (
    authorize_spend,
    calculate_credit_award,
    calculate_epoch_conservation,
    check_spend,
    decay_balance,
    decay_multiplier,
    dynamic_issuance_cap,
    proximity_from_pairwise,
    spend_cost,
    tally_branch_approval,
    update_credit_balance,
    validate_branch_approval,
    validate_earn_event,
)
from .models import (
    DEFAULT_CREDIT_PARAMETERS,
    ActionKind,
    ApprovalRefusal,
    BranchApproval,
    CreditBalance,
    CreditParameters,
    EarnableAction,
    EarnEvent,
    EarnRejection,
    EpochConservation,
    SpendEvent,
    SpendType,
)

__all__ = [
    # Models
    "ActionKind",
    "SpendType",
    "EarnRejection",
    "ApprovalRefusal",
    "CreditParameters",
    "DEFAULT_CREDIT_PARAMETERS",
    "EarnableAction",
    "EarnEvent",
    "BranchApproval",
    "SpendEvent",
    "CreditBalance",
    "EpochConservation",
    # Flow
    "calculate_credit_award",
    "validate_earn_event",
    "proximity_from_pairwise",
    "decay_multiplier",
    "decay_balance",
    "update_credit_balance",
    "dynamic_issuance_cap",
    "calculate_epoch_conservation",
    "spend_cost",
    "validate_branch_approval",
    "tally_branch_approval",
    "check_spend",
    "authorize_spend",
]
