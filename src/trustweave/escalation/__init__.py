"""Cross-branch escalation: scoring, neighbour selection and help contracts."""

from .contracts import (
    DEFAULT_EVIDENCE_REQUIREMENTS,
    TERMINAL_STATUSES,
    ContractActionResult,
    ContractRefusal,
    ContractStatus,
    CrossBranchContract,
    Ed25519SignatureVerifier,
    SignatureVerifier,
    approve_contract,
    complete_contract,
    create_contract_proposal,
    dispute_contract,
    expire_contract,
    reject_contract,
    sign_contract,
)
from .models import (
    DEFAULT_ESCALATION_PARAMETERS,
    Branch,
    EscalationParameters,
    EscalationScore,
    Issue,
    NeighborScore,
)
from .scoring import (
    branch_connectedness,
    branch_connectedness_map,
    calculate_escalation_score,
    select_neighbor_branches,
    validate_escalation_request,
)

__all__ = [
    # Models
    "Branch",
    "Issue",
    "EscalationParameters",
    "DEFAULT_ESCALATION_PARAMETERS",
    "EscalationScore",
    "NeighborScore",
    # Scoring
    "calculate_escalation_score",
    "branch_connectedness",
    "branch_connectedness_map",
    "select_neighbor_branches",
    "validate_escalation_request",
    # Contracts
    "ContractStatus",
    "ContractRefusal",
    "TERMINAL_STATUSES",
    "DEFAULT_EVIDENCE_REQUIREMENTS",
    "CrossBranchContract",
    "ContractActionResult",
    "SignatureVerifier",
    "Ed25519SignatureVerifier",
    "sign_contract",
    "create_contract_proposal",
    "approve_contract",
    "reject_contract",
    "dispute_contract",
    "complete_contract",
    "expire_contract",
]
