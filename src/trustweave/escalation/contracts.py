"""Cross-branch help contracts.

A contract is proposed by the requesting branch for the recommended helpers
and becomes active only once every helping branch has signed its terms.
Transitions never mutate the contract they are given; each returns a
ContractActionResult holding the new contract or a refusal.

Lifecycle:
- proposed -> active: last helping branch signs
- active -> completed: non-empty completion evidence
- proposed/active/disputed -> failed: rejected or expired
- proposed/active -> disputed
- completed and failed are terminal

Signatures are Ed25519 over the canonical JSON of the contract terms, hex
encoded. Verification is optional and pluggable through SignatureVerifier.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from ..core.exceptions import ValidationException
from .models import Issue

logger = logging.getLogger(__name__)

DEFAULT_EVIDENCE_REQUIREMENTS = "Survivor-approved outcome with witness attestations"


class ContractStatus(StrEnum):
    """Status of a cross-branch contract."""

    PROPOSED = "proposed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DISPUTED = "disputed"


TERMINAL_STATUSES = frozenset({ContractStatus.COMPLETED, ContractStatus.FAILED})


class ContractRefusal(StrEnum):
    """Why a contract transition was refused."""

    TERMINAL = "terminal"
    NOT_PROPOSED = "not_proposed"
    NOT_ACTIVE = "not_active"
    NOT_HELPING_BRANCH = "not_helping_branch"
    EXPIRED = "expired"
    NOT_EXPIRED = "not_expired"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE = "invalid_signature"
    MISSING_EVIDENCE = "missing_evidence"


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


# =============================================================================
# CONTRACT MODEL
# =============================================================================


@dataclass(frozen=True)
class CrossBranchContract:
    """Terms and state of one cross-branch help agreement.

    Attributes:
        contract_id: Unique identifier.
        requesting_branch: Branch asking for help.
        helping_branches: Branches invited to help; all must sign.
        issue_id: The escalated issue.
        scope: Subject set the help concerns.
        tasks: Required actions.
        timebox_hours: Contract duration.
        evidence_requirements: What proof of completion is expected.
        credit_rewards: Credits offered to helpers.
        created_at: When the proposal was made.
        expires_at: ``created_at + timebox_hours``.
        status: Current lifecycle status.
        signatures: Helping branch id -> hex signature over the terms.
        completion_evidence: Evidence references supplied on completion.
    """

    contract_id: str
    requesting_branch: str
    helping_branches: tuple[str, ...]
    issue_id: str
    scope: tuple[str, ...]
    tasks: tuple[str, ...]
    timebox_hours: float
    evidence_requirements: str
    credit_rewards: float
    created_at: datetime
    expires_at: datetime
    status: ContractStatus = ContractStatus.PROPOSED
    signatures: Mapping[str, str] = field(default_factory=dict)
    completion_evidence: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def pending_signatures(self) -> list[str]:
        """Helping branches that have not signed yet."""
        return [b for b in self.helping_branches if b not in self.signatures]

    def is_expired(self, now: datetime | None = None) -> bool:
        now = _as_aware(now) if now else datetime.now(UTC)
        return now > _as_aware(self.expires_at)

    def payload_bytes(self) -> bytes:
        """Canonical bytes of the contract terms, for signing."""
        payload = {
            "contract_id": self.contract_id,
            "requesting_branch": self.requesting_branch,
            "helping_branches": sorted(self.helping_branches),
            "issue_id": self.issue_id,
            "scope": sorted(self.scope),
            "tasks": list(self.tasks),
            "timebox_hours": self.timebox_hours,
            "evidence_requirements": self.evidence_requirements,
            "credit_rewards": self.credit_rewards,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "requesting_branch": self.requesting_branch,
            "helping_branches": list(self.helping_branches),
            "issue_id": self.issue_id,
            "scope": list(self.scope),
            "tasks": list(self.tasks),
            "timebox_hours": self.timebox_hours,
            "evidence_requirements": self.evidence_requirements,
            "credit_rewards": self.credit_rewards,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "status": self.status.value,
            "signatures": dict(self.signatures),
            "completion_evidence": list(self.completion_evidence),
        }


@dataclass(frozen=True)
class ContractActionResult:
    """Result of a contract transition."""

    success: bool
    contract: CrossBranchContract
    reason: str | None = None
    code: ContractRefusal | None = None

    @classmethod
    def ok(cls, contract: CrossBranchContract) -> ContractActionResult:
        return cls(success=True, contract=contract)

    @classmethod
    def refuse(cls, contract: CrossBranchContract, reason: str, code: ContractRefusal) -> ContractActionResult:
        logger.debug("Contract %s: %s", contract.contract_id, reason)
        return cls(success=False, contract=contract, reason=reason, code=code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "contract": self.contract.to_dict(),
            "reason": self.reason,
            "code": self.code.value if self.code else None,
        }


# =============================================================================
# SIGNING
# =============================================================================


class SignatureVerifier(Protocol):
    """Checks that a branch signed the given contract payload."""

    def verify(self, branch_id: str, payload: bytes, signature: str) -> bool:
        """Return True if *signature* is the branch's signature over *payload*."""
        ...


class Ed25519SignatureVerifier:
    """Verifies hex-encoded Ed25519 signatures against known branch keys."""

    def __init__(self, public_keys: Mapping[str, Ed25519PublicKey]):
        self._public_keys = dict(public_keys)

    def verify(self, branch_id: str, payload: bytes, signature: str) -> bool:
        public_key = self._public_keys.get(branch_id)
        if public_key is None:
            logger.warning("No public key registered for branch %s", branch_id)
            return False
        try:
            public_key.verify(bytes.fromhex(signature), payload)
        except (InvalidSignature, ValueError):
            return False
        return True


def sign_contract(contract: CrossBranchContract, private_key: Ed25519PrivateKey) -> str:
    """Sign the contract terms; returns the hex-encoded signature."""
    return private_key.sign(contract.payload_bytes()).hex()


# =============================================================================
# PROPOSAL
# =============================================================================


def _contract_id(requesting_branch: str, issue_id: str) -> str:
    return f"contract_{requesting_branch}_{issue_id}_{uuid.uuid4().hex[:12]}"


def create_contract_proposal(
    requesting_branch: str,
    helping_branches: Sequence[str],
    issue: Issue,
    tasks: Sequence[str],
    timebox_hours: float,
    credit_rewards: float,
    evidence_requirements: str = DEFAULT_EVIDENCE_REQUIREMENTS,
    now: datetime | None = None,
) -> CrossBranchContract:
    """Build a contract in ``proposed`` status with no signatures.

    Raises:
        ValidationException: If the helping branches are empty or include the
            requester, or the timebox or reward is out of range.
    """
    if not helping_branches:
        raise ValidationException("At least one helping branch is required", field="helping_branches")
    if requesting_branch in helping_branches:
        raise ValidationException(
            "Requesting branch cannot help itself",
            field="helping_branches",
            value=requesting_branch,
        )
    if timebox_hours <= 0:
        raise ValidationException("timebox_hours must be positive", field="timebox_hours", value=timebox_hours)
    if credit_rewards < 0:
        raise ValidationException("credit_rewards cannot be negative", field="credit_rewards", value=credit_rewards)

    created_at = _as_aware(now) if now else datetime.now(UTC)
    contract = CrossBranchContract(
        contract_id=_contract_id(requesting_branch, issue.id),
        requesting_branch=requesting_branch,
        helping_branches=tuple(dict.fromkeys(helping_branches)),
        issue_id=issue.id,
        scope=tuple(issue.subject_set),
        tasks=tuple(tasks),
        timebox_hours=timebox_hours,
        evidence_requirements=evidence_requirements,
        credit_rewards=credit_rewards,
        created_at=created_at,
        expires_at=created_at + timedelta(hours=timebox_hours),
    )
    logger.info(
        "Proposed contract %s: %s -> %s",
        contract.contract_id,
        requesting_branch,
        ", ".join(contract.helping_branches),
    )
    return contract


# =============================================================================
# TRANSITIONS
# =============================================================================


def _terminal_refusal(contract: CrossBranchContract) -> ContractActionResult:
    return ContractActionResult.refuse(
        contract,
        f"Contract is {contract.status.value}",
        ContractRefusal.TERMINAL,
    )


def approve_contract(
    contract: CrossBranchContract,
    branch_id: str,
    signature: str,
    now: datetime | None = None,
    verifier: SignatureVerifier | None = None,
) -> ContractActionResult:
    """Record a helping branch's signature.

    The contract becomes active exactly when the last helping branch signs.
    Signing again is a successful no-op.
    """
    if contract.is_terminal:
        return _terminal_refusal(contract)

    if contract.status != ContractStatus.PROPOSED:
        return ContractActionResult.refuse(
            contract,
            f"Contract is not proposed (status: {contract.status.value})",
            ContractRefusal.NOT_PROPOSED,
        )

    if branch_id not in contract.helping_branches:
        return ContractActionResult.refuse(
            contract,
            f"Branch {branch_id} is not a helping branch",
            ContractRefusal.NOT_HELPING_BRANCH,
        )

    if contract.is_expired(now):
        return ContractActionResult.refuse(contract, "Contract has expired", ContractRefusal.EXPIRED)

    if branch_id in contract.signatures:
        return ContractActionResult.ok(contract)

    if not signature:
        return ContractActionResult.refuse(contract, "Signature is required", ContractRefusal.MISSING_SIGNATURE)

    if verifier is not None and not verifier.verify(branch_id, contract.payload_bytes(), signature):
        logger.warning("Invalid signature from branch %s on contract %s", branch_id, contract.contract_id)
        return ContractActionResult.refuse(
            contract,
            f"Invalid signature from branch {branch_id}",
            ContractRefusal.INVALID_SIGNATURE,
        )

    signatures = {**contract.signatures, branch_id: signature}
    status = contract.status
    if all(b in signatures for b in contract.helping_branches):
        status = ContractStatus.ACTIVE
        logger.info("Contract %s is active", contract.contract_id)

    return ContractActionResult.ok(replace(contract, signatures=signatures, status=status))


def reject_contract(contract: CrossBranchContract, reason: str | None = None) -> ContractActionResult:
    """Move a non-terminal contract to ``failed``."""
    if contract.is_terminal:
        return _terminal_refusal(contract)
    logger.info("Contract %s failed: %s", contract.contract_id, reason or "rejected")
    return ContractActionResult.ok(replace(contract, status=ContractStatus.FAILED))


def dispute_contract(contract: CrossBranchContract, reason: str | None = None) -> ContractActionResult:
    """Flag a non-terminal contract as ``disputed``."""
    if contract.is_terminal:
        return _terminal_refusal(contract)
    if contract.status == ContractStatus.DISPUTED:
        return ContractActionResult.ok(contract)
    logger.info("Contract %s disputed: %s", contract.contract_id, reason or "no reason given")
    return ContractActionResult.ok(replace(contract, status=ContractStatus.DISPUTED))


def complete_contract(contract: CrossBranchContract, evidence: Iterable[str] | str) -> ContractActionResult:
    """Complete an active contract with non-empty evidence.

    A single string counts as one evidence item.
    """
    if contract.is_terminal:
        return _terminal_refusal(contract)

    if contract.status != ContractStatus.ACTIVE:
        return ContractActionResult.refuse(
            contract,
            f"Contract is not active (status: {contract.status.value})",
            ContractRefusal.NOT_ACTIVE,
        )

    if isinstance(evidence, str):
        evidence = (evidence,)
    items = tuple(e for e in evidence if e and e.strip())
    if not items:
        return ContractActionResult.refuse(
            contract,
            "Completion evidence is required",
            ContractRefusal.MISSING_EVIDENCE,
        )

    logger.info("Contract %s completed", contract.contract_id)
    return ContractActionResult.ok(
        replace(contract, status=ContractStatus.COMPLETED, completion_evidence=items)
    )


def expire_contract(contract: CrossBranchContract, now: datetime | None = None) -> ContractActionResult:
    """Fail a non-terminal contract whose timebox has passed."""
    if contract.is_terminal:
        return _terminal_refusal(contract)
    if not contract.is_expired(now):
        return ContractActionResult.refuse(contract, "Contract has not expired", ContractRefusal.NOT_EXPIRED)
    logger.info("Contract %s expired", contract.contract_id)
    return ContractActionResult.ok(replace(contract, status=ContractStatus.FAILED))
