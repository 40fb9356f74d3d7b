"""Engine facade bound to one sponsor graph snapshot.

Wires the connectedness, safety, credit and escalation engines together the
way a request handler uses them: connectedness is computed from the graph and
fed to the downstream calculators. Persistence, transport and request
authentication stay with the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .core.results import CheckResult
from .credits.flow import calculate_credit_award, validate_earn_event
from .credits.models import (
    ApprovalRefusal,
    BranchApproval,
    CreditParameters,
    EarnableAction,
    EarnEvent,
    SpendType,
)
from .escalation.contracts import CrossBranchContract, create_contract_proposal
from .escalation.models import Branch, EscalationParameters, EscalationScore, Issue, NeighborScore
from .escalation.scoring import (
    branch_connectedness_map,
    calculate_escalation_score,
    select_neighbor_branches,
    validate_escalation_request,
)
from .graph.connectedness import (
    ConnectednessOptions,
    ConnectednessResult,
    connectedness_map,
    independent_union_connectedness,
    pairwise_connectedness,
    union_connectedness,
)
from .graph.sponsors import SponsorGraph, build_sponsor_graph
from .safety.tiers import (
    ReportedIssue,
    SafetyBatchResult,
    SafetyTierOptions,
    SafetyTierResult,
    batch_calculate_safety_tiers,
    calculate_safety_tier,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """All parameter sets for one engine instance."""

    connectedness: ConnectednessOptions = field(default_factory=ConnectednessOptions)
    safety: SafetyTierOptions = field(default_factory=SafetyTierOptions)
    credits: CreditParameters = field(default_factory=CreditParameters)
    escalation: EscalationParameters = field(default_factory=EscalationParameters)

    def errors(self) -> list[str]:
        """Validation errors across every parameter set, prefixed by section."""
        errors = []
        for section, params in (
            ("connectedness", self.connectedness),
            ("safety", self.safety),
            ("credits", self.credits),
            ("escalation", self.escalation),
        ):
            errors.extend(f"{section}: {e}" for e in params.errors())
        return errors


@dataclass(frozen=True)
class EarnOutcome:
    """Result of an earn request: the event, its check and the award."""

    event: EarnEvent
    check: CheckResult
    award: float = 0.0

    @property
    def success(self) -> bool:
        return self.check.valid

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "award": self.award,
            "event": self.event.to_dict(),
            "check": self.check.to_dict(),
        }


@dataclass(frozen=True)
class EscalationOutcome:
    """Result of an escalation request."""

    score: EscalationScore
    check: CheckResult
    neighbors: tuple[NeighborScore, ...] = ()
    contract: CrossBranchContract | None = None

    @property
    def success(self) -> bool:
        return self.check.valid

    @property
    def recommended(self) -> list[NeighborScore]:
        return [n for n in self.neighbors if n.recommended]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "score": self.score.to_dict(),
            "check": self.check.to_dict(),
            "neighbors": [n.to_dict() for n in self.neighbors],
            "contract": self.contract.to_dict() if self.contract else None,
        }


class TrustEngine:
    """Connectedness-driven trust calculations over a fixed graph.

    The engine holds no mutable state beyond its graph snapshot and config,
    so one instance can serve concurrent queries.
    """

    def __init__(self, graph: SponsorGraph, config: EngineConfig | None = None):
        self.graph = graph
        self.config = config or EngineConfig()

    @classmethod
    def from_sponsorships(
        cls,
        sponsorships: Mapping[str, Iterable[str]] | None,
        config: EngineConfig | None = None,
    ) -> TrustEngine:
        """Build the sponsor graph and bind an engine to it."""
        return cls(build_sponsor_graph(sponsorships), config)

    # -------------------------------------------------------------------------
    # Connectedness
    # -------------------------------------------------------------------------

    def connectedness(self, source: str, target: str | Collection[str]) -> ConnectednessResult:
        """Pairwise for a single target, best-connection union for a set."""
        if isinstance(target, str):
            return pairwise_connectedness(source, target, self.graph, self.config.connectedness)
        return union_connectedness(source, target, self.graph, self.config.connectedness)

    def proximity(self, helper: str, subjects: Collection[str]) -> float:
        """Probabilistic-OR connectedness of a helper to the people helped."""
        return independent_union_connectedness(helper, subjects, self.graph, self.config.connectedness)

    # -------------------------------------------------------------------------
    # Safety
    # -------------------------------------------------------------------------

    def safety_tier_for_report(
        self,
        observer: str,
        subjects: str | Collection[str],
        severity: float,
        confidence: float,
        now: datetime | None = None,
    ) -> SafetyTierResult:
        """Tier for a report as seen from *observer*'s place in the graph."""
        connectedness = self.connectedness(observer, subjects).score
        return calculate_safety_tier(connectedness, severity, confidence, self.config.safety, now)

    def batch_safety_tiers(
        self,
        issues: Iterable[ReportedIssue],
        now: datetime | None = None,
    ) -> SafetyBatchResult:
        return batch_calculate_safety_tiers(issues, self.config.safety, now)

    # -------------------------------------------------------------------------
    # Credits
    # -------------------------------------------------------------------------

    def earn(
        self,
        helper: str,
        action: EarnableAction,
        subjects: Collection[str],
        evidence_confidence: float,
        diversity_factor: float,
        branch_avg_credits: float,
        witnesses: Sequence[str],
        timestamp: datetime | None = None,
    ) -> EarnOutcome:
        """Validate an earn claim and compute its award.

        Proximity is the helper's probabilistic-OR connectedness to the
        subjects in this graph. The caller's ledger applies the award.
        """
        event = EarnEvent(
            helper=helper,
            action=action,
            subject_set=frozenset(subjects),
            evidence_confidence=evidence_confidence,
            diversity_factor=diversity_factor,
            proximity_score=self.proximity(helper, subjects) if subjects else 0.0,
            branch_avg_credits=branch_avg_credits,
            witnesses=tuple(witnesses),
            timestamp=timestamp or datetime.now(UTC),
        )
        check = validate_earn_event(event, self.config.credits)
        if not check.valid:
            logger.warning("Rejected earn request from %s: %s", helper, check.reason)
            return EarnOutcome(event=event, check=check)

        award = calculate_credit_award(event, self.config.credits)
        logger.debug("Awarding %.4f credits to %s", award, helper)
        return EarnOutcome(event=event, check=check, award=award)

    # -------------------------------------------------------------------------
    # Escalation
    # -------------------------------------------------------------------------

    def escalate(
        self,
        branch: Branch,
        issue: Issue,
        candidates: Iterable[Branch],
        tasks: Sequence[str],
        timebox_hours: float,
        credit_rewards: float | None = None,
        exclude: Collection[str] = (),
        requester_credits: float | None = None,
        approval: BranchApproval | None = None,
        now: datetime | None = None,
    ) -> EscalationOutcome:
        """Score an escalation and, if it passes, propose a contract.

        When *requester_credits* and *approval* are given, the cross-branch
        cost and branch quorum are checked as well. The contract reward
        defaults to the cross-branch spend cost.
        """
        params = self.config.escalation
        member_map = connectedness_map(
            branch.members, issue.subject_set, self.graph, self.config.connectedness
        )
        score = calculate_escalation_score(branch, issue, member_map, params)

        if requester_credits is not None and approval is not None:
            check = validate_escalation_request(
                score,
                requester_credits,
                self.config.credits.cost_of(SpendType.XBRANCH),
                approval,
            )
        elif not score.triggered:
            check = CheckResult.refuse(
                f"Escalation not triggered: score {score.total_score:.3f} < {params.theta_esc}",
                ApprovalRefusal.BELOW_THRESHOLD,
                measured=score.total_score,
                required=params.theta_esc,
            )
        else:
            check = CheckResult.ok()

        if not check.valid:
            return EscalationOutcome(score=score, check=check)

        candidates = list(candidates)
        candidate_members = {m for b in candidates for m in b.members}
        candidate_map = connectedness_map(
            candidate_members, issue.subject_set, self.graph, self.config.connectedness
        )
        scores = branch_connectedness_map(candidates, issue.subject_set, candidate_map)
        neighbors = select_neighbor_branches(
            candidates,
            issue,
            scores,
            params,
            exclude=set(exclude) | {branch.id},
        )

        helpers = [n.branch_id for n in neighbors if n.recommended]
        if not helpers:
            return EscalationOutcome(
                score=score,
                check=CheckResult.refuse("No neighbouring branch available", ApprovalRefusal.NO_NEIGHBORS),
                neighbors=tuple(neighbors),
            )

        contract = create_contract_proposal(
            branch.id,
            helpers,
            issue,
            tasks,
            timebox_hours,
            self.config.credits.c_xbranch if credit_rewards is None else credit_rewards,
            now=now,
        )
        return EscalationOutcome(
            score=score,
            check=check,
            neighbors=tuple(neighbors),
            contract=contract,
        )
