"""Escalation scoring and neighbour selection.

Escalation score:

    E(B, X) = g1 * I_B(X) + g2 * (open_needs / |B|) + g3 * (1 - rho_B)

I_B(X) is the mean over members of their best connection to the issue's
subjects, weighted by severity and confidence. Low stance diversity raises the
score: an echo chamber cannot resolve disagreement internally and escalates
sooner. Escalation is a hard gate at ``theta_esc``.

Neighbour score:

    Score(B, X) = l1 * C(B, S) + l2 * sigmoid(theta - avg_B / c_max) - l3 * Load(B)
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping

from ..core.aggregation import clamp_unit, mean, probabilistic_union, sigmoid
from ..core.results import CheckResult
from ..credits.models import ApprovalRefusal, BranchApproval
from .models import (
    DEFAULT_ESCALATION_PARAMETERS,
    Branch,
    EscalationParameters,
    EscalationScore,
    Issue,
    NeighborScore,
)

logger = logging.getLogger(__name__)

# (member, subject) -> pairwise connectedness
PairwiseMap = Mapping[tuple[str, str], float]


def _member_best_connection(member: str, subjects: Iterable[str], pairwise: PairwiseMap) -> float:
    return max((clamp_unit(pairwise.get((member, s), 0.0)) for s in subjects), default=0.0)


def calculate_escalation_score(
    branch: Branch,
    issue: Issue,
    connectedness_map: PairwiseMap,
    params: EscalationParameters = DEFAULT_ESCALATION_PARAMETERS,
) -> EscalationScore:
    """Score whether *branch* should escalate *issue* to its neighbours.

    Args:
        branch: The focal branch.
        issue: The issue under consideration.
        connectedness_map: Pairwise scores keyed by ``(member, subject)``;
            missing pairs count as 0.
        params: Escalation weights and threshold.

    Returns:
        EscalationScore with weighted components.
    """
    severity = clamp_unit(issue.severity)
    confidence = clamp_unit(issue.confidence)

    if branch.size > 0:
        impacts = [
            _member_best_connection(m, issue.subject_set, connectedness_map) * severity * confidence
            for m in branch.members
        ]
        local_impact = mean(impacts)
        need_pressure = branch.open_needs_count / branch.size
    else:
        local_impact = 0.0
        need_pressure = 0.0

    diversity_penalty = 1.0 - clamp_unit(branch.diversity_score)

    weighted_impact = params.gamma1 * local_impact
    weighted_need = params.gamma2 * need_pressure
    weighted_diversity = params.gamma3 * diversity_penalty
    total = weighted_impact + weighted_need + weighted_diversity
    triggered = total >= params.theta_esc

    if triggered:
        logger.info(
            "Escalation triggered for branch %s on issue %s (score=%.3f)",
            branch.id,
            issue.id,
            total,
        )
    else:
        logger.debug("Branch %s issue %s escalation score %.3f", branch.id, issue.id, total)

    return EscalationScore(
        branch_id=branch.id,
        issue_id=issue.id,
        local_impact=weighted_impact,
        need_pressure=weighted_need,
        diversity_penalty=weighted_diversity,
        total_score=total,
        threshold=params.theta_esc,
        triggered=triggered,
    )


def branch_connectedness(branch: Branch, subjects: Collection[str], pairwise: PairwiseMap) -> float:
    """C(B, S): mean over members of each member's probabilistic-OR union."""
    if branch.size == 0 or not subjects:
        return 0.0
    return mean(
        [probabilistic_union(pairwise.get((m, s), 0.0) for s in subjects) for m in branch.members]
    )


def branch_connectedness_map(
    branches: Iterable[Branch],
    subjects: Collection[str],
    pairwise: PairwiseMap,
) -> dict[str, float]:
    """``{branch_id: C(B, S)}`` for every branch."""
    return {b.id: branch_connectedness(b, subjects, pairwise) for b in branches}


def select_neighbor_branches(
    candidates: Iterable[Branch],
    issue: Issue,
    branch_scores: Mapping[str, float],
    params: EscalationParameters = DEFAULT_ESCALATION_PARAMETERS,
    exclude: Collection[str] = (),
) -> list[NeighborScore]:
    """Rank candidate helping branches for an issue.

    The focal branch and any id in *exclude* are skipped. Results are sorted
    by score, highest first, with ties broken by branch id; the first
    ``max_neighbors`` are marked recommended.

    Args:
        candidates: Branches that could help.
        issue: The escalated issue.
        branch_scores: ``{branch_id: C(B, S)}``; missing branches count as 0.
        params: Selection weights.
        exclude: Branch ids already involved.
    """
    skip = set(exclude) | {issue.focal_branch}

    scored = []
    for branch in candidates:
        if branch.id in skip:
            continue
        connectedness = clamp_unit(branch_scores.get(branch.id, 0.0))
        scarcity_bonus = sigmoid(params.theta - clamp_unit(branch.avg_credits / params.c_max))
        load_penalty = clamp_unit(branch.current_load / params.max_load)
        total = (
            params.lambda1 * connectedness
            + params.lambda2 * scarcity_bonus
            - params.lambda3 * load_penalty
        )
        scored.append((branch.id, connectedness, scarcity_bonus, load_penalty, total))

    scored.sort(key=lambda row: (-row[4], row[0]))

    return [
        NeighborScore(
            branch_id=branch_id,
            connectedness=connectedness,
            scarcity_bonus=scarcity_bonus,
            load_penalty=load_penalty,
            total_score=total,
            recommended=rank < params.max_neighbors,
        )
        for rank, (branch_id, connectedness, scarcity_bonus, load_penalty, total) in enumerate(scored)
    ]


def validate_escalation_request(
    score: EscalationScore,
    requester_credits: float,
    escalation_cost: float,
    branch_approval: BranchApproval,
) -> CheckResult:
    """Gate an escalation: trigger, then balance, then branch quorum."""
    if not score.triggered:
        return CheckResult.refuse(
            f"Escalation score {score.total_score:.3f} below threshold",
            ApprovalRefusal.BELOW_THRESHOLD,
            measured=score.total_score,
            required=score.threshold,
        )

    if requester_credits < escalation_cost:
        return CheckResult.refuse(
            f"Insufficient credits: {requester_credits} < {escalation_cost}",
            ApprovalRefusal.INSUFFICIENT_BALANCE,
            measured=requester_credits,
            required=escalation_cost,
        )

    if not branch_approval.approved:
        return CheckResult.refuse(
            "Branch quorum did not approve escalation",
            ApprovalRefusal.NOT_APPROVED,
        )

    return CheckResult.ok()
