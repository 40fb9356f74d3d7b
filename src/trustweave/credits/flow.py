"""Credit flow: earning, decay, spending and conservation.

Award formula:

    dCR = w_a * k * rho * (beta0 + beta1 * C(h, S)) * sigmoid(theta - avg_B / C_max)

The sigmoid scarcity term raises awards in credit-poor branches and damps them
in credit-rich ones, so nobody hoards. Balances decay with a half-life and are
clamped to [0, C_max]. Conservation checks report per-epoch issuance and
spending against their caps; enforcing them is the caller's policy.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Collection, Iterable, Mapping
from dataclasses import replace

from ..core.aggregation import clamp_unit, probabilistic_union, sigmoid, trimmed_mean
from ..core.exceptions import ValidationException
from ..core.results import CheckResult
from .models import (
    DEFAULT_CREDIT_PARAMETERS,
    ApprovalRefusal,
    BranchApproval,
    CreditBalance,
    CreditParameters,
    EarnEvent,
    EarnRejection,
    EpochConservation,
    SpendEvent,
    SpendType,
)

logger = logging.getLogger(__name__)


# =============================================================================
# EARNING
# =============================================================================


def calculate_credit_award(
    event: EarnEvent,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
) -> float:
    """Credits earned for one validated earn event.

    Confidence, diversity and proximity are clamped to [0, 1]; the result is
    never negative.
    """
    confidence = clamp_unit(event.evidence_confidence)
    diversity = clamp_unit(event.diversity_factor)
    proximity_factor = params.beta0 + params.beta1 * clamp_unit(event.proximity_score)
    scarcity_bonus = sigmoid(params.theta - clamp_unit(event.branch_avg_credits / params.c_max))

    award = event.action.base_award * confidence * diversity * proximity_factor * scarcity_bonus
    return max(0.0, award)


def validate_earn_event(
    event: EarnEvent,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
) -> CheckResult:
    """Anti-abuse checks run before any award is computed.

    Returns the first failing rule, so a refusal always carries exactly one
    reason. *params* is accepted so earn validation and award calculation
    share a call shape; none of the current rules are tunable.
    """
    if event.evidence_confidence <= 0:
        return CheckResult.refuse(
            "Evidence confidence must be positive",
            EarnRejection.NON_POSITIVE_CONFIDENCE,
            measured=event.evidence_confidence,
        )

    if event.diversity_factor <= 0:
        return CheckResult.refuse(
            "Diversity factor must be positive",
            EarnRejection.NON_POSITIVE_DIVERSITY,
            measured=event.diversity_factor,
        )

    if not event.witnesses:
        return CheckResult.refuse(
            "At least one witness required",
            EarnRejection.MISSING_WITNESSES,
        )

    if not event.subject_set:
        return CheckResult.refuse(
            "Subject set cannot be empty",
            EarnRejection.EMPTY_SUBJECT_SET,
        )

    if event.helper in event.subject_set:
        return CheckResult.refuse(
            "Helper cannot earn credits for helping themselves",
            EarnRejection.SELF_HELP,
        )

    return CheckResult.ok()


def proximity_from_pairwise(
    helper: str,
    subjects: Collection[str],
    pairwise: Mapping[tuple[str, str], float],
) -> float:
    """C(h, S) = 1 - prod(1 - C(h, s)) from precomputed pairwise scores.

    Missing pairs count as unconnected.
    """
    if not subjects:
        return 0.0
    return probabilistic_union(pairwise.get((helper, s), 0.0) for s in subjects)


# =============================================================================
# DECAY AND BALANCE UPDATES
# =============================================================================


def decay_multiplier(epochs_elapsed: float, params: CreditParameters = DEFAULT_CREDIT_PARAMETERS) -> float:
    """``delta ** (days / half_life_days)`` for a number of elapsed epochs."""
    days = max(0.0, epochs_elapsed) * params.epoch_duration_hours / 24
    return params.delta ** (days / params.half_life_days)


def decay_balance(
    balance: CreditBalance,
    current_epoch: int,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
) -> float:
    """Balance after decaying from its last update to *current_epoch*.

    Clamped to [0, c_max].
    """
    multiplier = decay_multiplier(current_epoch - balance.last_updated_epoch, params)
    return max(0.0, min(params.c_max, balance.balance * multiplier))


def update_credit_balance(
    balance: CreditBalance,
    earn_events: Iterable[EarnEvent],
    spend_events: Iterable[SpendEvent],
    current_epoch: int,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
) -> CreditBalance:
    """Next balance: decay first, then add earnings and subtract spends.

    Invalid earn events are skipped and left out of the history. The input
    balance is not modified.
    """
    decayed = decay_balance(balance, current_epoch, params)

    accepted: list[EarnEvent] = []
    earnings = 0.0
    for event in earn_events:
        check = validate_earn_event(event, params)
        if not check.valid:
            logger.warning("Rejected earn event for %s: %s", event.helper, check.reason)
            continue
        accepted.append(event)
        earnings += calculate_credit_award(event, params)

    spends = list(spend_events)
    spent = sum(s.amount for s in spends)

    new_balance = max(0.0, min(params.c_max, decayed + earnings - spent))
    logger.debug(
        "Balance %s: %.4f -> %.4f (decayed=%.4f earned=%.4f spent=%.4f)",
        balance.participant,
        balance.balance,
        new_balance,
        decayed,
        earnings,
        spent,
    )

    return CreditBalance(
        participant=balance.participant,
        balance=new_balance,
        last_updated_epoch=current_epoch,
        earn_history=balance.earn_history + tuple(accepted),
        spend_history=balance.spend_history + tuple(spends),
    )


# =============================================================================
# CONSERVATION
# =============================================================================


def dynamic_issuance_cap(active_population: int, base_rate: float = DEFAULT_CREDIT_PARAMETERS.issuance_base_rate) -> int:
    """Per-epoch issuance cap ``floor(base_rate * active_population)``."""
    return math.floor(base_rate * active_population)


def calculate_epoch_conservation(
    earn_events: Iterable[EarnEvent],
    spend_events: Iterable[SpendEvent],
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
    active_population: int | None = None,
) -> EpochConservation:
    """Compare one epoch's issuance and spending with the caps.

    Only valid earn events count toward issuance. Without a fixed issuance cap
    in *params*, the dynamic cap for *active_population* applies; the spend
    cap defaults to the issuance cap.

    Raises:
        ValidationException: If no issuance cap can be determined.
    """
    if params.issuance_cap_per_epoch is not None:
        issuance_cap = float(params.issuance_cap_per_epoch)
    elif active_population is not None:
        issuance_cap = float(dynamic_issuance_cap(active_population, params.issuance_base_rate))
    else:
        raise ValidationException(
            "active_population is required when no fixed issuance cap is configured",
            field="active_population",
        )
    spend_cap = float(params.spend_cap_per_epoch) if params.spend_cap_per_epoch is not None else issuance_cap

    total_earned = sum(
        calculate_credit_award(e, params) for e in earn_events if validate_earn_event(e, params).valid
    )
    total_spent = sum(s.amount for s in spend_events)

    return EpochConservation(
        total_earned=total_earned,
        total_spent=total_spent,
        issuance_cap=issuance_cap,
        spend_cap=spend_cap,
        within_issuance_cap=total_earned <= issuance_cap,
        within_spend_cap=total_spent <= spend_cap,
        unused_issuance=max(0.0, issuance_cap - total_earned),
    )


# =============================================================================
# SPENDING AND BRANCH APPROVAL
# =============================================================================


def spend_cost(spend_type: SpendType | str, params: CreditParameters = DEFAULT_CREDIT_PARAMETERS) -> float:
    """Credits burned by a spend of the given scope."""
    return params.cost_of(SpendType(spend_type))


def validate_branch_approval(
    approval: BranchApproval,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
) -> CheckResult:
    """Quorum rules: participation >= alpha, path diversity >= q, trimmed mean >= tau."""
    if approval.participation_rate < params.required_participation:
        return CheckResult.refuse(
            f"Participation {approval.participation_rate:.2f} below required {params.required_participation}",
            ApprovalRefusal.LOW_PARTICIPATION,
            measured=approval.participation_rate,
            required=params.required_participation,
        )

    if approval.path_diversity_score < params.required_paths:
        return CheckResult.refuse(
            f"Path diversity {approval.path_diversity_score} below required {params.required_paths}",
            ApprovalRefusal.LOW_PATH_DIVERSITY,
            measured=approval.path_diversity_score,
            required=params.required_paths,
        )

    if approval.trimmed_mean < params.required_approval:
        return CheckResult.refuse(
            f"Approval {approval.trimmed_mean:.2f} below required {params.required_approval}",
            ApprovalRefusal.LOW_APPROVAL,
            measured=approval.trimmed_mean,
            required=params.required_approval,
        )

    return CheckResult.ok()


def tally_branch_approval(
    branch_id: str,
    votes: Mapping[str, float],
    branch_size: int,
    path_diversity_score: float,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
) -> BranchApproval:
    """Build a BranchApproval from raw votes and decide it."""
    participation = len(votes) / branch_size if branch_size > 0 else 0.0
    approval = BranchApproval(
        branch_id=branch_id,
        votes=dict(votes),
        participation_rate=participation,
        path_diversity_score=path_diversity_score,
        trimmed_mean=trimmed_mean(list(votes.values()), params.trim_percent),
    )
    decision = validate_branch_approval(approval, params)
    if not decision.valid:
        logger.info("Branch %s approval refused: %s", branch_id, decision.reason)
    return replace(approval, approved=decision.valid)


def check_spend(balance: CreditBalance | float, amount: float) -> CheckResult:
    """Refuse a spend the balance cannot cover."""
    available = balance.balance if isinstance(balance, CreditBalance) else float(balance)
    if available < amount:
        return CheckResult.refuse(
            f"Insufficient credits: {available} < {amount}",
            ApprovalRefusal.INSUFFICIENT_BALANCE,
            measured=available,
            required=amount,
        )
    return CheckResult.ok()


def authorize_spend(
    balance: CreditBalance,
    spend_type: SpendType | str,
    approval: BranchApproval,
    params: CreditParameters = DEFAULT_CREDIT_PARAMETERS,
    amount: float | None = None,
) -> CheckResult:
    """Full spend gate: branch quorum first, then balance.

    *amount* defaults to the configured cost of *spend_type*.
    """
    decision = validate_branch_approval(approval, params)
    if not decision.valid:
        return decision
    cost = spend_cost(spend_type, params) if amount is None else amount
    return check_spend(balance, cost)
