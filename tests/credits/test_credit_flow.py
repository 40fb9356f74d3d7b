"""Tests for trustweave.credits: awards, decay, conservation, spend gates.

Tests cover:
- Award formula and its scarcity and proximity terms
- Earn event validation
- Half-life balance decay and balance updates
- Per-epoch conservation reporting
- Branch approval quorum and spend checks
"""

from __future__ import annotations

import pytest

from trustweave.core import ConfigException, ValidationException
from trustweave.credits import (
    ActionKind,
    ApprovalRefusal,
    BranchApproval,
    CreditBalance,
    CreditParameters,
    EarnableAction,
    EarnEvent,
    EarnRejection,
    SpendEvent,
    SpendType,
    authorize_spend,
    calculate_credit_award,
    calculate_epoch_conservation,
    check_spend,
    decay_balance,
    dynamic_issuance_cap,
    proximity_from_pairwise,
    spend_cost,
    tally_branch_approval,
    update_credit_balance,
    validate_branch_approval,
    validate_earn_event,
)

# =============================================================================
# FIXTURES
# =============================================================================


MEDIATION = EarnableAction(kind=ActionKind.MEDIATION, base_award=10.0, description="Mediated a dispute")


def make_event(**overrides) -> EarnEvent:
    fields = {
        "helper": "helper_1",
        "action": MEDIATION,
        "subject_set": {"subject_1"},
        "evidence_confidence": 0.8,
        "diversity_factor": 0.5,
        "proximity_score": 0.5,
        "branch_avg_credits": 50.0,
        "witnesses": ["witness_1"],
    }
    fields.update(overrides)
    return EarnEvent(**fields)


@pytest.fixture
def approval() -> BranchApproval:
    return BranchApproval(
        branch_id="branch_b0",
        votes={"v1": 1.0, "v2": 1.0},
        participation_rate=0.5,
        path_diversity_score=3.0,
        trimmed_mean=1.0,
        approved=True,
    )


def make_spend(amount: float, approval: BranchApproval) -> SpendEvent:
    return SpendEvent(
        requester="requester_1",
        spend_type=SpendType.LOCAL,
        amount=amount,
        purpose="Request mediation",
        branch_approval=approval,
    )


# =============================================================================
# AWARDS
# =============================================================================


class TestCalculateCreditAward:
    """Tests for calculate_credit_award."""

    def test_formula(self):
        # 10 * 0.8 * 0.5 * (0.6 + 0.4 * 0.5) * sigmoid(0.5 - 0.5)
        assert calculate_credit_award(make_event()) == pytest.approx(1.6)

    def test_scarcity_favours_poor_branches(self):
        poor = calculate_credit_award(make_event(branch_avg_credits=0.0))
        rich = calculate_credit_award(make_event(branch_avg_credits=100.0))
        assert poor > rich

    def test_proximity_floor_never_zero(self):
        award = calculate_credit_award(make_event(proximity_score=0.0))
        assert award == pytest.approx(10 * 0.8 * 0.5 * 0.6 * 0.5)

    def test_closer_help_earns_more(self):
        near = calculate_credit_award(make_event(proximity_score=1.0))
        far = calculate_credit_award(make_event(proximity_score=0.1))
        assert near > far

    def test_inputs_clamped(self):
        clamped = calculate_credit_award(make_event(evidence_confidence=3.0))
        assert clamped == calculate_credit_award(make_event(evidence_confidence=1.0))

    def test_never_negative(self):
        action = EarnableAction(kind=ActionKind.OTHER, base_award=-5.0)
        assert calculate_credit_award(make_event(action=action)) == 0.0

    def test_zero_confidence_earns_nothing(self):
        assert calculate_credit_award(make_event(evidence_confidence=0.0)) == 0.0

    def test_zero_diversity_earns_nothing(self):
        assert calculate_credit_award(make_event(diversity_factor=0.0)) == 0.0

    def test_average_above_cap_counts_as_cap(self):
        rich = calculate_credit_award(make_event(branch_avg_credits=1e6))
        assert rich == pytest.approx(calculate_credit_award(make_event(branch_avg_credits=100.0)))
        assert rich > 0.0


class TestValidateEarnEvent:
    """Tests for validate_earn_event."""

    def test_valid(self):
        assert validate_earn_event(make_event()).valid

    @pytest.mark.parametrize(
        "overrides, code",
        [
            ({"evidence_confidence": 0.0}, EarnRejection.NON_POSITIVE_CONFIDENCE),
            ({"diversity_factor": -0.1}, EarnRejection.NON_POSITIVE_DIVERSITY),
            ({"witnesses": []}, EarnRejection.MISSING_WITNESSES),
            ({"subject_set": set()}, EarnRejection.EMPTY_SUBJECT_SET),
            ({"subject_set": {"helper_1", "subject_1"}}, EarnRejection.SELF_HELP),
        ],
    )
    def test_each_rule_has_its_own_reason(self, overrides, code):
        result = validate_earn_event(make_event(**overrides))
        assert not result.valid
        assert result.code == code
        assert result.reason

    def test_accepts_parameters(self):
        assert validate_earn_event(make_event(), CreditParameters(c_max=50.0)).valid

    def test_first_failing_rule_reported(self):
        result = validate_earn_event(make_event(evidence_confidence=0.0, witnesses=[]))
        assert result.code == EarnRejection.NON_POSITIVE_CONFIDENCE


class TestProximityFromPairwise:
    """Tests for proximity_from_pairwise."""

    def test_probabilistic_or(self):
        pairwise = {("h", "a"): 0.5, ("h", "b"): 0.5}
        assert proximity_from_pairwise("h", ["a", "b"], pairwise) == pytest.approx(0.75)

    def test_missing_pairs_unconnected(self):
        assert proximity_from_pairwise("h", ["a"], {}) == 0.0
        assert proximity_from_pairwise("h", [], {("h", "a"): 1.0}) == 0.0


# =============================================================================
# DECAY AND BALANCES
# =============================================================================


class TestDecayBalance:
    """Tests for decay_balance."""

    def test_half_life(self):
        params = CreditParameters(epoch_duration_hours=24.0)
        balance = CreditBalance(participant="p", balance=50.0, last_updated_epoch=0)
        assert decay_balance(balance, 180, params) == pytest.approx(25.0)

    def test_weekly_epochs(self):
        balance = CreditBalance(participant="p", balance=80.0, last_updated_epoch=10)
        expected = 80.0 * 0.5 ** (4 * 7 / 180)
        assert decay_balance(balance, 14) == pytest.approx(expected)

    def test_negative_epoch_delta_treated_as_zero(self):
        balance = CreditBalance(participant="p", balance=50.0, last_updated_epoch=5)
        assert decay_balance(balance, 3) == 50.0

    def test_clamped_to_cap(self):
        balance = CreditBalance(participant="p", balance=150.0, last_updated_epoch=0)
        assert decay_balance(balance, 0) == 100.0

    def test_strictly_decreasing(self):
        balance = CreditBalance(participant="p", balance=80.0, last_updated_epoch=0)
        values = [decay_balance(balance, epoch) for epoch in (0, 1, 4, 26, 52)]
        for earlier, later in zip(values, values[1:]):
            assert later < earlier


class TestUpdateCreditBalance:
    """Tests for update_credit_balance."""

    def test_earn_and_spend(self, approval):
        balance = CreditBalance(participant="helper_1", balance=10.0, last_updated_epoch=0)
        updated = update_credit_balance(
            balance,
            [make_event(), make_event(witnesses=[])],
            [make_spend(2.0, approval)],
            current_epoch=0,
        )
        assert updated.balance == pytest.approx(9.6)
        assert len(updated.earn_history) == 1
        assert len(updated.spend_history) == 1
        assert updated.last_updated_epoch == 0

    def test_input_not_modified(self):
        balance = CreditBalance(participant="helper_1", balance=10.0, last_updated_epoch=0)
        update_credit_balance(balance, [make_event()], [], current_epoch=3)
        assert balance.balance == 10.0
        assert balance.earn_history == ()

    def test_never_negative(self, approval):
        balance = CreditBalance(participant="p", balance=1.0, last_updated_epoch=0)
        updated = update_credit_balance(balance, [], [make_spend(5.0, approval)], current_epoch=0)
        assert updated.balance == 0.0

    def test_capped(self):
        balance = CreditBalance(participant="helper_1", balance=99.5, last_updated_epoch=0)
        updated = update_credit_balance(balance, [make_event()], [], current_epoch=0)
        assert updated.balance == 100.0

    def test_rich_branch_does_not_abort_update(self):
        balance = CreditBalance(participant="helper_1", balance=10.0, last_updated_epoch=0)
        events = [make_event(), make_event(branch_avg_credits=1e6)]
        updated = update_credit_balance(balance, events, [], current_epoch=0)
        assert len(updated.earn_history) == 2
        assert updated.balance > 10.0


# =============================================================================
# CONSERVATION
# =============================================================================


class TestConservation:
    """Tests for dynamic_issuance_cap and calculate_epoch_conservation."""

    def test_dynamic_cap_floors(self):
        assert dynamic_issuance_cap(100) == 5
        assert dynamic_issuance_cap(99) == 4

    def test_within_caps(self, approval):
        report = calculate_epoch_conservation(
            [make_event(), make_event(), make_event(subject_set=set())],
            [make_spend(2.0, approval)],
            active_population=100,
        )
        assert report.total_earned == pytest.approx(3.2)
        assert report.issuance_cap == 5.0
        assert report.spend_cap == 5.0
        assert report.within_issuance_cap
        assert report.within_spend_cap
        assert report.unused_issuance == pytest.approx(1.8)

    def test_over_spend_cap_reported_not_enforced(self, approval):
        params = CreditParameters(issuance_cap_per_epoch=10.0, spend_cap_per_epoch=3.0)
        report = calculate_epoch_conservation([], [make_spend(6.0, approval)], params)
        assert not report.within_spend_cap
        assert report.total_spent == 6.0
        assert report.unused_issuance == 10.0

    def test_rich_branch_does_not_abort_report(self):
        report = calculate_epoch_conservation(
            [make_event(), make_event(branch_avg_credits=1e6)],
            [],
            active_population=100,
        )
        assert report.total_earned > 1.6

    def test_requires_a_cap(self):
        with pytest.raises(ValidationException):
            calculate_epoch_conservation([], [])


# =============================================================================
# SPENDING
# =============================================================================


class TestBranchApproval:
    """Tests for tally_branch_approval and validate_branch_approval."""

    def test_approved(self):
        votes = {"v1": 0.0, "v2": 0.0, "v3": 1.0, "v4": 1.0, "v5": 1.0}
        approval = tally_branch_approval("b0", votes, branch_size=10, path_diversity_score=3.0)
        assert approval.participation_rate == 0.5
        assert approval.trimmed_mean == pytest.approx(0.6)
        assert approval.approved
        assert sorted(approval.voters) == ["v1", "v2", "v3", "v4", "v5"]

    def test_low_participation(self):
        approval = tally_branch_approval("b0", {"v1": 1.0, "v2": 1.0, "v3": 1.0}, 10, 3.0)
        assert not approval.approved
        result = validate_branch_approval(approval)
        assert result.code == ApprovalRefusal.LOW_PARTICIPATION
        assert result.measured == pytest.approx(0.3)
        assert result.required == 0.4

    def test_low_path_diversity(self):
        votes = {f"v{i}": 1.0 for i in range(5)}
        result = validate_branch_approval(tally_branch_approval("b0", votes, 10, 2.0))
        assert result.code == ApprovalRefusal.LOW_PATH_DIVERSITY
        assert result.required == 3.0

    def test_low_approval(self):
        votes = {f"v{i}": 0.5 for i in range(5)}
        result = validate_branch_approval(tally_branch_approval("b0", votes, 10, 3.0))
        assert result.code == ApprovalRefusal.LOW_APPROVAL
        assert result.measured == pytest.approx(0.5)

    def test_empty_branch(self):
        approval = tally_branch_approval("b0", {}, 0, 3.0)
        assert approval.participation_rate == 0.0
        assert not approval.approved


class TestSpendChecks:
    """Tests for spend_cost, check_spend and authorize_spend."""

    def test_costs(self):
        assert spend_cost(SpendType.LOCAL) == 2.0
        assert spend_cost("xbranch") == 5.0
        assert spend_cost(SpendType.GLOBAL) == 10.0

    def test_insufficient_balance(self):
        result = check_spend(1.0, 2.0)
        assert result.code == ApprovalRefusal.INSUFFICIENT_BALANCE
        assert result.measured == 1.0
        assert result.required == 2.0

    def test_authorize_spend(self, approval):
        balance = CreditBalance(participant="p", balance=10.0, last_updated_epoch=0)
        assert authorize_spend(balance, SpendType.GLOBAL, approval).valid

    def test_authorize_spend_checks_balance(self, approval):
        balance = CreditBalance(participant="p", balance=5.0, last_updated_epoch=0)
        result = authorize_spend(balance, SpendType.GLOBAL, approval)
        assert result.code == ApprovalRefusal.INSUFFICIENT_BALANCE

    def test_authorize_spend_checks_quorum_first(self):
        weak = BranchApproval(
            branch_id="b0",
            votes={"v1": 1.0},
            participation_rate=0.1,
            path_diversity_score=3.0,
            trimmed_mean=1.0,
        )
        balance = CreditBalance(participant="p", balance=0.0, last_updated_epoch=0)
        result = authorize_spend(balance, SpendType.LOCAL, weak)
        assert result.code == ApprovalRefusal.LOW_PARTICIPATION


class TestCreditParameters:
    """Tests for CreditParameters validation."""

    def test_defaults(self):
        params = CreditParameters()
        assert params.errors() == []
        assert params.c_max == 100.0
        assert params.cost_of(SpendType.XBRANCH) == 5.0

    def test_invalid_parameters(self):
        with pytest.raises(ConfigException) as exc_info:
            CreditParameters(c_max=0, delta=1.0, half_life_days=-1)
        assert len(exc_info.value.errors) == 3
