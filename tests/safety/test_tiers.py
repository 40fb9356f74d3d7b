"""Tests for trustweave.safety.tiers."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest

from trustweave.core import ConfigException
from trustweave.safety import (
    TIER_FRICTIONS,
    FrictionType,
    ReportedIssue,
    SafetyTier,
    SafetyTierOptions,
    TierThresholds,
    aggregate_safety_tiers,
    batch_calculate_safety_tiers,
    calculate_safety_tier,
    decay_safety_tier,
    describe_safety_tier,
    determine_tier,
    time_to_decay,
)


class TestFrictionTable:
    """Tests for the cumulative friction table."""

    def test_each_tier_is_superset_of_lower(self):
        tiers = list(SafetyTier)
        for lower, higher in zip(tiers, tiers[1:]):
            assert set(TIER_FRICTIONS[lower]) <= set(TIER_FRICTIONS[higher])

    def test_no_duplicates(self):
        for frictions in TIER_FRICTIONS.values():
            assert len(frictions) == len(set(frictions))

    def test_critical_has_every_friction(self):
        assert set(TIER_FRICTIONS[SafetyTier.CRITICAL]) == set(FrictionType)


class TestCalculateSafetyTier:
    """Tests for calculate_safety_tier."""

    def test_high_tier(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        assert result.impact_score == pytest.approx(0.648)
        assert result.tier == SafetyTier.HIGH
        assert result.frictions == (
            FrictionType.RATE_LIMIT,
            FrictionType.WARNING_LABEL,
            FrictionType.VERIFICATION,
            FrictionType.COOLDOWN,
        )
        assert result.appealable
        assert result.decay_timer.start_time == now
        assert result.decay_timer.initial_impact == pytest.approx(0.648)

    def test_low_tier_not_appealable(self, now):
        result = calculate_safety_tier(0.5, 0.5, 0.5, now=now)
        assert result.tier == SafetyTier.LOW
        assert result.frictions == (FrictionType.RATE_LIMIT,)
        assert not result.appealable

    def test_critical_tier(self, now):
        result = calculate_safety_tier(1.0, 1.0, 0.9, now=now)
        assert result.tier == SafetyTier.CRITICAL
        assert len(result.frictions) == 8

    def test_strangers_cause_no_friction(self, now):
        result = calculate_safety_tier(0.04, 1.0, 1.0, now=now)
        assert result.tier == SafetyTier.NONE
        assert result.impact_score == 0.0
        assert result.frictions == ()
        assert result.decay_timer is None
        assert not result.appealable

    def test_inputs_clamped(self, now):
        result = calculate_safety_tier(1.5, 2.0, 0.5, now=now)
        assert result.impact_score == pytest.approx(0.5)
        assert result.tier == SafetyTier.MEDIUM

    def test_decay_disabled(self, now):
        options = SafetyTierOptions(enable_decay=False)
        assert calculate_safety_tier(0.8, 0.9, 0.9, options, now).decay_timer is None

    def test_max_impact_cap(self, now):
        options = SafetyTierOptions(max_impact_score=0.5)
        assert calculate_safety_tier(1.0, 1.0, 1.0, options, now).impact_score == 0.5

    def test_determine_tier_boundaries(self):
        assert determine_tier(0.0999) == SafetyTier.NONE
        assert determine_tier(0.10) == SafetyTier.LOW
        assert determine_tier(0.85) == SafetyTier.CRITICAL


class TestDecaySafetyTier:
    """Tests for decay_safety_tier."""

    def test_halves_at_half_life(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        decayed = decay_safety_tier(result, now + timedelta(hours=168))
        assert decayed.impact_score == pytest.approx(0.324)
        assert decayed.tier == SafetyTier.MEDIUM
        assert decayed.frictions == TIER_FRICTIONS[SafetyTier.MEDIUM]
        assert decayed.decay_timer.current_multiplier == pytest.approx(0.5)

    def test_idempotent(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        later = now + timedelta(hours=50)
        once = decay_safety_tier(result, later)
        twice = decay_safety_tier(once, later)
        assert once.impact_score == pytest.approx(twice.impact_score)

    def test_monotonic_over_time(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        impacts = [decay_safety_tier(result, now + timedelta(hours=h)).impact_score for h in (0, 24, 168, 500)]
        for earlier, later in zip(impacts, impacts[1:]):
            assert later < earlier

    def test_negative_elapsed_time_ignored(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        earlier = decay_safety_tier(result, now - timedelta(hours=10))
        assert earlier.impact_score == pytest.approx(result.impact_score)

    def test_keeps_original_appealable_flag(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        decayed = decay_safety_tier(result, now + timedelta(hours=1000))
        assert decayed.tier == SafetyTier.NONE
        assert decayed.appealable

    def test_without_timer_unchanged(self, now):
        result = calculate_safety_tier(0.01, 1.0, 1.0, now=now)
        assert decay_safety_tier(result, now + timedelta(days=3)) is result


class TestAggregateSafetyTiers:
    """Tests for aggregate_safety_tiers."""

    def test_bonus_for_multiple_reports(self, now):
        strong = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        weak = calculate_safety_tier(0.5, 0.5, 0.5, now=now)
        result = aggregate_safety_tiers([strong, weak], now)
        assert result.impact_score == pytest.approx(0.648 * 1.1)
        assert result.tier == SafetyTier.HIGH
        assert result.appealable

    def test_capped_at_one(self, now):
        reports = [calculate_safety_tier(1.0, 1.0, 0.9, now=now) for _ in range(4)]
        assert aggregate_safety_tiers(reports, now).impact_score == 1.0

    def test_single_report_no_bonus(self, now):
        report = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        assert aggregate_safety_tiers([report], now).impact_score == pytest.approx(0.648)

    def test_components_decay_independently(self, now):
        old = calculate_safety_tier(0.8, 0.9, 0.9, now=now - timedelta(hours=168))
        fresh = calculate_safety_tier(0.5, 0.5, 0.5, now=now)
        result = aggregate_safety_tiers([old, fresh], now)
        assert result.impact_score == pytest.approx(0.324 * 1.1)

    def test_empty(self, now):
        result = aggregate_safety_tiers([], now)
        assert result.tier == SafetyTier.NONE
        assert not result.appealable


class TestBatchCalculation:
    """Tests for batch_calculate_safety_tiers."""

    def test_bad_item_isolated(self, now):
        issues = [
            ReportedIssue("ok", 0.8, 0.9, 0.9),
            ReportedIssue("missing", 0.8, None, 0.9),
            ReportedIssue("garbled", "high", 0.9, 0.9),
        ]
        batch = batch_calculate_safety_tiers(issues, now=now)
        assert set(batch.results) == {"ok"}
        assert set(batch.failures) == {"missing", "garbled"}
        assert batch.results["ok"].tier == SafetyTier.HIGH


class TestOptionsValidation:
    """Tests for SafetyTierOptions validation."""

    def test_defaults_valid(self):
        assert SafetyTierOptions().errors() == []

    def test_non_monotonic_thresholds(self):
        with pytest.raises(ConfigException) as exc_info:
            SafetyTierOptions(thresholds=TierThresholds(low=0.4, medium=0.3))
        assert "Low threshold must be less than medium" in exc_info.value.errors

    def test_non_positive_half_life(self):
        with pytest.raises(ConfigException):
            SafetyTierOptions(decay_half_life_hours=0)


class TestPresentationHelpers:
    """Tests for describe_safety_tier and time_to_decay."""

    def test_describe_appealable(self, now):
        text = describe_safety_tier(calculate_safety_tier(0.8, 0.9, 0.9, now=now))
        assert text.startswith("Significant friction")
        assert "Appealable" in text

    def test_describe_decayed(self, now):
        result = calculate_safety_tier(0.8, 0.9, 0.9, now=now)
        decayed = decay_safety_tier(result, now + timedelta(hours=168))
        assert "(50% decayed)" in describe_safety_tier(decayed)

    def test_time_to_decay(self):
        assert time_to_decay(0.8, 0.2, 168) == pytest.approx(336)
        assert time_to_decay(0.2, 0.3, 168) == 0.0
        assert math.isinf(time_to_decay(0.5, 0.0, 168))
