"""Safety tiers.

Impact I = C x s x k (reporter connectedness x severity x confidence) picks a
graduated friction level. Tiers add friction, they never erase anyone.

Reports from participants with almost no social standing carry no weight:
below ``min_connectedness_for_impact`` the tier is always NONE.

Impact decays exponentially, ``I(t) = I0 * 0.5 ** (t / half_life)``, and is
always recomputed from the stored ``(initial_impact, start_time)`` pair, so
evaluating the same result at the same instant twice gives the same answer.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from typing import Any

from ..core.aggregation import clamp_unit
from ..core.defaults import (
    AGGREGATE_BONUS_CAP,
    AGGREGATE_BONUS_STEP,
    MAX_IMPACT_SCORE,
    MIN_CONNECTEDNESS_FOR_IMPACT,
    SAFETY_DECAY_HALF_LIFE_HOURS,
    TIER_THRESHOLD_CRITICAL,
    TIER_THRESHOLD_HIGH,
    TIER_THRESHOLD_LOW,
    TIER_THRESHOLD_MEDIUM,
)
from ..core.exceptions import ConfigException

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================


class SafetyTier(IntEnum):
    """Friction level, ordered from none to maximal."""

    NONE = 0  # No additional friction
    LOW = 1  # Rate limits
    MEDIUM = 2  # Warnings
    HIGH = 3  # Verification, cooldowns
    CRITICAL = 4  # Severe interaction limits

    @property
    def label(self) -> str:
        return self.name.lower()


class FrictionType(StrEnum):
    """Friction mechanisms a tier can switch on."""

    RATE_LIMIT = "rate_limit"  # Slow down actions
    VERIFICATION = "verification"  # Require additional verification
    COOLDOWN = "cooldown"  # Time delays between actions
    VISIBILITY_LIMIT = "visibility"  # Limit content visibility
    INTERACTION_LIMIT = "interaction"  # Limit interaction types
    REVIEW_REQUIRED = "review"  # Require human review
    WARNING_LABEL = "warning"  # Add warning labels
    SUPPORTER_REQUIRED = "supporter"  # Require supporter/sponsor presence


# Frictions each tier adds on top of the tier below it.
_TIER_ADDITIONS: tuple[tuple[SafetyTier, tuple[FrictionType, ...]], ...] = (
    (SafetyTier.NONE, ()),
    (SafetyTier.LOW, (FrictionType.RATE_LIMIT,)),
    (SafetyTier.MEDIUM, (FrictionType.WARNING_LABEL,)),
    (SafetyTier.HIGH, (FrictionType.VERIFICATION, FrictionType.COOLDOWN)),
    (
        SafetyTier.CRITICAL,
        (
            FrictionType.INTERACTION_LIMIT,
            FrictionType.REVIEW_REQUIRED,
            FrictionType.SUPPORTER_REQUIRED,
            FrictionType.VISIBILITY_LIMIT,
        ),
    ),
)


def _build_friction_table() -> dict[SafetyTier, tuple[FrictionType, ...]]:
    table: dict[SafetyTier, tuple[FrictionType, ...]] = {}
    accumulated: list[FrictionType] = []
    for tier, additions in _TIER_ADDITIONS:
        for friction in additions:
            if friction not in accumulated:
                accumulated.append(friction)
        table[tier] = tuple(accumulated)
    return table


TIER_FRICTIONS: dict[SafetyTier, tuple[FrictionType, ...]] = _build_friction_table()

TIER_DESCRIPTIONS = {
    SafetyTier.NONE: "No restrictions",
    SafetyTier.LOW: "Minor friction (rate limiting)",
    SafetyTier.MEDIUM: "Moderate friction (cooldowns, warnings)",
    SafetyTier.HIGH: "Significant friction (limited interactions)",
    SafetyTier.CRITICAL: "Maximum friction (severe interaction limits)",
}


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class TierThresholds:
    """Minimum impact score for each tier. Must be strictly increasing."""

    low: float = TIER_THRESHOLD_LOW
    medium: float = TIER_THRESHOLD_MEDIUM
    high: float = TIER_THRESHOLD_HIGH
    critical: float = TIER_THRESHOLD_CRITICAL

    def errors(self) -> list[str]:
        errors = []
        if self.low >= self.medium:
            errors.append("Low threshold must be less than medium")
        if self.medium >= self.high:
            errors.append("Medium threshold must be less than high")
        if self.high >= self.critical:
            errors.append("High threshold must be less than critical")
        if self.critical > 1.0:
            errors.append("Critical threshold cannot exceed 1.0")
        if self.low < 0:
            errors.append("Low threshold cannot be negative")
        return errors

    def descending(self) -> tuple[tuple[SafetyTier, float], ...]:
        return (
            (SafetyTier.CRITICAL, self.critical),
            (SafetyTier.HIGH, self.high),
            (SafetyTier.MEDIUM, self.medium),
            (SafetyTier.LOW, self.low),
        )


@dataclass(frozen=True)
class SafetyTierOptions:
    """Configuration for the safety tier calculator."""

    thresholds: TierThresholds = field(default_factory=TierThresholds)
    decay_half_life_hours: float = SAFETY_DECAY_HALF_LIFE_HOURS
    enable_decay: bool = True
    max_impact_score: float = MAX_IMPACT_SCORE
    min_connectedness_for_impact: float = MIN_CONNECTEDNESS_FOR_IMPACT
    aggregate_bonus_step: float = AGGREGATE_BONUS_STEP
    aggregate_bonus_cap: float = AGGREGATE_BONUS_CAP

    def __post_init__(self) -> None:
        errors = self.errors()
        if errors:
            raise ConfigException.from_errors("safety tier options", errors)

    def errors(self) -> list[str]:
        errors = self.thresholds.errors()
        if self.decay_half_life_hours <= 0:
            errors.append("Decay half-life must be positive")
        if not (0.0 < self.max_impact_score <= 1.0):
            errors.append("Max impact score must be in (0, 1]")
        if not (0.0 <= self.min_connectedness_for_impact <= 1.0):
            errors.append("Minimum connectedness for impact must be in [0, 1]")
        if self.aggregate_bonus_step < 0:
            errors.append("Aggregate bonus step cannot be negative")
        if self.aggregate_bonus_cap < 1.0:
            errors.append("Aggregate bonus cap must be at least 1.0")
        return errors


DEFAULT_SAFETY_OPTIONS = SafetyTierOptions()


# =============================================================================
# RESULTS
# =============================================================================


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@dataclass(frozen=True)
class DecayTimer:
    """Stored decay state: the original impact and when decay started."""

    half_life_hours: float
    start_time: datetime
    initial_impact: float
    current_multiplier: float = 1.0  # (0, 1]

    def multiplier_at(self, now: datetime) -> float:
        """Decay multiplier at *now*; times before the start count as zero."""
        elapsed = (_as_aware(now) - _as_aware(self.start_time)).total_seconds() / 3600
        return 0.5 ** (max(0.0, elapsed) / self.half_life_hours)

    def to_dict(self) -> dict[str, Any]:
        return {
            "half_life_hours": self.half_life_hours,
            "start_time": self.start_time.isoformat(),
            "initial_impact": self.initial_impact,
            "current_multiplier": self.current_multiplier,
        }


@dataclass(frozen=True)
class SafetyTierResult:
    """Impact, tier and frictions for one report (or an aggregate)."""

    impact_score: float
    tier: SafetyTier
    frictions: tuple[FrictionType, ...] = ()
    decay_timer: DecayTimer | None = None
    appealable: bool = False

    @classmethod
    def none(cls) -> SafetyTierResult:
        return cls(impact_score=0.0, tier=SafetyTier.NONE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "impact_score": self.impact_score,
            "tier": self.tier.label,
            "frictions": [f.value for f in self.frictions],
            "decay_timer": self.decay_timer.to_dict() if self.decay_timer else None,
            "appealable": self.appealable,
        }


@dataclass(frozen=True)
class ReportedIssue:
    """Raw inputs for one safety report in a batch."""

    id: str
    connectedness: float
    severity: float
    confidence: float


@dataclass
class SafetyBatchResult:
    """Batch outcome: per-issue results plus isolated failures."""

    results: dict[str, SafetyTierResult] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "failures": dict(self.failures),
        }


# =============================================================================
# TIER CALCULATION
# =============================================================================


def determine_tier(impact_score: float, thresholds: TierThresholds | None = None) -> SafetyTier:
    """Highest tier whose threshold the impact meets."""
    thresholds = thresholds or DEFAULT_SAFETY_OPTIONS.thresholds
    for tier, minimum in thresholds.descending():
        if impact_score >= minimum:
            return tier
    return SafetyTier.NONE


def frictions_for(tier: SafetyTier) -> tuple[FrictionType, ...]:
    """Cumulative frictions active at *tier*."""
    return TIER_FRICTIONS[tier]


def is_appealable(tier: SafetyTier) -> bool:
    return tier >= SafetyTier.MEDIUM


def calculate_safety_tier(
    connectedness: float,
    severity: float,
    confidence: float,
    options: SafetyTierOptions = DEFAULT_SAFETY_OPTIONS,
    now: datetime | None = None,
) -> SafetyTierResult:
    """Compute impact, tier and frictions for one report.

    Args:
        connectedness: Reporter connectedness C to the subject.
        severity: Issue severity s.
        confidence: Reporter confidence k.
        options: Calculator configuration.
        now: Decay start time (defaults to the current UTC time).

    Returns:
        SafetyTierResult. Inputs are clamped to [0, 1].
    """
    c = clamp_unit(connectedness)
    s = clamp_unit(severity)
    k = clamp_unit(confidence)

    if c < options.min_connectedness_for_impact:
        return SafetyTierResult.none()

    impact = min(c * s * k, options.max_impact_score)
    tier = determine_tier(impact, options.thresholds)

    timer = None
    if options.enable_decay:
        timer = DecayTimer(
            half_life_hours=options.decay_half_life_hours,
            start_time=_as_aware(now or datetime.now(UTC)),
            initial_impact=impact,
        )

    logger.debug("Safety impact %.4f (C=%.3f s=%.3f k=%.3f) -> %s", impact, c, s, k, tier.label)

    return SafetyTierResult(
        impact_score=impact,
        tier=tier,
        frictions=frictions_for(tier),
        decay_timer=timer,
        appealable=is_appealable(tier),
    )


def decay_safety_tier(
    result: SafetyTierResult,
    now: datetime | None = None,
    options: SafetyTierOptions = DEFAULT_SAFETY_OPTIONS,
) -> SafetyTierResult:
    """Re-evaluate *result* at *now* from its stored decay timer.

    Tier and frictions follow the decayed impact. The appealable flag keeps
    the value decided when the report was first scored. Results without a
    timer are returned unchanged.
    """
    timer = result.decay_timer
    if timer is None:
        return result

    multiplier = timer.multiplier_at(now or datetime.now(UTC))
    impact = timer.initial_impact * multiplier
    tier = determine_tier(impact, options.thresholds)

    return replace(
        result,
        impact_score=impact,
        tier=tier,
        frictions=frictions_for(tier),
        decay_timer=replace(timer, current_multiplier=multiplier),
    )


def aggregate_safety_tiers(
    results: Sequence[SafetyTierResult],
    now: datetime | None = None,
    options: SafetyTierOptions = DEFAULT_SAFETY_OPTIONS,
) -> SafetyTierResult:
    """Combine several reports about the same subject.

    Each report decays on its own; the strongest decayed impact is boosted by
    ``min(cap, 1 + (n - 1) * step)`` since several independent reports are
    stronger evidence than the worst one alone.
    """
    if not results:
        return SafetyTierResult.none()

    now = now or datetime.now(UTC)
    current = [decay_safety_tier(r, now, options) for r in results]

    strongest = max(r.impact_score for r in current)
    bonus = min(options.aggregate_bonus_cap, 1.0 + (len(current) - 1) * options.aggregate_bonus_step)
    impact = min(strongest * bonus, 1.0, options.max_impact_score)
    tier = determine_tier(impact, options.thresholds)

    return SafetyTierResult(
        impact_score=impact,
        tier=tier,
        frictions=frictions_for(tier),
        appealable=any(r.appealable for r in current),
    )


def batch_calculate_safety_tiers(
    issues: Iterable[ReportedIssue],
    options: SafetyTierOptions = DEFAULT_SAFETY_OPTIONS,
    now: datetime | None = None,
) -> SafetyBatchResult:
    """Score many reports; a malformed report never blocks the others."""
    batch = SafetyBatchResult()
    for issue in issues:
        try:
            batch.results[issue.id] = calculate_safety_tier(
                float(issue.connectedness),
                float(issue.severity),
                float(issue.confidence),
                options,
                now,
            )
        except (TypeError, ValueError) as e:
            logger.warning("Skipping safety report %s: %s", issue.id, e)
            batch.failures[issue.id] = str(e)
    return batch


# =============================================================================
# PRESENTATION HELPERS
# =============================================================================


def describe_safety_tier(result: SafetyTierResult) -> str:
    """Human-readable summary of a tier result."""
    description = TIER_DESCRIPTIONS[result.tier]

    if result.decay_timer and result.decay_timer.current_multiplier < 1.0:
        decayed = round((1 - result.decay_timer.current_multiplier) * 100)
        description += f" ({decayed}% decayed)"

    if result.appealable:
        description += " - Appealable through community process"

    return description


def time_to_decay(current_impact: float, target_impact: float, half_life_hours: float) -> float:
    """Hours until *current_impact* decays to *target_impact*.

    Solves ``target = current * 0.5 ** (t / h)`` for t.
    """
    if current_impact <= target_impact:
        return 0.0
    if target_impact <= 0:
        return math.inf
    return half_life_hours * math.log2(current_impact / target_impact)
