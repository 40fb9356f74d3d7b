"""Safety tiers: connectedness-gated, decaying friction levels."""

from .tiers import (
    DEFAULT_SAFETY_OPTIONS,
    TIER_FRICTIONS,
    DecayTimer,
    FrictionType,
    ReportedIssue,
    SafetyBatchResult,
    SafetyTier,
    SafetyTierOptions,
    SafetyTierResult,
    TierThresholds,
    aggregate_safety_tiers,
    batch_calculate_safety_tiers,
    calculate_safety_tier,
    decay_safety_tier,
    describe_safety_tier,
    determine_tier,
    frictions_for,
    is_appealable,
    time_to_decay,
)

__all__ = [
    # Enums
    "SafetyTier",
    "FrictionType",
    "TIER_FRICTIONS",
    # Config
    "TierThresholds",
    "SafetyTierOptions",
    "DEFAULT_SAFETY_OPTIONS",
    # Results
    "DecayTimer",
    "SafetyTierResult",
    "ReportedIssue",
    "SafetyBatchResult",
    # Calculation
    "determine_tier",
    "frictions_for",
    "is_appealable",
    "calculate_safety_tier",
    "decay_safety_tier",
    "aggregate_safety_tiers",
    "batch_calculate_safety_tiers",
    "describe_safety_tier",
    "time_to_decay",
]
