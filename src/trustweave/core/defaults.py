"""Centralized configurable defaults for Trustweave.

All tunable parameters in one place. The parameter dataclasses in each
subpackage take their field defaults from here.
"""

from __future__ import annotations

import os

# Connectedness
DEFAULT_MAX_DEPTH = int(os.environ.get("TRUSTWEAVE_MAX_PATH_DEPTH", "6"))
DEFAULT_DECAY_FACTOR = 1 / 3  # responsibility ripple per hop
DEFAULT_MIN_PATH_DIVERSITY = 0.7
DEFAULT_CONFIDENCE_THRESHOLD = 0.6

# Confidence blend for pairwise connectedness (sum to 1.0)
CONFIDENCE_PATH_COUNT_WEIGHT = 0.4
CONFIDENCE_DIVERSITY_WEIGHT = 0.4
CONFIDENCE_CONSISTENCY_WEIGHT = 0.2
CONFIDENCE_SATURATION_PATHS = 3

# Safety tiers
TIER_THRESHOLD_LOW = 0.10
TIER_THRESHOLD_MEDIUM = 0.30
TIER_THRESHOLD_HIGH = 0.60
TIER_THRESHOLD_CRITICAL = 0.85
SAFETY_DECAY_HALF_LIFE_HOURS = 168.0  # 1 week
MAX_IMPACT_SCORE = 1.0
MIN_CONNECTEDNESS_FOR_IMPACT = 0.05
AGGREGATE_BONUS_STEP = 0.1
AGGREGATE_BONUS_CAP = 1.2

# Credits
CREDIT_CAP = 100.0
ISSUANCE_BASE_RATE = 0.05
BETA0 = 0.6
BETA1 = 0.4
SCARCITY_MIDPOINT = 0.5  # fraction of CREDIT_CAP
COST_LOCAL = 2.0
COST_XBRANCH = 5.0
COST_GLOBAL = 10.0
CREDIT_HALF_LIFE_DAYS = 180.0
CREDIT_DECAY_BASE = 0.5
EPOCH_DURATION_HOURS = 168.0  # 7-day epochs

# Branch approval quorum
REQUIRED_PARTICIPATION = 0.4
REQUIRED_PATH_DIVERSITY = 3.0
REQUIRED_APPROVAL = 0.6
VOTE_TRIM_PERCENT = 0.1

# Escalation
GAMMA_IMPACT = 0.6
GAMMA_NEED = 0.3
GAMMA_DIVERSITY = 0.1
ESCALATION_THRESHOLD = 0.35
LAMBDA_CONNECTEDNESS = 0.6
LAMBDA_SCARCITY = 0.3
LAMBDA_LOAD = 0.1
MAX_NEIGHBORS = 5
MAX_BRANCH_LOAD = 10.0

# Stance diversity
STANCE_ENTROPY_BINS = 5
