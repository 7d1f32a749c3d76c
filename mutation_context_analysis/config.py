"""
Central configuration for the mutation-context significance analysis library.
"""

from typing import Dict

# --- Hierarchy Parameters ---

# Identifier of the root feature (total mutational burden).
ROOT_FEATURE: str = "TOTAL_MUTATIONS"

# Tier indices (depth below the root).
TIER_A: int = 1
TIER_B: int = 2
TIER_C: int = 3

# Leaf span of every node in each tier of the reference hierarchy.
TIER_LEAF_SPANS: Dict[int, int] = {TIER_A: 16, TIER_B: 4, TIER_C: 1}

# Tolerance used when checking that sibling background probabilities sum to one.
PROBABILITY_SUM_TOLERANCE: float = 1e-6

# --- Statistical Parameters ---

# Default significance level (alpha) applied to corrected p-values.
SIGNIFICANCE_ALPHA: float = 0.05

# Fixed multiplicative correction applied to every binomial p-value.
# Independent of the number of rows actually tested.
CORRECTION_FACTOR: float = 150.0

# Epsilon below which the unexplained background mass of an ancestor is treated
# as exhausted during residual re-testing.
EPSILON: float = 1e-12

# Correction method
# Options:
#   "fixed": p * CORRECTION_FACTOR
#   "bonferroni": p * (number of rows in the test table)
CORRECTION_METHOD: str = "fixed"

# --- Count Parameters ---

# Pseudo-count added to each feature, scaled by leaf_span / PSEUDO_COUNT_DIVISOR.
PSEUDO_COUNT: float = 0.0
PSEUDO_COUNT_DIVISOR: float = 3.0

# --- Selection Parameters ---

# Test tiers B and C after seeding. False returns the significant tier-A
# features only.
TEST_ALL_TIERS: bool = True

# Propagation policy for rows whose conditioning ancestor is not a surviving
# feature.
# Options:
#   "pass": such rows count as significant
#   "exclude": such rows count as non-significant
ON_UNTESTED_PARENT: str = "pass"
