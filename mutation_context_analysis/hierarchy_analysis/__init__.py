"""
Hierarchical significance testing of mutation-context features.

This package provides:
- Construction of the per-(feature, ancestor) test table
- Exact one-sided binomial tests with a fixed multiplicity correction
- Top-down seeding and bottom-up residual pruning of survival features
"""

from .hierarchy_builder import build_test_table
from .statistics import (
    annotate_binomial_significance,
    binomial_tail_p_value,
    binomial_tail_test,
    resolve_correction_factor,
)
from .survival_selection import SelectionResult, SurvivalSelector, residualize

__all__ = [
    "build_test_table",
    "annotate_binomial_significance",
    "binomial_tail_p_value",
    "binomial_tail_test",
    "resolve_correction_factor",
    "SelectionResult",
    "SurvivalSelector",
    "residualize",
]
