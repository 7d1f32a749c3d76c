"""
Mutation-context significance analysis.

Identifies which categories of point mutations, organised in a three-level
hierarchy (substitution class → 5' context group → trinucleotide context),
occur significantly more often than a background model predicts, and
reduces them to a minimal set of "survival" features.
"""

from .api import (
    run_survival_selection,
    select_survival_features,
    select_survival_features_by_group,
)
from .errors import DomainError, SchemaError
from .hierarchy_analysis import SelectionResult, SurvivalSelector
from .tree import FeatureTree, HierarchyReference, convert_to_leaf_features

__all__ = [
    "run_survival_selection",
    "select_survival_features",
    "select_survival_features_by_group",
    "DomainError",
    "SchemaError",
    "SelectionResult",
    "SurvivalSelector",
    "FeatureTree",
    "HierarchyReference",
    "convert_to_leaf_features",
]
