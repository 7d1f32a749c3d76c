"""Feature hierarchy construction and reference data."""

from .feature_tree import FeatureTree, convert_to_leaf_features
from .reference import (
    HierarchyReference,
    build_sbs96_metadata,
    sbs96_group_features,
    sbs96_leaf_features,
)
from .io import load_background_probs, load_reference_table

__all__ = [
    "FeatureTree",
    "convert_to_leaf_features",
    "HierarchyReference",
    "build_sbs96_metadata",
    "sbs96_group_features",
    "sbs96_leaf_features",
    "load_background_probs",
    "load_reference_table",
]
