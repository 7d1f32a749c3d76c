"""Tests for the feature hierarchy (:mod:`mutation_context_analysis.tree.feature_tree`)."""

import pandas as pd
import pytest
from numpy.testing import assert_allclose

from mutation_context_analysis import config
from mutation_context_analysis.errors import DomainError, SchemaError
from mutation_context_analysis.tree.feature_tree import (
    FeatureTree,
    convert_to_leaf_features,
)
from mutation_context_analysis.tree.reference import (
    build_sbs96_metadata,
    sbs96_leaf_features,
)


def _small_metadata() -> pd.DataFrame:
    """Two classes, two groups each, two leaves per group."""
    rows = [("ROOT_A", "TOTAL_MUTATIONS", 4, 0.5), ("ROOT_B", "TOTAL_MUTATIONS", 4, 0.5)]
    for cls in ("ROOT_A", "ROOT_B"):
        for g in ("x", "y"):
            group = f"{cls}_{g}"
            rows.append((group, cls, 2, 0.5))
            rows.append((f"{group}_1", group, 1, 0.25))
            rows.append((f"{group}_2", group, 1, 0.75))
    return pd.DataFrame(rows, columns=["feature", "parent_name", "leaf_span", "prob"])


class TestReferenceHierarchy:
    """Shape of the standard 96-context hierarchy."""

    def test_tier_sizes(self, tree):
        assert len(tree.features_in_tier(config.TIER_A)) == 6
        assert len(tree.features_in_tier(config.TIER_B)) == 24
        assert len(tree.features_in_tier(config.TIER_C)) == 96
        assert tree.root() == config.ROOT_FEATURE

    def test_tier_a_leaf_spans_sum_to_total(self, tree):
        spans = [tree.nodes[f]["leaf_span"] for f in tree.features_in_tier(config.TIER_A)]
        assert sum(spans) == 96
        assert tree.nodes[tree.root()]["leaf_span"] == 96

    def test_each_span_equals_sum_of_children(self, tree):
        for tier in (config.TIER_A, config.TIER_B):
            for feature in tree.features_in_tier(tier):
                children = list(tree.successors(feature))
                assert tree.nodes[feature]["leaf_span"] == sum(
                    tree.nodes[c]["leaf_span"] for c in children
                )
        for leaf in tree.features_in_tier(config.TIER_C):
            assert tree.nodes[leaf]["leaf_span"] == 1
        assert tree.check_leaf_span_invariant() == []

    def test_leaves_match_canonical_contexts(self, tree):
        assert tree.get_leaves() == sorted(sbs96_leaf_features())

    def test_ancestors_nearest_first(self, tree):
        assert tree.ancestors_of("T[C>T]G") == ["T[C>T]N", "C>T", config.ROOT_FEATURE]
        assert tree.parent("T[C>T]G") == "T[C>T]N"
        assert tree.parent(config.ROOT_FEATURE) is None

    def test_uniform_conditional_probabilities(self, tree):
        assert_allclose(tree.conditional_prob("T[C>T]G", "T[C>T]N"), 1 / 4)
        assert_allclose(tree.conditional_prob("T[C>T]G", "C>T"), 1 / 16)
        assert_allclose(tree.conditional_prob("T[C>T]G", config.ROOT_FEATURE), 1 / 96)
        assert_allclose(tree.conditional_prob("T[C>T]N", config.ROOT_FEATURE), 1 / 24)

    def test_conditional_probability_requires_ancestor(self, tree):
        with pytest.raises(SchemaError):
            tree.conditional_prob("T[C>T]G", "C>A")

    def test_leaf_descendants(self, tree):
        assert len(tree.leaf_descendants("C>T")) == 16
        assert tree.leaf_descendants("T[C>T]G") == frozenset({"T[C>T]G"})
        assert len(tree.leaf_descendants(config.ROOT_FEATURE)) == 96


class TestNonUniformBackground:
    def test_root_level_probabilities_recovered(self):
        leaves = sbs96_leaf_features()
        rates = pd.Series(range(1, 97), index=leaves, dtype=float)
        tree = FeatureTree.from_metadata(build_sbs96_metadata(rates))

        expected = rates / rates.sum()
        for leaf in leaves:
            assert_allclose(
                tree.conditional_prob(leaf, config.ROOT_FEATURE), expected[leaf], rtol=1e-12
            )

    def test_children_probabilities_sum_to_one(self):
        rates = pd.Series(range(1, 97), index=sbs96_leaf_features(), dtype=float)
        tree = FeatureTree.from_metadata(build_sbs96_metadata(rates))
        for node in tree.nodes:
            children = list(tree.successors(node))
            if children:
                assert_allclose(sum(tree.nodes[c]["prob"] for c in children), 1.0)


class TestFromMetadataValidation:
    def test_root_row_is_optional(self):
        tree = FeatureTree.from_metadata(_small_metadata())
        assert tree.nodes[config.ROOT_FEATURE]["leaf_span"] == 8
        assert tree.get_leaves("ROOT_A") == ["ROOT_A_x_1", "ROOT_A_x_2", "ROOT_A_y_1", "ROOT_A_y_2"]

    def test_unknown_parent_is_named(self):
        metadata = _small_metadata()
        metadata.loc[metadata["feature"] == "ROOT_A_x_1", "parent_name"] = "MISSING"
        with pytest.raises(SchemaError, match="MISSING") as excinfo:
            FeatureTree.from_metadata(metadata)
        assert excinfo.value.features == ("MISSING",)

    def test_probability_out_of_range(self):
        metadata = _small_metadata()
        metadata.loc[metadata["feature"] == "ROOT_B_y", "prob"] = 1.5
        with pytest.raises(DomainError, match="ROOT_B_y"):
            FeatureTree.from_metadata(metadata)

    def test_broken_leaf_span(self):
        metadata = _small_metadata()
        metadata.loc[metadata["feature"] == "ROOT_A_x", "leaf_span"] = 3
        with pytest.raises(SchemaError, match="ROOT_A_x"):
            FeatureTree.from_metadata(metadata)

    def test_duplicate_feature(self):
        metadata = pd.concat([_small_metadata(), _small_metadata().iloc[[0]]])
        with pytest.raises(SchemaError, match="Duplicate"):
            FeatureTree.from_metadata(metadata)

    def test_second_root(self):
        metadata = _small_metadata()
        metadata.loc[metadata["feature"] == "ROOT_B", "parent_name"] = None
        with pytest.raises(SchemaError, match="ROOT_B"):
            FeatureTree.from_metadata(metadata)

    def test_missing_columns(self):
        with pytest.raises(SchemaError, match="leaf_span"):
            FeatureTree.from_metadata(_small_metadata().drop(columns="leaf_span"))

    def test_leaf_at_wrong_depth(self):
        metadata = _small_metadata()
        extra = pd.DataFrame(
            [("SHALLOW", "TOTAL_MUTATIONS", 1, 0.1)],
            columns=metadata.columns,
        )
        with pytest.raises(SchemaError, match="SHALLOW"):
            FeatureTree.from_metadata(pd.concat([metadata, extra], ignore_index=True))


class TestConvertToLeafFeatures:
    def test_single_feature(self, tree):
        leaves = convert_to_leaf_features(tree, "C>A")
        assert len(leaves) == 16
        assert all("[C>A]" in leaf for leaf in leaves)

    def test_union_of_overlapping_features(self, tree):
        leaves = convert_to_leaf_features(tree, ["A[C>A]N", "A[C>A]A", "T[T>G]T"])
        assert leaves == sorted(["A[C>A]A", "A[C>A]C", "A[C>A]G", "A[C>A]T", "T[T>G]T"])

    def test_unknown_feature(self, tree):
        with pytest.raises(SchemaError, match="N\\[C>A\\]N"):
            convert_to_leaf_features(tree, ["N[C>A]N"])
