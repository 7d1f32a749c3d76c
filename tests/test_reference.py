"""Tests for reference data construction and loading."""

import pandas as pd
import pytest
from numpy.testing import assert_allclose

from mutation_context_analysis import config
from mutation_context_analysis.errors import DomainError, SchemaError
from mutation_context_analysis.tree.io import load_background_probs, load_reference_table
from mutation_context_analysis.tree.reference import (
    HierarchyReference,
    build_sbs96_metadata,
    sbs96_group_features,
    sbs96_leaf_features,
)


def test_sbs96_feature_lists() -> None:
    leaves = sbs96_leaf_features()
    groups = sbs96_group_features()
    assert len(leaves) == 96 and len(set(leaves)) == 96
    assert len(groups) == 24
    assert leaves[0] == "A[C>A]A"
    assert groups[0] == "A[C>A]N"


def test_build_metadata_layout() -> None:
    metadata = build_sbs96_metadata()
    assert len(metadata) == 1 + 6 + 24 + 96
    assert metadata.iloc[0]["feature"] == config.ROOT_FEATURE
    assert pd.isna(metadata.iloc[0]["parent_name"])
    by_span = metadata.groupby("leaf_span")["feature"].count().to_dict()
    assert by_span == {1: 96, 4: 24, 16: 6, 96: 1}


def test_build_metadata_normalizes_rates() -> None:
    rates = pd.Series(5.0, index=sbs96_leaf_features())
    metadata = build_sbs96_metadata(rates).set_index("feature")
    assert_allclose(metadata.loc["C>A", "prob"], 1 / 6)
    assert_allclose(metadata.loc["A[C>A]A", "prob"], 1 / 4)


def test_build_metadata_rejects_missing_rates() -> None:
    rates = pd.Series(1.0, index=sbs96_leaf_features()[1:])
    with pytest.raises(SchemaError, match=r"A\[C>A\]A"):
        build_sbs96_metadata(rates)


def test_build_metadata_rejects_non_positive_rates() -> None:
    rates = pd.Series(1.0, index=sbs96_leaf_features())
    rates["G[T>C]A"] = 0.0
    with pytest.raises(DomainError, match=r"G\[T>C\]A"):
        build_sbs96_metadata(rates)


def test_wgs_background_selected_by_flag() -> None:
    wgs_rates = pd.Series(1.0, index=sbs96_leaf_features())
    wgs_rates["T[C>T]G"] = 21.0
    reference = HierarchyReference.sbs96(wgs_leaf_probs=wgs_rates)

    assert reference.has_wgs_background
    wes_tree = reference.tree(use_wgs_background=False)
    wgs_tree = reference.tree(use_wgs_background=True)
    assert_allclose(wes_tree.conditional_prob("T[C>T]G", config.ROOT_FEATURE), 1 / 96)
    assert_allclose(wgs_tree.conditional_prob("T[C>T]G", config.ROOT_FEATURE), 21 / 116)
    assert reference.tree(True) is wgs_tree


def test_missing_wgs_background(reference) -> None:
    assert not reference.has_wgs_background
    with pytest.raises(SchemaError, match="whole-genome"):
        reference.tree(use_wgs_background=True)


def test_wgs_probabilities_must_cover_features() -> None:
    metadata = build_sbs96_metadata()
    wgs = metadata.set_index("feature")["prob"].drop("C>G")
    with pytest.raises(SchemaError, match="C>G"):
        HierarchyReference(metadata=metadata, wgs_probs=wgs)


def test_leaf_descendant_mapping(reference) -> None:
    mapping = reference.leaf_descendants()
    assert mapping["T[C>T]N"] == frozenset({"T[C>T]A", "T[C>T]C", "T[C>T]G", "T[C>T]T"})
    assert len(mapping[config.ROOT_FEATURE]) == 96
    assert reference.leaf_features == sorted(sbs96_leaf_features())


@pytest.mark.parametrize("suffix", [".csv", ".tsv"])
def test_reference_from_files(tmp_path, suffix) -> None:
    sep = "\t" if suffix == ".tsv" else ","
    metadata = build_sbs96_metadata()
    metadata_path = tmp_path / f"background_probs{suffix}"
    metadata.to_csv(metadata_path, sep=sep, index=False)

    wgs_path = tmp_path / f"background_probs_wgs{suffix}"
    metadata[["feature", "prob"]].to_csv(wgs_path, sep=sep, index=False)

    reference = HierarchyReference.from_files(metadata_path, wgs_path)
    assert reference.has_wgs_background
    assert len(reference.tree().features_in_tier(config.TIER_C)) == 96
    assert_allclose(
        load_background_probs(wgs_path)["A[C>A]A"], metadata.set_index("feature").loc["A[C>A]A", "prob"]
    )


def test_load_reference_table_missing_columns(tmp_path) -> None:
    path = tmp_path / "broken.csv"
    pd.DataFrame({"feature": ["C>A"], "prob": [0.2]}).to_csv(path, index=False)
    with pytest.raises(SchemaError, match="parent_name"):
        load_reference_table(path)
