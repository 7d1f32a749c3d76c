import os
import sys

import pandas as pd
import pytest

# Ensure the project root is on sys.path so tests can import
# ``mutation_context_analysis`` without installing the package.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from mutation_context_analysis.tree.reference import (  # noqa: E402
    HierarchyReference,
    sbs96_leaf_features,
)

# Features used by the hand-computed selection scenarios.
EXCESS_CLASS = "C>T"
EXCESS_GROUP = "T[C>T]N"
EXCESS_LEAF = "T[C>T]G"


def make_counts_table(leaf_counts: dict | None = None, default: int = 100) -> pd.DataFrame:
    """Two-sample counts table; each leaf total is split over the samples."""
    totals = {leaf: default for leaf in sbs96_leaf_features()}
    totals.update(leaf_counts or {})
    return pd.DataFrame(
        {leaf: [count // 2, count - count // 2] for leaf, count in totals.items()},
        index=["sample_1", "sample_2"],
    )


@pytest.fixture(scope="session")
def reference() -> HierarchyReference:
    """Reference hierarchy with a uniform background over the 96 contexts."""
    return HierarchyReference.sbs96()


@pytest.fixture(scope="session")
def tree(reference):
    return reference.tree()


@pytest.fixture
def proportional_counts() -> pd.DataFrame:
    """Every context observed exactly as often as the background predicts."""
    return make_counts_table()


@pytest.fixture
def single_leaf_excess_counts() -> pd.DataFrame:
    """2000 extra mutations in one trinucleotide context."""
    return make_counts_table({EXCESS_LEAF: 2100})


@pytest.fixture
def class_wide_excess_counts() -> pd.DataFrame:
    """Every context of one substitution class doubled."""
    leaves = [leaf for leaf in sbs96_leaf_features() if f"[{EXCESS_CLASS}]" in leaf]
    return make_counts_table({leaf: 200 for leaf in leaves})


@pytest.fixture
def group_shift_counts() -> pd.DataFrame:
    """Mass moved inside one class towards one 5' group; class total unchanged."""
    leaves = [leaf for leaf in sbs96_leaf_features() if f"[{EXCESS_CLASS}]" in leaf]
    counts = {
        leaf: 175 if leaf.startswith(EXCESS_GROUP[:-1]) else 75 for leaf in leaves
    }
    return make_counts_table(counts)
