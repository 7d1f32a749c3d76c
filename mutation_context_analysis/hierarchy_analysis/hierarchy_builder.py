"""Join hierarchy metadata with observed counts into the per-row test table.

Each non-root feature is tested against every one of its ancestors, not only
its direct parent: a row pairs the feature's observed count ``q`` with the
count of the conditioning ancestor (``size``) and the background probability
of the feature conditional on that ancestor. Rows with
``is_direct_parent=True`` are the plain parent/child tree nodes; the
remaining rows compare a feature against coarser pools (up to the root).
"""

from __future__ import annotations

import logging
from typing import Mapping

import numpy as np
import pandas as pd

from ..errors import SchemaError
from ..tree.feature_tree import FeatureTree

logger = logging.getLogger(__name__)

TEST_TABLE_COLUMNS: list = [
    "feature",
    "parent_name",
    "is_direct_parent",
    "tier",
    "leaf_span",
    "prob",
    "q",
    "size",
    "prop",
]


def build_test_table(
    tree: FeatureTree, counts: pd.Series | Mapping[str, int]
) -> pd.DataFrame:
    """Build one row per (feature, conditioning ancestor) pair.

    Parameters
    ----------
    tree
        The feature hierarchy.
    counts
        Observed count per feature, as returned by
        :func:`~mutation_context_analysis.core_utils.count_utils.aggregate_counts`.

    Returns
    -------
    pd.DataFrame
        Columns ``feature``, ``parent_name`` (conditioning ancestor),
        ``is_direct_parent``, ``tier``, ``leaf_span``, ``prob``, ``q``,
        ``size`` and ``prop``. ``prop = q / size`` is informational only and
        NaN where ``size == 0``.

    Raises
    ------
    SchemaError
        If a feature of the tree has no observed count.
    """
    counts = pd.Series(counts)
    missing = [f for f in tree.nodes if f not in counts.index]
    if missing:
        raise SchemaError("Observed counts missing for features", missing)

    rows = []
    for feature, ancestor in tree.ancestor_pairs():
        q = int(counts[feature])
        size = int(counts[ancestor])
        rows.append(
            {
                "feature": feature,
                "parent_name": ancestor,
                "is_direct_parent": tree.parent(feature) == ancestor,
                "tier": tree.tier(feature),
                "leaf_span": tree.nodes[feature]["leaf_span"],
                "prob": tree.conditional_prob(feature, ancestor),
                "q": q,
                "size": size,
                "prop": q / size if size > 0 else np.nan,
            }
        )

    table = pd.DataFrame(rows, columns=TEST_TABLE_COLUMNS)
    logger.debug(
        "Built test table with %d rows for %d features.",
        len(table),
        table["feature"].nunique(),
    )
    return table


__all__ = ["build_test_table", "TEST_TABLE_COLUMNS"]
