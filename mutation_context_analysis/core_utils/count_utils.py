"""Aggregation of per-sample mutation counts into per-feature totals."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from .. import config
from ..errors import DomainError, SchemaError

if TYPE_CHECKING:
    from ..tree.feature_tree import FeatureTree


def _validate_count_columns(counts_table: pd.DataFrame, tree: "FeatureTree") -> list[str]:
    """Check that the table holds exactly one column per leaf feature.

    An optional root (total) column is tolerated and ignored.
    """
    root = tree.root()
    columns = [str(c) for c in counts_table.columns]
    duplicated = sorted({c for c in columns if columns.count(c) > 1})
    if duplicated:
        raise SchemaError("Duplicate columns in counts table", duplicated)

    leaves = tree.get_leaves()
    leaf_set = set(leaves)
    feature_columns = [c for c in columns if c != root]
    missing = [leaf for leaf in leaves if leaf not in set(feature_columns)]
    unexpected = [c for c in feature_columns if c not in leaf_set]
    if missing or unexpected:
        raise SchemaError(
            "Counts columns do not match the leaf features "
            f"({len(missing)} missing, {len(unexpected)} unexpected)",
            missing + unexpected,
        )
    return leaves


def aggregate_counts(
    counts_table: pd.DataFrame,
    tree: "FeatureTree",
    pseudo_count: float = config.PSEUDO_COUNT,
) -> pd.Series:
    """Reduce a per-sample counts table to observed totals per feature.

    Leaf totals are column sums; every other feature (root included) receives
    the sum of the leaf totals it aggregates, so the precomputed total column,
    if any, is ignored. With ``pseudo_count > 0`` each feature gains
    ``pseudo_count * leaf_span / 3`` before all totals are rounded half-to-even.

    Parameters
    ----------
    counts_table
        One row per sample, one column per leaf feature, plus an optional
        ``TOTAL_MUTATIONS`` column.
    tree
        The feature hierarchy the columns must match.
    pseudo_count
        Non-negative smoothing constant.

    Returns
    -------
    pd.Series
        Integer observed count per feature, indexed like ``tree.nodes``.

    Raises
    ------
    SchemaError
        Column set mismatch, non-numeric columns or missing values.
    DomainError
        Negative counts or a negative pseudo-count.
    """
    leaves = _validate_count_columns(counts_table, tree)

    pseudo_count = float(pseudo_count)
    if not np.isfinite(pseudo_count) or pseudo_count < 0:
        raise DomainError(f"pseudo_count must be non-negative, got {pseudo_count!r}")

    leaf_table = counts_table.rename(columns=str)[leaves]

    non_numeric = [c for c in leaves if not pd.api.types.is_numeric_dtype(leaf_table[c])]
    if non_numeric:
        raise SchemaError("Non-numeric counts columns", non_numeric)

    with_missing = leaf_table.columns[leaf_table.isna().any()].tolist()
    if with_missing:
        raise SchemaError("Missing values in counts columns", with_missing)

    negative = leaf_table.columns[(leaf_table < 0).any()].tolist()
    if negative:
        raise DomainError("Negative mutation counts", negative[0])

    leaf_totals = leaf_table.sum(axis=0).astype(float)

    totals = pd.Series(
        {
            feature: float(leaf_totals[sorted(tree.leaf_descendants(feature))].sum())
            for feature in tree.nodes
        },
        dtype=float,
    )

    if pseudo_count > 0:
        spans = pd.Series(
            {feature: tree.nodes[feature]["leaf_span"] for feature in totals.index},
            dtype=float,
        )
        totals = totals + pseudo_count * spans / config.PSEUDO_COUNT_DIVISOR

    rounded = np.rint(totals.to_numpy()).astype(np.int64)
    return pd.Series(rounded, index=totals.index, name="observed_count")


__all__ = ["aggregate_counts"]
