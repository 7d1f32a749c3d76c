"""Entry points for survival-feature selection.

Every call receives its counts table and a :class:`HierarchyReference`
explicitly; nothing is read from module state, so independent cohorts can be
processed concurrently with a shared reference.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Hashable, Mapping, Optional

import pandas as pd
from joblib import Parallel, delayed

from . import config
from .core_utils.count_utils import aggregate_counts
from .hierarchy_analysis.hierarchy_builder import build_test_table
from .hierarchy_analysis.statistics import (
    annotate_binomial_significance,
    resolve_correction_factor,
)
from .hierarchy_analysis.survival_selection import SelectionResult, SurvivalSelector
from .tree.reference import HierarchyReference

logger = logging.getLogger(__name__)


def run_survival_selection(
    counts_table: pd.DataFrame,
    reference: HierarchyReference,
    p_threshold: float = config.SIGNIFICANCE_ALPHA,
    pseudo_count: float = config.PSEUDO_COUNT,
    use_wgs_background: bool = False,
    *,
    test_all_tiers: bool = config.TEST_ALL_TIERS,
    on_untested_parent: str = config.ON_UNTESTED_PARENT,
    correction_factor: float = config.CORRECTION_FACTOR,
    correction_method: str = config.CORRECTION_METHOD,
) -> SelectionResult:
    """Run the full pipeline and return the selection with diagnostics.

    Parameters
    ----------
    counts_table
        One row per sample, one column per leaf feature, plus an optional
        ``TOTAL_MUTATIONS`` column that is ignored and recomputed.
    reference
        Hierarchy metadata and background probabilities.
    p_threshold
        Significance level applied to corrected p-values.
    pseudo_count
        Pseudo-count smoothing (``0`` disables it).
    use_wgs_background
        Use the whole-genome instead of the default whole-exome background.
    test_all_tiers
        ``False`` stops after testing the tier-A features.
    on_untested_parent
        Propagation policy, ``"pass"`` (default) or ``"exclude"``.
    correction_factor
        Fixed multiplicative correction (used by ``correction_method="fixed"``).
    correction_method
        ``"fixed"`` (default) or ``"bonferroni"`` (factor = number of test rows).

    Returns
    -------
    SelectionResult
    """
    tree = reference.tree(use_wgs_background)
    counts = aggregate_counts(counts_table, tree, pseudo_count=pseudo_count)
    test_table = build_test_table(tree, counts)

    factor = resolve_correction_factor(
        correction_method, n_tests=len(test_table), correction_factor=correction_factor
    )
    test_table = annotate_binomial_significance(
        test_table,
        significance_level_alpha=p_threshold,
        correction_factor=factor,
    )

    selector = SurvivalSelector(
        tree,
        test_table,
        alpha=p_threshold,
        correction_factor=factor,
        on_untested_parent=on_untested_parent,
    )
    result = selector.select(test_all_tiers=test_all_tiers)
    logger.info(
        "Selected %d survival features (%d seeded, %d propagated, %d pruned).",
        len(result.features),
        len(result.seeded),
        len(result.propagated),
        len(result.pruned),
    )
    return result


def select_survival_features(
    counts_table: pd.DataFrame,
    reference: HierarchyReference,
    p_threshold: float = config.SIGNIFICANCE_ALPHA,
    pseudo_count: float = config.PSEUDO_COUNT,
    use_wgs_background: bool = False,
    **kwargs,
) -> FrozenSet[str]:
    """Return the survival features for one cohort.

    Accepts the same arguments as :func:`run_survival_selection`. The result
    is never empty: ``{"TOTAL_MUTATIONS"}`` signals that no structure beyond
    the total burden survived.
    """
    return run_survival_selection(
        counts_table,
        reference,
        p_threshold=p_threshold,
        pseudo_count=pseudo_count,
        use_wgs_background=use_wgs_background,
        **kwargs,
    ).features


def select_survival_features_by_group(
    counts_tables: Mapping[Hashable, pd.DataFrame] | pd.DataFrame,
    reference: HierarchyReference,
    *,
    group_column: Optional[str] = None,
    n_jobs: int = 1,
    **kwargs,
) -> Dict[Hashable, FrozenSet[str]]:
    """Run one independent selection per cohort or factor level.

    Parameters
    ----------
    counts_tables
        Mapping of group → counts table, or a single table split by
        ``group_column``.
    reference
        Shared read-only reference data.
    group_column
        Column holding the group label when a single table is given.
    n_jobs
        Number of joblib workers (``-1`` uses all cores).
    **kwargs
        Forwarded to :func:`select_survival_features`.

    Returns
    -------
    dict
        Group → survival features, in input order.
    """
    if isinstance(counts_tables, pd.DataFrame):
        if group_column is None:
            raise ValueError("group_column is required when passing a single table")
        counts_tables = {
            group: table.drop(columns=group_column)
            for group, table in counts_tables.groupby(group_column, sort=False)
        }

    groups = list(counts_tables)
    selections = Parallel(n_jobs=n_jobs)(
        delayed(select_survival_features)(counts_tables[group], reference, **kwargs)
        for group in groups
    )
    return dict(zip(groups, selections))


__all__ = [
    "run_survival_selection",
    "select_survival_features",
    "select_survival_features_by_group",
]
