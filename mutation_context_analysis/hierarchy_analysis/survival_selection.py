"""Top-down seeding and bottom-up residual pruning of survival features.

This module contains :class:`SurvivalSelector`, which reads the annotated
test table and converges on a minimal set of features whose excess over the
background is not explained by more specific surviving features.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Dict, FrozenSet, List, Set, Tuple

import pandas as pd

from .. import config
from ..tree.feature_tree import FeatureTree
from .statistics.binomial_test import binomial_tail_test

logger = logging.getLogger(__name__)

ON_UNTESTED_PARENT_POLICIES: tuple = ("pass", "exclude")


@dataclass
class ResidualRecord:
    """Residualized re-test of one surviving feature against one ancestor."""

    level: int
    feature: str
    parent_name: str
    child_prob_sum: float
    child_q_sum: int
    parent_prob_sum: float
    parent_q_sum: int
    prob_pruned: float
    q_pruned: int
    size_pruned: int
    p_value: float
    p_value_corrected: float
    significant: bool


@dataclass
class SelectionResult:
    """Outcome of a selection run.

    Attributes
    ----------
    features
        Final survival features; ``{root}`` when nothing survives.
    seeded
        Tier-A features found significant in the seeding pass.
    propagated
        Tier-B and tier-C features added by top-down propagation.
    pruned
        Features removed by bottom-up residual pruning, in removal order.
    test_table
        The annotated per-row test table the selection was run on.
    residual_tests
        One row per :class:`ResidualRecord`.
    """

    features: FrozenSet[str]
    seeded: List[str]
    propagated: List[str] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)
    test_table: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)
    residual_tests: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)


def residualize(
    prob: float,
    q: int,
    size: int,
    child_prob_sum: float,
    child_q_sum: int,
    parent_prob_sum: float,
    parent_q_sum: int,
    feature: str | None = None,
) -> Tuple[float, int, int]:
    """Remove the contribution of already-surviving descendants.

    ``prob_pruned = (prob - child_prob_sum) / (1 - parent_prob_sum)``,
    ``q_pruned = q - child_q_sum`` and ``size_pruned = size - parent_q_sum``.

    Rounding of smoothed counts can leave the residuals marginally outside
    their domain; they are clamped to ``0 <= q_pruned <= size_pruned`` and
    ``0 <= prob_pruned <= 1``. When the ancestor's background mass is fully
    explained the probability is 0 (and ``size_pruned`` is 0 as well).
    """
    size_pruned = int(size) - int(parent_q_sum)
    q_pruned = int(q) - int(child_q_sum)
    remaining = 1.0 - float(parent_prob_sum)
    if remaining > config.EPSILON:
        prob_pruned = (float(prob) - float(child_prob_sum)) / remaining
    else:
        prob_pruned = 0.0

    clamped_size = max(size_pruned, 0)
    clamped_q = min(max(q_pruned, 0), clamped_size)
    clamped_prob = min(max(prob_pruned, 0.0), 1.0)
    if (clamped_size, clamped_q) != (size_pruned, q_pruned):
        logger.debug(
            "Clamped residual counts for %r: q=%d, size=%d -> q=%d, size=%d.",
            feature,
            q_pruned,
            size_pruned,
            clamped_q,
            clamped_size,
        )
    return clamped_prob, clamped_q, clamped_size


class SurvivalSelector:
    """Select survival features from an annotated test table.

    The selector runs three phases over a mutable survival set:

    #. **Seed**: tier-A features significant against the root.
    #. **Top-down propagation**: tier B, then tier C. A feature is added when
       all of its rows are significant, where a row whose conditioning
       ancestor is neither surviving nor the root counts as significant under
       the ``"pass"`` policy and as non-significant under ``"exclude"``.
    #. **Bottom-up residual pruning**: exactly two iterations (tier B, then
       tier A). Each surviving feature is re-tested after subtracting the
       counts and background mass of its surviving leaf descendants, and is
       removed when any re-tested row is no longer significant.

    The survival set only grows in phases 1-2 and only shrinks in phase 3.

    Parameters
    ----------
    tree
        The feature hierarchy the table was built from.
    test_table
        Output of
        :func:`~mutation_context_analysis.hierarchy_analysis.statistics.annotate_binomial_significance`.
    alpha
        Threshold on corrected p-values for residual re-tests.
    correction_factor
        Multiplicative correction for residual re-tests.
    on_untested_parent
        ``"pass"`` or ``"exclude"``.
    """

    def __init__(
        self,
        tree: FeatureTree,
        test_table: pd.DataFrame,
        *,
        alpha: float = config.SIGNIFICANCE_ALPHA,
        correction_factor: float = config.CORRECTION_FACTOR,
        on_untested_parent: str = config.ON_UNTESTED_PARENT,
    ) -> None:
        if on_untested_parent not in ON_UNTESTED_PARENT_POLICIES:
            raise ValueError(
                f"Unknown on_untested_parent policy: {on_untested_parent!r}. "
                f"Supported policies: 'pass', 'exclude'"
            )
        if "significant" not in test_table.columns:
            raise ValueError(
                "Test table has no 'significant' column; "
                "run annotate_binomial_significance first."
            )

        self.tree = tree
        self.test_table = test_table
        self.alpha = float(alpha)
        self.correction_factor = float(correction_factor)
        self.on_untested_parent = on_untested_parent
        self._root = tree.root()

        # ----- table → fast dictionary lookups -----
        self._rows_by_feature: Dict[str, List[dict]] = defaultdict(list)
        self._counts: Dict[str, int] = {}
        for row in test_table.to_dict("records"):
            self._rows_by_feature[row["feature"]].append(row)
            self._counts[row["feature"]] = int(row["q"])
            self._counts[row["parent_name"]] = int(row["size"])

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def seed(self) -> List[str]:
        """Return tier-A features whose tests are significant."""
        return [
            feature
            for feature in self.tree.features_in_tier(config.TIER_A)
            if self._rows_by_feature[feature]
            and all(row["significant"] for row in self._rows_by_feature[feature])
        ]

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def _propagated_significance(self, feature: str, recognized: Set[str]) -> bool:
        untested_default = self.on_untested_parent == "pass"
        return all(
            bool(row["significant"])
            if row["parent_name"] in recognized
            else untested_default
            for row in self._rows_by_feature[feature]
        )

    def propagate(self, survivors: Set[str]) -> List[str]:
        """Add tier-B then tier-C features to ``survivors`` in place.

        Returns the added features in order.
        """
        added: List[str] = []
        for tier in (config.TIER_B, config.TIER_C):
            recognized = survivors | {self._root}
            tier_added = [
                feature
                for feature in self.tree.features_in_tier(tier)
                if self._propagated_significance(feature, recognized)
            ]
            survivors.update(tier_added)
            added.extend(tier_added)
            logger.debug("Propagation added %d tier-%d features.", len(tier_added), tier)
        return added

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    def _leaf_mass(self, leaves: Set[str], ancestor: str) -> Tuple[float, int]:
        prob_sum = sum(self.tree.conditional_prob(leaf, ancestor) for leaf in leaves)
        q_sum = sum(self._counts[leaf] for leaf in leaves)
        return prob_sum, q_sum

    def _residual_tests(
        self,
        level: int,
        feature: str,
        descendant_ids: Set[str],
        recognized: Set[str],
    ) -> List[ResidualRecord]:
        feature_leaves = self.tree.leaf_descendants(feature) & descendant_ids
        if not feature_leaves:
            return []

        records = []
        for row in self._rows_by_feature[feature]:
            ancestor = row["parent_name"]
            if ancestor not in recognized:
                continue
            ancestor_leaves = self.tree.leaf_descendants(ancestor) & descendant_ids
            child_prob_sum, child_q_sum = self._leaf_mass(feature_leaves, ancestor)
            parent_prob_sum, parent_q_sum = self._leaf_mass(ancestor_leaves, ancestor)

            prob_pruned, q_pruned, size_pruned = residualize(
                row["prob"],
                row["q"],
                row["size"],
                child_prob_sum,
                child_q_sum,
                parent_prob_sum,
                parent_q_sum,
                feature=feature,
            )
            result = binomial_tail_test(
                q_pruned,
                size_pruned,
                prob_pruned,
                alpha=self.alpha,
                correction_factor=self.correction_factor,
                feature=feature,
            )
            records.append(
                ResidualRecord(
                    level=level,
                    feature=feature,
                    parent_name=ancestor,
                    child_prob_sum=child_prob_sum,
                    child_q_sum=child_q_sum,
                    parent_prob_sum=parent_prob_sum,
                    parent_q_sum=parent_q_sum,
                    prob_pruned=prob_pruned,
                    q_pruned=q_pruned,
                    size_pruned=size_pruned,
                    p_value=result.p_value,
                    p_value_corrected=result.corrected_p_value,
                    significant=result.is_significant,
                )
            )
        return records

    def prune(self, survivors: Set[str]) -> Tuple[List[str], List[ResidualRecord]]:
        """Remove features from ``survivors`` in place by residual re-testing.

        Returns the pruned features and every residual re-test performed.
        """
        pruned: List[str] = []
        records: List[ResidualRecord] = []

        for level in (config.TIER_B, config.TIER_A):
            finer_tiers = {t for t in (config.TIER_B, config.TIER_C) if t > level}
            descendant_ids: Set[str] = set()
            for feature in survivors:
                if self.tree.tier(feature) in finer_tiers:
                    descendant_ids.update(self.tree.leaf_descendants(feature))

            recognized = survivors | {self._root}
            level_pruned = []
            for feature in self.tree.features_in_tier(level):
                if feature not in survivors:
                    continue
                retests = self._residual_tests(level, feature, descendant_ids, recognized)
                records.extend(retests)
                if retests and not all(r.significant for r in retests):
                    level_pruned.append(feature)

            survivors.difference_update(level_pruned)
            pruned.extend(level_pruned)
            logger.debug(
                "Residual pruning at tier %d removed %d features: %s",
                level,
                len(level_pruned),
                level_pruned,
            )

        return pruned, records

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def select(self, test_all_tiers: bool = config.TEST_ALL_TIERS) -> SelectionResult:
        """Run the seeding, propagation and pruning passes.

        Parameters
        ----------
        test_all_tiers
            When ``False`` only the seeding pass runs.

        Returns
        -------
        SelectionResult
        """
        survivors: Set[str] = set(self.seed())
        seeded = sorted(survivors)
        logger.debug("Seeded %d tier-A features: %s", len(seeded), seeded)

        propagated: List[str] = []
        pruned: List[str] = []
        records: List[ResidualRecord] = []
        if test_all_tiers:
            propagated = self.propagate(survivors)
            pruned, records = self.prune(survivors)

        features = frozenset(survivors) if survivors else frozenset([self._root])
        return SelectionResult(
            features=features,
            seeded=seeded,
            propagated=propagated,
            pruned=pruned,
            test_table=self.test_table,
            residual_tests=pd.DataFrame(
                [asdict(r) for r in records],
                columns=list(ResidualRecord.__dataclass_fields__),
            ),
        )


__all__ = [
    "SurvivalSelector",
    "SelectionResult",
    "ResidualRecord",
    "residualize",
    "ON_UNTESTED_PARENT_POLICIES",
]
