from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx
import numpy as np
import pandas as pd

from mutation_context_analysis import config
from mutation_context_analysis.core_utils.tree_utils import (
    compute_ancestor_paths,
    compute_node_depths,
)
from mutation_context_analysis.errors import DomainError, SchemaError

logger = logging.getLogger(__name__)

REQUIRED_METADATA_COLUMNS: Tuple[str, ...] = ("feature", "parent_name", "leaf_span")

# Number of non-root tiers every leaf must sit below the root.
N_TIERS: int = 3


# ============================================================
# 1) FeatureTree (NetworkX.DiGraph subclass)
# ============================================================


class FeatureTree(nx.DiGraph):
    """Directed feature hierarchy with background probabilities.

    The class augments ``networkx.DiGraph`` with the queries needed by the
    significance tests:

    * the root feature is tracked and can be retrieved via :meth:`root`.
    * every non-root feature carries ``leaf_span`` (number of leaf contexts it
      aggregates), ``prob`` (background probability conditional on its parent)
      and ``tier`` (1 = coarsest, 3 = leaf).
    * :meth:`conditional_prob` returns the background probability of a feature
      conditional on any of its ancestors.

    Edges always point from parent to child. The tree is treated as read-only
    once :meth:`from_metadata` returns; derived lookups are computed up-front so
    one instance can be shared between concurrent selections.
    """

    # ---------------- Constructors ----------------

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._depths: Optional[Dict[str, int]] = None
        self._ancestors: Optional[Dict[str, List[str]]] = None
        self._descendant_sets: Optional[Dict[str, frozenset]] = None
        self._conditional_probs: Optional[Dict[Tuple[str, str], float]] = None

    @classmethod
    def from_metadata(
        cls,
        metadata: pd.DataFrame,
        prob_column: str = "prob",
        root: str = config.ROOT_FEATURE,
    ) -> "FeatureTree":
        """Construct the hierarchy from a feature metadata table.

        Parameters
        ----------
        metadata
            One row per feature with columns ``feature``, ``parent_name``,
            ``leaf_span`` and ``prob_column``. The root row may be omitted, in
            which case the root's leaf span is the sum of its children's spans.
        prob_column
            Column holding the background probability of each feature
            conditional on its parent.
        root
            Identifier of the root feature.

        Returns
        -------
        FeatureTree

        Raises
        ------
        SchemaError
            Missing columns, duplicate or unknown features, extra roots, wrong
            depth or a broken leaf-span invariant.
        DomainError
            A background probability outside ``(0, 1)``.
        """
        missing = [
            c for c in (*REQUIRED_METADATA_COLUMNS, prob_column) if c not in metadata
        ]
        if missing:
            raise SchemaError("Hierarchy metadata is missing required columns", missing)

        feature_ids = metadata["feature"].astype(str)
        duplicated = feature_ids[feature_ids.duplicated()].unique().tolist()
        if duplicated:
            raise SchemaError("Duplicate features in hierarchy metadata", duplicated)

        G = cls()
        G.graph["root"] = root
        G.add_node(root, leaf_span=None, prob=1.0)

        records = metadata.to_dict("records")
        orphans = []
        for record in records:
            feature = str(record["feature"])
            span = record["leaf_span"]
            if pd.isna(span):
                raise SchemaError("Missing leaf_span for features", [feature])
            if feature == root:
                G.nodes[root]["leaf_span"] = int(span)
                continue
            if pd.isna(record["parent_name"]):
                orphans.append(feature)
                continue
            prob = float(record[prob_column])
            if not np.isfinite(prob) or not 0.0 < prob < 1.0:
                raise DomainError(
                    f"Background probability {prob!r} outside (0, 1)", feature
                )
            G.add_node(feature, leaf_span=int(span), prob=prob)

        if orphans:
            raise SchemaError(f"Features without parent other than {root!r}", orphans)

        unknown = []
        for record in records:
            feature = str(record["feature"])
            if feature == root:
                continue
            parent = str(record["parent_name"])
            if parent not in G:
                unknown.append(parent)
                continue
            G.add_edge(parent, feature)
        if unknown:
            raise SchemaError("Hierarchy references unknown parent features", unknown)

        if not nx.is_directed_acyclic_graph(G):
            raise SchemaError("Hierarchy contains a cycle", nx.find_cycle(G)[0])

        if G.nodes[root]["leaf_span"] is None:
            G.nodes[root]["leaf_span"] = sum(
                G.nodes[c]["leaf_span"] for c in G.successors(root)
            )

        G._finalize()
        return G

    def _finalize(self) -> None:
        """Validate the hierarchy shape and pre-compute derived lookups."""
        root = self.root()
        if self.out_degree(root) == 0:
            raise SchemaError("Hierarchy has no features below the root", [root])
        self._depths = compute_node_depths(self, root)
        for node, depth in self._depths.items():
            self.nodes[node]["tier"] = depth

        misplaced = [
            n for n in self.nodes if self._is_leaf(n) and self._depths[n] != N_TIERS
        ]
        if misplaced:
            raise SchemaError(
                f"Leaf features must sit exactly {N_TIERS} levels below the root",
                misplaced,
            )

        broken = self.check_leaf_span_invariant()
        if broken:
            raise SchemaError("Leaf-span invariant violated for features", broken)

        self._warn_on_probability_sums()

        self._ancestors = compute_ancestor_paths(self, root)
        self._descendant_sets = self.compute_descendant_sets()
        self._conditional_probs = self._compute_conditional_probs()

    # ---------------- Poset helpers ----------------

    def root(self) -> str:
        """Return the cached root feature."""
        r = self.graph.get("root")
        if r is None:
            roots = [u for u, d in self.in_degree() if d == 0]
            if len(roots) != 1:
                raise SchemaError("Expected exactly one root feature", roots)
            r = roots[0]
            self.graph["root"] = r
        return r

    def parent(self, feature: str) -> Optional[str]:
        """Return the parent of ``feature`` (``None`` for the root)."""
        self._require(feature)
        return next(self.predecessors(feature), None)

    def tier(self, feature: str) -> int:
        """Return the tier of ``feature`` (root = 0, leaves = 3)."""
        self._require(feature)
        return int(self.nodes[feature]["tier"])

    def features_in_tier(self, tier: int) -> List[str]:
        """List the features of one tier in insertion order."""
        return [n for n, t in self.nodes(data="tier") if t == tier]

    def ancestors_of(self, feature: str) -> List[str]:
        """Ancestors of ``feature``, nearest first and root last."""
        self._require(feature)
        return list(self._ancestors[feature])

    def get_leaves(self, feature: Optional[str] = None, sort: bool = True) -> List[str]:
        """Collect leaf features globally or under ``feature``."""
        if feature is None:
            leaves = [n for n in self.nodes if self._is_leaf(n)]
        else:
            self._require(feature)
            leaves = list(self._descendant_sets[feature])
        return sorted(leaves) if sort else leaves

    def leaf_descendants(self, feature: str) -> frozenset:
        """Leaf features aggregated by ``feature`` (a leaf maps to itself)."""
        self._require(feature)
        return self._descendant_sets[feature]

    def _is_leaf(self, node_id: str) -> bool:
        return node_id != self.graph.get("root") and self.out_degree(node_id) == 0

    def _require(self, feature: str) -> None:
        if feature not in self:
            raise SchemaError("Unknown feature", [feature])

    def compute_descendant_sets(self) -> Dict[str, frozenset]:
        """Map each feature to the frozenset of leaf features under it."""
        desc_sets: Dict[str, frozenset] = {}
        # process leaves first (reverse topological order)
        for node in reversed(list(nx.topological_sort(self))):
            if self._is_leaf(node):
                desc_sets[node] = frozenset([node])
            else:
                child_sets = [desc_sets[c] for c in self.successors(node)]
                desc_sets[node] = frozenset().union(*child_sets)
        return desc_sets

    def check_leaf_span_invariant(self) -> List[str]:
        """Return features whose leaf span disagrees with their children.

        Leaves must have ``leaf_span == 1``; every other feature must have a
        span equal to the sum of its direct children's spans.
        """
        broken = []
        for node in self.nodes:
            span = self.nodes[node]["leaf_span"]
            if self._is_leaf(node):
                expected = 1
            else:
                expected = sum(self.nodes[c]["leaf_span"] for c in self.successors(node))
            if span != expected:
                broken.append(node)
        return broken

    def _warn_on_probability_sums(self) -> None:
        for node in self.nodes:
            children = list(self.successors(node))
            if not children:
                continue
            total = sum(self.nodes[c]["prob"] for c in children)
            if abs(total - 1.0) > config.PROBABILITY_SUM_TOLERANCE:
                logger.warning(
                    "Background probabilities of the children of %r sum to %.6f.",
                    node,
                    total,
                )

    # ---------------- Probabilities ----------------

    def _compute_conditional_probs(self) -> Dict[Tuple[str, str], float]:
        probs: Dict[Tuple[str, str], float] = {}
        for feature, ancestors in self._ancestors.items():
            running = 1.0
            below = feature
            for ancestor in ancestors:
                running *= self.nodes[below]["prob"]
                probs[(feature, ancestor)] = running
                below = ancestor
        return probs

    def conditional_prob(self, feature: str, ancestor: str) -> float:
        """Background probability of ``feature`` given one of its ancestors.

        The product of the parent-conditional probabilities on the path from
        ``feature`` up to (but excluding) ``ancestor``.
        """
        try:
            return self._conditional_probs[(feature, ancestor)]
        except KeyError:
            raise SchemaError(
                f"{ancestor!r} is not an ancestor of", [feature]
            ) from None

    def ancestor_pairs(self) -> Iterable[Tuple[str, str]]:
        """Yield ``(feature, ancestor)`` pairs, features in insertion order."""
        for feature in self.nodes:
            for ancestor in self._ancestors[feature]:
                yield feature, ancestor


def convert_to_leaf_features(tree: FeatureTree, features: Iterable[str] | str) -> List[str]:
    """Convert features to the union of the leaf features they aggregate.

    Parameters
    ----------
    tree
        The feature hierarchy.
    features
        A single feature id or a collection of feature ids.

    Returns
    -------
    list[str]
        Sorted leaf feature ids.
    """
    if isinstance(features, str):
        features = [features]
    leaves: set = set()
    for feature in features:
        leaves.update(tree.leaf_descendants(feature))
    return sorted(leaves)


__all__ = ["FeatureTree", "convert_to_leaf_features", "REQUIRED_METADATA_COLUMNS"]
