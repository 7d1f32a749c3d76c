"""Static reference data for the mutation-context hierarchy.

The hierarchy metadata and background probabilities are injected explicitly
into every selection through a :class:`HierarchyReference`. Nothing here is
process-wide state: two references (e.g. whole-exome and whole-genome
backgrounds, or different cohorts' models) can be used side by side.

:func:`build_sbs96_metadata` produces the standard three-tier single base
substitution hierarchy::

    TOTAL_MUTATIONS
    └── C>A                 (tier A, 6 substitution classes, leaf_span 16)
        └── A[C>A]N         (tier B, 5' flank, 24 groups, leaf_span 4)
            └── A[C>A]G     (tier C, trinucleotide context, 96 leaves)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from mutation_context_analysis import config
from mutation_context_analysis.errors import DomainError, SchemaError
from mutation_context_analysis.tree.feature_tree import FeatureTree
from mutation_context_analysis.tree.io import load_background_probs, load_reference_table

SUBSTITUTIONS: tuple = ("C>A", "C>G", "C>T", "T>A", "T>C", "T>G")
BASES: tuple = ("A", "C", "G", "T")


def sbs96_group_features() -> List[str]:
    """Tier-B features (substitution with its 5' flank) in canonical order."""
    return [f"{five}[{sub}]N" for sub in SUBSTITUTIONS for five in BASES]


def sbs96_leaf_features() -> List[str]:
    """The 96 trinucleotide-context leaf features in canonical order."""
    return [
        f"{five}[{sub}]{three}"
        for sub in SUBSTITUTIONS
        for five in BASES
        for three in BASES
    ]


def build_sbs96_metadata(
    leaf_probs: Optional[pd.Series] = None,
    root: str = config.ROOT_FEATURE,
) -> pd.DataFrame:
    """Build the reference hierarchy metadata from leaf background rates.

    Parameters
    ----------
    leaf_probs
        Background probability (or any positive rate) of each of the 96 leaf
        contexts, indexed by leaf id. Values are normalised to sum to one.
        A uniform background is used when omitted.
    root
        Identifier of the root feature.

    Returns
    -------
    pd.DataFrame
        Columns ``feature``, ``parent_name``, ``leaf_span`` and ``prob``, where
        ``prob`` is conditional on the parent. The first row is the root.
    """
    leaves = sbs96_leaf_features()
    if leaf_probs is None:
        rates = pd.Series(1.0, index=leaves)
    else:
        rates = pd.Series(leaf_probs, dtype=float)
        missing = [leaf for leaf in leaves if leaf not in rates.index]
        if missing:
            raise SchemaError("Leaf background rates missing for", missing)
        leaf_set = set(leaves)
        unexpected = [f for f in rates.index if f not in leaf_set]
        if unexpected:
            raise SchemaError("Unexpected leaf background rates for", unexpected)
        rates = rates.reindex(leaves)
        bad = rates.index[~(np.isfinite(rates.to_numpy()) & (rates.to_numpy() > 0))]
        if len(bad):
            raise DomainError("Leaf background rates must be positive", str(bad[0]))
    rates = rates / rates.sum()

    sub_rates = {
        sub: sum(rates[f"{five}[{sub}]{three}"] for five in BASES for three in BASES)
        for sub in SUBSTITUTIONS
    }
    rows = [
        {"feature": root, "parent_name": None, "leaf_span": len(leaves), "prob": 1.0}
    ]
    for sub, sub_rate in sub_rates.items():
        rows.append(
            {
                "feature": sub,
                "parent_name": root,
                "leaf_span": config.TIER_LEAF_SPANS[config.TIER_A],
                "prob": sub_rate,
            }
        )
    for sub, sub_rate in sub_rates.items():
        for five in BASES:
            group = f"{five}[{sub}]N"
            group_rate = sum(rates[f"{five}[{sub}]{three}"] for three in BASES)
            rows.append(
                {
                    "feature": group,
                    "parent_name": sub,
                    "leaf_span": config.TIER_LEAF_SPANS[config.TIER_B],
                    "prob": group_rate / sub_rate,
                }
            )
            for three in BASES:
                leaf = f"{five}[{sub}]{three}"
                rows.append(
                    {
                        "feature": leaf,
                        "parent_name": group,
                        "leaf_span": config.TIER_LEAF_SPANS[config.TIER_C],
                        "prob": rates[leaf] / group_rate,
                    }
                )
    return pd.DataFrame(rows, columns=["feature", "parent_name", "leaf_span", "prob"])


@dataclass(frozen=True, eq=False)
class HierarchyReference:
    """Immutable reference data shared by every selection call.

    Attributes
    ----------
    metadata
        Hierarchy table (``feature``, ``parent_name``, ``leaf_span``, ``prob``)
        with the default (whole-exome) background probabilities.
    wgs_probs
        Optional whole-genome background probabilities, feature → probability
        conditional on the parent. Selected with ``use_wgs_background=True``.
    root
        Identifier of the root feature.
    """

    metadata: pd.DataFrame
    wgs_probs: Optional[pd.Series] = None
    root: str = config.ROOT_FEATURE
    _trees: Dict[bool, FeatureTree] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._trees[False] = FeatureTree.from_metadata(self.metadata, root=self.root)
        if self.wgs_probs is not None:
            self._trees[True] = FeatureTree.from_metadata(
                self._with_wgs_probs(), prob_column="prob_wgs", root=self.root
            )

    def _with_wgs_probs(self) -> pd.DataFrame:
        metadata = self.metadata.copy()
        metadata["prob_wgs"] = metadata["feature"].astype(str).map(self.wgs_probs)
        is_root = metadata["feature"].astype(str) == self.root
        metadata.loc[is_root, "prob_wgs"] = 1.0
        missing = metadata.loc[metadata["prob_wgs"].isna(), "feature"].tolist()
        if missing:
            raise SchemaError("Whole-genome background probabilities missing for", missing)
        return metadata

    # ---------------- Constructors ----------------

    @classmethod
    def sbs96(
        cls,
        leaf_probs: Optional[pd.Series] = None,
        wgs_leaf_probs: Optional[pd.Series] = None,
    ) -> "HierarchyReference":
        """Reference for the standard 96-context hierarchy.

        Parameters
        ----------
        leaf_probs
            Whole-exome leaf background rates (uniform when omitted).
        wgs_leaf_probs
            Optional whole-genome leaf background rates.
        """
        metadata = build_sbs96_metadata(leaf_probs)
        wgs_probs = None
        if wgs_leaf_probs is not None:
            wgs_probs = build_sbs96_metadata(wgs_leaf_probs).set_index("feature")["prob"]
        return cls(metadata=metadata, wgs_probs=wgs_probs)

    @classmethod
    def from_files(
        cls,
        metadata_path: str | Path,
        wgs_probs_path: str | Path | None = None,
    ) -> "HierarchyReference":
        """Load reference tables from CSV/TSV files."""
        metadata = load_reference_table(metadata_path)
        wgs_probs = None
        if wgs_probs_path is not None:
            wgs_probs = load_background_probs(wgs_probs_path)
        return cls(metadata=metadata, wgs_probs=wgs_probs)

    # ---------------- Accessors ----------------

    @property
    def has_wgs_background(self) -> bool:
        return True in self._trees

    def tree(self, use_wgs_background: bool = False) -> FeatureTree:
        """Return the feature tree annotated with the selected background."""
        if use_wgs_background and not self.has_wgs_background:
            raise SchemaError(
                "No whole-genome background probabilities configured for reference",
                [self.root],
            )
        return self._trees[bool(use_wgs_background)]

    @property
    def leaf_features(self) -> List[str]:
        """Sorted leaf feature ids expected as counts-table columns."""
        return self.tree().get_leaves()

    def leaf_descendants(self, use_wgs_background: bool = False) -> Dict[str, frozenset]:
        """Feature → leaf features mapping used for residual aggregation."""
        tree = self.tree(use_wgs_background)
        return {feature: tree.leaf_descendants(feature) for feature in tree.nodes}


__all__ = [
    "HierarchyReference",
    "build_sbs96_metadata",
    "sbs96_group_features",
    "sbs96_leaf_features",
    "SUBSTITUTIONS",
    "BASES",
]
