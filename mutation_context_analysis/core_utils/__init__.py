from .count_utils import aggregate_counts
from .tree_utils import compute_ancestor_paths, compute_node_depths

__all__ = ["aggregate_counts", "compute_ancestor_paths", "compute_node_depths"]
