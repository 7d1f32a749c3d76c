"""Tree utility functions for the feature hierarchy.

Low-level tree operations that don't depend on hierarchy_analysis
modules, avoiding circular import issues.
"""

from __future__ import annotations

from typing import Dict, List

import networkx as nx

from ..errors import SchemaError


def compute_node_depths(tree: nx.DiGraph, root: str) -> Dict[str, int]:
    """Compute depth of each feature from the root via BFS.

    Parameters
    ----------
    tree
        Directed graph with edges pointing from parent to child.
    root
        Root feature identifier.

    Returns
    -------
    Dict[str, int]
        Mapping from feature id to depth (root = 0).

    Raises
    ------
    SchemaError
        If some features cannot be reached from the root.
    """
    depths: Dict[str, int] = {root: 0}
    queue = [root]
    while queue:
        node = queue.pop(0)
        for child in tree.successors(node):
            if child not in depths:
                depths[child] = depths[node] + 1
                queue.append(child)

    unreachable = [n for n in tree.nodes if n not in depths]
    if unreachable:
        raise SchemaError(
            f"Features not reachable from root {root!r}", sorted(unreachable)
        )
    return depths


def compute_ancestor_paths(tree: nx.DiGraph, root: str) -> Dict[str, List[str]]:
    """Map every feature to its ancestors, nearest first and root last.

    Assumes each non-root feature has exactly one parent.
    """
    paths: Dict[str, List[str]] = {root: []}
    queue = [root]
    while queue:
        node = queue.pop(0)
        for child in tree.successors(node):
            paths[child] = [node] + paths[node]
            queue.append(child)
    return paths


__all__ = [
    "compute_node_depths",
    "compute_ancestor_paths",
]
