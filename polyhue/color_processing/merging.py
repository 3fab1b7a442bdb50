"""Perceptual merging of near-duplicate palette entries."""

import numpy as np

from ..models import DEFAULT_MERGE_THRESHOLD
from .color_space import pairwise_delta_e, rgb_array_to_lab


def find_root(parent: "list[int]", i: int) -> int:
    """Union-find root lookup with path compression."""
    root = i
    while parent[root] != root:
        root = parent[root]
    while parent[i] != root:
        parent[i], i = root, parent[i]
    return root


def merge_similar_colors(
    palette: "list[tuple[int, int, int]]",
    assignments,
    merge_threshold: float = DEFAULT_MERGE_THRESHOLD,
) -> "tuple[list[tuple[int, int, int]], np.ndarray]":
    """Collapse palette entries closer than ``merge_threshold`` Delta E.

    Any pair below the threshold is unioned, so merging is transitive: a chain
    of close colors ends up as one entry even if its ends are far apart. Each
    group keeps its root's color (no re-averaging) and groups are numbered in
    first-encountered palette order.

    Args:
        palette: Palette colors
        assignments: Palette index per color or pixel
        merge_threshold: Delta E threshold; <= 0 disables merging

    Returns:
        Tuple of (merged palette, remapped assignments)
    """
    assignments = np.asarray(assignments, dtype=np.int64)
    if merge_threshold <= 0 or len(palette) < 2:
        return list(palette), assignments

    parent = list(range(len(palette)))
    distances = pairwise_delta_e(rgb_array_to_lab(np.array(palette, dtype=np.float64)))

    for i, j in zip(*np.nonzero(np.triu(distances < merge_threshold, k=1))):
        root_i = find_root(parent, int(i))
        root_j = find_root(parent, int(j))
        if root_i != root_j:
            parent[root_j] = root_i

    merged = []
    root_to_index = {}
    lookup = np.empty(len(palette), dtype=np.int64)
    for i in range(len(palette)):
        root = find_root(parent, i)
        if root not in root_to_index:
            root_to_index[root] = len(merged)
            merged.append(tuple(palette[root]))
        lookup[i] = root_to_index[root]

    return merged, lookup[assignments]
