"""
Self-Intersection Module
========================

Detects figure-eight patterns in a walked path.

Design:
- Open path edges (p[i], p[i+1]); the closing edge is NOT tested
- O(n^2) non-adjacent edge pairs, short-circuit on first crossing
- Head/tail skip window: a closed loop legitimately brings the path's tail
  back across its head, so pairs spanning both ends are excluded
"""

from typing import Optional, Sequence, Tuple

from territory_engine.geometry.shapes import GeoPoint, segments_intersect

DEFAULT_SKIP_WINDOW = 2


def find_self_intersection(
    path: Sequence[GeoPoint],
    skip_window: int = DEFAULT_SKIP_WINDOW,
) -> Optional[Tuple[int, int]]:
    """
    Find the first pair of crossing edges in an open path.

    Args:
        path: Ordered path points
        skip_window: Edges within this many positions of the head are not
                     compared with edges within this many positions of the tail

    Returns:
        (i, j) edge indices of the first crossing found, or None
    """
    if skip_window < 0:
        raise ValueError(f"skip_window must be >= 0, got {skip_window}")

    if len(path) < 4:
        return None

    edge_count = len(path) - 1
    for i in range(edge_count):
        a, b = path[i], path[i + 1]
        # j starts at i + 2: adjacent edges share a vertex
        for j in range(i + 2, edge_count):
            if i < skip_window and j >= edge_count - skip_window:
                continue
            if segments_intersect(a, b, path[j], path[j + 1]):
                return i, j

    return None


def has_self_intersection(
    path: Sequence[GeoPoint],
    skip_window: int = DEFAULT_SKIP_WINDOW,
) -> bool:
    """
    Whether the open path crosses itself.

    Fewer than 4 points never self-intersect (not yet applicable).
    """
    return find_self_intersection(path, skip_window) is not None
