"""Breadth-first trees and maximum spanning trees over the view graph."""

from __future__ import annotations

import enum
from collections import deque
from typing import Dict, Iterable, List, Sequence, Tuple

from .scene import Image
from .union_find import UnionFind
from .view_graph import ViewGraph


class WeightType(enum.Enum):
    """Edge weight used to build the spanning tree."""

    INLIER_NUM = 0
    INLIER_RATIO = 1


def bfs(
    graph: Sequence[Iterable[int]],
    root: int,
    banned_edges: Iterable[Tuple[int, int]] = (),
) -> Tuple[List[int], int]:
    """Breadth-first search from ``root`` over an adjacency list.

    Edges in ``banned_edges`` (either orientation) are not traversed.
    Returns the parent of each vertex (-1 if unreached, ``root`` for the
    root) and the number of vertices reached besides the root.
    """
    banned = set()
    for a, b in banned_edges:
        banned.add((a, b))
        banned.add((b, a))

    parents = [-1] * len(graph)
    parents[root] = root
    visited = [False] * len(graph)
    visited[root] = True
    queue = deque([root])
    count = 0
    while queue:
        current = queue.popleft()
        for neighbor in graph[current]:
            if (current, neighbor) in banned:
                continue
            if not visited[neighbor]:
                visited[neighbor] = True
                parents[neighbor] = current
                queue.append(neighbor)
                count += 1
    return parents, count


def maximum_spanning_tree(
    view_graph: ViewGraph,
    images: Dict[int, Image],
    weight_type: WeightType,
) -> Tuple[int, Dict[int, int]]:
    """Maximum spanning tree of the registered images.

    Returns the root image id and a map from image id to parent image id;
    the root is its own parent and images not reached by the tree are left
    out.
    """
    image_ids = [image_id for image_id, image in images.items() if image.is_registered]
    if not image_ids:
        raise ValueError("no registered images")
    index_of = {image_id: idx for idx, image_id in enumerate(image_ids)}

    def value(pair) -> float:
        if weight_type is WeightType.INLIER_RATIO:
            return float(pair.weight)
        return float(len(pair.inliers))

    valid_pairs = [pair for pair in view_graph.image_pairs.values() if pair.is_valid]
    max_weight = max((value(pair) for pair in valid_pairs), default=0.0)
    max_weight = max(max_weight, 0.0)

    edges = []
    for pair in valid_pairs:
        image1 = images[pair.image_id1]
        image2 = images[pair.image_id2]
        if not image1.is_registered or not image2.is_registered:
            continue
        # Minimising (max - w) yields a maximum spanning tree on w.
        edges.append(
            (max_weight - value(pair), index_of[pair.image_id1], index_of[pair.image_id2])
        )
    edges.sort(key=lambda edge: edge[0])

    forest: UnionFind[int] = UnionFind()
    adjacency: List[List[int]] = [[] for _ in image_ids]
    for _, a, b in edges:
        if forest.find(a) != forest.find(b):
            forest.union(a, b)
            adjacency[a].append(b)
            adjacency[b].append(a)

    parents_idx, _ = bfs(adjacency, 0)
    parents = {
        image_ids[idx]: image_ids[parent]
        for idx, parent in enumerate(parents_idx)
        if parent >= 0
    }
    return image_ids[0], parents