"""Disjoint-set structure used to build tracks and clusters."""

from __future__ import annotations

from typing import Dict, Generic, Hashable, TypeVar

T = TypeVar("T", bound=Hashable)


class UnionFind(Generic[T]):
    """Disjoint sets over hashable elements, created on first use."""

    def __init__(self) -> None:
        self._parent: Dict[T, T] = {}

    def find(self, x: T) -> T:
        """Return the root of the set containing ``x``."""
        parent = self._parent
        if x not in parent:
            parent[x] = x
            return x
        root = x
        while parent[root] != root:
            root = parent[root]
        while x != root:
            nxt = parent[x]
            parent[x] = root
            x = nxt
        return root

    def union(self, x: T, y: T) -> None:
        """Merge the sets containing ``x`` and ``y``; the root of ``y`` stays root."""
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x != root_y:
            self._parent[root_x] = root_y

    def clear(self) -> None:
        self._parent.clear()