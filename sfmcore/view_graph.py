"""Graph of images connected by valid image pairs."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .scene import Image, ImagePair


@dataclass
class ViewGraph:
    """Image pairs keyed by pair id, with connectivity helpers."""

    image_pairs: Dict[int, ImagePair] = field(default_factory=dict)
    num_images: int = 0
    num_pairs: int = 0
    _adjacency: Dict[int, Set[int]] = field(default_factory=dict, repr=False)
    _components: List[Set[int]] = field(default_factory=list, repr=False)

    def remove_invalid_pair(self, pair_id: int) -> None:
        """Mark the pair with ``pair_id`` as invalid; KeyError if unknown."""
        self.image_pairs[pair_id].is_valid = False

    def adjacency_list(self) -> Dict[int, Set[int]]:
        """Neighbours of each image as of the last adjacency rebuild."""
        return self._adjacency

    def establish_adjacency_list(self) -> None:
        """Rebuild the adjacency list from the valid pairs."""
        self._adjacency = {}
        for pair in self.image_pairs.values():
            if pair.is_valid:
                self._adjacency.setdefault(pair.image_id1, set()).add(pair.image_id2)
                self._adjacency.setdefault(pair.image_id2, set()).add(pair.image_id1)

    def _find_connected_components(self) -> int:
        self._components = []
        visited: Set[int] = set()
        for image_id in self._adjacency:
            if image_id not in visited:
                self._components.append(self._bfs(image_id, visited))
        return len(self._components)

    def _bfs(self, root: int, visited: Set[int]) -> Set[int]:
        component = {root}
        visited.add(root)
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for neighbor in self._adjacency.get(current, ()):
                if neighbor not in visited:
                    visited.add(neighbor)
                    component.add(neighbor)
                    queue.append(neighbor)
        return component

    def keep_largest_connected_components(self, images: Dict[int, Image]) -> int:
        """Register only the images of the largest component.

        Pairs touching other images are invalidated. Returns the number of
        images in the largest component, or 0 if there are no valid pairs.
        """
        self.establish_adjacency_list()
        self._find_connected_components()

        largest: Set[int] = set()
        for component in self._components:
            if len(component) > len(largest):
                largest = component
        if not largest:
            return 0

        for image in images.values():
            image.is_registered = False
        for image_id in largest:
            if image_id in images:
                images[image_id].is_registered = True

        def registered(image_id: int) -> bool:
            image = images.get(image_id)
            return image is not None and image.is_registered

        self.num_pairs = 0
        for pair in self.image_pairs.values():
            if not registered(pair.image_id1) or not registered(pair.image_id2):
                pair.is_valid = False
            if pair.is_valid:
                self.num_pairs += 1

        self.num_images = len(largest)
        return len(largest)

    def mark_connected_components(
        self, images: Dict[int, Image], min_num_img: int = -1
    ) -> int:
        """Assign cluster ids by decreasing component size.

        Components smaller than ``min_num_img`` keep cluster id -1. Returns
        the number of clusters assigned.
        """
        self.establish_adjacency_list()
        self._find_connected_components()

        ranking = sorted(
            ((len(component), idx) for idx, component in enumerate(self._components)),
            reverse=True,
        )

        for image in images.values():
            image.cluster_id = -1

        num_clusters = 0
        for cluster, (size, idx) in enumerate(ranking):
            if size < min_num_img:
                break
            for image_id in self._components[idx]:
                if image_id in images:
                    images[image_id].cluster_id = cluster
            num_clusters += 1
        return num_clusters