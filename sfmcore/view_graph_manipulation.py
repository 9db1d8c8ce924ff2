"""Sparsify, cluster and re-classify the image pairs of a view graph."""

from __future__ import annotations

import enum
import logging
import random
from typing import Dict, Optional, Set

from .scene import Camera, Image, ImagePair
from .two_view_geometry import fundamental_from_motion_and_cameras
from .types import TwoViewConfig
from .union_find import UnionFind
from .view_graph import ViewGraph

logger = logging.getLogger(__name__)

# Clustering stops after this many merge rounds.
_MAX_CLUSTER_ITERATIONS = 10
# Number of moderately strong pairs needed to merge two clusters.
_MIN_LINKING_PAIRS = 2
# Share of the strong threshold a pair needs to count as a linking pair.
_WEAK_FACTOR = 0.75


class StrongClusterCriteria(enum.Enum):
    """Edge measure used to decide whether a pair is strong."""

    INLIER_NUM = 0
    WEIGHT = 1


def _is_registered(images: Dict[int, Image], image_id: int) -> bool:
    image = images.get(image_id)
    return image is not None and image.is_registered


def sparsify_graph(
    view_graph: ViewGraph,
    images: Dict[int, Image],
    expected_degree: int = 50,
    rng: Optional[random.Random] = None,
) -> int:
    """Randomly thin out the valid pairs towards ``expected_degree`` per image.

    A pair between images of degree ``d1`` and ``d2`` is always kept when
    either degree is at most ``expected_degree``; otherwise it is kept with
    probability ``expected_degree * mean_degree / (d1 * d2)``. Pairs not
    kept are invalidated and only the largest connected component stays
    registered. Returns the number of pairs kept.
    """
    rng = rng if rng is not None else random.Random()
    num_img = view_graph.keep_largest_connected_components(images)
    if num_img == 0:
        for pair in view_graph.image_pairs.values():
            pair.is_valid = False
        return 0

    adjacency = view_graph.adjacency_list()
    total_degree = sum(
        len(neighbors)
        for image_id, neighbors in adjacency.items()
        if _is_registered(images, image_id)
    )
    average_degree = total_degree / num_img

    chosen: Set[int] = set()
    for pair_id, pair in view_graph.image_pairs.items():
        if not pair.is_valid:
            continue
        if not (_is_registered(images, pair.image_id1) and _is_registered(images, pair.image_id2)):
            continue
        degree1 = len(adjacency[pair.image_id1])
        degree2 = len(adjacency[pair.image_id2])
        if degree1 <= expected_degree or degree2 <= expected_degree:
            chosen.add(pair_id)
            continue
        if rng.random() < (expected_degree * average_degree) / (degree1 * degree2):
            chosen.add(pair_id)

    for pair_id, pair in view_graph.image_pairs.items():
        if pair_id not in chosen:
            pair.is_valid = False

    view_graph.keep_largest_connected_components(images)
    return len(chosen)


def _pair_value(pair: ImagePair, criteria: StrongClusterCriteria) -> float:
    if criteria is StrongClusterCriteria.INLIER_NUM:
        return float(len(pair.inliers))
    return float(pair.weight)


def establish_strong_clusters(
    view_graph: ViewGraph,
    images: Dict[int, Image],
    criteria: StrongClusterCriteria = StrongClusterCriteria.INLIER_NUM,
    min_thres: float = 100,
    min_num_images: int = 2,
) -> int:
    """Split the graph into clusters joined by strong pairs.

    Images are first grouped by pairs whose measure exceeds ``min_thres``.
    Two groups are then merged when at least two pairs of measure at least
    ``0.75 * min_thres`` join them, for up to ten rounds. Pairs between
    different clusters are invalidated and every connected component gets
    a cluster id; ``min_num_images`` does not limit the components marked.
    Returns the number of clusters.
    """
    view_graph.keep_largest_connected_components(images)

    uf: UnionFind[int] = UnionFind()
    for pair in view_graph.image_pairs.values():
        if pair.is_valid and _pair_value(pair, criteria) > min_thres:
            uf.union(pair.image_id1, pair.image_id2)

    merged = True
    iteration = 0
    while merged:
        merged = False
        iteration += 1
        if iteration > _MAX_CLUSTER_ITERATIONS:
            break

        links: Dict[int, Dict[int, int]] = {}
        for pair in view_graph.image_pairs.values():
            if not pair.is_valid:
                continue
            if _pair_value(pair, criteria) < _WEAK_FACTOR * min_thres:
                continue
            root1 = uf.find(pair.image_id1)
            root2 = uf.find(pair.image_id2)
            if root1 == root2:
                continue
            row1 = links.setdefault(root1, {})
            row2 = links.setdefault(root2, {})
            row1[root2] = row1.get(root2, 0) + 1
            row2[root1] = row2.get(root1, 0) + 1

        for root1, counter in links.items():
            for root2, count in counter.items():
                if root1 <= root2:
                    continue
                if count >= _MIN_LINKING_PAIRS:
                    merged = True
                    uf.union(root1, root2)

    for pair in view_graph.image_pairs.values():
        if pair.is_valid and uf.find(pair.image_id1) != uf.find(pair.image_id2):
            pair.is_valid = False

    num_comp = view_graph.mark_connected_components(images)
    logger.info(
        "Clustering take %d iterations. Images are grouped into %d clusters "
        "after strong-clustering",
        iteration,
        num_comp,
    )
    return num_comp


def update_image_pairs_config(
    view_graph: ViewGraph,
    cameras: Dict[int, Camera],
    images: Dict[int, Image],
) -> None:
    """Promote uncalibrated pairs between trustworthy cameras to calibrated.

    A camera with a prior focal length is trusted when more than half of
    its calibrated-or-uncalibrated valid pairs are calibrated. Uncalibrated
    valid pairs between two trusted cameras become calibrated, with the
    fundamental matrix recomputed from the relative pose.
    """
    # camera id -> [pairs counted, calibrated pairs]
    counters: Dict[int, list] = {}
    for pair in view_graph.image_pairs.values():
        if not pair.is_valid:
            continue
        camera_id1 = images[pair.image_id1].camera_id
        camera_id2 = images[pair.image_id2].camera_id
        if not (
            cameras[camera_id1].has_prior_focal_length
            and cameras[camera_id2].has_prior_focal_length
        ):
            continue
        if pair.config == TwoViewConfig.CALIBRATED:
            calibrated = 1
        elif pair.config == TwoViewConfig.UNCALIBRATED:
            calibrated = 0
        else:
            continue
        for camera_id in (camera_id1, camera_id2):
            entry = counters.setdefault(camera_id, [0, 0])
            entry[0] += 1
            entry[1] += calibrated

    valid_cameras = {
        camera_id
        for camera_id, (total, calibrated) in counters.items()
        if total > 0 and calibrated / total > 0.5
    }

    for pair in view_graph.image_pairs.values():
        if not pair.is_valid or pair.config != TwoViewConfig.UNCALIBRATED:
            continue
        camera_id1 = images[pair.image_id1].camera_id
        camera_id2 = images[pair.image_id2].camera_id
        if camera_id1 in valid_cameras and camera_id2 in valid_cameras:
            pair.config = TwoViewConfig.CALIBRATED
            pair.F = fundamental_from_motion_and_cameras(
                cameras[camera_id1], cameras[camera_id2], pair.cam2_from_cam1
            )