"""Split a reconstruction into strongly co-visible clusters of images."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict

from .scene import Image, ImagePair, Track, image_pair_to_pair_id, pair_id_to_image_pair
from .view_graph import ViewGraph
from .view_graph_manipulation import StrongClusterCriteria, establish_strong_clusters

logger = logging.getLogger(__name__)

# A relative pose is only pinned down by at least this many shared points.
_MIN_COVISIBLE_POINTS = 5
# Lower bound on the strong-pair threshold.
_MIN_STRONG_THRESHOLD = 20.0


def prune_weakly_connected_images(
    images: Dict[int, Image],
    tracks: Dict[int, Track],
    min_num_images: int = 2,
    min_num_observations: int = 0,
) -> int:
    """Cluster images by how many tracks (of length three or more) they share.

    Pairs sharing at least five such tracks, between images with at least
    ``min_num_observations`` observations, form a visibility graph weighted
    by the shared count. The strong-pair threshold is the median count minus
    its median absolute deviation, but at least 20. Sets the cluster id of
    each image and returns the number of clusters.

    Raises ValueError when no pair qualifies for the visibility graph.
    """
    pair_covisibility: Counter = Counter()
    observation_count: Counter = Counter()
    for track in tracks.values():
        observations = track.observations
        if len(observations) <= 2:
            continue
        for i, (image_id1, _) in enumerate(observations):
            observation_count[image_id1] += 1
            for image_id2, _ in observations[i + 1:]:
                if image_id1 == image_id2:
                    continue
                pair_covisibility[image_pair_to_pair_id(image_id1, image_id2)] += 1

    counter = 0
    visibility_graph = ViewGraph()
    pair_count = []
    for pair_id, count in pair_covisibility.items():
        if count < _MIN_COVISIBLE_POINTS:
            continue
        counter += 1
        image_id1, image_id2 = pair_id_to_image_pair(pair_id)
        if (
            observation_count[image_id1] < min_num_observations
            or observation_count[image_id2] < min_num_observations
        ):
            continue
        pair = ImagePair(image_id1, image_id2, is_valid=True, weight=float(count))
        visibility_graph.image_pairs[pair.pair_id] = pair
        pair_count.append(count)
    logger.info("Established visibility graph with %d pairs", counter)

    if not pair_count:
        raise ValueError("no image pairs share enough tracks to build a visibility graph")

    pair_count.sort()
    median_count = float(pair_count[len(pair_count) // 2])
    deviations = sorted(abs(count - median_count) for count in pair_count)
    median_deviation = float(deviations[len(deviations) // 2])

    threshold = median_count - median_deviation
    logger.info("Threshold for Strong Clustering: %s", threshold)

    return establish_strong_clusters(
        visibility_graph,
        images,
        StrongClusterCriteria.WEIGHT,
        max(threshold, _MIN_STRONG_THRESHOLD),
        min_num_images,
    )