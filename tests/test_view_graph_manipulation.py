import random

import numpy as np
import pytest

from sfmcore.scene import Camera, Image, ImagePair
from sfmcore.two_view_geometry import fundamental_from_motion_and_cameras
from sfmcore.types import Rigid3d, TwoViewConfig
from sfmcore.view_graph import ViewGraph
from sfmcore.view_graph_manipulation import (
    StrongClusterCriteria,
    establish_strong_clusters,
    sparsify_graph,
    update_image_pairs_config,
)


def make_images(ids, camera_of=None):
    camera_of = camera_of or {}
    return {
        i: Image(image_id=i, camera_id=camera_of.get(i, 1), file_name=f"{i}.jpg")
        for i in ids
    }


def make_graph(edges):
    graph = ViewGraph()
    for a, b, kwargs in edges:
        pair = ImagePair(a, b, **kwargs)
        graph.image_pairs[pair.pair_id] = pair
    return graph


def pair_between(graph, a, b):
    for pair in graph.image_pairs.values():
        if {pair.image_id1, pair.image_id2} == {a, b}:
            return pair
    raise KeyError((a, b))


def test_sparsify_keeps_all_low_degree_edges():
    images = make_images([1, 2, 3, 4])
    graph = make_graph([(1, 2, {}), (2, 3, {}), (3, 4, {}), (1, 4, {})])
    kept = sparsify_graph(graph, images, expected_degree=5, rng=random.Random(0))
    assert kept == len(graph.image_pairs)
    assert all(pair.is_valid for pair in graph.image_pairs.values())
    assert all(image.is_registered for image in images.values())


def test_sparsify_drops_pairs_outside_largest_component():
    images = make_images([1, 2, 3, 4, 5])
    graph = make_graph([(1, 2, {}), (2, 3, {}), (1, 3, {}), (4, 5, {})])
    kept = sparsify_graph(graph, images, expected_degree=5, rng=random.Random(0))
    assert kept == 3
    assert not pair_between(graph, 4, 5).is_valid
    assert not images[4].is_registered and not images[5].is_registered
    assert images[1].is_registered


def test_sparsify_zero_expected_degree_removes_every_pair():
    images = make_images([1, 2, 3])
    graph = make_graph([(1, 2, {}), (2, 3, {}), (1, 3, {})])
    kept = sparsify_graph(graph, images, expected_degree=0, rng=random.Random(1))
    assert kept == 0
    assert not any(pair.is_valid for pair in graph.image_pairs.values())


def two_triangles(link_weight, links):
    images = make_images(range(1, 7))
    strong = {"weight": 200.0}
    edges = [
        (1, 2, strong), (2, 3, strong), (1, 3, strong),
        (4, 5, strong), (5, 6, strong), (4, 6, strong),
    ]
    edges += [(a, b, {"weight": link_weight}) for a, b in links]
    return images, make_graph(edges)


def test_strong_clusters_split_at_weak_link():
    images, graph = two_triangles(10.0, [(3, 4)])
    num = establish_strong_clusters(
        graph, images, StrongClusterCriteria.WEIGHT, min_thres=100
    )
    assert num == 2
    assert not pair_between(graph, 3, 4).is_valid
    assert images[1].cluster_id == images[2].cluster_id == images[3].cluster_id
    assert images[4].cluster_id == images[5].cluster_id == images[6].cluster_id
    assert images[1].cluster_id != images[4].cluster_id
    assert {image.cluster_id for image in images.values()} == set(range(num))


def test_strong_clusters_merge_with_two_moderate_links():
    images, graph = two_triangles(80.0, [(3, 4), (2, 5)])
    num = establish_strong_clusters(
        graph, images, StrongClusterCriteria.WEIGHT, min_thres=100
    )
    assert num == 1
    assert all(pair.is_valid for pair in graph.image_pairs.values())
    assert len({image.cluster_id for image in images.values()}) == 1


def test_strong_clusters_single_moderate_link_not_enough():
    images, graph = two_triangles(80.0, [(3, 4)])
    num = establish_strong_clusters(
        graph, images, StrongClusterCriteria.WEIGHT, min_thres=100
    )
    assert num == 2
    assert not pair_between(graph, 3, 4).is_valid


def test_strong_clusters_by_inlier_count():
    images = make_images([1, 2, 3])
    graph = make_graph(
        [
            (1, 2, {"inliers": list(range(150))}),
            (2, 3, {"inliers": list(range(5))}),
        ]
    )
    num = establish_strong_clusters(
        graph, images, StrongClusterCriteria.INLIER_NUM, min_thres=100
    )
    assert num == 2
    assert pair_between(graph, 1, 2).is_valid
    assert not pair_between(graph, 2, 3).is_valid
    assert images[1].cluster_id == images[2].cluster_id
    assert images[3].cluster_id != images[1].cluster_id


def make_cameras(ids, prior=True):
    return {
        i: Camera(
            camera_id=i,
            model="SIMPLE_PINHOLE",
            width=640,
            height=480,
            params=[500.0 + i, 320.0, 240.0],
            has_prior_focal_length=prior,
        )
        for i in ids
    }


def config_graph():
    pose = Rigid3d(np.eye(3), [1.0, 0.0, 0.0])
    cal = {"config": TwoViewConfig.CALIBRATED, "cam2_from_cam1": pose}
    uncal = {"config": TwoViewConfig.UNCALIBRATED, "cam2_from_cam1": pose}
    return make_graph(
        [
            (1, 2, cal), (1, 3, cal), (2, 3, cal),
            (1, 4, cal), (2, 4, cal), (3, 4, uncal),
        ]
    )


def test_update_config_promotes_pair_between_trusted_cameras():
    images = make_images([1, 2, 3, 4], camera_of={i: i for i in range(1, 5)})
    cameras = make_cameras([1, 2, 3, 4])
    graph = config_graph()
    update_image_pairs_config(graph, cameras, images)
    pair = pair_between(graph, 3, 4)
    assert pair.config == TwoViewConfig.CALIBRATED
    expected = fundamental_from_motion_and_cameras(
        cameras[pair.image_id1 if False else images[pair.image_id1].camera_id],
        cameras[images[pair.image_id2].camera_id],
        pair.cam2_from_cam1,
    )
    np.testing.assert_allclose(pair.F, expected)


def test_update_config_ignores_cameras_without_prior():
    images = make_images([1, 2, 3, 4], camera_of={i: i for i in range(1, 5)})
    cameras = make_cameras([1, 2, 3, 4], prior=False)
    graph = config_graph()
    update_image_pairs_config(graph, cameras, images)
    pair = pair_between(graph, 3, 4)
    assert pair.config == TwoViewConfig.UNCALIBRATED
    np.testing.assert_array_equal(pair.F, np.zeros((3, 3)))


def test_update_config_requires_majority_calibrated():
    images = make_images([1, 2], camera_of={1: 1, 2: 2})
    cameras = make_cameras([1, 2])
    graph = make_graph([(1, 2, {"config": TwoViewConfig.UNCALIBRATED})])
    update_image_pairs_config(graph, cameras, images)
    assert pair_between(graph, 1, 2).config == TwoViewConfig.UNCALIBRATED


def test_update_config_missing_camera_raises():
    images = make_images([1, 2], camera_of={1: 1, 2: 9})
    cameras = make_cameras([1])
    graph = make_graph([(1, 2, {"config": TwoViewConfig.CALIBRATED})])
    with pytest.raises(KeyError):
        update_image_pairs_config(graph, cameras, images)