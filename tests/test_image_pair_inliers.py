import numpy as np
import pytest

from sfmcore.image_pair_inliers import ImagePairInliers, image_pairs_inlier_count
from sfmcore.rigid3d import angle_axis_to_rotation
from sfmcore.scene import Camera, Image, ImagePair
from sfmcore.two_view_geometry import fundamental_from_motion_and_cameras
from sfmcore.types import InlierThresholdOptions, Rigid3d, TwoViewConfig
from sfmcore.view_graph import ViewGraph

POINTS = np.array(
    [
        [0.2, -0.1, 5.0],
        [-0.5, 0.3, 6.0],
        [0.8, 0.4, 4.0],
        [-0.3, -0.6, 7.0],
        [0.1, 0.2, 5.5],
    ]
)


def _pose():
    return Rigid3d(angle_axis_to_rotation([0.0, 0.05, 0.0]), [1.0, 0.0, 0.0])


def _unit(rows):
    return rows / np.linalg.norm(rows, axis=1, keepdims=True)


def _identity_matches(n):
    return [[i, i] for i in range(n)]


def _calibrated_scene():
    camera = Camera(camera_id=1, model="SIMPLE_PINHOLE", params=[500.0, 320.0, 240.0])
    pose = _pose()
    rays1 = _unit(POINTS)
    rays2 = _unit(pose.transform(POINTS))
    n = len(POINTS)
    image1 = Image(1, 1, "a.jpg", features=np.zeros((n, 2)), features_undist=rays1)
    image2 = Image(2, 1, "b.jpg", features=np.zeros((n, 2)), features_undist=rays2)
    pair = ImagePair(
        1,
        2,
        cam2_from_cam1=pose,
        config=TwoViewConfig.CALIBRATED,
        matches=_identity_matches(n),
    )
    return pair, {1: image1, 2: image2}, {1: camera}


def _pixel_scene():
    camera = Camera(camera_id=1, model="PINHOLE", params=[500.0, 500.0, 320.0, 240.0])
    pose = _pose()
    feats1 = np.array([camera.img_from_cam(p) for p in POINTS])
    feats2 = np.array([camera.img_from_cam(p) for p in pose.transform(POINTS)])
    image1 = Image(1, 1, "a.jpg", features=feats1)
    image2 = Image(2, 1, "b.jpg", features=feats2)
    return camera, pose, {1: image1, 2: image2}


def test_essential_accepts_consistent_rays():
    pair, images, cameras = _calibrated_scene()
    score = ImagePairInliers(pair, images, InlierThresholdOptions(), cameras).score_error()
    assert pair.inliers == list(range(len(POINTS)))
    assert score == pytest.approx(0.0, abs=1e-12)


def test_essential_rejects_points_behind_cameras():
    pair, images, cameras = _calibrated_scene()
    images[1].features_undist[0] *= -1
    images[2].features_undist[0] *= -1
    ImagePairInliers(pair, images, InlierThresholdOptions(), cameras).score_error()
    assert pair.inliers == [1, 2, 3, 4]


def test_essential_requires_cameras():
    pair, images, _ = _calibrated_scene()
    with pytest.raises(ValueError):
        ImagePairInliers(pair, images, InlierThresholdOptions()).score_error()


def test_fundamental_accepts_consistent_matches():
    camera, pose, images = _pixel_scene()
    pair = ImagePair(
        1,
        2,
        config=TwoViewConfig.UNCALIBRATED,
        F=fundamental_from_motion_and_cameras(camera, camera, pose),
        matches=_identity_matches(len(POINTS)),
    )
    score = ImagePairInliers(pair, images, InlierThresholdOptions()).score_error()
    assert pair.inliers == list(range(len(POINTS)))
    assert score == pytest.approx(0.0, abs=1e-6)


def test_fundamental_without_matches_has_no_orientation():
    camera, pose, images = _pixel_scene()
    pair = ImagePair(
        1,
        2,
        config=TwoViewConfig.UNCALIBRATED,
        F=fundamental_from_motion_and_cameras(camera, camera, pose),
        inliers=[3],
    )
    assert ImagePairInliers(pair, images, InlierThresholdOptions()).score_error() == 0.0
    assert pair.inliers == []


def test_homography_identity_and_outlier():
    feats = np.array([[10.0, 20.0], [30.0, 40.0], [50.0, 60.0]])
    moved = feats.copy()
    moved[2] += [50.0, 0.0]
    images = {1: Image(1, 1, "a.jpg", features=feats), 2: Image(2, 1, "b.jpg", features=moved)}
    pair = ImagePair(
        1, 2, config=TwoViewConfig.PLANAR, H=np.eye(3), matches=_identity_matches(3)
    )
    options = InlierThresholdOptions()
    score = ImagePairInliers(pair, images, options).score_error()
    assert pair.inliers == [0, 1]
    assert score == pytest.approx(options.max_epipolar_error_H ** 2, abs=1e-6)


def test_undefined_config_is_not_scored():
    pair = ImagePair(1, 2, inliers=[4])
    result = ImagePairInliers(pair, {}, InlierThresholdOptions()).score_error()
    assert result == 0.0
    assert pair.inliers == [4]


def test_inlier_count_over_view_graph():
    feats = np.array([[10.0, 20.0], [30.0, 40.0]])
    images = {
        1: Image(1, 1, "a.jpg", features=feats),
        2: Image(2, 1, "b.jpg", features=feats),
        3: Image(3, 1, "c.jpg", features=feats),
    }
    scored = ImagePair(1, 2, config=TwoViewConfig.PLANAR, H=np.eye(3), matches=_identity_matches(2))
    invalid = ImagePair(1, 3, is_valid=False, inliers=[0])
    graph = ViewGraph(image_pairs={scored.pair_id: scored, invalid.pair_id: invalid})
    image_pairs_inlier_count(graph, {}, images, InlierThresholdOptions(), True)
    assert scored.inliers == [0, 1]
    assert invalid.inliers == []


def test_inlier_count_keeps_existing_without_clean():
    feats = np.array([[10.0, 20.0], [30.0, 40.0]])
    images = {1: Image(1, 1, "a.jpg", features=feats), 2: Image(2, 1, "b.jpg", features=feats)}
    pair = ImagePair(
        1, 2, config=TwoViewConfig.PLANAR, H=np.eye(3), matches=_identity_matches(2), inliers=[1]
    )
    graph = ViewGraph(image_pairs={pair.pair_id: pair})
    image_pairs_inlier_count(graph, {}, images, InlierThresholdOptions(), False)
    assert pair.inliers == [1]