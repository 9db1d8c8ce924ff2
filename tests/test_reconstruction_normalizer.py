import numpy as np
import pytest

from sfmcore.reconstruction_normalizer import (
    Sim3d,
    normalize_reconstruction,
    transform_camera_world,
)
from sfmcore.rigid3d import angle_axis_to_rotation
from sfmcore.scene import Image, Track
from sfmcore.types import Rigid3d


def _image_at(image_id, center, registered=True):
    rotation = angle_axis_to_rotation([0.1 * image_id, 0.2, -0.05])
    pose = Rigid3d(rotation, -rotation @ np.asarray(center, dtype=float))
    return Image(image_id, 1, f"{image_id}.jpg", is_registered=registered, cam_from_world=pose)


def _scene():
    centers = [[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [1.0, 4.0, 2.0]]
    images = {i + 1: _image_at(i + 1, c) for i, c in enumerate(centers)}
    tracks = {7: Track(track_id=7, xyz=np.array([1.0, 1.0, 6.0]))}
    return images, tracks


def test_sim3d_inverse_round_trip():
    tform = Sim3d(2.5, angle_axis_to_rotation([0.3, -0.2, 0.1]), [1.0, -2.0, 3.0])
    point = np.array([0.4, 5.0, -1.5])
    np.testing.assert_allclose(tform.inverse().transform(tform.transform(point)), point)


def test_sim3d_transforms_rows():
    tform = Sim3d(3.0, angle_axis_to_rotation([0.0, 0.4, 0.0]), [1.0, 0.0, 2.0])
    pts = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 4.0]])
    batch = tform.transform(pts)
    for row, pt in zip(batch, pts):
        np.testing.assert_allclose(row, tform.transform(pt))


def test_transform_camera_world_moves_center():
    tform = Sim3d(2.0, angle_axis_to_rotation([0.1, 0.2, 0.3]), [1.0, 2.0, 3.0])
    image = _image_at(1, [4.0, -1.0, 2.0])
    old_center = image.center()
    image.cam_from_world = transform_camera_world(tform, image.cam_from_world)
    np.testing.assert_allclose(image.center(), tform.transform(old_center))


def test_normalize_centres_and_scales():
    images, tracks = _scene()
    normalize_reconstruction({}, images, tracks)
    centers = np.array([image.center() for image in images.values()])
    np.testing.assert_allclose(centers.mean(axis=0), 0.0, atol=1e-9)
    extent = np.linalg.norm(centers.max(axis=0) - centers.min(axis=0))
    assert extent == pytest.approx(10.0)


def test_normalize_keeps_projections_consistent():
    images, tracks = _scene()
    before = {i: im.cam_from_world.transform(tracks[7].xyz) for i, im in images.items()}
    tform = normalize_reconstruction({}, images, tracks)
    for image_id, image in images.items():
        after = image.cam_from_world.transform(tracks[7].xyz)
        np.testing.assert_allclose(after, tform.scale * before[image_id])


def test_fixed_scale_keeps_unit_scale():
    images, tracks = _scene()
    old_xyz = tracks[7].xyz.copy()
    tform = normalize_reconstruction({}, images, tracks, fixed_scale=True)
    assert tform.scale == 1.0
    np.testing.assert_allclose(tracks[7].xyz, old_xyz + tform.translation)


def test_unregistered_images_untouched():
    images, tracks = _scene()
    images[9] = _image_at(9, [100.0, 100.0, 100.0], registered=False)
    pose_before = images[9].cam_from_world
    normalize_reconstruction({}, images, tracks)
    assert images[9].cam_from_world is pose_before


def test_no_registered_images_raises():
    images = {1: _image_at(1, [0.0, 0.0, 0.0], registered=False)}
    with pytest.raises(ValueError):
        normalize_reconstruction({}, images, {})