"""Similarity transforms and normalisation of a reconstruction's extent."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from .scene import Camera, Image, Track
from .types import Rigid3d


@dataclass(eq=False)
class Sim3d:
    """Similarity transformation x -> scale * rotation @ x + translation."""

    scale: float = 1.0
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.scale = float(self.scale)
        self.rotation = np.array(self.rotation, dtype=float).reshape(3, 3)
        self.translation = np.array(self.translation, dtype=float).reshape(3)

    def transform(self, point) -> np.ndarray:
        """Apply the transformation to a point or to rows of an (N, 3) array."""
        pts = np.asarray(point, dtype=float)
        if pts.ndim == 1:
            return self.scale * (self.rotation @ pts) + self.translation
        return self.scale * (pts @ self.rotation.T) + self.translation

    def inverse(self) -> Sim3d:
        """Return the inverse transformation."""
        rot_t = self.rotation.T
        return Sim3d(1.0 / self.scale, rot_t, -(rot_t @ self.translation) / self.scale)


def transform_camera_world(new_from_old_world: Sim3d, cam_from_world: Rigid3d) -> Rigid3d:
    """Express a camera pose in the world frame given by ``new_from_old_world``."""
    old_from_new = new_from_old_world.inverse()
    rotation = cam_from_world.rotation @ old_from_new.rotation
    translation = cam_from_world.rotation @ old_from_new.translation + cam_from_world.translation
    return Rigid3d(rotation, translation * new_from_old_world.scale)


def normalize_reconstruction(
    cameras: Dict[int, Camera],
    images: Dict[int, Image],
    tracks: Dict[int, Track],
    fixed_scale: bool = False,
    extent: float = 10.0,
    p0: float = 0.1,
    p1: float = 0.9,
) -> Sim3d:
    """Centre the registered cameras and scale them to a robust extent.

    The bounding box and mean of the camera centres are taken between the
    ``p0`` and ``p1`` quantiles (all centres when there are at most three).
    Poses of registered images and all track points are transformed in
    place; the applied transform is returned.
    """
    centers = [image.center() for image in images.values() if image.is_registered]
    if not centers:
        raise ValueError("no registered images to normalise")
    coords = np.sort(np.asarray(centers, dtype=np.float32), axis=0).astype(float)
    n = len(coords)

    lo = int(p0 * (n - 1)) if n > 3 else 0
    hi = int(p1 * (n - 1)) if n > 3 else n - 1
    bbox_min = coords[lo]
    bbox_max = coords[hi]
    mean_coord = coords[lo:hi + 1].sum(axis=0) / (hi - lo + 1)

    # Translation is applied before scaling.
    scale = 1.0
    if not fixed_scale:
        old_extent = float(np.linalg.norm(bbox_max - bbox_min))
        if old_extent >= sys.float_info.epsilon:
            scale = extent / old_extent
    tform = Sim3d(scale, np.eye(3), -scale * mean_coord)

    for image in images.values():
        if image.is_registered:
            image.cam_from_world = transform_camera_world(tform, image.cam_from_world)
    for track in tracks.values():
        track.xyz = tform.transform(track.xyz)
    return tform