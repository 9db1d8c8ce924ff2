"""Scene entities: cameras, images, tracks and image pairs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from .gravity import get_align_rot
from .types import MAX_NUM_IMAGES, Rigid3d, TwoViewConfig

_Distortion = Callable[[np.ndarray, float, float], Tuple[float, float]]


def _simple_radial(k: np.ndarray, u: float, v: float) -> Tuple[float, float]:
    radial = k[0] * (u * u + v * v)
    return u * radial, v * radial


def _radial(k: np.ndarray, u: float, v: float) -> Tuple[float, float]:
    r2 = u * u + v * v
    radial = k[0] * r2 + k[1] * r2 * r2
    return u * radial, v * radial


def _opencv(k: np.ndarray, u: float, v: float) -> Tuple[float, float]:
    k1, k2, p1, p2 = k
    u2, uv, v2 = u * u, u * v, v * v
    r2 = u2 + v2
    radial = k1 * r2 + k2 * r2 * r2
    du = u * radial + 2 * p1 * uv + p2 * (r2 + 2 * u2)
    dv = v * radial + 2 * p2 * uv + p1 * (r2 + 2 * v2)
    return du, dv


@dataclass(frozen=True)
class _ModelSpec:
    num_params: int
    fx: int
    fy: int
    cx: int
    cy: int
    distortion: Optional[_Distortion] = None
    extra_start: int = 0


_MODELS = {
    "SIMPLE_PINHOLE": _ModelSpec(3, 0, 0, 1, 2),
    "PINHOLE": _ModelSpec(4, 0, 1, 2, 3),
    "SIMPLE_RADIAL": _ModelSpec(4, 0, 0, 1, 2, _simple_radial, 3),
    "RADIAL": _ModelSpec(5, 0, 0, 1, 2, _radial, 3),
    "OPENCV": _ModelSpec(8, 0, 1, 2, 3, _opencv, 4),
}

_POINT_EPS = np.finfo(float).eps


@dataclass(eq=False)
class Camera:
    """Intrinsic camera with a named model and its parameter vector."""

    camera_id: int = -1
    model: str = "SIMPLE_PINHOLE"
    width: int = 0
    height: int = 0
    params: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0]))
    has_prior_focal_length: bool = False
    has_refined_focal_length: bool = False

    def __post_init__(self) -> None:
        if self.model not in _MODELS:
            raise ValueError(f"unknown camera model: {self.model!r}")
        self.params = np.array(self.params, dtype=float).reshape(-1)
        expected = _MODELS[self.model].num_params
        if self.params.size != expected:
            raise ValueError(
                f"{self.model} expects {expected} parameters, got {self.params.size}"
            )

    def _intrinsics(self) -> Tuple[float, float, float, float]:
        spec = _MODELS[self.model]
        p = self.params
        return p[spec.fx], p[spec.fy], p[spec.cx], p[spec.cy]

    def focal(self) -> float:
        fx, fy, _, _ = self._intrinsics()
        return (fx + fy) / 2.0

    def principal_point(self) -> np.ndarray:
        _, _, cx, cy = self._intrinsics()
        return np.array([cx, cy])

    def calibration_matrix(self) -> np.ndarray:
        fx, fy, cx, cy = self._intrinsics()
        return np.array([[fx, 0.0, cx], [0.0, fy, cy], [0.0, 0.0, 1.0]])

    def _undistort(self, xd: float, yd: float) -> Tuple[float, float]:
        spec = _MODELS[self.model]
        if spec.distortion is None:
            return xd, yd
        extra = self.params[spec.extra_start:]
        dist = spec.distortion
        u, v = xd, yd
        for _ in range(100):
            du, dv = dist(extra, u, v)
            residual = np.array([u + du - xd, v + dv - yd])
            h_u = max(_POINT_EPS, abs(1e-6 * u))
            h_v = max(_POINT_EPS, abs(1e-6 * v))
            du_u, dv_u = dist(extra, u + h_u, v)
            du_v, dv_v = dist(extra, u, v + h_v)
            jac = np.array(
                [
                    [1.0 + (du_u - du) / h_u, (du_v - du) / h_v],
                    [(dv_u - dv) / h_u, 1.0 + (dv_v - dv) / h_v],
                ]
            )
            step = np.linalg.solve(jac, residual)
            u -= step[0]
            v -= step[1]
            if float(step @ step) < 1e-20:
                break
        return u, v

    def cam_from_img(self, point) -> np.ndarray:
        """Map a pixel to normalised, undistorted camera coordinates (2D)."""
        x, y = np.asarray(point, dtype=float).reshape(2)
        fx, fy, cx, cy = self._intrinsics()
        u, v = self._undistort((x - cx) / fx, (y - cy) / fy)
        return np.array([u, v])

    def img_from_cam(self, point) -> np.ndarray:
        """Project a 3D camera-frame point to pixel coordinates.

        Raises ValueError when the point is not in front of the camera.
        """
        x, y, z = np.asarray(point, dtype=float).reshape(3)
        if z < _POINT_EPS:
            raise ValueError("point lies behind or on the camera plane")
        u, v = x / z, y / z
        spec = _MODELS[self.model]
        if spec.distortion is not None:
            du, dv = spec.distortion(self.params[spec.extra_start:], u, v)
            u, v = u + du, v + dv
        fx, fy, cx, cy = self._intrinsics()
        return np.array([fx * u + cx, fy * v + cy])


@dataclass(eq=False)
class GravityInfo:
    """Optional gravity direction of an image and its alignment rotation."""

    has_gravity: bool = False
    gravity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    r_align: np.ndarray = field(default_factory=lambda: np.eye(3))

    def set_gravity(self, gravity) -> None:
        self.gravity = np.array(gravity, dtype=float).reshape(3)
        self.r_align = get_align_rot(self.gravity)
        self.has_gravity = True


@dataclass(eq=False)
class Image:
    """An image with its pose, features and registration state."""

    image_id: int = -1
    camera_id: int = -1
    file_name: str = ""
    is_registered: bool = False
    cluster_id: int = -1
    cam_from_world: Rigid3d = field(default_factory=Rigid3d)
    gravity_info: GravityInfo = field(default_factory=GravityInfo)
    # Distorted feature points in pixels, shape (N, 2).
    features: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    # Normalised feature rays, shape (N, 3).
    features_undist: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))

    def __post_init__(self) -> None:
        self.features = np.asarray(self.features, dtype=float).reshape(-1, 2)
        self.features_undist = np.asarray(self.features_undist, dtype=float).reshape(-1, 3)

    def center(self) -> np.ndarray:
        """Camera centre in world coordinates."""
        return self.cam_from_world.rotation.T @ -self.cam_from_world.translation


@dataclass(eq=False)
class Track:
    """A 3D point with the (image_id, feature_id) observations supporting it."""

    track_id: int = -1
    xyz: np.ndarray = field(default_factory=lambda: np.zeros(3))
    color: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.uint8))
    is_initialized: bool = False
    observations: List[Tuple[int, int]] = field(default_factory=list)


def image_pair_to_pair_id(image_id1: int, image_id2: int) -> int:
    """Order-independent id for a pair of images."""
    low, high = sorted((image_id1, image_id2))
    return MAX_NUM_IMAGES * low + high


def pair_id_to_image_pair(pair_id: int) -> Tuple[int, int]:
    """Recover the (smaller, larger) image ids from a pair id."""
    image_id1 = pair_id % MAX_NUM_IMAGES
    image_id2 = (pair_id - image_id1) // MAX_NUM_IMAGES
    return image_id2, image_id1


@dataclass(eq=False)
class ImagePair:
    """Two-view relation between images: geometry, matches and inliers."""

    image_id1: int
    image_id2: int
    cam2_from_cam1: Rigid3d = field(default_factory=Rigid3d)
    pair_id: int = field(init=False)
    is_valid: bool = True
    weight: float = 0.0
    config: TwoViewConfig = TwoViewConfig.UNDEFINED
    E: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    F: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    H: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    # Rows of (feature index in image 1, feature index in image 2).
    matches: np.ndarray = field(default_factory=lambda: np.zeros((0, 2), dtype=int))
    # Row indices of inlier matches.
    inliers: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.pair_id = image_pair_to_pair_id(self.image_id1, self.image_id2)
        self.matches = np.asarray(self.matches, dtype=int).reshape(-1, 2)