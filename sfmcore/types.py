"""Core value types, identifiers and thresholds shared across the package."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field

import numpy as np

EPS = 1e-12
HALF_PI = math.pi / 2
TWO_PI = 2 * math.pi

# Upper bound on image ids; image pair ids are built from it.
MAX_NUM_IMAGES = 2**31 - 1
INVALID_IMAGE_PAIR_ID = 2**64 - 1


@dataclass
class InlierThresholdOptions:
    """Thresholds used to classify matches, tracks and edges as inliers."""

    # Thresholds for 3D-2D matches
    max_angle_error: float = 1.0  # degrees, for global positioning
    max_reprojection_error: float = 1e-2  # for bundle adjustment
    min_triangulation_angle: float = 1.0  # degrees, for triangulation

    # Thresholds for image pairs
    max_epipolar_error_E: float = 1.0
    max_epipolar_error_F: float = 4.0
    max_epipolar_error_H: float = 4.0

    # Thresholds for edges
    min_inlier_num: float = 30
    min_inlier_ratio: float = 0.25
    max_rotation_error: float = 10.0  # degrees, for rotation averaging


class TwoViewConfig(enum.IntEnum):
    """Kind of two-view geometry estimated for an image pair."""

    UNDEFINED = 0
    DEGENERATE = 1
    CALIBRATED = 2
    UNCALIBRATED = 3
    PLANAR = 4
    PANORAMIC = 5
    PLANAR_OR_PANORAMIC = 6
    WATERMARK = 7
    MULTIPLE = 8


@dataclass(eq=False)
class Rigid3d:
    """Rigid transformation x -> rotation @ x + translation."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.rotation = np.array(self.rotation, dtype=float).reshape(3, 3)
        self.translation = np.array(self.translation, dtype=float).reshape(3)

    def inverse(self) -> Rigid3d:
        """Return the inverse transformation."""
        rot_t = self.rotation.T
        return Rigid3d(rot_t, -rot_t @ self.translation)

    def compose(self, other: Rigid3d) -> Rigid3d:
        """Return the transformation applying ``other`` first, then ``self``."""
        return Rigid3d(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def transform(self, point) -> np.ndarray:
        """Apply the transformation to a point or to rows of an (N, 3) array."""
        pts = np.asarray(point, dtype=float)
        if pts.ndim == 1:
            return self.rotation @ pts + self.translation
        return pts @ self.rotation.T + self.translation