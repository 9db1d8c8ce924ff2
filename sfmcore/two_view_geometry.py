"""Epipolar and homography error measures, and two-view matrices from poses."""

from __future__ import annotations

import numpy as np

from .scene import Camera
from .types import EPS, Rigid3d


def _skew(v: np.ndarray) -> np.ndarray:
    return np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ]
    )


def check_cheirality(
    pose: Rigid3d, x1, x2, min_depth: float = 0.0, max_depth: float = 100.0
) -> bool:
    """Whether two unit rays triangulate in front of both cameras.

    ``x1`` and ``x2`` are expected to be unit vectors; depths are checked
    against ``(min_depth, max_depth)``.
    """
    x1 = np.asarray(x1, dtype=float).reshape(3)
    x2 = np.asarray(x2, dtype=float).reshape(3)
    rx1 = pose.rotation @ x1

    # [1 a; a 1] * [lambda1; lambda2] = [b1; b2]
    a = -float(rx1 @ x2)
    b1 = -float(rx1 @ pose.translation)
    b2 = float(x2 @ pose.translation)

    # The positive factor 1 / (1 - a^2) is folded into the depth bounds.
    lambda1 = b1 - a * b2
    lambda2 = -a * b1 + b2

    scale = 1.0 - a * a
    lower = min_depth * scale
    upper = max_depth * scale
    return lower < lambda1 < upper and lower < lambda2 < upper


def get_orientation_signum(f, epipole, pt1, pt2) -> float:
    """Orientation signum of a correspondence under a fundamental matrix."""
    f = np.asarray(f, dtype=float)
    e = np.asarray(epipole, dtype=float).reshape(3)
    p1 = np.asarray(pt1, dtype=float).reshape(2)
    p2 = np.asarray(pt2, dtype=float).reshape(2)
    signum1 = f[0, 0] * p2[0] + f[1, 0] * p2[1] + f[2, 0]
    signum2 = e[1] - e[2] * p1[1]
    return float(signum1 * signum2)


def essential_from_motion(pose: Rigid3d) -> np.ndarray:
    """Essential matrix [t]x R of a relative pose."""
    return _skew(pose.translation) @ pose.rotation


def fundamental_from_motion_and_cameras(
    camera1: Camera, camera2: Camera, pose: Rigid3d
) -> np.ndarray:
    """Fundamental matrix K2^-T E K1^-1 of a relative pose and two cameras."""
    e = essential_from_motion(pose)
    k1_inv = np.linalg.inv(camera1.calibration_matrix())
    k2_inv_t = np.linalg.inv(camera2.calibration_matrix().T)
    return k2_inv_t @ e @ k1_inv


def sampson_error(e, x1, x2) -> float:
    """Squared Sampson error for 2D (normalised or pixel) coordinates."""
    e = np.asarray(e, dtype=float)
    h1 = np.append(np.asarray(x1, dtype=float).reshape(2), 1.0)
    h2 = np.append(np.asarray(x2, dtype=float).reshape(2), 1.0)
    ex1 = e @ h1
    etx2 = e.T @ h2
    c = float(ex1 @ h2)
    cx = float(ex1[:2] @ ex1[:2])
    cy = float(etx2[:2] @ etx2[:2])
    return c * c / (cx + cy)


def sampson_error_rays(e, x1, x2) -> float:
    """Squared Sampson error for 3D image rays."""
    e = np.asarray(e, dtype=float)
    r1 = np.asarray(x1, dtype=float).reshape(3)
    r2 = np.asarray(x2, dtype=float).reshape(3)
    ex1 = e @ r1 / (EPS + r1[2])
    etx2 = e.T @ r2 / (EPS + r2[2])
    c = float(ex1 @ r2)
    cx = float(ex1[:2] @ ex1[:2])
    cy = float(etx2[:2] @ etx2[:2])
    return c * c / (cx + cy)


def homography_error(h, x1, x2) -> float:
    """Squared transfer error of ``x1`` mapped by ``h`` against ``x2``."""
    h = np.asarray(h, dtype=float)
    hx1 = h @ np.append(np.asarray(x1, dtype=float).reshape(2), 1.0)
    projected = hx1[:2] / (EPS + hx1[2])
    diff = projected - np.asarray(x2, dtype=float).reshape(2)
    return float(diff @ diff)