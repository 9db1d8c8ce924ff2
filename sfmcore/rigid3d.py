"""Angle and distance measures between poses, and rotation conversions."""

from __future__ import annotations

import math

import numpy as np
from scipy.spatial.transform import Rotation

from .types import EPS, Rigid3d


def _clamped_acos_deg(cos_r: float) -> float:
    return float(np.degrees(np.arccos(np.clip(cos_r, -1.0, 1.0))))


def calc_rotation_angle(rotation1, rotation2) -> float:
    """Angle in degrees of the rotation between two rotation matrices."""
    r1 = np.asarray(rotation1, dtype=float)
    r2 = np.asarray(rotation2, dtype=float)
    # The diagonal sum of r1^T r2 equals the element-wise product sum.
    diag_sum = float(np.sum(r1 * r2))
    cos_r = (diag_sum - 1.0) / 2.0
    return _clamped_acos_deg(cos_r)


def calc_angle(pose1: Rigid3d, pose2: Rigid3d) -> float:
    """Rotation angle difference in degrees between two poses."""
    return calc_rotation_angle(pose1.rotation, pose2.rotation)


def calc_trans(pose1: Rigid3d, pose2: Rigid3d) -> float:
    """Distance between the camera centres of two poses."""
    return float(
        np.linalg.norm(pose1.inverse().translation - pose2.inverse().translation)
    )


def calc_trans_angle(pose1: Rigid3d, pose2: Rigid3d) -> float:
    """Angle in degrees between the translation directions of two poses."""
    t1, t2 = pose1.translation, pose2.translation
    with np.errstate(divide="ignore", invalid="ignore"):
        cos_r = np.dot(t1, t2) / (np.linalg.norm(t1) * np.linalg.norm(t2))
    return _clamped_acos_deg(cos_r)


def deg_to_rad(degree: float) -> float:
    return degree * math.pi / 180


def rad_to_deg(radian: float) -> float:
    return radian * 180 / math.pi


def rotation_to_angle_axis(rot) -> np.ndarray:
    """Convert a rotation matrix to an angle-axis vector."""
    return Rotation.from_matrix(np.asarray(rot, dtype=float)).as_rotvec()


def rigid3d_to_angle_axis(pose: Rigid3d) -> np.ndarray:
    """Angle-axis vector of the rotation part of a pose."""
    return rotation_to_angle_axis(pose.rotation)


def angle_axis_to_rotation(aa_vec) -> np.ndarray:
    """Convert an angle-axis vector to a rotation matrix.

    Below EPS the first-order approximation I + [aa]x is returned.
    """
    aa = np.asarray(aa_vec, dtype=float).reshape(3)
    if np.linalg.norm(aa) > EPS:
        return Rotation.from_rotvec(aa).as_matrix()
    return np.array(
        [
            [1.0, -aa[2], aa[1]],
            [aa[2], 1.0, -aa[0]],
            [-aa[1], aa[0], 1.0],
        ]
    )