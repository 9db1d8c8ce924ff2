"""Classify the matches of image pairs as inliers of their two-view geometry."""

from __future__ import annotations

import math
from typing import Dict, List, Optional

import numpy as np

from .rigid3d import deg_to_rad
from .scene import Camera, Image, ImagePair
from .two_view_geometry import (
    check_cheirality,
    essential_from_motion,
    get_orientation_signum,
    homography_error,
    sampson_error,
    sampson_error_rays,
)
from .types import EPS, InlierThresholdOptions, TwoViewConfig
from .view_graph import ViewGraph

_HOMOGRAPHY_CONFIGS = frozenset(
    {
        TwoViewConfig.PLANAR,
        TwoViewConfig.PANORAMIC,
        TwoViewConfig.PLANAR_OR_PANORAMIC,
    }
)


class ImagePairInliers:
    """Scores the matches of one image pair and stores its inliers on the pair."""

    def __init__(
        self,
        image_pair: ImagePair,
        images: Dict[int, Image],
        options: InlierThresholdOptions,
        cameras: Optional[Dict[int, Camera]] = None,
    ) -> None:
        self.image_pair = image_pair
        self.images = images
        self.options = options
        self.cameras = cameras

    def score_error(self) -> float:
        """Score the pair by its configuration and record the inlier rows.

        Returns the truncated error sum, or 0 when the configuration carries
        no geometry to score against.
        """
        config = self.image_pair.config
        if config in _HOMOGRAPHY_CONFIGS:
            return self._score_homography()
        if config == TwoViewConfig.UNCALIBRATED:
            return self._score_fundamental()
        if config == TwoViewConfig.CALIBRATED:
            return self._score_essential()
        return 0.0

    def _score_essential(self) -> float:
        pair = self.image_pair
        if self.cameras is None:
            raise ValueError("camera intrinsics are required to score a calibrated pair")
        pose = pair.cam2_from_cam1
        e = essential_from_motion(pose)

        # epipole_ij: centre of camera i seen in image j
        epipole12 = pose.translation.copy()
        epipole21 = pose.inverse().translation
        if epipole12[2] < 0:
            epipole12 = -epipole12
        if epipole21[2] < 0:
            epipole21 = -epipole21

        pair.inliers = []
        image1 = self.images[pair.image_id1]
        image2 = self.images[pair.image_id2]

        # Convert the pixel threshold into normalised image space.
        focal1 = self.cameras[image1.camera_id].focal()
        focal2 = self.cameras[image2.camera_id].focal()
        thres = self.options.max_epipolar_error_E * 0.5 * (1.0 / focal1 + 1.0 / focal2)
        sq_threshold = thres * thres

        thres_angle = 1.0 + 1e-6
        thres_epipole = math.cos(deg_to_rad(3.0)) + 1e-6
        rot_inv = pose.rotation.T

        score = 0.0
        inliers: List[int] = []
        for k, (idx1, idx2) in enumerate(pair.matches.tolist()):
            pt1 = image1.features_undist[idx1]
            pt2 = image2.features_undist[idx2]
            r2 = sampson_error_rays(e, pt1, pt2)
            if not r2 < sq_threshold:
                score += sq_threshold
                continue

            cheirality = check_cheirality(pose, pt1, pt2, 1e-2, 100.0)
            # Reject rays that are nearly parallel or too close to the epipoles.
            not_degenerate = (
                float(pt1 @ (rot_inv @ pt2)) < thres_angle
                and float(pt1 @ epipole21) < thres_epipole
                and float(pt2 @ epipole12) < thres_epipole
            )
            if cheirality and not_degenerate:
                score += r2
                inliers.append(k)
            else:
                score += sq_threshold
        pair.inliers = inliers
        return score

    def _score_fundamental(self) -> float:
        pair = self.image_pair
        pair.inliers = []
        f = np.asarray(pair.F, dtype=float)

        epipole = np.cross(f[0], f[2])
        if not np.any(np.abs(epipole) > EPS):
            epipole = np.cross(f[1], f[2])

        image1 = self.images[pair.image_id1]
        image2 = self.images[pair.image_id2]
        thres = self.options.max_epipolar_error_F
        sq_threshold = thres * thres

        score = 0.0
        candidates = []  # (row, error, signum)
        positive = negative = 0
        for k, (idx1, idx2) in enumerate(pair.matches.tolist()):
            pt1 = image1.features[idx1]
            pt2 = image2.features[idx2]
            r2 = sampson_error(f, pt1, pt2)
            if r2 < sq_threshold:
                signum = get_orientation_signum(f, epipole, pt1, pt2)
                if signum > 0:
                    positive += 1
                else:
                    negative += 1
                candidates.append((k, r2, signum))
            else:
                score += sq_threshold

        # Without a dominant orientation the pair cannot be trusted.
        if positive == negative:
            return 0.0
        is_positive = positive > negative

        inliers: List[int] = []
        for k, r2, signum in candidates:
            if (signum > 0) == is_positive:
                inliers.append(k)
                score += r2
            else:
                score += sq_threshold
        pair.inliers = inliers
        return score

    def _score_homography(self) -> float:
        pair = self.image_pair
        pair.inliers = []
        image1 = self.images[pair.image_id1]
        image2 = self.images[pair.image_id2]
        thres = self.options.max_epipolar_error_H
        sq_threshold = thres * thres

        score = 0.0
        inliers: List[int] = []
        for k, (idx1, idx2) in enumerate(pair.matches.tolist()):
            r2 = homography_error(pair.H, image1.features[idx1], image2.features[idx2])
            if r2 < sq_threshold:
                score += r2
                inliers.append(k)
            else:
                score += sq_threshold
        pair.inliers = inliers
        return score


def image_pairs_inlier_count(
    view_graph: ViewGraph,
    cameras: Dict[int, Camera],
    images: Dict[int, Image],
    options: InlierThresholdOptions,
    clean_inliers: bool,
) -> None:
    """Recompute the inliers of every valid pair of the view graph.

    Unless ``clean_inliers`` is set, pairs that already have inliers are
    left alone. Invalid pairs end up with no inliers.
    """
    for pair in view_graph.image_pairs.values():
        if not clean_inliers and pair.inliers:
            continue
        pair.inliers = []
        if not pair.is_valid:
            continue
        ImagePairInliers(pair, images, options, cameras).score_error()