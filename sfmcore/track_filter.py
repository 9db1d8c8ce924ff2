"""Remove track observations that disagree with the estimated geometry."""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Tuple

import numpy as np

from .rigid3d import deg_to_rad
from .scene import Camera, Image, Track
from .types import EPS
from .view_graph import ViewGraph

logger = logging.getLogger(__name__)


def _normalized(vec: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vec))
    return vec / norm if norm > 0 else vec


def filter_tracks_by_reprojection(
    view_graph: ViewGraph,
    cameras: Dict[int, Camera],
    images: Dict[int, Image],
    tracks: Dict[int, Track],
    max_reprojection_error: float = 1e-2,
    in_normalized_image: bool = True,
) -> int:
    """Drop observations whose reprojection error reaches the threshold.

    The error is measured on normalised image coordinates, or in pixels
    when ``in_normalized_image`` is false. Observations behind the camera
    are dropped. Returns the number of tracks that changed.
    """
    counter = 0
    for track in tracks.values():
        kept: List[Tuple[int, int]] = []
        for image_id, feature_id in track.observations:
            image = images[image_id]
            pt_calc = image.cam_from_world.transform(track.xyz)
            if pt_calc[2] < EPS:
                continue
            pt_reproj = pt_calc[:2] / pt_calc[2]
            if in_normalized_image:
                feature = image.features_undist[feature_id]
                error = np.linalg.norm(pt_reproj - feature[:2] / (feature[2] + EPS))
            else:
                camera = cameras[image.camera_id]
                pt_dist = camera.img_from_cam(np.append(pt_reproj, 1.0))
                error = np.linalg.norm(pt_dist - image.features[feature_id])
            if error < max_reprojection_error:
                kept.append((image_id, feature_id))
        if len(kept) != len(track.observations):
            counter += 1
            track.observations = kept
    logger.info("Filtered %d / %d tracks by reprojection error", counter, len(tracks))
    return counter


def filter_tracks_by_angle(
    view_graph: ViewGraph,
    cameras: Dict[int, Camera],
    images: Dict[int, Image],
    tracks: Dict[int, Track],
    max_angle_error: float = 1.0,
) -> int:
    """Drop observations whose ray deviates from the point by too large an angle.

    Cameras without a prior focal length are allowed twice the angle.
    Returns the number of tracks that changed.
    """
    thres = math.cos(deg_to_rad(max_angle_error))
    thres_uncalib = math.cos(deg_to_rad(max_angle_error * 2))
    counter = 0
    for track in tracks.values():
        kept: List[Tuple[int, int]] = []
        for image_id, feature_id in track.observations:
            image = images[image_id]
            feature = image.features_undist[feature_id]
            pt_calc = image.cam_from_world.transform(track.xyz)
            if pt_calc[2] < EPS:
                continue
            pt_calc = _normalized(pt_calc)
            calibrated = cameras[image.camera_id].has_prior_focal_length
            if float(pt_calc @ feature) > (thres if calibrated else thres_uncalib):
                kept.append((image_id, feature_id))
        if len(kept) != len(track.observations):
            counter += 1
            track.observations = kept
    logger.info("Filtered %d / %d tracks by angle error", counter, len(tracks))
    return counter


def filter_track_triangulation_angle(
    view_graph: ViewGraph,
    images: Dict[int, Image],
    tracks: Dict[int, Track],
    min_angle: float = 1.0,
) -> int:
    """Clear tracks whose viewing rays never span more than ``min_angle`` degrees.

    Returns the number of tracks cleared.
    """
    thres = math.cos(deg_to_rad(min_angle))
    counter = 0
    for track in tracks.values():
        directions = [
            _normalized(track.xyz - images[image_id].center())
            for image_id, _ in track.observations
        ]
        wide_enough = any(
            float(first @ second) < thres
            for i, first in enumerate(directions)
            for second in directions[i + 1:]
        )
        if not wide_enough:
            counter += 1
            track.observations = []
    logger.info(
        "Filtered %d / %d tracks by too small triangulation angle", counter, len(tracks)
    )
    return counter