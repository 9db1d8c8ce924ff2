"""Compute normalised feature rays for images."""

from __future__ import annotations

import logging
from typing import Dict

import numpy as np

from .scene import Camera, Image

logger = logging.getLogger(__name__)


def _undistort_image(image: Image, camera: Camera) -> None:
    rays = np.empty((len(image.features), 3))
    for row, feature in zip(rays, image.features):
        row[:2] = camera.cam_from_img(feature)
        row[2] = 1.0
        row /= np.linalg.norm(row)
    image.features_undist = rays


def undistort_images(
    cameras: Dict[int, Camera],
    images: Dict[int, Image],
    clean_points: bool = True,
) -> int:
    """Fill ``features_undist`` with unit rays for the features of each image.

    Images whose rays already match their features are skipped unless
    ``clean_points`` is set. Returns the number of images processed.
    """
    pending = [
        image
        for image in images.values()
        if clean_points or len(image.features_undist) != len(image.features)
    ]
    logger.info("Undistorting images..")
    for image in pending:
        _undistort_image(image, cameras[image.camera_id])
    logger.info("Image undistortion done")
    return len(pending)