"""Reading per-image gravity directions from a text file."""

from __future__ import annotations

import logging
import os
from typing import Dict, Union

import numpy as np

from .scene import Image

logger = logging.getLogger(__name__)


def read_gravity(gravity_path: Union[str, os.PathLike], images: Dict[int, Image]) -> int:
    """Load gravity directions and align image rotations with them.

    Each line holds an image name followed by three numbers separated by
    single spaces: the direction of [0, 1, 0] in the image frame. Images
    not named in the file are left untouched. Returns the number of lines
    that matched an image.
    """
    name_to_id = {image.file_name: image_id for image_id, image in images.items()}

    counter = 0
    with open(gravity_path, encoding="utf-8") as handle:
        for raw in handle:
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            name, *items = line.split(" ")
            if len(items) < 3:
                raise ValueError(f"gravity line needs three values: {line!r}")
            gravity = np.array([float(item) for item in items[:3]])

            image_id = name_to_id.get(name)
            if image_id is None:
                continue
            counter += 1
            image = images[image_id]
            image.gravity_info.set_gravity(gravity)
            # Start from a rotation aligned with gravity.
            image.cam_from_world.rotation = image.gravity_info.r_align.T.copy()

    logger.info("%d images are loaded with gravity", counter)
    return counter