"""
Preprocessing for the face detection pipeline.

Responsibility:
    Decode a staged image file into a BGR numpy array and convert it to
    the single-channel buffer the cascades search.

Non-goals:
    - No acquisition or staging.
    - No detection or coordinate mapping.
"""

from pathlib import Path
from typing import Union

import cv2
import numpy as np


def read_image(path: Union[str, Path]) -> np.ndarray:
    """Decode an image file into a fresh BGR array.

    Raises:
        ValueError: If the file cannot be decoded.
    """
    frame = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if frame is None or frame.size == 0:
        raise ValueError(
            f"Unable to decode image at {path}. "
            f"Only JPEG and PNG inputs are supported."
        )
    return frame


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR frame into a uint8 grayscale array (H, W).

    Raises:
        ValueError: If the frame is empty or not a 3-channel image.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the staged image decoded correctly."
        )

    if frame.ndim == 2:
        return frame

    if frame.ndim != 3 or frame.shape[2] != 3:
        raise ValueError(
            f"Expected a BGR frame (H, W, 3), got shape {frame.shape}."
        )

    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
