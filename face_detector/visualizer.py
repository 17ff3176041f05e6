"""
Visualization for the face detection pipeline.

Responsibility:
    Draw face markers onto a frame and encode the result as JPEG.
    Drawing always happens on a copy, so each request owns its canvas.

Non-goals:
    - No detection or filtering logic.
    - No response assembly.
"""

import logging
from typing import Optional, Sequence

import cv2
import numpy as np

from face_detector.config import VisualizationConfig
from face_detector.detection import Detection
from face_detector.staging import scoped_tempfile

logger = logging.getLogger(__name__)


def draw_detections(
    frame: np.ndarray,
    detections: Sequence[Detection],
    config: VisualizationConfig,
) -> np.ndarray:
    """Outline each detection with a rectangle or a circle.

    Args:
        frame: Input BGR image (not modified — a copy is returned).
        detections: Detections to outline.
        config: Marker shape, color and stroke width.

    Returns:
        A new BGR numpy array with the markers drawn.
    """
    canvas = frame.copy()

    for det in detections:
        half = det.scale // 2
        if config.marker == "circle":
            cv2.circle(
                canvas,
                (det.col, det.row),
                half,
                color=config.color,
                thickness=config.thickness,
                lineType=cv2.LINE_AA,
            )
        else:
            top_left = (det.col - half, det.row - half)
            cv2.rectangle(
                canvas,
                top_left,
                (top_left[0] + det.scale, top_left[1] + det.scale),
                color=config.color,
                thickness=config.thickness,
            )

    return canvas


def encode_jpeg(
    frame: np.ndarray,
    quality: int = 100,
    scratch_dir: Optional[str] = None,
) -> bytes:
    """Encode a frame as JPEG through a temporary file.

    The temporary file is deleted before returning, also on failure.

    Raises:
        OSError: If the temporary file cannot be created or read.
        ValueError: If OpenCV fails to encode the frame.
    """
    with scoped_tempfile(scratch_dir, prefix="render", suffix=".jpg") as path:
        written = cv2.imwrite(str(path), frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not written:
            raise ValueError(f"OpenCV could not encode the annotated image to {path}.")
        data = path.read_bytes()

    logger.debug("Encoded annotated image (%d bytes, quality %d)", len(data), quality)
    return data
