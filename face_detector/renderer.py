"""
Result rendering for the face detection request handler.

Responsibility:
    Turn clustered detections into the public rectangles and an
    annotated JPEG of the staged image. Only detections above the
    quality threshold are reported and drawn.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import cv2

from face_detector.config import AppConfig
from face_detector.detection import Detection, Rectangle
from face_detector.errors import RenderError
from face_detector.postprocessor import filter_by_quality, to_rectangle
from face_detector.preprocessor import read_image
from face_detector.visualizer import draw_detections, encode_jpeg

logger = logging.getLogger(__name__)


def render(
    image_path: Union[str, Path],
    detections: Sequence[Detection],
    config: AppConfig,
) -> Tuple[List[Rectangle], bytes]:
    """Draw accepted detections onto the staged image and encode it.

    Args:
        image_path: Staged source image.
        detections: Clustered detections from the Detector.
        config: Supplies the quality threshold, marker style and
                JPEG quality.

    Returns:
        (rectangles, jpeg_bytes) for the accepted detections.

    Raises:
        RenderError: If decoding, drawing, encoding or the temporary
            output file fails.
    """
    accepted = filter_by_quality(detections, config.detection.quality_threshold)
    rectangles = [to_rectangle(d, config.visualization.legacy_rectangles) for d in accepted]

    try:
        frame = read_image(image_path)
        annotated = draw_detections(frame, accepted, config.visualization)
        data = encode_jpeg(
            annotated,
            quality=config.output.jpeg_quality,
            scratch_dir=config.staging.scratch_dir,
        )
    except (OSError, ValueError, cv2.error) as e:
        raise RenderError(f"Error creating image output: {e}") from e

    logger.info(
        "Rendered %d of %d detection(s) with %s markers",
        len(accepted), len(detections), config.visualization.marker,
    )
    return rectangles, data
