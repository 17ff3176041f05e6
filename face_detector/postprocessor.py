"""
Postprocessing for the face detection pipeline.

Responsibility:
    Drop clustered detections that do not clear the quality threshold
    and convert the survivors from center/scale form into the public
    Rectangle form.

Non-goals:
    - No drawing, saving, or display logic.
    - No model loading or inference.

Rectangle convention:
    Min is the top-left corner (col - scale // 2, row - scale // 2).
    By default Max holds (scale, scale), i.e. the side length rather
    than the bottom-right corner. Deployed clients read that shape, so
    it stays the default; pass legacy=False for Max = Min + scale.
"""

from typing import List, Sequence

from face_detector.detection import Detection, Rectangle


def filter_by_quality(
    detections: Sequence[Detection],
    quality_threshold: float,
) -> List[Detection]:
    """Keep detections whose score is strictly above the threshold."""
    return [d for d in detections if d.score > quality_threshold]


def to_rectangle(detection: Detection, legacy: bool = True) -> Rectangle:
    """Convert one center/scale detection into a Rectangle."""
    half = detection.scale // 2
    min_x = detection.col - half
    min_y = detection.row - half

    if legacy:
        return Rectangle(min_x, min_y, detection.scale, detection.scale)
    return Rectangle(min_x, min_y, min_x + detection.scale, min_y + detection.scale)


def postprocess(
    detections: Sequence[Detection],
    quality_threshold: float,
    legacy: bool = True,
) -> List[Rectangle]:
    """Filter detections by quality and convert them to Rectangles.

    Returns:
        Rectangles in the order of the input detections.
    """
    return [to_rectangle(d, legacy) for d in filter_by_quality(detections, quality_threshold)]
