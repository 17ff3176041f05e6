"""
Face Detector — single-shot cascade face detection request handler.

Public API:
    - handle: Process one request body and return a Response.
    - Detector: Cascade detection on a staged image file.
    - Detection, Rectangle: Value types produced by the pipeline.
    - load_config: Layered configuration loader.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from face_detector import handle

    response = handle(image_bytes)
    print(response.body)
"""

from face_detector.config import load_config
from face_detector.detection import Detection, Rectangle
from face_detector.detector import Detector
from face_detector.handler import Response, handle

__all__ = ["handle", "Response", "Detector", "Detection", "Rectangle", "load_config"]
