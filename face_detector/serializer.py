"""
Response assembly for the face detection request handler.

Responsibility:
    Shape the final payload for the selected output mode.

Output schema (json and json_image modes):
    {
        "Faces": [
            {"Min": {"X": ..., "Y": ...}, "Max": {"X": ..., "Y": ...}}
        ],
        "ImageBase64": "<base64 JPEG, or empty in json mode>"
    }

In image mode the payload is the JPEG itself, with no wrapper.
"""

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from face_detector.config import OutputMode
from face_detector.detection import Rectangle
from face_detector.errors import SerializationError

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Public result of one request."""

    faces: List[Rectangle] = field(default_factory=list)
    image_base64: str = ""

    def to_dict(self) -> dict:
        return {
            "Faces": [r.to_dict() for r in self.faces],
            "ImageBase64": self.image_base64,
        }


def assemble(
    rectangles: Sequence[Rectangle],
    image: Optional[bytes],
    mode: OutputMode,
) -> bytes:
    """Build the response payload.

    Args:
        rectangles: Accepted face rectangles.
        image: Encoded annotated image, required for image modes.
        mode: Selected output mode.

    Returns:
        JPEG bytes in image mode, UTF-8 JSON otherwise.

    Raises:
        SerializationError: If an image mode has no image or JSON
            encoding fails.
    """
    if mode.renders_image and image is None:
        raise SerializationError(
            f"Error encoding output: mode '{mode.value}' requires a rendered image"
        )

    if mode is OutputMode.IMAGE:
        return image

    result = DetectionResult(faces=list(rectangles))
    if mode is OutputMode.JSON_IMAGE:
        result.image_base64 = base64.b64encode(image).decode("ascii")

    try:
        payload = json.dumps(result.to_dict())
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Error encoding output: {e}") from e

    logger.debug("Assembled %s response with %d face(s)", mode.value, len(result.faces))
    return payload.encode("utf-8")
