"""
Request handler — the single entry point for one detection request.

Public contract:
    handle(request) -> Response

Flow:
    acquire → stage → detect → (render) → assemble

Every pipeline failure becomes a plain-text Response carrying the error
message; nothing is raised to the caller. The staged image and any
rendered output file are deleted before handle() returns.

Non-goals:
    - No HTTP framing or server loop.
    - No state shared between requests.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

import yaml

from face_detector.acquirer import acquire
from face_detector.config import AppConfig, OutputMode, load_config, resolve_output_mode
from face_detector.detector import Detector
from face_detector.errors import FaceDetectionError
from face_detector.model_loader import FaceClassifier
from face_detector.postprocessor import postprocess
from face_detector.renderer import render
from face_detector.serializer import assemble
from face_detector.staging import staged_image

logger = logging.getLogger(__name__)

# Query string of the invoking HTTP request, as set by the function runtime.
QUERY_ENV = "Http_Query"

_CONTENT_TYPES = {
    OutputMode.JSON: "application/json",
    OutputMode.JSON_IMAGE: "application/json",
    OutputMode.IMAGE: "image/jpeg",
}


@dataclass(frozen=True)
class Response:
    """Outcome of one request.

    Attributes:
        body: Payload bytes (JSON, JPEG, or an error message).
        content_type: MIME type of body.
        error: The error message if the request failed, else None.
    """

    body: bytes
    content_type: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def handle(
    request: Union[bytes, str],
    config: Optional[AppConfig] = None,
    query: Optional[str] = None,
    classifier: Optional[FaceClassifier] = None,
) -> Response:
    """Detect faces in the image carried by one request.

    Args:
        request: Request body: a URL in url mode, otherwise a raw or
                 base64 encoded JPEG/PNG.
        config: Application configuration. Loaded from the environment
                if None.
        query: Request query string. Read from Http_Query if None.
        classifier: Cascade engine to use instead of the configured one.

    Returns:
        The response payload; error responses are plain text.
    """
    if config is None:
        try:
            config = load_config()
        except (OSError, ValueError, yaml.YAMLError) as e:
            message = f"Configuration error: {e}"
            logger.error(message)
            return _error_response(message)
    if query is None:
        query = os.environ.get(QUERY_ENV, "")

    mode = resolve_output_mode(config, query)
    logger.info("Handling request (input=%s, output=%s)", config.input.mode, mode.value)

    try:
        data = acquire(
            request,
            mode=config.input.mode,
            timeout=config.input.fetch_timeout,
            max_bytes=config.input.max_bytes,
        )

        with staged_image(data, config.staging) as path:
            detector = Detector(config, classifier=classifier)
            faces = detector.detect(path)

            if mode.renders_image:
                rectangles, image = render(path, faces, config)
            else:
                rectangles = postprocess(
                    faces,
                    config.detection.quality_threshold,
                    legacy=config.visualization.legacy_rectangles,
                )
                image = None

        body = assemble(rectangles, image, mode)

    except FaceDetectionError as e:
        message = str(e)
        logger.error("Request failed (%s): %s", type(e).__name__, message)
        return _error_response(message)

    logger.info("Request complete: %d face(s), %d byte response", len(rectangles), len(body))
    return Response(body, _CONTENT_TYPES[mode])


def _error_response(message: str) -> Response:
    return Response(message.encode("utf-8"), "text/plain; charset=utf-8", error=message)
