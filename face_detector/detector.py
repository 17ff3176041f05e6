"""
Detector — configures and invokes the cascade for one staged image.

Public contract:
    Detector.detect(image_path) -> list[Detection]

Constraints:
    - The input is a path to a staged JPEG or PNG file.
    - Results are clustered: at most one Detection per face.
    - Given the same image and parameters the output is identical.

Non-goals:
    - No acquisition, staging, or rendering.
    - No quality filtering (that belongs in postprocessor).
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import cv2

from face_detector.clustering import cluster_detections
from face_detector.config import AppConfig, load_config
from face_detector.detection import Detection
from face_detector.errors import DetectionError
from face_detector.model_loader import FaceClassifier, load_classifier
from face_detector.preprocessor import read_image, to_grayscale

logger = logging.getLogger(__name__)


class Detector:
    """Cascade face detector.

    Usage:
        detector = Detector()                       # Uses safe defaults
        detector = Detector(config=my_config)        # Custom config
        detector = Detector(classifier=my_engine)    # Any FaceClassifier
        faces = detector.detect(staged_path)
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        classifier: Optional[FaceClassifier] = None,
    ) -> None:
        """Initialize the detector and load the cascade.

        Raises:
            ModelLoadError: If the model artifact is missing or corrupt.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._classifier = classifier if classifier is not None else load_classifier(config.model)

        params = config.detection
        logger.debug(
            "Detector ready (min_size=%d, max_size=%d, shift=%.2f, scale=%.2f, iou=%.2f)",
            params.min_size, params.max_size, params.shift_factor,
            params.scale_factor, params.iou_threshold,
        )

    def detect(self, image_path: Union[str, Path]) -> List[Detection]:
        """Detect faces in a staged image.

        Returns:
            Clustered detections, strongest first. Empty if none found.

        Raises:
            DetectionError: If the image cannot be decoded or the
                classifier fails.
        """
        try:
            frame = read_image(image_path)
            gray = to_grayscale(frame)
        except (OSError, ValueError, cv2.error) as e:
            raise DetectionError(f"Error on face detection: {e}") from e

        try:
            candidates = self._classifier.find_candidates(gray, self._config.detection)
        except DetectionError:
            raise
        except Exception as e:
            # Any engine failure is reported as a detection failure.
            raise DetectionError(f"Error on face detection: {e}") from e

        faces = cluster_detections(candidates, self._config.detection.iou_threshold)
        logger.info(
            "Detected %d face cluster(s) from %d candidate window(s)",
            len(faces), len(candidates),
        )
        return faces
