"""
Classifier loading for the face detection request handler.

Responsibility:
    Resolve the configured cascade artifact, load it with the matching
    engine, and return an object satisfying the FaceClassifier protocol.

Non-goals:
    - No preprocessing, clustering, or rendering.
    - No automatic model downloading.
    - No fallback to a different engine.

Failure behavior:
    - Missing or corrupt artifacts raise ModelLoadError naming the
      expected path.
"""

import logging
from pathlib import Path
from typing import List, Protocol

import cv2
import numpy as np

from face_detector.config import DetectionConfig, ModelConfig, get_project_root
from face_detector.detection import Detection
from face_detector.errors import ModelLoadError
from face_detector.haar_cascade import HaarCascade
from face_detector.pico_cascade import PicoCascade

logger = logging.getLogger(__name__)


class FaceClassifier(Protocol):
    """Anything that can search a grayscale image for face windows."""

    def find_candidates(self, gray: np.ndarray, params: DetectionConfig) -> List[Detection]:
        ...


def _resolve(path_str: str) -> Path:
    """Resolve a relative path against the project root."""
    path = Path(path_str)
    if not path.is_absolute():
        path = get_project_root() / path
    return path


def _haar_path(config: ModelConfig) -> Path:
    if config.haar_dir is not None:
        return _resolve(config.haar_dir) / config.haar_cascade

    bundled = getattr(getattr(cv2, "data", None), "haarcascades", None)
    if bundled is None:
        raise ModelLoadError(
            "This OpenCV build ships no Haar cascades. "
            "Set 'model.haar_dir' to a directory containing "
            f"{config.haar_cascade}."
        )
    return Path(bundled) / config.haar_cascade


def load_classifier(config: ModelConfig) -> FaceClassifier:
    """Load the configured cascade.

    Args:
        config: ModelConfig naming the engine and artifact paths.

    Returns:
        A ready-to-use classifier.

    Raises:
        ModelLoadError: If the artifact is missing or corrupt.
    """
    if config.engine == "pico":
        path = _resolve(config.pico_path)
        logger.info("Loading pico cascade from %s", path)
        return PicoCascade.from_file(path)

    path = _haar_path(config)
    logger.info("Loading Haar cascade from %s", path)
    return HaarCascade.from_file(path)
