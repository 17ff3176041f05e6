"""
OpenCV Haar cascade engine.

Wraps cv2.CascadeClassifier so that it reports every raw window that
passes all cascade stages, with the stage weight as its score. Grouping
is left to clustering.cluster_detections so both engines merge windows
the same way.

Hard-coded:
    - minNeighbors=0 (OpenCV grouping disabled).
    - The window stride is chosen by OpenCV; shift_factor is not used.
"""

import logging
from pathlib import Path
from typing import List

import cv2
import numpy as np

from face_detector.config import DetectionConfig
from face_detector.detection import Detection
from face_detector.errors import ModelLoadError

logger = logging.getLogger(__name__)


class HaarCascade:
    """Face candidate search backed by an OpenCV Haar cascade."""

    def __init__(self, classifier: "cv2.CascadeClassifier") -> None:
        self._classifier = classifier

    @classmethod
    def from_file(cls, path: Path) -> "HaarCascade":
        """Load a cascade XML file.

        Raises:
            ModelLoadError: If the file is missing or OpenCV rejects it.
        """
        if not path.is_file():
            raise ModelLoadError(
                f"Haar cascade not found.\n"
                f"  Expected: {path}\n"
                f"  Provide the file or update 'model.haar_dir' in your config."
            )

        classifier = cv2.CascadeClassifier()
        try:
            loaded = classifier.load(str(path))
        except cv2.error as e:
            raise ModelLoadError(f"Unable to parse Haar cascade {path}: {e}") from e

        if not loaded or classifier.empty():
            raise ModelLoadError(f"Haar cascade {path} is empty or corrupt.")

        logger.info("Loaded Haar cascade: %s", path)
        return cls(classifier)

    def find_candidates(self, gray: np.ndarray, params: DetectionConfig) -> List[Detection]:
        """Run the cascade over a grayscale image.

        Returns:
            Unclustered candidate windows as center/scale detections.
        """
        rects, _levels, weights = self._classifier.detectMultiScale3(
            gray,
            scaleFactor=params.scale_factor,
            minNeighbors=0,
            minSize=(params.min_size, params.min_size),
            maxSize=(params.max_size, params.max_size),
            outputRejectLevels=True,
        )

        weights = np.asarray(weights, dtype=np.float64).reshape(-1)
        candidates = [
            Detection(
                row=int(y) + int(h) // 2,
                col=int(x) + int(w) // 2,
                scale=int(w),
                score=float(q),
            )
            for (x, y, w, h), q in zip(rects, weights)
        ]

        logger.debug("Haar cascade produced %d candidate windows", len(candidates))
        return candidates
