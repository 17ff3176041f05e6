"""
Tests for the detector module.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

from face_detector.config import AppConfig, ModelConfig
from face_detector.detector import Detector
from face_detector.errors import DetectionError, ModelLoadError
from face_detector.haar_cascade import HaarCascade
from face_detector.model_loader import load_classifier

from conftest import CENTER_FACE_WINDOWS, FakeClassifier

# Skip integration tests if OpenCV ships no Haar cascades
_HAAR_DIR = getattr(getattr(cv2, "data", None), "haarcascades", None)
_HAAR_EXISTS = (
    _HAAR_DIR is not None
    and (Path(_HAAR_DIR) / "haarcascade_frontalface_default.xml").is_file()
)


@pytest.fixture
def image_file(tmp_path, jpeg_bytes):
    path = tmp_path / "input.jpg"
    path.write_bytes(jpeg_bytes)
    return path


def test_detect_clusters_candidates(image_file):
    classifier = FakeClassifier(CENTER_FACE_WINDOWS)
    detector = Detector(AppConfig(), classifier=classifier)

    faces = detector.detect(image_file)

    assert len(faces) == 1
    assert faces[0].score == pytest.approx(10.0)
    # Classifier receives a single-channel image of the original size
    shape, params = classifier.calls[0]
    assert shape == (600, 800)
    assert params == AppConfig().detection


def test_no_candidates_is_not_an_error(image_file):
    detector = Detector(AppConfig(), classifier=FakeClassifier([]))
    assert detector.detect(image_file) == []


def test_detect_is_repeatable(image_file):
    detector = Detector(AppConfig(), classifier=FakeClassifier(CENTER_FACE_WINDOWS))
    assert detector.detect(image_file) == detector.detect(image_file)


def test_undecodable_image(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"\xff\xd8\xff not really a jpeg")
    detector = Detector(AppConfig(), classifier=FakeClassifier())

    with pytest.raises(DetectionError, match="Error on face detection"):
        detector.detect(path)


def test_classifier_failure_is_wrapped(image_file):
    classifier = FakeClassifier(error=ValueError("bad pixel buffer"))
    detector = Detector(AppConfig(), classifier=classifier)

    with pytest.raises(DetectionError, match="bad pixel buffer"):
        detector.detect(image_file)


def test_missing_pico_model(tmp_path):
    config = AppConfig(model=ModelConfig(engine="pico", pico_path=str(tmp_path / "facefinder")))
    with pytest.raises(ModelLoadError, match="facefinder"):
        Detector(config)


def test_missing_haar_model(tmp_path):
    config = ModelConfig(haar_dir=str(tmp_path))
    with pytest.raises(ModelLoadError, match="not found"):
        load_classifier(config)


def test_corrupt_haar_model(tmp_path):
    (tmp_path / "haarcascade_frontalface_default.xml").write_text("<opencv_storage>", encoding="utf-8")
    with pytest.raises(ModelLoadError):
        load_classifier(ModelConfig(haar_dir=str(tmp_path)))


@pytest.mark.skipif(not _HAAR_EXISTS, reason="OpenCV Haar cascades not found")
def test_haar_integration_smoke(image_file):
    """Smoke test: bundled cascade loads and runs on a synthetic image."""
    detector = Detector(AppConfig())
    assert isinstance(detector._classifier, HaarCascade)

    faces = detector.detect(image_file)
    assert isinstance(faces, list)


@pytest.mark.skipif(not _HAAR_EXISTS, reason="OpenCV Haar cascades not found")
def test_haar_candidates_on_blank_frame():
    classifier = load_classifier(ModelConfig())
    gray = np.zeros((120, 160), dtype=np.uint8)

    candidates = classifier.find_candidates(gray, AppConfig().detection)

    assert isinstance(candidates, list)


def test_unexpected_classifier_exception_is_wrapped(image_file):
    detector = Detector(AppConfig(), classifier=FakeClassifier(error=RuntimeError("boom")))

    with pytest.raises(DetectionError, match="boom") as excinfo:
        detector.detect(image_file)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
