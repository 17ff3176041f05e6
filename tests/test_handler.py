"""
End-to-end tests for the request handler.

The classifier is replaced by a fixed set of candidate windows so the
pipeline can be exercised without face photographs.
"""

import base64
import json

import pytest
import requests

from face_detector import acquirer, renderer
from face_detector.config import (
    AppConfig,
    InputConfig,
    ModelConfig,
    OutputConfig,
    StagingConfig,
)
from face_detector.detection import Detection
from face_detector.handler import handle

from conftest import FakeClassifier


def _config(scratch_dir, **sections):
    return AppConfig(staging=StagingConfig(scratch_dir=str(scratch_dir)), **sections)


def test_json_mode_one_face(jpeg_bytes, config, face_classifier, scratch_dir):
    """Base64 800x600 JPEG with one face near the center."""
    response = handle(base64.b64encode(jpeg_bytes), config=config, query="", classifier=face_classifier)

    assert response.ok
    assert response.content_type == "application/json"
    payload = json.loads(response.body)
    assert payload["ImageBase64"] == ""
    assert payload["Faces"] == [{"Min": {"X": 349, "Y": 250}, "Max": {"X": 100, "Y": 100}}]
    assert list(scratch_dir.iterdir()) == []


def test_json_image_mode(jpeg_bytes, scratch_dir, face_classifier):
    config = _config(scratch_dir, output=OutputConfig(mode="json_image"))

    response = handle(jpeg_bytes, config=config, query="", classifier=face_classifier)

    assert response.ok
    payload = json.loads(response.body)
    assert len(payload["Faces"]) == 1
    assert payload["ImageBase64"] != ""
    assert base64.b64decode(payload["ImageBase64"]).startswith(b"\xff\xd8\xff")
    assert list(scratch_dir.iterdir()) == []


def test_image_mode_from_query(png_bytes, config, face_classifier, scratch_dir):
    response = handle(png_bytes, config=config, query="output=image", classifier=face_classifier)

    assert response.ok
    assert response.content_type == "image/jpeg"
    assert response.body.startswith(b"\xff\xd8\xff")
    with pytest.raises(ValueError):
        json.loads(response.body)
    assert list(scratch_dir.iterdir()) == []


def test_query_read_from_environment(monkeypatch, jpeg_bytes, config, face_classifier):
    monkeypatch.setenv("Http_Query", "output=image")

    response = handle(jpeg_bytes, config=config, classifier=face_classifier)

    assert response.content_type == "image/jpeg"


def test_identical_requests_give_identical_faces(jpeg_bytes, config, face_classifier):
    body = base64.b64encode(jpeg_bytes)
    first = handle(body, config=config, query="", classifier=face_classifier)
    second = handle(body, config=config, query="", classifier=face_classifier)

    assert json.loads(first.body)["Faces"] == json.loads(second.body)["Faces"]


def test_low_scores_never_reported(jpeg_bytes, config):
    # Two overlapping windows, combined score exactly 5.0
    classifier = FakeClassifier([
        Detection(row=300, col=400, scale=100, score=2.5),
        Detection(row=301, col=401, scale=100, score=2.5),
    ])

    response = handle(jpeg_bytes, config=config, query="", classifier=classifier)

    assert json.loads(response.body)["Faces"] == []


def test_gif_is_rejected(gif_bytes, config, face_classifier, scratch_dir):
    response = handle(base64.b64encode(gif_bytes), config=config, query="", classifier=face_classifier)

    assert not response.ok
    assert response.content_type.startswith("text/plain")
    assert b"image/gif" in response.body
    assert face_classifier.calls == []
    assert list(scratch_dir.iterdir()) == []


def test_empty_body_is_rejected(config, face_classifier):
    response = handle(b"", config=config, query="", classifier=face_classifier)

    assert not response.ok
    assert "application/octet-stream" in response.error


def test_url_mode_unreachable_host(monkeypatch, scratch_dir, face_classifier):
    def fake_get(url, **kwargs):
        raise requests.ConnectionError("Failed to establish a new connection")

    monkeypatch.setattr(acquirer.requests, "get", fake_get)
    config = _config(scratch_dir, input=InputConfig(mode="url"))

    response = handle(b"http://no-such-host.invalid/face.jpg\n", config=config, query="",
                      classifier=face_classifier)

    assert not response.ok
    assert b"http://no-such-host.invalid/face.jpg" in response.body
    assert list(scratch_dir.iterdir()) == []


def test_detection_failure_cleans_up(jpeg_bytes, config, scratch_dir):
    classifier = FakeClassifier(error=ValueError("cascade exploded"))

    response = handle(jpeg_bytes, config=config, query="", classifier=classifier)

    assert not response.ok
    assert "cascade exploded" in response.error
    assert list(scratch_dir.iterdir()) == []


def test_render_failure_cleans_up(monkeypatch, jpeg_bytes, scratch_dir, face_classifier):
    def broken_encode(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(renderer, "encode_jpeg", broken_encode)
    config = _config(scratch_dir, output=OutputConfig(mode="image"))

    response = handle(jpeg_bytes, config=config, query="", classifier=face_classifier)

    assert not response.ok
    assert response.error.startswith("Error creating image output")
    assert list(scratch_dir.iterdir()) == []


def test_missing_model_cleans_up(tmp_path, jpeg_bytes, scratch_dir):
    config = _config(
        scratch_dir,
        model=ModelConfig(engine="pico", pico_path=str(tmp_path / "facefinder")),
    )

    response = handle(jpeg_bytes, config=config, query="")

    assert not response.ok
    assert "facefinder" in response.error
    assert list(scratch_dir.iterdir()) == []


def test_staging_failure(tmp_path, jpeg_bytes, face_classifier):
    config = AppConfig(staging=StagingConfig(scratch_dir=str(tmp_path / "missing")))

    response = handle(jpeg_bytes, config=config, query="", classifier=face_classifier)

    assert not response.ok
    assert "staging file" in response.error


def test_unexpected_classifier_exception_becomes_error_response(jpeg_bytes, config, scratch_dir):
    classifier = FakeClassifier(error=RuntimeError("boom"))

    response = handle(jpeg_bytes, config=config, query="", classifier=classifier)

    assert not response.ok
    assert response.content_type.startswith("text/plain")
    assert "boom" in response.error
    assert list(scratch_dir.iterdir()) == []


@pytest.fixture
def env_scratch(monkeypatch, scratch_dir):
    monkeypatch.setenv("FACE_DETECT_STAGING_SCRATCH_DIR", str(scratch_dir))
    return scratch_dir


def test_unknown_output_mode_env_answers_json(monkeypatch, jpeg_bytes, face_classifier, env_scratch):
    monkeypatch.setenv("output_mode", "xml")

    response = handle(jpeg_bytes, query="", classifier=face_classifier)

    assert response.ok
    assert response.content_type == "application/json"
    assert len(json.loads(response.body)["Faces"]) == 1
    assert list(env_scratch.iterdir()) == []


def test_empty_output_mode_env_beats_query(monkeypatch, jpeg_bytes, face_classifier, env_scratch):
    monkeypatch.setenv("output_mode", "")

    response = handle(jpeg_bytes, query="output=image", classifier=face_classifier)

    assert response.ok
    assert response.content_type == "application/json"
    assert json.loads(response.body)["ImageBase64"] == ""


def test_unknown_input_mode_env_reads_inline(monkeypatch, jpeg_bytes, face_classifier, env_scratch):
    monkeypatch.setenv("input_mode", "inline-ish")

    response = handle(base64.b64encode(jpeg_bytes), query="", classifier=face_classifier)

    assert response.ok
    assert len(json.loads(response.body)["Faces"]) == 1


def test_configuration_error_becomes_error_response(monkeypatch, jpeg_bytes, face_classifier):
    monkeypatch.setenv("FACE_DETECT_DETECTION_IOU_THRESHOLD", "1.5")

    response = handle(jpeg_bytes, query="", classifier=face_classifier)

    assert not response.ok
    assert response.content_type.startswith("text/plain")
    assert response.error.startswith("Configuration error")
    assert "iou_threshold" in response.error
    assert face_classifier.calls == []
