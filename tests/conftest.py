"""
Shared fixtures for the face detection tests.
"""

import cv2
import numpy as np
import pytest

from face_detector.config import AppConfig, StagingConfig
from face_detector.detection import Detection

# Minimal 1x1 GIF89a
GIF_BYTES = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!"
    b"\xf9\x04\x01\x00\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00"
    b"\x00\x02\x02D\x01\x00;"
)


def encode_image(ext: str, width: int = 800, height: int = 600) -> bytes:
    """Encode a gray test frame with a lighter square in the middle."""
    frame = np.full((height, width, 3), 90, dtype=np.uint8)
    frame[height // 3: 2 * height // 3, width // 3: 2 * width // 3] = 180
    ok, buf = cv2.imencode(ext, frame)
    assert ok
    return buf.tobytes()


class FakeClassifier:
    """Returns a fixed list of candidate windows and records its calls."""

    def __init__(self, candidates=None, error=None):
        self.candidates = list(candidates or [])
        self.error = error
        self.calls = []

    def find_candidates(self, gray, params):
        self.calls.append((gray.shape, params))
        if self.error is not None:
            raise self.error
        return list(self.candidates)


# One face near the center of an 800x600 image (five overlapping windows,
# combined score 10.0) and one weak, isolated window (score 3.0).
CENTER_FACE_WINDOWS = [
    Detection(row=300, col=400, scale=100, score=2.0),
    Detection(row=302, col=398, scale=100, score=2.0),
    Detection(row=298, col=402, scale=104, score=2.0),
    Detection(row=304, col=400, scale=96, score=2.0),
    Detection(row=300, col=396, scale=100, score=2.0),
]
WEAK_WINDOW = Detection(row=80, col=80, scale=40, score=3.0)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep deployment variables of the host out of the tests."""
    for name in ("input_mode", "output_mode", "Http_Query"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def jpeg_bytes():
    return encode_image(".jpg")


@pytest.fixture
def png_bytes():
    return encode_image(".png", width=320, height=240)


@pytest.fixture
def gif_bytes():
    return GIF_BYTES


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def config(scratch_dir):
    return AppConfig(staging=StagingConfig(scratch_dir=str(scratch_dir)))


@pytest.fixture
def face_classifier():
    return FakeClassifier(CENTER_FACE_WINDOWS + [WEAK_WINDOW])
