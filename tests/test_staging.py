"""
Tests for the staging module.
"""

import pytest

from face_detector.config import StagingConfig
from face_detector.errors import StagingError
from face_detector.staging import scoped_tempfile, staged_image


def test_staged_file_holds_bytes_and_is_removed(scratch_dir, jpeg_bytes):
    config = StagingConfig(scratch_dir=str(scratch_dir))

    with staged_image(jpeg_bytes, config) as path:
        assert path.parent == scratch_dir
        assert path.name.startswith("image")
        assert path.read_bytes() == jpeg_bytes

    assert not path.exists()
    assert list(scratch_dir.iterdir()) == []


def test_staged_file_removed_on_error(scratch_dir, jpeg_bytes):
    config = StagingConfig(scratch_dir=str(scratch_dir))

    with pytest.raises(RuntimeError):
        with staged_image(jpeg_bytes, config) as path:
            raise RuntimeError("detection blew up")

    assert not path.exists()
    assert list(scratch_dir.iterdir()) == []


def test_staged_names_are_unique(scratch_dir):
    config = StagingConfig(scratch_dir=str(scratch_dir))

    with staged_image(b"first", config) as first, staged_image(b"second", config) as second:
        assert first != second
        assert first.read_bytes() == b"first"
        assert second.read_bytes() == b"second"

    assert list(scratch_dir.iterdir()) == []


def test_missing_scratch_dir_raises_staging_error(tmp_path):
    config = StagingConfig(scratch_dir=str(tmp_path / "does-not-exist"))

    with pytest.raises(StagingError, match="does-not-exist"):
        with staged_image(b"data", config):
            pass


def test_scoped_tempfile_removed_even_if_caller_deleted_it(scratch_dir):
    with scoped_tempfile(str(scratch_dir), prefix="render", suffix=".jpg") as path:
        assert path.suffix == ".jpg"
        path.unlink()

    assert list(scratch_dir.iterdir()) == []
