"""
Transient on-disk copies of request data.

The classifier reads its input from a path, so acquired bytes are
written to a uniquely named scratch file for the duration of one
request. Every file created here is removed when its context exits,
whatever the exit path.
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional

from face_detector.config import StagingConfig
from face_detector.errors import StagingError

logger = logging.getLogger(__name__)


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    logger.debug("Removed temporary file %s", path)


@contextlib.contextmanager
def scoped_tempfile(
    scratch_dir: Optional[str] = None,
    prefix: str = "tmp",
    suffix: str = "",
) -> Iterator[Path]:
    """Create an empty, uniquely named file and delete it on exit.

    Raises:
        OSError: If the file cannot be created.
    """
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=scratch_dir)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        _remove(path)


@contextlib.contextmanager
def staged_image(data: bytes, config: Optional[StagingConfig] = None) -> Iterator[Path]:
    """Write image bytes to a scratch file and yield its path.

    The file is deleted when the block exits, including on exceptions.

    Raises:
        StagingError: If the scratch file cannot be created or written.
    """
    config = config or StagingConfig()

    try:
        fd, name = tempfile.mkstemp(prefix=config.prefix, dir=config.scratch_dir)
    except OSError as e:
        raise StagingError(
            f"Unable to create a staging file in "
            f"{config.scratch_dir or tempfile.gettempdir()}: {e}"
        ) from e

    path = Path(name)
    try:
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StagingError(
                f"Unable to copy the source image to the staging file: {e}"
            ) from e

        logger.debug("Staged %d bytes at %s", len(data), path)
        yield path
    finally:
        _remove(path)
