"""
Pixel intensity comparison (pico) cascade engine.

Evaluates a cascade of binary decision trees stored in the 'facefinder'
binary format. Each tree node compares the intensities of two pixels
whose offsets are given relative to the window center in units of
1/256 of the window size. Window positions of one scale are evaluated
together as numpy arrays; windows are dropped as soon as their running
score falls to or below a tree's threshold.

Binary layout (little endian):
    8 bytes   header, ignored
    uint32    tree depth d
    uint32    number of trees n
    n times:
        (4 * 2^d - 4) int8   node codes (r1, c1, r2, c2 per internal node)
        2^d float32          leaf predictions
        float32              rejection threshold
"""

import logging
import struct
from pathlib import Path
from typing import List, Tuple

import numpy as np

from face_detector.config import DetectionConfig
from face_detector.detection import Detection
from face_detector.errors import ModelLoadError

logger = logging.getLogger(__name__)

_HEADER_SIZE = 8
_MAX_DEPTH = 16


class PicoCascade:
    """Face candidate search backed by a pico binary cascade."""

    def __init__(
        self,
        tree_depth: int,
        codes: np.ndarray,
        predictions: np.ndarray,
        thresholds: np.ndarray,
    ) -> None:
        self.tree_depth = tree_depth
        self.tree_count = len(thresholds)
        self._codes = codes.astype(np.int64)
        self._predictions = predictions.astype(np.float32)
        self._thresholds = thresholds.astype(np.float32)

    @classmethod
    def from_file(cls, path: Path) -> "PicoCascade":
        """Read and unpack a cascade file.

        Raises:
            ModelLoadError: If the file is missing, unreadable or malformed.
        """
        if not path.is_file():
            raise ModelLoadError(
                f"Pico cascade not found.\n"
                f"  Expected: {path}\n"
                f"  Provide the file or update 'model.pico_path' in your config."
            )
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ModelLoadError(f"Unable to read pico cascade {path}: {e}") from e

        cascade = cls.from_bytes(data)
        logger.info(
            "Loaded pico cascade: %s (%d trees, depth %d)",
            path, cascade.tree_count, cascade.tree_depth,
        )
        return cascade

    @classmethod
    def from_bytes(cls, data: bytes) -> "PicoCascade":
        """Unpack a cascade from its binary representation.

        Raises:
            ModelLoadError: If the data is truncated or inconsistent.
        """
        if len(data) < _HEADER_SIZE + 8:
            raise ModelLoadError("Pico cascade is truncated (missing header).")

        depth, count = struct.unpack_from("<II", data, _HEADER_SIZE)
        if not (0 < depth <= _MAX_DEPTH) or count == 0:
            raise ModelLoadError(
                f"Pico cascade header is corrupt (depth={depth}, trees={count})."
            )

        leaves = 1 << depth
        code_len = 4 * leaves - 4
        tree_len = code_len + 4 * leaves + 4
        expected = _HEADER_SIZE + 8 + count * tree_len
        if len(data) < expected:
            raise ModelLoadError(
                f"Pico cascade is truncated: expected {expected} bytes, "
                f"got {len(data)}."
            )

        codes = np.zeros((count, 4 * leaves), dtype=np.int8)
        predictions = np.empty((count, leaves), dtype=np.float32)
        thresholds = np.empty(count, dtype=np.float32)

        pos = _HEADER_SIZE + 8
        for t in range(count):
            # The root slot (index 0) is unused, hence the four leading zeros.
            codes[t, 4:] = np.frombuffer(data, dtype=np.int8, count=code_len, offset=pos)
            pos += code_len
            predictions[t] = np.frombuffer(data, dtype="<f4", count=leaves, offset=pos)
            pos += 4 * leaves
            thresholds[t] = struct.unpack_from("<f", data, pos)[0]
            pos += 4

        return cls(depth, codes, predictions, thresholds)

    def find_candidates(self, gray: np.ndarray, params: DetectionConfig) -> List[Detection]:
        """Slide windows of growing size over a grayscale image.

        Returns:
            Every window whose cascade score is positive, unclustered.
        """
        if gray.ndim != 2:
            raise ValueError(f"Expected a 2-dimensional grayscale image, got shape {gray.shape}.")

        pixels = np.ascontiguousarray(gray, dtype=np.uint8).ravel()
        height, width = gray.shape
        candidates: List[Detection] = []

        scale = params.min_size
        while scale <= params.max_size:
            step = max(int(params.shift_factor * scale), 1)
            offset = scale // 2 + 1

            rows = np.arange(offset, height - offset + 1, step, dtype=np.int64)
            cols = np.arange(offset, width - offset + 1, step, dtype=np.int64)
            if rows.size and cols.size:
                grid_r, grid_c = np.meshgrid(rows, cols, indexing="ij")
                grid_r = grid_r.ravel()
                grid_c = grid_c.ravel()
                scores, keep = self._classify(grid_r, grid_c, scale, pixels, width, height)
                for row, col, score in zip(grid_r[keep], grid_c[keep], scores[keep]):
                    candidates.append(Detection(int(row), int(col), scale, float(score)))

            next_scale = int(scale * params.scale_factor)
            scale = next_scale if next_scale > scale else scale + 1

        logger.debug("Pico cascade produced %d candidate windows", len(candidates))
        return candidates

    def _classify(
        self,
        rows: np.ndarray,
        cols: np.ndarray,
        scale: int,
        pixels: np.ndarray,
        width: int,
        height: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Score a batch of windows of one size.

        Returns:
            (scores, keep) where keep marks windows that passed every tree.
        """
        leaves = 1 << self.tree_depth
        r = rows * 256
        c = cols * 256

        out = np.zeros(rows.size, dtype=np.float32)
        alive = np.arange(rows.size)

        for t in range(self.tree_count):
            codes = self._codes[t]
            ra = r[alive]
            ca = c[alive]
            idx = np.ones(alive.size, dtype=np.int64)

            for _ in range(self.tree_depth):
                base = 4 * idx
                y1 = np.clip((ra + codes[base] * scale) >> 8, 0, height - 1)
                x1 = np.clip((ca + codes[base + 1] * scale) >> 8, 0, width - 1)
                y2 = np.clip((ra + codes[base + 2] * scale) >> 8, 0, height - 1)
                x2 = np.clip((ca + codes[base + 3] * scale) >> 8, 0, width - 1)
                brighter = pixels[y1 * width + x1] <= pixels[y2 * width + x2]
                idx = 2 * idx + brighter.astype(np.int64)

            out[alive] += self._predictions[t, idx - leaves]
            alive = alive[out[alive] > self._thresholds[t]]
            if alive.size == 0:
                break

        scores = out - self._thresholds[-1]
        keep = np.zeros(rows.size, dtype=bool)
        keep[alive] = True
        keep &= scores > 0.0
        return scores, keep
