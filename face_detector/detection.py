"""
Value types passed between pipeline stages.

Detection is what the classifier produces: a square region given by its
center and side length, plus a confidence score. Rectangle is the public
shape written to the JSON response.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate conversion (that belongs in postprocessor).
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Detection:
    """A candidate or clustered face region.

    Attributes:
        row: Center row (y) in pixels.
        col: Center column (x) in pixels.
        scale: Side length of the square region in pixels.
        score: Classifier confidence. Unbounded; clustered detections
               carry the sum of their members' scores.
    """

    row: int
    col: int
    scale: int
    score: float


@dataclass(frozen=True, slots=True)
class Rectangle:
    """A face rectangle as reported in the response."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    def to_dict(self) -> dict:
        return {
            "Min": {"X": self.min_x, "Y": self.min_y},
            "Max": {"X": self.max_x, "Y": self.max_y},
        }
