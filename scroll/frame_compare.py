"""Frame comparison used to find the end of a page and redundant frames.

Two modes, both defined only for frames of identical shape:

* identity - exact full-frame equality, used to notice that a scroll key
  press produced no change at all (bottom of the page);
* overlap similarity - the bottom ``overlap`` rows of the previous frame
  against the top ``overlap`` rows of the next one, with a mismatch budget
  of ``floor(overlap * width * tolerance)`` pixels.

A pixel differs when any of its four RGBA channels differs.
"""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np

# rows per vectorised chunk; scanning stops at the first chunk that decides the result
_ROW_BLOCK = 32


class CompareResult(NamedTuple):
    similar: bool
    difference: float  # percent of the compared pixels that differ


NOT_SIMILAR = CompareResult(False, 100.0)


def _same_shape(a: np.ndarray, b: np.ndarray) -> bool:
    return a is not None and b is not None and a.shape == b.shape


class FrameComparator:
    def __init__(self, tolerance: float = 0.0) -> None:
        tolerance = float(tolerance)
        if not 0.0 <= tolerance <= 1.0:
            raise ValueError(f"tolerance must be within [0, 1], got {tolerance}")
        self.tolerance = tolerance

    @staticmethod
    def identical(a: np.ndarray, b: np.ndarray) -> bool:
        """True only if every pixel of ``a`` equals the one in ``b``."""
        if not _same_shape(a, b):
            return False
        for top in range(0, a.shape[0], _ROW_BLOCK):
            if not np.array_equal(a[top : top + _ROW_BLOCK], b[top : top + _ROW_BLOCK]):
                return False
        return True

    def threshold(self, overlap: int, width: int) -> int:
        # round first so 0.29 * 100 counts as 29, not 28.999...
        return math.floor(round(overlap * width * self.tolerance, 9))

    def similar(self, a: np.ndarray, b: np.ndarray, overlap: int) -> CompareResult:
        """Compare the bottom band of ``a`` with the top band of ``b``.

        Pixels are visited row by row; as soon as the mismatch count exceeds
        the threshold the scan stops and the percentage reflects the count
        at that point.
        """
        if not _same_shape(a, b):
            return NOT_SIMILAR
        height, width = a.shape[:2]
        overlap = int(overlap)
        if overlap < 1 or overlap >= height or width == 0:
            return NOT_SIMILAR

        total = overlap * width
        threshold = self.threshold(overlap, width)
        band_a = a[height - overlap :]
        band_b = b[:overlap]

        mismatches = 0
        for top in range(0, overlap, _ROW_BLOCK):
            rows_a = band_a[top : top + _ROW_BLOCK]
            rows_b = band_b[top : top + _ROW_BLOCK]
            differs = rows_a != rows_b
            if differs.ndim == 3:
                differs = differs.any(axis=2)
            mismatches += int(np.count_nonzero(differs))
            if mismatches > threshold:
                # the row-major scan would have stopped on the (threshold + 1)-th mismatch
                return CompareResult(False, (threshold + 1) / total * 100.0)

        return CompareResult(True, mismatches / total * 100.0)
