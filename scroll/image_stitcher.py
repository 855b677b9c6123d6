"""Assembling one tall image from a series of overlapping frames."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional

import numpy as np

from .errors import StitchError

# (canvas, frame, y_offset, overlap) -> None; writes ``frame`` into ``canvas``
SeamPolicy = Callable[[np.ndarray, np.ndarray, int, int], None]


def midpoint_seam(canvas: np.ndarray, frame: np.ndarray, offset: int, overlap: int) -> None:
    """Split the overlap band in half.

    The upper half keeps the previous frame's pixels, the lower half and
    everything below it come from ``frame``.
    """
    start = overlap // 2
    canvas[offset + start : offset + frame.shape[0]] = frame[start:]


def crossfade_seam(canvas: np.ndarray, frame: np.ndarray, offset: int, overlap: int) -> None:
    """Linear blend from the previous frame to ``frame`` across the overlap band."""
    if overlap > 0:
        alpha = np.linspace(0, 1, overlap, dtype=np.float32)[:, None, None]
        base = canvas[offset : offset + overlap].astype(np.float32)
        incoming = frame[:overlap].astype(np.float32)
        blended = (1 - alpha) * base + alpha * incoming
        canvas[offset : offset + overlap] = np.clip(np.rint(blended), 0, 255).astype(canvas.dtype)
    canvas[offset + overlap : offset + frame.shape[0]] = frame[overlap:]


SEAM_POLICIES: Dict[str, SeamPolicy] = {
    "midpoint": midpoint_seam,
    "crossfade": crossfade_seam,
}


def seam_policy(name: str) -> SeamPolicy:
    try:
        return SEAM_POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown seam policy {name!r}; choose from {', '.join(sorted(SEAM_POLICIES))}"
        ) from None


class ImageStitcher:
    """Stacks frames vertically, dropping the duplicated overlap bands."""

    def __init__(self, frames: Iterable[np.ndarray], seam: Optional[SeamPolicy] = None):
        self.frames = list(frames)
        self.seam = seam or midpoint_seam

    def _validate(self, overlap: int) -> None:
        shape = self.frames[0].shape
        for idx, frame in enumerate(self.frames[1:], start=1):
            if frame.shape != shape:
                raise StitchError(
                    f"Frame {idx + 1} is {frame.shape[1]}x{frame.shape[0]}, "
                    f"expected {shape[1]}x{shape[0]}"
                )
        if not 0 <= overlap < shape[0]:
            raise StitchError(f"Overlap {overlap}px must be smaller than frame height {shape[0]}px")

    def output_height(self, overlap: int) -> int:
        if not self.frames:
            return 1
        height = self.frames[0].shape[0]
        return height + (len(self.frames) - 1) * (height - overlap)

    def stitch(self, overlap: int) -> np.ndarray:
        """Return the composite image; a 1x1 transparent pixel for no frames."""
        if not self.frames:
            return np.zeros((1, 1, 4), dtype=np.uint8)
        if len(self.frames) == 1:
            return self.frames[0].copy()

        overlap = int(overlap)
        self._validate(overlap)
        first = self.frames[0]
        height = first.shape[0]
        step = height - overlap
        canvas = np.zeros((self.output_height(overlap),) + first.shape[1:], dtype=first.dtype)
        canvas[:height] = first
        for idx, frame in enumerate(self.frames[1:], start=1):
            self.seam(canvas, frame, idx * step, overlap)
        return canvas
