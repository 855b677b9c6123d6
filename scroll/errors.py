"""Error types used by the scroll capture engine."""

from __future__ import annotations


class CaptureError(RuntimeError):
    """Base error for capture sessions that cannot produce an image."""


class AcquisitionFailed(CaptureError):
    """Raised when no display or screen source is available."""


class ScrollInputFailed(CaptureError):
    """Raised when the scroll key could not be injected."""


class ExternalToolFailed(CaptureError):
    """Raised when the recorder/extractor process fails to start or exits non-zero."""


class NoFramesProduced(CaptureError):
    """Raised when a capture run ends up with nothing to stitch."""


class CaptureCancelled(Exception):
    """Control-flow exception for a run stopped by the user."""


class InvalidRegion(ValueError):
    """Malformed crop rectangle string."""


class RegionOutOfBounds(ValueError):
    """Crop rectangle does not fit inside the captured frame."""


class StitchError(ValueError):
    """Frames cannot be stitched with the requested overlap."""
