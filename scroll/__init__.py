"""Scroll capture engine for ScrollCap."""

from .errors import (
    AcquisitionFailed,
    CaptureCancelled,
    CaptureError,
    ExternalToolFailed,
    InvalidRegion,
    NoFramesProduced,
    RegionOutOfBounds,
    ScrollInputFailed,
    StitchError,
)
from .frame_compare import CompareResult, FrameComparator
from .image_stitcher import ImageStitcher, crossfade_seam, midpoint_seam, seam_policy
from .region import Rectangle, RegionResolver, RegionSelection, parse_crop_region
from .scroll_capture import CaptureState, ScrollCapture
from .session import (
    CaptureControl,
    CaptureRequest,
    CaptureSession,
    ScrollKey,
    SessionLog,
    StatusCell,
    StatusKind,
    VideoSettings,
)
from .video_scroll_capture import VideoScrollCapture

__all__ = [
    "AcquisitionFailed",
    "CaptureCancelled",
    "CaptureControl",
    "CaptureError",
    "CaptureRequest",
    "CaptureSession",
    "CaptureState",
    "CompareResult",
    "ExternalToolFailed",
    "FrameComparator",
    "ImageStitcher",
    "InvalidRegion",
    "NoFramesProduced",
    "Rectangle",
    "RegionOutOfBounds",
    "RegionResolver",
    "RegionSelection",
    "ScrollCapture",
    "ScrollInputFailed",
    "ScrollKey",
    "SessionLog",
    "StatusCell",
    "StatusKind",
    "StitchError",
    "VideoScrollCapture",
    "VideoSettings",
    "crossfade_seam",
    "midpoint_seam",
    "parse_crop_region",
    "seam_policy",
]
