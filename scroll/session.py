"""Per-run capture settings plus the state shared with observers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from .region import RegionSelection

logger = logging.getLogger(__name__)


class ScrollKey(str, Enum):
    SPACE = "space"
    DOWN = "down"
    PAGE_DOWN = "pagedown"

    @classmethod
    def parse(cls, value) -> "ScrollKey":
        """Unknown symbols fall back to space."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for key in cls:
            if key.value == text:
                return key
        return cls.SPACE


@dataclass(frozen=True)
class VideoSettings:
    duration: int = 20  # seconds of recording
    fps: int = 2  # frames extracted per second of video
    record_fps: int = 30

    def __post_init__(self) -> None:
        if self.duration <= 0:
            raise ValueError("video duration must be positive")
        if self.fps <= 0 or self.record_fps <= 0:
            raise ValueError("frame rates must be positive")


class CaptureControl:
    """Cooperative stop flags shared between the worker and its caller."""

    def __init__(self) -> None:
        self._cancel = threading.Event()
        self._finish = threading.Event()

    def cancel(self) -> None:
        self._cancel.set()

    def finish_early(self) -> None:
        self._finish.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def finish_requested(self) -> bool:
        return self._finish.is_set()

    def reset(self) -> None:
        self._cancel.clear()
        self._finish.clear()


@dataclass
class CaptureSession:
    overlap: int = 125
    scroll_key: ScrollKey = ScrollKey.SPACE
    scroll_delay_ms: int = 200
    max_scrolls: Optional[int] = None
    start_delay: int = 3
    seam_tolerance: float = 0.05
    dedup_tolerance: float = 0.0
    control: CaptureControl = field(default_factory=CaptureControl)

    def __post_init__(self) -> None:
        self.scroll_key = ScrollKey.parse(self.scroll_key)
        if self.overlap < 0:
            raise ValueError("overlap must not be negative")
        if self.max_scrolls is not None and self.max_scrolls < 0:
            raise ValueError("max_scrolls must not be negative")
        if self.scroll_delay_ms < 0:
            raise ValueError("scroll delay must not be negative")
        if self.start_delay < 0:
            raise ValueError("start delay must not be negative")


@dataclass
class CaptureRequest:
    """Everything the manager needs to run one capture and save it."""

    session: CaptureSession
    output_path: Path
    selection: RegionSelection = field(default_factory=RegionSelection)
    video: Optional[VideoSettings] = None
    seam: str = "midpoint"

    @property
    def mode(self) -> str:
        return "video" if self.video is not None else "screenshot"


class StatusKind(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CaptureStatus:
    kind: StatusKind = StatusKind.IDLE
    message: str = ""


class StatusCell:
    """Lock-guarded coarse status, read by UIs for display only."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status = CaptureStatus()
        self._listeners: List[Callable[[CaptureStatus], None]] = []

    def get(self) -> CaptureStatus:
        with self._lock:
            return self._status

    def set(self, kind: StatusKind, message: str = "") -> None:
        status = CaptureStatus(kind, message)
        with self._lock:
            self._status = status
            listeners = list(self._listeners)
        for cb in listeners:
            cb(status)

    def running(self, message: str) -> None:
        self.set(StatusKind.RUNNING, message)

    def subscribe(self, callback: Callable[[CaptureStatus], None]) -> None:
        with self._lock:
            self._listeners.append(callback)


class SessionLog:
    """Timestamped log lines for the status display.

    Every line is also forwarded to :mod:`logging`.
    """

    TIME_FORMAT = "%H:%M:%S.%f"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lines: List[str] = []
        self._listeners: List[Callable[[str], None]] = []

    def __call__(self, message: str) -> None:
        self.log(message)

    def log(self, message: str, level: int = logging.INFO) -> str:
        entry = f"[{datetime.now().strftime(self.TIME_FORMAT)}] {message}"
        logger.log(level, message)
        with self._lock:
            self._lines.append(entry)
            listeners = list(self._listeners)
        for cb in listeners:
            cb(entry)
        return entry

    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def subscribe(self, callback: Callable[[str], None]) -> None:
        with self._lock:
            self._listeners.append(callback)
