"""Thin glue between the capture loop and the desktop: grabbing and scrolling."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

import numpy as np

from .errors import RegionOutOfBounds
from .region import Rectangle, crop_frame
from .session import ScrollKey

logger = logging.getLogger(__name__)


class ScreenSource(Protocol):
    def capture_primary_display(self) -> np.ndarray: ...


class KeyPresser(Protocol):
    def press(self, key_name: str) -> None: ...


class FrameAcquirer:
    """Grabs the primary display and crops it to the resolved region."""

    def __init__(self, screen: ScreenSource, log: Optional[Callable[[str], None]] = None) -> None:
        self._screen = screen
        self._log = log or logger.warning

    def capture(self, region: Optional[Rectangle] = None) -> np.ndarray:
        frame = self._screen.capture_primary_display()
        if region is None:
            return frame
        try:
            return crop_frame(frame, region)
        except RegionOutOfBounds as exc:
            self._log(f"Crop region out of bounds, using full screen ({exc})")
            return frame


class ScrollDriver:
    """Presses one scroll key and waits for the page to repaint."""

    SETTLE_MS = 500

    def __init__(
        self,
        keyboard: KeyPresser,
        settle_ms: int = SETTLE_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._keyboard = keyboard
        self.settle_ms = max(0, int(settle_ms))
        self._sleep = sleep

    def scroll(self, key=ScrollKey.SPACE) -> None:
        self._keyboard.press(ScrollKey.parse(key).value)
        self._sleep(self.settle_ms / 1000.0)
