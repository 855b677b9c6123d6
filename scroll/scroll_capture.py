"""Screenshot-mode scroll capture: press a key, grab, compare, repeat."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .errors import CaptureCancelled, StitchError
from .frame_compare import FrameComparator
from .frame_source import FrameAcquirer, ScrollDriver
from .image_stitcher import ImageStitcher, SeamPolicy
from .region import RegionResolver, RegionSelection
from .session import CaptureControl, CaptureSession, SessionLog, StatusCell

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    INIT = "init"
    RESOLVING = "resolving"
    AWAITING_DELAY = "awaiting_delay"
    CAPTURING = "capturing"
    SCROLLING = "scrolling"
    SETTLING = "settling"
    COMPARING = "comparing"
    STITCHING = "stitching"
    DONE = "done"
    CANCELLED = "cancelled"
    ERRORED = "errored"


def countdown(
    seconds: int,
    control: CaptureControl,
    status: StatusCell,
    log: Callable[[str], None],
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Wait ``seconds`` before capturing, checking for cancellation every second."""
    if seconds <= 0:
        return
    log(f"Starting capture in {seconds} seconds...")
    for remaining in range(seconds, 0, -1):
        status.running(f"Starting in {remaining} second{'s' if remaining > 1 else ''}...")
        if control.cancelled:
            raise CaptureCancelled("Capture cancelled during countdown")
        sleep(1.0)


class _CaptureRun:
    """State tracking shared by the screenshot and video capture paths."""

    def __init__(
        self,
        session: CaptureSession,
        resolver: RegionResolver,
        log: Optional[SessionLog],
        status: Optional[StatusCell],
        sleep: Callable[[float], None],
        seam: Optional[SeamPolicy],
    ) -> None:
        self.session = session
        self.resolver = resolver
        self.log = log or SessionLog()
        self.status = status or StatusCell()
        self.sleep = sleep
        self.seam = seam
        self.state = CaptureState.INIT

    def _enter(self, state: CaptureState) -> None:
        logger.debug("capture state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, selection: Optional[RegionSelection] = None) -> np.ndarray:
        try:
            result = self._run(selection or RegionSelection())
        except CaptureCancelled:
            self._enter(CaptureState.CANCELLED)
            raise
        except Exception:
            self._enter(CaptureState.ERRORED)
            raise
        self._enter(CaptureState.DONE)
        return result

    def _run(self, selection: RegionSelection) -> np.ndarray:
        raise NotImplementedError

    def _prepare(self, selection: RegionSelection):
        self._enter(CaptureState.RESOLVING)
        region = self.resolver.resolve(selection)
        self._enter(CaptureState.AWAITING_DELAY)
        countdown(self.session.start_delay, self.session.control, self.status, self.log, self.sleep)
        return region

    def _stitch(self, frames: List[np.ndarray]) -> np.ndarray:
        self._enter(CaptureState.STITCHING)
        self.status.running("Stitching images...")
        self.log(f"Stitching {len(frames)} images together...")
        result = ImageStitcher(frames, seam=self.seam).stitch(self.session.overlap)
        self.log(f"Done! Final image size: {result.shape[1]}x{result.shape[0]}")
        return result


class ScrollCapture(_CaptureRun):
    """Screenshot loop that stops once a key press no longer changes the screen."""

    PAUSE_AFTER_FRAME_MS = 300

    def __init__(
        self,
        session: CaptureSession,
        resolver: RegionResolver,
        acquirer: FrameAcquirer,
        driver: ScrollDriver,
        *,
        log: Optional[SessionLog] = None,
        status: Optional[StatusCell] = None,
        sleep: Callable[[float], None] = time.sleep,
        seam: Optional[SeamPolicy] = None,
    ) -> None:
        super().__init__(session, resolver, log, status, sleep, seam)
        self.acquirer = acquirer
        self.driver = driver
        self.seam_check = FrameComparator(session.seam_tolerance)
        self.scroll_count = 0
        self.frames: List[np.ndarray] = []

    def _run(self, selection: RegionSelection) -> np.ndarray:
        session = self.session
        control = session.control
        key = session.scroll_key.value.upper()
        region = self._prepare(selection)

        self.log(
            f"Max scrolls: {session.max_scrolls if session.max_scrolls is not None else 'unlimited'}, "
            f"Scroll delay: {session.scroll_delay_ms}ms, Overlap: {session.overlap}px"
        )
        self._enter(CaptureState.CAPTURING)
        self.status.running("Capturing screenshots...")
        previous = self.acquirer.capture(region)
        self.frames = [previous]
        self.log(f"Captured screen 1 ({previous.shape[1]}x{previous.shape[0]})")
        if session.max_scrolls != 0 and session.overlap >= previous.shape[0]:
            raise StitchError(
                f"Overlap {session.overlap}px must be smaller than the captured "
                f"height {previous.shape[0]}px"
            )

        while True:
            if control.cancelled:
                raise CaptureCancelled("Capture cancelled by user")
            if control.finish_requested:
                self.log("Stopped by user")
                break
            if session.max_scrolls is not None:
                if self.scroll_count >= session.max_scrolls:
                    self.log(f"Reached maximum scroll limit ({session.max_scrolls})")
                    break
                self.log(f"[{self.scroll_count + 1}/{session.max_scrolls}] Pressing {key}...")
            else:
                self.log(f"[{self.scroll_count + 1}] Pressing {key}...")

            self._enter(CaptureState.SCROLLING)
            self.driver.scroll(session.scroll_key)
            self._enter(CaptureState.SETTLING)
            self.sleep(session.scroll_delay_ms / 1000.0)

            self._enter(CaptureState.CAPTURING)
            current = self.acquirer.capture(region)
            index = self.scroll_count + 2

            self._enter(CaptureState.COMPARING)
            seam = self.seam_check.similar(previous, current, session.overlap)
            identical = FrameComparator.identical(previous, current)
            self.log(
                f"Captured screen {index} ({current.shape[1]}x{current.shape[0]}): "
                f"seam match={seam.similar} ({seam.difference:.2f}% different), "
                f"identical={identical}"
            )
            if identical:
                self.log("Reached end of scrollable content (images are completely identical)")
                break

            self.frames.append(current)
            previous = current
            self.scroll_count += 1
            self.status.running(f"Captured {len(self.frames)} screens...")
            self.sleep(self.PAUSE_AFTER_FRAME_MS / 1000.0)

        return self._stitch(list(self.frames))
