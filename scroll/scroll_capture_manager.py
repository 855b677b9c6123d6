"""Runs capture sessions on a worker thread and reports progress through Qt signals."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping, Optional

from PySide6.QtCore import QObject, QThread, Signal, Slot

from logic import ScreenGrabber, save_image
from video_encoding import ScreenRecorder, extract_frames

from .desktop import KeyboardSource, WindowBoundsSource, default_keyboard, default_window_bounds_source
from .errors import CaptureCancelled
from .frame_source import FrameAcquirer, ScreenSource, ScrollDriver
from .image_stitcher import seam_policy
from .region import RegionResolver
from .scroll_capture import ScrollCapture
from .session import (
    CaptureControl,
    CaptureRequest,
    CaptureStatus,
    SessionLog,
    StatusCell,
    StatusKind,
)
from .video_scroll_capture import VideoScrollCapture


class _CaptureThread(QThread):
    """Background thread that runs one capture job."""

    result_ready = Signal(str)
    capture_canceled = Signal(str)
    error_occurred = Signal(str)

    def __init__(self, job: Callable[[], Path], parent=None) -> None:
        super().__init__(parent)
        self._job = job

    def run(self) -> None:
        try:
            path = self._job()
        except CaptureCancelled as exc:
            self.capture_canceled.emit(str(exc) or "Capture cancelled")
            return
        except Exception as exc:  # noqa: BLE001
            logging.exception("Scroll capture failed: %s", exc)
            self.error_occurred.emit(str(exc))
            return
        self.result_ready.emit(str(path))


class ScrollCaptureManager(QObject):
    """Coordinates one capture at a time: worker thread, stop flags, log and status."""

    capture_started = Signal(str)  # mode
    status_changed = Signal(str, str)  # kind, message
    log_message = Signal(str)
    capture_completed = Signal(str)  # image path
    capture_canceled = Signal(str)
    error_occurred = Signal(str)
    finished = Signal()

    def __init__(
        self,
        screen: Optional[ScreenSource] = None,
        keyboard: Optional[KeyboardSource] = None,
        window_bounds: Optional[WindowBoundsSource] = None,
        presets: Optional[Mapping[str, str]] = None,
        recorder_factory=None,
        extractor=None,
        sleep: Optional[Callable[[float], None]] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self._screen = screen
        self._keyboard = keyboard
        self._window_bounds = window_bounds
        self._presets = dict(presets or {})
        self._recorder_factory = recorder_factory
        self._extractor = extractor
        self._sleep = sleep
        self.control = CaptureControl()
        self.log = SessionLog()
        self.status = StatusCell()
        self.log.subscribe(self.log_message.emit)
        self.status.subscribe(self._on_status)
        self.capture_thread: Optional[_CaptureThread] = None

    # ---- public API ---------------------------------------------------
    def is_running(self) -> bool:
        return self.capture_thread is not None and self.capture_thread.isRunning()

    def start_capture(self, request: CaptureRequest) -> bool:
        if self.is_running():
            return False
        seam = seam_policy(request.seam)
        self.control = request.session.control
        self.control.reset()
        self.log.clear()
        self.status.running("Initializing capture...")

        thread = _CaptureThread(lambda: self._run_job(request, seam))
        thread.result_ready.connect(self._on_result)
        thread.capture_canceled.connect(self._on_canceled)
        thread.error_occurred.connect(self._on_error)
        thread.finished.connect(self._on_thread_finished)
        self.capture_thread = thread
        self.capture_started.emit(request.mode)
        thread.start()
        return True

    def stop_capture(self) -> None:
        self.control.cancel()

    def finish_early(self) -> None:
        self.control.finish_early()

    def wait(self, msecs: int = -1) -> bool:
        thread = self.capture_thread
        if thread is None:
            return True
        return thread.wait() if msecs < 0 else thread.wait(msecs)

    # ---- worker side --------------------------------------------------
    def _run_job(self, request: CaptureRequest, seam) -> Path:
        session = request.session
        resolver = RegionResolver(
            presets=self._presets,
            window_bounds=self._window_bounds or default_window_bounds_source(),
            log=self.log,
        )
        driver_kwargs = {"sleep": self._sleep} if self._sleep else {}
        driver = ScrollDriver(self._keyboard or default_keyboard(), **driver_kwargs)
        run_kwargs = dict(log=self.log, status=self.status, seam=seam, **driver_kwargs)

        if request.video is not None:
            capture = VideoScrollCapture(
                session,
                request.video,
                resolver,
                driver,
                self._recorder_factory or _default_recorder,
                self._extractor or extract_frames,
                **run_kwargs,
            )
            self.log("Starting video mode...")
            image = capture.run(request.selection)
        else:
            # mss handles belong to the thread that opened them: one grabber per run
            grabber = None if self._screen is not None else ScreenGrabber()
            screen = self._screen if grabber is None else grabber
            try:
                capture = ScrollCapture(
                    session,
                    resolver,
                    FrameAcquirer(screen, log=self.log),
                    driver,
                    **run_kwargs,
                )
                self.log("Starting screenshot mode...")
                image = capture.run(request.selection)
            finally:
                if grabber is not None:
                    grabber.close()

        self.status.running("Saving image...")
        self.log("Saving image...")
        return save_image(image, request.output_path)

    # ---- slots ----------------------------------------------------------
    def _on_status(self, status: CaptureStatus) -> None:
        self.status_changed.emit(status.kind.value, status.message)

    @Slot(str)
    def _on_result(self, path: str) -> None:
        self.status.set(StatusKind.COMPLETED, f"Successfully saved to: {path}")
        self.capture_completed.emit(path)

    @Slot(str)
    def _on_canceled(self, message: str) -> None:
        self.status.set(StatusKind.CANCELLED, message)
        self.capture_canceled.emit(message)

    @Slot(str)
    def _on_error(self, message: str) -> None:
        self.status.set(StatusKind.ERROR, f"Capture failed: {message}")
        self.error_occurred.emit(message)

    @Slot()
    def _on_thread_finished(self) -> None:
        if self.capture_thread is not None:
            self.capture_thread.wait()
        self.capture_thread = None
        self.finished.emit()


def _default_recorder(region, duration, output_path, framerate):
    return ScreenRecorder(output_path, duration, region=region, framerate=framerate)
