"""Video-mode scroll capture: record while scrolling, then pick and stitch frames."""

from __future__ import annotations

import shutil
import sys
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol

import numpy as np
from PIL import Image

from .errors import CaptureCancelled, NoFramesProduced
from .frame_compare import FrameComparator
from .frame_source import ScrollDriver
from .image_stitcher import SeamPolicy
from .region import Rectangle, RegionResolver, RegionSelection
from .scroll_capture import CaptureState, _CaptureRun
from .session import CaptureSession, SessionLog, StatusCell, VideoSettings


class Recorder(Protocol):
    def start(self) -> None: ...
    def stop(self) -> int: ...


# (region, duration_s, output_path, framerate) -> Recorder
RecorderFactory = Callable[[Optional[Rectangle], int, Path, int], Recorder]
# (video_path, frames_dir, fps) -> ordered frame files
FrameExtractor = Callable[[Path, Path, int], List[Path]]


def load_frame(path: Path) -> np.ndarray:
    with Image.open(path) as img:
        return np.asarray(img.convert("RGBA")).copy()


def select_unique_frames(
    frames: Iterable[np.ndarray],
    overlap: int,
    comparator: FrameComparator,
    log: Callable[[str], None],
) -> List[np.ndarray]:
    """Drop every frame whose top band matches the bottom band of the last kept frame."""
    kept: List[np.ndarray] = []
    for idx, frame in enumerate(frames):
        if not kept:
            log(f"  Frame {idx + 1} (first frame)")
            kept.append(frame)
            continue
        result = comparator.similar(kept[-1], frame, overlap)
        log(f"  Frame {idx + 1} - diff: {result.difference:.1f}%")
        if not result.similar:
            kept.append(frame)
    return kept


class VideoScrollCapture(_CaptureRun):
    WARMUP_SECONDS = 2
    SCROLL_INTERVAL_MS = 500

    def __init__(
        self,
        session: CaptureSession,
        video: VideoSettings,
        resolver: RegionResolver,
        driver: ScrollDriver,
        recorder_factory: RecorderFactory,
        extractor: FrameExtractor,
        *,
        frame_loader: Callable[[Path], np.ndarray] = load_frame,
        log: Optional[SessionLog] = None,
        status: Optional[StatusCell] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        seam: Optional[SeamPolicy] = None,
        workdir: Optional[Path] = None,
    ) -> None:
        super().__init__(session, resolver, log, status, sleep, seam)
        self.video = video
        self.driver = driver
        self.recorder_factory = recorder_factory
        self.extractor = extractor
        self.frame_loader = frame_loader
        self.clock = clock
        self.workdir = workdir
        self.dedup = FrameComparator(session.dedup_tolerance)

    def _run(self, selection: RegionSelection) -> np.ndarray:
        region = self._prepare(selection)
        workdir = Path(self.workdir or tempfile.mkdtemp(prefix="scrollcap_"))
        try:
            video_path = self._record(region, workdir)
            return self._stitch_video(video_path, workdir / "frames")
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _record(self, region: Optional[Rectangle], workdir: Path) -> Path:
        control = self.session.control
        suffix = ".mov" if sys.platform == "darwin" else ".mp4"
        video_path = workdir / f"scroll_capture_video{suffix}"

        self._enter(CaptureState.CAPTURING)
        self.status.running("Recording video...")
        self.log(f"Video will be recorded for {self.video.duration} seconds")
        recorder = self.recorder_factory(region, self.video.duration, video_path, self.video.record_fps)
        recorder.start()
        try:
            self.sleep(self.WARMUP_SECONDS)
            self.log("Recording started, performing auto-scroll...")
            end_time = self.clock() + max(0, self.video.duration - self.WARMUP_SECONDS)
            while self.clock() < end_time:
                if control.cancelled or control.finish_requested:
                    self.log("Stopped by user")
                    break
                self._enter(CaptureState.SCROLLING)
                self.driver.scroll(self.session.scroll_key)
                self._enter(CaptureState.SETTLING)
                self.sleep(self.SCROLL_INTERVAL_MS / 1000.0)
        finally:
            self.log("Stopping recording...")
            recorder.stop()

        if control.cancelled:
            raise CaptureCancelled("Recording cancelled by user")
        self.log(f"Video recorded to {video_path}")
        return video_path

    def _stitch_video(self, video_path: Path, frames_dir: Path) -> np.ndarray:
        self._enter(CaptureState.COMPARING)
        self.status.running("Extracting frames...")
        self.log("Extracting frames from video...")
        paths = self.extractor(video_path, frames_dir, self.video.fps)
        if not paths:
            raise NoFramesProduced("No frames extracted from the recorded video")
        self.log(f"  Found {len(paths)} frames")

        frames = (self.frame_loader(p) for p in paths)
        kept = select_unique_frames(frames, self.session.overlap, self.dedup, self.log)
        self.log(f"Selected {len(kept)} unique frames for stitching")
        return self._stitch(kept)
