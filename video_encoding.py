from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from scroll.errors import ExternalToolFailed
from scroll.region import Rectangle


class VideoEncodingError(ExternalToolFailed):
    """Base error for ffmpeg recording and extraction failures."""


class FFmpegUnavailableError(VideoEncodingError):
    """Raised when ffmpeg is not installed or cannot be executed."""


def _ffmpeg_name() -> str:
    return "ffmpeg.exe" if sys.platform.startswith("win") else "ffmpeg"


def _bundled_ffmpeg_candidates() -> list[Path]:
    name = _ffmpeg_name()
    candidates: list[Path] = []
    meipass = getattr(sys, "_MEIPASS", None)
    if meipass:
        base = Path(meipass)
        candidates.extend([base / name, base / "ffmpeg" / name, base / "bin" / name])

    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        candidates.extend([exe_dir / name, exe_dir / "ffmpeg" / name, exe_dir / "bin" / name])

    module_dir = Path(__file__).resolve().parent
    candidates.extend([module_dir / name, module_dir / "ffmpeg" / name, module_dir / "bin" / name])
    return candidates


def find_ffmpeg_binary() -> Optional[str]:
    env_override = os.environ.get("SCROLLCAP_FFMPEG_PATH", "").strip()
    if env_override:
        candidate = Path(env_override)
        if candidate.is_file():
            return str(candidate)

    seen: set[str] = set()
    for candidate in _bundled_ffmpeg_candidates():
        try:
            resolved = str(candidate.resolve())
        except Exception:
            resolved = str(candidate)
        if resolved in seen:
            continue
        seen.add(resolved)
        if candidate.is_file():
            return str(candidate)

    return shutil.which("ffmpeg")


def ensure_ffmpeg_available(ffmpeg_bin: Optional[str] = None) -> str:
    binary = ffmpeg_bin or find_ffmpeg_binary()
    if not binary:
        raise FFmpegUnavailableError("ffmpeg was not found. Install ffmpeg and add it to PATH.")
    try:
        subprocess.run(
            [binary, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=5,
        )
    except Exception as exc:
        raise FFmpegUnavailableError(
            "ffmpeg was found but could not be started. Check the installation."
        ) from exc
    return binary


def screen_input_args(
    region: Optional[Rectangle], framerate: int = 30, platform: Optional[str] = None
) -> list[str]:
    """ffmpeg input arguments that grab the primary display (optionally cropped)."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        args = ["-f", "gdigrab", "-framerate", str(framerate)]
        if region is not None:
            args += [
                "-offset_x", str(region.x),
                "-offset_y", str(region.y),
                "-video_size", f"{region.width}x{region.height}",
            ]
        return args + ["-i", "desktop"]

    if platform == "darwin":
        args = ["-f", "avfoundation", "-framerate", str(framerate), "-i", "1:none"]
        if region is not None:
            args += ["-vf", f"crop={region.width}:{region.height}:{region.x}:{region.y}"]
        return args

    display = os.environ.get("DISPLAY", ":0.0")
    args = ["-f", "x11grab", "-framerate", str(framerate)]
    if region is not None:
        args += ["-video_size", f"{region.width}x{region.height}"]
        display = f"{display}+{region.x},{region.y}"
    return args + ["-i", display]


class ScreenRecorder:
    """Records the screen to a file with a single ffmpeg process.

    ``stop()`` asks ffmpeg to finish by writing ``q`` to its stdin so the
    container gets finalised; the process is only terminated if it ignores
    that request for ``stop_timeout`` seconds.
    """

    def __init__(
        self,
        output_path: Path,
        duration: int,
        region: Optional[Rectangle] = None,
        framerate: int = 30,
        ffmpeg_bin: Optional[str] = None,
        stop_timeout: float = 30.0,
    ):
        self.output_path = Path(output_path)
        self.duration = int(duration)
        self.region = region
        self.framerate = int(framerate)
        self.ffmpeg_bin = ensure_ffmpeg_available(ffmpeg_bin)
        self.stop_timeout = float(stop_timeout)
        self.returncode: Optional[int] = None
        self._proc: Optional[subprocess.Popen] = None

    def command(self) -> list[str]:
        return [
            self.ffmpeg_bin,
            "-hide_banner",
            "-loglevel",
            "error",
            *screen_input_args(self.region, self.framerate),
            "-t",
            str(self.duration),
            "-y",
            str(self.output_path),
        ]

    def start(self) -> None:
        if self._proc is not None:
            return
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._proc = subprocess.Popen(
                self.command(),
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise VideoEncodingError(f"Failed to start ffmpeg: {exc}") from exc

    def stop(self) -> int:
        proc = self._proc
        if proc is None:
            raise VideoEncodingError("The ffmpeg recorder was not started.")
        self._proc = None
        if proc.stdin is not None:
            try:
                proc.stdin.write(b"q")
                proc.stdin.flush()
            except (BrokenPipeError, OSError):
                pass  # ffmpeg already finished on its own
            try:
                proc.stdin.close()
            except OSError:
                pass
        try:
            rc = proc.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            proc.terminate()
            rc = proc.wait(timeout=5)
        self.returncode = rc
        if rc != 0 and not self.output_path.exists():
            raise VideoEncodingError(f"ffmpeg recording failed with exit code {rc}.")
        return rc


def extract_frames(
    video_path: Path,
    frames_dir: Path,
    fps: int,
    ffmpeg_bin: Optional[str] = None,
) -> List[Path]:
    """Dump ``fps`` frames per second of ``video_path`` as numbered PNG files."""
    video_path = Path(video_path)
    frames_dir = Path(frames_dir)
    if not video_path.exists():
        raise VideoEncodingError(f"Recorded video not found: {video_path}")
    binary = ensure_ffmpeg_available(ffmpeg_bin)
    frames_dir.mkdir(parents=True, exist_ok=True)
    _run_ffmpeg(
        [
            binary,
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            str(video_path),
            "-vf",
            f"fps={max(1, int(fps))}",
            str(frames_dir / "frame_%04d.png"),
        ],
        "Frame extraction failed.",
    )
    return sorted(frames_dir.glob("*.png"))


def _run_ffmpeg(cmd: list[str], context_message: str) -> None:
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            check=False,
            timeout=600,
        )
    except Exception as exc:
        raise VideoEncodingError(context_message) from exc

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        tail = stderr[-600:] if stderr else ""
        raise VideoEncodingError(
            context_message + (f"\n{tail}" if tail else "")
        )
