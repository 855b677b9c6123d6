"""Shared fakes and synthetic pages for the capture tests."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import numpy as np

from scroll.region import Rectangle


def make_page(height: int = 500, width: int = 100, seed: int = 7) -> np.ndarray:
    """Tall RGBA page of random noise, so no two rows are alike."""
    rng = np.random.default_rng(seed)
    page = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    page[..., 3] = 255
    return page


def viewport(page: np.ndarray, offset: int, height: int) -> np.ndarray:
    offset = min(offset, page.shape[0] - height)
    return page[offset : offset + height].copy()


def scrolled_frames(page: np.ndarray, height: int, step: int, count: int) -> List[np.ndarray]:
    """What a ``height`` tall window shows after 0, 1, ... ``count - 1`` scrolls of ``step``."""
    return [viewport(page, i * step, height) for i in range(count)]


def solid(height: int, width: int, rgba: Sequence[int]) -> np.ndarray:
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    frame[...] = rgba
    return frame


class FakeScreen:
    """Hands out the given frames in order and then keeps repeating the last one."""

    def __init__(self, frames: Sequence[np.ndarray], error: Optional[Exception] = None) -> None:
        self.frames = list(frames)
        self.error = error
        self.calls = 0

    def capture_primary_display(self) -> np.ndarray:
        if self.error is not None:
            raise self.error
        idx = min(self.calls, len(self.frames) - 1)
        self.calls += 1
        return self.frames[idx].copy()


class FakeKeyboard:
    def __init__(self, on_press: Optional[Callable[[int], None]] = None) -> None:
        self.pressed: List[str] = []
        self.on_press = on_press

    def press(self, key_name: str) -> None:
        self.pressed.append(key_name)
        if self.on_press is not None:
            self.on_press(len(self.pressed))


class FakeWindowBounds:
    def __init__(self, rect: Optional[Rectangle] = None, error: Optional[Exception] = None) -> None:
        self.rect = rect
        self.error = error

    def focused_window_bounds(self) -> Optional[Rectangle]:
        if self.error is not None:
            raise self.error
        return self.rect


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeRecorder:
    def __init__(self, region, duration, output_path, framerate) -> None:
        self.region = region
        self.duration = duration
        self.output_path = output_path
        self.framerate = framerate
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> int:
        self.stopped = True
        return 0
