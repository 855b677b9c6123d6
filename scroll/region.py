"""Crop rectangle parsing and capture region resolution."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol

import numpy as np

from .errors import InvalidRegion, RegionOutOfBounds

logger = logging.getLogger(__name__)

_FIELD_SEPARATORS = re.compile(r"[,: ]")
_INTEGER = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class Rectangle:
    """Screen rectangle in physical pixels."""

    x: int
    y: int
    width: int
    height: int

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def __str__(self) -> str:
        return f"{self.x},{self.y},{self.width},{self.height}"


def parse_crop_region(text: Optional[str]) -> Optional[Rectangle]:
    """Parse ``"x,y,width,height"`` (``,`` ``:`` or space separated).

    Non-numeric fields are skipped. Returns ``None`` unless exactly four
    integers remain and both sizes are positive.
    """
    if not text:
        return None
    values = [
        int(part)
        for part in (piece.strip() for piece in _FIELD_SEPARATORS.split(text))
        if _INTEGER.fullmatch(part)
    ]
    if len(values) != 4:
        return None
    rect = Rectangle(*values)
    return rect if rect.is_valid() else None


def require_crop_region(text: str) -> Rectangle:
    rect = parse_crop_region(text)
    if rect is None:
        raise InvalidRegion(
            f"Invalid crop region format: {text!r}. "
            "Use: x,y,width,height (e.g. '100,50,1920,1080')"
        )
    return rect


def crop_frame(frame: np.ndarray, rect: Rectangle) -> np.ndarray:
    """Return the part of ``frame`` covered by ``rect``.

    Negative offsets are clamped to the frame origin; the clamped rectangle
    must fit entirely, otherwise :class:`RegionOutOfBounds` is raised.
    """
    height, width = frame.shape[:2]
    x = max(rect.x, 0)
    y = max(rect.y, 0)
    w = max(rect.width, 0)
    h = max(rect.height, 0)
    if w == 0 or h == 0 or x + w > width or y + h > height:
        raise RegionOutOfBounds(
            f"crop {x},{y},{w},{h} does not fit into {width}x{height}"
        )
    return frame[y : y + h, x : x + w].copy()


@dataclass(frozen=True)
class RegionSelection:
    """What the user asked to capture; at most one source is used."""

    crop: Optional[str] = None
    preset: Optional[str] = None
    window_only: bool = False


class WindowBounds(Protocol):
    def focused_window_bounds(self) -> Optional[Rectangle]: ...


class RegionResolver:
    """Turns a :class:`RegionSelection` into a crop rectangle or ``None``.

    ``None`` means the whole primary display is captured. Precedence is
    explicit crop string, then preset, then the focused window.
    """

    def __init__(
        self,
        presets: Optional[Mapping[str, str]] = None,
        window_bounds: Optional[WindowBounds] = None,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._presets = dict(presets or {})
        self._window_bounds = window_bounds
        self._log = log or logger.info

    def resolve(self, selection: RegionSelection) -> Optional[Rectangle]:
        if selection.crop:
            rect = parse_crop_region(selection.crop)
            if rect is None:
                self._log(
                    f"Invalid crop format {selection.crop!r}, capturing full screen. "
                    "Use format: 'x,y,width,height' (e.g. '100,50,1920,1080')"
                )
                return None
            self._log(f"Manual crop: {rect.width}x{rect.height} at ({rect.x}, {rect.y})")
            return rect

        if selection.preset:
            value = self._presets.get(selection.preset)
            rect = parse_crop_region(value)
            if rect is None:
                self._log(
                    f"Preset {selection.preset!r} is missing or invalid, capturing full screen"
                )
                return None
            self._log(f"Using preset '{selection.preset}': {rect}")
            return rect

        if selection.window_only:
            rect = self._focused_window()
            if rect is None:
                self._log("Could not detect focused window, capturing full screen")
                return None
            self._log(f"Focused window: {rect.width}x{rect.height} at ({rect.x}, {rect.y})")
            return rect

        return None

    def _focused_window(self) -> Optional[Rectangle]:
        if self._window_bounds is None:
            return None
        try:
            rect = self._window_bounds.focused_window_bounds()
        except Exception as exc:
            logger.debug("window bounds lookup failed: %s", exc)
            return None
        if rect is None or not rect.is_valid():
            return None
        return rect
