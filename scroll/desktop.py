"""Desktop collaborators: focused window bounds and key injection.

One interface per capability; the platform implementation is picked once by
the ``default_*`` factories.
"""

from __future__ import annotations

import subprocess
import sys
from abc import ABC, abstractmethod
from typing import Optional

from .errors import ScrollInputFailed
from .region import Rectangle

try:
    import win32gui
except Exception:  # pragma: no cover - non-Windows environments
    win32gui = None


class WindowBoundsSource(ABC):
    @abstractmethod
    def focused_window_bounds(self) -> Optional[Rectangle]: ...


class NullWindowBounds(WindowBoundsSource):
    """Used where the focused window cannot be queried."""

    def focused_window_bounds(self) -> Optional[Rectangle]:
        return None


class Win32WindowBounds(WindowBoundsSource):
    def focused_window_bounds(self) -> Optional[Rectangle]:
        if not win32gui:
            return None
        hwnd = win32gui.GetForegroundWindow()
        if not hwnd:
            return None
        left, top, right, bottom = win32gui.GetWindowRect(hwnd)
        rect = Rectangle(left, top, right - left, bottom - top)
        return rect if rect.is_valid() else None


_FRONT_WINDOW_SCRIPT = """
tell application "System Events"
    set frontApp to first application process whose frontmost is true
    set frontWindow to front window of frontApp
    set windowPosition to position of frontWindow
    set windowSize to size of frontWindow
    return (item 1 of windowPosition) & "," & (item 2 of windowPosition) & "," & (item 1 of windowSize) & "," & (item 2 of windowSize)
end tell
"""


class AppleScriptWindowBounds(WindowBoundsSource):
    """Asks System Events for the frontmost window (needs Accessibility permission)."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    def focused_window_bounds(self) -> Optional[Rectangle]:
        result = subprocess.run(
            ["osascript", "-e", _FRONT_WINDOW_SCRIPT],
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            return None
        parts = [p.strip() for p in result.stdout.strip().split(",")]
        try:
            values = [int(p) for p in parts if p]
        except ValueError:
            return None
        if len(values) != 4:
            return None
        rect = Rectangle(*values)
        return rect if rect.is_valid() else None


def default_window_bounds_source() -> WindowBoundsSource:
    if sys.platform.startswith("win"):
        return Win32WindowBounds()
    if sys.platform == "darwin":
        return AppleScriptWindowBounds()
    return NullWindowBounds()


class KeyboardSource(ABC):
    @abstractmethod
    def press(self, key_name: str) -> None: ...


class PyAutoGuiKeyboard(KeyboardSource):
    """Sends key presses through pyautogui (imported lazily, it needs a display)."""

    def __init__(self) -> None:
        self._pyautogui = None

    def _backend(self):
        if self._pyautogui is None:
            try:
                import pyautogui
            except Exception as exc:
                raise ScrollInputFailed(f"Keyboard injection is unavailable: {exc}") from exc
            pyautogui.FAILSAFE = False
            self._pyautogui = pyautogui
        return self._pyautogui

    def press(self, key_name: str) -> None:
        backend = self._backend()
        try:
            backend.press(key_name)
        except Exception as exc:
            raise ScrollInputFailed(f"Failed to press {key_name!r}: {exc}") from exc


def default_keyboard() -> KeyboardSource:
    return PyAutoGuiKeyboard()
