import json
import os
from pathlib import Path
from typing import Dict, Optional

import cv2
import mss
import numpy as np
from PIL import Image

from scroll.errors import AcquisitionFailed, InvalidRegion
from scroll.region import require_crop_region
from scroll.session import CaptureSession

APP_NAME = "ScrollCap"
APP_VERSION = "1.0.0"
CONFIG_PATH = Path(os.environ.get("SCROLLCAP_CONFIG_PATH", Path.home() / ".scrollcap_config.json"))
PRESETS_PATH = Path(os.environ.get("SCROLLCAP_PRESETS_PATH", Path.home() / ".capture-presets.json"))

DEFAULT_CONFIG = {
    "output": "00",
    "format": "png",
    "overlap": 125,
    "delay": 3,
    "scroll_delay": 200,
    "key": "space",
    "max_scrolls": None,
    "seam_tolerance": 0.05,
    "dedup_tolerance": 0.0,
    "seam": "midpoint",
    "video_duration": 20,
    "video_fps": 2,
}

# slider ranges of the settings UI
OVERLAP_RANGE = (50, 500)
DELAY_RANGE = (0, 10)
SCROLL_DELAY_RANGE = (100, 1000)

BUILTIN_PRESETS = {
    "1080p": "0,0,1920,1080",
    "720p": "0,0,1280,720",
    "4k": "0,0,3840,2160",
    "naver-series": "607,23,690,1007",
    "vm-small": "100,100,1024,768",
    "vm-medium": "100,100,1280,800",
    "vm-large": "100,100,1920,1080",
}

SUPPORTED_FORMATS = ("png", "jpg", "jpeg", "gif", "bmp", "tiff", "tif", "webp")
_OPAQUE_FORMATS = {"jpg", "jpeg", "bmp"}


def load_config(path: Optional[Path] = None) -> dict:
    path = path or CONFIG_PATH
    cfg = DEFAULT_CONFIG.copy()
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                cfg.update({k: v for k, v in data.items() if k in DEFAULT_CONFIG})
        except Exception:
            pass
    cfg["overlap"] = _clamped_int(cfg, "overlap", *OVERLAP_RANGE)
    cfg["delay"] = _clamped_int(cfg, "delay", *DELAY_RANGE)
    cfg["scroll_delay"] = _clamped_int(cfg, "scroll_delay", *SCROLL_DELAY_RANGE)
    return cfg


def save_config(cfg: dict, path: Optional[Path] = None) -> None:
    path = path or CONFIG_PATH
    data = DEFAULT_CONFIG.copy()
    data.update({k: v for k, v in cfg.items() if k in DEFAULT_CONFIG})
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _clamped_int(cfg: dict, key: str, lo: int, hi: int) -> int:
    try:
        value = int(cfg.get(key, DEFAULT_CONFIG[key]))
    except Exception:
        value = int(DEFAULT_CONFIG[key])
    return max(lo, min(hi, value))


def session_from_config(cfg: dict) -> CaptureSession:
    max_scrolls = cfg.get("max_scrolls")
    return CaptureSession(
        overlap=int(cfg["overlap"]),
        scroll_key=cfg.get("key", "space"),
        scroll_delay_ms=int(cfg["scroll_delay"]),
        max_scrolls=int(max_scrolls) if max_scrolls not in (None, "") else None,
        start_delay=int(cfg["delay"]),
        seam_tolerance=float(cfg.get("seam_tolerance", 0.05)),
        dedup_tolerance=float(cfg.get("dedup_tolerance", 0.0)),
    )


# ---- presets ----------------------------------------------------------


def load_presets(path: Optional[Path] = None) -> Dict[str, str]:
    path = path or PRESETS_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): str(v) for k, v in data.items()}


def save_presets(presets: Dict[str, str], path: Optional[Path] = None) -> None:
    path = path or PRESETS_PATH
    path.write_text(json.dumps(presets, ensure_ascii=False, indent=2), encoding="utf-8")


def all_presets(path: Optional[Path] = None) -> Dict[str, str]:
    """Built-in presets overlaid with the user's custom ones."""
    merged = dict(BUILTIN_PRESETS)
    merged.update(load_presets(path))
    return merged


def save_preset(entry: str, path: Optional[Path] = None) -> tuple:
    """Store ``"name:x,y,width,height"`` as a custom preset."""
    name, sep, value = entry.partition(":")
    name, value = name.strip(), value.strip()
    if not sep or not name:
        raise InvalidRegion(
            "Invalid preset format. Use: name:x,y,width,height "
            "(e.g. mypreset:100,50,1920,1080)"
        )
    require_crop_region(value)
    presets = load_presets(path)
    presets[name] = value
    save_presets(presets, path)
    return name, value


# ---- output -----------------------------------------------------------


def validate_format(fmt: str) -> str:
    normalized = (fmt or "").strip().lower().lstrip(".")
    if normalized not in SUPPORTED_FORMATS:
        raise ValueError(
            f"Unsupported format {fmt!r}. Supported formats: {', '.join(SUPPORTED_FORMATS)}"
        )
    return normalized


def build_output_path(output: str, fmt: str) -> Path:
    fmt = validate_format(fmt)
    path = Path(output).expanduser()
    if path.suffix.lower().lstrip(".") in SUPPORTED_FORMATS:
        return path
    return path.with_name(f"{path.name}.{fmt}")


def save_image(frame: np.ndarray, output_path: Path) -> Path:
    output_path = Path(output_path)
    img = Image.fromarray(frame, "RGBA")
    if output_path.suffix.lower().lstrip(".") in _OPAQUE_FORMATS:
        img = img.convert("RGB")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path)
    return output_path


class ScreenGrabber:
    """Primary display grabs through MSS, returned as RGBA arrays."""

    def __init__(self):
        self._sct = None

    def _backend(self):
        if self._sct is None:
            try:
                self._sct = mss.mss()
            except Exception as exc:
                raise AcquisitionFailed(f"Failed to open the screen: {exc}") from exc
        return self._sct

    def capture_primary_display(self) -> np.ndarray:
        sct = self._backend()
        try:
            monitors = sct.monitors
            # monitors[0] is the virtual screen spanning every display
            mon = monitors[1] if len(monitors) > 1 else monitors[0]
            shot = sct.grab(mon)
        except Exception as exc:
            raise AcquisitionFailed(f"Failed to capture screen: {exc}") from exc
        frame = np.array(shot)
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)

    def close(self) -> None:
        if self._sct is not None:
            try:
                self._sct.close()
            except Exception:
                pass
        self._sct = None
