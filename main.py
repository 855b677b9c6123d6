import argparse
import logging
import signal
import sys
from typing import Callable, Optional, Sequence

from PySide6.QtCore import QCoreApplication, QTimer

import logic
from scroll.errors import InvalidRegion
from scroll.image_stitcher import SEAM_POLICIES
from scroll.region import Rectangle, RegionSelection
from scroll.scroll_capture_manager import ScrollCaptureManager
from scroll.session import CaptureRequest, VideoSettings

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def build_parser(cfg: dict) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrollcap",
        description="Capture a scrolling page by pressing a scroll key and stitching the screens.",
    )
    parser.add_argument("-o", "--output", default=cfg["output"], help="output file name (default: %(default)s)")
    parser.add_argument("-f", "--format", default=cfg["format"], help="image format (default: %(default)s)")
    parser.add_argument("-p", "--overlap", type=int, default=cfg["overlap"], help="overlap between screens in pixels")
    parser.add_argument("-d", "--delay", type=int, default=cfg["delay"], help="seconds to wait before the first capture")
    parser.add_argument("-k", "--key", default=cfg["key"], help="scroll key: space, down or pagedown")
    parser.add_argument("--window-only", action="store_true", help="capture only the focused window")
    parser.add_argument("--crop", help="crop region as x,y,width,height")
    parser.add_argument("--crop-preset", help="use a named crop preset")
    parser.add_argument("--select-region", action="store_true", help="pick a region with the mouse, print it and optionally capture it")
    parser.add_argument("--list-presets", action="store_true", help="list the available crop presets")
    parser.add_argument("--save-preset", metavar="NAME:X,Y,W,H", help="store a custom crop preset")
    parser.add_argument("-m", "--max-scrolls", type=int, default=cfg["max_scrolls"], help="stop after this many scrolls")
    parser.add_argument("--scroll-delay", type=int, default=cfg["scroll_delay"], help="milliseconds to wait after each scroll")
    parser.add_argument("--video", action="store_true", help="record a video while scrolling and stitch its frames")
    parser.add_argument("--duration", type=int, default=cfg["video_duration"], help="video recording length in seconds")
    parser.add_argument("--fps", type=int, default=cfg["video_fps"], help="frames extracted per second of video")
    parser.add_argument("--seam", choices=sorted(SEAM_POLICIES), default=cfg["seam"], help="how overlapping bands are joined")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def select_region(
    read_line: Callable[[str], str] = input,
    position: Optional[Callable[[], tuple]] = None,
) -> Rectangle:
    """Two mouse corners confirmed with Enter make up the rectangle."""
    if position is None:
        import pyautogui

        position = pyautogui.position
    read_line("Move the mouse to the TOP-LEFT corner and press Enter...")
    x1, y1 = position()
    read_line("Move the mouse to the BOTTOM-RIGHT corner and press Enter...")
    x2, y2 = position()
    rect = Rectangle(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))
    if not rect.is_valid():
        raise InvalidRegion("Selected region is empty")
    return rect


def build_request(args: argparse.Namespace, cfg: dict, presets: dict) -> CaptureRequest:
    if args.crop_preset and not args.crop and args.crop_preset not in presets:
        raise InvalidRegion(
            f"Unknown preset {args.crop_preset!r}. Available: {', '.join(sorted(presets))}"
        )
    cfg = dict(cfg)
    cfg.update(
        overlap=args.overlap,
        delay=args.delay,
        key=args.key,
        max_scrolls=args.max_scrolls,
        scroll_delay=args.scroll_delay,
    )
    session = logic.session_from_config(cfg)
    video = VideoSettings(duration=args.duration, fps=args.fps) if args.video else None
    return CaptureRequest(
        session=session,
        output_path=logic.build_output_path(args.output, args.format),
        selection=RegionSelection(
            crop=args.crop, preset=args.crop_preset, window_only=args.window_only
        ),
        video=video,
        seam=args.seam,
    )


def run_capture(app: QCoreApplication, manager: ScrollCaptureManager, request: CaptureRequest) -> int:
    outcome = {"code": EXIT_FAILED}
    interrupts = {"count": 0}

    def on_completed(path: str) -> None:
        print(f"Successfully saved to: {path}")
        outcome["code"] = EXIT_OK

    def on_canceled(message: str) -> None:
        print(message, file=sys.stderr)
        outcome["code"] = EXIT_CANCELLED

    def on_error(message: str) -> None:
        print(f"Capture failed: {message}", file=sys.stderr)
        outcome["code"] = EXIT_FAILED

    def on_sigint(signum, frame) -> None:
        interrupts["count"] += 1
        if interrupts["count"] == 1:
            print("\nFinishing early (press Ctrl+C again to cancel)...", file=sys.stderr)
            manager.finish_early()
        else:
            manager.stop_capture()

    manager.log_message.connect(lambda line: print(line))
    manager.capture_completed.connect(on_completed)
    manager.capture_canceled.connect(on_canceled)
    manager.error_occurred.connect(on_error)
    manager.finished.connect(app.quit)

    previous_handler = signal.signal(signal.SIGINT, on_sigint)
    # periodic wake-up so the SIGINT handler runs while Qt owns the loop
    ticker = QTimer()
    ticker.timeout.connect(lambda: None)
    ticker.start(200)
    try:
        if not manager.start_capture(request):
            print("A capture is already running", file=sys.stderr)
            return EXIT_FAILED
        print(f"Mode: {request.mode}, output: {request.output_path}")
        print("Press Ctrl+C to stop scrolling and stitch what was captured.")
        app.exec()
        manager.wait()
    finally:
        ticker.stop()
        signal.signal(signal.SIGINT, previous_handler)
    return outcome["code"]


def main(argv: Optional[Sequence[str]] = None) -> int:
    cfg = logic.load_config()
    parser = build_parser(cfg)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.list_presets:
            for name, value in sorted(logic.all_presets().items()):
                print(f"  {name:<15} {value}")
            return EXIT_OK
        if args.save_preset:
            name, value = logic.save_preset(args.save_preset)
            print(f"Saved preset '{name}': {value}")
            return EXIT_OK
        if args.select_region:
            rect = select_region()
            print(f"Selected region: {rect.width}x{rect.height} at ({rect.x}, {rect.y})")
            print(f"Use: --crop {rect}")
            answer = input("Capture this region now? (y/N): ")
            if answer.strip().lower() not in ("y", "yes"):
                return EXIT_OK
            args.crop = str(rect)
        request = build_request(args, cfg, logic.all_presets())
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName(logic.APP_NAME)
    manager = ScrollCaptureManager(presets=logic.all_presets())
    return run_capture(app, manager, request)


if __name__ == "__main__":
    sys.exit(main())
