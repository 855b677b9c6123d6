from __future__ import annotations

import unittest

import numpy as np

from conftest import FakeClock, FakeKeyboard, FakeScreen, make_page, scrolled_frames
from scroll.errors import AcquisitionFailed, CaptureCancelled, StitchError
from scroll.frame_source import FrameAcquirer, ScrollDriver
from scroll.region import RegionResolver, RegionSelection
from scroll.scroll_capture import CaptureState, ScrollCapture, countdown
from scroll.session import CaptureControl, CaptureSession, SessionLog, StatusCell


class ScrollCaptureTests(unittest.TestCase):
    def setUp(self) -> None:
        self.page = make_page(500, 100)
        # the fourth viewport is clamped to the bottom of the page and repeats the third
        self.frames = scrolled_frames(self.page, 200, 150, 4)
        self.clock = FakeClock()
        self.keyboard = FakeKeyboard()
        self.log = SessionLog()

    def _capture(self, session: CaptureSession, screen=None) -> ScrollCapture:
        return ScrollCapture(
            session,
            RegionResolver(log=self.log),
            FrameAcquirer(screen or FakeScreen(self.frames), log=self.log),
            ScrollDriver(self.keyboard, sleep=self.clock.sleep),
            log=self.log,
            sleep=self.clock.sleep,
        )

    def test_stops_when_screen_stops_changing(self) -> None:
        capture = self._capture(CaptureSession(overlap=50, start_delay=0))
        result = capture.run()

        np.testing.assert_array_equal(result, self.page)
        self.assertEqual(capture.scroll_count, 2)
        self.assertEqual(len(capture.frames), 3)
        self.assertEqual(self.keyboard.pressed, ["space"] * 3)
        self.assertEqual(capture.state, CaptureState.DONE)
        self.assertTrue(any("completely identical" in line for line in self.log.lines()))

    def test_identical_second_capture_does_not_count_a_scroll(self) -> None:
        screen = FakeScreen([self.frames[0]])
        capture = self._capture(CaptureSession(overlap=50, start_delay=0), screen)
        result = capture.run()

        self.assertEqual(capture.scroll_count, 0)
        np.testing.assert_array_equal(result, self.frames[0])

    def test_max_scrolls_zero_uses_first_frame(self) -> None:
        capture = self._capture(CaptureSession(overlap=50, start_delay=0, max_scrolls=0))
        result = capture.run()

        np.testing.assert_array_equal(result, self.frames[0])
        self.assertEqual(self.keyboard.pressed, [])

    def test_max_scrolls_limits_frames(self) -> None:
        capture = self._capture(CaptureSession(overlap=50, start_delay=0, max_scrolls=1))
        result = capture.run()

        self.assertEqual(result.shape, (350, 100, 4))
        self.assertEqual(capture.scroll_count, 1)

    def test_scroll_key_and_delays(self) -> None:
        session = CaptureSession(overlap=50, start_delay=2, scroll_key="pagedown", max_scrolls=1)
        self._capture(session).run()

        self.assertEqual(self.keyboard.pressed, ["pagedown"])
        # countdown, settle after the key press, scroll delay, pause after the accepted frame
        self.assertEqual(self.clock.sleeps, [1.0, 1.0, 0.5, 0.2, 0.3])

    def test_cancel_raises_and_marks_state(self) -> None:
        session = CaptureSession(overlap=50, start_delay=0)
        self.keyboard.on_press = lambda count: session.control.cancel()
        capture = self._capture(session)

        with self.assertRaises(CaptureCancelled):
            capture.run()
        self.assertEqual(capture.state, CaptureState.CANCELLED)
        self.assertEqual(len(self.keyboard.pressed), 1)

    def test_finish_early_stitches_what_was_captured(self) -> None:
        session = CaptureSession(overlap=50, start_delay=0)
        self.keyboard.on_press = lambda count: session.control.finish_early() if count == 1 else None
        capture = self._capture(session)
        result = capture.run()

        self.assertEqual(result.shape, (350, 100, 4))
        self.assertEqual(capture.state, CaptureState.DONE)

    def test_overlap_taller_than_capture_fails_before_scrolling(self) -> None:
        capture = self._capture(CaptureSession(overlap=250, start_delay=0))
        with self.assertRaises(StitchError):
            capture.run()

        self.assertEqual(self.keyboard.pressed, [])
        self.assertEqual(capture.state, CaptureState.ERRORED)

    def test_overlap_is_ignored_without_scrolls(self) -> None:
        capture = self._capture(CaptureSession(overlap=250, start_delay=0, max_scrolls=0))
        np.testing.assert_array_equal(capture.run(), self.frames[0])

    def test_acquisition_failure_is_an_error(self) -> None:
        screen = FakeScreen([], error=AcquisitionFailed("no display"))
        capture = self._capture(CaptureSession(start_delay=0), screen)
        with self.assertRaises(AcquisitionFailed):
            capture.run()
        self.assertEqual(capture.state, CaptureState.ERRORED)

    def test_crop_region_is_applied(self) -> None:
        capture = self._capture(CaptureSession(overlap=50, start_delay=0, max_scrolls=0))
        result = capture.run(RegionSelection(crop="10,0,40,200"))
        np.testing.assert_array_equal(result, self.frames[0][:, 10:50])

    def test_out_of_bounds_crop_uses_full_frame(self) -> None:
        capture = self._capture(CaptureSession(overlap=50, start_delay=0, max_scrolls=0))
        result = capture.run(RegionSelection(crop="0,0,5000,5000"))

        self.assertEqual(result.shape, (200, 100, 4))
        self.assertTrue(any("out of bounds" in line for line in self.log.lines()))


class CountdownTests(unittest.TestCase):
    def test_cancel_during_countdown(self) -> None:
        control = CaptureControl()
        status = StatusCell()
        clock = FakeClock()

        def sleep(seconds: float) -> None:
            clock.sleep(seconds)
            control.cancel()

        with self.assertRaises(CaptureCancelled):
            countdown(3, control, status, SessionLog(), sleep)
        self.assertEqual(clock.sleeps, [1.0])
        self.assertEqual(status.get().message, "Starting in 2 seconds...")

    def test_zero_delay_returns_at_once(self) -> None:
        clock = FakeClock()
        countdown(0, CaptureControl(), StatusCell(), SessionLog(), clock.sleep)
        self.assertEqual(clock.sleeps, [])


if __name__ == "__main__":
    unittest.main()
