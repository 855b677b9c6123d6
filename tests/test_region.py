from __future__ import annotations

import unittest

import numpy as np

from conftest import FakeWindowBounds, make_page
from scroll.errors import InvalidRegion, RegionOutOfBounds
from scroll.region import (
    Rectangle,
    RegionResolver,
    RegionSelection,
    crop_frame,
    parse_crop_region,
    require_crop_region,
)


class CropParsingTests(unittest.TestCase):
    def test_comma_separated(self) -> None:
        self.assertEqual(parse_crop_region("100,50,1920,1080"), Rectangle(100, 50, 1920, 1080))

    def test_mixed_separators_and_spaces(self) -> None:
        self.assertEqual(parse_crop_region("100:50 1920, 1080"), Rectangle(100, 50, 1920, 1080))

    def test_non_numeric_fields_are_skipped(self) -> None:
        self.assertEqual(parse_crop_region("x,1,2,3,4"), Rectangle(1, 2, 3, 4))

    def test_negative_origin_is_kept(self) -> None:
        self.assertEqual(parse_crop_region("-10,-5,20,30"), Rectangle(-10, -5, 20, 30))

    def test_rejects_wrong_field_count_and_empty_sizes(self) -> None:
        for text in ("", None, "1,2,3", "1,2,3,4,5", "1,2,0,5", "1,2,5,-5"):
            with self.subTest(text=text):
                self.assertIsNone(parse_crop_region(text))

    def test_require_raises(self) -> None:
        with self.assertRaises(InvalidRegion):
            require_crop_region("garbage")
        self.assertEqual(str(require_crop_region("1,2,3,4")), "1,2,3,4")


class CropFrameTests(unittest.TestCase):
    def test_crop(self) -> None:
        frame = make_page(100, 80)
        cropped = crop_frame(frame, Rectangle(10, 20, 30, 40))
        np.testing.assert_array_equal(cropped, frame[20:60, 10:40])

    def test_negative_offsets_are_clamped(self) -> None:
        frame = make_page(100, 80)
        cropped = crop_frame(frame, Rectangle(-5, -5, 30, 40))
        np.testing.assert_array_equal(cropped, frame[0:40, 0:30])

    def test_out_of_bounds(self) -> None:
        frame = make_page(100, 80)
        with self.assertRaises(RegionOutOfBounds):
            crop_frame(frame, Rectangle(60, 0, 30, 10))


class RegionResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.messages = []
        self.window = FakeWindowBounds(Rectangle(5, 6, 700, 800))
        self.resolver = RegionResolver(
            presets={"small": "0,0,640,480", "broken": "1,2"},
            window_bounds=self.window,
            log=self.messages.append,
        )

    def test_nothing_selected_means_full_screen(self) -> None:
        self.assertIsNone(self.resolver.resolve(RegionSelection()))

    def test_crop_wins_over_preset_and_window(self) -> None:
        rect = self.resolver.resolve(
            RegionSelection(crop="1,2,3,4", preset="small", window_only=True)
        )
        self.assertEqual(rect, Rectangle(1, 2, 3, 4))
        self.assertIn("Manual crop: 3x4 at (1, 2)", self.messages[-1])

    def test_invalid_crop_does_not_fall_through(self) -> None:
        rect = self.resolver.resolve(RegionSelection(crop="oops", preset="small"))
        self.assertIsNone(rect)
        self.assertIn("Invalid crop format", self.messages[-1])

    def test_preset(self) -> None:
        self.assertEqual(
            self.resolver.resolve(RegionSelection(preset="small")), Rectangle(0, 0, 640, 480)
        )

    def test_unknown_or_broken_preset(self) -> None:
        self.assertIsNone(self.resolver.resolve(RegionSelection(preset="nope")))
        self.assertIsNone(self.resolver.resolve(RegionSelection(preset="broken")))

    def test_focused_window(self) -> None:
        rect = self.resolver.resolve(RegionSelection(window_only=True))
        self.assertEqual(rect, Rectangle(5, 6, 700, 800))

    def test_window_lookup_failure_falls_back(self) -> None:
        self.window.error = OSError("no accessibility permission")
        self.assertIsNone(self.resolver.resolve(RegionSelection(window_only=True)))
        self.assertIn("Could not detect focused window", self.messages[-1])

    def test_empty_window_rect_falls_back(self) -> None:
        self.window.rect = Rectangle(0, 0, 0, 10)
        self.assertIsNone(self.resolver.resolve(RegionSelection(window_only=True)))


if __name__ == "__main__":
    unittest.main()
