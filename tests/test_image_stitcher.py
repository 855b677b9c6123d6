from __future__ import annotations

import unittest

import numpy as np

from conftest import solid
from scroll.errors import StitchError
from scroll.image_stitcher import ImageStitcher, crossfade_seam, seam_policy

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)


class ImageStitcherTests(unittest.TestCase):
    def test_no_frames_gives_placeholder(self) -> None:
        result = ImageStitcher([]).stitch(50)
        self.assertEqual(result.shape, (1, 1, 4))
        self.assertFalse(result.any())

    def test_single_frame_is_copied(self) -> None:
        frame = solid(20, 10, RED)
        result = ImageStitcher([frame]).stitch(5)
        np.testing.assert_array_equal(result, frame)
        self.assertIsNot(result, frame)

    def test_single_frame_ignores_overlap(self) -> None:
        frame = solid(20, 10, GREEN)
        for overlap in (20, 500, -1):
            with self.subTest(overlap=overlap):
                np.testing.assert_array_equal(ImageStitcher([frame]).stitch(overlap), frame)

    def test_output_height(self) -> None:
        frames = [solid(200, 10, RED) for _ in range(4)]
        stitcher = ImageStitcher(frames)
        self.assertEqual(stitcher.output_height(50), 200 + 3 * 150)
        self.assertEqual(stitcher.stitch(50).shape, (650, 10, 4))

    def test_midpoint_seam_splits_overlap(self) -> None:
        result = ImageStitcher([solid(200, 10, RED), solid(200, 10, GREEN)]).stitch(50)
        self.assertEqual(result.shape[0], 350)
        # previous frame keeps the upper half of the shared band
        self.assertEqual(tuple(result[174, 0]), RED)
        self.assertEqual(tuple(result[175, 0]), GREEN)
        self.assertEqual(tuple(result[349, 9]), GREEN)

    def test_crossfade_seam_blends_overlap(self) -> None:
        frames = [solid(200, 10, RED), solid(200, 10, GREEN)]
        result = ImageStitcher(frames, seam=crossfade_seam).stitch(50)
        self.assertEqual(tuple(result[150, 0]), RED)
        self.assertEqual(tuple(result[199, 0]), GREEN)
        middle = result[175, 0]
        self.assertTrue(0 < middle[0] < 255)
        self.assertTrue(0 < middle[1] < 255)
        self.assertEqual(tuple(result[200, 0]), GREEN)

    def test_mismatched_shapes_are_rejected(self) -> None:
        frames = [solid(200, 10, RED), solid(200, 11, RED)]
        with self.assertRaises(StitchError):
            ImageStitcher(frames).stitch(50)

    def test_overlap_must_fit_frame(self) -> None:
        frames = [solid(100, 10, RED), solid(100, 10, GREEN)]
        with self.assertRaises(StitchError):
            ImageStitcher(frames).stitch(100)
        with self.assertRaises(StitchError):
            ImageStitcher(frames).stitch(-1)

    def test_unknown_seam_policy(self) -> None:
        self.assertIs(seam_policy("crossfade"), crossfade_seam)
        with self.assertRaises(ValueError):
            seam_policy("feather")


if __name__ == "__main__":
    unittest.main()
