import unittest

from launchtidy.icons import ColorClass, classify_hsl, color_class_map, dominant_rgb, rgb_to_hsl
from launchtidy.store.testing import sample_snapshot, solid_png


class TestColorClassification(unittest.TestCase):
    def test_thresholds(self) -> None:
        cases = [
            ((0, 0, 95), ColorClass.WHITE),
            ((0, 10, 50), ColorClass.GRAY),
            ((0, 14.9, 86), ColorClass.WHITE),
            ((10, 50, 50), ColorClass.ORANGE_RED),
            ((39.9, 50, 50), ColorClass.ORANGE_RED),
            ((40, 50, 50), ColorClass.YELLOW_GREEN),
            ((179, 50, 50), ColorClass.YELLOW_GREEN),
            ((180, 50, 50), ColorClass.BLUE),
            ((299, 50, 50), ColorClass.BLUE),
            ((300, 50, 50), ColorClass.ORANGE_RED),
        ]
        for hsl, expected in cases:
            self.assertEqual(classify_hsl(hsl), expected, msg=str(hsl))

    def test_rgb_to_hsl(self) -> None:
        h, s, l = rgb_to_hsl((255, 0, 0))
        self.assertAlmostEqual(h, 0.0)
        self.assertAlmostEqual(s, 100.0)
        self.assertAlmostEqual(l, 50.0)
        h, _s, _l = rgb_to_hsl((0, 0, 255))
        self.assertAlmostEqual(h, 240.0)

    def test_dominant_rgb_of_solid_icon(self) -> None:
        r, g, b = dominant_rgb(solid_png((20, 110, 230)))
        self.assertLessEqual(abs(r - 20), 2)
        self.assertLessEqual(abs(g - 110), 2)
        self.assertLessEqual(abs(b - 230), 2)

    def test_color_map_skips_undecodable(self) -> None:
        colors = color_class_map(sample_snapshot())
        self.assertEqual(colors, {5: "blue", 6: "blue", 12: "yellow-green"})


if __name__ == "__main__":
    unittest.main()
