import unittest

from autostudio.engines.studio.analysis import analyze_subject_bounds, measure_alpha
from autostudio.engines.studio.classifier import classify_photo_mode
from autostudio.engines.studio.schemas import Bounds, PhotoMode, SubjectAnalysis

from tests.conftest import build_cutout, build_photo, encode


def make_analysis(**overrides):
    values = dict(
        buffer_width=1000,
        buffer_height=600,
        has_alpha=True,
        soft=Bounds(min_x=100, max_x=899, min_y=100, max_y=560),
        solid=Bounds(min_x=150, max_x=850, min_y=120, max_y=520),
        soft_coverage=0.45,
        solid_coverage=0.40,
        soft_width_pct=0.80,
        soft_height_pct=0.77,
        bottom_touch_ratio=0.0,
        opaque_ratio=0.38,
    )
    values.update(overrides)
    return SubjectAnalysis(**values)


class TestClassifyPhotoMode(unittest.TestCase):
    """Exterior is the default; interior only for frames without a silhouette."""

    def test_opaque_jpeg_is_interior(self):
        analysis = analyze_subject_bounds(encode(build_photo(120, 80), "JPEG"))

        result = classify_photo_mode(analysis)

        self.assertEqual(result.mode, PhotoMode.INTERIOR)
        self.assertTrue(result.interior_hint)

    def test_invalid_bounds_are_interior(self):
        analysis = measure_alpha(build_cutout(50, 50))

        result = classify_photo_mode(analysis)

        self.assertEqual(result.mode, PhotoMode.INTERIOR)

    def test_frame_filling_opaque_cutout_is_interior(self):
        analysis = make_analysis(
            opaque_ratio=0.999,
            soft_width_pct=0.99,
            soft_height_pct=0.98,
            soft_coverage=0.995,
        )

        result = classify_photo_mode(analysis)

        self.assertEqual(result.mode, PhotoMode.INTERIOR)
        self.assertTrue(result.interior_hint)

    def test_thresholds_are_strict(self):
        analysis = make_analysis(
            opaque_ratio=0.995,
            soft_width_pct=0.99,
            soft_height_pct=0.99,
            soft_coverage=0.995,
        )

        result = classify_photo_mode(analysis)

        self.assertEqual(result.mode, PhotoMode.EXTERIOR)
        self.assertTrue(result.interior_hint)

    def test_typical_car_is_exterior_without_hint(self):
        result = classify_photo_mode(make_analysis())

        self.assertEqual(result.mode, PhotoMode.EXTERIOR)
        self.assertFalse(result.interior_hint)

    def test_dense_cutout_sets_hint_only(self):
        analysis = make_analysis(opaque_ratio=0.9, soft_coverage=0.9, soft_width_pct=0.9)

        result = classify_photo_mode(analysis)

        self.assertEqual(result.mode, PhotoMode.EXTERIOR)
        self.assertTrue(result.interior_hint)

    def test_bottom_touch_does_not_force_interior(self):
        # Solid box 40% of the width, shadow touching the bottom on 70% of columns
        cutout = build_cutout(100, 60, body=(30, 10, 69, 45), shadow=(15, 46, 84, 59))

        analysis = measure_alpha(cutout)
        result = classify_photo_mode(analysis)

        self.assertAlmostEqual(analysis.bottom_touch_ratio, 0.7)
        self.assertEqual(analysis.solid.width, 40)
        self.assertEqual(result.mode, PhotoMode.EXTERIOR)
        self.assertFalse(result.interior_hint)

    def test_same_inputs_same_result(self):
        analysis = make_analysis(opaque_ratio=0.86, soft_coverage=0.87)

        self.assertEqual(classify_photo_mode(analysis), classify_photo_mode(analysis.model_copy()))


if __name__ == "__main__":
    unittest.main()
