"""
Unit tests for onnx_ocr.skew module.
"""
import cv2
import numpy as np
import pytest

from onnx_ocr.schema import AngleMeasurement
from onnx_ocr.skew import SkewEstimator, consensus_angle, line_angle, normalize_angle


class TestNormalizeAngle:
    """Tests for normalize_angle."""

    @pytest.mark.parametrize("angle,expected", [
        (0, 0),
        (45, 45),
        (-45, -45),
        (60, -30),
        (-60, 30),
        (90, 0),
        (170, -10),
        (-200, -20),
    ])
    def test_folds_into_range(self, angle, expected):
        assert normalize_angle(angle) == pytest.approx(expected)


class TestLineAngle:
    """Tests for line_angle."""

    def test_horizontal(self):
        assert line_angle([(0, 5), (10, 5), (20, 5)]) == pytest.approx(0.0)

    def test_diagonal(self):
        """A 45 degree line stays at 45."""
        assert line_angle([(0, 0), (10, 10)]) == pytest.approx(45.0)

    def test_degenerate_points(self):
        """Vertical or too few points give 0."""
        assert line_angle([(3, 0), (3, 10)]) == 0.0
        assert line_angle([(3, 0)]) == 0.0


class TestConsensusAngle:
    """Tests for consensus_angle."""

    def test_outlier_excluded(self):
        """A heavy 50 degree sample is rejected by the angle range."""
        measurements = [
            AngleMeasurement(5.0, 1.0, "min_rect"),
            AngleMeasurement(5.0, 1.0, "baseline"),
            AngleMeasurement(50.0, 100.0, "hough"),
        ]

        assert consensus_angle(measurements, -20, 20) == pytest.approx(5.0)

    def test_iqr_outlier_excluded(self):
        """Samples far outside the interquartile fences are dropped."""
        measurements = [AngleMeasurement(a, 1.0) for a in (1.0, 1.5, 2.0, 2.5, 3.0)]
        measurements.append(AngleMeasurement(-19.0, 50.0))

        angle = consensus_angle(measurements, -20, 20)

        assert 1.0 <= angle <= 3.0

    def test_weighted_mean(self):
        measurements = [AngleMeasurement(2.0, 3.0), AngleMeasurement(4.0, 1.0)]

        assert consensus_angle(measurements) == pytest.approx(2.5)

    def test_zero_weights_use_plain_mean(self):
        measurements = [AngleMeasurement(2.0, 0.0), AngleMeasurement(4.0, 0.0)]

        assert consensus_angle(measurements) == pytest.approx(3.0)

    def test_all_filtered_falls_back_to_clamped_median(self):
        """With every sample out of range the median is clamped."""
        measurements = [AngleMeasurement(30.0, 1.0), AngleMeasurement(40.0, 1.0)]

        assert consensus_angle(measurements, -20, 20) == 20

    def test_empty(self):
        assert consensus_angle([]) == 0.0


class TestSkewEstimator:
    """Tests for SkewEstimator."""

    def test_blank_map_has_no_skew(self):
        """No text regions means no rotation."""
        estimator = SkewEstimator()

        assert estimator.estimate(np.zeros((64, 64), dtype=np.float32)) == 0.0

    def test_text_regions_filtered_by_shape(self):
        """Very long thin blobs and tiny specks are not text regions."""
        binary = np.zeros((100, 300), dtype=np.uint8)
        binary[10:30, 10:110] = 255  # 100x20 kept
        binary[50:52, 10:290] = 255  # 280x2 too elongated
        binary[80:83, 10:13] = 255  # 3x3 too small

        regions = SkewEstimator().find_text_regions(binary)

        assert [region.rect for region in regions] == [(10, 10, 100, 20)]

    def test_axis_aligned_region_min_rect_angle(self):
        """An upright rectangle measures 0 degrees."""
        binary = np.zeros((100, 200), dtype=np.uint8)
        binary[40:60, 20:180] = 255
        estimator = SkewEstimator()

        angles = estimator.min_rect_angles(estimator.find_text_regions(binary))

        assert len(angles) == 1
        assert angles[0].angle == pytest.approx(0.0, abs=1e-6)
        assert angles[0].weight > 0

    def test_estimate_within_limits(self):
        """Whatever the evidence, the estimate respects the configured limits."""
        prob_map = np.zeros((300, 400), dtype=np.float32)
        for cy in (60, 150, 240):
            corners = cv2.boxPoints(((200, cy), (300, 24), 8))
            cv2.fillPoly(prob_map, [np.int32(corners)], 1.0)

        estimator = SkewEstimator(min_angle=-10, max_angle=10)
        angle = estimator.estimate(prob_map)

        assert isinstance(angle, float)
        assert -10 <= angle <= 10
        assert angle != 0.0
