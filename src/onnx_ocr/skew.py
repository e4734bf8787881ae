"""
Skew Estimation

Estimates the dominant text-line angle of a page from a detection
probability map. Three independent estimators contribute weighted samples:

- min_rect: minimum-area rectangle of each text region
- baseline: regression line through the bottom edge of each region
- hough: probabilistic Hough segments over the (closed) binary map

The samples are merged by an IQR-filtered weighted mean.
"""

import logging
import math
from collections import Counter
from typing import List, NamedTuple, Sequence, Tuple

import cv2
import numpy as np

from .geometry import find_contours
from .preprocess import probability_map_to_gray
from .schema import AngleMeasurement

logger = logging.getLogger(__name__)


class TextRegion(NamedTuple):
    rect: Tuple[int, int, int, int]
    contour: np.ndarray
    area: int
    aspect_ratio: float


def normalize_angle(angle: float) -> float:
    """Fold an angle in degrees into [-45, 45] by steps of 90."""
    while angle > 45:
        angle -= 90
    while angle < -45:
        angle += 90
    return angle


def line_angle(points: Sequence[Tuple[float, float]]) -> float:
    """Angle in degrees of the least-squares line through ``points``."""
    if len(points) < 2:
        return 0.0

    n = len(points)
    sum_x = sum(p[0] for p in points)
    sum_y = sum(p[1] for p in points)
    sum_xy = sum(p[0] * p[1] for p in points)
    sum_xx = sum(p[0] * p[0] for p in points)

    denominator = n * sum_xx - sum_x * sum_x
    if abs(denominator) < 1e-10:
        return 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    return normalize_angle(math.degrees(math.atan(slope)))


def consensus_angle(
    measurements: Sequence[AngleMeasurement],
    min_angle: float = -20.0,
    max_angle: float = 20.0,
) -> float:
    """Combine angle samples into one robust estimate.

    Samples outside the Tukey fences (1.5 IQR) or outside
    ``[min_angle, max_angle]`` are discarded; the rest are averaged by weight.
    If every sample is discarded, the median of all samples is used instead.

    Returns:
        Angle in degrees, clamped to ``[min_angle, max_angle]``
    """
    if not measurements:
        return 0.0

    ordered = sorted(measurements, key=lambda m: m.angle)
    n = len(ordered)
    q1 = ordered[int(math.floor(n * 0.25))].angle
    q3 = ordered[int(math.floor(n * 0.75))].angle
    iqr = q3 - q1
    lower_bound = q1 - 1.5 * iqr
    upper_bound = q3 + 1.5 * iqr

    kept = [
        m for m in measurements
        if lower_bound <= m.angle <= upper_bound and min_angle <= m.angle <= max_angle
    ]

    if not kept:
        logger.debug("All angles filtered out as outliers, using median of original set.")
        angle = ordered[n // 2].angle
    else:
        total_weight = sum(m.weight for m in kept)
        if total_weight == 0:
            angle = sum(m.angle for m in kept) / len(kept)
        else:
            angle = sum(m.angle * m.weight for m in kept) / total_weight

        counts = Counter(m.method for m in kept)
        logger.debug(
            "Angle methods used: %s",
            ", ".join(f"{method}:{count}" for method, count in counts.items())
        )

    return float(max(min_angle, min(max_angle, angle)))


class SkewEstimator:
    """Estimate page skew from a detection probability map."""

    def __init__(
        self,
        min_angle: float = -20.0,
        max_angle: float = 20.0,
        minimum_area_threshold: float = 20,
    ):
        self.min_angle = min_angle
        self.max_angle = max_angle
        self.minimum_area_threshold = minimum_area_threshold

    def binarize(self, prob_map: np.ndarray) -> np.ndarray:
        """Probability map (H, W) to a 0/255 binary image (Otsu threshold)."""
        height, width = prob_map.shape[:2]
        gray = probability_map_to_gray(prob_map, width, height)[:, :, 0]
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
        return binary

    def find_text_regions(self, binary: np.ndarray) -> List[TextRegion]:
        """Keep regions large enough and elongated like text (0.2 < w/h < 10)."""
        regions = []
        for contour in find_contours(binary):
            x, y, w, h = (int(v) for v in cv2.boundingRect(contour))
            area = w * h
            if area < self.minimum_area_threshold or h == 0:
                continue
            aspect_ratio = w / h
            if 0.2 < aspect_ratio < 10:
                regions.append(TextRegion((x, y, w, h), contour, area, aspect_ratio))
        return regions

    def estimate(self, prob_map: np.ndarray) -> float:
        """Estimate the skew angle in degrees (0 when there is no evidence).

        Args:
            prob_map: (H, W) probability map in [0, 1]

        Returns:
            Angle in degrees within ``[min_angle, max_angle]``
        """
        binary = self.binarize(prob_map)
        regions = self.find_text_regions(binary)

        if not regions:
            logger.debug("No valid text regions found for skew calculation.")
            return 0.0

        logger.debug("Found %d text regions for skew analysis.", len(regions))

        measurements = (
            self.min_rect_angles(regions)
            + self.baseline_angles(regions)
            + self.hough_angles(binary)
        )

        if not measurements:
            logger.debug("No angles detected from any method.")
            return 0.0

        angle = consensus_angle(measurements, self.min_angle, self.max_angle)
        logger.debug(
            "Calculated skew angle: %.3f° (from %d measurements)", angle, len(measurements)
        )
        return angle

    def min_rect_angles(self, regions: Sequence[TextRegion]) -> List[AngleMeasurement]:
        """Angles of the minimum-area rectangles around each region."""
        angles = []
        for region in regions:
            try:
                _, _, angle = cv2.minAreaRect(region.contour)
            except cv2.error:
                continue

            # Prefer larger, more elongated regions
            area_weight = math.log(region.area + 1)
            aspect_weight = min(region.aspect_ratio, 1 / region.aspect_ratio) * 2
            angles.append(AngleMeasurement(
                normalize_angle(float(angle)), area_weight * aspect_weight, "min_rect"
            ))
        return angles

    def baseline_angles(self, regions: Sequence[TextRegion]) -> List[AngleMeasurement]:
        """Angles of a line fitted through the lowest point of each third of a region."""
        angles = []
        segments = 3
        for region in regions:
            points = np.asarray(region.contour).reshape(-1, 2)
            if len(points) < 4:
                continue

            points = points[np.argsort(points[:, 0], kind="stable")]
            segment_size = len(points) // segments

            baseline_points = []
            for seg in range(segments):
                start = seg * segment_size
                end = len(points) if seg == segments - 1 else (seg + 1) * segment_size
                segment = points[start:end]
                if len(segment) == 0:
                    continue
                # argmax keeps the first of equal maxima
                x, y = segment[int(np.argmax(segment[:, 1]))]
                baseline_points.append((float(x), float(y)))

            if len(baseline_points) >= 2:
                weight = region.area * min(region.aspect_ratio, 1 / region.aspect_ratio)
                angles.append(AngleMeasurement(line_angle(baseline_points), weight, "baseline"))
        return angles

    def hough_angles(self, binary: np.ndarray) -> List[AngleMeasurement]:
        """Angles of long straight segments after bridging character gaps."""
        angles = []
        try:
            kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 1))
            morphed = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)
            lines = cv2.HoughLinesP(
                morphed,
                1,  # rho resolution
                np.pi / 180,  # theta resolution
                30,  # vote threshold
                minLineLength=50,
                maxLineGap=10,
            )
        except cv2.error:
            logger.debug("Hough transform failed, skipping this method.")
            return angles

        if lines is None:
            return angles

        for x1, y1, x2, y2 in np.asarray(lines).reshape(-1, 4):
            dx = float(x2 - x1)
            dy = float(y2 - y1)
            if abs(dx) <= 1:
                continue

            angle = normalize_angle(math.degrees(math.atan2(dy, dx)))
            if self.min_angle <= angle <= self.max_angle:
                angles.append(AngleMeasurement(angle, math.hypot(dx, dy), "hough"))
        return angles
