"""Box geometry: resize bookkeeping, padding, coordinate mapping and reading order."""

import math
from functools import cmp_to_key
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

import cv2
import numpy as np

from .schema import Box, PreprocessResult

T = TypeVar("T")

Rect = Tuple[int, int, int, int]  # x, y, width, height

STRIDE = 32


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf (canvas rounding)."""
    return int(math.floor(value + 0.5))


def calculate_resize_dimensions(
    original_width: int,
    original_height: int,
    max_side_length: int,
) -> Tuple[int, int, float]:
    """Fit an image inside ``max_side_length`` while keeping its aspect ratio.

    Returns:
        (width, height, ratio); ratio is 1.0 when no resize is needed
    """
    if max(original_width, original_height) <= max_side_length:
        return original_width, original_height, 1.0

    longer = original_height if original_height > original_width else original_width
    ratio = float(max_side_length) / longer
    width = round_half_up(original_width * ratio)
    height = round_half_up(original_height * ratio)
    return width, height, ratio


def padded_dimensions(width: int, height: int) -> Tuple[int, int]:
    """Round each dimension up to the detector stride (32)."""
    return (
        int(math.ceil(width / STRIDE) * STRIDE),
        int(math.ceil(height / STRIDE) * STRIDE),
    )


def apply_padding(
    rect: Rect,
    max_width: int,
    max_height: int,
    padding_vertical: float,
    padding_horizontal: float,
) -> Rect:
    """Grow a rect by a fraction of its height on each side, clamped to the canvas.

    Both paddings scale with the rect height, i.e. with the stroke size of the
    text line rather than its length.
    """
    x, y, w, h = rect
    vertical = round_half_up(h * padding_vertical)
    horizontal = round_half_up(h * padding_horizontal)

    new_x = max(0, x - horizontal)
    new_y = max(0, y - vertical)
    right = min(max_width, x + w + horizontal)
    bottom = min(max_height, y + h + vertical)

    return new_x, new_y, right - new_x, bottom - new_y


def to_original_coordinates(
    rect: Rect,
    resize_ratio: float,
    original_width: int,
    original_height: int,
) -> Box:
    """Map a rect from the padded model input back onto the original image."""
    x, y, w, h = rect
    new_x = max(0, round_half_up(x / resize_ratio))
    new_y = max(0, round_half_up(y / resize_ratio))
    width = min(original_width - new_x, round_half_up(w / resize_ratio))
    height = min(original_height - new_y, round_half_up(h / resize_ratio))
    return Box(new_x, new_y, width, height)


def compare_reading_order(a: Box, b: Box) -> int:
    """Comparator: left to right on the same line, otherwise top to bottom.

    Two boxes share a line when their top edges are closer than a quarter of
    their combined heights. This is not a total order; staggered chains of
    boxes can make it intransitive.
    """
    if abs(a.y - b.y) < (a.height + b.height) / 4:
        return a.x - b.x
    return a.y - b.y


def sort_reading_order(items: Iterable[T], key: Callable[[T], Box] = lambda item: item) -> List[T]:
    """Sort boxes (or objects carrying one) into reading order."""
    return sorted(
        items,
        key=cmp_to_key(lambda a, b: compare_reading_order(key(a), key(b)))
    )


def filter_boxes(boxes: Iterable[Box], min_size: int = 5) -> List[Box]:
    """Drop boxes whose width or height is not larger than ``min_size``."""
    return [box for box in boxes if box.width > min_size and box.height > min_size]


def filter_and_sort_boxes(boxes: Iterable[Box], min_size: int = 5) -> List[Box]:
    return sort_reading_order(filter_boxes(boxes, min_size))


def find_contours(binary: np.ndarray) -> Sequence[np.ndarray]:
    """Contours of the non-zero pixels of a single-channel uint8 image."""
    outs = cv2.findContours(binary, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    if len(outs) == 3:
        return outs[1]
    return outs[0]


def extract_boxes(
    gray_map: np.ndarray,
    input_info: PreprocessResult,
    minimum_area_threshold: float = 20,
    padding_vertical: float = 0.4,
    padding_horizontal: float = 0.6,
    min_size: int = 5,
) -> List[Box]:
    """Turn a grayscale probability map into reading-ordered boxes.

    Args:
        gray_map: (H, W) uint8 map in padded input space
        input_info: Preprocessing bookkeeping for the same pass
        minimum_area_threshold: Bounding-rect area cut-off in padded space
        padding_vertical: Vertical padding as a fraction of rect height
        padding_horizontal: Horizontal padding as a fraction of rect height
        min_size: Final boxes must be larger than this on both axes

    Returns:
        Boxes in original-image coordinates, sorted in reading order
    """
    boxes = []
    for contour in find_contours(gray_map):
        box = contour_to_box(
            contour,
            input_info,
            minimum_area_threshold,
            padding_vertical,
            padding_horizontal,
        )
        if box is not None:
            boxes.append(box)

    return filter_and_sort_boxes(boxes, min_size)


def contour_to_box(
    contour: np.ndarray,
    input_info: PreprocessResult,
    minimum_area_threshold: float = 20,
    padding_vertical: float = 0.4,
    padding_horizontal: float = 0.6,
) -> Optional[Box]:
    """Padded bounding box of one contour in original coordinates.

    Returns None when the bounding rect area is at most the threshold.
    """
    rect = tuple(int(v) for v in cv2.boundingRect(contour))
    if rect[2] * rect[3] <= minimum_area_threshold:
        return None

    padded = apply_padding(
        rect,
        input_info.width,
        input_info.height,
        padding_vertical,
        padding_horizontal,
    )
    return to_original_coordinates(
        padded,
        input_info.resize_ratio,
        input_info.original_width,
        input_info.original_height,
    )
