"""Image helpers for the OCR pipeline: loading, cropping, rotation, debug output."""

import io
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import cv2
import numpy as np
from PIL import Image, ImageDraw

from .schema import Box

logger = logging.getLogger(__name__)

ImageLike = Union[np.ndarray, Image.Image, bytes, bytearray, str, Path]


def load_image(image: ImageLike) -> np.ndarray:
    """Decode any supported input into an RGB uint8 array of shape (H, W, 3).

    Arrays are taken to be RGB or RGBA already; the alpha channel is dropped
    and single-channel arrays are replicated to three channels.

    Args:
        image: Encoded bytes, a file path, a PIL image, or a numpy array

    Returns:
        RGB image array
    """
    if isinstance(image, (bytes, bytearray)):
        with Image.open(io.BytesIO(image)) as pil_image:
            return np.array(pil_image.convert("RGB"))

    if isinstance(image, (str, Path)):
        path = Path(image)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {image}")
        with Image.open(path) as pil_image:
            return np.array(pil_image.convert("RGB"))

    if isinstance(image, Image.Image):
        return np.array(image.convert("RGB"))

    if isinstance(image, np.ndarray):
        img = image
        if img.dtype != np.uint8:
            img = np.clip(img, 0, 255).astype(np.uint8)
        if img.ndim == 2:
            return np.stack([img] * 3, axis=-1)
        if img.ndim == 3 and img.shape[2] == 4:
            return np.ascontiguousarray(img[:, :, :3])
        if img.ndim == 3 and img.shape[2] == 3:
            return img
        raise ValueError(f"Unsupported image shape: {image.shape}")

    raise TypeError(f"Unsupported image type: {type(image).__name__}")


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Convert an RGB/RGBA image to a single-channel uint8 image."""
    if img.ndim == 2:
        return img
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)


def crop_image(img: np.ndarray, box: Box) -> np.ndarray:
    """Crop a box from the image; the result may be empty at the edges."""
    return img[box.y:box.y + box.height, box.x:box.x + box.width]


def rotate_image(img: np.ndarray, angle: float) -> np.ndarray:
    """Rotate around the image centre, keeping the canvas size.

    Args:
        img: Source image
        angle: Degrees, positive rotates clockwise

    Returns:
        Rotated image with replicated borders
    """
    if angle == 0:
        return img.copy()
    h, w = img.shape[:2]
    center = (w / 2.0, h / 2.0)
    # getRotationMatrix2D treats positive angles as counter-clockwise
    M = cv2.getRotationMatrix2D(center, -angle, 1.0)
    return cv2.warpAffine(
        img,
        M,
        (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_REPLICATE
    )


def draw_boxes(image: np.ndarray, boxes: Iterable[Box], color=(0, 255, 0)) -> np.ndarray:
    """Draw detection boxes on a copy of an RGB image."""
    img = Image.fromarray(image)
    draw = ImageDraw.Draw(img)
    for box in boxes:
        draw.rectangle(
            [box.x, box.y, box.right - 1, box.bottom - 1],
            outline=color,
            width=2
        )
    return np.array(img)


def save_image(img: np.ndarray, folder: Union[str, Path], filename: str) -> Path:
    """Write an image array under ``folder`` (created if needed)."""
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / filename
    if path.suffix == "":
        path = path.with_suffix(".png")
    Image.fromarray(img).save(path)
    logger.debug("Saved debug image to %s", path)
    return path


def enable_verbose_logging(level: int = logging.DEBUG, stream: Optional[object] = None) -> None:
    """Print package log records as ``[module] message``."""
    package_logger = logging.getLogger(__package__)
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        if getattr(handler, "_onnx_ocr_verbose", False):
            return
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    handler._onnx_ocr_verbose = True
    package_logger.addHandler(handler)
