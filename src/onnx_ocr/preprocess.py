"""Preprocessing operations for OCR: pixel buffers to model tensors and back."""

from typing import Dict, List, Sequence, Tuple

import cv2
import numpy as np

from .geometry import calculate_resize_dimensions, padded_dimensions
from .schema import PreprocessResult

NUM_CHANNELS = 3


def image_to_detection_tensor(
    pixels: np.ndarray,
    mean: Sequence[float],
    std: Sequence[float],
) -> np.ndarray:
    """Normalize an RGB(A) buffer into a channel-planar detection tensor.

    Each channel becomes ``(p / 255 - mean[c]) / std[c]``; alpha is ignored.

    Args:
        pixels: (H, W, 3|4) uint8 image
        mean: Per-channel mean [R, G, B]
        std: Per-channel std [R, G, B]

    Returns:
        (3, H, W) float32 tensor
    """
    rgb = pixels[:, :, :NUM_CHANNELS].astype(np.float32) / 255.0
    mean = np.asarray(mean, dtype=np.float32).reshape((1, 1, NUM_CHANNELS))
    std = np.asarray(std, dtype=np.float32).reshape((1, 1, NUM_CHANNELS))
    normalized = (rgb - mean) / std
    return np.ascontiguousarray(normalized.transpose((2, 0, 1)), dtype=np.float32)


def image_to_recognition_tensor(pixels: np.ndarray) -> np.ndarray:
    """Build a recognition tensor from a grayscale-equivalent buffer.

    The gray value is read from the first (red) channel, normalized with
    ``(g / 255 - 0.5) / 0.5`` and replicated into three channels.

    Args:
        pixels: (H, W) gray or (H, W, C) image

    Returns:
        (3, H, W) float32 tensor
    """
    gray = pixels if pixels.ndim == 2 else pixels[:, :, 0]
    normalized = (gray.astype(np.float32) / 255.0 - 0.5) / 0.5
    return np.repeat(normalized[np.newaxis, :, :], NUM_CHANNELS, axis=0)


def probability_map_to_gray(tensor: np.ndarray, width: int, height: int) -> np.ndarray:
    """Render a probability map as an opaque gray RGBA image.

    Values are scaled to [0, 255] and rounded; NaN or missing entries
    (a tensor shorter than ``width * height``) become 0.

    Returns:
        (height, width, 4) uint8 RGBA image
    """
    flat = np.asarray(tensor, dtype=np.float32).ravel()
    values = np.zeros(width * height, dtype=np.float32)
    count = min(flat.size, values.size)
    values[:count] = flat[:count]
    values = np.nan_to_num(values, nan=0.0, posinf=1.0, neginf=0.0)

    gray = np.clip(np.floor(values * 255.0 + 0.5), 0, 255).astype(np.uint8)
    gray = gray.reshape((height, width))

    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[:, :, 0] = gray
    rgba[:, :, 1] = gray
    rgba[:, :, 2] = gray
    rgba[:, :, 3] = 255
    return rgba


class DetResizeForTest:
    """Resize image for text detection and pad it to the detector stride."""

    def __init__(self, max_side_length=960, **kwargs):
        self.max_side_length = max_side_length

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]

        resize_w, resize_h, ratio = calculate_resize_dimensions(
            src_w, src_h, self.max_side_length
        )
        if (resize_w, resize_h) != (src_w, src_h):
            img = cv2.resize(img, (resize_w, resize_h))

        # Zero-pad on the right/bottom so boxes keep their top-left origin
        pad_w, pad_h = padded_dimensions(resize_w, resize_h)
        padded = np.zeros((pad_h, pad_w) + img.shape[2:], dtype=img.dtype)
        padded[:resize_h, :resize_w] = img

        data['image'] = padded
        data['shape'] = {
            'width': pad_w,
            'height': pad_h,
            'resize_ratio': ratio,
            'original_width': src_w,
            'original_height': src_h,
        }
        return data


class NormalizeImage:
    """Normalize image values into a CHW float tensor."""

    def __init__(self, mean=(0.485, 0.456, 0.406), std=(0.229, 0.224, 0.225), **kwargs):
        self.mean = mean
        self.std = std

    def __call__(self, data: Dict) -> Dict:
        data['image'] = image_to_detection_tensor(data['image'], self.mean, self.std)
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        """Return tuple of (image, shape) for detection."""
        return tuple(data[key] for key in self.keep_keys)


def create_operators(op_param_list: List[Dict]):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        if not isinstance(operator, dict) or len(operator) != 1:
            raise ValueError(f"Invalid operator entry: {operator!r}")
        op_name = list(operator)[0]
        param = {} if operator[op_name] is None else operator[op_name]
        op = globals()[op_name](**param)
        ops.append(op)
    return ops


def transform(data: Dict, ops: List):
    """Apply preprocessing operators sequentially.

    Args:
        data: Dictionary containing 'image' key
        ops: List of operator instances

    Returns:
        Output of the last operator, or None if any operator returned None
    """
    for op in ops:
        data = op(data)
        if data is None:
            return None
    return data


def build_detection_input(image: np.ndarray, ops: List) -> PreprocessResult:
    """Run the detection operator chain and package its output."""
    result = transform({'image': image}, ops)
    if result is None:
        raise ValueError("Detection preprocessing produced no output")
    tensor, shape = result
    return PreprocessResult(tensor=tensor, **shape)
