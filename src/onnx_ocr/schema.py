"""Result and intermediate data types shared by the OCR stages."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np


@dataclass(frozen=True)
class Box:
    """Axis-aligned text box in original-image pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class PreprocessResult:
    """Detection model input plus what is needed to map boxes back.

    ``width``/``height`` are the padded input dimensions. Coordinates in the
    padded input map to the original image as ``padded / resize_ratio``.
    """
    tensor: np.ndarray  # (3, H, W) float32
    width: int
    height: int
    resize_ratio: float
    original_width: int
    original_height: int


@dataclass(frozen=True)
class RecognitionResult:
    """Decoded text for one detected box."""
    text: str
    box: Box
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "box": self.box.to_dict(), "confidence": self.confidence}


@dataclass(frozen=True)
class AngleMeasurement:
    """One skew sample produced by an estimation method."""
    angle: float  # degrees, [-45, 45]
    weight: float
    method: str = ""


@dataclass
class OcrResult:
    """Grouped view: recognition results organised by reading-order line."""
    text: str = ""
    lines: List[List[RecognitionResult]] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "lines": [[item.to_dict() for item in line] for line in self.lines],
            "confidence": self.confidence,
        }


@dataclass
class FlattenedOcrResult:
    """Flattened view: all recognition results in reading order."""
    text: str = ""
    results: List[RecognitionResult] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "results": [item.to_dict() for item in self.results],
            "confidence": self.confidence,
        }
