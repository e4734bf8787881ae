"""
Modular OCR library built on ONNX Runtime

Stages:
- TextDetector: Finds text regions in images (with optional deskew)
- TextRecognizer: Converts text regions to strings (greedy CTC)
- group_lines: Organises recognition results into reading-order lines

High-level interface:
- OCRPipeline: Complete OCR pipeline (detection + recognition + grouping)
"""

import logging

from .config import (
    DebuggingConfig,
    DetectorConfig,
    ModelConfig,
    OCRConfig,
    RecognizerConfig,
    merge_config,
)
from .grouping import group_lines, to_flattened, to_grouped
from .onnx_base import ONNXInferenceBase, ONNXRuntimeError
from .pipeline import OCRPipeline
from .postprocess import CharacterDictionary, CTCLabelDecode
from .schema import Box, FlattenedOcrResult, OcrResult, RecognitionResult
from .skew import SkewEstimator
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Box",
    "CharacterDictionary",
    "CTCLabelDecode",
    "DebuggingConfig",
    "DetectorConfig",
    "FlattenedOcrResult",
    "ModelConfig",
    "OCRConfig",
    "OCRPipeline",
    "OcrResult",
    "ONNXInferenceBase",
    "ONNXRuntimeError",
    "RecognitionResult",
    "RecognizerConfig",
    "SkewEstimator",
    "TextDetector",
    "TextRecognizer",
    "group_lines",
    "merge_config",
    "to_flattened",
    "to_grouped",
]
