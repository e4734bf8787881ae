"""
High-level OCR Pipeline
Combines detection, recognition and line grouping behind one handle
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

import numpy as np

from .config import OCRConfig, merge_config
from .grouping import group_lines, to_flattened, to_grouped
from .onnx_base import ONNXInferenceBase
from .postprocess import CharacterDictionary
from .schema import Box, FlattenedOcrResult, OcrResult, RecognitionResult
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .utils import ImageLike, enable_verbose_logging

logger = logging.getLogger(__name__)


class OCRPipeline:
    """
    Complete OCR pipeline: detection (with optional deskew), recognition and
    line grouping.

    The pipeline owns its two inference sessions; release them with
    ``close()`` or by using the pipeline as a context manager.

    Usage:
        with OCRPipeline() as ocr:
            result = ocr.recognize("receipt.jpg")
            print(result.text)
    """

    def __init__(
        self,
        config: Optional[Union[OCRConfig, Mapping[str, Any]]] = None,
        detection_session=None,
        recognition_session=None,
        character_dict=None,
    ):
        """
        Initialize OCR pipeline

        Args:
            config: OCRConfig, or a partial nested mapping merged over the defaults
            detection_session: Ready detection session (built from config if None)
            recognition_session: Ready recognition session (built from config if None)
            character_dict: CharacterDictionary, path, bytes or lines
                (from config if None)
        """
        if config is None:
            config = OCRConfig()
        elif not isinstance(config, OCRConfig):
            config = OCRConfig.from_dict(config)
        self.config = config

        if config.debugging.verbose:
            enable_verbose_logging()

        # Only sources neither injected nor configured come from the registry
        injected = {
            "detection": detection_session,
            "recognition": recognition_session,
            "character_dictionary": character_dict,
        }
        needs_defaults = [
            name for name, value in injected.items()
            if value is None and getattr(config.model, name) is None
        ]
        model_config = config.model
        if needs_defaults:
            from .models import registry
            model_config = registry.resolve(model_config, only=needs_defaults)

        if detection_session is None:
            logger.debug("Loading detection model from: %s", _describe(model_config.detection))
            detection_session = ONNXInferenceBase(
                model_config.detection,
                use_gpu=config.detection.use_gpu,
                use_tensorrt=config.detection.use_tensorrt,
            )

        if recognition_session is None:
            logger.debug("Loading recognition model from: %s", _describe(model_config.recognition))
            recognition_session = ONNXInferenceBase(
                model_config.recognition,
                use_gpu=config.recognition.use_gpu,
                use_tensorrt=config.recognition.use_tensorrt,
            )

        if character_dict is None:
            character_dict = model_config.character_dictionary
        self.character_dict = CharacterDictionary.load(
            character_dict,
            add_blank=config.recognition.add_blank,
            use_space_char=config.recognition.use_space_char,
        )
        logger.debug("Character dictionary loaded with %d entries.", len(self.character_dict))

        self.text_detector = TextDetector(detection_session, config.detection, config.debugging)
        self.text_recognizer = TextRecognizer(
            recognition_session,
            self.character_dict,
            config.recognition,
            config.debugging,
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any], **kwargs) -> "OCRPipeline":
        """Build a pipeline from partial options over the defaults."""
        return cls(merge_config(OCRConfig(), options), **kwargs)

    @property
    def is_initialized(self) -> bool:
        return (
            self.text_detector.session is not None
            and self.text_recognizer.session is not None
        )

    def detect(self, image: ImageLike) -> List[Box]:
        """Detect text boxes (deskewing first when enabled)."""
        self._check_open()
        return self.text_detector.run(image)

    def recognize_boxes(self, image: ImageLike, boxes: Sequence[Box]) -> List[RecognitionResult]:
        """Recognize text inside boxes that refer to ``image``."""
        self._check_open()
        return self.text_recognizer.run(image, boxes)

    def deskew_image(self, image: ImageLike) -> np.ndarray:
        """Return the image rotated to straighten its text lines."""
        self._check_open()
        return self.text_detector.deskew_image(image)

    def recognize(
        self,
        image: ImageLike,
        flatten: bool = False,
    ) -> Union[OcrResult, FlattenedOcrResult]:
        """
        Perform OCR on an image

        Args:
            image: Encoded bytes, path, PIL image or RGB array
            flatten: Return a flat result list instead of lines

        Returns:
            OcrResult (text, lines, confidence), or FlattenedOcrResult
            (text, results, confidence) when ``flatten`` is set
        """
        self._check_open()
        boxes, img = self.text_detector.run_with_image(image)
        recognition = self.text_recognizer.run(img, boxes)
        lines = group_lines(recognition)

        if flatten:
            return to_flattened(lines)
        return to_grouped(lines)

    __call__ = recognize

    def close(self) -> None:
        """Release both inference sessions."""
        for session in (self.text_detector.session, self.text_recognizer.session):
            if session is not None and hasattr(session, "close"):
                session.close()
        self.text_detector.session = None
        self.text_recognizer.session = None

    def __enter__(self) -> "OCRPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if not self.is_initialized:
            raise RuntimeError("OCRPipeline has been closed")

    def __repr__(self):
        return (
            f"OCRPipeline(\n"
            f"  detector={self.text_detector},\n"
            f"  recognizer={self.text_recognizer},\n"
            f"  dictionary={self.character_dict}\n"
            f")"
        )


def _describe(source) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return str(source)
