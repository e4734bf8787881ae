"""
Text Recognition Module - Stage 2 of OCR Pipeline

Recognizes text inside detected boxes. Boxes are processed independently
on a thread pool and re-sorted into reading order afterwards.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import nullcontext
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import DebuggingConfig, RecognizerConfig
from .geometry import round_half_up, sort_reading_order
from .onnx_base import ONNXRuntimeError, first_output, run_session
from .postprocess import CharacterDictionary, CTCLabelDecode
from .preprocess import image_to_recognition_tensor
from .schema import Box, RecognitionResult
from .utils import ImageLike, crop_image, load_image, save_image, to_grayscale

logger = logging.getLogger(__name__)


class TextRecognizer:
    """Text recognition module.

    Crops each box from the source image, runs the recognition model on it
    and decodes the output with greedy CTC.
    """

    def __init__(
        self,
        session,
        character_dict: CharacterDictionary,
        config: Optional[RecognizerConfig] = None,
        debugging: Optional[DebuggingConfig] = None,
    ):
        """Initialize text recognizer.

        Args:
            session: Recognition inference session (rec.onnx)
            character_dict: Dictionary matching the model's output classes
            config: Recognizer configuration (uses defaults if None)
            debugging: Debug output settings (uses defaults if None)
        """
        self.session = session
        self.config = config or RecognizerConfig()
        self.debugging = debugging or DebuggingConfig()
        self.character_dict = character_dict

        # Setup postprocessing (CTC decoder)
        self.postprocess_op = CTCLabelDecode(character_dict)

        self._session_lock = threading.Lock() if self.config.serialize_inference else None

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize a crop to the model height and normalize it.

        Args:
            img: Crop (H, W) gray or (H, W, C)

        Returns:
            Processed image (3, imgH, resized_w)
        """
        h, w = img.shape[:2]
        if h == 0 or w == 0:
            raise ValueError(f"Crop dimensions are zero: {w}x{h}")

        img_h = self.config.image_height
        ratio = w / float(h)
        resized_w = max(self.config.min_crop_width, round_half_up(img_h * ratio))

        resized_image = cv2.resize(to_grayscale(img), (resized_w, img_h))
        return image_to_recognition_tensor(resized_image)

    def recognize_crop(self, crop: np.ndarray) -> Tuple[str, float]:
        """Recognize text in one cropped image.

        Returns:
            Tuple of (text, confidence)
        """
        norm_img = self.resize_norm_img(crop)[np.newaxis, :]

        lock = self._session_lock or nullcontext()
        with lock:
            outputs = run_session(self.session, norm_img)

        preds = first_output(self.session, outputs)
        if preds is None:
            raise ONNXRuntimeError(
                f"Recognition output tensor not found. Available keys: {list(outputs)}"
            )

        preds = np.asarray(preds)
        if preds.ndim == 3:
            preds = preds[0]
        return self.postprocess_op.decode(preds)

    def run(self, image: ImageLike, boxes: Sequence[Box]) -> List[RecognitionResult]:
        """Recognize text in each box of an image.

        Invalid boxes and boxes that fail to process are logged and skipped.

        Args:
            image: Encoded bytes, path, PIL image or RGB array
            boxes: Boxes in the image's coordinate space

        Returns:
            Recognition results in reading order
        """
        logger.debug("Starting text recognition process")
        img = load_image(image)

        valid = [
            (index, box) for index, box in enumerate(boxes)
            if self._is_valid_box(box, index)
        ]
        if not valid:
            return []

        results = []
        max_workers = max(1, min(self.config.max_workers, len(valid)))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(self._process_box, img, box, index, len(valid))
                for index, box in valid
            ]
            for future in as_completed(futures):
                result = future.result()
                if result is not None:
                    results.append(result)

        return sort_reading_order(results, key=lambda r: r.box)

    __call__ = run

    def _process_box(
        self,
        img: np.ndarray,
        box: Box,
        index: int,
        total: int,
    ) -> Optional[RecognitionResult]:
        start = time.perf_counter()
        try:
            crop = crop_image(img, box)

            if self.debugging.debug and crop.size:
                save_image(crop, f"{self.debugging.debug_folder}/crops", f"crop_{index:03d}.png")

            text, confidence = self.recognize_crop(crop)
        except Exception:
            logger.exception("Error processing box %d", index + 1)
            return None

        logger.debug(
            'Box %d/%d: [x:%d, y:%d, w:%d, h:%d] -> "%s" (processed in %.0fms)',
            index + 1, total, box.x, box.y, box.width, box.height,
            text, (time.perf_counter() - start) * 1000,
        )

        if confidence < self.config.drop_score:
            logger.debug("Dropping box %d: confidence %.3f below drop_score", index + 1, confidence)
            return None

        return RecognitionResult(text=text, box=box, confidence=confidence)

    @staticmethod
    def _is_valid_box(box: Box, index: int) -> bool:
        if box.width <= 0 or box.height <= 0:
            logger.warning(
                "Skipping invalid box %d: w=%d, h=%d", index + 1, box.width, box.height
            )
            return False
        return True
