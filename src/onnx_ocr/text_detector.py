"""
Text Detection Module - Stage 1 of OCR Pipeline

Detects text regions in images from a DB-style probability map.
Optionally estimates page skew first and detects on the straightened image.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .config import DebuggingConfig, DetectorConfig
from .onnx_base import first_output, run_session
from .postprocess import BoxPostProcess
from .preprocess import build_detection_input, create_operators, probability_map_to_gray
from .schema import Box, PreprocessResult
from .skew import SkewEstimator
from .utils import ImageLike, draw_boxes, load_image, rotate_image, save_image

logger = logging.getLogger(__name__)


class TextDetector:
    """Text detection module.

    Wraps a detection inference session (see ``ONNXInferenceBase``) with the
    pre- and post-processing needed to turn an image into text boxes.
    """

    def __init__(
        self,
        session,
        config: Optional[DetectorConfig] = None,
        debugging: Optional[DebuggingConfig] = None,
    ):
        """Initialize text detector.

        Args:
            session: Detection inference session (det.onnx)
            config: Detector configuration (uses defaults if None)
            debugging: Debug output settings (uses defaults if None)
        """
        self.session = session
        self.config = config or DetectorConfig()
        self.debugging = debugging or DebuggingConfig()

        # Setup preprocessing pipeline
        self.preprocess_ops = create_operators([
            {"DetResizeForTest": {"max_side_length": self.config.max_side_length}},
            {
                "NormalizeImage": {
                    "mean": self.config.mean,
                    "std": self.config.std,
                }
            },
            {"KeepKeys": {"keep_keys": ["image", "shape"]}},
        ])

        # Setup postprocessing
        self.postprocess_op = BoxPostProcess(
            minimum_area_threshold=self.config.minimum_area_threshold,
            padding_vertical=self.config.padding_vertical,
            padding_horizontal=self.config.padding_horizontal,
            min_box_size=self.config.min_box_size,
        )

        self.skew_estimator = SkewEstimator(
            min_angle=self.config.skew_min_angle,
            max_angle=self.config.skew_max_angle,
            minimum_area_threshold=self.config.minimum_area_threshold,
        )

    def preprocess(self, image: np.ndarray) -> PreprocessResult:
        """Resize, pad and normalize an RGB image for detection."""
        result = build_detection_input(image.copy(), self.preprocess_ops)
        logger.debug(
            "Detection preprocessed: original(%dx%d), model_input(%dx%d), resize_ratio: %.4f",
            result.original_width, result.original_height,
            result.width, result.height, result.resize_ratio,
        )
        return result

    def run_inference(self, input_info: PreprocessResult) -> Optional[np.ndarray]:
        """Run the detection model.

        Returns:
            (H, W) probability map, or None if the model produced no output

        Raises:
            ONNXRuntimeError: If the inference session fails
            ValueError: If the output does not match the input size
        """
        logger.debug("Running detection inference...")
        batch = input_info.tensor[np.newaxis, :]
        outputs = run_session(self.session, batch)
        output = first_output(self.session, outputs)

        if output is None:
            logger.error("Output tensor not found in detection results")
            return None

        output = np.asarray(output, dtype=np.float32)
        expected = input_info.width * input_info.height
        if output.size != expected:
            raise ValueError(
                f"Detection output has {output.size} values, expected "
                f"{input_info.height}x{input_info.width}"
            )
        logger.debug("Detection inference complete!")
        return output.reshape((input_info.height, input_info.width))

    def postprocess(self, prob_map: np.ndarray, input_info: PreprocessResult) -> List[Box]:
        logger.debug("Post-processing detection results...")
        boxes = self.postprocess_op(prob_map, input_info)
        logger.debug("Found %d potential text boxes", len(boxes))
        return boxes

    def calculate_skew_angle(self, image: np.ndarray) -> float:
        """Estimate the text skew of an RGB image in degrees."""
        input_info = self.preprocess(image)
        prob_map = self.run_inference(input_info)

        if prob_map is None:
            logger.debug("Skew calculation failed: no detection output from model.")
            return 0.0

        if self.debugging.debug:
            self._save_probability_map(prob_map, "deskew-probability-map.png")

        return self.skew_estimator.estimate(prob_map)

    def deskew_image(self, image: ImageLike) -> np.ndarray:
        """Return the image rotated so its text lines are horizontal."""
        img = load_image(image)
        angle = self.calculate_skew_angle(img)

        if angle == 0:
            logger.debug("Detected skew angle: 0.00°, no rotation needed")
            return img

        logger.debug(
            "Detected skew angle: %.2f°. Rotating image by %.2f°...", angle, -angle
        )
        rotated = rotate_image(img, -angle)

        if self.debugging.debug:
            save_image(rotated, self.debugging.debug_folder, "deskewed-image.png")

        return rotated

    def run_with_image(self, image: ImageLike) -> Tuple[List[Box], np.ndarray]:
        """Detect text and also return the image the boxes refer to.

        With ``auto_deskew`` the returned image is the straightened one.

        Returns:
            (boxes, rgb_image)
        """
        logger.debug("Starting text detection process")
        img = load_image(image)

        if self.config.auto_deskew:
            logger.debug("Auto-deskew enabled. Performing initial pass for angle detection.")
            img = self.deskew_image(img)

        input_info = self.preprocess(img)
        prob_map = self.run_inference(input_info)

        if prob_map is None:
            logger.error("Text detection failed (output tensor is null)")
            return [], img

        boxes = self.postprocess(prob_map, input_info)

        if self.debugging.debug:
            self._save_probability_map(prob_map, "detection.png")
            save_image(draw_boxes(img, boxes), self.debugging.debug_folder, "boxes.png")

        logger.debug("Detected %d text boxes in image", len(boxes))
        return boxes, img

    def run(self, image: ImageLike) -> List[Box]:
        """Detect text regions in a single image.

        Args:
            image: Encoded bytes, path, PIL image or RGB array

        Returns:
            Boxes in (deskewed) original-image coordinates, in reading order
        """
        boxes, _ = self.run_with_image(image)
        return boxes

    __call__ = run

    def _save_probability_map(self, prob_map: np.ndarray, filename: str) -> None:
        height, width = prob_map.shape
        gray = probability_map_to_gray(prob_map, width, height)
        save_image(gray, self.debugging.debug_folder, filename)
