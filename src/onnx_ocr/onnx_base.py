"""Base class for ONNX Runtime inference with GPU/TensorRT support."""

import logging
from pathlib import Path
from typing import Dict, List, Union

import numpy as np
import onnxruntime
from onnxruntime.capi import _pybind_state as C

logger = logging.getLogger(__name__)


class ONNXRuntimeError(Exception):
    """Exception raised when ONNX Runtime encounters an error."""
    pass


class ONNXInferenceBase:
    """Base class for ONNX inference with hardware acceleration.

    Any object exposing ``input_names``, ``output_names`` and
    ``run(input_feed) -> {name: array}`` can stand in for this class.
    """

    def __init__(
        self,
        model: Union[str, Path, bytes],
        use_gpu: bool = False,
        use_tensorrt: bool = False,
    ):
        """Initialize ONNX Runtime session.

        Args:
            model: Path to ONNX model file, or the serialized model bytes
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)
        """
        if isinstance(model, (bytes, bytearray)):
            self.model_path = None
            model_source = bytes(model)
        else:
            self.model_path = Path(model)
            if not self.model_path.exists():
                raise FileNotFoundError(f"Model not found: {model}")
            model_source = str(self.model_path)

        # Setup providers (TensorRT > CUDA > CPU)
        providers = self._get_providers(use_gpu, use_tensorrt)

        self.session = onnxruntime.InferenceSession(
            model_source,
            None,
            providers=providers
        )

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

        logger.debug(
            "Loaded model %s (inputs: %s, outputs: %s)",
            self.model_path or "<bytes>", self.input_names, self.output_names,
        )

    def _get_providers(self, use_gpu: bool, use_tensorrt: bool) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > CPU
        """
        available_providers = C.get_available_providers()
        providers = []

        if use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(('TensorrtExecutionProvider', {}))

        if use_gpu and "CUDAExecutionProvider" in available_providers:
            providers.append((
                'CUDAExecutionProvider',
                {"cudnn_conv_algo_search": "DEFAULT"}
            ))

        # CPU (always available as fallback)
        providers.append('CPUExecutionProvider')

        return providers

    def run(self, input_data: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Run inference on input data.

        Args:
            input_data: Dictionary mapping input names to numpy arrays

        Returns:
            Dictionary mapping output names to arrays
        """
        if self.session is None:
            raise ONNXRuntimeError("Inference session has been released")
        try:
            outputs = self.session.run(self.output_names, input_feed=input_data)
        except Exception as e:
            raise ONNXRuntimeError(f"Inference failed: {e}") from e
        return dict(zip(self.output_names, outputs))

    def close(self) -> None:
        """Release the underlying session."""
        self.session = None


def get_input_feed(session, image_array: np.ndarray) -> Dict[str, np.ndarray]:
    """Create input feed dictionary for a single-input model.

    Args:
        session: Inference session exposing ``input_names``
        image_array: Batched NCHW input

    Returns:
        Dictionary mapping input names to arrays
    """
    names = list(session.input_names)
    if not names:
        raise ONNXRuntimeError("Inference session declares no inputs")
    return {names[0]: image_array}


def run_session(session, image_array: np.ndarray) -> Dict[str, np.ndarray]:
    """Feed one tensor to ``session``; runtime failures become ONNXRuntimeError."""
    try:
        return session.run(get_input_feed(session, image_array))
    except ONNXRuntimeError:
        raise
    except Exception as e:
        raise ONNXRuntimeError(f"Inference failed: {e}") from e


def first_output(session, outputs: Dict[str, np.ndarray]):
    """Return the first declared output of ``session`` or None if absent."""
    names = list(session.output_names)
    if names:
        return outputs.get(names[0])
    return next(iter(outputs.values()), None)
