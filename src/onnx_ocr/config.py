"""Configuration classes for OCR modules."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

ModelSource = Union[str, Path, bytes, None]


@dataclass(frozen=True)
class ModelConfig:
    """Model and dictionary sources. None resolves to the registry default."""
    detection: ModelSource = None  # det.onnx path or raw bytes
    recognition: ModelSource = None  # rec.onnx path or raw bytes
    character_dictionary: ModelSource = None  # dictionary path or raw bytes


@dataclass(frozen=True)
class DetectorConfig:
    """Configuration for text detection stage."""
    auto_deskew: bool = True  # Run a skew pass and rotate before detection
    mean: Tuple[float, float, float] = (0.485, 0.456, 0.406)  # Per-channel mean [R, G, B]
    std: Tuple[float, float, float] = (0.229, 0.224, 0.225)  # Per-channel std [R, G, B]
    max_side_length: int = 960  # Longest side of the model input before padding
    minimum_area_threshold: int = 20  # Contour area cut-off (padded image space)
    padding_vertical: float = 0.4  # Vertical padding as a fraction of box height
    padding_horizontal: float = 0.6  # Horizontal padding as a fraction of box height
    min_box_size: int = 5  # Boxes with width or height <= this are dropped
    skew_min_angle: float = -20.0
    skew_max_angle: float = 20.0
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration


@dataclass(frozen=True)
class RecognizerConfig:
    """Configuration for text recognition stage."""
    image_height: int = 48  # Fixed model input height
    min_crop_width: int = 8  # Lower bound on resized crop width
    max_workers: int = 4  # Concurrent per-box workers
    serialize_inference: bool = False  # Guard the session with a lock
    add_blank: bool = True  # Prepend the CTC blank slot to the dictionary
    use_space_char: bool = True  # Append the space slot to the dictionary
    drop_score: float = 0.0  # Minimum confidence score
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration


@dataclass(frozen=True)
class DebuggingConfig:
    """Verbose logging and intermediate image dumps."""
    verbose: bool = False
    debug: bool = False
    debug_folder: str = "out"


@dataclass(frozen=True)
class OCRConfig:
    """Full configuration for the OCR pipeline."""
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectorConfig = field(default_factory=DetectorConfig)
    recognition: RecognizerConfig = field(default_factory=RecognizerConfig)
    debugging: DebuggingConfig = field(default_factory=DebuggingConfig)

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None) -> "OCRConfig":
        """Build a config from a (partial) nested mapping over the defaults."""
        return merge_config(cls(), options or {})


def _merge_section(section, overrides: Mapping[str, Any]):
    if isinstance(overrides, type(section)):
        return overrides

    known = {f.name for f in fields(section)}
    unknown = set(overrides) - known
    if unknown:
        raise KeyError(
            f"Unknown option(s) for {type(section).__name__}: {', '.join(sorted(unknown))}"
        )

    values = {}
    for key, value in overrides.items():
        if key in ("mean", "std"):
            value = tuple(value)
        values[key] = value
    return replace(section, **values)


def merge_config(base: OCRConfig, overrides: Mapping[str, Any]) -> OCRConfig:
    """Return a new config with ``overrides`` applied on top of ``base``.

    Overrides are a nested mapping keyed by section name (``model``,
    ``detection``, ``recognition``, ``debugging``). A section may also be
    given as a complete config object, which replaces the section as a whole.
    Values in ``overrides`` always take precedence; ``base`` is not modified.

    Args:
        base: Configuration to start from
        overrides: Partial options

    Returns:
        Merged configuration

    Raises:
        KeyError: If a section or field name is unknown
    """
    sections = {f.name for f in fields(base)}
    unknown = set(overrides) - sections
    if unknown:
        raise KeyError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

    merged = {
        name: _merge_section(getattr(base, name), value)
        for name, value in overrides.items()
        if value is not None
    }
    return replace(base, **merged)
