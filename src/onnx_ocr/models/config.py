"""
Default model sources.

The default PP-OCR detection/recognition models and their character
dictionary are fetched from a HuggingFace repository on first use.
"""

from dataclasses import dataclass
from typing import Dict


HF_REPO = "hpllduck/PaperStructure"


@dataclass(frozen=True)
class ModelFile:
    """A single model file inside the HuggingFace repo."""
    filename: str          # path inside the repo, e.g. "paddle_ocr/det.onnx"
    description: str = ""


@dataclass(frozen=True)
class ModelGroup:
    """A logical group of model files that belong together."""
    name: str
    description: str
    files: Dict[str, ModelFile]  # key -> ModelFile


# Keys match the fields of onnx_ocr.config.ModelConfig
PADDLE_OCR = ModelGroup(
    name="paddle_ocr",
    description="PP-OCRv5 text detection / recognition",
    files={
        "detection": ModelFile(
            filename="paddle_ocr/det.onnx",
            description="DB text detector",
        ),
        "recognition": ModelFile(
            filename="paddle_ocr/rec.onnx",
            description="SVTR text recognizer",
        ),
        "character_dictionary": ModelFile(
            filename="paddle_ocr/ppocrv5_dict.txt",
            description="Character dictionary (6k+ chars)",
        ),
    },
)

DEFAULT_GROUP = PADDLE_OCR.name

ALL_GROUPS: Dict[str, ModelGroup] = {
    PADDLE_OCR.name: PADDLE_OCR,
}
