"""
Default model management.

Usage:
    from onnx_ocr.models import registry

    path = registry.get("paddle_ocr", "detection")   # download + resolve
    config = registry.resolve(ModelConfig())          # fill in missing paths
    print(registry.status())                          # show what's cached
"""

from .registry import ModelRegistry, registry
from .config import ALL_GROUPS, DEFAULT_GROUP, HF_REPO, PADDLE_OCR

__all__ = [
    "ModelRegistry",
    "registry",
    "ALL_GROUPS",
    "DEFAULT_GROUP",
    "HF_REPO",
    "PADDLE_OCR",
]
