"""
Unit tests for onnx_ocr.models (default model registry).
"""
import importlib
from pathlib import Path

import pytest

from onnx_ocr.config import ModelConfig
from onnx_ocr.models import DEFAULT_GROUP, PADDLE_OCR, ModelRegistry

registry_module = importlib.import_module("onnx_ocr.models.registry")


@pytest.fixture
def fake_hub(monkeypatch, tmp_path):
    """Serve downloads from tmp_path instead of the network."""
    downloads = []

    def fake_download(repo_id, filename):
        downloads.append((repo_id, filename))
        return str(tmp_path / filename)

    monkeypatch.setattr(registry_module, "hf_hub_download", fake_download)
    monkeypatch.setattr(registry_module, "try_to_load_from_cache", lambda repo_id, filename: None)
    return downloads


class TestModelRegistry:
    """Tests for ModelRegistry."""

    def test_get(self, fake_hub, tmp_path):
        path = ModelRegistry("me/models").get("paddle_ocr", "detection")

        assert path == tmp_path / "paddle_ocr/det.onnx"
        assert fake_hub == [("me/models", "paddle_ocr/det.onnx")]

    def test_resolve_fills_only_missing(self, fake_hub, tmp_path):
        """Explicit sources are kept; unset ones point at the default files."""
        config = ModelConfig(detection=b"onnx-bytes")

        resolved = ModelRegistry().resolve(config)

        assert resolved.detection == b"onnx-bytes"
        assert resolved.recognition == tmp_path / "paddle_ocr/rec.onnx"
        assert resolved.character_dictionary == tmp_path / "paddle_ocr/ppocrv5_dict.txt"
        assert len(fake_hub) == 2

    def test_resolve_restricted_to_named_fields(self, fake_hub, tmp_path):
        """Fields outside ``only`` stay unset and are not downloaded."""
        resolved = ModelRegistry().resolve(ModelConfig(), only=["character_dictionary"])

        assert resolved.detection is None
        assert resolved.recognition is None
        assert resolved.character_dictionary == tmp_path / "paddle_ocr/ppocrv5_dict.txt"
        assert [filename for _, filename in fake_hub] == ["paddle_ocr/ppocrv5_dict.txt"]

    def test_group_paths(self, fake_hub):
        paths = ModelRegistry().get_group_paths(DEFAULT_GROUP)

        assert set(paths) == set(PADDLE_OCR.files)
        assert all(isinstance(p, Path) for p in paths.values())

    def test_unknown_group_and_file(self, fake_hub):
        registry = ModelRegistry()

        with pytest.raises(KeyError):
            registry.get("yolox", "detection")
        with pytest.raises(KeyError):
            registry.get("paddle_ocr", "classifier")

    def test_status_reports_missing(self, fake_hub):
        report = ModelRegistry("me/models").status()

        assert "Repository: me/models" in report
        assert "MISSING" in report
        assert "paddle_ocr/rec.onnx" in report
