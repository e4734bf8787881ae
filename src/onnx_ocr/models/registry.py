"""
Model registry: download, cache, and resolve paths for the default models.

Files are fetched from a single HuggingFace repository via huggingface_hub,
which handles caching, resumable downloads, and integrity checks.
"""

import logging
from dataclasses import fields, replace
from pathlib import Path
from typing import Dict, Iterable, Optional

from huggingface_hub import hf_hub_download, try_to_load_from_cache

from ..config import ModelConfig
from .config import ALL_GROUPS, DEFAULT_GROUP, HF_REPO, ModelFile, ModelGroup

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Resolves default model files, downloading them when missing."""

    def __init__(self, repo_id: str = HF_REPO):
        self._repo_id = repo_id
        self._groups = ALL_GROUPS

    @property
    def repo_id(self) -> str:
        return self._repo_id

    def get(self, group_name: str, file_key: str) -> Path:
        """Return the local path for a model file, downloading if needed.

        Args:
            group_name: e.g. "paddle_ocr"
            file_key:   e.g. "detection", "recognition", "character_dictionary"

        Returns:
            Resolved Path to the model file on disk.
        """
        group = self._resolve_group(group_name)
        mf = self._resolve_file(group, file_key)
        return self._ensure_file(mf)

    def resolve(
        self,
        model_config: ModelConfig,
        group_name: str = DEFAULT_GROUP,
        only: Optional[Iterable[str]] = None,
    ) -> ModelConfig:
        """Fill unset sources of ``model_config`` with default paths.

        Args:
            model_config: Sources to complete
            group_name: Model group providing the defaults
            only: Field names eligible for filling (all fields if None)

        Returns:
            New ModelConfig; sources already set are kept
        """
        names = {f.name for f in fields(model_config)} if only is None else set(only)
        missing = {
            f.name: self.get(group_name, f.name)
            for f in fields(model_config)
            if f.name in names and getattr(model_config, f.name) is None
        }
        return replace(model_config, **missing)

    def get_group_paths(self, group_name: str = DEFAULT_GROUP) -> Dict[str, Path]:
        """Return all resolved paths for a model group."""
        group = self._resolve_group(group_name)
        return {key: self._ensure_file(mf) for key, mf in group.files.items()}

    def status(self) -> str:
        """Return a human-readable status report."""
        lines = [
            "Model Registry Status",
            f"Repository: {self._repo_id}",
            "=" * 60,
        ]
        for group in self._groups.values():
            lines.append(f"\n{group.name}  ({group.description})")
            for key, mf in group.files.items():
                cached = self._find_cached(mf)
                if cached is not None:
                    mark = "OK"
                    loc = str(cached)
                else:
                    mark = "MISSING"
                    loc = f"hf://{self._repo_id}/{mf.filename}"
                lines.append(f"  [{mark:>7}]  {key:<22} {mf.filename:<32} {loc}")
        return "\n".join(lines)

    def _resolve_group(self, name: str) -> ModelGroup:
        if name not in self._groups:
            available = ", ".join(self._groups)
            raise KeyError(f"Unknown model group '{name}'. Available: {available}")
        return self._groups[name]

    @staticmethod
    def _resolve_file(group: ModelGroup, key: str) -> ModelFile:
        if key not in group.files:
            available = ", ".join(group.files)
            raise KeyError(
                f"Unknown file '{key}' in group '{group.name}'. Available: {available}"
            )
        return group.files[key]

    def _ensure_file(self, mf: ModelFile) -> Path:
        logger.debug("Resolving %s from %s", mf.filename, self._repo_id)
        return Path(hf_hub_download(self._repo_id, mf.filename))

    def _find_cached(self, mf: ModelFile) -> Optional[Path]:
        result = try_to_load_from_cache(self._repo_id, mf.filename)
        if isinstance(result, str):
            return Path(result)
        return None


registry = ModelRegistry()
