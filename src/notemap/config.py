"""Configuration management for notemap."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError


DEFAULT_CONFIG = {
    "notes_path": "~/.notemap/notes",
    "chroma_path": "~/.notemap/chroma",
    "cache_path": "~/.notemap/notes-cache.json",
    "collection": "notes",
    "embedding_model": "BAAI/bge-small-en-v1.5",
    "chunking": {"max_tokens": 400, "overlap_tokens": 50, "encoding": "cl100k_base"},
    "indexing": {
        "workers": 12,
        "timeout": 45.0,
        "batch_size": 50,
        "write_batch_size": 100,
        "write_retries": 3,
    },
    "clustering": {"min_points": 2, "epsilon": 0.6, "quality_threshold": 0.65},
    "search": {"limit": 5, "min_similarity": 0.05},
}

PATH_KEYS = ("notes_path", "chroma_path", "cache_path")


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".notemap" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if config_path and not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    if path and path.exists():
        with open(path) as f:
            try:
                file_cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}", cause=e) from e
        if not isinstance(file_cfg, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if home := os.environ.get("NOTEMAP_HOME"):
        base = Path(home)
        cfg["notes_path"] = str(base / "notes")
        cfg["chroma_path"] = str(base / "chroma")
        cfg["cache_path"] = str(base / "notes-cache.json")
    if model := os.environ.get("NOTEMAP_EMBEDDING_MODEL"):
        cfg["embedding_model"] = model

    # Expand paths
    for key in PATH_KEYS:
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())

    return cfg


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
