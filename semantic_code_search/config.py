"""
Configuration: loads vector-index settings from .codesearch.yaml,
environment variables, and built-in defaults (in that priority order:
env > YAML > defaults).

Values are validated once, eagerly, by :meth:`VectorConfig.validate`;
the indexer and searcher receive them explicitly at construction.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from .errors import InvalidConfigurationError

PROVIDERS = ("openai", "azure", "gemini")

_DEFAULT_FILE_PATTERNS = [
    "**/*.py", "**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx",
    "**/*.md", "**/*.mdx", "**/*.txt", "**/*.json",
    "**/*.yaml", "**/*.yml",
]

_DEFAULT_EMBEDDING_MODELS = {
    "openai": "text-embedding-3-small",
    "azure": "text-embedding-3-small",
    "gemini": "text-embedding-004",
}

# (min, max) inclusive
_BOUNDS = {
    "chunk_size": (500, 4000),
    "chunk_overlap": (0, 500),
    "batch_size": (1, 50),
    "search_limit": (1, 50),
    "similarity_threshold": (0.0, 1.0),
    "max_workers": (1, 16),
}

# Config file search locations
_CONFIG_FILENAMES = [".codesearch.yaml", ".codesearch.yml"]
_ENV_PREFIX = "CODESEARCH_"


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


def check_bounds(name: str, value: Any) -> None:
    """Raise :class:`InvalidConfigurationError` if *value* is outside *name*'s bounds."""
    lo, hi = _BOUNDS[name]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigurationError(f"{name} must be a number, got {value!r}")
    if isinstance(lo, int) and not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
    if not lo <= value <= hi:
        raise InvalidConfigurationError(
            f"{name} must be between {lo} and {hi}, got {value}")


@dataclass
class VectorConfig:
    """Settings for chunking, embedding batches and search defaults."""

    chunk_size: int = 1500
    chunk_overlap: int = 200
    batch_size: int = 10
    file_patterns: List[str] = field(
        default_factory=lambda: list(_DEFAULT_FILE_PATTERNS))
    default_provider: str = "openai"
    embedding_models: Dict[str, str] = field(
        default_factory=lambda: dict(_DEFAULT_EMBEDDING_MODELS))
    search_limit: int = 10
    similarity_threshold: float = 0.7
    max_workers: int = 1

    def validate(self) -> "VectorConfig":
        """Check every bound; return ``self`` so calls can be chained."""
        for name in _BOUNDS:
            check_bounds(name, getattr(self, name))
        if self.chunk_size - self.chunk_overlap <= 0:
            raise InvalidConfigurationError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})")
        if self.default_provider not in PROVIDERS:
            raise InvalidConfigurationError(
                f"default_provider must be one of {', '.join(PROVIDERS)}, "
                f"got {self.default_provider!r}")
        if (not isinstance(self.file_patterns, list) or not self.file_patterns
                or not all(isinstance(p, str) and p for p in self.file_patterns)):
            raise InvalidConfigurationError(
                "file_patterns must be a non-empty list of glob strings")
        return self

    def embedding_model(self, provider: Optional[str] = None) -> str:
        """Return the configured embedding model for *provider*."""
        name = provider or self.default_provider
        return self.embedding_models.get(name) or _DEFAULT_EMBEDDING_MODELS[name]

    @classmethod
    def from_dict(cls, data: dict | None = None) -> "VectorConfig":
        """Build a config from a ``vector:`` mapping plus environment overrides.

        Unknown keys are ignored.  Environment variables named
        ``CODESEARCH_<FIELD>`` (upper-case) win over *data*.
        """
        yd = data or {}
        cfg = cls()

        # Helper: env var > yaml > default
        def _get(key: str, default, cast):
            env_val = os.getenv(_ENV_PREFIX + key.upper())
            if env_val is not None:
                try:
                    return cast(env_val)
                except ValueError as exc:
                    raise InvalidConfigurationError(
                        f"{_ENV_PREFIX}{key.upper()}={env_val!r} is not a "
                        f"valid {cast.__name__}") from exc
            yaml_val = yd.get(key)
            if yaml_val is not None:
                return yaml_val
            return default

        for f in fields(cls):
            if f.name in ("file_patterns", "embedding_models"):
                continue
            default = getattr(cfg, f.name)
            setattr(cfg, f.name, _get(f.name, default, type(default)))

        patterns = yd.get("file_patterns")
        if patterns is not None:
            cfg.file_patterns = patterns
        env_patterns = os.getenv(_ENV_PREFIX + "FILE_PATTERNS")
        if env_patterns:
            cfg.file_patterns = [p.strip() for p in env_patterns.split(",") if p.strip()]

        models = yd.get("embedding_models")
        if isinstance(models, dict):
            cfg.embedding_models.update({str(k): str(v) for k, v in models.items()})
        return cfg

    @classmethod
    def load(cls, config_path: str | None = None) -> "VectorConfig":
        """Load config from YAML file (if found) + env vars + defaults, validated."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        section = yaml_data.get("vector", {})
        if not isinstance(section, dict):
            section = {}
        return cls.from_dict(section).validate()
