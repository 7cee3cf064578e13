"""
Tests for VectorConfig loading and validation.
"""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("CODESEARCH_"):
            monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_defaults_are_valid(self):
        from semantic_code_search.config import VectorConfig

        cfg = VectorConfig().validate()
        assert cfg.chunk_size == 1500
        assert cfg.chunk_overlap == 200
        assert cfg.batch_size == 10
        assert cfg.search_limit == 10
        assert cfg.similarity_threshold == 0.7
        assert "**/*.py" in cfg.file_patterns

    def test_embedding_model_per_provider(self):
        from semantic_code_search.config import VectorConfig

        cfg = VectorConfig()
        assert cfg.embedding_model() == "text-embedding-3-small"
        assert cfg.embedding_model("gemini") == "text-embedding-004"


class TestValidation:
    @pytest.mark.parametrize("field,value", [
        ("chunk_size", 499),
        ("chunk_size", 4001),
        ("chunk_overlap", -1),
        ("chunk_overlap", 501),
        ("batch_size", 0),
        ("batch_size", 51),
        ("search_limit", 0),
        ("similarity_threshold", 1.5),
        ("similarity_threshold", -0.1),
        ("max_workers", 0),
        ("chunk_size", "1500"),
        ("batch_size", 2.5),
    ])
    def test_out_of_bounds(self, field, value):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError

        cfg = VectorConfig()
        setattr(cfg, field, value)
        with pytest.raises(InvalidConfigurationError):
            cfg.validate()

    def test_overlap_must_be_smaller_than_chunk_size(self):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError

        with pytest.raises(InvalidConfigurationError):
            VectorConfig(chunk_size=500, chunk_overlap=500).validate()
        VectorConfig(chunk_size=500, chunk_overlap=499).validate()

    def test_unknown_provider(self):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError

        with pytest.raises(InvalidConfigurationError):
            VectorConfig(default_provider="cohere").validate()

    def test_empty_file_patterns(self):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError

        with pytest.raises(InvalidConfigurationError):
            VectorConfig(file_patterns=[]).validate()


class TestLoad:
    def test_yaml_section(self, tmp_path):
        from semantic_code_search.config import VectorConfig

        path = tmp_path / ".codesearch.yaml"
        path.write_text(
            "vector:\n"
            "  chunk_size: 800\n"
            "  chunk_overlap: 100\n"
            "  batch_size: 5\n"
            "  default_provider: azure\n"
            "  file_patterns: ['**/*.go']\n"
            "  embedding_models:\n"
            "    azure: my-deployment\n"
        )
        cfg = VectorConfig.load(str(path))
        assert cfg.chunk_size == 800
        assert cfg.chunk_overlap == 100
        assert cfg.batch_size == 5
        assert cfg.file_patterns == ["**/*.go"]
        assert cfg.embedding_model() == "my-deployment"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        from semantic_code_search.config import VectorConfig

        path = tmp_path / ".codesearch.yaml"
        path.write_text("vector:\n  chunk_size: 800\n  similarity_threshold: 0.5\n")
        monkeypatch.setenv("CODESEARCH_CHUNK_SIZE", "1200")
        monkeypatch.setenv("CODESEARCH_SIMILARITY_THRESHOLD", "0.25")
        cfg = VectorConfig.load(str(path))
        assert cfg.chunk_size == 1200
        assert cfg.similarity_threshold == 0.25

    def test_env_file_patterns(self, monkeypatch):
        from semantic_code_search.config import VectorConfig

        monkeypatch.setenv("CODESEARCH_FILE_PATTERNS", "**/*.rs, **/*.toml")
        cfg = VectorConfig.from_dict({})
        assert cfg.file_patterns == ["**/*.rs", "**/*.toml"]

    def test_bad_env_value(self, monkeypatch):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError

        monkeypatch.setenv("CODESEARCH_BATCH_SIZE", "lots")
        with pytest.raises(InvalidConfigurationError):
            VectorConfig.from_dict({})

    def test_invalid_yaml_values_rejected_eagerly(self, tmp_path):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError

        path = tmp_path / ".codesearch.yaml"
        path.write_text("vector:\n  chunk_size: 1000\n  chunk_overlap: 1000\n")
        with pytest.raises(InvalidConfigurationError):
            VectorConfig.load(str(path))

    def test_unreadable_yaml_gives_defaults(self, tmp_path):
        from semantic_code_search.config import VectorConfig

        path = tmp_path / ".codesearch.yaml"
        path.write_text("vector: [unclosed\n")
        cfg = VectorConfig.load(str(path))
        assert cfg.chunk_size == 1500

    def test_missing_explicit_path_gives_defaults(self, tmp_path):
        from semantic_code_search.config import VectorConfig

        cfg = VectorConfig.load(str(tmp_path / "nope.yaml"))
        assert cfg.batch_size == 10
