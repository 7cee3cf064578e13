"""
End-to-end tests for the SemanticCodeSearch facade and logging setup.
"""

from __future__ import annotations

import logging
import os

import pytest

from conftest import FakeEmbeddingProvider


@pytest.fixture
def search(tmp_path):
    from semantic_code_search.config import VectorConfig
    from semantic_code_search.service import open_project

    config = VectorConfig(chunk_size=500, chunk_overlap=100, similarity_threshold=0.5)
    svc = open_project(str(tmp_path), provider=FakeEmbeddingProvider(), config=config)
    yield svc
    svc.close()


class TestSemanticCodeSearch:
    def test_index_then_search(self, search):
        report = search.index_files([
            ("src/cache.py", "aaaa cache aaaa"),
            ("src/db.py", "hhhh ggg"),
            ("docs/cache.md", "aaa bbb"),
        ])
        assert report.succeeded
        assert search.count() == 3

        results = search.search("aaaa")
        assert results[0].relpath == "src/cache.py"
        assert all(r.similarity >= 0.5 for r in results)
        assert "src/db.py" not in [r.relpath for r in results]

    def test_related_files_deduplicates(self, search):
        search.index_files([("big.py", "a" * 1200), ("small.py", "a" * 30 + "b" * 30)])
        results = search.search("aaa", similarity_threshold=0.0)
        assert [r.relpath for r in results].count("big.py") == 3
        assert search.related_files("aaa", similarity_threshold=0.0) == ["big.py", "small.py"]

    def test_path_prefix(self, search):
        search.index_files([("src/a.py", "abc"), ("tests/a.py", "abc")])
        results = search.search("abc", path_prefix="tests/")
        assert [r.relpath for r in results] == ["tests/a.py"]

    def test_clear(self, search):
        search.index_files([("a.py", "abc")])
        search.clear()
        assert search.count() == 0
        assert search.search("abc") == []

    def test_store_location(self, tmp_path, search):
        assert search.store.db_path == os.path.join(str(tmp_path), ".codesearch", "vectors.db")

    def test_settings_come_from_config(self, search):
        assert search.indexer.chunk_size == 500
        assert search.indexer.chunk_overlap == 100
        assert search.searcher.similarity_threshold == 0.5

    def test_invalid_config_rejected(self, tmp_path):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.errors import InvalidConfigurationError
        from semantic_code_search.service import open_project

        with pytest.raises(InvalidConfigurationError):
            open_project(str(tmp_path), provider=FakeEmbeddingProvider(),
                         config=VectorConfig(batch_size=99))

    def test_context_manager_and_reopen(self, tmp_path):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.service import open_project

        db_path = str(tmp_path / "custom.db")
        with open_project(str(tmp_path), provider=FakeEmbeddingProvider(),
                          config=VectorConfig(), db_path=db_path) as svc:
            svc.index_files([("a.py", "abc")])

        with open_project(str(tmp_path), provider=FakeEmbeddingProvider(),
                          config=VectorConfig(), db_path=db_path) as svc:
            assert svc.count() == 1
            assert svc.store.file_hash("a.py") is not None

    def test_default_provider_from_config(self, tmp_path, monkeypatch):
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.embeddings import GeminiEmbeddingProvider
        from semantic_code_search.service import open_project

        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        config = VectorConfig(default_provider="gemini")
        with open_project(str(tmp_path), config=config) as svc:
            assert isinstance(svc.provider, GeminiEmbeddingProvider)
            assert svc.provider.model == "text-embedding-004"


class TestConfigureLogging:
    def test_file_handler_added_once(self, tmp_path):
        from semantic_code_search.log_setup import configure_logging

        log_dir = str(tmp_path / "logs")
        logger = configure_logging(log_dir)
        try:
            configure_logging(log_dir)
            handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)
                        and os.path.dirname(h.baseFilename) == os.path.abspath(log_dir)]
            assert len(handlers) == 1

            logging.getLogger("semantic_code_search.indexer").info("indexed a.py")
            handlers[0].flush()
            (log_file,) = os.listdir(log_dir)
            with open(os.path.join(log_dir, log_file), encoding="utf-8") as f:
                assert "indexed a.py" in f.read()
        finally:
            for h in list(logger.handlers):
                if isinstance(h, logging.FileHandler):
                    logger.removeHandler(h)
                    h.close()

    def test_open_project_writes_log_file(self, tmp_path):
        import semantic_code_search
        from semantic_code_search.config import VectorConfig
        from semantic_code_search.service import open_project

        log_dir = str(tmp_path / "logs")
        logger = logging.getLogger("semantic_code_search")
        try:
            with open_project(str(tmp_path), provider=FakeEmbeddingProvider(),
                              config=VectorConfig(), log_dir=log_dir):
                pass
            for h in logger.handlers:
                h.flush()
            (log_file,) = os.listdir(log_dir)
            with open(os.path.join(log_dir, log_file), encoding="utf-8") as f:
                assert "Opened vector index at" in f.read()
            assert "configure_logging" in semantic_code_search.__all__
        finally:
            for h in list(logger.handlers):
                if isinstance(h, logging.FileHandler):
                    logger.removeHandler(h)
                    h.close()
