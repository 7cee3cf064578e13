"""
Per-project semantic code search: one store, one embedding provider, one
indexer and one searcher wired together from a validated config.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional

from .config import VectorConfig
from .embeddings import EmbeddingProvider, create_provider
from .indexer import IndexReport, Indexer, ProgressCallback
from .log_setup import configure_logging
from .searcher import SearchResult, SemanticSearcher
from .sqlite_vector_store import SQLiteVectorStore, create_vector_store

logger = logging.getLogger(__name__)


class SemanticCodeSearch:
    """Index files and query them by meaning.

    Parameters
    ----------
    store:
        The project's vector store.
    provider:
        Embedding provider shared by indexing and querying.
    config:
        Chunking, batching and search settings.  Validated here.
    """

    def __init__(self, store: SQLiteVectorStore, provider: EmbeddingProvider,
                 config: Optional[VectorConfig] = None) -> None:
        self.config = (config or VectorConfig()).validate()
        self.store = store
        self.provider = provider
        self.indexer = Indexer.from_config(store, provider, self.config)
        self.searcher = SemanticSearcher.from_config(store, provider, self.config)

    def index_files(self, files: Iterable, force: bool = False,
                    progress_callback: Optional[ProgressCallback] = None,
                    show_progress: bool = False) -> IndexReport:
        """Chunk, embed and store *files*; see :meth:`Indexer.index_files`."""
        return self.indexer.index_files(files, force=force,
                                        progress_callback=progress_callback,
                                        show_progress=show_progress)

    def search(self, query: str, limit: Optional[int] = None,
               similarity_threshold: Optional[float] = None,
               path_prefix: Optional[str] = None) -> List[SearchResult]:
        return self.searcher.search(query, limit=limit,
                                    similarity_threshold=similarity_threshold,
                                    path_prefix=path_prefix)

    def related_files(self, query: str, limit: Optional[int] = None,
                      similarity_threshold: Optional[float] = None) -> List[str]:
        return self.searcher.related_files(query, limit=limit,
                                           similarity_threshold=similarity_threshold)

    def clear(self) -> None:
        self.store.clear()

    def count(self) -> int:
        return self.store.count()

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "SemanticCodeSearch":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_project(
    project_root: str,
    provider: Optional[EmbeddingProvider] = None,
    config: Optional[VectorConfig] = None,
    db_path: Optional[str] = None,
    log_dir: Optional[str] = None,
) -> SemanticCodeSearch:
    """Open (creating if needed) the index under *project_root*.

    Without *provider*, the config's ``default_provider`` is built with
    its configured model and the API key from the environment.  With
    *log_dir*, package logs are also written to a file there.
    """
    if log_dir:
        configure_logging(log_dir)
    config = (config or VectorConfig.load()).validate()
    if provider is None:
        provider = create_provider(config.default_provider,
                                   model=config.embedding_model())
    store = create_vector_store(os.path.abspath(project_root), db_path=db_path)
    logger.info("Opened vector index at %s", store.db_path)
    return SemanticCodeSearch(store, provider, config)
