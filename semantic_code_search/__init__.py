"""
Semantic code search: a local embedding index over a source tree.

Chunks files into overlapping windows, embeds them through a pluggable
provider, stores float32 vectors in SQLite and answers nearest-neighbour
queries natively (sqlite-vec) or by brute-force cosine similarity.
"""

from .config import VectorConfig
from .errors import (
    CodeSearchError,
    EmbeddingProviderError,
    InvalidConfigurationError,
    MalformedVectorError,
    NativeSearchUnavailable,
    StoreError,
)
from .indexer import FileIndexResult, IndexReport, Indexer, SourceFile
from .log_setup import configure_logging
from .searcher import SearchResult, SemanticSearcher
from .service import SemanticCodeSearch, open_project
from .sqlite_vector_store import SQLiteVectorStore, create_vector_store

__version__ = "0.1.0"

__all__ = [
    "CodeSearchError",
    "EmbeddingProviderError",
    "FileIndexResult",
    "IndexReport",
    "Indexer",
    "InvalidConfigurationError",
    "MalformedVectorError",
    "NativeSearchUnavailable",
    "SQLiteVectorStore",
    "SearchResult",
    "SemanticCodeSearch",
    "SemanticSearcher",
    "SourceFile",
    "StoreError",
    "VectorConfig",
    "configure_logging",
    "create_vector_store",
    "open_project",
]
