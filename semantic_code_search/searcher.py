"""
Semantic search over the vector store.

A query is embedded once, then answered by one of two strategies:

* :class:`NativeSearch`: top-K by cosine distance inside SQLite
  (sqlite-vec); ``similarity = 1 - distance``.
* :class:`FallbackSearch`: scan every row, decode embeddings and compute
  cosine similarity with numpy.

Both report raw cosine clamped into ``[0, 1]``, so a similarity threshold
means the same thing whichever strategy ran.  A native failure is logged
and the query silently re-runs on the fallback strategy.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .codec import as_vector, decode, encode
from .config import check_bounds
from .errors import MalformedVectorError, NativeSearchUnavailable, StoreError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchResult:
    """
    A single semantic search result.

    Attributes
    ----------
    relpath:
        File path, relative to the index root, the chunk came from.
    chunk:
        The chunk's text.
    similarity:
        Cosine similarity clamped to ``[0, 1]``; 1 means identical direction.
    chunk_id:
        ``"<relpath>#<chunk index>"``.
    """

    relpath: str
    chunk: str
    similarity: float
    chunk_id: str


def clamp_similarity(cosine: float) -> float:
    """Map a raw cosine value into ``[0, 1]``; NaN counts as 0."""
    if math.isnan(cosine):
        return 0.0
    return min(1.0, max(0.0, cosine))


def _native_similarity(distance) -> float:
    # SQLite stores a NaN distance (zero-norm vector) as NULL
    if distance is None:
        return 0.0
    return clamp_similarity(1.0 - float(distance))


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between *query* (1-D) and each row of *matrix*.

    Computed in float64.  Rows or queries with zero norm score 0.
    """
    q = query.astype(np.float64)
    m = matrix.astype(np.float64)
    query_norm = np.linalg.norm(q)
    if query_norm == 0:
        return np.zeros(m.shape[0])
    row_norms = np.linalg.norm(m, axis=1)
    zero = row_norms == 0
    row_norms[zero] = 1.0
    scores = (m @ q) / (row_norms * query_norm)
    scores[zero] = 0.0
    return np.clip(scores, -1.0, 1.0)


def rank_results(
    results: Sequence[SearchResult],
    limit: int,
    similarity_threshold: float,
) -> List[SearchResult]:
    """Drop results below the threshold, sort best-first and truncate.

    Ties are broken by ``chunk_id`` ascending.
    """
    kept = [r for r in results if r.similarity >= similarity_threshold]
    kept.sort(key=lambda r: (-r.similarity, r.chunk_id))
    return kept[:limit]


def unique_paths(results: Sequence[SearchResult]) -> List[str]:
    """Relpaths of *results* in rank order, each listed once."""
    seen: set[str] = set()
    paths: List[str] = []
    for r in results:
        if r.relpath not in seen:
            seen.add(r.relpath)
            paths.append(r.relpath)
    return paths


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class NativeSearch:
    """Top-K by the store's native cosine-distance operator."""

    name = "native"

    def run(self, store, query: np.ndarray, limit: int,
            path_prefix: Optional[str] = None) -> List[SearchResult]:
        rows = store.native_search(encode(query), limit, path_prefix=path_prefix)
        return [
            SearchResult(
                relpath=row.relpath,
                chunk=row.chunk,
                similarity=_native_similarity(row.distance),
                chunk_id=row.chunk_id,
            )
            for row in rows
        ]


class FallbackSearch:
    """Brute-force cosine similarity over every stored row."""

    name = "fallback"

    def run(self, store, query: np.ndarray, limit: int,
            path_prefix: Optional[str] = None) -> List[SearchResult]:
        rows = store.scan(path_prefix=path_prefix)
        if not rows:
            return []
        dim = len(query)
        matrix = np.stack([decode(row.embedding, dimension=dim) for row in rows])
        scores = cosine_similarities(query, matrix)
        return [
            SearchResult(
                relpath=row.relpath,
                chunk=row.chunk,
                similarity=clamp_similarity(float(score)),
                chunk_id=row.chunk_id,
            )
            for row, score in zip(rows, scores)
        ]


NATIVE = NativeSearch()
FALLBACK = FallbackSearch()

# ---------------------------------------------------------------------------
# Searcher
# ---------------------------------------------------------------------------

class SemanticSearcher:
    """
    Answers natural-language queries against a vector store.

    Parameters
    ----------
    store:
        Vector store exposing ``native_search_status``, ``native_search``,
        ``disable_native_search`` and ``scan``.
    provider:
        Embedding provider used to embed the query.
    limit:
        Default maximum number of results (1-50).
    similarity_threshold:
        Default minimum similarity (0-1).
    """

    def __init__(self, store, provider, limit: int = 10,
                 similarity_threshold: float = 0.7) -> None:
        check_bounds("search_limit", limit)
        check_bounds("similarity_threshold", similarity_threshold)
        self.store = store
        self.provider = provider
        self.limit = limit
        self.similarity_threshold = similarity_threshold

    @classmethod
    def from_config(cls, store, provider, config) -> "SemanticSearcher":
        return cls(store, provider, limit=config.search_limit,
                   similarity_threshold=config.similarity_threshold)

    def _strategy(self):
        # Untried handles go native; that first query doubles as the probe.
        return FALLBACK if self.store.native_search_status() is False else NATIVE

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        path_prefix: Optional[str] = None,
    ) -> List[SearchResult]:
        """
        Return the chunks most similar to *query*, best first.

        Parameters
        ----------
        query:
            Natural-language search string.
        limit:
            Maximum number of results; defaults to the searcher's limit.
        similarity_threshold:
            Minimum similarity; defaults to the searcher's threshold.
        path_prefix:
            Only consider chunks whose relpath starts with this prefix.

        Raises
        ------
        EmbeddingProviderError
            If the query cannot be embedded.
        StoreError
            If the fallback scan fails.
        MalformedVectorError
            If a stored vector is corrupt or of the wrong dimension.
        """
        limit = self.limit if limit is None else limit
        threshold = (self.similarity_threshold if similarity_threshold is None
                     else similarity_threshold)
        check_bounds("search_limit", limit)
        check_bounds("similarity_threshold", threshold)

        query_vec = as_vector(self.provider.embed_one(query))
        if len(query_vec) == 0:
            raise MalformedVectorError("query embedding is empty")

        strategy = self._strategy()
        if strategy is NATIVE:
            try:
                results = NATIVE.run(self.store, query_vec, limit, path_prefix)
            except (NativeSearchUnavailable, StoreError) as exc:
                logger.warning("Native vector search failed, using fallback: %s", exc)
                self.store.disable_native_search()
                strategy = FALLBACK
        if strategy is FALLBACK:
            results = FALLBACK.run(self.store, query_vec, limit, path_prefix)

        ranked = rank_results(results, limit, threshold)
        logger.debug("Query %r via %s search: %d result(s)",
                     query, strategy.name, len(ranked))
        return ranked

    def related_files(
        self,
        query: str,
        limit: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        path_prefix: Optional[str] = None,
    ) -> List[str]:
        """Unique relpaths of :meth:`search` results, in rank order."""
        return unique_paths(
            self.search(query, limit=limit,
                        similarity_threshold=similarity_threshold,
                        path_prefix=path_prefix)
        )
