"""
Shared fixtures: a deterministic in-memory embedding provider and
temporary vector stores.
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional

import pytest

from semantic_code_search.embeddings.base import BatchingPolicy, EmbeddingProvider
from semantic_code_search.errors import EmbeddingProviderError

_LETTERS = "abcdefgh"


def letter_vector(text: str) -> List[float]:
    """Letter counts for a-h plus a constant 1.0 so the norm is never zero."""
    lowered = text.lower()
    return [float(lowered.count(c)) for c in _LETTERS] + [1.0]


class FakeEmbeddingProvider(EmbeddingProvider):
    """Embeds via an explicit mapping, else :func:`letter_vector`.

    Records every request in ``calls`` (a list of text lists).  Any text
    containing one of ``fail_on`` raises :class:`EmbeddingProviderError`.
    """

    name = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None,
                 single_call_only: bool = False,
                 fail_on: tuple = ()):
        super().__init__("fake-model", max_retries=1, retry_delay=0.0)
        self.vectors = dict(vectors or {})
        self.fail_on = fail_on
        self.calls: List[List[str]] = []
        self.batching_policy = BatchingPolicy(single_call_only=single_call_only)

    def _vector(self, text: str) -> List[float]:
        for marker in self.fail_on:
            if marker in text:
                raise EmbeddingProviderError(self.name, f"refused {marker!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        return letter_vector(text)

    def _embed_one(self, text: str) -> List[float]:
        self.calls.append([text])
        return self._vector(text)

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]


@pytest.fixture
def provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def fallback_store(tmp_path):
    """A store that never loads sqlite-vec, so every query scans."""
    from semantic_code_search.sqlite_vector_store import SQLiteVectorStore

    store = SQLiteVectorStore(
        project_root=str(tmp_path),
        db_path=os.path.join(str(tmp_path), "fallback.db"),
        load_extension=False,
    )
    yield store
    store.close()


@pytest.fixture
def native_store(tmp_path):
    """A store with sqlite-vec loaded; skips when the interpreter cannot load it."""
    from semantic_code_search.sqlite_vector_store import SQLiteVectorStore

    store = SQLiteVectorStore(
        project_root=str(tmp_path),
        db_path=os.path.join(str(tmp_path), "native.db"),
    )
    if not store.probe_native_search():
        store.close()
        pytest.skip("sqlite-vec extension cannot be loaded here")
    yield store
    store.close()
