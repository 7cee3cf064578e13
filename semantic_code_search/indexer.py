"""
Indexer: turns (relpath, text) pairs into stored, embedded chunks.

For each file:
  1. Chunk the text into overlapping windows
  2. Embed the chunk texts, batched per the provider's batching policy
  3. Encode each vector and atomically replace the file's stored chunks

Indexing is file-granular: a failure embedding or storing one file is
recorded in the report and the run carries on; files committed earlier
in the run stay committed.
"""

from __future__ import annotations

import hashlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from .chunker import check_window, chunk_text, make_chunk_id
from .codec import encode
from .errors import CodeSearchError, EmbeddingProviderError, InvalidConfigurationError
from .sqlite_vector_store import StoredChunk

logger = logging.getLogger(__name__)

STATUS_INDEXED = "indexed"
STATUS_UNCHANGED = "unchanged"
STATUS_FAILED = "failed"

ProgressCallback = Callable[[int, int, str], None]

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceFile:
    """A resolved file to index: path relative to the index root plus its text."""

    relpath: str
    text: str


@dataclass
class FileIndexResult:
    """Outcome of indexing one file."""

    relpath: str
    status: str
    chunk_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAILED


@dataclass
class IndexReport:
    """Per-file outcomes of one :meth:`Indexer.index_files` run, in input order."""

    results: List[FileIndexResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def files_indexed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_INDEXED)

    @property
    def files_unchanged(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_UNCHANGED)

    @property
    def chunks_created(self) -> int:
        return sum(r.chunk_count for r in self.results if r.status == STATUS_INDEXED)

    @property
    def failed(self) -> List[FileIndexResult]:
        return [r for r in self.results if r.status == STATUS_FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed


def content_hash(text: str, fingerprint: str = "") -> str:
    """SHA-256 of *text*, used to skip files whose content is unchanged.

    *fingerprint* names the settings the stored chunks were built with
    (window, provider, model); changing any of them changes the hash.
    """
    payload = f"{fingerprint}\0{text}" if fingerprint else text
    return hashlib.sha256(payload.encode("utf-8", errors="replace")).hexdigest()


def _as_source_files(
    files: Iterable[Union[SourceFile, Tuple[str, str], dict]],
) -> List[SourceFile]:
    out: List[SourceFile] = []
    for f in files:
        if isinstance(f, SourceFile):
            out.append(f)
        elif isinstance(f, dict):
            out.append(SourceFile(f["relpath"], f["text"]))
        else:
            relpath, text = f
            out.append(SourceFile(relpath, text))
    return out


# ---------------------------------------------------------------------------
# Indexer
# ---------------------------------------------------------------------------

class Indexer:
    """
    Chunks, embeds and stores files.

    Parameters
    ----------
    store:
        A :class:`~semantic_code_search.sqlite_vector_store.SQLiteVectorStore`
        (or anything with the same ``replace_file_chunks``/``file_hash``).
    provider:
        An :class:`~semantic_code_search.embeddings.EmbeddingProvider`.
    chunk_size, chunk_overlap:
        Window size and overlap in characters.
    batch_size:
        Maximum chunk texts per embedding request.  Ignored (treated as 1)
        for providers whose batching policy is single-call-only.
    max_workers:
        Number of files indexed concurrently.
    """

    def __init__(
        self,
        store,
        provider,
        chunk_size: int = 1500,
        chunk_overlap: int = 200,
        batch_size: int = 10,
        max_workers: int = 1,
    ) -> None:
        check_window(chunk_size, chunk_overlap)
        if batch_size < 1:
            raise InvalidConfigurationError(f"batch_size must be >= 1, got {batch_size}")
        if max_workers < 1:
            raise InvalidConfigurationError(f"max_workers must be >= 1, got {max_workers}")
        self.store = store
        self.provider = provider
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_workers = max_workers
        # Consulted once: single-call providers get one text per request.
        policy = getattr(provider, "batching_policy", None)
        self.texts_per_call = 1 if policy is not None and policy.single_call_only else batch_size
        # Part of the stored hash: new window or model settings re-chunk unchanged text.
        self.fingerprint = ":".join([
            str(chunk_size),
            str(chunk_overlap),
            getattr(provider, "name", type(provider).__name__),
            str(getattr(provider, "model", "")),
        ])

    @classmethod
    def from_config(cls, store, provider, config) -> "Indexer":
        """Build an indexer from a validated :class:`~semantic_code_search.config.VectorConfig`."""
        return cls(
            store,
            provider,
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            batch_size=config.batch_size,
            max_workers=config.max_workers,
        )

    # ------------------------------------------------------------------
    # Batch API
    # ------------------------------------------------------------------

    def index_files(
        self,
        files: Iterable[Union[SourceFile, Tuple[str, str], dict]],
        force: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
        show_progress: bool = False,
    ) -> IndexReport:
        """
        Index every file in *files*.

        Parameters
        ----------
        files:
            :class:`SourceFile` objects, ``(relpath, text)`` tuples or
            ``{"relpath": ..., "text": ...}`` dicts.
        force:
            Re-embed files even if their content hash is unchanged.
        progress_callback:
            Optional callable called with (current, total, relpath) after
            each processed file.
        show_progress:
            Render a tqdm progress bar.

        Returns
        -------
        IndexReport
            One result per input file, in input order.
        """
        sources = _as_source_files(files)
        total = len(sources)
        start_time = time.time()
        results: List[Optional[FileIndexResult]] = [None] * total

        pbar = tqdm(total=total, unit="file", desc="Indexing") if show_progress else None
        done = 0

        def _record(idx: int, result: FileIndexResult) -> None:
            nonlocal done
            results[idx] = result
            done += 1
            if pbar is not None:
                pbar.set_postfix_str(result.relpath, refresh=False)
                pbar.update(1)
            if progress_callback:
                progress_callback(done, total, result.relpath)

        try:
            if self.max_workers > 1 and total > 1:
                with ThreadPoolExecutor(max_workers=min(self.max_workers, total)) as pool:
                    futures = [pool.submit(self.index_file, s.relpath, s.text, force)
                               for s in sources]
                    for idx, fut in enumerate(futures):
                        _record(idx, fut.result())
            else:
                for idx, source in enumerate(sources):
                    _record(idx, self.index_file(source.relpath, source.text, force))
        finally:
            if pbar is not None:
                pbar.close()

        report = IndexReport(results=[r for r in results if r is not None],
                             elapsed_seconds=round(time.time() - start_time, 2))
        logger.info(
            "Indexing complete: %d indexed, %d unchanged, %d failed, %d chunks in %.1fs",
            report.files_indexed,
            report.files_unchanged,
            len(report.failed),
            report.chunks_created,
            report.elapsed_seconds,
        )
        return report

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    def index_file(self, relpath: str, text: str, force: bool = False) -> FileIndexResult:
        """Chunk, embed and store one file; never raises for per-file errors."""
        digest = content_hash(text, self.fingerprint)
        try:
            if not force and self.store.file_hash(relpath) == digest:
                logger.debug("File unchanged, skipping: %s", relpath)
                return FileIndexResult(relpath, STATUS_UNCHANGED)

            # whitespace-only files keep no chunks
            chunks = (chunk_text(text, self.chunk_size, self.chunk_overlap)
                      if text.strip() else [])
            embeddings = self._embed_texts([c.text for c in chunks])

            stored = [
                StoredChunk(
                    chunk_id=make_chunk_id(relpath, c.index),
                    relpath=relpath,
                    text=c.text,
                    content_hash=digest,
                    embedding=blob,
                )
                for c, blob in zip(chunks, embeddings)
            ]
            self.store.replace_file_chunks(relpath, stored)
        except CodeSearchError as exc:
            logger.warning("Failed to index %s: %s", relpath, exc)
            return FileIndexResult(relpath, STATUS_FAILED, error=str(exc))

        logger.debug("Indexed %s: %d chunk(s)", relpath, len(stored))
        return FileIndexResult(relpath, STATUS_INDEXED, chunk_count=len(stored))

    def _embed_texts(self, texts: Sequence[str]) -> List[bytes]:
        """Embed *texts* in order, ``texts_per_call`` at a time, and encode them.

        Any failure other than a :class:`CodeSearchError` is reported as an
        :class:`EmbeddingProviderError` so it stays scoped to one file.
        """
        name = getattr(self.provider, "name", "embedding")
        blobs: List[bytes] = []
        for start in range(0, len(texts), self.texts_per_call):
            batch = list(texts[start:start + self.texts_per_call])
            try:
                embedded = self.provider.embed_many(batch)
                if len(embedded) != len(batch):
                    raise EmbeddingProviderError(
                        name, f"expected {len(batch)} vector(s), got {len(embedded)}")
                blobs.extend(encode(vec) for vec in embedded)
            except CodeSearchError:
                raise
            except Exception as exc:
                raise EmbeddingProviderError(name, f"{type(exc).__name__}: {exc}") from exc
        return blobs
