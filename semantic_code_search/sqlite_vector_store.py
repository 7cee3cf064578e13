"""
SQLite-backed vector store for semantic code search.

Chunks (id, relpath, text, content hash, float32 embedding blob) live in a
single ``vector_chunks`` table.  When the sqlite-vec extension can be
loaded, the store also answers exact top-K queries natively through
``vec_distance_cosine``; otherwise callers scan rows and rank in numpy.

Whether the native operator works is probed once per store handle and
cached; a new handle probes again.

Storage: ``.codesearch/vectors.db``
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import sqlite_vec

from .codec import dimension_of, encode
from .errors import MalformedVectorError, NativeSearchUnavailable, StoreError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

INDEX_DIRNAME = ".codesearch"
DB_FILENAME = "vectors.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS vector_chunks (
    id          TEXT PRIMARY KEY,
    relpath     TEXT NOT NULL,
    chunk       TEXT NOT NULL,
    hash        TEXT NOT NULL,
    embedding   BLOB NOT NULL,
    created_at  REAL NOT NULL DEFAULT 0.0
);

CREATE INDEX IF NOT EXISTS idx_vector_chunks_relpath ON vector_chunks(relpath);

CREATE TABLE IF NOT EXISTS index_meta (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""

_PATH_FILTER = " WHERE substr(relpath, 1, ?) = ?"

# ---------------------------------------------------------------------------
# Row types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoredChunk:
    """A chunk ready to be written: embedding already encoded to bytes."""

    chunk_id: str
    relpath: str
    text: str
    content_hash: str
    embedding: bytes


@dataclass(frozen=True)
class NativeRow:
    """Row returned by the native top-K query."""

    chunk_id: str
    relpath: str
    chunk: str
    distance: float


@dataclass(frozen=True)
class FallbackRow:
    """Row returned by a plain scan; no distance, raw embedding bytes."""

    chunk_id: str
    relpath: str
    chunk: str
    embedding: bytes


def _path_args(path_prefix: Optional[str]) -> tuple[str, tuple]:
    if not path_prefix:
        return "", ()
    return _PATH_FILTER, (len(path_prefix), path_prefix)


# ---------------------------------------------------------------------------
# SQLiteVectorStore
# ---------------------------------------------------------------------------

class SQLiteVectorStore:
    """Local vector store backed by SQLite, optionally accelerated by sqlite-vec.

    Parameters
    ----------
    project_root:
        Absolute path to the project root directory.
    db_path:
        Override the default database path.
    load_extension:
        Try to load sqlite-vec.  ``False`` forces every query onto the
        brute-force path.
    """

    def __init__(
        self,
        project_root: str,
        db_path: str | None = None,
        load_extension: bool = True,
    ) -> None:
        self._project_root = project_root
        if db_path is None:
            db_path = os.path.join(project_root, INDEX_DIRNAME, DB_FILENAME)
        self._db_path = db_path
        self._want_extension = load_extension
        self._extension_loaded = False
        self._native_supported: Optional[bool] = None
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        """Create the database and tables if missing."""
        os.makedirs(os.path.dirname(os.path.abspath(self._db_path)), exist_ok=True)
        try:
            with self._lock:
                conn = self._get_conn()
                conn.executescript(_SCHEMA)
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to initialize vector database at {self._db_path}: {exc}"
            ) from exc

    def _get_conn(self) -> sqlite3.Connection:
        """Lazy connection; callers hold ``self._lock``."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                self._db_path, check_same_thread=False, timeout=10
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            if self._want_extension:
                self._extension_loaded = self._load_vector_extension(self._conn)
        return self._conn

    @staticmethod
    def _load_vector_extension(conn: sqlite3.Connection) -> bool:
        try:
            conn.enable_load_extension(True)
            try:
                sqlite_vec.load(conn)
            finally:
                conn.enable_load_extension(False)
        except (AttributeError, sqlite3.Error) as exc:
            # AttributeError: interpreter built without extension loading
            logger.warning(
                "sqlite-vec extension unavailable, using fallback search: %s", exc
            )
            return False
        return True

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                except sqlite3.Error:
                    logger.debug("Error closing %s", self._db_path, exc_info=True)
                self._conn = None

    @property
    def db_path(self) -> str:
        return self._db_path

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Delete every chunk and forget the stored dimensionality."""
        try:
            with self._lock:
                conn = self._get_conn()
                with conn:
                    conn.execute("DELETE FROM vector_chunks")
                    conn.execute("DELETE FROM index_meta WHERE key = 'dimension'")
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to clear vector database: {exc}") from exc
        logger.info("Vector database cleared")

    def replace_file_chunks(self, relpath: str, chunks: Sequence[StoredChunk]) -> None:
        """Swap every stored chunk of *relpath* for *chunks* in one transaction.

        Either all old chunks are replaced by all new ones or nothing
        changes.  An empty *chunks* simply removes the file.

        Raises
        ------
        MalformedVectorError
            If the embeddings do not share one dimensionality, or differ
            from the dimensionality already stored.
        StoreError
            On any SQLite failure; the transaction is rolled back.
        """
        dims = {dimension_of(c.embedding) for c in chunks}
        if len(dims) > 1:
            raise MalformedVectorError(
                f"mixed embedding dimensions {sorted(dims)} for {relpath}")
        ids = [c.chunk_id for c in chunks]
        if len(set(ids)) != len(ids):
            raise StoreError(f"duplicate chunk ids for {relpath}")
        for c in chunks:
            if c.relpath != relpath:
                raise StoreError(
                    f"chunk {c.chunk_id} belongs to {c.relpath}, not {relpath}")

        now = time.time()
        try:
            with self._lock:
                conn = self._get_conn()
                with conn:
                    if dims:
                        (dim,) = dims
                        stored = self._read_dimension(conn)
                        if stored is None:
                            conn.execute(
                                "INSERT OR REPLACE INTO index_meta (key, value) "
                                "VALUES ('dimension', ?)",
                                (str(dim),),
                            )
                        elif stored != dim:
                            raise MalformedVectorError(
                                f"{relpath}: embedding dimension {dim} does not "
                                f"match the index dimension {stored}")
                    conn.execute(
                        "DELETE FROM vector_chunks WHERE relpath = ?", (relpath,)
                    )
                    conn.executemany(
                        "INSERT INTO vector_chunks "
                        "(id, relpath, chunk, hash, embedding, created_at) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        [
                            (c.chunk_id, c.relpath, c.text, c.content_hash,
                             c.embedding, now)
                            for c in chunks
                        ],
                    )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to store chunks for {relpath}: {exc}") from exc
        logger.debug("Stored %d chunk(s) for %s", len(chunks), relpath)

    def remove_file(self, relpath: str) -> None:
        """Delete all chunks belonging to *relpath*."""
        self.replace_file_chunks(relpath, [])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read(self, sql: str, args: Iterable = ()) -> list:
        try:
            with self._lock:
                conn = self._get_conn()
                return conn.execute(sql, tuple(args)).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Vector database read failed: {exc}") from exc

    @staticmethod
    def _read_dimension(conn: sqlite3.Connection) -> Optional[int]:
        row = conn.execute(
            "SELECT value FROM index_meta WHERE key = 'dimension'"
        ).fetchone()
        return int(row[0]) if row else None

    def count(self) -> int:
        """Return the number of stored chunks."""
        rows = self._read("SELECT COUNT(*) FROM vector_chunks")
        return rows[0][0] if rows else 0

    def dimension(self) -> Optional[int]:
        """Return the embedding dimensionality of this index, if known."""
        rows = self._read("SELECT value FROM index_meta WHERE key = 'dimension'")
        return int(rows[0][0]) if rows else None

    def file_hash(self, relpath: str) -> Optional[str]:
        """Return the content hash stored for *relpath*, or None if not indexed."""
        rows = self._read(
            "SELECT DISTINCT hash FROM vector_chunks WHERE relpath = ?", (relpath,)
        )
        if len(rows) != 1:
            return None
        return rows[0][0]

    def chunk_ids(self, relpath: str) -> list[str]:
        """Return the stored chunk ids of *relpath* in chunk-index order."""
        rows = self._read(
            "SELECT id FROM vector_chunks WHERE relpath = ?", (relpath,)
        )
        return sorted((r[0] for r in rows), key=lambda cid: int(cid.rsplit("#", 1)[1]))

    def indexed_files(self) -> list[str]:
        """Return every relpath with at least one stored chunk."""
        rows = self._read("SELECT DISTINCT relpath FROM vector_chunks ORDER BY relpath")
        return [r[0] for r in rows]

    def scan(self, path_prefix: Optional[str] = None) -> list[FallbackRow]:
        """Return every chunk row, optionally limited to a relpath prefix.

        Raises :class:`StoreError` on failure.
        """
        where, args = _path_args(path_prefix)
        rows = self._read(
            "SELECT id, relpath, chunk, embedding FROM vector_chunks" + where, args
        )
        return [FallbackRow(r[0], r[1], r[2], bytes(r[3])) for r in rows]

    # ------------------------------------------------------------------
    # Native nearest-neighbour search
    # ------------------------------------------------------------------

    def native_search(
        self,
        query_vector,
        limit: int,
        path_prefix: Optional[str] = None,
    ) -> list[NativeRow]:
        """Top-*limit* chunks by cosine distance, computed inside SQLite.

        Raises
        ------
        NativeSearchUnavailable
            If the extension is not loaded or the query fails.
        """
        blob = query_vector if isinstance(query_vector, bytes) else encode(query_vector)
        where, args = _path_args(path_prefix)
        sql = (
            "SELECT id, relpath, chunk, vec_distance_cosine(embedding, ?) AS distance "
            "FROM vector_chunks" + where +
            # zero-norm rows give a NULL distance; keep them behind real matches
            " ORDER BY distance IS NULL, distance, id LIMIT ?"
        )
        try:
            with self._lock:
                conn = self._get_conn()
                if not self._extension_loaded:
                    raise NativeSearchUnavailable("sqlite-vec extension not loaded")
                rows = conn.execute(sql, (blob, *args, limit)).fetchall()
        except sqlite3.Error as exc:
            raise NativeSearchUnavailable(f"native vector search failed: {exc}") from exc
        if self._native_supported is None:
            self._native_supported = True
        return [NativeRow(r[0], r[1], r[2], r[3]) for r in rows]

    def probe_native_search(self) -> bool:
        """Return whether native search works on this handle.

        The first call runs one real top-1 query; later calls return the
        cached answer.
        """
        if self._native_supported is not None:
            return self._native_supported
        try:
            rows = self._read("SELECT embedding FROM vector_chunks LIMIT 1")
            probe = bytes(rows[0][0]) if rows else encode([1.0])
            self.native_search(probe, 1)
            supported = True
        except (NativeSearchUnavailable, StoreError) as exc:
            logger.info("Native vector search not available: %s", exc)
            supported = False
        self._native_supported = supported
        return supported

    def native_search_status(self) -> Optional[bool]:
        """Cached native-search capability: True, False, or None if not yet tried.

        Unlike :meth:`probe_native_search` this never issues a query.
        """
        return self._native_supported

    def disable_native_search(self) -> None:
        """Mark native search unsupported for the rest of this handle's life."""
        self._native_supported = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def collection_info(self) -> dict:
        """Return basic info about the index.

        Keys: ``name``, ``points_count``, ``dimension``, ``native_search``.
        """
        return {
            "name": f"codesearch_{os.path.basename(os.path.abspath(self._project_root))}",
            "points_count": self.count(),
            "dimension": self.dimension(),
            "native_search": self.probe_native_search(),
        }


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------

def create_vector_store(
    project_root: str,
    db_path: str | None = None,
    load_extension: bool = True,
) -> SQLiteVectorStore:
    """Create the vector store for *project_root*.

    Parameters
    ----------
    project_root:
        Absolute path to the project root.
    db_path:
        Override the default ``.codesearch/vectors.db`` location.
    load_extension:
        Whether to try the sqlite-vec extension.

    Returns
    -------
    SQLiteVectorStore
    """
    return SQLiteVectorStore(project_root, db_path=db_path,
                             load_extension=load_extension)
