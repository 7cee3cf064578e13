"""
Chunker: splits file text into overlapping fixed-size character windows.

Boundaries are purely character-offset based so the same text and the
same settings always give the same chunks; the chunk index is part of a
chunk's identity (``"<relpath>#<index>"``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .errors import InvalidConfigurationError


@dataclass(frozen=True)
class TextChunk:
    """One window of a source file."""

    index: int
    start: int
    text: str

    @property
    def end(self) -> int:
        return self.start + len(self.text)


def make_chunk_id(relpath: str, index: int) -> str:
    """Return the store id for chunk *index* of *relpath*."""
    return f"{relpath}#{index}"


def check_window(chunk_size: int, overlap: int) -> None:
    """Reject window settings that would not advance."""
    if chunk_size <= 0:
        raise InvalidConfigurationError(
            f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise InvalidConfigurationError(
            f"chunk_overlap must not be negative, got {overlap}")
    if chunk_size - overlap <= 0:
        raise InvalidConfigurationError(
            f"chunk_overlap ({overlap}) must be smaller than "
            f"chunk_size ({chunk_size})")


def chunk_text(text: str, chunk_size: int, overlap: int) -> List[TextChunk]:
    """Split *text* into overlapping windows.

    Each window is *chunk_size* characters long and starts
    ``chunk_size - overlap`` characters after the previous one.  The last
    window is truncated to what remains.  Empty text gives no chunks.
    """
    check_window(chunk_size, overlap)
    step = chunk_size - overlap
    chunks: List[TextChunk] = []
    start = 0
    while start < len(text):
        chunks.append(TextChunk(len(chunks), start, text[start:start + chunk_size]))
        if start + chunk_size >= len(text):
            break
        start += step
    return chunks
