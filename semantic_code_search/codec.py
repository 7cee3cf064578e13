"""
Vector codec: float32 vectors <-> raw little-endian bytes.

The byte layout is tightly packed IEEE-754 float32, little-endian, with no
header or padding, so a vector of ``n`` components is exactly ``4 * n``
bytes.  The same layout is understood by the sqlite-vec extension, which
lets the native and fallback search paths share one column.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np

from .errors import MalformedVectorError

FLOAT32_LE = np.dtype("<f4")
BYTES_PER_COMPONENT = FLOAT32_LE.itemsize

VectorLike = Union[Sequence[float], np.ndarray]


def as_vector(vec: VectorLike) -> np.ndarray:
    """Coerce *vec* to a 1-D little-endian float32 array."""
    arr = np.asarray(vec, dtype=FLOAT32_LE)
    if arr.ndim != 1:
        raise MalformedVectorError(
            f"expected a 1-D vector, got shape {arr.shape}"
        )
    return arr


def encode(vec: VectorLike) -> bytes:
    """Serialise *vec* to ``4 * len(vec)`` bytes."""
    return as_vector(vec).tobytes()


def decode(buf: bytes, dimension: Optional[int] = None) -> np.ndarray:
    """Deserialise *buf* back to a float32 vector.

    Parameters
    ----------
    buf:
        Raw bytes as produced by :func:`encode`.
    dimension:
        When given, the decoded vector must have exactly this many
        components.

    Raises
    ------
    MalformedVectorError
        If the byte length is not a multiple of 4 or does not match
        *dimension*.
    """
    if len(buf) % BYTES_PER_COMPONENT:
        raise MalformedVectorError(
            f"vector blob of {len(buf)} bytes is not a multiple of "
            f"{BYTES_PER_COMPONENT}"
        )
    n = len(buf) // BYTES_PER_COMPONENT
    if dimension is not None and n != dimension:
        raise MalformedVectorError(
            f"expected {dimension} components, blob holds {n}"
        )
    # frombuffer returns a read-only view over *buf*; copy so callers own it
    return np.frombuffer(buf, dtype=FLOAT32_LE).copy()


def dimension_of(buf: bytes) -> int:
    """Return the number of components encoded in *buf*."""
    if len(buf) % BYTES_PER_COMPONENT:
        raise MalformedVectorError(
            f"vector blob of {len(buf)} bytes is not a multiple of "
            f"{BYTES_PER_COMPONENT}"
        )
    return len(buf) // BYTES_PER_COMPONENT
