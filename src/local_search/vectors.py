"""
Vector helpers: L2 normalization, similarity scoring and the float32 blob codec.

Stored vectors are normalized once at write time, so cosine similarity
against a normalized query reduces to a dot product.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


NORM_EPSILON = 1e-5
_BLOB_DTYPE = np.dtype("<f4")


def normalize_l2(vector: Sequence[float]) -> list[float]:
    """Return *vector* scaled to unit L2 norm.

    Vectors whose norm is below ``NORM_EPSILON`` are returned unchanged.
    """
    array = np.asarray(vector, dtype=np.float32)
    norm = float(np.linalg.norm(array))
    if norm < NORM_EPSILON:
        return array.tolist()
    return (array / norm).tolist()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Similarity of two pre-normalized vectors.

    Returns 0.0 when the dimensions differ.
    """
    if len(a) != len(b):
        return 0.0
    return float(np.dot(np.asarray(a, dtype=np.float32), np.asarray(b, dtype=np.float32)))


def encode_vector(vector: Sequence[float]) -> bytes:
    """Serialize a vector as little-endian float32 bytes (4 bytes per value)."""
    return np.asarray(vector, dtype=_BLOB_DTYPE).tobytes()


def decode_vector(blob: bytes) -> list[float]:
    """Inverse of :func:`encode_vector`. Trailing partial values are dropped."""
    usable = len(blob) - (len(blob) % _BLOB_DTYPE.itemsize)
    return np.frombuffer(blob[:usable], dtype=_BLOB_DTYPE).astype(np.float64).tolist()
