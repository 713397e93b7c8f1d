"""
Vector Similarity

Cosine similarity over embedding vectors, computed with numpy.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(
    a: Sequence[float] | np.ndarray,
    b: Sequence[float] | np.ndarray,
) -> float:
    """
    Cosine of the angle between ``a`` and ``b``: ``dot / (|a| * |b|)``.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(
            f"Vectors must have the same length ({va.shape[0]} != {vb.shape[0]})"
        )

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    # Guard against float drift just outside [-1, 1]
    return max(-1.0, min(1.0, score))
