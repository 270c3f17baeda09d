"""Cosine similarity scoring over float32 vectors."""

from typing import List, Sequence, Tuple

import numpy as np

from clipsage.models.schemas import ClipEntry


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Returns 0.0 when the lengths differ, when either vector has zero norm, or
    when the score is not finite (NaN or infinite components). That 0.0 is a
    real (low) score, not a missing one.
    """
    if len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)

    norm_a = np.sqrt(np.sum(va * va))
    norm_b = np.sqrt(np.sum(vb * vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    # product-then-sum keeps the result symmetric in a and b
    score = np.sum(va * vb) / (norm_a * norm_b)
    if not np.isfinite(score):
        return 0.0
    # float32 rounding can push parallel vectors just past 1.0
    return float(np.clip(score, -1.0, 1.0))


def rank_by_similarity(
    query_embedding: Sequence[float], entries: Sequence[ClipEntry]
) -> List[Tuple[float, ClipEntry]]:
    """Score entries against the query, best first.

    Entries without an embedding are left out. The sort is stable, so equal
    scores keep the input order.
    """
    scored = [
        (cosine_similarity(query_embedding, entry.embedding), entry)
        for entry in entries
        if entry.embedding is not None
    ]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return scored
