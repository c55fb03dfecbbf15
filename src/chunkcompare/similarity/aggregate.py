"""Cosine similarity and cross-chunk aggregation."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import numpy as np

from chunkcompare.errors import DimensionMismatchError, EmptyInputError
from chunkcompare.models import AggregateResult, Chunk, SimilarityRecord

LOGGER = logging.getLogger(__name__)

ChunkVector = Tuple[Chunk, Sequence[float] | np.ndarray]


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``, or ``0.0`` when either norm is zero."""
    left = np.asarray(a, dtype="float64").ravel()
    right = np.asarray(b, dtype="float64").ravel()
    if left.shape[0] != right.shape[0]:
        raise DimensionMismatchError(left.shape[0], right.shape[0])

    norm = float(np.linalg.norm(left)) * float(np.linalg.norm(right))
    if norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / norm)


def _stack(pairs: Sequence[ChunkVector]) -> np.ndarray:
    vectors = [np.asarray(vector, dtype="float64").ravel() for _, vector in pairs]
    dimension = vectors[0].shape[0]
    for vector in vectors[1:]:
        if vector.shape[0] != dimension:
            raise DimensionMismatchError(dimension, vector.shape[0])
    return np.vstack(vectors)


def similarity_matrix(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarities between the rows of two matrices.

    Rows with a zero norm score ``0.0`` against everything.
    """
    if left.shape[1] != right.shape[1]:
        raise DimensionMismatchError(left.shape[1], right.shape[1])

    norms = np.outer(np.linalg.norm(left, axis=1), np.linalg.norm(right, axis=1))
    dots = left @ right.T
    scores = np.zeros_like(dots)
    np.divide(dots, norms, out=scores, where=norms != 0.0)
    return scores


def aggregate_similarity(
    pairs_a: Sequence[ChunkVector], pairs_b: Sequence[ChunkVector]
) -> AggregateResult:
    """Score every ``(a, b)`` chunk pair and reduce to average, max and min.

    Records are ordered with ``pairs_a`` as the outer loop and ``pairs_b`` as
    the inner loop.
    """
    if not pairs_a or not pairs_b:
        raise EmptyInputError(
            f"Cannot aggregate similarity over empty chunk sets ({len(pairs_a)} x {len(pairs_b)})"
        )

    scores = similarity_matrix(_stack(pairs_a), _stack(pairs_b))

    records: List[SimilarityRecord] = []
    for i, (chunk_a, _) in enumerate(pairs_a):
        for j, (chunk_b, _) in enumerate(pairs_b):
            records.append(
                SimilarityRecord(
                    chunk1_id=chunk_a.id,
                    chunk2_id=chunk_b.id,
                    chunk1_text=chunk_a.text,
                    chunk2_text=chunk_b.text,
                    similarity=float(scores[i, j]),
                )
            )

    LOGGER.debug("Aggregated %d chunk pairs", len(records))
    return AggregateResult(
        average_similarity=float(scores.mean()),
        max_similarity=float(scores.max()),
        min_similarity=float(scores.min()),
        chunk_similarities=records,
    )
