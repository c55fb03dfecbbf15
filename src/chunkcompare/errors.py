"""Error types raised by chunkcompare."""

from __future__ import annotations


class ChunkCompareError(Exception):
    """Base class for chunkcompare failures."""


class DimensionMismatchError(ChunkCompareError, ValueError):
    """Two vectors of unequal length were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embeddings must have the same length (got {left} and {right})")
        self.left = left
        self.right = right


class EmptyInputError(ChunkCompareError, ValueError):
    """Aggregation was requested with no chunks on one side."""


class ProviderError(ChunkCompareError, RuntimeError):
    """The embedding provider failed to produce a vector."""

    def __init__(self, message: str, *, model: str | None = None) -> None:
        super().__init__(message)
        self.model = model
