"""Core chunkcompare data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

import numpy as np


class ChunkBy(str, Enum):
    """Unit granularity used when splitting text."""

    CHARACTERS = "characters"
    WORDS = "words"
    SENTENCES = "sentences"
    PARAGRAPHS = "paragraphs"


@dataclass(slots=True, frozen=True)
class ChunkingOptions:
    """Chunking configuration.

    Sizes are character budgets for every mode. ``preserve_formatting`` is
    accepted for compatibility and currently has no effect on segmentation.
    An ``overlap_size`` at or above ``max_chunk_size`` is allowed; the chunker
    stops instead of looping.
    """

    max_chunk_size: int = 1000
    overlap_size: int = 100
    chunk_by: ChunkBy = ChunkBy.CHARACTERS
    preserve_formatting: bool = True

    def __post_init__(self) -> None:
        if self.max_chunk_size < 1:
            raise ValueError("max_chunk_size must be a positive integer")
        if self.overlap_size < 0:
            raise ValueError("overlap_size must be non-negative")
        if not isinstance(self.chunk_by, ChunkBy):
            object.__setattr__(self, "chunk_by", ChunkBy(self.chunk_by))


@dataclass(slots=True, frozen=True)
class Chunk:
    """Trimmed slice of a source text with its offsets and position."""

    id: str
    text: str
    start_index: int
    end_index: int
    chunk_index: int
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class SimilarityRecord:
    chunk1_id: str
    chunk2_id: str
    chunk1_text: str
    chunk2_text: str
    similarity: float


@dataclass(slots=True)
class AggregateResult:
    """Summary statistics over every chunk pair of a comparison."""

    average_similarity: float
    max_similarity: float
    min_similarity: float
    chunk_similarities: List[SimilarityRecord]


@dataclass(slots=True)
class EmbeddingResult:
    text: str
    model: str
    embedding: np.ndarray


@dataclass(slots=True)
class ChunkEmbedding:
    chunk: Chunk
    embedding: np.ndarray


@dataclass(slots=True)
class ChunkedEmbeddingResult:
    original_text: str
    model: str
    chunks: List[ChunkEmbedding]

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)


@dataclass(slots=True)
class TextComparison:
    text1: str
    text2: str
    model: str
    similarity: float


@dataclass(slots=True)
class ChunkedComparison:
    text1: str
    text2: str
    model: str
    result: AggregateResult


@dataclass(slots=True)
class StoredEmbedding:
    """Embedding record kept by the in-process store."""

    id: str
    text: str
    embedding: np.ndarray
    model: str
    created_at: datetime
    updated_at: datetime
