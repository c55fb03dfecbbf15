"""Overlapping text chunking and chunk-level embedding similarity."""

from chunkcompare.chunking.chunker import chunk, reconstruct_text
from chunkcompare.models import Chunk, ChunkBy, ChunkingOptions
from chunkcompare.similarity.aggregate import aggregate_similarity, cosine_similarity

__version__ = "0.1.0"

__all__ = [
    "Chunk",
    "ChunkBy",
    "ChunkingOptions",
    "aggregate_similarity",
    "chunk",
    "cosine_similarity",
    "reconstruct_text",
]
