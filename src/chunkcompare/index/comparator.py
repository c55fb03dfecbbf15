"""Embedding and comparison pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Sequence, Tuple, TypeVar

import numpy as np

from chunkcompare.chunking.chunker import chunk
from chunkcompare.embedding.encoder import DEFAULT_MODEL, EmbeddingProvider
from chunkcompare.index.storage import SQLiteEmbeddingStore
from chunkcompare.models import (
    Chunk,
    ChunkedComparison,
    ChunkedEmbeddingResult,
    ChunkEmbedding,
    ChunkingOptions,
    EmbeddingResult,
    TextComparison,
)
from chunkcompare.similarity.aggregate import aggregate_similarity, cosine_similarity

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ChunkVectors = List[Tuple[Chunk, np.ndarray]]


async def gather_all_or_nothing(aws: Sequence[Awaitable[T]]) -> List[T]:
    """Await everything in order; on any failure cancel whatever is still running."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class Comparator:
    """Coordinates chunking, embedding calls and similarity aggregation.

    Each chunk gets its own provider call. Calls run in worker threads, at
    most ``max_concurrency`` at a time per request, and results are always
    handed back in ``chunk_index`` order.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: SQLiteEmbeddingStore | None = None,
        *,
        model_name: str = DEFAULT_MODEL,
        max_concurrency: int = 8,
    ) -> None:
        self.provider = provider
        self.store = store
        self.model_name = model_name
        self.max_concurrency = max(1, max_concurrency)

    async def _embed_all(self, texts: Sequence[str], model: str) -> List[np.ndarray]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def embed_one(text: str) -> np.ndarray:
            async with semaphore:
                vector = await asyncio.to_thread(self.provider.embed, text, model)
            return np.asarray(vector, dtype="float32")

        return await gather_all_or_nothing([embed_one(text) for text in texts])

    async def embed_chunks(self, chunks: Sequence[Chunk], model: str | None = None) -> ChunkVectors:
        ordered = sorted(chunks, key=lambda item: item.chunk_index)
        vectors = await self._embed_all([item.text for item in ordered], model or self.model_name)
        return list(zip(ordered, vectors))

    async def embed_chunk_sets(
        self, chunks1: Sequence[Chunk], chunks2: Sequence[Chunk], model: str | None = None
    ) -> Tuple[ChunkVectors, ChunkVectors]:
        """Embed two chunk sets as one batch so a failure anywhere cancels the rest."""
        ordered1 = sorted(chunks1, key=lambda item: item.chunk_index)
        ordered2 = sorted(chunks2, key=lambda item: item.chunk_index)
        vectors = await self._embed_all(
            [item.text for item in [*ordered1, *ordered2]], model or self.model_name
        )
        split = len(ordered1)
        return list(zip(ordered1, vectors[:split])), list(zip(ordered2, vectors[split:]))

    def _remember(self, text: str, vector: np.ndarray, model: str) -> None:
        if self.store is not None:
            self.store.create(text, vector, model)

    async def embed_text(self, text: str, model: str | None = None) -> EmbeddingResult:
        model = model or self.model_name
        (vector,) = await self._embed_all([text], model)
        self._remember(text, vector, model)
        return EmbeddingResult(text=text, model=model, embedding=vector)

    async def embed_chunked(
        self,
        text: str,
        options: ChunkingOptions | None = None,
        model: str | None = None,
    ) -> ChunkedEmbeddingResult:
        model = model or self.model_name
        pairs = await self.embed_chunks(chunk(text, options), model)
        for item, vector in pairs:
            self._remember(item.text, vector, model)

        LOGGER.info("Embedded %d chunks with %s", len(pairs), model)
        return ChunkedEmbeddingResult(
            original_text=text,
            model=model,
            chunks=[ChunkEmbedding(chunk=item, embedding=vector) for item, vector in pairs],
        )

    async def compare(self, text1: str, text2: str, model: str | None = None) -> TextComparison:
        model = model or self.model_name
        first, second = await self._embed_all([text1, text2], model)
        return TextComparison(
            text1=text1, text2=text2, model=model, similarity=cosine_similarity(first, second)
        )

    async def compare_chunked(
        self,
        text1: str,
        text2: str,
        options: ChunkingOptions | None = None,
        model: str | None = None,
    ) -> ChunkedComparison:
        model = model or self.model_name
        pairs1, pairs2 = await self.embed_chunk_sets(chunk(text1, options), chunk(text2, options), model)
        result = aggregate_similarity(pairs1, pairs2)

        LOGGER.info(
            "Compared %d x %d chunks: avg=%.4f max=%.4f min=%.4f",
            len(pairs1),
            len(pairs2),
            result.average_similarity,
            result.max_similarity,
            result.min_similarity,
        )
        return ChunkedComparison(text1=text1, text2=text2, model=model, result=result)
