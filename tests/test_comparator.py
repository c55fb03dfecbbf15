"""Tests for the embedding and comparison pipeline."""

from __future__ import annotations

import asyncio
import threading
import time

import numpy as np
import pytest

from chunkcompare.chunking.chunker import chunk
from chunkcompare.errors import EmptyInputError, ProviderError
from chunkcompare.index.comparator import Comparator, gather_all_or_nothing
from chunkcompare.index.storage import SQLiteEmbeddingStore
from chunkcompare.models import ChunkBy, ChunkingOptions
from chunkcompare.similarity.aggregate import aggregate_similarity

from conftest import FakeProvider

OPTIONS = ChunkingOptions(max_chunk_size=20, overlap_size=0, chunk_by=ChunkBy.WORDS)
TEXT1 = "apples and oranges are fruit. bananas too"
TEXT2 = "cars drive on roads every day"


class SlowFirstProvider(FakeProvider):
    """Answers later texts first to shake out ordering bugs."""

    def __init__(self, texts: list[str]) -> None:
        super().__init__()
        self.delays = {text: 0.01 * (len(texts) - i) for i, text in enumerate(texts)}

    def embed(self, text: str, model: str) -> np.ndarray:
        time.sleep(self.delays.get(text, 0.0))
        return super().embed(text, model)


class ConcurrencyProbe(FakeProvider):
    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.peak = 0
        self._probe_lock = threading.Lock()

    def embed(self, text: str, model: str) -> np.ndarray:
        with self._probe_lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(0.02)
            return super().embed(text, model)
        finally:
            with self._probe_lock:
                self.active -= 1


class TestGatherAllOrNothing:
    """Test gather_all_or_nothing helper."""

    def test_preserves_order(self) -> None:
        async def value(delay: float, result: int) -> int:
            await asyncio.sleep(delay)
            return result

        results = asyncio.run(gather_all_or_nothing([value(0.03, 1), value(0.0, 2), value(0.01, 3)]))
        assert results == [1, 2, 3]

    def test_cancels_outstanding_on_failure(self) -> None:
        """Should cancel siblings when one call fails."""
        cancelled = []

        async def slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        async def failing() -> None:
            await asyncio.sleep(0)
            raise ProviderError("boom")

        with pytest.raises(ProviderError):
            asyncio.run(gather_all_or_nothing([slow(), failing(), slow()]))

        assert cancelled == [True, True]


class TestComparator:
    """Test Comparator class."""

    def test_embed_chunks_in_chunk_order(self) -> None:
        """Should recombine vectors in chunk_index order."""
        chunks = chunk(TEXT1, OPTIONS)
        provider = SlowFirstProvider([item.text for item in chunks])
        comparator = Comparator(provider, model_name="m")

        pairs = asyncio.run(comparator.embed_chunks(list(reversed(chunks))))

        assert [item.chunk_index for item, _ in pairs] == list(range(len(chunks)))
        for item, vector in pairs:
            assert np.array_equal(vector, FakeProvider().embed(item.text, "m"))

    def test_embed_text_stores_record(self, fake_provider: FakeProvider) -> None:
        store = SQLiteEmbeddingStore()
        comparator = Comparator(fake_provider, store, model_name="default-model")

        result = asyncio.run(comparator.embed_text("hello world"))

        assert result.model == "default-model"
        assert fake_provider.calls == [("hello world", "default-model")]
        stored = store.find_all()
        assert len(stored) == 1
        assert np.allclose(stored[0].embedding, result.embedding)

    def test_embed_chunked(self, fake_provider: FakeProvider) -> None:
        store = SQLiteEmbeddingStore()
        comparator = Comparator(fake_provider, store)

        result = asyncio.run(comparator.embed_chunked(TEXT1, OPTIONS, model="custom"))

        assert result.model == "custom"
        assert result.total_chunks == len(chunk(TEXT1, OPTIONS))
        assert store.count() == result.total_chunks
        assert {model for _, model in fake_provider.calls} == {"custom"}

    def test_embed_chunked_failure_stores_nothing(self) -> None:
        chunks = chunk(TEXT1, OPTIONS)
        provider = FakeProvider(failing={chunks[-1].text})
        store = SQLiteEmbeddingStore()
        comparator = Comparator(provider, store)

        with pytest.raises(ProviderError):
            asyncio.run(comparator.embed_chunked(TEXT1, OPTIONS))

        assert store.count() == 0

    def test_compare_identical_texts(self, fake_provider: FakeProvider) -> None:
        comparator = Comparator(fake_provider)

        result = asyncio.run(comparator.compare("same text", "same text"))

        assert result.similarity == pytest.approx(1.0)
        assert len(fake_provider.calls) == 2

    def test_compare_does_not_store(self, fake_provider: FakeProvider) -> None:
        store = SQLiteEmbeddingStore()
        asyncio.run(Comparator(fake_provider, store).compare("a", "b"))
        assert store.count() == 0

    def test_compare_chunked(self, fake_provider: FakeProvider) -> None:
        """Should embed every chunk once and score the full cross product."""
        chunks1 = chunk(TEXT1, OPTIONS)
        chunks2 = chunk(TEXT2, OPTIONS)
        comparator = Comparator(fake_provider)

        comparison = asyncio.run(comparator.compare_chunked(TEXT1, TEXT2, OPTIONS))
        result = comparison.result

        assert len(fake_provider.calls) == len(chunks1) + len(chunks2)
        assert len(result.chunk_similarities) == len(chunks1) * len(chunks2)
        assert [(r.chunk1_id, r.chunk2_id) for r in result.chunk_similarities] == [
            (a.id, b.id) for a in chunks1 for b in chunks2
        ]
        scores = [r.similarity for r in result.chunk_similarities]
        assert result.average_similarity == pytest.approx(sum(scores) / len(scores))
        assert result.max_similarity == pytest.approx(max(scores))
        assert result.min_similarity == pytest.approx(min(scores))

    def test_compare_chunked_provider_failure(self) -> None:
        """Should surface the provider error, not a partial result."""
        provider = FakeProvider(failing={chunk(TEXT2, OPTIONS)[0].text})
        comparator = Comparator(provider)

        with pytest.raises(ProviderError):
            asyncio.run(comparator.compare_chunked(TEXT1, TEXT2, OPTIONS))

    def test_compare_chunked_empty_text(self, fake_provider: FakeProvider) -> None:
        """Empty input still produces one degenerate chunk per side."""
        comparison = asyncio.run(Comparator(fake_provider).compare_chunked("", "", OPTIONS))

        assert len(comparison.result.chunk_similarities) == 1

    def test_max_concurrency(self) -> None:
        provider = ConcurrencyProbe()
        comparator = Comparator(provider, max_concurrency=2)
        text = " ".join(f"word{index}" for index in range(40))

        asyncio.run(comparator.embed_chunked(text, OPTIONS))

        assert 1 <= provider.peak <= 2

    def test_reusable_across_event_loops(self, fake_provider: FakeProvider) -> None:
        comparator = Comparator(fake_provider, max_concurrency=1)

        asyncio.run(comparator.compare("a b", "c d"))
        asyncio.run(comparator.compare("e f", "g h"))

        assert len(fake_provider.calls) == 4


def test_empty_input_error_from_aggregation(fake_provider: FakeProvider) -> None:
    comparator = Comparator(fake_provider)

    async def run() -> None:
        pairs = await comparator.embed_chunks([])
        aggregate_similarity(pairs, pairs)

    with pytest.raises(EmptyInputError):
        asyncio.run(run())
