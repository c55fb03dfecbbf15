"""Deterministic text chunking with overlap."""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Iterable, List, Sequence

from chunkcompare.models import Chunk, ChunkBy, ChunkingOptions
from chunkcompare.utils.text import split_paragraphs, split_sentences, split_words, word_count

LOGGER = logging.getLogger(__name__)

OverlapSelector = Callable[[Sequence[str], int], List[str]]


def chunk(text: str, options: ChunkingOptions | None = None) -> List[Chunk]:
    """Split ``text`` into ordered, possibly overlapping chunks.

    Never fails for a string input. Text that fits in ``max_chunk_size`` (and
    text with no visible content) comes back as a single chunk covering the
    whole input, so an empty string yields one empty chunk at ``[0, 0)``.
    """
    opts = options or ChunkingOptions()

    if len(text) <= opts.max_chunk_size or not text.strip():
        return [_make_chunk(text, 0, len(text), 0)]

    chunks = _STRATEGIES[opts.chunk_by](text, opts)
    LOGGER.debug(
        "Split %d characters into %d chunks by %s", len(text), len(chunks), opts.chunk_by.value
    )
    return chunks


def reconstruct_text(chunks: Iterable[Chunk]) -> str:
    """Join chunk texts in ``chunk_index`` order with single spaces.

    Approximate check only: overlap is repeated and original whitespace is lost.
    """
    return " ".join(item.text for item in sorted(chunks, key=lambda item: item.chunk_index))


def _chunk_by_characters(text: str, options: ChunkingOptions) -> List[Chunk]:
    chunks: List[Chunk] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + options.max_chunk_size, length)
        chunks.append(_make_chunk(text[start:end], start, end, len(chunks)))

        next_start = end - options.overlap_size
        # Overlap >= window size would never move forward.
        if end >= length or next_start <= start:
            break
        start = next_start

    return chunks


def _chunk_by_words(text: str, options: ChunkingOptions) -> List[Chunk]:
    return _pack_units(split_words(text), " ", options, _trailing_words)


def _chunk_by_sentences(text: str, options: ChunkingOptions) -> List[Chunk]:
    return _pack_units(split_sentences(text), " ", options, _last_unit)


def _chunk_by_paragraphs(text: str, options: ChunkingOptions) -> List[Chunk]:
    return _pack_units(split_paragraphs(text), "\n\n", options, _last_unit)


_STRATEGIES: Dict[ChunkBy, Callable[[str, ChunkingOptions], List[Chunk]]] = {
    ChunkBy.CHARACTERS: _chunk_by_characters,
    ChunkBy.WORDS: _chunk_by_words,
    ChunkBy.SENTENCES: _chunk_by_sentences,
    ChunkBy.PARAGRAPHS: _chunk_by_paragraphs,
}


def _pack_units(
    units: Sequence[str],
    joiner: str,
    options: ChunkingOptions,
    select_overlap: OverlapSelector,
) -> List[Chunk]:
    """Greedily pack units into chunks no longer than ``max_chunk_size``.

    A single unit larger than the budget still becomes its own chunk. Offsets
    are derived from joined lengths rather than searched in the source text.
    """
    chunks: List[Chunk] = []
    buffer: List[str] = []
    buffer_len = 0
    start = 0

    for unit in units:
        candidate_len = buffer_len + len(joiner) + len(unit) if buffer else len(unit)
        if buffer and candidate_len > options.max_chunk_size:
            chunk_text = joiner.join(buffer)
            end = start + len(chunk_text)
            chunks.append(_make_chunk(chunk_text, start, end, len(chunks)))

            overlap = select_overlap(buffer, options.overlap_size)
            overlap_text = joiner.join(overlap)
            start = end - len(overlap_text)
            buffer = [*overlap, unit]
            buffer_len = len(joiner.join(buffer))
        else:
            buffer.append(unit)
            buffer_len = candidate_len

    if buffer:
        chunk_text = joiner.join(buffer)
        chunks.append(_make_chunk(chunk_text, start, start + len(chunk_text), len(chunks)))

    return chunks


def _trailing_words(words: Sequence[str], overlap_size: int) -> List[str]:
    """Pick the trailing words carried into the next chunk.

    Roughly one word per ten characters of overlap is tried first. When that
    run is too long, the shortest trailing run that fits is used instead, and
    nothing is carried when even the last word does not fit.
    """
    guess = math.ceil(overlap_size / 10)
    if guess and len(" ".join(words[-guess:])) <= overlap_size:
        return list(words[-guess:])

    for start in range(len(words) - 1, -1, -1):
        if len(" ".join(words[start:])) <= overlap_size:
            return list(words[start:])
    return []


def _last_unit(units: Sequence[str], overlap_size: int) -> List[str]:
    """Carry only the previous unit, and only when it fits on its own."""
    if units and len(units[-1]) <= overlap_size:
        return [units[-1]]
    return []


def _make_chunk(raw: str, start: int, end: int, index: int) -> Chunk:
    return Chunk(
        id=f"chunk_{index}_{start}_{end}",
        text=raw.strip(),
        start_index=start,
        end_index=end,
        chunk_index=index,
        metadata={"chunk_size": len(raw), "word_count": word_count(raw)},
    )
