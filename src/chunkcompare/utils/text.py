"""Text helpers used to split documents into units."""

from __future__ import annotations

import re
from typing import Iterable, List

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")


def split_words(text: str) -> List[str]:
    """Split on runs of whitespace, dropping empty tokens."""
    return text.split()


def split_sentences(text: str) -> List[str]:
    """Split after ``.``, ``!`` or ``?`` followed by whitespace.

    Punctuation heuristic only: abbreviations such as "e.g. this" also split.
    """
    return _non_empty(_SENTENCE_BOUNDARY.split(text))


def split_paragraphs(text: str) -> List[str]:
    """Split on one or more blank lines."""
    return _non_empty(_PARAGRAPH_BOUNDARY.split(text))


def word_count(text: str) -> int:
    return len(text.split())


def _non_empty(parts: Iterable[str]) -> List[str]:
    return [part.strip() for part in parts if part.strip()]
