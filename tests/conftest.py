"""Shared pytest fixtures."""

from __future__ import annotations

import threading
from typing import Dict, List

import numpy as np
import pytest

from chunkcompare.errors import ProviderError


class FakeProvider:
    """Deterministic provider: a small bag-of-letters vector per text."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.calls: List[tuple[str, str]] = []
        self._lock = threading.Lock()

    def embed(self, text: str, model: str) -> np.ndarray:
        with self._lock:
            self.calls.append((text, model))
        if text in self.failing:
            raise ProviderError(f"Failed to create embedding for {text!r}", model=model)
        counts: Dict[str, int] = {letter: text.lower().count(letter) for letter in "aeiou"}
        return np.array([counts[letter] for letter in "aeiou"] + [1.0], dtype="float32")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
