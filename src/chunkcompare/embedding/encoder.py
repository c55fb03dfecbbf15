"""Embedding model management."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Protocol, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from chunkcompare.errors import ProviderError

DEFAULT_MODEL = "sentence-transformers/all-mpnet-base-v2"

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that maps a text to a fixed-length vector under a named model."""

    def embed(self, text: str, model: str) -> np.ndarray: ...


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for a single model."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model = SentenceTransformer(self.config.model_name, device=self.config.device)
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded embedding model %s (dimension %d)", self.config.model_name, self.dimension
        )

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-text embedding."""
        return self.embed([text])[0]


class SentenceTransformerProvider:
    """Embedding provider that loads sentence-transformers models on demand.

    Models are cached by name. Any failure while loading or encoding is
    raised as `ProviderError` with the original exception chained.
    """

    def __init__(self, *, batch_size: int = 16, normalize: bool = True, device: str | None = None) -> None:
        self.batch_size = batch_size
        self.normalize = normalize
        self.device = device
        self._models: Dict[str, EmbeddingModel] = {}
        self._lock = threading.Lock()

    def get_model(self, model: str) -> EmbeddingModel:
        with self._lock:
            if model not in self._models:
                self._models[model] = EmbeddingModel(
                    EmbeddingConfig(
                        model_name=model,
                        batch_size=self.batch_size,
                        normalize=self.normalize,
                        device=self.device,
                    )
                )
            return self._models[model]

    def embed(self, text: str, model: str = DEFAULT_MODEL) -> np.ndarray:
        try:
            return self.get_model(model).embed_query(text)
        except Exception as exc:
            logger.error("Failed to create embedding with %s: %s", model, exc)
            raise ProviderError(f"Failed to create embedding: {exc}", model=model) from exc
