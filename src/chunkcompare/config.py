"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from chunkcompare.embedding.encoder import DEFAULT_MODEL
from chunkcompare.models import ChunkBy, ChunkingOptions

ENV_PREFIX = "CHUNKCOMPARE_"


@dataclass(slots=True)
class AppConfig:
    model_name: str = DEFAULT_MODEL
    max_chunk_size: int = 1000
    overlap_size: int = 100
    chunk_by: ChunkBy = ChunkBy.CHARACTERS
    max_concurrency: int = 8
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origin: str = "*"

    def __post_init__(self) -> None:
        if not isinstance(self.chunk_by, ChunkBy):
            self.chunk_by = ChunkBy(self.chunk_by)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from ``CHUNKCOMPARE_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default: str) -> str:
            return env.get(ENV_PREFIX + name, default)

        return cls(
            model_name=get("MODEL", defaults.model_name),
            max_chunk_size=int(get("MAX_CHUNK_SIZE", str(defaults.max_chunk_size))),
            overlap_size=int(get("OVERLAP_SIZE", str(defaults.overlap_size))),
            chunk_by=ChunkBy(get("CHUNK_BY", defaults.chunk_by.value)),
            max_concurrency=int(get("MAX_CONCURRENCY", str(defaults.max_concurrency))),
            host=get("HOST", defaults.host),
            port=int(get("PORT", str(defaults.port))),
            cors_origin=get("CORS_ORIGIN", defaults.cors_origin),
        )

    def chunking_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            max_chunk_size=self.max_chunk_size,
            overlap_size=self.overlap_size,
            chunk_by=self.chunk_by,
        )
