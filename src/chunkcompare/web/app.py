"""FastAPI application exposing chunking, embedding and comparison."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, List

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chunkcompare.chunking.chunker import chunk
from chunkcompare.config import AppConfig
from chunkcompare.embedding.encoder import SentenceTransformerProvider
from chunkcompare.errors import DimensionMismatchError, EmptyInputError, ProviderError
from chunkcompare.index.comparator import Comparator
from chunkcompare.index.storage import SQLiteEmbeddingStore
from chunkcompare.models import ChunkBy, ChunkingOptions, StoredEmbedding

LOGGER = logging.getLogger(__name__)

CONFIG = AppConfig.from_env()

app = FastAPI(title="chunkcompare", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[CONFIG.cors_origin],
    allow_methods=["*"],
    allow_headers=["*"],
)


class CamelModel(BaseModel):
    """Accepts camelCase field names as well as the Python ones."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChunkingOptionsPayload(CamelModel):
    max_chunk_size: int = Field(CONFIG.max_chunk_size, ge=1)
    overlap_size: int = Field(CONFIG.overlap_size, ge=0)
    chunk_by: ChunkBy = CONFIG.chunk_by
    preserve_formatting: bool = True

    def to_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            max_chunk_size=self.max_chunk_size,
            overlap_size=self.overlap_size,
            chunk_by=self.chunk_by,
            preserve_formatting=self.preserve_formatting,
        )


class EmbeddingPayload(CamelModel):
    text: str
    model: str | None = None


class ChunkPayload(CamelModel):
    text: str
    chunking_options: ChunkingOptionsPayload | None = None


class ChunkedEmbeddingPayload(EmbeddingPayload):
    chunking_options: ChunkingOptionsPayload | None = None


class ComparisonPayload(CamelModel):
    text1: str
    text2: str
    model: str | None = None


class ChunkedComparisonPayload(ComparisonPayload):
    chunking_options: ChunkingOptionsPayload | None = None


@lru_cache(maxsize=1)
def get_store() -> SQLiteEmbeddingStore:
    return SQLiteEmbeddingStore()


@lru_cache(maxsize=1)
def get_comparator() -> Comparator:
    return Comparator(
        SentenceTransformerProvider(),
        get_store(),
        model_name=CONFIG.model_name,
        max_concurrency=CONFIG.max_concurrency,
    )


def _options(payload: ChunkingOptionsPayload | None) -> ChunkingOptions:
    return (payload or ChunkingOptionsPayload()).to_options()


def _require(*values: str) -> None:
    if not all(value.strip() for value in values):
        detail = "Text is required" if len(values) == 1 else "Both text1 and text2 are required"
        raise HTTPException(status_code=400, detail=detail)


def _camel(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(key): _camel(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camel(item) for item in value]
    return value


def _ok(data: Any, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": _camel(data)}
    if message:
        body["message"] = message
    return body


def _stored(record: StoredEmbedding) -> dict[str, Any]:
    return {
        "id": record.id,
        "text": record.text,
        "embedding": record.embedding.tolist(),
        "model": record.model,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.exception_handler(DimensionMismatchError)
@app.exception_handler(EmptyInputError)
async def caller_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    LOGGER.error("Embedding provider failed for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})


@app.get("/health")
async def health() -> dict[str, Any]:
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/chunks")
async def create_chunks(payload: ChunkPayload) -> dict[str, Any]:
    chunks = chunk(payload.text, _options(payload.chunking_options))
    return _ok({"chunks": [asdict(item) for item in chunks], "total_chunks": len(chunks)})


@app.post("/api/embeddings/create", status_code=201)
async def create_embedding(
    payload: EmbeddingPayload, comparator: Comparator = Depends(get_comparator)
) -> dict[str, Any]:
    _require(payload.text)
    result = await comparator.embed_text(payload.text, payload.model)
    return _ok(
        {"embedding": result.embedding.tolist(), "model": result.model, "text": result.text},
        "Embedding created successfully",
    )


@app.post("/api/embeddings/create-chunked", status_code=201)
async def create_chunked_embedding(
    payload: ChunkedEmbeddingPayload, comparator: Comparator = Depends(get_comparator)
) -> dict[str, Any]:
    _require(payload.text)
    result = await comparator.embed_chunked(
        payload.text, _options(payload.chunking_options), payload.model
    )
    chunks: List[dict[str, Any]] = [
        {
            "chunk_id": item.chunk.id,
            "text": item.chunk.text,
            "embedding": item.embedding.tolist(),
            "chunk_index": item.chunk.chunk_index,
            "metadata": item.chunk.metadata,
        }
        for item in result.chunks
    ]
    return _ok(
        {
            "original_text": result.original_text,
            "chunks": chunks,
            "model": result.model,
            "total_chunks": result.total_chunks,
        },
        "Chunked embeddings created successfully",
    )


@app.post("/api/embeddings/compare")
async def compare_embeddings(
    payload: ComparisonPayload, comparator: Comparator = Depends(get_comparator)
) -> dict[str, Any]:
    _require(payload.text1, payload.text2)
    result = await comparator.compare(payload.text1, payload.text2, payload.model)
    return _ok(asdict(result), "Embeddings compared successfully")


@app.post("/api/embeddings/compare-chunked")
async def compare_chunked_embeddings(
    payload: ChunkedComparisonPayload, comparator: Comparator = Depends(get_comparator)
) -> dict[str, Any]:
    _require(payload.text1, payload.text2)
    comparison = await comparator.compare_chunked(
        payload.text1, payload.text2, _options(payload.chunking_options), payload.model
    )
    result = comparison.result
    return _ok(
        {
            "text1": comparison.text1,
            "text2": comparison.text2,
            "model": comparison.model,
            "chunk_similarities": [asdict(record) for record in result.chunk_similarities],
            "average_similarity": result.average_similarity,
            "max_similarity": result.max_similarity,
            "min_similarity": result.min_similarity,
        },
        "Chunked embeddings compared successfully",
    )


@app.get("/api/embeddings/stored")
async def list_stored_embeddings(
    model: str | None = None,
    limit: int | None = Query(None, ge=0),
    offset: int | None = Query(None, ge=0),
    store: SQLiteEmbeddingStore = Depends(get_store),
) -> dict[str, Any]:
    records = store.find_all(model=model, limit=limit, offset=offset)
    return _ok([_stored(record) for record in records])


@app.get("/api/embeddings/stored/{record_id}")
async def get_stored_embedding(
    record_id: str, store: SQLiteEmbeddingStore = Depends(get_store)
) -> dict[str, Any]:
    record = store.find_by_id(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Embedding not found")
    return _ok(_stored(record))


@app.delete("/api/embeddings/stored/{record_id}")
async def delete_stored_embedding(
    record_id: str, store: SQLiteEmbeddingStore = Depends(get_store)
) -> dict[str, Any]:
    if not store.delete(record_id):
        raise HTTPException(status_code=404, detail="Embedding not found")
    return _ok({"deleted_id": record_id}, "Embedding deleted successfully")
