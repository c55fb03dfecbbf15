"""Command line interface for chunkcompare."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from chunkcompare.chunking.chunker import chunk as chunk_text
from chunkcompare.config import AppConfig
from chunkcompare.embedding.encoder import SentenceTransformerProvider
from chunkcompare.errors import ChunkCompareError
from chunkcompare.index.comparator import Comparator
from chunkcompare.models import ChunkBy, ChunkingOptions
from chunkcompare.web.app import app as web_app


console = Console()
app = typer.Typer(help="chunkcompare - chunk documents and compare them by embedding similarity")

DEFAULTS = AppConfig()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _read_text(path: Path) -> str:
    if not path.is_file():
        raise typer.BadParameter(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def _snippet(text: str, width: int = 80) -> str:
    flat = text.replace("\n", " ")
    return flat if len(flat) <= width else flat[: width - 3] + "..."


@app.command()
def chunk(
    source: Path = typer.Argument(..., help="Text file to split.", resolve_path=True),
    max_chunk_size: int = typer.Option(DEFAULTS.max_chunk_size, min=1, help="Chunk size budget in characters"),
    overlap_size: int = typer.Option(DEFAULTS.overlap_size, min=0, help="Overlap budget in characters"),
    chunk_by: ChunkBy = typer.Option(DEFAULTS.chunk_by, help="Unit used to split the text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Split a text file into overlapping chunks."""
    _setup_logging(verbose)
    options = ChunkingOptions(max_chunk_size=max_chunk_size, overlap_size=overlap_size, chunk_by=chunk_by)
    chunks = chunk_text(_read_text(source), options)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Words")
    table.add_column("Text")
    for item in chunks:
        table.add_row(
            str(item.chunk_index),
            str(item.start_index),
            str(item.end_index),
            str(item.metadata["word_count"]),
            _snippet(item.text),
        )

    console.print(table)
    console.print(f"Total chunks: {len(chunks)}")


@app.command()
def compare(
    first: Path = typer.Argument(..., help="First text file.", resolve_path=True),
    second: Path = typer.Argument(..., help="Second text file.", resolve_path=True),
    model: str = typer.Option(DEFAULTS.model_name, help="Sentence-transformer model name"),
    max_chunk_size: int = typer.Option(DEFAULTS.max_chunk_size, min=1, help="Chunk size budget in characters"),
    overlap_size: int = typer.Option(DEFAULTS.overlap_size, min=0, help="Overlap budget in characters"),
    chunk_by: ChunkBy = typer.Option(DEFAULTS.chunk_by, help="Unit used to split the text"),
    top_k: int = typer.Option(5, help="Number of most similar chunk pairs to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Compare two text files chunk by chunk."""
    _setup_logging(verbose)
    options = ChunkingOptions(max_chunk_size=max_chunk_size, overlap_size=overlap_size, chunk_by=chunk_by)
    text1 = _read_text(first)
    text2 = _read_text(second)

    comparator = Comparator(
        SentenceTransformerProvider(), model_name=model, max_concurrency=DEFAULTS.max_concurrency
    )
    try:
        comparison = asyncio.run(comparator.compare_chunked(text1, text2, options))
    except ChunkCompareError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    result = comparison.result
    console.print(
        f"Average: {result.average_similarity:.4f}, "
        f"max: {result.max_similarity:.4f}, min: {result.min_similarity:.4f}"
    )

    ranked = sorted(result.chunk_similarities, key=lambda record: record.similarity, reverse=True)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Chunk A")
    table.add_column("Chunk B")
    for record in ranked[:top_k]:
        table.add_row(f"{record.similarity:.4f}", _snippet(record.chunk1_text, 60), _snippet(record.chunk2_text, 60))
    console.print(table)


@app.command()
def web(
    host: str = typer.Option(DEFAULTS.host, help="Host interface"),
    port: int = typer.Option(DEFAULTS.port, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    console.print(f"Starting API on http://{host}:{port}")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover
    app()
