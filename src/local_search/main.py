import json
import logging
from pathlib import Path
from typing import Annotated, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from typer import Argument, Exit, Option, Typer, echo

from .embeddings import build_embedding_provider
from .engine import LocalSearchEngine
from .errors import LocalSearchError
from .index_config import resolve_db_path
from .ingest import JsonFileIngestor, RawFileIngestor
from .search import SearchMode, SearchResult
from .storage import DuckDBStorage

app = Typer(help="Local hybrid (lexical + semantic) document search.")
console = Console()
err_console = Console(stderr=True)

DbPathOption = Annotated[
    Optional[str],
    Option(
        "--db-path",
        help="Path to the DuckDB index file. Defaults to $LOCAL_SEARCH_DB_PATH or ./.local_search.duckdb.",
    ),
]
EmbeddingsOption = Annotated[
    Optional[str],
    Option(
        "--embeddings",
        help="Embedding backend: 'local' (sentence-transformers), 'genai' or 'none'.",
    ),
]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> Exit:
    err_console.print(f"[bold red]Error:[/] {message}")
    return Exit(code=1)


def _open_engine(
    db_path: Optional[str],
    embeddings: Optional[str],
    *,
    must_exist: bool = False,
) -> LocalSearchEngine:
    resolved = resolve_db_path(db_path)
    if must_exist and not Path(resolved).exists():
        raise _fail(
            f"Database file '{resolved}' does not exist. "
            "Run the 'index' command first to create and populate it."
        )
    try:
        provider = build_embedding_provider(embeddings)
        return LocalSearchEngine(DuckDBStorage(resolved), provider)
    except (LocalSearchError, ValueError) as exc:
        raise _fail(str(exc)) from exc


def _result_to_dict(result: SearchResult) -> dict:
    return {
        "path": result.path,
        "final_score": result.final_score,
        "fts_score": result.fts_score,
        "semantic_score": result.semantic_score,
        "metadata": result.metadata,
        "created_at": result.created_at,
        "updated_at": result.updated_at,
    }


def _render_result(rank: int, result: SearchResult) -> Panel:
    lines = [f"**Path:** `{result.path}`"]
    if result.fts_score is not None:
        lines.append(f"- Lexical score: {result.fts_score:.4f}")
    if result.semantic_score is not None:
        lines.append(f"- Semantic score: {result.semantic_score:.4f}")
    if result.metadata:
        pairs = ", ".join(f"{key}={value}" for key, value in sorted(result.metadata.items()))
        lines.append(f"- Metadata: {pairs}")
    return Panel(
        Markdown("\n".join(lines)),
        title=f"Result {rank} - score {result.final_score:.4f}",
        title_align="left",
        border_style="bold cyan",
    )


@app.callback()
def main(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Enable debug logging.")
    ] = False,
) -> None:
    configure_logging(verbose)


@app.command()
def index(
    path: Annotated[str, Argument(help="File or directory to index.")],
    db_path: DbPathOption = None,
    file_type: Annotated[
        str,
        Option(
            "--file-type",
            help="'json' for files holding [{\"path\", \"content\", \"metadata\"}] lists, 'text' for raw text files.",
        ),
    ] = "json",
    embeddings: EmbeddingsOption = None,
) -> None:
    """Index documents from a file or directory."""
    if file_type not in {"json", "text"}:
        raise _fail(f"Unsupported file type: {file_type}. Use 'json' or 'text'.")

    engine = _open_engine(db_path, embeddings)
    try:
        with console.status(f"Indexing documents from {path}..."):
            if file_type == "json":
                count = JsonFileIngestor(engine).ingest(path)
            else:
                count = RawFileIngestor(engine).ingest(path)
        total = engine.stats()
    except (LocalSearchError, ValueError, OSError) as exc:
        raise _fail(str(exc)) from exc
    finally:
        engine.close()

    console.print(
        Panel(
            f"Indexed {count} documents. Index now holds {total} documents.",
            title="Index Complete",
            title_align="left",
            border_style="bold green",
        )
    )


@app.command()
def search(
    query: Annotated[str, Argument(help="Search query.")],
    db_path: DbPathOption = None,
    mode: Annotated[
        str,
        Option("--mode", help="lexical (alias fulltext, fts), semantic (alias embedding) or hybrid."),
    ] = "hybrid",
    limit: Annotated[int, Option("--limit", help="Maximum number of results.")] = 10,
    path_filter: Annotated[
        Optional[List[str]],
        Option(
            "--path-filter",
            help="Only return paths containing this substring. Repeat to OR several.",
        ),
    ] = None,
    json_output: Annotated[
        bool, Option("--json", help="Output results as JSON.")
    ] = False,
    embeddings: EmbeddingsOption = None,
) -> None:
    """Search indexed documents."""
    try:
        search_mode = SearchMode.parse(mode)
    except ValueError as exc:
        raise _fail(str(exc)) from exc

    engine = _open_engine(db_path, embeddings, must_exist=True)
    try:
        results = engine.search(query, search_mode, limit=limit, path_filters=path_filter)
    except LocalSearchError as exc:
        raise _fail(str(exc)) from exc
    finally:
        engine.close()

    if json_output:
        payload = {
            "query": query,
            "search_type": search_mode.value,
            "results_count": len(results),
            "results": [_result_to_dict(result) for result in results],
        }
        echo(json.dumps(payload, indent=2))
        return

    if not results:
        console.print("[bold yellow]No results found.[/]")
        return
    console.print(f"[bold]Found {len(results)} results for[/] \"{query}\"")
    for rank, result in enumerate(results, start=1):
        console.print(_render_result(rank, result))


@app.command()
def stats(db_path: DbPathOption = None) -> None:
    """Show how many documents are indexed."""
    engine = _open_engine(db_path, "none", must_exist=True)
    try:
        count = engine.stats()
    except LocalSearchError as exc:
        raise _fail(str(exc)) from exc
    finally:
        engine.close()
    console.print(f"Documents indexed: {count}")


@app.command()
def delete(
    path: Annotated[str, Argument(help="Document path to remove.")],
    db_path: DbPathOption = None,
) -> None:
    """Remove a document from the index."""
    engine = _open_engine(db_path, "none", must_exist=True)
    try:
        engine.delete(path)
        count = engine.stats()
    except LocalSearchError as exc:
        raise _fail(str(exc)) from exc
    finally:
        engine.close()
    console.print(f"Deleted {path}. Documents indexed: {count}")
