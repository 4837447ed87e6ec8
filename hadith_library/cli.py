"""
CLI entry point: inspect book TOCs and the topic taxonomy from the shell.

    hadith-library toc <book_id> --depth 3 --at 1234
    hadith-library topics [PARENT_ID] --depth 2
    hadith-library search "الصلاة"
    hadith-library hydrate
    hadith-library config show
"""

import logging
from typing import Optional

import typer

from hadith_library.config import load_settings
from hadith_library.models import LibrarySettings
from hadith_library.providers import TransientFetchError
from hadith_library.tools import search as search_tool
from hadith_library.tools import toc as toc_tool
from hadith_library.tools import topics as topics_tool
from hadith_library.tools.config import config_app

app = typer.Typer(
    name="hadith-library",
    help="Browse hadith book TOCs and the topic taxonomy backed by the library database.",
)
app.add_typer(config_app, name="config")

ProviderOption = typer.Option(None, "--provider", "-p", help="Override provider: postgrest or memory")
DataOption = typer.Option(None, "--data", help="JSON dump for the memory provider")
VerboseOption = typer.Option(False, "-v", "--verbose", help="Print diagnostic info")


def _settings(provider: Optional[str], data: Optional[str], verbose: bool) -> LibrarySettings:
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    overrides = {"provider": provider, "data_path": data}
    if data and not provider:
        overrides["provider"] = "memory"
    try:
        return load_settings(overrides)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _guard(func, *args, **kwargs):
    """Run a tool, turning configuration and load errors into a clean exit."""
    try:
        return func(*args, **kwargs)
    except (KeyError, ValueError, TransientFetchError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        typer.echo(f"Error: {message}", err=True)
        raise typer.Exit(1)


@app.command("toc")
def toc_cmd(
    book_id: str = typer.Argument(..., help="Book id"),
    depth: int = typer.Option(2, "--depth", "-d", help="Max depth to display"),
    at: Optional[int] = typer.Option(None, "--at", help="Hadith id; mark the section active there"),
    provider: Optional[str] = ProviderOption,
    data: Optional[str] = DataOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show a book's table of contents."""
    settings = _settings(provider, data, verbose)
    for line in _guard(toc_tool.run, book_id, depth=depth, position=at, settings=settings):
        typer.echo(line)


@app.command("topics")
def topics_cmd(
    parent_id: Optional[int] = typer.Argument(None, help="Topic id to expand (omit for roots)"),
    depth: int = typer.Option(1, "--depth", "-d", help="Levels to load and display"),
    provider: Optional[str] = ProviderOption,
    data: Optional[str] = DataOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show root topics or the children of a topic."""
    settings = _settings(provider, data, verbose)
    for line in _guard(topics_tool.run, parent_id, depth=depth, settings=settings):
        typer.echo(line)


@app.command("search")
def search_cmd(
    query: str = typer.Argument(..., help="Title substring"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Max results"),
    hydrate: bool = typer.Option(False, "--hydrate", help="Cache the whole taxonomy before searching"),
    provider: Optional[str] = ProviderOption,
    data: Optional[str] = DataOption,
    verbose: bool = VerboseOption,
) -> None:
    """Search topics by title."""
    settings = _settings(provider, data, verbose)
    matches = _guard(search_tool.run, query, limit=limit, hydrate=hydrate, settings=settings)
    if not matches:
        typer.echo("No matches found.")
        return
    for topic in matches:
        typer.echo(f"[{topic.level}] {topic.title} (id {topic.id}, parent {topic.parent_id})")


@app.command("hydrate")
def hydrate_cmd(
    provider: Optional[str] = ProviderOption,
    data: Optional[str] = DataOption,
    verbose: bool = VerboseOption,
) -> None:
    """Load the full taxonomy into a cache and report its size."""
    settings = _settings(provider, data, verbose)
    stats = _guard(topics_tool.hydrate, settings=settings)
    typer.echo(f"Roots:   {stats['roots']}")
    typer.echo(f"Topics:  {stats['topics']}")
    typer.echo(f"Parents: {stats['parents']}")


def main() -> None:
    """Entry point for the hadith-library console script."""
    app()


if __name__ == "__main__":
    main()
