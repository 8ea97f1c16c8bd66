"""
Command-line interface for lshmatch.

Wraps index building, searching and housekeeping in click commands with
rich output.
"""

import json
from functools import wraps
from pathlib import Path
from typing import List

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import SettingsManager, create_default_settings_file
from .core.loader import load_entities
from .core.similarity import candidate_probability, threshold_similarity
from .core.types import Match
from .engine import IndexSearcher, build, drop_index, index_info, list_indexes
from .errors import MatcherError
from .utils.logging_setup import setup_logging

console = Console()


def handle_errors(func):
    """Report MatcherError cleanly and exit with status 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MatcherError as e:
            console.print(f"[red]✗ {escape(e.message)}[/red]")
            click.get_current_context().exit(1)
    return wrapper


@click.group(name="lshmatch")
@click.version_option(__version__, prog_name="lshmatch")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to settings YAML")
@click.option("--index-root", type=click.Path(file_okay=False), help="Directory holding indexes")
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG logging")
@click.pass_context
@handle_errors
def main(ctx, config_path, index_root, verbose):
    """Approximate string matching with MinHash LSH indexes."""
    manager = SettingsManager(config_path)
    settings = manager.load()
    if index_root:
        settings = manager.update(index_root=index_root)
    if verbose:
        settings = manager.update(log_level="DEBUG" if verbose > 1 else "INFO")

    setup_logging("lshmatch", level=settings.log_level)
    ctx.obj = {"settings": settings, "manager": manager}


@main.command(name="build")
@click.argument("index_name")
@click.argument("entities_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-k", "--signature-size", type=int, default=12, show_default=True, help="MinHash slots (K)")
@click.option("-b", "--band-size", type=int, default=2, show_default=True, help="Slots per LSH band")
@click.option("-n", "--ngram-length", type=int, default=2, show_default=True, help="Code points per n-gram")
@click.option("--seed", type=int, default=None, help="Permutation seed for reproducible builds")
@click.pass_context
@handle_errors
def build_command(ctx, index_name, entities_file, signature_size, band_size, ngram_length, seed):
    """Build INDEX_NAME from a CSV (id,text) or JSON-lines corpus."""
    settings = ctx.obj["settings"]
    entities = load_entities(entities_file)

    with console.status(f"Building index '{index_name}'..."):
        info = build(index_name, entities, signature_size, band_size, ngram_length,
                     seed=seed, settings=settings)

    console.print(
        f"[green]✓ Built '{info.name}': {info.entity_count} entities, "
        f"{info.vocabulary_size} n-grams, {info.band_count} bands[/green]"
    )
    if info.empty_signatures:
        console.print(
            f"[yellow]{info.empty_signatures} entities are shorter than "
            f"ngram_length={ngram_length} and will never match[/yellow]"
        )


def _search_options(func):
    func = click.option("-m", "--min-band-matches", type=int, default=1, show_default=True,
                        help="Minimum shared bands")(func)
    func = click.option("-s", "--min-similarity", type=float, default=0.0, show_default=True,
                        help="Drop matches below this similarity")(func)
    func = click.option("-l", "--limit", type=int, default=None, help="Matches kept per query")(func)
    func = click.option("--json", "as_json", is_flag=True, help="Emit JSON lines instead of a table")(func)
    return func


def _print_matches(matches: List[Match], as_json: bool, texts=None):
    if as_json:
        for m in matches:
            click.echo(json.dumps(m.to_dict()))
        return

    if not matches:
        console.print("[yellow]No matches[/yellow]")
        return

    table = Table(title=f"{len(matches)} matches")
    table.add_column("Query", justify="right")
    if texts:
        table.add_column("Query text")
    table.add_column("Corpus id", justify="right", style="cyan")
    table.add_column("Bands", justify="right")
    table.add_column("Similarity", justify="right", style="green")
    for m in matches:
        row = [str(m.query_id)]
        if texts:
            row.append(texts.get(m.query_id, ""))
        row.extend([str(m.corpus_id), str(m.matched_bands), f"{m.similarity:.3f}"])
        table.add_row(*row)
    console.print(table)


@main.command(name="search")
@click.argument("index_name")
@click.argument("query")
@_search_options
@click.pass_context
@handle_errors
def search_command(ctx, index_name, query, min_band_matches, min_similarity, limit, as_json):
    """Search INDEX_NAME for strings similar to QUERY."""
    searcher = IndexSearcher(index_name, settings=ctx.obj["settings"])
    matches = searcher.search_one(query, min_band_matches, min_similarity=min_similarity, limit=limit)
    _print_matches(matches, as_json)


@main.command(name="search-file")
@click.argument("index_name")
@click.argument("queries_file", type=click.Path(exists=True, dir_okay=False))
@_search_options
@click.pass_context
@handle_errors
def search_file_command(ctx, index_name, queries_file, min_band_matches, min_similarity, limit, as_json):
    """Search INDEX_NAME for every entity in a CSV or JSON-lines file."""
    queries = load_entities(queries_file)
    searcher = IndexSearcher(index_name, settings=ctx.obj["settings"])
    matches = searcher.search_many(queries, min_band_matches, min_similarity=min_similarity, limit=limit)
    _print_matches(matches, as_json, texts={q.id: q.text for q in queries})


@main.command(name="info")
@click.argument("index_name")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
@handle_errors
def info_command(ctx, index_name, as_json):
    """Show how INDEX_NAME was built and its expected recall curve."""
    info = index_info(index_name, settings=ctx.obj["settings"])
    if as_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    cfg = info.config
    table = Table(title=f"Index '{info.name}'", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Path", info.path)
    table.add_row("Built", info.built_at)
    table.add_row("N-gram length", str(cfg.ngram_length))
    table.add_row("Signature size", str(cfg.signature_size))
    table.add_row("Band size", str(cfg.hash_band_size))
    table.add_row("Bands per entity", str(cfg.band_count))
    table.add_row("Entities", str(info.entity_count))
    table.add_row("Empty signatures", str(info.empty_signatures))
    table.add_row("Vocabulary", str(info.vocabulary_size))
    table.add_row("Band rows", str(info.band_count))
    table.add_row("Threshold", f"{threshold_similarity(cfg.signature_size, cfg.hash_band_size):.3f}")
    console.print(table)

    curve = Table(title="P(candidate | similarity), min_band_matches=1")
    curve.add_column("Similarity", justify="right")
    curve.add_column("Probability", justify="right", style="green")
    for s in (0.2, 0.4, 0.6, 0.8, 0.9, 1.0):
        curve.add_row(f"{s:.1f}", f"{candidate_probability(s, cfg.signature_size, cfg.hash_band_size):.3f}")
    console.print(curve)


@main.command(name="list")
@click.pass_context
def list_command(ctx):
    """List completed indexes."""
    names = list_indexes(settings=ctx.obj["settings"])
    if not names:
        console.print("[yellow]No indexes found[/yellow]")
    for name in names:
        click.echo(name)


@main.command(name="drop")
@click.argument("index_name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@handle_errors
def drop_command(ctx, index_name, yes):
    """Delete INDEX_NAME."""
    if not yes and not click.confirm(f"Delete index '{index_name}'?"):
        console.print("[yellow]Aborted[/yellow]")
        return
    drop_index(index_name, settings=ctx.obj["settings"])
    console.print(f"[green]✓ Dropped '{index_name}'[/green]")


@main.group(name="config")
def config_group():
    """Manage lshmatch settings."""
    pass


@config_group.command(name="init")
@click.option("--path", type=click.Path(dir_okay=False), default=SettingsManager.DEFAULT_CONFIG_FILE,
              show_default=True, help="Path for settings file")
def config_init(path):
    """Write a default settings file."""
    config_path = Path(path)
    if config_path.exists() and not click.confirm(f"Settings file {path} already exists. Overwrite?"):
        console.print("[yellow]Aborted[/yellow]")
        return
    create_default_settings_file(config_path)
    console.print(f"[green]✓ Created settings file at {path}[/green]")


@config_group.command(name="show")
@click.pass_context
def config_show(ctx):
    """Display the effective settings."""
    ctx.obj["manager"].display(ctx.obj["settings"], console=console)


if __name__ == "__main__":
    main()
