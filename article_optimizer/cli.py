"""Command line interface for the article optimizer."""

import asyncio
import functools
import sys
from typing import Optional

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import settings
from .core.exceptions import OptimizerError
from .utils.logging_config import setup_logging


console = Console()


def async_command(f):
    """Decorator to run async CLI commands."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


async def _shutdown(orchestrator=None):
    from .core.http_client import close_http_client
    from .database import close_db_engine

    if orchestrator is not None:
        await orchestrator.close()
    await close_http_client()
    await close_db_engine()


@click.group()
@click.version_option(version=__version__)
@click.option('--log-level', default=None, help='Override LOG_LEVEL')
@click.option('--log-file', default=None, help='Also write logs to this file')
def cli(log_level: Optional[str], log_file: Optional[str]):
    """Article optimizer - crawl a blog and rewrite its posts with reference articles."""
    setup_logging(level=log_level or settings.log_level, log_file=log_file)


@cli.command()
@async_command
async def init_db():
    """Create the database tables."""
    from .database import init_db as _init_db

    try:
        await _init_db()
        console.print("[green]✅ Database ready[/green]")
    except OptimizerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)
    finally:
        await _shutdown()


@cli.command()
@click.option('--url', default=None, help='Blog index URL (defaults to SOURCE_INDEX_URL)')
@click.option('--count', '-n', default=None, type=int, help='Number of articles to ingest')
@async_command
async def crawl(url: Optional[str], count: Optional[int]):
    """Ingest the oldest articles from the blog index."""
    from .database import init_db as _init_db
    from .orchestrator import PipelineOrchestrator

    await _init_db()
    orchestrator = PipelineOrchestrator()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Crawling articles...", total=None)
        try:
            stats = await orchestrator.run_crawl(url, count)
            progress.update(task, description="✅ Crawl completed!")
        except OptimizerError as e:
            progress.update(task, description="❌ Crawl failed!")
            console.print(f"\n[bold red]Error:[/bold red] {e}")
            await _shutdown(orchestrator)
            sys.exit(1)

    console.print("\n[bold green]Crawl Summary:[/bold green]")
    console.print(f"• Candidates discovered: {stats['discovered']}")
    console.print(f"• Already stored: {stats['skipped_existing']}")
    console.print(f"• Articles created: {stats['created']}")
    console.print(f"• Failed: {stats['failed']}")
    console.print(f"• Total stored: {stats['total_stored']}")
    if stats.get('error'):
        console.print(f"[yellow]⚠️ {stats['error']}[/yellow]")

    await _shutdown(orchestrator)


@cli.command()
@click.argument('article_id', type=int, required=False)
@click.option('--all', 'all_pending', is_flag=True, help='Optimize every article not yet optimized')
@async_command
async def optimize(article_id: Optional[int], all_pending: bool):
    """Optimize one article by id, or all pending articles."""
    from .orchestrator import PipelineOrchestrator

    if article_id is None and not all_pending:
        console.print("[red]❌ Pass an ARTICLE_ID or --all[/red]")
        sys.exit(2)

    orchestrator = PipelineOrchestrator()
    try:
        if all_pending:
            stats = await orchestrator.optimize_pending()
            console.print("\n[bold green]Optimization Summary:[/bold green]")
            console.print(f"• Processed: {stats['processed']}")
            console.print(f"• Optimized: {stats['optimized']}")
            console.print(f"• Failed: {stats['failed']}")
            console.print(f"• Skipped: {stats['skipped']}")
            console.print(f"• Store: {stats['total_optimized']} optimized, {stats['total_original']} original")
        else:
            article = await orchestrator.optimize_article(article_id)
            console.print(f"[green]✅ Optimized:[/green] {article.title}")
            console.print(f"• References: {len(article.references)}")
            for ref in article.references:
                console.print(f"  - {ref['title']} ({ref['url']})")
    except OptimizerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)
    finally:
        await _shutdown(orchestrator)


@cli.command()
@click.argument('query')
@click.option('--max-results', '-n', default=None, type=int, help='Maximum candidates')
@async_command
async def search(query: str, max_results: Optional[int]):
    """Find reference articles for QUERY."""
    from .search import ReferenceSearch

    try:
        results = await ReferenceSearch().search(query, max_results=max_results)
    except OptimizerError as e:
        console.print(f"[red]❌ Search failed:[/red] {e}")
        await _shutdown()
        sys.exit(1)

    if not results:
        console.print("[yellow]No candidates found.[/yellow]")
    else:
        table = Table(title=f"References for: {query}")
        table.add_column("#", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("URL")
        table.add_column("Snippet")
        for i, item in enumerate(results, 1):
            table.add_row(str(i), item.title, item.url, (item.snippet[:120] + '...') if len(item.snippet) > 120 else item.snippet)
        console.print(table)
    await _shutdown()


@cli.command()
@click.argument('url')
@async_command
async def extract_url(url: str):
    """Extract article content and metadata from a single URL."""
    from .browser import DocumentFetcher
    from .extraction import SelectorCascadeExtractor

    try:
        console.print(f"[cyan]Extracting:[/cyan] {url}")
        handle = await DocumentFetcher().fetch(url)
        extractor = SelectorCascadeExtractor()
        metadata = extractor.extract_metadata(handle)
        extraction = extractor.extract_content_with_root(handle)
        content = extraction.text if extraction else ''

        preview = (content[:400] + '...') if len(content) > 400 else content
        table = Table(title="Extraction Result")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Title", str(metadata.title))
        table.add_row("Author", str(metadata.author))
        table.add_row("Date", str(metadata.date))
        table.add_row("Tags", ", ".join(metadata.tags))
        table.add_row("Root", (extraction.selector or '<body>') if extraction else '-')
        table.add_row("Length", str(len(content)))
        table.add_row("Content Preview", preview)
        console.print(table)
    except OptimizerError as e:
        console.print(f"[red]❌ Extraction failed:[/red] {e}")
        sys.exit(1)
    finally:
        await _shutdown()


@cli.command()
@click.option('--limit', default=20, help='Number of articles to list')
@async_command
async def stats(limit: int):
    """Show stored article counts."""
    from .services.article_store import ArticleStore

    store = ArticleStore()
    try:
        counts = await store.count_by_status()
        articles = await store.list_articles(limit=limit)
    finally:
        await _shutdown()

    console.print("[bold blue]Article statistics:[/bold blue]")
    console.print(f"• Total: {counts['total']}")
    console.print(f"• Optimized: {counts['optimized']}")
    console.print(f"• Original: {counts['original']}")

    if articles:
        table = Table(title="Articles")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Updated")
        table.add_column("Refs")
        for article in articles:
            table.add_row(
                str(article.id),
                article.title[:60],
                "✅" if article.is_updated else "-",
                str(len(article.references)),
            )
        console.print(table)


def main():
    cli()


if __name__ == '__main__':
    main()
