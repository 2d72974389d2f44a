"""
Supply chain news search CLI.

Commands:
- init-db: Create the database schema
- import: Load categories and articles from a JSON file
- search: Search published articles
- stats: Display corpus statistics
"""

# Load environment variables before any other imports
# This ensures production paths are available to config modules
from pathlib import Path
from dotenv import load_dotenv

env_path = Path.cwd() / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Standard library imports
import asyncio
import sys
import logging

# Third-party imports
import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..config.search_config import DATABASE_PATH, LOG_LEVEL, SEARCH_CONFIG
from ..ingestion.article_storage import ArticleStorage
from ..ingestion.database import init_database
from ..search.explainer import describe_reason
from ..search.query_enhancer import create_query_enhancer
from ..search.search_engine import SearchEngine

console = Console()

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
def cli():
    """Supply Chain News Search CLI - Manage the corpus and run searches."""
    pass


# ============================================================================
# Database Commands
# ============================================================================

@cli.command(name='init-db')
@click.option('--db-path', '-d', default=DATABASE_PATH, help='Database path')
def init_db(db_path):
    """Initialize the database schema."""
    console.print("\n[bold cyan]Initializing Database[/bold cyan]\n")

    try:
        db = init_database(db_path)
        db.close()
        console.print(f"[green]✓[/green] Database initialized at: {db_path}")
        console.print("[green]✓[/green] Schema created successfully\n")
    except Exception as e:
        console.print(f"[red]Error initializing database: {e}[/red]\n")
        sys.exit(1)


@cli.command(name='import')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--db-path', '-d', default=DATABASE_PATH, help='Database path')
def import_articles(file, db_path):
    """
    Import categories and articles from a JSON file.

    The file holds {"categories": [...], "articles": [...]}.
    """
    console.print("\n[bold cyan]Importing Articles[/bold cyan]\n")

    db = init_database(db_path)
    try:
        stats = ArticleStorage(db.connect()).import_file(file)
    except Exception as e:
        console.print(f"[red]Import failed: {e}[/red]\n")
        sys.exit(1)
    finally:
        db.close()

    table = Table(title="Import Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Categories", str(stats['categories']))
    table.add_row("Articles Saved", str(stats['articles_saved']))
    table.add_row("Duplicates", str(stats['duplicates']))
    table.add_row("Failed", str(stats['failed']))

    console.print(table)
    console.print()


# ============================================================================
# Search Command
# ============================================================================

@cli.command()
@click.argument('query')
@click.option('--limit', '-l', default=SEARCH_CONFIG['default_limit'], type=int, help='Maximum results to return')
@click.option('--offset', '-o', default=0, type=int, help='Result offset')
@click.option('--no-ai', is_flag=True, help='Skip AI query enhancement')
@click.option('--explain', '-e', is_flag=True, help='Show why each article matched')
@click.option('--db-path', default=DATABASE_PATH, help='Database path')
def search(query, limit, offset, no_ai, explain, db_path):
    """
    Search published articles.

    Examples:
        supplychain-search search "red sea"
        supplychain-search search "port congestion" --limit 20 --explain
        supplychain-search search "freight rates" --no-ai
    """
    console.print(f"\n[bold cyan]Searching:[/bold cyan] {query}\n")

    engine = SearchEngine(
        db_path=db_path,
        enhancer=None if no_ai else create_query_enhancer()
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Searching...", total=None)

            results = asyncio.run(
                engine.search(query=query, limit=limit, offset=offset, use_ai=not no_ai)
            )

            progress.remove_task(task)

        if results.get('enhanced_query'):
            console.print(f"[blue]Enhanced query:[/blue] {results['enhanced_query']}")
        if results.get('related_terms'):
            console.print(f"[blue]Related terms:[/blue] {', '.join(results['related_terms'])}")
        if results.get('query_context'):
            console.print(f"[dim]{results['query_context']}[/dim]")

        console.print(
            f"[bold green]Found {results['total']} articles[/bold green] "
            f"(showing {len(results['articles'])})\n"
        )

        if not results['articles']:
            console.print("[yellow]No results found. Try a different query.[/yellow]\n")
            return

        table = Table()
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title", style="cyan", max_width=60)
        table.add_column("Published", style="blue")
        table.add_column("Views", justify="right")
        table.add_column("Score", justify="right", style="green")

        start = results.get('offset', 0)
        for i, article in enumerate(results['articles'], start + 1):
            table.add_row(
                str(i),
                article['title'],
                article['published_at'][:10],
                str(article['views']),
                str(article['score'])
            )

        console.print(table)

        if explain:
            console.print("\n[bold]Match reasons:[/bold]\n")
            for i, article in enumerate(results['articles'], start + 1):
                console.print(f"[cyan]{i}. {article['title']}[/cyan]")
                for reason in article['match_reasons']:
                    console.print(f"   [dim]{reason}[/dim]  {describe_reason(reason)}")

        if results['total'] > start + len(results['articles']):
            console.print(
                f"\n[dim]Showing results {start + 1}-{start + len(results['articles'])} "
                f"of {results['total']} total. Use --offset to see more.[/dim]"
            )

        console.print()

    except Exception as e:
        console.print(f"[red]Search error: {e}[/red]\n")
        if LOG_LEVEL == "DEBUG":
            import traceback
            console.print(traceback.format_exc())
        sys.exit(1)
    finally:
        engine.close()


# ============================================================================
# Statistics Command
# ============================================================================

@cli.command()
@click.option('--db-path', '-d', default=DATABASE_PATH, help='Database path')
def stats(db_path):
    """Display corpus statistics."""
    console.print("\n[bold cyan]Supply Chain News Search Statistics[/bold cyan]\n")

    engine = SearchEngine(db_path=db_path)

    try:
        statistics = engine.get_stats()
    finally:
        engine.close()

    table = Table(title="Corpus Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total Articles", str(statistics['total_articles']))
    table.add_row("Published Articles", str(statistics['published_articles']))
    table.add_row("Categories", str(statistics['categories_count']))
    table.add_row("Earliest", str(statistics['date_range']['earliest'] or '-'))
    table.add_row("Latest", str(statistics['date_range']['latest'] or '-'))

    console.print(table)
    console.print()


if __name__ == '__main__':
    cli()
