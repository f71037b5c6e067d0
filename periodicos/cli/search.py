"""Search commands: preview, search and articles.

Each command loads settings, runs one service call and prints either a
human-readable summary or the raw JSON result.
"""

from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from periodicos.cli.utils import (
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_settings,
    run_with_service,
)
from periodicos.models.article import Article
from periodicos.models.search import (
    MAX_YEAR,
    MIN_YEAR,
    ItemFailure,
    SearchFilters,
    SortBy,
)

CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Path to harvester config YAML"
)


def build_filters(
    document_types: Optional[List[str]] = None,
    open_access: Optional[bool] = None,
    peer_reviewed: Optional[bool] = None,
    year_min: Optional[int] = None,
    year_max: Optional[int] = None,
    languages: Optional[List[str]] = None,
) -> SearchFilters:
    """Translate command-line filter options into SearchFilters.

    Raises:
        typer.BadParameter: If a filter value is rejected by validation.
    """
    year_range = None
    if year_min is not None or year_max is not None:
        year_range = (year_min or MIN_YEAR, year_max or MAX_YEAR)

    try:
        return SearchFilters(
            document_types=tuple(document_types) if document_types else None,
            open_access_only=open_access,
            peer_reviewed_only=peer_reviewed,
            year_range=year_range,
            languages=tuple(languages) if languages else None,
        )
    except ValidationError as e:
        raise typer.BadParameter(str(e))


def _format_article(index: int, article: Article) -> str:
    year = article.year or "n.d."
    line = f"{index}. {article.title} ({year})"
    if article.journal:
        line += f" - {article.journal}"
    metrics = article.metrics
    if metrics is not None:
        extras = [f"citations: {metrics.cited_by_count}"]
        if metrics.qualis is not None:
            extras.append(f"Qualis {metrics.qualis.classification}")
        line += f" [{', '.join(extras)}]"
    return line


def _display_failures(failures: List[ItemFailure]) -> None:
    if not failures:
        return
    display_warning(f"{len(failures)} item(s) failed:")
    for failure in failures:
        typer.echo(f" - [{failure.stage}] {failure.item}: {failure.error}")


@handle_errors
def preview_command(
    query: str = typer.Argument(..., help="Search term"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Show the hit count and a few sample titles for a query."""
    settings = load_settings(config_path)
    preview = run_with_service(settings, lambda s: s.preview_search(query))

    display_success(f"{preview.total_found} results for '{preview.query}'")
    for title in preview.sample_titles:
        typer.echo(f" - {title}")


@handle_errors
def search_command(
    query: str = typer.Argument(..., help="Search term"),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", min=1),
    max_results: Optional[int] = typer.Option(None, "--max-results", "-n", min=1),
    full_details: bool = typer.Option(
        False, "--full-details", help="Fetch every article's detail page"
    ),
    include_metrics: bool = typer.Option(
        False, "--metrics", help="Attach Qualis and OpenAlex metrics"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, max=50),
    document_types: Optional[List[str]] = typer.Option(None, "--doc-type"),
    open_access: Optional[bool] = typer.Option(
        None, "--open-access/--not-open-access"
    ),
    peer_reviewed: Optional[bool] = typer.Option(
        None, "--peer-reviewed/--not-peer-reviewed"
    ),
    year_min: Optional[int] = typer.Option(None, "--year-min"),
    year_max: Optional[int] = typer.Option(None, "--year-max"),
    languages: Optional[List[str]] = typer.Option(None, "--language"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Search the portal and list matching articles."""
    settings = load_settings(config_path)
    filters = build_filters(
        document_types, open_access, peer_reviewed, year_min, year_max, languages
    )

    def _search(service):
        options = service.build_options(
            query,
            max_pages=max_pages,
            max_results=max_results,
            full_details=full_details,
            include_metrics=include_metrics,
            max_workers=workers or settings.max_workers,
            filters=filters,
        )
        return service.search(options)

    result = run_with_service(settings, _search)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    display_info(
        f"{result.total_found} results, {result.pages_processed} page(s) processed"
    )
    for i, article in enumerate(result.articles, 1):
        typer.echo(_format_article(i, article))
    _display_failures(result.failures)


@handle_errors
def articles_command(
    query: str = typer.Argument(..., help="Search term"),
    start_index: int = typer.Option(0, "--start", min=0),
    count: int = typer.Option(10, "--count", min=1, max=50),
    sort_by: SortBy = typer.Option(SortBy.RELEVANCE, "--sort"),
    document_types: Optional[List[str]] = typer.Option(None, "--doc-type"),
    year_min: Optional[int] = typer.Option(None, "--year-min"),
    year_max: Optional[int] = typer.Option(None, "--year-max"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Fetch one window of fully detailed articles."""
    settings = load_settings(config_path)
    filters = build_filters(document_types, year_min=year_min, year_max=year_max)

    result = run_with_service(
        settings,
        lambda s: s.get_articles(
            query,
            start_index=start_index,
            count=count,
            filters=filters,
            sort_by=sort_by,
        ),
    )

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    display_info(
        f"Articles {start_index + 1}-{start_index + result.count_returned} "
        f"of {result.total_found}"
    )
    for i, article in enumerate(result.articles, start_index + 1):
        typer.echo(_format_article(i, article))
    _display_failures(result.failures)
