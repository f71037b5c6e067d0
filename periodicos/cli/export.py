"""Export command: search with full details and write a RIS or BibTeX file."""

from pathlib import Path
from typing import List, Optional

import typer

from periodicos.cli.search import CONFIG_OPTION, build_filters
from periodicos.cli.utils import (
    display_error,
    display_success,
    handle_errors,
    load_settings,
    run_with_service,
)
from periodicos.models.search import ExportFormat
from periodicos.utils.exceptions import NoArticlesFoundError


@handle_errors
def export_command(
    query: str = typer.Argument(..., help="Search term"),
    export_format: ExportFormat = typer.Option(
        ExportFormat.RIS, "--format", "-f", help="ris or bibtex"
    ),
    max_results: Optional[int] = typer.Option(None, "--max-results", "-n", min=1),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Base directory (default: export_dir)"
    ),
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
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Export search results to a bibliographic file."""
    settings = load_settings(config_path)
    filters = build_filters(
        document_types, open_access, peer_reviewed, year_min, year_max, languages
    )

    try:
        result = run_with_service(
            settings,
            lambda s: s.export_search(
                query,
                export_format,
                filters=filters,
                max_results=max_results,
                output_dir=output_dir,
            ),
        )
    except NoArticlesFoundError as e:
        display_error(str(e))
        raise typer.Exit(code=1)

    display_success(
        f"Exported {result.articles_exported} article(s) as "
        f"{result.format.value.upper()}"
    )
    for path in result.files_created:
        typer.echo(f" - {path}")
