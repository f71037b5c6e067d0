"""Periódicos CAPES harvester CLI.

Usage:
    python -m periodicos.cli preview "machine learning"
    python -m periodicos.cli search "machine learning" --max-results 60
    python -m periodicos.cli articles "machine learning" --start 10 --count 10
    python -m periodicos.cli export "machine learning" --format bibtex
    python -m periodicos.cli validate config/harvester.yaml
"""

from typing import Optional

import typer

from periodicos.cli.export import export_command
from periodicos.cli.search import articles_command, preview_command, search_command
from periodicos.cli.validate import validate_command
from periodicos.observability.logging import configure_logging

# Create main app
app = typer.Typer(help="Search and export articles from the Periódicos CAPES portal")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"
    ),
    console_logs: bool = typer.Option(
        False, "--console-logs", help="Human-readable logs instead of JSON"
    ),
):
    """Search and export articles from the Periódicos CAPES portal."""
    if log_level or console_logs:
        configure_logging(level=log_level or "INFO", json_output=not console_logs)


# Register individual commands
app.command(name="preview")(preview_command)
app.command(name="search")(search_command)
app.command(name="articles")(articles_command)
app.command(name="export")(export_command)
app.command(name="validate")(validate_command)

__all__ = [
    "app",
    "preview_command",
    "search_command",
    "articles_command",
    "export_command",
    "validate_command",
]
