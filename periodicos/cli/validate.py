"""Validate command for configuration files.

Validates configuration file syntax and semantics.
"""

from pathlib import Path

import typer

from periodicos.services.config_manager import ConfigManager
from periodicos.cli.utils import handle_errors, display_success, display_error


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    if not config_path.exists():
        display_error(f"Validation failed: file not found: {config_path}")
        raise typer.Exit(code=1)

    try:
        manager = ConfigManager(config_path=str(config_path))
        settings = manager.load_settings()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid! ✅")
    proxy = "enabled" if settings.proxy.enabled else "disabled (direct fetch)"
    typer.echo(f" - Extraction proxy: {proxy}")
    typer.echo(f" - Qualis database: {settings.qualis_db_path or 'not configured'}")
    typer.echo(f" - Export directory: {settings.export_dir}")
