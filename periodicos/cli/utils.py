"""Shared CLI utilities.

Provides common functionality for all CLI commands.
"""

import asyncio
import functools
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
import typer

from periodicos.models.config import HarvesterSettings
from periodicos.observability.logging import configure_logging
from periodicos.services.config_manager import ConfigManager, ConfigValidationError
from periodicos.services.search_service import CapesSearchService

# Configure structured logging
configure_logging()
logger = structlog.get_logger()

# Type variable for decorator
F = TypeVar("F", bound=Callable)
T = TypeVar("T")


def load_settings(config_path: Optional[Path]) -> HarvesterSettings:
    """Load and validate harvester settings.

    Args:
        config_path: Optional path to a YAML settings file.

    Returns:
        Validated HarvesterSettings.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    if config_path is not None and not config_path.exists():
        typer.secho(
            f"Configuration Error: file not found: {config_path}", fg=typer.colors.RED
        )
        raise typer.Exit(code=1)

    config_manager = ConfigManager(
        config_path=str(config_path) if config_path else "config/harvester.yaml"
    )
    try:
        return config_manager.load_settings()
    except ConfigValidationError as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def run_with_service(
    settings: HarvesterSettings,
    action: Callable[[CapesSearchService], Awaitable[T]],
) -> T:
    """Run ``action`` against a search service that is closed afterwards"""

    async def _run() -> T:
        async with CapesSearchService(settings) as service:
            return await action(service)

    return asyncio.run(_run())


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Catches exceptions and displays user-friendly error messages.

    Args:
        func: Function to wrap.

    Returns:
        Wrapped function with error handling.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)
