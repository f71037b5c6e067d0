"""CLI entry point.

Allows running the CLI as a module: python -m periodicos.cli
"""

from periodicos.cli import app

if __name__ == "__main__":
    app()
