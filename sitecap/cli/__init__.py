"""Command-line interface for sitecap."""

from .main import app, cli_main

__all__ = ["app", "cli_main"]
