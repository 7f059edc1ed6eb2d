"""shopforge CLI package."""

from shopforge.cli.app import app, main

__all__ = ["app", "main"]
