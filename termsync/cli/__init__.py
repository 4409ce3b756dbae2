"""Command-line interface."""

from termsync.cli.main import app

__all__ = ["app"]
