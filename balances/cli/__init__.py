"""Command-line entry points (`balance-snapshot`)."""

from .main import app, main

__all__ = ["app", "main"]
