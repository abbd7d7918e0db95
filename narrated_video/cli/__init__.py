"""CLI for narrated video synthesis."""

from .main import main

__all__ = ["main"]
