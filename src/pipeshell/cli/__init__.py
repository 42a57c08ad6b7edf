"""
pipeshell CLI Package

Typer-based command-line interface for expanding globs and running pipelines.
"""

__version__ = "0.1.0"
