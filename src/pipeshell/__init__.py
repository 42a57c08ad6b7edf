"""
pipeshell - shell-style pipelines of stream filters.

Filters are composed into pipelines whose stages run concurrently and
exchange data through in-memory connectors. A glob engine expands wildcard
path expressions against the filesystem.
"""

from pipeshell.core.context import ShellContext
from pipeshell.core.pipeline import (
    ByteFilter, CharFilter, Connector, Filter,
    byte_filter, byte_pipeline, char_filter, char_pipeline
)
from pipeshell.core.concurrency import StageScope
from pipeshell.glob import compile_glob, expand

__version__ = "0.1.0"

__all__ = [
    "ShellContext",
    "Filter",
    "ByteFilter",
    "CharFilter",
    "Connector",
    "byte_filter",
    "char_filter",
    "byte_pipeline",
    "char_pipeline",
    "StageScope",
    "compile_glob",
    "expand",
]
