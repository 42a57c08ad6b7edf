"""
Glob Expansion Engine

Wildcard path patterns and the filesystem walker that expands them.
"""

from .pattern import GlobPattern, compile_glob
from .expander import GlobExpander, expand

__all__ = [
    'GlobPattern',
    'compile_glob',
    'GlobExpander',
    'expand',
]
